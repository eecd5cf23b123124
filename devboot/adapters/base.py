"""
Provider base — the contract between the runner and package managers.

Each provider knows how to check for, install, validate and update one
kind of component. Providers perform external side effects and return
OperationResults. They NEVER raise: failures are captured in the result.

Package-manager providers share the check-then-execute state machine
implemented by ``PackageProvider``:

    CHECKING -> already present        -> success (no work done)
    CHECKING -> absent                 -> EXECUTING
    CHECKING -> timed out              -> EXECUTING (fail open)
    EXECUTING -> ok | failed | timed out
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass

from devboot.core.config.settings import Settings
from devboot.core.engine.worker import CommandResult, run_process
from devboot.core.models.component import ComponentDescriptor, Operation, ProviderKind
from devboot.core.models.result import OperationResult, truncate_output

logger = logging.getLogger(__name__)


class Provider(ABC):
    """Abstract base class for all providers.

    To create a new provider:
        1. Subclass Provider (or PackageProvider)
        2. Implement kind, install, validate (and optionally update)
        3. Register it with ProviderDispatch
    """

    #: When True, an unavailable backend skips its components instead of failing them
    optional_backend = False

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or Settings()

    @property
    @abstractmethod
    def kind(self) -> ProviderKind:
        """The provider kind this strategy handles."""

    def is_available(self) -> bool:
        """Whether the underlying tool can be used at all.

        Should be fast and never raise.
        """
        return True

    def unavailable_reason(self) -> str:
        return f"{self.kind.value} provider is not available"

    def prepare(self, operation: Operation) -> None:
        """Called once per pass before the first component of this kind."""

    @abstractmethod
    def install(self, component: ComponentDescriptor) -> OperationResult:
        """Make the component present. Idempotent."""

    @abstractmethod
    def validate(self, component: ComponentDescriptor) -> OperationResult:
        """Check the component without changing anything."""

    def update(self, component: ComponentDescriptor) -> OperationResult:
        """Bring the component to its latest version.

        Defaults to install, which is idempotent.
        """
        return self.install(component)

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} kind={self.kind.value!r}>"


@dataclass
class Presence:
    """Result of the CHECKING step."""

    present: bool = False
    timed_out: bool = False
    version: str | None = None
    detail: str = ""
    command: str = ""


class PackageProvider(Provider):
    """Template for providers backed by a package-manager CLI.

    Subclasses implement ``check`` and the install/update command
    builders; this class runs the state machine and builds results.
    """

    #: Timeout for the install/update step, looked up in settings.timeouts
    execute_timeout_key = "install"

    @abstractmethod
    def check(self, component: ComponentDescriptor) -> Presence:
        """Query whether the component is already present."""

    @abstractmethod
    def install_command(self, component: ComponentDescriptor) -> list[str]:
        """Command that installs the component."""

    def update_command(self, component: ComponentDescriptor) -> list[str] | None:
        """Command that upgrades the component (None = reinstall)."""
        return None

    def is_noop_update(self, result: CommandResult) -> bool:
        """Whether an update result means "already at the latest version"."""
        return False

    @property
    def execute_timeout(self) -> int:
        return getattr(self.settings.timeouts, self.execute_timeout_key)

    @property
    def check_timeout(self) -> int:
        return self.settings.timeouts.check

    # ── Operations ──────────────────────────────────────────────

    def install(self, component: ComponentDescriptor) -> OperationResult:
        op = Operation.INSTALL.value
        presence = self.check(component)

        if presence.present:
            logger.info("%s already present", component.name)
            return OperationResult.success(
                component.name,
                op,
                provider=self.kind.value,
                already_satisfied=True,
                reported_version=presence.version,
                command=presence.command,
            )

        if presence.timed_out:
            logger.warning(
                "Presence check for %s timed out; installing anyway", component.name
            )

        return self._execute(component, op, self.install_command(component))

    def validate(self, component: ComponentDescriptor) -> OperationResult:
        op = Operation.VALIDATE.value
        presence = self.check(component)

        if presence.present:
            return OperationResult.success(
                component.name,
                op,
                provider=self.kind.value,
                reported_version=presence.version,
                command=presence.command,
            )

        if presence.timed_out:
            error = f"Presence check timed out after {self.check_timeout}s"
        else:
            error = presence.detail or f"{component.name} is not installed"
        return OperationResult.failure(
            component.name,
            op,
            error,
            provider=self.kind.value,
            command=presence.command,
            timed_out=presence.timed_out,
        )

    def update(self, component: ComponentDescriptor) -> OperationResult:
        op = Operation.UPDATE.value
        presence = self.check(component)

        cmd = self.update_command(component)
        if not presence.present or cmd is None:
            # Absent components are installed, so update converges too
            return self._execute(component, op, self.install_command(component))

        result = run_process(cmd, timeout=self.execute_timeout)
        if self.is_noop_update(result):
            return OperationResult.success(
                component.name,
                op,
                provider=self.kind.value,
                already_satisfied=True,
                reported_version=presence.version,
                command=result.display,
            )
        return self._to_result(component, op, result)

    # ── Helpers ─────────────────────────────────────────────────

    def _execute(
        self,
        component: ComponentDescriptor,
        operation: str,
        cmd: list[str],
    ) -> OperationResult:
        logger.info("%s %s: %s", operation.capitalize(), component.name, " ".join(cmd))
        result = run_process(cmd, timeout=self.execute_timeout)
        return self._to_result(component, operation, result)

    def _to_result(
        self,
        component: ComponentDescriptor,
        operation: str,
        result: CommandResult,
    ) -> OperationResult:
        common = {
            "provider": self.kind.value,
            "command": result.display,
            "exit_code": result.exit_code,
            "output": truncate_output(result.output),
            "duration_ms": result.elapsed_ms,
        }
        if result.ok:
            return OperationResult.success(component.name, operation, **common)
        return OperationResult.failure(
            component.name,
            operation,
            result.describe_failure(),
            timed_out=result.timed_out,
            **common,
        )
