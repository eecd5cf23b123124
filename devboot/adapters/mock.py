"""
Mock provider — in-memory test double for any provider kind.

Simulates a package manager without touching the system: installing a
component marks it present, so a second install reports it as already
satisfied. Individual components can be configured to fail or raise.
"""

from __future__ import annotations

from devboot.adapters.base import Provider
from devboot.core.models.component import ComponentDescriptor, Operation, ProviderKind
from devboot.core.models.result import OperationResult


class MockProvider(Provider):
    """Universal mock provider for testing.

    By default every install succeeds. ``installed`` seeds components
    that are already present.
    """

    def __init__(
        self,
        kind: ProviderKind = ProviderKind.NATIVE,
        available: bool = True,
        installed: set[str] | None = None,
        optional_backend: bool = False,
    ):
        super().__init__()
        self._kind = kind
        self._available = available
        self.installed: set[str] = set(installed or ())
        self.optional_backend = optional_backend
        self._failures: dict[str, str] = {}
        self._raises: dict[str, Exception] = {}
        self._versions: dict[str, str] = {}
        self.call_log: list[tuple[str, str]] = []
        self.prepared: list[Operation] = []

    @property
    def kind(self) -> ProviderKind:
        return self._kind

    @property
    def call_count(self) -> int:
        return len(self.call_log)

    @property
    def work_count(self) -> int:
        """Installs/updates that actually changed something."""
        return sum(1 for _, action in self.call_log if action == "execute")

    def is_available(self) -> bool:
        return self._available

    def unavailable_reason(self) -> str:
        return f"mock {self._kind.value} backend unavailable"

    def set_failure(self, name: str, error: str = "Mock failure") -> None:
        """Configure a component's install/update/validate to fail."""
        self._failures[name] = error

    def set_raises(self, name: str, exc: Exception) -> None:
        """Configure a component's operations to raise."""
        self._raises[name] = exc

    def set_version(self, name: str, version: str) -> None:
        self._versions[name] = version

    def prepare(self, operation: Operation) -> None:
        self.prepared.append(operation)

    def install(self, component: ComponentDescriptor) -> OperationResult:
        return self._apply(component, Operation.INSTALL.value)

    def update(self, component: ComponentDescriptor) -> OperationResult:
        return self._apply(component, Operation.UPDATE.value)

    def validate(self, component: ComponentDescriptor) -> OperationResult:
        name = component.name
        self.call_log.append((name, "check"))
        if name in self._raises:
            raise self._raises[name]
        if name in self._failures:
            return OperationResult.failure(name, "validate", self._failures[name])
        if name not in self.installed:
            return OperationResult.failure(name, "validate", f"{name} is not installed")
        return OperationResult.success(
            name, "validate", reported_version=self._versions.get(name),
        )

    def _apply(self, component: ComponentDescriptor, op: str) -> OperationResult:
        name = component.name
        self.call_log.append((name, "check"))
        if name in self._raises:
            raise self._raises[name]
        if name in self.installed and name not in self._failures:
            return OperationResult.success(name, op, already_satisfied=True)

        self.call_log.append((name, "execute"))
        if name in self._failures:
            return OperationResult.failure(
                name, op, self._failures[name], command=f"mock {op} {name}", exit_code=1,
            )
        self.installed.add(name)
        return OperationResult.success(name, op, command=f"mock {op} {name}")
