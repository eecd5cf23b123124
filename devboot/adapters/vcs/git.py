"""
Config repository provider — git-synced configuration.

Clones the repository when the target path is absent and pulls when it
is present and clean. A dirty working tree is never touched: local
edits are reported as a diagnostic instead of being overwritten.
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

from devboot.adapters.base import Provider
from devboot.core.engine.worker import CommandResult, run_process
from devboot.core.models.component import (
    ComponentDescriptor,
    ConfigRepoParams,
    Operation,
    ProviderKind,
)
from devboot.core.models.result import OperationResult, truncate_output

logger = logging.getLogger(__name__)


class ConfigRepoProvider(Provider):
    """Keeps a local clone of a configuration repository in sync."""

    @property
    def kind(self) -> ProviderKind:
        return ProviderKind.REPO

    @property
    def executable(self) -> str:
        return self.settings.git

    def is_available(self) -> bool:
        return shutil.which(self.executable) is not None

    def unavailable_reason(self) -> str:
        return f"{self.executable} not found on PATH"

    # ── Operations ──────────────────────────────────────────────

    def install(self, component: ComponentDescriptor) -> OperationResult:
        return self._sync(component, Operation.INSTALL.value)

    def update(self, component: ComponentDescriptor) -> OperationResult:
        return self._sync(component, Operation.UPDATE.value)

    def validate(self, component: ComponentDescriptor) -> OperationResult:
        params = _params(component)
        op = Operation.VALIDATE.value
        path = _target(params)

        if not self._is_work_tree(path):
            return OperationResult.failure(
                component.name,
                op,
                f"{path} is not a git working tree",
                provider=self.kind.value,
            )

        head = self._git(["rev-parse", "--short", "HEAD"], path)
        diagnostics: list[str] = []
        if self._is_dirty(path):
            diagnostics.append(f"local changes in {path}")

        origin = self._git(["remote", "get-url", "origin"], path)
        if origin.ok and origin.stdout.strip() != params.url:
            diagnostics.append(f"origin is {origin.stdout.strip()}, expected {params.url}")

        return OperationResult.success(
            component.name,
            op,
            provider=self.kind.value,
            reported_version=head.stdout.strip() if head.ok else None,
            diagnostics=diagnostics,
            command=head.display,
        )

    # ── Helpers ─────────────────────────────────────────────────

    def _sync(self, component: ComponentDescriptor, op: str) -> OperationResult:
        params = _params(component)
        path = _target(params)

        if not path.exists() or (path.is_dir() and not any(path.iterdir())):
            return self._clone(component, op, params, path)

        if not self._is_work_tree(path):
            return OperationResult.failure(
                component.name,
                op,
                f"{path} exists and is not a git repository",
                provider=self.kind.value,
            )

        if self._is_dirty(path):
            logger.warning("%s has local changes; not pulling", path)
            return OperationResult.success(
                component.name,
                op,
                provider=self.kind.value,
                already_satisfied=True,
                diagnostics=[f"local changes in {path}; pull skipped"],
            )

        result = self._git(["pull", "--ff-only"], path)
        if not result.ok:
            return self._failure(component, op, result)

        return OperationResult.success(
            component.name,
            op,
            provider=self.kind.value,
            already_satisfied="up to date" in result.output.lower(),
            command=result.display,
            output=truncate_output(result.output),
            duration_ms=result.elapsed_ms,
        )

    def _clone(
        self,
        component: ComponentDescriptor,
        op: str,
        params: ConfigRepoParams,
        path: Path,
    ) -> OperationResult:
        args = ["clone"]
        if params.branch:
            args += ["--branch", params.branch]
        args += [params.url, str(path)]

        path.parent.mkdir(parents=True, exist_ok=True)
        result = self._git(args, None)
        if not result.ok:
            return self._failure(component, op, result)

        return OperationResult.success(
            component.name,
            op,
            provider=self.kind.value,
            command=result.display,
            output=truncate_output(result.output),
            duration_ms=result.elapsed_ms,
        )

    def _failure(
        self,
        component: ComponentDescriptor,
        op: str,
        result: CommandResult,
    ) -> OperationResult:
        return OperationResult.failure(
            component.name,
            op,
            result.describe_failure(),
            provider=self.kind.value,
            command=result.display,
            exit_code=result.exit_code,
            output=truncate_output(result.output),
            timed_out=result.timed_out,
            duration_ms=result.elapsed_ms,
        )

    def _is_work_tree(self, path: Path) -> bool:
        if not path.is_dir():
            return False
        result = self._git(["rev-parse", "--is-inside-work-tree"], path)
        return result.ok and result.stdout.strip() == "true"

    def _is_dirty(self, path: Path) -> bool:
        result = self._git(["status", "--porcelain"], path)
        return bool(result.stdout.strip())

    def _git(self, args: list[str], cwd: Path | None) -> CommandResult:
        """Run a bounded git command."""
        return run_process(
            [self.executable, *args],
            timeout=self.settings.timeouts.repo,
            cwd=str(cwd) if cwd else None,
        )


def _target(params: ConfigRepoParams) -> Path:
    return Path(params.path).expanduser()


def _params(component: ComponentDescriptor) -> ConfigRepoParams:
    if not isinstance(component.params, ConfigRepoParams):
        raise TypeError(f"{component.name} is not a config repository component")
    return component.params
