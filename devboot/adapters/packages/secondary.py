"""
Secondary package provider — scoop, for niche tools.

Scoop is optional: when it is not installed, its components are
skipped, never failed.
"""

from __future__ import annotations

import logging
import re
import shutil

from devboot.adapters.base import PackageProvider, Presence
from devboot.core.engine.worker import CommandResult, run_process
from devboot.core.models.component import (
    ComponentDescriptor,
    Operation,
    ProviderKind,
    SecondaryPackageParams,
)
from devboot.core.models.result import OperationResult
from devboot.core.services.versions import extract_version

logger = logging.getLogger(__name__)

_LATEST_TEXT = re.compile(r"latest version|already up to date|is up to date", re.IGNORECASE)


class SecondaryPackageProvider(PackageProvider):
    """Installs apps through scoop."""

    execute_timeout_key = "secondary"
    optional_backend = True

    @property
    def kind(self) -> ProviderKind:
        return ProviderKind.SECONDARY

    @property
    def executable(self) -> str:
        return self.settings.secondary_manager

    def is_available(self) -> bool:
        return shutil.which(self.executable) is not None

    def unavailable_reason(self) -> str:
        return f"{self.executable} not installed"

    def prepare(self, operation: Operation) -> None:
        """Refresh scoop and its buckets once before an update pass."""
        if operation != Operation.UPDATE or not self.is_available():
            return
        result = run_process([self.executable, "update"], timeout=self.execute_timeout)
        if not result.ok:
            logger.warning("%s self-update failed: %s", self.executable, result.describe_failure())

    # ── Commands ────────────────────────────────────────────────

    def check(self, component: ComponentDescriptor) -> Presence:
        params = _params(component)
        result = run_process([self.executable, "list", params.app], timeout=self.check_timeout)

        if result.timed_out:
            return Presence(timed_out=True, command=result.display)

        for line in result.stdout.splitlines():
            tokens = line.split()
            if tokens and tokens[0].lower() == params.app.lower():
                version = extract_version(tokens[1]) if len(tokens) > 1 else None
                return Presence(present=True, version=version, command=result.display)

        return Presence(
            detail=f"{params.app} is not installed via {self.executable}",
            command=result.display,
        )

    def install_command(self, component: ComponentDescriptor) -> list[str]:
        params = _params(component)
        target = f"{params.bucket}/{params.app}" if params.bucket else params.app
        return [self.executable, "install", target]

    def update_command(self, component: ComponentDescriptor) -> list[str] | None:
        return [self.executable, "update", _params(component).app]

    def is_noop_update(self, result: CommandResult) -> bool:
        return not result.timed_out and bool(_LATEST_TEXT.search(result.output))

    def _execute(
        self,
        component: ComponentDescriptor,
        operation: str,
        cmd: list[str],
    ) -> OperationResult:
        params = _params(component)
        if params.bucket:
            added = run_process(
                [self.executable, "bucket", "add", params.bucket],
                timeout=self.execute_timeout,
            )
            if not added.ok:
                logger.debug("bucket add %s: %s", params.bucket, added.output)
        return super()._execute(component, operation, cmd)


def _params(component: ComponentDescriptor) -> SecondaryPackageParams:
    if not isinstance(component.params, SecondaryPackageParams):
        raise TypeError(f"{component.name} is not a secondary package component")
    return component.params
