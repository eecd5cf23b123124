"""
Gallery module provider — PowerShell Gallery modules driven through pwsh.

Presence check is local only (``Get-Module -ListAvailable``), never the
network. Installs are scoped to the current user and allowed to clobber
existing commands.
"""

from __future__ import annotations

import logging
import shutil

from devboot.adapters.base import PackageProvider, Presence
from devboot.core.engine.worker import run_process
from devboot.core.models.component import (
    ComponentDescriptor,
    GalleryModuleParams,
    ProviderKind,
)
from devboot.core.services.versions import highest_version, version_at_least

logger = logging.getLogger(__name__)


def ps_quote(value: str) -> str:
    """Quote a value as a PowerShell single-quoted string literal."""
    return "'" + value.replace("'", "''") + "'"


class GalleryModuleProvider(PackageProvider):
    """Installs modules from the PowerShell Gallery."""

    execute_timeout_key = "gallery"

    @property
    def kind(self) -> ProviderKind:
        return ProviderKind.GALLERY

    @property
    def executable(self) -> str:
        return self.settings.gallery_shell

    def is_available(self) -> bool:
        return shutil.which(self.executable) is not None

    def unavailable_reason(self) -> str:
        return f"{self.executable} not found on PATH"

    def shell_command(self, script: str) -> list[str]:
        return [self.executable, "-NoLogo", "-NoProfile", "-NonInteractive", "-Command", script]

    # ── Commands ────────────────────────────────────────────────

    def check(self, component: ComponentDescriptor) -> Presence:
        params = _params(component)
        script = (
            f"Get-Module -ListAvailable -Name {ps_quote(params.module_name)} "
            "| ForEach-Object { $_.Version.ToString() }"
        )
        result = run_process(self.shell_command(script), timeout=self.check_timeout)

        if result.timed_out:
            return Presence(timed_out=True, command=result.display)

        versions = [line.strip() for line in result.stdout.splitlines() if line.strip()]
        if not result.ok or not versions:
            return Presence(
                detail=f"Module {params.module_name} is not installed",
                command=result.display,
            )

        version = highest_version(versions) or versions[0]
        if params.min_version and not version_at_least(version, params.min_version):
            return Presence(
                version=version,
                detail=(
                    f"Module {params.module_name} {version} is below "
                    f"minimum version {params.min_version}"
                ),
                command=result.display,
            )

        return Presence(present=True, version=version, command=result.display)

    def install_command(self, component: ComponentDescriptor) -> list[str]:
        params = _params(component)
        script = (
            f"Install-Module -Name {ps_quote(params.module_name)} "
            "-Scope CurrentUser -Force -AllowClobber"
        )
        if params.min_version:
            script += f" -MinimumVersion {ps_quote(params.min_version)}"
        return self.shell_command(script)

    def update_command(self, component: ComponentDescriptor) -> list[str] | None:
        params = _params(component)
        return self.shell_command(
            f"Update-Module -Name {ps_quote(params.module_name)} -Scope CurrentUser -Force"
        )


def _params(component: ComponentDescriptor) -> GalleryModuleParams:
    if not isinstance(component.params, GalleryModuleParams):
        raise TypeError(f"{component.name} is not a gallery module component")
    return component.params
