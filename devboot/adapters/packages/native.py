"""
Native package provider — the OS package manager (winget CLI contract).

Presence check:  ``winget list --id <id> --exact``
Install:         ``winget install --id <id> --exact --silent
                  --accept-package-agreements --accept-source-agreements``
Update:          ``winget upgrade`` with the same flags

Check and install both run as separate processes with hard wall-clock
bounds (settings.timeouts.check / settings.timeouts.install).
"""

from __future__ import annotations

import logging
import re
import shutil

from devboot.adapters.base import PackageProvider, Presence
from devboot.core.engine.worker import CommandResult, run_process
from devboot.core.models.component import (
    ComponentDescriptor,
    NativePackageParams,
    ProviderKind,
)
from devboot.core.services.versions import extract_version

logger = logging.getLogger(__name__)

# APPINSTALLER_CLI_ERROR_UPDATE_NOT_APPLICABLE, signed and unsigned forms
_NO_UPGRADE_CODES = {0x8A15002B, 0x8A15002B - (1 << 32)}
_NO_UPGRADE_TEXT = re.compile(
    r"no (?:applicable|available) upgrade|no newer package versions", re.IGNORECASE
)

_NON_INTERACTIVE_FLAGS = [
    "--exact",
    "--silent",
    "--accept-package-agreements",
    "--accept-source-agreements",
    "--disable-interactivity",
]


class NativePackageProvider(PackageProvider):
    """Installs packages through the native package manager."""

    execute_timeout_key = "install"

    @property
    def kind(self) -> ProviderKind:
        return ProviderKind.NATIVE

    @property
    def executable(self) -> str:
        return self.settings.native_manager

    def is_available(self) -> bool:
        return shutil.which(self.executable) is not None

    def unavailable_reason(self) -> str:
        return f"{self.executable} not found on PATH"

    # ── Commands ────────────────────────────────────────────────

    def check(self, component: ComponentDescriptor) -> Presence:
        params = _params(component)
        cmd = [
            self.executable, "list",
            "--id", params.package_id,
            "--exact",
            "--accept-source-agreements",
            "--disable-interactivity",
        ]
        result = run_process(cmd, timeout=self.check_timeout)

        if result.timed_out:
            return Presence(timed_out=True, command=result.display)
        if not result.ok or params.package_id.lower() not in result.stdout.lower():
            return Presence(
                present=False,
                detail=f"Package {params.package_id} is not installed",
                command=result.display,
            )

        version = self._detect_version(params, result)
        return Presence(present=True, version=version, command=result.display)

    def install_command(self, component: ComponentDescriptor) -> list[str]:
        return self._package_command("install", _params(component))

    def update_command(self, component: ComponentDescriptor) -> list[str] | None:
        return self._package_command("upgrade", _params(component))

    def is_noop_update(self, result: CommandResult) -> bool:
        if result.timed_out:
            return False
        return result.returncode in _NO_UPGRADE_CODES or bool(
            _NO_UPGRADE_TEXT.search(result.output)
        )

    # ── Helpers ─────────────────────────────────────────────────

    def _package_command(self, verb: str, params: NativePackageParams) -> list[str]:
        cmd = [self.executable, verb, "--id", params.package_id, *_NON_INTERACTIVE_FLAGS]
        if params.source:
            cmd += ["--source", params.source]
        return cmd

    def _detect_version(
        self,
        params: NativePackageParams,
        listing: CommandResult,
    ) -> str | None:
        """Version from the tool itself if configured, else from the listing row."""
        if params.version_command:
            reported = run_process(params.version_command, timeout=self.check_timeout)
            if reported.ok or reported.output:
                found = extract_version(reported.output, params.version_pattern)
                if found:
                    return found
            logger.debug("Version command failed for %s: %s", params.package_id, reported.output)

        return parse_listing_version(listing.stdout, params.package_id)


def parse_listing_version(listing: str, package_id: str) -> str | None:
    """Pick the Version column from a ``winget list`` row.

    Rows look like ``Name  Id  Version  [Available]  Source``; the
    version is the token right after the package id.
    """
    wanted = package_id.lower()
    for line in listing.splitlines():
        tokens = line.split()
        lowered = [t.lower() for t in tokens]
        if wanted not in lowered:
            continue
        idx = lowered.index(wanted)
        if idx + 1 < len(tokens):
            return extract_version(tokens[idx + 1])
    return None


def _params(component: ComponentDescriptor) -> NativePackageParams:
    if not isinstance(component.params, NativePackageParams):
        raise TypeError(f"{component.name} is not a native package component")
    return component.params
