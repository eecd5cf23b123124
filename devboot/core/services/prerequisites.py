"""
Prerequisite checks — the only fatal errors in a run.

Before the runner touches the registry, the host must provide the
capabilities the registry needs: the native package manager when there
are native components, and a recent enough gallery shell when there are
gallery components. Everything else (scoop, git, custom actions) fails
per component instead.
"""

from __future__ import annotations

import logging
import os
import shutil
import sys

from devboot.core.config.settings import Settings
from devboot.core.engine.worker import run_process
from devboot.core.models.component import ProviderKind

logger = logging.getLogger(__name__)

MIN_PYTHON = (3, 11)


class PrerequisiteError(Exception):
    """A required host capability is missing. Aborts the run."""

    def __init__(self, message: str, remediation: str = ""):
        super().__init__(message)
        self.remediation = remediation


def is_privileged() -> bool:
    """Whether this process runs with elevated rights."""
    if os.name == "nt":
        try:
            import ctypes

            return bool(ctypes.windll.shell32.IsUserAnAdmin())
        except (AttributeError, OSError):
            return False
    geteuid = getattr(os, "geteuid", None)
    return bool(geteuid and geteuid() == 0)


def check_python(version: tuple[int, ...] | None = None) -> None:
    current = tuple(version or sys.version_info[:3])
    if current[:2] < MIN_PYTHON:
        want = ".".join(str(p) for p in MIN_PYTHON)
        have = ".".join(str(p) for p in current)
        raise PrerequisiteError(
            f"Python {want}+ is required (running {have})",
            remediation=f"Install Python {want} or newer and re-run devboot.",
        )


def check_native_manager(settings: Settings) -> None:
    if shutil.which(settings.native_manager) is None:
        raise PrerequisiteError(
            f"Package manager '{settings.native_manager}' not found on PATH",
            remediation=(
                "Install 'App Installer' from the Microsoft Store (it provides winget), "
                "or set settings.native_manager in components.yml."
            ),
        )


def check_gallery_shell(settings: Settings) -> None:
    shell = settings.gallery_shell
    if shutil.which(shell) is None:
        raise PrerequisiteError(
            f"'{shell}' not found on PATH",
            remediation="Install PowerShell 7: winget install --id Microsoft.PowerShell --exact",
        )

    result = run_process(
        [shell, "-NoLogo", "-NoProfile", "-NonInteractive", "-Command",
         "$PSVersionTable.PSVersion.Major"],
        timeout=settings.timeouts.check,
    )
    if not result.ok:
        logger.warning("Could not determine %s version: %s", shell, result.describe_failure())
        return

    try:
        major = int(result.stdout.strip().splitlines()[-1])
    except (ValueError, IndexError):
        logger.warning("Unexpected %s version output: %r", shell, result.stdout)
        return

    if major < settings.min_shell_major:
        raise PrerequisiteError(
            f"{shell} {major} is too old (need {settings.min_shell_major}+)",
            remediation="Update PowerShell: winget upgrade --id Microsoft.PowerShell --exact",
        )


def check_prerequisites(kinds: set[ProviderKind], settings: Settings) -> None:
    """Verify the host can run a pass over components of ``kinds``.

    Raises:
        PrerequisiteError: On the first missing capability.
    """
    check_python()
    if ProviderKind.NATIVE in kinds:
        check_native_manager(settings)
    if ProviderKind.GALLERY in kinds:
        check_gallery_shell(settings)
    logger.debug("Prerequisites satisfied for: %s", ", ".join(sorted(k.value for k in kinds)))
