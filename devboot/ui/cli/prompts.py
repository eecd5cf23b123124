"""
End-of-run prompts.

Every prompt has a non-interactive answer so that unattended runs
(CI, provisioning scripts) never block: ``--yes`` answers yes,
``--non-interactive`` / ``DEVBOOT_NON_INTERACTIVE`` / a non-TTY stdin
answer no.
"""

from __future__ import annotations

import logging
import os
import subprocess
import sys

import click

logger = logging.getLogger(__name__)

NON_INTERACTIVE_ENV = "DEVBOOT_NON_INTERACTIVE"

_TRUTHY = {"1", "true", "yes", "on"}


def is_interactive(non_interactive: bool = False) -> bool:
    """Whether we may ask the user anything."""
    if non_interactive:
        return False
    if os.environ.get(NON_INTERACTIVE_ENV, "").strip().lower() in _TRUTHY:
        return False
    try:
        return sys.stdin.isatty()
    except (AttributeError, ValueError):
        return False


def confirm_reload(assume_yes: bool = False, non_interactive: bool = False) -> bool:
    """Answer "Reload shell now?"."""
    if assume_yes:
        return True
    if not is_interactive(non_interactive):
        logger.debug("Non-interactive session; not reloading shell")
        return False
    return click.confirm("Reload shell now?", default=False)


def reload_shell(command: list[str]) -> int:
    """Start a fresh shell so new profile settings take effect.

    Returns the shell's exit code (127 if it could not be started).
    """
    logger.info("Reloading shell: %s", " ".join(command))
    try:
        return subprocess.run(command, check=False).returncode
    except OSError as e:
        click.secho(f"⚠️  Could not start {command[0]}: {e}", fg="yellow")
        return 127
