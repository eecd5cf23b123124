"""
Settings and run configuration.

``Settings`` is the ``settings:`` block of components.yml — which
executables to drive and how long to wait for them. ``RunConfig`` is
the per-invocation configuration handed to the operation runner, so
the runner is a function of (registry, config) with no ambient state.
"""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import BaseModel, Field

# Default state directory (failure log, run history)
DEFAULT_STATE_DIR = "~/.devboot"
STATE_DIR_ENV = "DEVBOOT_STATE_DIR"


class Timeouts(BaseModel):
    """Wall-clock bounds in seconds, per kind of work."""

    check: int = 15
    install: int = 60
    gallery: int = 180
    secondary: int = 300
    repo: int = 120
    custom: int = 300


class Settings(BaseModel):
    """Host-level settings from the registry file."""

    native_manager: str = "winget"
    gallery_shell: str = "pwsh"
    secondary_manager: str = "scoop"
    git: str = "git"

    min_shell_major: int = 7           # minimum gallery shell (pwsh) major version
    timeouts: Timeouts = Field(default_factory=Timeouts)

    state_dir: str | None = None
    reload_command: list[str] | None = None

    # Directory of the registry file; relative paths in actions resolve against it
    base_dir: Path | None = Field(default=None, exclude=True)

    def resolved_state_dir(self) -> Path:
        """State directory: settings > DEVBOOT_STATE_DIR > ~/.devboot."""
        raw = self.state_dir or os.environ.get(STATE_DIR_ENV) or DEFAULT_STATE_DIR
        return Path(raw).expanduser()


class RunConfig(BaseModel):
    """Configuration for one operation pass."""

    skip_optional: bool = False
    non_interactive: bool = False
    assume_yes: bool = False
    preferred_variants: dict[str, str] = Field(default_factory=dict)
