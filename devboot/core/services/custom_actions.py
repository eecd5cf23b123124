"""
Built-in custom actions and action reference resolution.

Registry files point custom components at callables either by a short
built-in name (``deploy_file``) or by ``package.module:function``. Every
action is called as ``fn(ctx, **args)`` with the component's ``args``;
install and validate share the same args, so actions accept and ignore
keys they do not use.
"""

from __future__ import annotations

import filecmp
import importlib
import logging
import shutil
from collections.abc import Callable
from pathlib import Path
from typing import Any

from devboot.core.models.result import ActionOutcome
from devboot.core.services.versions import DEFAULT_VERSION_PATTERN, extract_version

logger = logging.getLogger(__name__)


def _resolve_path(ctx: Any, raw: str) -> Path:
    path = Path(raw).expanduser()
    base = getattr(ctx.settings, "base_dir", None)
    if not path.is_absolute() and base is not None:
        path = Path(base) / path
    return path


# ── File deployment ─────────────────────────────────────────────


def deploy_file(
    ctx: Any,
    source: str,
    target: str,
    backup: bool = True,
    **_: Any,
) -> ActionOutcome:
    """Copy a config file into place. A matching target is left alone."""
    src = _resolve_path(ctx, source)
    dst = Path(target).expanduser()

    if not src.is_file():
        return ActionOutcome.failure(f"Source file not found: {src}")

    if dst.is_file() and filecmp.cmp(src, dst, shallow=False):
        return ActionOutcome.success(f"{dst} already up to date", already_satisfied=True)

    diagnostics = []
    if dst.exists() and backup:
        saved = dst.with_name(dst.name + ".bak")
        shutil.copy2(dst, saved)
        diagnostics.append(f"previous {dst.name} saved as {saved.name}")

    dst.parent.mkdir(parents=True, exist_ok=True)
    shutil.copy2(src, dst)
    logger.info("Deployed %s -> %s", src, dst)
    return ActionOutcome.success(f"Deployed {dst}", diagnostics=diagnostics)


def file_deployed(ctx: Any, source: str, target: str, **_: Any) -> ActionOutcome:
    """Validate a deployed file: missing fails, drift is a diagnostic."""
    src = _resolve_path(ctx, source)
    dst = Path(target).expanduser()

    if not dst.is_file():
        return ActionOutcome.failure(f"config not deployed: {dst}")

    if src.is_file() and not filecmp.cmp(src, dst, shallow=False):
        return ActionOutcome.success(diagnostics=[f"{dst} differs from {src}"])
    return ActionOutcome.success()


# ── Commands ────────────────────────────────────────────────────


def run_command(
    ctx: Any,
    command: list[str],
    check: list[str] | None = None,
    timeout: float | None = None,
    **_: Any,
) -> ActionOutcome:
    """Run ``command`` unless ``check`` already succeeds.

    ``check`` is bounded by the check timeout; ``timeout`` applies to
    ``command`` only.
    """
    if check:
        present = ctx.run(check, timeout=ctx.settings.timeouts.check)
        if present.ok:
            return ActionOutcome.success("already satisfied", already_satisfied=True)

    result = ctx.run(command, timeout=timeout)
    if not result.ok:
        return ActionOutcome.failure(result.describe_failure())
    return ActionOutcome.success()


def command_succeeds(
    ctx: Any,
    check: list[str],
    version_pattern: str = DEFAULT_VERSION_PATTERN,
    timeout: float | None = None,
    **_: Any,
) -> ActionOutcome:
    """Validate by running ``check``; reports the version it prints."""
    result = ctx.run(check, timeout=timeout)
    if not result.ok:
        return ActionOutcome.failure(result.describe_failure())
    return ActionOutcome.success(version=extract_version(result.output, version_pattern))


BUILTIN_ACTIONS: dict[str, Callable[..., ActionOutcome]] = {
    "deploy_file": deploy_file,
    "file_deployed": file_deployed,
    "run_command": run_command,
    "command_succeeds": command_succeeds,
}


def resolve_action(ref: str | Callable[..., Any]) -> Callable[..., Any]:
    """Turn a built-in name or ``module:function`` into a callable.

    Raises:
        ValueError: If the reference cannot be resolved.
    """
    if callable(ref):
        return ref
    if not isinstance(ref, str) or not ref.strip():
        raise ValueError(f"Invalid action reference: {ref!r}")

    ref = ref.strip()
    if ref in BUILTIN_ACTIONS:
        return BUILTIN_ACTIONS[ref]

    module_name, sep, attr = ref.partition(":")
    if not sep or not module_name or not attr:
        known = ", ".join(sorted(BUILTIN_ACTIONS))
        raise ValueError(
            f"Unknown action '{ref}' (use 'module:function' or one of: {known})"
        )

    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise ValueError(f"Cannot import action module '{module_name}': {e}") from e

    target: Any = module
    for part in attr.split("."):
        target = getattr(target, part, None)
        if target is None:
            raise ValueError(f"'{module_name}' has no attribute '{attr}'")

    if not callable(target):
        raise ValueError(f"Action '{ref}' is not callable")
    return target
