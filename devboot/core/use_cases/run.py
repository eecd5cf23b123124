"""
Run use case — apply one operation to the whole component registry.

This is the top-level orchestrator: it loads the registry, checks host
prerequisites, runs the operation, and persists the run history. The
full vertical slice from user intent to recorded result.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from devboot.adapters.registry import ProviderDispatch, default_dispatch
from devboot.core.config.loader import ConfigError, load_config, load_registry, resolve_components_path
from devboot.core.config.settings import RunConfig, Settings
from devboot.core.engine.runner import OperationRunner, ProgressCallback
from devboot.core.models.component import Operation
from devboot.core.models.result import RunSummary
from devboot.core.persistence.audit import RunHistory, RunRecord
from devboot.core.persistence.failure_log import FailureRecorder
from devboot.core.services.prerequisites import PrerequisiteError, check_prerequisites

logger = logging.getLogger(__name__)

# Process exit codes
EXIT_OK = 0
EXIT_FAILURES = 1
EXIT_FATAL = 2


@dataclass
class RunResult:
    """Result of running one operation."""

    operation: str = ""
    summary: RunSummary | None = None
    settings: Settings | None = None
    components_path: Path | None = None
    error: str | None = None
    remediation: str = ""

    @property
    def exit_code(self) -> int:
        if self.error or self.summary is None:
            return EXIT_FATAL
        if self.summary.failures or self.summary.interrupted:
            return EXIT_FAILURES
        return EXIT_OK

    def to_dict(self) -> dict:
        result: dict = {"operation": self.operation, "exit_code": self.exit_code}
        if self.error:
            result["error"] = self.error
            if self.remediation:
                result["remediation"] = self.remediation
            return result

        result["components_path"] = str(self.components_path)
        if self.summary:
            result["summary"] = self.summary.to_dict()
        return result


def state_dir_for(components_path: Path | None = None) -> Path:
    """State directory for a registry file, falling back to defaults.

    Commands that only read state (failures, history) must work even
    when the registry is broken, so configuration errors are not fatal
    here.
    """
    try:
        settings = load_config(resolve_components_path(components_path)).settings
    except ConfigError as e:
        logger.debug("Using default state directory: %s", e)
        settings = Settings()
    return settings.resolved_state_dir()


def run_operation(
    operation: Operation,
    components_path: Path | None = None,
    config: RunConfig | None = None,
    dispatch: ProviderDispatch | None = None,
    recorder: FailureRecorder | None = None,
    history: RunHistory | None = None,
    check_host: bool = True,
    privileged: bool | None = None,
    progress: ProgressCallback | None = None,
) -> RunResult:
    """Run ``operation`` over every registered component.

    Args:
        operation: install, validate or update.
        components_path: Optional explicit path to components.yml.
        config: Per-run switches (skip optional, variants, prompts).
        dispatch: Optional pre-configured provider dispatch.
        recorder: Optional failure log (default: in the state dir).
        history: Optional run history (default: in the state dir).
        check_host: If False, skip the prerequisite checks.
        privileged: Elevation state passed to the advisor.
        progress: Optional per-component callback.

    Returns:
        RunResult; ``error`` is set for configuration and prerequisite
        failures, which abort before any component is touched.
    """
    config = config or RunConfig()
    result = RunResult(operation=operation.value)

    # ── Load registry ────────────────────────────────────────────
    try:
        path = resolve_components_path(components_path)
        result.components_path = path
        registry, settings = load_registry(path, preferred_variants=config.preferred_variants)
        result.settings = settings
    except ConfigError as e:
        result.error = str(e)
        return result

    # ── Prerequisites ────────────────────────────────────────────
    kinds = {
        c.provider_kind for c in registry
        if not (c.optional and config.skip_optional)
    }
    if check_host:
        try:
            check_prerequisites(kinds, settings)
        except PrerequisiteError as e:
            result.error = str(e)
            result.remediation = e.remediation
            return result

    # ── Execute ──────────────────────────────────────────────────
    state_dir = settings.resolved_state_dir()
    if dispatch is None:
        dispatch = default_dispatch(settings)
    if recorder is None:
        recorder = FailureRecorder(state_dir=state_dir)

    runner = OperationRunner(dispatch, recorder, privileged=privileged, progress=progress)
    summary = runner.run(operation, registry, config)
    result.summary = summary

    # ── Write run history ────────────────────────────────────────
    if history is None:
        history = RunHistory(state_dir=state_dir)
    history.write(RunRecord.from_summary(
        summary,
        skip_optional=config.skip_optional,
        variants=dict(config.preferred_variants),
    ))

    return result
