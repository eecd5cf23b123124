"""
Operation runner — the central orchestration loop.

Takes one operation (install, validate, update), walks the registry in
order, dispatches each component through its provider, classifies the
results into a RunSummary, and persists every failure.

Flow:
    registry → prepare providers → dispatch each → classify → record failures

The runner is fail-soft: a component failure never stops the pass.
Only an interrupt (Ctrl+C) ends it early.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

from devboot.adapters.registry import ProviderDispatch
from devboot.core.config.settings import RunConfig
from devboot.core.models.component import ComponentDescriptor, Operation
from devboot.core.models.result import OperationResult, RunSummary
from devboot.core.persistence.failure_log import FailureLogEntry, FailureRecorder
from devboot.core.services.advisor import suggest
from devboot.core.services.registry import ComponentRegistry

logger = logging.getLogger(__name__)

# progress(index, total, component, result); result is None before dispatch
ProgressCallback = Callable[[int, int, ComponentDescriptor, OperationResult | None], None]

OPTIONAL_SKIPPED = "optional, skipped"
OPTIONAL_FAILED = "failed, optional"


def describe_operation(component: ComponentDescriptor, operation: Operation) -> str:
    """Human-readable description of an attempt that has no literal command."""
    return f"{operation.value} {component.label} via {component.provider_kind.value}"


class OperationRunner:
    """Runs one operation over a whole registry.

    Args:
        dispatch: Routes components to providers.
        recorder: Failure log; ``None`` disables persistence.
        privileged: Whether the process is elevated (feeds the advisor).
            Detected lazily when not given.
        progress: Optional callback for the CLI.
    """

    def __init__(
        self,
        dispatch: ProviderDispatch,
        recorder: FailureRecorder | None = None,
        privileged: bool | None = None,
        progress: ProgressCallback | None = None,
    ):
        self._dispatch = dispatch
        self._recorder = recorder
        self._privileged = privileged
        self._progress = progress

    @property
    def privileged(self) -> bool:
        if self._privileged is None:
            from devboot.core.services.prerequisites import is_privileged

            self._privileged = is_privileged()
        return self._privileged

    def run(
        self,
        operation: Operation,
        registry: ComponentRegistry,
        config: RunConfig | None = None,
    ) -> RunSummary:
        """Apply ``operation`` to every component in registry order."""
        config = config or RunConfig()
        start = time.monotonic()
        summary = RunSummary(operation=operation.value)

        components = registry.list_components()
        hints = {c.name: c.hint for c in components if c.hint}
        total = len(components)

        logger.info("Starting %s of %d components", operation.value, total)

        in_use = {
            c.provider_kind for c in components
            if not (c.optional and config.skip_optional)
        }
        self._dispatch.prepare(operation, in_use)

        unresolved: set[str] = set()

        for index, component in enumerate(components, start=1):
            try:
                self._notify(index, total, component, None)

                if component.optional and config.skip_optional:
                    result = OperationResult.skip(
                        component.name,
                        operation.value,
                        OPTIONAL_SKIPPED,
                        provider=component.provider_kind.value,
                    )
                else:
                    result = self._dispatch.dispatch(component, operation)

                blocked = [d for d in component.depends_on if d in unresolved]
                if blocked and not result.ok:
                    result.diagnostics.append(
                        f"dependency did not succeed: {', '.join(blocked)}"
                    )

                self._classify(summary, component, result)
                if not result.ok:
                    unresolved.add(component.name)
                if result.failed:
                    self._record_failure(component, operation, result, hints)

                self._notify(index, total, component, result)
            except KeyboardInterrupt:
                logger.warning(
                    "%s interrupted at %s (%d/%d)",
                    operation.value.capitalize(), component.name, index, total,
                )
                summary.interrupted = True
                break

        summary.duration_ms = int((time.monotonic() - start) * 1000)

        logger.info(
            "%s finished: %d ok, %d skipped, %d failed (%s)",
            operation.value.capitalize(),
            len(summary.successes),
            len(summary.skipped),
            len(summary.failures),
            summary.status,
        )
        return summary

    # ── Helpers ─────────────────────────────────────────────────

    def _classify(
        self,
        summary: RunSummary,
        component: ComponentDescriptor,
        result: OperationResult,
    ) -> None:
        summary.results.append(result)

        if result.ok:
            summary.successes.append(component.name)
            marker = "✓"
            detail = "already satisfied" if result.already_satisfied else result.status.value
        elif result.skipped:
            label = f"{component.name} ({result.error})" if result.error else component.name
            summary.skipped.append(label)
            marker = "⊘"
            detail = result.error or "skipped"
        elif component.optional:
            summary.skipped.append(f"{component.name} ({OPTIONAL_FAILED})")
            marker = "⊘"
            detail = f"{OPTIONAL_FAILED}: {result.error}"
        else:
            summary.failures.append(component.name)
            marker = "✗"
            detail = result.error or "failed"

        logger.info("%s %s:%s → %s", marker, component.name, result.operation, detail)
        for note in result.diagnostics:
            logger.warning("%s: %s", component.name, note)

    def _record_failure(
        self,
        component: ComponentDescriptor,
        operation: Operation,
        result: OperationResult,
        hints: dict[str, str],
    ) -> None:
        if self._recorder is None:
            return

        error = result.error or "unknown error"
        privileged = self.privileged
        entry = FailureLogEntry(
            component_name=component.name,
            provider_kind=result.provider or component.provider_kind.value,
            operation=operation.value,
            operation_description=result.command or describe_operation(component, operation),
            error_message=error,
            full_output=result.output,
            exit_code=result.exit_code,
            is_privileged=privileged,
            suggestion=suggest(component.name, error, privileged, hints=hints),
        )
        self._recorder.record(entry)

    def _notify(
        self,
        index: int,
        total: int,
        component: ComponentDescriptor,
        result: OperationResult | None,
    ) -> None:
        if self._progress is None:
            return
        try:
            self._progress(index, total, component, result)
        except Exception as e:
            logger.debug("Progress callback failed: %s", e)
