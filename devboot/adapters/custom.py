"""
Custom provider — registry-supplied install/validate callables.

Check and execute are fused: the callable decides for itself whether
work is needed. The contract is strict: a callable returns an
``ActionOutcome`` or a ``bool``. Freeform strings and ``None`` are
rejected rather than guessed at.

Callables run under the same bounded execution wrapper as every other
provider (settings.timeouts.custom).
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Any

from devboot.adapters.base import Provider
from devboot.core.config.settings import Settings
from devboot.core.engine.worker import CommandResult, run_bounded, run_process
from devboot.core.models.component import (
    ComponentDescriptor,
    CustomParams,
    Operation,
    ProviderKind,
)
from devboot.core.models.result import (
    TIMEOUT_EXIT_CODE,
    ActionOutcome,
    OperationResult,
)

logger = logging.getLogger(__name__)


@dataclass
class ActionContext:
    """What a custom action gets to work with."""

    component: str
    operation: str
    settings: Settings
    variant: str | None = None
    commands: list[str] = field(default_factory=list)

    def run(self, cmd: Sequence[str], timeout: float | None = None) -> CommandResult:
        """Run a bounded subprocess on behalf of the action."""
        result = run_process(cmd, timeout=timeout or self.settings.timeouts.custom)
        self.commands.append(result.display)
        return result


def coerce_outcome(value: Any) -> ActionOutcome:
    """Apply the strict result contract.

    Raises:
        TypeError: If ``value`` is neither an ActionOutcome nor a bool.
    """
    if isinstance(value, ActionOutcome):
        return value
    if isinstance(value, bool):
        return ActionOutcome(ok=value, message="" if value else "action reported failure")
    raise TypeError(
        f"custom action returned {type(value).__name__}; expected ActionOutcome or bool"
    )


def describe_callable(fn: Callable[..., Any], args: dict[str, Any]) -> str:
    """``module:qualname(key=value, ...)`` — what the log shows as the attempted operation."""
    name = getattr(fn, "__qualname__", None) or getattr(fn, "__name__", repr(fn))
    module = getattr(fn, "__module__", None)
    target = f"{module}:{name}" if module else name
    rendered = ", ".join(f"{k}={v!r}" for k, v in args.items())
    return f"{target}({rendered})"


class CustomProvider(Provider):
    """Invokes the component's own install/validate/update callables."""

    @property
    def kind(self) -> ProviderKind:
        return ProviderKind.CUSTOM

    def install(self, component: ComponentDescriptor) -> OperationResult:
        params = _params(component)
        return self._invoke(component, Operation.INSTALL, params.install)

    def validate(self, component: ComponentDescriptor) -> OperationResult:
        params = _params(component)
        return self._invoke(component, Operation.VALIDATE, params.validate_fn)

    def update(self, component: ComponentDescriptor) -> OperationResult:
        params = _params(component)
        return self._invoke(component, Operation.UPDATE, params.update or params.install)

    def _invoke(
        self,
        component: ComponentDescriptor,
        operation: Operation,
        fn: Callable[..., Any],
    ) -> OperationResult:
        params = _params(component)
        op = operation.value
        timeout = self.settings.timeouts.custom
        description = describe_callable(fn, params.args)
        ctx = ActionContext(
            component=component.name,
            operation=op,
            settings=self.settings,
            variant=component.selected_variant,
        )

        logger.debug("Custom %s for %s: %s", op, component.name, description)
        outcome = run_bounded(
            lambda: fn(ctx, **params.args),
            timeout=timeout,
            name=f"custom:{component.name}",
        )

        common = {
            "provider": self.kind.value,
            "command": description,
            "duration_ms": outcome.elapsed_ms,
            "output": "\n".join(ctx.commands),
        }

        if outcome.timed_out:
            return OperationResult.failure(
                component.name,
                op,
                f"Custom {op} action timed out after {timeout}s",
                timed_out=True,
                exit_code=TIMEOUT_EXIT_CODE,
                **common,
            )
        if outcome.exception is not None:
            return OperationResult.failure(component.name, op, outcome.error or "", **common)

        try:
            result = coerce_outcome(outcome.value)
        except TypeError as e:
            return OperationResult.failure(component.name, op, str(e), **common)

        if not result.ok:
            return OperationResult.failure(
                component.name,
                op,
                result.message or "action reported failure",
                diagnostics=list(result.diagnostics),
                **common,
            )

        return OperationResult.success(
            component.name,
            op,
            reported_version=result.version,
            already_satisfied=result.already_satisfied,
            diagnostics=list(result.diagnostics),
            **common,
        )


def _params(component: ComponentDescriptor) -> CustomParams:
    if not isinstance(component.params, CustomParams):
        raise TypeError(f"{component.name} is not a custom component")
    return component.params
