"""
Result models — the provider contract.

Providers never raise: every install/validate/update attempt returns
an OperationResult. Custom actions report back with an ActionOutcome
(or a plain bool); anything else is rejected as a contract violation.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

# Exit code recorded for attempts killed by the wall-clock bound
TIMEOUT_EXIT_CODE = 124

# Captured subprocess output is truncated to this many characters
OUTPUT_LIMIT = 2000


def _now_iso() -> str:
    """Current UTC time as ISO string."""
    return datetime.now(UTC).isoformat()


def truncate_output(text: str | None, limit: int = OUTPUT_LIMIT) -> str:
    """Keep the tail of ``text``, where errors usually are."""
    if not text:
        return ""
    return text[-limit:]


class OperationStatus(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"


class ActionOutcome(BaseModel):
    """Explicit result of a custom action.

    Custom install/validate callables return one of these (or a bool).
    """

    ok: bool
    message: str = ""
    version: str | None = None
    already_satisfied: bool = False
    diagnostics: list[str] = Field(default_factory=list)

    @classmethod
    def success(cls, message: str = "", **kwargs: Any) -> ActionOutcome:
        return cls(ok=True, message=message, **kwargs)

    @classmethod
    def failure(cls, message: str, **kwargs: Any) -> ActionOutcome:
        return cls(ok=False, message=message, **kwargs)


class OperationResult(BaseModel):
    """Outcome of applying one operation to one component."""

    component: str
    operation: str
    provider: str = ""
    status: OperationStatus = OperationStatus.SUCCESS

    reported_version: str | None = None
    diagnostics: list[str] = Field(default_factory=list)
    already_satisfied: bool = False

    command: str = ""              # literal description of what was attempted
    error: str | None = None
    exit_code: int | None = None
    output: str = ""
    timed_out: bool = False

    started_at: str = Field(default_factory=_now_iso)
    duration_ms: int = 0

    @property
    def ok(self) -> bool:
        return self.status == OperationStatus.SUCCESS

    @property
    def failed(self) -> bool:
        return self.status == OperationStatus.FAILED

    @property
    def skipped(self) -> bool:
        return self.status == OperationStatus.SKIPPED

    @classmethod
    def success(
        cls,
        component: str,
        operation: str,
        **kwargs: Any,
    ) -> OperationResult:
        """Create a success result."""
        return cls(
            component=component,
            operation=operation,
            status=OperationStatus.SUCCESS,
            **kwargs,
        )

    @classmethod
    def failure(
        cls,
        component: str,
        operation: str,
        error: str,
        **kwargs: Any,
    ) -> OperationResult:
        """Create a failure result."""
        return cls(
            component=component,
            operation=operation,
            status=OperationStatus.FAILED,
            error=error,
            **kwargs,
        )

    @classmethod
    def skip(
        cls,
        component: str,
        operation: str,
        reason: str = "",
        **kwargs: Any,
    ) -> OperationResult:
        """Create a skip result. The reason is kept in ``error``."""
        return cls(
            component=component,
            operation=operation,
            status=OperationStatus.SKIPPED,
            error=reason or None,
            **kwargs,
        )


class RunSummary(BaseModel):
    """Aggregate of one full pass over the registry.

    ``skipped`` holds display labels such as ``"X (failed, optional)"``;
    the other buckets hold plain component names.
    """

    operation: str
    successes: list[str] = Field(default_factory=list)
    failures: list[str] = Field(default_factory=list)
    skipped: list[str] = Field(default_factory=list)
    results: list[OperationResult] = Field(default_factory=list)
    interrupted: bool = False
    duration_ms: int = 0

    @property
    def all_ok(self) -> bool:
        return not self.failures and not self.interrupted

    @property
    def status(self) -> str:
        if self.interrupted:
            return "interrupted"
        if not self.failures:
            return "ok"
        if self.successes:
            return "partial"
        return "failed"

    @property
    def already_satisfied(self) -> int:
        return sum(1 for r in self.results if r.already_satisfied)

    def result_for(self, component: str) -> OperationResult | None:
        for r in self.results:
            if r.component == component:
                return r
        return None

    def to_dict(self) -> dict:
        return {
            "operation": self.operation,
            "status": self.status,
            "successes": self.successes,
            "failures": self.failures,
            "skipped": self.skipped,
            "interrupted": self.interrupted,
            "duration_ms": self.duration_ms,
            "results": [r.model_dump(mode="json") for r in self.results],
        }
