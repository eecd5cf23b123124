"""
Run history — append-only record of every operation pass.

Each install, validate or update run appends one line to an NDJSON
(newline-delimited JSON) file in the state directory. ``devboot
history`` reads it back.

The ledger is append-only: entries are never modified or deleted.
"""

from __future__ import annotations

import json
import logging
import uuid
from datetime import UTC, datetime
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

from devboot.core.models.result import RunSummary

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_FILE = "runs.ndjson"


def generate_run_id() -> str:
    """Generate a unique run ID."""
    now = datetime.now(UTC).strftime("%Y%m%d-%H%M%S")
    short = uuid.uuid4().hex[:6]
    return f"run-{now}-{short}"


class RunRecord(BaseModel):
    """One line of the run history."""

    timestamp: str = Field(default_factory=lambda: datetime.now(UTC).isoformat())
    run_id: str = Field(default_factory=generate_run_id)
    operation: str = ""            # install, validate, update

    # Results
    status: str = ""               # ok, partial, failed, interrupted
    succeeded: int = 0
    skipped: int = 0
    failed: int = 0
    already_satisfied: int = 0
    duration_ms: int = 0

    failures: list[str] = Field(default_factory=list)
    skip_optional: bool = False
    variants: dict[str, str] = Field(default_factory=dict)

    @classmethod
    def from_summary(cls, summary: RunSummary, **kwargs) -> RunRecord:
        return cls(
            operation=summary.operation,
            status=summary.status,
            succeeded=len(summary.successes),
            skipped=len(summary.skipped),
            failed=len(summary.failures),
            already_satisfied=summary.already_satisfied,
            duration_ms=summary.duration_ms,
            failures=list(summary.failures),
            **kwargs,
        )


class RunHistory:
    """Append-only run ledger.

    Each call to write() appends a single JSON line to the ledger file.
    The file is created if it doesn't exist.
    """

    def __init__(self, path: Path | None = None, state_dir: Path | None = None):
        if path is not None:
            self._path = path
        elif state_dir is not None:
            self._path = state_dir / DEFAULT_HISTORY_FILE
        else:
            self._path = Path(DEFAULT_HISTORY_FILE)

    @property
    def path(self) -> Path:
        return self._path

    def write(self, record: RunRecord) -> bool:
        """Append a record. Returns False (and logs) if it could not be written."""
        line = json.dumps(record.model_dump(mode="json"), ensure_ascii=False) + "\n"

        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with self._path.open("a", encoding="utf-8") as f:
                f.write(line)
            logger.debug("Run recorded: %s/%s", record.operation, record.run_id)
            return True
        except OSError as e:
            logger.error("Failed to write run history: %s", e)
            return False

    def read_all(self) -> list[RunRecord]:
        """All records, oldest first."""
        if not self._path.is_file():
            return []

        records = []
        try:
            with self._path.open("r", encoding="utf-8") as f:
                for line_num, line in enumerate(f, start=1):
                    line = line.strip()
                    if not line:
                        continue
                    try:
                        records.append(RunRecord.model_validate(json.loads(line)))
                    except (json.JSONDecodeError, ValidationError) as e:
                        logger.warning("Skipping corrupt history line %d: %s", line_num, e)
        except OSError as e:
            logger.error("Failed to read run history: %s", e)

        return records

    def read_recent(self, n: int = 20) -> list[RunRecord]:
        """The most recent ``n`` records, oldest first."""
        if n <= 0:
            return []
        return self.read_all()[-n:]

    def entry_count(self) -> int:
        return len(self.read_all())
