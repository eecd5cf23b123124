"""
Failure log — bounded, append-only record of failed operations.

Stored as a JSON array in ``<state_dir>/failures.json``. The log keeps
the 50 most recent entries (oldest evicted first). A missing file is an
empty log, never an error.

Recording never raises: a failure to persist a failure must not fail
the run, so I/O problems degrade to a logged warning. Writes are atomic
(temp file + replace) and the read-modify-write cycle is serialized by
a process-wide lock.
"""

from __future__ import annotations

import json
import logging
import tempfile
import threading
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError, field_validator

from devboot.core.models.result import truncate_output

logger = logging.getLogger(__name__)

DEFAULT_FAILURE_FILE = "failures.json"
MAX_ENTRIES = 50
DEFAULT_WINDOW_DAYS = 7

_LOCK = threading.Lock()


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


class FailureLogEntry(BaseModel):
    """Durable record of one failed operation."""

    timestamp: str = Field(default_factory=_now_iso)
    component_name: str
    provider_kind: str = ""
    operation: str = ""                   # install, validate, update
    operation_description: str = ""       # the literal command/action attempted
    error_message: str = ""
    full_output: str = ""
    exit_code: int | None = None
    is_privileged: bool = False
    suggestion: str | None = None

    @field_validator("full_output")
    @classmethod
    def _truncate(cls, v: str) -> str:
        return truncate_output(v)

    @property
    def recorded_at(self) -> datetime:
        """Timestamp as an aware datetime (naive values are taken as UTC)."""
        dt = datetime.fromisoformat(self.timestamp)
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=UTC)
        return dt


@dataclass
class FailureGroup:
    """All recent failures of one component, for display."""

    component_name: str
    latest: FailureLogEntry
    count: int


class FailureRecorder:
    """Reads and writes the failure log."""

    def __init__(
        self,
        path: Path | None = None,
        state_dir: Path | None = None,
        max_entries: int = MAX_ENTRIES,
    ):
        if path is not None:
            self._path = path
        elif state_dir is not None:
            self._path = state_dir / DEFAULT_FAILURE_FILE
        else:
            self._path = Path(DEFAULT_FAILURE_FILE)
        self._max_entries = max_entries

    @property
    def path(self) -> Path:
        return self._path

    # ── Write ───────────────────────────────────────────────────

    def record(self, entry: FailureLogEntry) -> bool:
        """Append an entry, evicting the oldest beyond the cap.

        Returns:
            True if the entry was persisted. Never raises.
        """
        try:
            with _LOCK:
                entries = self.read_all()
                entries.append(entry)
                entries = entries[-self._max_entries:]
                self._write(entries)
            logger.debug("Failure recorded for %s", entry.component_name)
            return True
        except Exception as e:
            logger.warning(
                "Could not write failure log %s: %s (failure of %s not persisted)",
                self._path, e, entry.component_name,
            )
            return False

    def clear(self) -> int:
        """Truncate the log. Returns how many entries were removed.

        Raises:
            OSError: If the log cannot be rewritten.
        """
        with _LOCK:
            removed = len(self.read_all())
            if self._path.exists():
                self._write([])
        logger.info("Failure log cleared (%d entries)", removed)
        return removed

    # ── Read ────────────────────────────────────────────────────

    def read_all(self) -> list[FailureLogEntry]:
        """All entries, oldest first. Missing or corrupt file → empty."""
        if not self._path.is_file():
            return []

        try:
            raw = self._path.read_text(encoding="utf-8")
        except OSError as e:
            logger.warning("Cannot read failure log %s: %s", self._path, e)
            return []

        if not raw.strip():
            return []

        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning("Corrupt failure log %s: %s; starting fresh", self._path, e)
            return []

        if not isinstance(data, list):
            logger.warning("Failure log %s is not a JSON array; ignoring", self._path)
            return []

        entries = []
        for idx, item in enumerate(data):
            try:
                entries.append(FailureLogEntry.model_validate(item))
            except ValidationError as e:
                logger.warning("Skipping corrupt failure entry #%d: %s", idx, e)
        return entries

    def list_recent(
        self,
        window_days: float | None = DEFAULT_WINDOW_DAYS,
        now: datetime | None = None,
    ) -> list[FailureLogEntry]:
        """Entries newer than ``now - window_days``, oldest first.

        ``window_days=None`` returns every entry on disk.
        """
        entries = self.read_all()
        if window_days is None:
            return entries

        cutoff = (now or datetime.now(UTC)) - timedelta(days=window_days)
        recent = []
        for e in entries:
            try:
                if e.recorded_at > cutoff:
                    recent.append(e)
            except ValueError:
                logger.debug("Unparseable timestamp in failure log: %r", e.timestamp)
        return recent

    def group_recent(
        self,
        window_days: float | None = DEFAULT_WINDOW_DAYS,
        now: datetime | None = None,
    ) -> list[FailureGroup]:
        """Recent failures grouped by component, most recent group first.

        Each group carries its latest entry and how many times that
        component failed inside the window.
        """
        groups: dict[str, FailureGroup] = {}
        last_seen: dict[str, int] = {}
        for idx, entry in enumerate(self.list_recent(window_days, now=now)):
            group = groups.get(entry.component_name)
            if group is None:
                groups[entry.component_name] = FailureGroup(entry.component_name, entry, 1)
            else:
                group.latest = entry
                group.count += 1
            last_seen[entry.component_name] = idx

        # The log is chronological, so position doubles as recency
        return sorted(groups.values(), key=lambda g: last_seen[g.component_name], reverse=True)

    def entry_count(self) -> int:
        return len(self.read_all())

    # ── Helpers ─────────────────────────────────────────────────

    def _write(self, entries: list[FailureLogEntry]) -> None:
        """Atomic write: temp file in the same directory, then replace."""
        self._path.parent.mkdir(parents=True, exist_ok=True)
        content = json.dumps(
            [e.model_dump(mode="json") for e in entries],
            indent=2,
            ensure_ascii=False,
        ) + "\n"

        fd, tmp_path = tempfile.mkstemp(
            dir=self._path.parent,
            prefix=".failures_",
            suffix=".tmp",
        )
        tmp = Path(tmp_path)
        try:
            with open(fd, "w", encoding="utf-8") as f:
                f.write(content)
            tmp.replace(self._path)
        except Exception:
            tmp.unlink(missing_ok=True)
            raise
