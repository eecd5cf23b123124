"""
Bounded execution — the single timeout-and-cancel wrapper.

Every provider runs its work through one of two entry points:

    run_process()  — a subprocess in its own OS process; killed when
                     the wall-clock bound expires.
    run_bounded()  — a Python callable in a detached worker thread;
                     abandoned when the bound expires.

The caller blocks until the work finishes or the bound expires, then
resumes with either the result or a timed-out outcome. Neither function
raises for failures of the work itself.
"""

from __future__ import annotations

import logging
import os
import queue
import shlex
import subprocess
import threading
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Any

from devboot.core.models.result import TIMEOUT_EXIT_CODE

logger = logging.getLogger(__name__)


@dataclass
class CommandResult:
    """Outcome of one bounded subprocess."""

    command: list[str]
    returncode: int | None = None
    stdout: str = ""
    stderr: str = ""
    timed_out: bool = False
    error: str | None = None       # launch failure (e.g. executable missing)
    elapsed_ms: int = 0
    timeout: float | None = None

    @property
    def ok(self) -> bool:
        return self.returncode == 0 and not self.timed_out and self.error is None

    @property
    def exit_code(self) -> int | None:
        if self.timed_out:
            return TIMEOUT_EXIT_CODE
        return self.returncode

    @property
    def output(self) -> str:
        """Combined stdout and stderr."""
        parts = [p for p in (self.stdout.strip(), self.stderr.strip()) if p]
        return "\n".join(parts)

    @property
    def display(self) -> str:
        """The command as a single shell-style string."""
        return shlex.join(self.command)

    def describe_failure(self) -> str:
        """One-line error message for a failed command."""
        if self.timed_out:
            return f"Timed out after {self.timeout or 0:g}s: {self.display}"
        if self.error:
            return self.error
        detail = self.stderr.strip().splitlines() or self.stdout.strip().splitlines()
        last = detail[-1] if detail else ""
        msg = f"Command failed (exit {self.returncode})"
        return f"{msg}: {last}" if last else msg


@dataclass
class WorkerOutcome:
    """Outcome of one bounded callable."""

    value: Any = None
    error: str | None = None
    exception: BaseException | None = field(default=None, repr=False)
    timed_out: bool = False
    elapsed_ms: int = 0

    @property
    def completed(self) -> bool:
        """Returned normally within the bound."""
        return not self.timed_out and self.exception is None


def run_process(
    cmd: Sequence[str],
    *,
    timeout: float,
    cwd: str | None = None,
    env_overrides: dict[str, str] | None = None,
) -> CommandResult:
    """Run a subprocess with a hard wall-clock bound.

    The child runs in its own process; on timeout it is killed and the
    result is marked ``timed_out``.
    """
    command = [str(c) for c in cmd]
    env = None
    if env_overrides:
        env = os.environ.copy()
        env.update(env_overrides)

    logger.debug("Executing: %s (timeout=%ss)", shlex.join(command), timeout)
    start = time.monotonic()
    try:
        proc = subprocess.run(
            command,
            capture_output=True,
            text=True,
            timeout=timeout,
            cwd=cwd,
            env=env,
            stdin=subprocess.DEVNULL,
        )
    except subprocess.TimeoutExpired as e:
        elapsed_ms = int((time.monotonic() - start) * 1000)
        logger.warning("Timed out after %ss: %s", timeout, shlex.join(command))
        return CommandResult(
            command=command,
            stdout=_as_text(e.stdout),
            stderr=_as_text(e.stderr),
            timed_out=True,
            elapsed_ms=elapsed_ms,
            timeout=timeout,
        )
    except FileNotFoundError:
        return CommandResult(
            command=command,
            error=f"Executable not found: {command[0]}",
        )
    except OSError as e:
        return CommandResult(command=command, error=f"Cannot execute {command[0]}: {e}")

    elapsed_ms = int((time.monotonic() - start) * 1000)
    return CommandResult(
        command=command,
        returncode=proc.returncode,
        stdout=proc.stdout or "",
        stderr=proc.stderr or "",
        elapsed_ms=elapsed_ms,
    )


def run_bounded(
    fn: Callable[..., Any],
    *args: Any,
    timeout: float,
    name: str = "devboot-worker",
    **kwargs: Any,
) -> WorkerOutcome:
    """Call ``fn(*args, **kwargs)`` in a detached thread, bounded by ``timeout``.

    Exceptions raised by ``fn`` are captured in the outcome. A thread
    cannot be killed, so on timeout the worker is left to finish in the
    background (it is a daemon thread) and its result is discarded.
    """
    results: queue.Queue[tuple[bool, Any]] = queue.Queue(maxsize=1)

    def _target() -> None:
        try:
            results.put((True, fn(*args, **kwargs)))
        except BaseException as e:  # noqa: BLE001
            results.put((False, e))

    start = time.monotonic()
    worker = threading.Thread(target=_target, name=name, daemon=True)
    worker.start()
    worker.join(timeout)
    elapsed_ms = int((time.monotonic() - start) * 1000)

    if worker.is_alive():
        logger.warning("%s still running after %ss, abandoned", name, timeout)
        return WorkerOutcome(
            error=f"Timed out after {timeout}s",
            timed_out=True,
            elapsed_ms=elapsed_ms,
        )

    returned, payload = results.get_nowait()
    if returned:
        return WorkerOutcome(value=payload, elapsed_ms=elapsed_ms)

    message = str(payload) or payload.__class__.__name__
    return WorkerOutcome(error=message, exception=payload, elapsed_ms=elapsed_ms)


def _as_text(data: bytes | str | None) -> str:
    if data is None:
        return ""
    if isinstance(data, bytes):
        return data.decode("utf-8", errors="replace")
    return data
