"""Scoped process-wide guards for long-running imports."""

from __future__ import annotations

import fcntl
import logging
import signal
import threading
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from geolite_import.common.errors import RunInProgressError, RunTimeoutError
from geolite_import.common.fs import ensure_dir

module_logger = logging.getLogger(__name__)


def _can_use_alarm() -> bool:
    return hasattr(signal, "setitimer") and threading.current_thread() is threading.main_thread()


@contextmanager
def execution_time_limit(seconds: int, logger: logging.Logger | None = None) -> Iterator[None]:
    """Raise RunTimeoutError if the block runs longer than ``seconds``.

    ``0`` disables the limit. The previous SIGALRM handler and any pending
    interval timer are restored on exit, minus the time spent inside the block.
    """
    log = logger or module_logger
    if seconds <= 0:
        yield
        return
    if not _can_use_alarm():
        log.warning("execution time limit unavailable outside the main thread; running unlimited")
        yield
        return

    def _on_alarm(signum, frame):
        raise RunTimeoutError(f"Run exceeded its execution time limit of {seconds}s")

    started_at = time.monotonic()
    previous_handler = signal.signal(signal.SIGALRM, _on_alarm)
    previous_delay, previous_interval = signal.setitimer(signal.ITIMER_REAL, seconds)
    try:
        yield
    finally:
        signal.setitimer(signal.ITIMER_REAL, 0)
        signal.signal(signal.SIGALRM, previous_handler)
        if previous_delay > 0:
            remaining = max(previous_delay - (time.monotonic() - started_at), 0.001)
            signal.setitimer(signal.ITIMER_REAL, remaining, previous_interval)


@contextmanager
def identity_lock(lock_path: Path) -> Iterator[Path]:
    """Hold an exclusive advisory lock so one identity runs one import at a time."""
    ensure_dir(lock_path.parent)
    handle = lock_path.open("a+")
    try:
        try:
            fcntl.flock(handle.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError as exc:
            raise RunInProgressError(f"Another import holds {lock_path}") from exc
        try:
            yield lock_path
        finally:
            fcntl.flock(handle.fileno(), fcntl.LOCK_UN)
    finally:
        handle.close()
