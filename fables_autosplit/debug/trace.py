"""
Diagnostic logging for the autosplitter.

The split logic reports decision edges and read-failure transitions to a
`DiagnosticSink`.  `DiagnosticLog` is the file-backed sink: one
timestamped line per entry, recreated once its first entry is older than
the configured age so it never grows without bound.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from pathlib import Path
from typing import Callable, Protocol

log = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


class DiagnosticSink(Protocol):
    def write(self, message: str) -> None: ...


class NullSink:
    """Sink that drops everything."""

    def write(self, message: str) -> None:
        pass


class MemorySink:
    """Sink that keeps entries in a list."""

    def __init__(self):
        self.messages: list[str] = []

    def write(self, message: str) -> None:
        self.messages.append(message)


class DiagnosticLog:
    """
    Append-only text log, e.g.

        [2026-10-19 20:14:03] ShouldStart: NewGameStarted went True in the new-game event
    """

    def __init__(
        self,
        path: str | Path,
        max_age_days: int = 30,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.path = Path(path)
        self.max_age = timedelta(days=max_age_days)
        self._clock = clock
        self._checked_on = None

    def _first_entry_time(self) -> datetime | None:
        with self.path.open("r", encoding="utf-8", errors="replace") as f:
            first = f.readline()
        if not first.startswith("["):
            return None
        try:
            return datetime.strptime(first[1:20], TIMESTAMP_FORMAT)
        except ValueError:
            return None

    def _rotate_if_stale(self, now: datetime) -> None:
        if not self.path.exists() or self.path.stat().st_size == 0:
            return
        started = self._first_entry_time()
        if started is None or now - started > self.max_age:
            log.info("Recreating diagnostic log %s", self.path)
            self.path.write_text("", encoding="utf-8")

    def write(self, message: str) -> None:
        now = self._clock()
        try:
            # age is checked once per calendar day of uptime
            if self._checked_on != now.date():
                self.path.parent.mkdir(parents=True, exist_ok=True)
                self._rotate_if_stale(now)
                self._checked_on = now.date()
            with self.path.open("a", encoding="utf-8") as f:
                f.write(f"[{now.strftime(TIMESTAMP_FORMAT)}] {message}\n")
        except OSError as e:
            log.warning("Could not write diagnostic log %s: %s", self.path, e)


def setup_logging(
    level: int = logging.INFO,
    log_file: str | Path | None = None,
) -> None:
    """
    Configure logging for fables_autosplit.

    Args:
        level: Logging level.
        log_file: Optional file to write logs to.
    """
    formatter = logging.Formatter(
        "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt=TIMESTAMP_FORMAT,
    )

    root_logger = logging.getLogger("fables_autosplit")
    root_logger.setLevel(level)

    # calling again replaces the previous handlers
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)
