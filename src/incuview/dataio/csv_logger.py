"""Buffered writer that appends telemetry samples to the daily CSV log.

Rows are held in memory and written in batches. A batch is flushed when the
buffer reaches ``buffer_size``, when :meth:`BufferedCsvLogger.flush` is called,
and before switching files on a day or capture-mode rollover. Failed writes
keep their rows buffered so the next flush retries them.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from typing import Callable, List, Optional, Protocol, Sequence

import requests

from ..config.runtime import IncuviewConfig
from ..core.models import TelemetrySample
from .file_paths import MODE_SIMULATED, capture_mode, log_filename
from .record_adapter import EXTENDED_HEADER, format_row

logger = logging.getLogger(__name__)

DEFAULT_BUFFER_SIZE = 10

Clock = Callable[[], datetime]


class WritableLogStore(Protocol):
    def init_file(self, filename: str, header_line: str) -> object:  # pragma: no cover - protocol
        ...

    def append_rows(self, filename: str, rows: Sequence[str]) -> object:  # pragma: no cover - protocol
        ...


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class BufferedCsvLogger:
    def __init__(
        self,
        store: WritableLogStore,
        clock: Clock = utc_now,
        buffer_size: int = DEFAULT_BUFFER_SIZE,
    ) -> None:
        if buffer_size <= 0:
            raise ValueError(f"buffer_size must be a positive integer, got {buffer_size}")
        self._store = store
        self._clock = clock
        self.buffer_size = buffer_size
        self._buffer: List[TelemetrySample] = []
        self._day: Optional[date] = None
        self._mode: Optional[str] = None
        self._file_ready = False

    @classmethod
    def from_config(
        cls, store: WritableLogStore, config: IncuviewConfig, clock: Clock = utc_now
    ) -> "BufferedCsvLogger":
        """Build a logger whose batch size is ``config.logger_buffer_size``."""
        return cls(store, clock=clock, buffer_size=config.sanitized().logger_buffer_size)

    @property
    def current_filename(self) -> Optional[str]:
        if self._day is None or self._mode is None:
            return None
        return log_filename(self._day, self._mode == MODE_SIMULATED)

    @property
    def pending(self) -> int:
        return len(self._buffer)

    def _needs_new_file(self, today: date, mode: str) -> bool:
        return self._day is None or today != self._day or mode != self._mode

    def _ensure_file(self) -> bool:
        filename = self.current_filename
        if filename is None:
            return False
        if self._file_ready:
            return True
        try:
            self._store.init_file(filename, EXTENDED_HEADER)
        except (OSError, requests.RequestException):
            logger.exception("Failed to initialise log file %s", filename)
            return False
        self._file_ready = True
        return True

    def log(self, sample: TelemetrySample, simulated: bool = False) -> None:
        """Buffer one sample, rolling over to a new file when day or mode changes."""
        today = self._clock().date()
        mode = capture_mode(simulated)
        if self._needs_new_file(today, mode):
            if self._buffer:
                self.flush()
            self._day = today
            self._mode = mode
            self._file_ready = False
            self._ensure_file()

        self._buffer.append(sample)
        if len(self._buffer) >= self.buffer_size:
            self.flush()

    def flush(self) -> int:
        """Write buffered rows; returns how many were written (0 on failure)."""
        if not self._buffer or not self._ensure_file():
            return 0
        filename = self.current_filename
        rows = [format_row(sample) for sample in self._buffer]
        try:
            self._store.append_rows(filename, rows)
        except (OSError, requests.RequestException):
            logger.exception("Failed to append %d rows to %s", len(rows), filename)
            return 0
        self._buffer.clear()
        logger.debug("Flushed %d rows to %s", len(rows), filename)
        return len(rows)

    def close(self) -> None:
        self.flush()
