"""Load logs, merge, segment, and correlate events for charts and reports."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Protocol, Sequence

import requests

from ..config.runtime import IncuviewConfig
from ..dataio import csv_writer
from ..dataio.file_paths import capture_mode, is_incubator_log
from ..dataio.log_store import LogFileInfo
from .correlate import correlate
from .downsample import downsample
from .merge import LogFile, TimeWindow, merge_report, to_chart_records
from .models import DomainEvent, Session, TelemetrySample, datetime_to_ms
from .segmenter import segment_and_downsample

__all__ = [
    "LogStore",
    "EventSource",
    "NullEventSource",
    "ReportPipeline",
    "date_range_window",
]

logger = logging.getLogger(__name__)

# Errors a collaborator may raise for one file or one fetch; they never abort a run.
COLLABORATOR_ERRORS = (OSError, ValueError, requests.RequestException)


class LogStore(Protocol):
    """Read side of the CSV log storage."""

    def list_files(self) -> Sequence[LogFileInfo]:  # pragma: no cover - protocol
        ...

    def read_file(self, filename: str) -> str:  # pragma: no cover - protocol
        ...


class EventSource(Protocol):
    def fetch_events(
        self, start_ms: int, end_ms: int, channel: Optional[int] = None
    ) -> List[DomainEvent]:  # pragma: no cover - protocol
        ...


@dataclass(slots=True)
class NullEventSource:
    """Event source used when no backend or event log directory is configured."""

    def fetch_events(
        self, start_ms: int, end_ms: int, channel: Optional[int] = None
    ) -> List[DomainEvent]:  # pragma: no cover - trivial
        return []


def date_range_window(start_day: date, end_day: date) -> TimeWindow:
    """Whole calendar days ``start_day``..``end_day`` inclusive (UTC)."""
    if end_day < start_day:
        start_day, end_day = end_day, start_day
    start = datetime.combine(start_day, time.min, tzinfo=timezone.utc)
    end = datetime.combine(end_day + timedelta(days=1), time.min, tzinfo=timezone.utc)
    return TimeWindow.between(start, end)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ReportPipeline:
    """
    Orchestrates storage -> adapter -> merger -> segmenter -> correlator.

    Every call reads fresh input; nothing is cached between invocations.
    """

    store: LogStore
    events: EventSource = field(default_factory=NullEventSource)
    config: IncuviewConfig = field(default_factory=IncuviewConfig)
    clock: Callable[[], datetime] = _utc_now

    # ------------------------------------------------------------------ inputs
    def load_files(self, mode: Optional[str] = None) -> List[LogFile]:
        """
        Read every incubator log (optionally one capture mode only).

        Files are returned in ascending name order, which is date order, so the
        later day wins merge conflicts. Unreadable files are skipped.
        """
        try:
            infos = list(self.store.list_files())
        except COLLABORATOR_ERRORS as exc:
            logger.warning("Could not list log files: %s", exc)
            return []

        names = sorted(info.filename for info in infos if is_incubator_log(info.filename, mode))
        files: List[LogFile] = []
        for name in names:
            try:
                content = self.store.read_file(name)
            except COLLABORATOR_ERRORS as exc:
                logger.warning("Dropping log file %s: %s", name, exc)
                continue
            files.append(LogFile.from_content(name, content))
        return files

    def fetch_events(self, start_ms: int, end_ms: int, channel: Optional[int]) -> List[DomainEvent]:
        """Fetch events; a failing source counts as no events."""
        try:
            return list(self.events.fetch_events(start_ms, end_ms, channel))
        except COLLABORATOR_ERRORS as exc:
            logger.warning(
                "Event fetch failed for channel %s (%d..%d): %s", channel, start_ms, end_ms, exc
            )
            return []

    def _merge(
        self,
        window: TimeWindow,
        *,
        mode: Optional[str] = None,
        channels: Optional[Sequence[int]] = None,
        barcode: Optional[str] = None,
    ) -> List[TelemetrySample]:
        files = self.load_files(mode)
        report = merge_report(files, window, channels=channels, barcode=barcode)
        logger.info(
            "Merged %d files: %d rows, %d skipped, %d samples",
            report.files,
            report.rows,
            report.skipped,
            len(report.samples),
        )
        return report.samples

    def _attach_events(self, sessions: List[Session]) -> List[Session]:
        tolerance = self.config.event_tolerance_ms
        for session in sessions:
            events = self.fetch_events(session.start_ms, session.end_ms, session.channel)
            session.events = correlate(session, events, tolerance)
        return sessions

    # ----------------------------------------------------------------- outputs
    def chart_data(self, window: TimeWindow, simulated: Optional[bool] = None) -> List[Dict[str, Any]]:
        """Dashboard series: one record per timestamp with ``shelf{n}`` keys."""
        if simulated is None:
            simulated = self.config.simulated
        samples = self._merge(window, mode=capture_mode(simulated))
        return list(downsample(to_chart_records(samples), self.config.max_points))

    def session_report(
        self,
        channel: int,
        start_ms: int,
        end_ms: Optional[int] = None,
        barcode: Optional[str] = None,
    ) -> Session:
        """
        One known session of one shelf (both ends inclusive).

        An open session (``end_ms`` is None) runs until now. The whole
        requested span is used for event correlation.
        """
        if end_ms is None:
            end_ms = datetime_to_ms(self.clock())
        window = TimeWindow(start_ms=start_ms, end_ms=end_ms + 1)
        samples = self._merge(window, channels=[channel], barcode=barcode)
        session = Session(
            channel=channel,
            start_ms=start_ms,
            end_ms=end_ms,
            samples=list(downsample(samples, self.config.max_points)),
            sample_count=len(samples),
            barcode=barcode,
        )
        events = self.fetch_events(start_ms, end_ms, channel)
        session.events = correlate(session, events, self.config.event_tolerance_ms)
        return session

    def shelf_report(self, channel: int, window: TimeWindow) -> List[Session]:
        """All sessions recorded on one shelf inside ``window``."""
        samples = self._merge(window, channels=[channel])
        sessions = segment_and_downsample(
            samples, self.config.gap_threshold_ms, self.config.max_points
        )
        return self._attach_events(sessions)

    def barcode_report(self, barcode: str, window: TimeWindow) -> List[Session]:
        """
        All sessions of one plate, across shelves.

        Moving the plate to another shelf starts a new session.
        """
        samples = self._merge(window, barcode=barcode)
        sessions = segment_and_downsample(
            samples, self.config.gap_threshold_ms, self.config.max_points
        )
        logger.info("Barcode %s: %d sessions", barcode, len(sessions))
        return self._attach_events(sessions)

    @staticmethod
    def export_rows(sessions: Sequence[Session]) -> List[List[str]]:
        """Flat export rows for all sessions, in session order."""
        return [csv_writer.export_row(s) for session in sessions for s in session.samples]

    @staticmethod
    def export_sessions(
        directory: Path, sessions: Sequence[Session], barcode: Optional[str] = None
    ) -> List[Path]:
        return csv_writer.write_session_csvs(directory, sessions, barcode)
