"""Incubator telemetry viewer core.

Reads the daily per-shelf CSV logs written by the plate incubator, merges and
windows them, splits each shelf's timeline into plate sessions, and attaches
backend events (door, shaker, temperature alarms) to the nearest sample.
"""

from .config import AppPaths, IncuviewConfig, load_config
from .core.merge import LogFile, MergeReport, TimeWindow, merge, merge_report
from .core.models import AnnotatedEvent, DomainEvent, EventKind, Session, TelemetrySample
from .core.pipeline import ReportPipeline, date_range_window

__all__ = [
    "AppPaths",
    "IncuviewConfig",
    "load_config",
    "LogFile",
    "MergeReport",
    "TimeWindow",
    "merge",
    "merge_report",
    "AnnotatedEvent",
    "DomainEvent",
    "EventKind",
    "Session",
    "TelemetrySample",
    "ReportPipeline",
    "date_range_window",
]

__version__ = "0.3.0"
