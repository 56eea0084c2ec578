"""Core pipeline: sample models, merging, segmentation, and event correlation.

The pure stages (:mod:`downsample`, :mod:`segmenter`, :mod:`correlate`) take
plain sequences of :class:`TelemetrySample` and never touch storage. The
orchestration in :mod:`pipeline` and the file merger in :mod:`merge` depend on
:mod:`incuview.dataio` and are imported from their modules directly.
"""

from .models import (
    AnnotatedEvent,
    DomainEvent,
    EventKind,
    Session,
    TelemetrySample,
)
from .downsample import downsample
from .segmenter import segment, segment_and_downsample
from .correlate import correlate, format_event

__all__ = [
    "AnnotatedEvent",
    "DomainEvent",
    "EventKind",
    "Session",
    "TelemetrySample",
    "downsample",
    "segment",
    "segment_and_downsample",
    "correlate",
    "format_event",
]
