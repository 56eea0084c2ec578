"""Recover incubation sessions from a flat, time-ordered sample stream."""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional

from .downsample import DEFAULT_MAX_POINTS, downsample
from .models import Session, TelemetrySample

logger = logging.getLogger(__name__)

DEFAULT_GAP_THRESHOLD_MS = 5 * 60 * 1000


def _open_session(sample: TelemetrySample) -> Session:
    return Session(
        channel=sample.channel,
        start_ms=sample.timestamp_ms,
        end_ms=sample.timestamp_ms,
        samples=[sample],
        barcode=sample.barcode,
    )


def _close_session(session: Session) -> Session:
    session.sample_count = len(session.samples)
    return session


def segment(
    timeline: Iterable[TelemetrySample],
    gap_threshold_ms: int = DEFAULT_GAP_THRESHOLD_MS,
) -> List[Session]:
    """
    Split an ascending timeline into sessions.

    A new session starts when the gap to the previous sample is strictly
    greater than ``gap_threshold_ms`` or when the channel changes. Every
    input sample lands in exactly one session.
    """
    if gap_threshold_ms < 0:
        raise ValueError(f"gap_threshold_ms must be >= 0, got {gap_threshold_ms}")

    sessions: List[Session] = []
    current: Optional[Session] = None
    for sample in timeline:
        if current is None:
            current = _open_session(sample)
            continue

        prev = current.samples[-1]
        gap = sample.timestamp_ms - prev.timestamp_ms
        if gap > gap_threshold_ms or sample.channel != current.channel:
            logger.debug(
                "Session break at %d: gap %.1f s, channel %d -> %d",
                sample.timestamp_ms,
                gap / 1000.0,
                current.channel,
                sample.channel,
            )
            sessions.append(_close_session(current))
            current = _open_session(sample)
            continue

        current.samples.append(sample)
        current.end_ms = sample.timestamp_ms
        if current.barcode is None:
            current.barcode = sample.barcode

    if current is not None:
        sessions.append(_close_session(current))
    return sessions


def segment_and_downsample(
    timeline: Iterable[TelemetrySample],
    gap_threshold_ms: int = DEFAULT_GAP_THRESHOLD_MS,
    cap: int = DEFAULT_MAX_POINTS,
) -> List[Session]:
    """
    Segment at full resolution, then downsample each session on its own.

    ``Session.sample_count`` keeps the full-resolution member count.
    """
    sessions = segment(timeline, gap_threshold_ms)
    for session in sessions:
        session.samples = list(downsample(session.samples, cap))
    return sessions
