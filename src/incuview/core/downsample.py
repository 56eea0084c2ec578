"""Stride-based downsampling for plot and report series.

Selection only: samples are never averaged, interpolated, or reordered, so a
downsampled series is always a subsequence of its input.
"""

from __future__ import annotations

import math
from typing import Sequence, TypeVar

T = TypeVar("T")

DEFAULT_MAX_POINTS = 500


def stride_for(length: int, cap: int) -> int:
    """Return the selection stride needed to fit ``length`` items into ``cap``."""
    if cap < 1:
        raise ValueError(f"cap must be a positive integer, got {cap}")
    if length <= cap:
        return 1
    return int(math.ceil(length / cap))


def downsample(samples: Sequence[T], cap: int = DEFAULT_MAX_POINTS) -> Sequence[T]:
    """
    Keep every ``stride``-th element, starting with the first.

    Inputs that already fit are returned unchanged, which makes the function
    idempotent. The last element is not guaranteed to survive.
    """
    stride = stride_for(len(samples), cap)
    if stride == 1:
        return samples
    return list(samples[::stride])
