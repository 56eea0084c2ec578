"""Periodic and on-demand pipeline refresh with last-call-wins publishing.

Invocations may overlap (a timer tick while a user-triggered reload is still
waiting on I/O). Each one takes a token from :class:`LatestCallGate`; only the
newest token may publish its result, older results are discarded. In-flight
work is never cancelled.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Callable, Generic, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_REFRESH_INTERVAL_S = 30.0


class LatestCallGate:
    """Hands out increasing tokens and lets only the newest one publish."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._latest = 0

    def begin(self) -> int:
        with self._lock:
            self._latest += 1
            return self._latest

    def is_current(self, token: int) -> bool:
        with self._lock:
            return token == self._latest

    def publish(self, token: int, apply: Callable[[], None]) -> bool:
        """
        Run ``apply`` only if ``token`` is still the newest; returns whether it ran.

        ``apply`` runs under the gate lock, so no newer token can be handed out
        mid-publish. The lock is reentrant: ``apply`` may call back into the
        gate from the same thread.
        """
        with self._lock:
            if token != self._latest:
                return False
            apply()
            return True


class RefreshScheduler(Generic[T]):
    """
    Re-run ``job`` every ``interval_s`` seconds on a daemon thread.

    ``on_result`` receives complete results only; failures go to ``on_error``
    (or the log) and leave the previous result in place.
    """

    def __init__(
        self,
        job: Callable[[], T],
        on_result: Callable[[T], None],
        *,
        interval_s: float = DEFAULT_REFRESH_INTERVAL_S,
        on_error: Optional[Callable[[BaseException], None]] = None,
        thread_name: str = "IncuviewRefresh",
    ) -> None:
        if interval_s <= 0:
            raise ValueError(f"interval_s must be positive, got {interval_s}")
        self._job = job
        self._on_result = on_result
        self._on_error = on_error
        self.interval_s = float(interval_s)
        self.gate = LatestCallGate()
        self._thread_name = thread_name
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def run_once(self) -> bool:
        """Invoke the job synchronously; returns True if its result was published."""
        token = self.gate.begin()
        try:
            result = self._job()
        except Exception as exc:
            if self._on_error is not None:
                self._on_error(exc)
            else:
                logger.exception("Refresh job failed")
            return False
        published = self.gate.publish(token, lambda: self._on_result(result))
        if not published:
            logger.debug("Discarding stale refresh result (token %d)", token)
        return published

    def trigger(self) -> threading.Thread:
        """Start an extra invocation right away (e.g. after a date-range change)."""
        worker = threading.Thread(
            target=self.run_once, name=f"{self._thread_name}-trigger", daemon=True
        )
        worker.start()
        return worker

    def _loop(self) -> None:
        while not self._stop_event.is_set():
            self.run_once()
            if self._stop_event.wait(self.interval_s):
                break

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._loop, name=self._thread_name, daemon=True)
        self._thread.start()

    def stop(self, *, join: bool = False, timeout: Optional[float] = None) -> None:
        self._stop_event.set()
        if join and self._thread is not None:
            self._thread.join(timeout)

    def join(self, timeout: Optional[float] = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)

    def is_alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()


@dataclass
class LatestResult(Generic[T]):
    """Thread-safe holder for the most recently published result."""

    value: Optional[T] = None

    def __post_init__(self) -> None:
        self._lock = threading.Lock()

    def set(self, value: T) -> None:
        with self._lock:
            self.value = value

    def get(self) -> Optional[T]:
        with self._lock:
            return self.value
