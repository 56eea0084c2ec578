"""Backend communication: the incubator REST service and its event logs.

:class:`HttpLogStore` and :class:`HttpEventSource` talk to the CSV/event
routes of the backend, :class:`EventLogReader` reads its text logs straight
from disk, and :mod:`normalize` turns either shape into :class:`DomainEvent`.
"""

from .event_log import EventLogReader
from .http_client import HttpEventSource, HttpLogStore, IncubatorApi
from .normalize import normalize_event, normalize_events

__all__ = [
    "EventLogReader",
    "HttpEventSource",
    "HttpLogStore",
    "IncubatorApi",
    "normalize_event",
    "normalize_events",
]
