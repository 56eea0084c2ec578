"""REST access to the incubator backend's CSV log and event routes."""

from __future__ import annotations

import logging
from typing import Any, List, Optional, Sequence
from urllib.parse import quote

import requests

from ..core.models import DomainEvent
from ..dataio.log_store import LogFileInfo
from ..dataio.record_adapter import format_timestamp
from .normalize import fold_keys, normalize_events, normalize_file_entry

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://localhost:5000/api/incubator"
DEFAULT_TIMEOUT_S = 10.0


class IncubatorApi:
    """Thin wrapper over ``requests`` with a shared session and timeout."""

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        *,
        session: Optional[requests.Session] = None,
        timeout: float = DEFAULT_TIMEOUT_S,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout

    def _url(self, route: str) -> str:
        return f"{self.base_url}/{route.lstrip('/')}"

    def _request(self, method: str, route: str, **kwargs: Any) -> Any:
        url = self._url(route)
        response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        response.raise_for_status()
        if not response.content:
            return None
        return response.json()

    def close(self) -> None:
        self.session.close()


class HttpLogStore(IncubatorApi):
    """:class:`LocalLogStore`-compatible store backed by ``/csv/*`` routes."""

    def list_files(self) -> List[LogFileInfo]:
        payload = self._request("GET", "csv/list")
        entries = fold_keys(payload).get("files", []) if isinstance(payload, dict) else payload
        infos = []
        for entry in entries or []:
            info = normalize_file_entry(entry)
            if info is not None:
                infos.append(info)
        return infos

    def read_file(self, filename: str) -> str:
        payload = self._request("GET", f"csv/read/{quote(filename, safe='')}")
        if isinstance(payload, dict):
            return str(fold_keys(payload).get("content") or "")
        return str(payload or "")

    def delete_file(self, filename: str) -> None:
        self._request("DELETE", f"csv/delete/{quote(filename, safe='')}")

    def delete_files_older_than(self, days: float) -> List[str]:
        payload = self._request("DELETE", "csv/cleanup", params={"daysToKeep": days})
        if isinstance(payload, dict):
            return [str(name) for name in fold_keys(payload).get("deletedfiles") or []]
        return []

    def init_file(self, filename: str, header_line: str) -> None:
        self._request("POST", "csv/init", json={"filename": filename, "header": header_line})

    def append_rows(self, filename: str, rows: Sequence[str]) -> int:
        self._request("POST", "csv/append", json={"filename": filename, "rows": list(rows)})
        return len(rows)


class HttpEventSource(IncubatorApi):
    def fetch_events(
        self, start_ms: int, end_ms: int, channel: Optional[int] = None
    ) -> List[DomainEvent]:
        params: dict[str, Any] = {
            "startTime": format_timestamp(start_ms),
            "endTime": format_timestamp(end_ms),
        }
        if channel is not None:
            params["module"] = channel
        payload = self._request("GET", "csv/fetchEvents", params=params)
        events = normalize_events(payload)
        logger.debug(
            "Fetched %d events for %s..%s (module=%s)",
            len(events),
            params["startTime"],
            params["endTime"],
            channel,
        )
        return events
