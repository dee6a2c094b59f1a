"""Background listener for the API's change stream (GET /api/stream).

One thread per listener reads the SSE stream and calls ``on_change()`` for
every ``change`` event.  The callback gets no payload: the only thing a
page does with it is reload its data.

Dropped connections are re-opened after ``retry_seconds``; there is no
replay, so a page should refetch once after reconnecting anyway.

The dashboard runs one listener per server process and fans it out to
browser sessions through a shared ``ChangeCounter``.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, Iterable, Optional

import requests

logger = logging.getLogger(__name__)


class ChangeCounter:
    """Monotonic count of change events, bumped from the listener thread.

    Many readers compare ``value`` against the last value they saw, so one
    listener can serve every browser session in the process.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self.value = 0
        self.listener: Optional["ChangeListener"] = None

    def bump(self) -> None:
        with self._lock:
            self.value += 1


class ChangeListener:
    def __init__(
        self,
        api_url: str,
        on_change: Callable[[], None],
        tables: Iterable[str] = ("props", "wagers"),
        retry_seconds: float = 5.0,
    ):
        self.url = f"{api_url}/api/stream"
        self.tables = ",".join(tables)
        self.on_change = on_change
        self.retry_seconds = retry_seconds
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._response: Optional[requests.Response] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> "ChangeListener":
        if not self.running:
            self._stop.clear()
            self._thread = threading.Thread(target=self._run, name="monkeybets-changes", daemon=True)
            self._thread.start()
        return self

    def stop(self) -> None:
        self._stop.set()
        if self._response is not None:
            self._response.close()

    def _run(self) -> None:
        while not self._stop.is_set():
            try:
                self._listen()
            except requests.RequestException as exc:
                logger.warning("Change stream dropped: %s", exc)
            if not self._stop.is_set():
                self._stop.wait(self.retry_seconds)

    def _listen(self) -> None:
        with requests.get(
            self.url,
            params={"tables": self.tables},
            stream=True,
            timeout=(10, None),
        ) as response:
            response.raise_for_status()
            self._response = response
            self.handle_lines(response.iter_lines(decode_unicode=True))

    def handle_lines(self, lines: Iterable[str]) -> int:
        """Dispatch SSE lines; returns the number of change events seen."""
        seen = 0
        event_type = None
        for line in lines:
            if self._stop.is_set():
                break
            if not line:
                event_type = None
                continue
            if line.startswith(":"):
                continue  # keepalive
            if line.startswith("event:"):
                event_type = line[len("event:"):].strip()
            elif line.startswith("data:") and event_type == "change":
                seen += 1
                try:
                    self.on_change()
                except Exception as exc:
                    logger.error("Change callback failed: %s", exc, exc_info=True)
        return seen
