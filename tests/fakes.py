"""Test doubles for HTTP sessions, wall clocks and sleeps."""

import datetime as dt
import threading
from typing import Callable, Iterable, List, Optional
from zoneinfo import ZoneInfo

import requests

TZ = ZoneInfo("Europe/Stockholm")


def at(hour: int, minute: int, second: int = 0) -> dt.datetime:
    return dt.datetime(2026, 10, 19, hour, minute, second, tzinfo=TZ)


class FakeClock:
    """A settable wall clock; optionally advances on every reading."""

    def __init__(self, start: dt.datetime, step: float = 0.0) -> None:
        self.current = start
        self.step = step
        self._lock = threading.Lock()

    def __call__(self) -> dt.datetime:
        with self._lock:
            value = self.current
            if self.step:
                self.current += dt.timedelta(seconds=self.step)
            return value

    def advance(self, seconds: float) -> None:
        with self._lock:
            self.current += dt.timedelta(seconds=seconds)


class RecordingSleep:
    """Async sleep stand-in that records delays and optionally moves a clock."""

    def __init__(self, clock: Optional[FakeClock] = None) -> None:
        self.calls: List[float] = []
        self.clock = clock

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)
        if self.clock is not None:
            self.clock.advance(seconds)


class FakeResponse:
    def __init__(
        self,
        chunks: Iterable[bytes] = (),
        status: int = 200,
        error_after: Optional[int] = None,
        on_chunk: Optional[Callable[[int], None]] = None,
    ) -> None:
        self.chunks = chunks
        self.status_code = status
        self.error_after = error_after
        self.on_chunk = on_chunk
        self.closed = False

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def iter_content(self, chunk_size: int = 1):
        for index, chunk in enumerate(self.chunks):
            if self.error_after is not None and index == self.error_after:
                raise requests.ConnectionError("connection reset")
            if self.on_chunk is not None:
                self.on_chunk(index)
            yield chunk

    def close(self) -> None:
        self.closed = True

    def __enter__(self):
        return self

    def __exit__(self, *exc) -> None:
        self.close()


class FakeSession:
    """Replays queued responses (or raises queued exceptions) for ``get``."""

    def __init__(self, responses=()) -> None:
        self.responses = list(responses)
        self.calls = []

    def get(self, url, **kwargs):
        self.calls.append((url, kwargs))
        if not self.responses:
            raise requests.ConnectionError("no more responses")
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


def endless(chunk: bytes = b"x" * 16):
    while True:
        yield chunk
