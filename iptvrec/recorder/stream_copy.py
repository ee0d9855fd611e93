"""In-process capture: copy the source byte stream straight into a file.

:meth:`StreamCopy.run_once` is one capture attempt.  It runs on a worker
thread owned by the process context while :meth:`StreamCopy.run_until`
polls on the event loop for either the worker finishing or the stop
boundary, whichever comes first.  Failures before the first byte are start
failures; anything that ends the stream after that is a drop, handled by
handing the recording over to a new process.
"""

from __future__ import annotations

import asyncio
import datetime as dt
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import requests
import structlog

from .errors import CaptureStartError, StreamDrop
from .recorder import CaptureResult, CaptureStrategy

logger = structlog.get_logger(__name__)


def _discard(path: Path) -> None:
    """Removes a recording file that never received any data."""
    try:
        path.unlink()
    except FileNotFoundError:
        return
    except OSError as e:
        logger.warning("could not remove empty recording file", path=str(path), error=str(e))


@dataclass
class CopyOutcome:
    """What a single copy attempt observed."""
    reached_boundary: bool
    bytes_written: int
    cancelled: bool = False
    error: Optional[str] = None


class StreamCopy(CaptureStrategy):
    """Records a stream by copying it chunk by chunk over HTTP."""

    def __init__(self, context, now, poll_interval: float = 1.0,
                 session: Optional[requests.Session] = None,
                 connect_timeout: float = 10.0, read_timeout: float = 60.0,
                 chunk_size: int = 8192) -> None:
        super().__init__(context, now=now, poll_interval=poll_interval)
        self._session = session or requests.Session()
        self.connect_timeout = connect_timeout
        self.read_timeout = read_timeout
        self.chunk_size = chunk_size
        self._cancel_event = threading.Event()

    def cancel(self) -> None:
        """Requests the copy loop to stop after the current chunk."""
        self._cancel_event.set()

    def stop(self) -> None:
        self.cancel()

    def run_once(self, url: str, destination: Path, stop_boundary: dt.datetime) -> CopyOutcome:
        """Copies ``url`` into ``destination`` (truncating it) until the boundary.

        Raises:
            CaptureStartError: the connection could not be opened, or the
                attempt failed before a single byte was written.
        """
        try:
            response = self._session.get(url, stream=True,
                                         timeout=(self.connect_timeout, self.read_timeout))
        except requests.RequestException as e:
            raise CaptureStartError(f"could not open stream: {e}") from e
        try:
            response.raise_for_status()
        except requests.HTTPError as e:
            response.close()
            raise CaptureStartError(f"could not open stream: {e}") from e

        written = 0
        try:
            with response, open(destination, "wb") as fh:
                for chunk in response.iter_content(chunk_size=self.chunk_size):
                    if self._cancel_event.is_set():
                        return CopyOutcome(reached_boundary=False, bytes_written=written, cancelled=True)
                    if chunk:
                        fh.write(chunk)
                        fh.flush()
                        written += len(chunk)
                    if self._now() >= stop_boundary:
                        return CopyOutcome(reached_boundary=True, bytes_written=written)
        except (requests.RequestException, OSError) as e:
            if written == 0:
                _discard(destination)
                raise CaptureStartError(f"stream failed before any data: {e}") from e
            return CopyOutcome(reached_boundary=False, bytes_written=written, error=str(e))

        if self._cancel_event.is_set():
            return CopyOutcome(reached_boundary=False, bytes_written=written, cancelled=True)
        return CopyOutcome(reached_boundary=self._now() >= stop_boundary, bytes_written=written)

    async def _settle(self, future) -> None:
        """Gives a cancelled worker a short grace period to close its file."""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + max(self.poll_interval, 0.5)
        while not future.done() and loop.time() < deadline:
            await asyncio.sleep(min(0.05, self.poll_interval))

    async def run_until(self, url: str, destination: Path, stop_boundary: dt.datetime) -> CaptureResult:
        started = dt.datetime.now(dt.timezone.utc)
        self.context.add_cleanup(self.cancel)
        future = self.context.submit(
            lambda: self.run_once(url, destination, stop_boundary),
            name="stream-copy",
        )
        boundary_first = await self._wait_for(stop_boundary, done=future.done)
        if boundary_first:
            logger.info("stop time reached, cancelling stream copy")
            self.cancel()
            await self._settle(future)
            return CaptureResult(success=True, file_path=destination, stopped_at_boundary=True,
                                 start_time=started, end_time=dt.datetime.now(dt.timezone.utc))

        outcome: CopyOutcome = future.result()
        if outcome.reached_boundary:
            logger.info("stream copy reached stop time", bytes_written=outcome.bytes_written)
            return CaptureResult(success=True, file_path=destination, bytes_written=outcome.bytes_written,
                                 stopped_at_boundary=True, start_time=started,
                                 end_time=dt.datetime.now(dt.timezone.utc))
        if outcome.cancelled:
            return CaptureResult(success=True, file_path=destination, bytes_written=outcome.bytes_written,
                                 start_time=started, end_time=dt.datetime.now(dt.timezone.utc))
        reason = outcome.error or "source ended before stop time"
        logger.error("stream dropped before stop time", reason=reason,
                     bytes_written=outcome.bytes_written, stop_boundary=stop_boundary.isoformat())
        raise StreamDrop(reason, bytes_written=outcome.bytes_written)
