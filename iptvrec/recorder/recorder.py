"""Capture strategies: the common contract shared by both recording modes.

A strategy persists one stream to one file until a stop boundary.  The
scheduler picks a strategy once per request (see :func:`create_strategy`)
and only ever calls :meth:`CaptureStrategy.run_until` and
:meth:`CaptureStrategy.stop`, so it never needs to know whether bytes are
copied in-process or by an ffmpeg child.
"""

from __future__ import annotations

import abc
import asyncio
import datetime as dt
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional

from ..utils.clock import Now
from .context import RecorderContext


def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


@dataclass
class CaptureResult:
    """Represents the result of a completed capture."""
    success: bool
    file_path: Optional[Path] = None
    bytes_written: Optional[int] = None
    stopped_at_boundary: bool = False
    start_time: dt.datetime = field(default_factory=_utcnow)
    end_time: Optional[dt.datetime] = None


class CaptureStrategy(abc.ABC):
    """Records a single stream until a wall-clock boundary."""

    def __init__(self, context: RecorderContext, now: Now, poll_interval: float = 1.0) -> None:
        self.context = context
        self.poll_interval = poll_interval
        self._now = now

    @abc.abstractmethod
    async def run_until(self, url: str, destination: Path, stop_boundary: dt.datetime) -> CaptureResult:
        """Captures ``url`` into ``destination`` until ``stop_boundary``.

        Raises:
            CaptureStartError: the attempt failed before anything was captured.
            StreamDrop: the source ended early (stream copy only).
        """

    @abc.abstractmethod
    def stop(self) -> None:
        """Releases the capture; must be idempotent and thread-safe."""

    async def _wait_for(self, stop_boundary: dt.datetime,
                        done: Callable[[], bool] = lambda: False) -> bool:
        """Polls until the boundary passes or ``done()`` is true.

        Returns True when the boundary was reached first.
        """
        while True:
            if done():
                return False
            if self._now() >= stop_boundary:
                return True
            await asyncio.sleep(self.poll_interval)


def create_strategy(mode, context: RecorderContext, config, now: Now, session=None) -> CaptureStrategy:
    """Builds the strategy for ``mode`` from the loaded configuration."""
    from .mux import ExternalMux
    from .request import CaptureMode
    from .stream_copy import StreamCopy

    if CaptureMode(mode) is CaptureMode.FFMPEG:
        return ExternalMux(
            context,
            now=now,
            poll_interval=config.poll_interval_seconds,
            ffmpeg_binary=config.ffmpeg_binary,
        )
    return StreamCopy(
        context,
        now=now,
        poll_interval=config.poll_interval_seconds,
        session=session,
        connect_timeout=config.connect_timeout_seconds,
        read_timeout=config.read_timeout_seconds,
        chunk_size=config.chunk_size,
    )
