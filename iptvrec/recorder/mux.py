"""ffmpeg-backed capture.

The child is started fire-and-forget with ``-c copy``: ffmpeg owns demuxing,
reconnection and container handling.  Its combined output is drained on a
daemon thread so a full pipe can never block it.  Premature child death is
not monitored; the recording ends when :meth:`ExternalMux.stop` is called at
the boundary or by the watchdog cleanup.
"""

from __future__ import annotations

import datetime as dt
import subprocess
import threading
from pathlib import Path
from typing import List, Optional

import structlog

from .errors import MuxStartError
from .recorder import CaptureResult, CaptureStrategy

logger = structlog.get_logger(__name__)


class ExternalMux(CaptureStrategy):
    """Records a stream by remuxing it with an ffmpeg child process."""

    def __init__(self, context, now, poll_interval: float = 1.0,
                 ffmpeg_binary: str = "ffmpeg", stop_timeout: float = 5.0) -> None:
        super().__init__(context, now=now, poll_interval=poll_interval)
        self.ffmpeg_binary = ffmpeg_binary
        self.stop_timeout = stop_timeout
        self.process: Optional[subprocess.Popen] = None
        self._stop_lock = threading.Lock()
        self._stopped = False

    def build_command(self, url: str, destination: Path) -> List[str]:
        return [
            self.ffmpeg_binary,
            "-hide_banner",
            "-loglevel",
            "panic",
            "-y",
            "-i",
            url,
            "-c",
            "copy",
            str(destination),
        ]

    def start(self, url: str, destination: Path) -> None:
        """Spawns the child and returns as soon as it is launched."""
        cmd = self.build_command(url, destination)
        try:
            self.process = subprocess.Popen(
                cmd,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
            )
        except OSError as e:
            raise MuxStartError(f"could not start {self.ffmpeg_binary}: {e}") from e
        logger.info("ffmpeg started", pid=self.process.pid, destination=str(destination))
        self.context.add_cleanup(self.stop)
        self.context.start_thread(self._drain_output, name=f"ffmpeg-output-{self.process.pid}")

    def _drain_output(self) -> None:
        process = self.process
        try:
            for line in iter(process.stdout.readline, b""):
                text = line.decode(errors="ignore").strip()
                if text:
                    logger.debug("ffmpeg output", line=text)
        except (OSError, ValueError) as e:
            logger.warning("ffmpeg output reader stopped", error=str(e))

    def stop(self) -> None:
        with self._stop_lock:
            if self._stopped:
                return
            self._stopped = True
        process = self.process
        if process is None or process.poll() is not None:
            logger.warning("no ffmpeg process to stop or already terminated",
                           returncode=None if process is None else process.returncode)
            return
        process.terminate()
        try:
            process.wait(timeout=self.stop_timeout)
        except subprocess.TimeoutExpired:
            logger.warning("ffmpeg ignored terminate, killing", pid=process.pid)
            process.kill()
            process.wait()
        logger.info("ffmpeg stopped", pid=process.pid, returncode=process.returncode)

    async def run_until(self, url: str, destination: Path, stop_boundary: dt.datetime) -> CaptureResult:
        started = dt.datetime.now(dt.timezone.utc)
        self.start(url, destination)
        logger.info("recording in progress", stop_boundary=stop_boundary.isoformat())
        await self._wait_for(stop_boundary)
        logger.info("stop time reached")
        self.stop()
        return CaptureResult(
            success=True,
            file_path=destination,
            stopped_at_boundary=True,
            start_time=started,
            end_time=dt.datetime.now(dt.timezone.utc),
        )
