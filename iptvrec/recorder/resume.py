"""Cross-process resume of an interrupted stream copy.

When the source drops before the stop boundary, the current process does
not reconnect itself.  It re-invokes the recorder entry point with the same
request flagged ``is_resume`` and then exits; the successor skips the start
wait and the one-time side effects and captures the rest of the window.
"""

from __future__ import annotations

import asyncio
import subprocess
import sys
from typing import Callable, List, Optional, Sequence

import structlog

from .request import RecordingRequest

logger = structlog.get_logger(__name__)

Spawn = Callable[[Sequence[str]], subprocess.Popen]


def recorder_command(request: RecordingRequest) -> List[str]:
    """The command line that runs ``request`` in a fresh recorder process."""
    return [sys.executable, "-m", "iptvrec.app", "record", *request.to_argv()]


def spawn_detached(cmd: Sequence[str]) -> subprocess.Popen:
    """Starts ``cmd`` in its own session, sharing this process' stdio."""
    return subprocess.Popen(list(cmd), stdin=subprocess.DEVNULL, start_new_session=True)


class ResumeController:
    """Hands an interrupted recording over to a successor process."""

    def __init__(self, spawn: Spawn = spawn_detached, verify_delay: float = 2.0) -> None:
        self._spawn = spawn
        self.verify_delay = verify_delay

    async def hand_off(self, request: RecordingRequest) -> Optional[subprocess.Popen]:
        """Spawns the successor and checks once, after a short delay, that it lives.

        Returns the successor handle, or None when it could not be spawned.
        The caller exits with a failure code either way.
        """
        handoff = request.as_resume()
        cmd = recorder_command(handoff)
        try:
            process = self._spawn(cmd)
        except OSError as e:
            logger.error("failed to start resume process", error=str(e))
            return None
        logger.warning("started resume process", pid=process.pid,
                       start_time=handoff.start_time, stop_time=handoff.stop_time)
        await asyncio.sleep(self.verify_delay)
        returncode = process.poll()
        if returncode is None:
            logger.info("resume process is running", pid=process.pid)
        else:
            logger.error("resume process already exited", pid=process.pid, returncode=returncode)
        return process
