"""Process-lifetime ownership of background threads and cleanup hooks.

One :class:`RecorderContext` exists per recorder process.  Every background
thread (copy worker, ffmpeg output drain, watchdog) is started through it and
every resource that must be released on exit registers a cleanup hook with
it.  Leaving the ``with`` block, or the watchdog firing, runs
:meth:`RecorderContext.shutdown`, so all exit paths tear down the same way.
"""

from __future__ import annotations

import threading
from concurrent.futures import Future
from typing import Callable, List, Optional

import structlog

logger = structlog.get_logger(__name__)


class RecorderContext:
    """Owns the background work of one recorder process."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._threads: List[threading.Thread] = []
        self._cleanups: List[Callable[[], None]] = []
        self._watchdog = None
        self._closed = False

    def __enter__(self) -> "RecorderContext":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.shutdown()

    def start_thread(self, target: Callable[[], None], name: str) -> threading.Thread:
        """Starts ``target`` on a daemon thread owned by this context."""
        thread = threading.Thread(target=target, name=name, daemon=True)
        with self._lock:
            self._threads.append(thread)
        thread.start()
        return thread

    def submit(self, fn: Callable[[], object], name: str) -> Future:
        """Runs ``fn`` on a daemon worker and returns a future for its outcome.

        Daemon workers never hold up interpreter exit, so a worker blocked on
        a network read cannot delay the process past its stop boundary.
        """
        future: Future = Future()

        def _run() -> None:
            if not future.set_running_or_notify_cancel():
                return
            try:
                result = fn()
            except BaseException as exc:
                future.set_exception(exc)
            else:
                future.set_result(result)

        self.start_thread(_run, name)
        return future

    def add_cleanup(self, fn: Callable[[], None]) -> None:
        with self._lock:
            self._cleanups.append(fn)

    def start_watchdog(self, watchdog) -> None:
        """Starts ``watchdog`` and stops it again on shutdown."""
        self._watchdog = watchdog
        watchdog.start()

    def run_cleanups(self) -> None:
        """Runs registered cleanup hooks once, newest first."""
        with self._lock:
            cleanups, self._cleanups = self._cleanups, []
        for fn in reversed(cleanups):
            try:
                fn()
            except Exception as e:
                logger.warning("cleanup hook failed", hook=getattr(fn, "__qualname__", repr(fn)),
                               error=str(e))

    def shutdown(self) -> None:
        """Stops the watchdog and runs cleanups; safe to call repeatedly."""
        if self._closed:
            return
        self._closed = True
        watchdog: Optional[object] = self._watchdog
        if watchdog is not None:
            watchdog.stop()
        self.run_cleanups()
        alive = [t.name for t in self._threads if t.is_alive()]
        if alive:
            logger.debug("leaving daemon threads behind", threads=alive)
