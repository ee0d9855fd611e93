"""Failsafe timer bounding the lifetime of a recorder process.

The watchdog does not look at the scheduler or the capture strategy at all.
It computes the absolute stop instant once, polls the wall clock, and when
the instant has passed it runs the context cleanups and ends the process
with ``os._exit``.  A hung worker or a logic error elsewhere can therefore
never keep a recording running past its window.
"""

from __future__ import annotations

import datetime as dt
import os
import threading
from typing import Callable, Optional
from zoneinfo import ZoneInfo

import structlog

from ..utils.clock import Now, next_occurrence, now_in

logger = structlog.get_logger(__name__)

EXIT_WATCHDOG = 0
EXIT_WATCHDOG_ERROR = 1


class FailsafeWatchdog:
    """Forces process exit once the wall clock reaches the stop instant."""

    def __init__(
        self,
        stop_of_day: dt.time,
        tz: ZoneInfo,
        poll_interval: float = 1.0,
        now: Optional[Now] = None,
        on_expire: Optional[Callable[[], None]] = None,
        exit_func: Callable[[int], None] = os._exit,
    ) -> None:
        self.stop_of_day = stop_of_day
        self.tz = tz
        self.poll_interval = poll_interval
        self._now = now or now_in(tz)
        self._on_expire = on_expire
        self._exit = exit_func
        self._stopped = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.deadline: Optional[dt.datetime] = None
        self.fired = False

    def start(self) -> None:
        self.deadline = next_occurrence(self.stop_of_day, self._now())
        logger.info("failsafe watchdog armed", deadline=self.deadline.isoformat())
        self._thread = threading.Thread(target=self._run, name="failsafe-watchdog", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stopped.set()

    def join(self, timeout: Optional[float] = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)

    def _run(self) -> None:
        try:
            while True:
                if self._now() >= self.deadline:
                    self._fire()
                    return
                if self._stopped.wait(self.poll_interval):
                    return
        except Exception as e:
            logger.error("failsafe watchdog failed, exiting", error=str(e), exc_info=True)
            self._exit(EXIT_WATCHDOG_ERROR)

    def _fire(self) -> None:
        self.fired = True
        logger.warning("failsafe watchdog reached stop time, forcing exit",
                       deadline=self.deadline.isoformat())
        if self._on_expire is not None:
            try:
                self._on_expire()
            except Exception as e:
                logger.error("cleanup before forced exit failed", error=str(e))
        self._exit(EXIT_WATCHDOG)
