"""Scheduler driving one scheduled recording from start to stop.

The scheduler waits for the start time, checks the request can be recorded
at all, probes the source with bounded retries, arms the failsafe watchdog
and then runs the capture strategy selected by the request until the stop
boundary.  Its result is the process exit code:

 - ``0``: the window was recorded (or stopped at the boundary).
 - ``1``: the recording could not be made, or a stream drop was handed over
   to a resume process that now owns the recording.

Attempt-level failures before anything is captured are retried in-process
with a fixed delay; failures after capture began always go through the
cross-process resume path.
"""

from __future__ import annotations

import asyncio
import os
import shutil
from pathlib import Path
from typing import Awaitable, Callable, Optional
from urllib.parse import urlparse

import requests
import structlog

from ..config.config import Config
from ..naming import paths as paths_module
from ..notify.mail import DEFAULT_SUBJECT, notifier_from_config
from ..recorder import recorder as recorder_module
from ..recorder.artwork import POSTER_NAME, fetch_logo
from ..recorder.context import RecorderContext
from ..recorder.errors import CaptureStartError, ConnectivityError, PreflightError, StreamDrop
from ..recorder.probe import ConnectivityProbe
from ..recorder.request import RecordingRequest
from ..recorder.resume import ResumeController
from ..recorder.watchdog import FailsafeWatchdog
from ..utils.clock import Now, now_in, today_at

logger = structlog.get_logger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1


class Scheduler:
    def __init__(
        self,
        request: RecordingRequest,
        config: Config,
        *,
        session: Optional[requests.Session] = None,
        now: Optional[Now] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        notifier=None,
        resume: Optional[ResumeController] = None,
        probe: Optional[ConnectivityProbe] = None,
        exit_func: Callable[[int], None] = os._exit,
    ) -> None:
        self.request = request
        self.config = config
        self._session = session or requests.Session()
        self._now = now or now_in(request.tz)
        self._sleep = sleep
        self._notifier = notifier or notifier_from_config(config)
        self._resume = resume or ResumeController(verify_delay=config.resume_verify_delay_seconds)
        self._probe = probe or ConnectivityProbe(
            self._session,
            connect_timeout=config.connect_timeout_seconds,
            read_timeout=config.probe_read_timeout_seconds,
            sleep=sleep,
        )
        self._exit = exit_func
        self.context: Optional[RecorderContext] = None
        self.watchdog: Optional[FailsafeWatchdog] = None

    async def run(self) -> int:
        """Runs the recording to completion and returns the exit code."""
        request = self.request
        log = logger.bind(
            channel=request.channel.display_name or request.source_url,
            mode=request.capture_mode.value,
            resume=request.is_resume,
        )
        if not request.is_resume:
            log.info("recording session started", start_time=request.start_time,
                     stop_time=request.stop_time, log_file=request.log_file)

        with RecorderContext() as context:
            self.context = context
            try:
                await self._wait_for_start(log)
                self._preflight()
                await self._probe.wait_until_reachable(request.source_url, request.retry, log)
            except PreflightError as e:
                log.error("preflight check failed", error=str(e))
                self._notify_failure(f"Preflight check failed: {e}")
                return EXIT_FAILURE
            except ConnectivityError as e:
                log.error("unable to establish connection, exiting", attempts=e.attempts)
                self._notify_failure(str(e))
                return EXIT_FAILURE

            self.watchdog = FailsafeWatchdog(
                request.stop_of_day(),
                request.tz,
                poll_interval=self.config.poll_interval_seconds,
                now=self._now,
                on_expire=context.run_cleanups,
                exit_func=self._exit,
            )
            context.start_watchdog(self.watchdog)
            return await self._capture(context, log)

    async def _wait_for_start(self, log) -> float:
        """Sleeps until the start time; returns the seconds slept."""
        if self.request.is_resume:
            log.info("resumed recording, starting immediately")
            return 0.0
        now = self._now()
        start = today_at(self.request.start_of_day(), now)
        if start <= now:
            if start < now:
                log.warning("start time already passed, starting now", start_time=self.request.start_time)
            return 0.0
        seconds = (start - now).total_seconds()
        log.info("waiting until start time", seconds=int(seconds), start_time=self.request.start_time)
        await self._sleep(seconds)
        return seconds

    def _preflight(self) -> None:
        """Validates the source URL and free space at the destination.

        Raises:
            PreflightError: when the recording cannot be attempted.
        """
        url = (self.request.source_url or "").strip()
        if not url:
            raise PreflightError("source URL must not be empty")
        parsed = urlparse(url)
        if not parsed.scheme or not parsed.netloc:
            raise PreflightError(f"invalid source URL {url!r}")

        root = Path(self.request.destination_root)
        try:
            root.mkdir(parents=True, exist_ok=True)
            free = shutil.disk_usage(root).free
        except OSError as e:
            raise PreflightError(f"destination {root} is not usable: {e}") from e
        required = self.config.min_free_disk_mb * 1024 * 1024
        if free < required:
            raise PreflightError(
                f"insufficient disk space: {free // (1024 * 1024)} MB free, "
                f"{self.config.min_free_disk_mb} MB required"
            )

    async def _capture(self, context: RecorderContext, log) -> int:
        request = self.request
        policy = request.retry
        stop_boundary = today_at(request.stop_of_day(), self._now())
        if self._now() >= stop_boundary:
            log.warning("stop time already reached, nothing to record", stop_time=request.stop_time)
            return EXIT_OK

        destination: Optional[Path] = None
        for attempt in range(1, policy.max_attempts + 1):
            attempt_log = log.bind(attempt=attempt, max_attempts=policy.max_attempts)
            destination = paths_module.build_destination_path(
                request.destination_root, request.channel, request.timezone,
                request.start_time, request.stop_time,
            )
            if attempt == 1 and not request.is_resume:
                await asyncio.to_thread(
                    fetch_logo, request.channel.tvg_logo, destination.parent / POSTER_NAME,
                    request.channel.display_name or "?", self._session,
                )

            strategy = recorder_module.create_strategy(
                request.capture_mode, context, self.config, now=self._now, session=self._session,
            )
            attempt_log.info("attempting to start recording", destination=str(destination))
            try:
                result = await strategy.run_until(request.source_url, destination, stop_boundary)
            except CaptureStartError as e:
                strategy.stop()
                if attempt < policy.max_attempts:
                    attempt_log.warning("failed to start recording, retrying",
                                        error=str(e), retry_in=policy.delay_seconds)
                    await self._sleep(policy.delay_seconds)
                    continue
                attempt_log.error("could not start recording, giving up", error=str(e))
                self._remove_empty_dirs(destination)
                self._notify_failure(f"Recording could not be started after {policy.max_attempts} attempts: {e}")
                return EXIT_FAILURE
            except StreamDrop as e:
                attempt_log.error("stream dropped, handing over to a resume process",
                                  error=str(e), bytes_written=e.bytes_written)
                await self._resume.hand_off(request)
                return EXIT_FAILURE

            attempt_log.info("recording finished", file=str(result.file_path),
                             bytes_written=result.bytes_written)
            return EXIT_OK
        return EXIT_FAILURE

    def _remove_empty_dirs(self, destination: Path) -> None:
        """Deletes the recording folders left empty by failed attempts."""
        root = Path(self.request.destination_root).absolute()
        folder = destination.parent
        while folder != root and root in folder.parents:
            try:
                if any(folder.iterdir()):
                    return
                folder.rmdir()
                logger.info("deleted empty recording folder", path=str(folder))
            except OSError as e:
                logger.warning("could not delete empty recording folder", path=str(folder), error=str(e))
                return
            folder = folder.parent

    def _notify_failure(self, reason: str) -> None:
        request = self.request
        body = (
            f"Recording of {request.channel.display_name or request.source_url} failed.\n\n"
            f"Reason: {reason}\n"
            f"Window: {request.start_time}-{request.stop_time} ({request.timezone})\n"
            f"Source: {request.source_url}\n"
        )
        self._notifier.notify(DEFAULT_SUBJECT, body)
