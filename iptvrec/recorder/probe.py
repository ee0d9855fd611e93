"""Connectivity checks run before a capture is attempted."""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Optional

import requests
import structlog

from .errors import ConnectivityError
from .request import RetryPolicy

logger = structlog.get_logger(__name__)

Sleep = Callable[[float], Awaitable[None]]


class ConnectivityProbe:
    """Opens and immediately closes a connection to the source."""

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        connect_timeout: float = 10.0,
        read_timeout: float = 10.0,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._session = session or requests.Session()
        self.connect_timeout = connect_timeout
        self.read_timeout = read_timeout
        self._sleep = sleep
        self.last_error: Optional[str] = None

    def attempt(self, url: str) -> bool:
        """Returns True when the source answered with a non-error status."""
        try:
            with self._session.get(url, stream=True,
                                   timeout=(self.connect_timeout, self.read_timeout)) as response:
                response.raise_for_status()
        except requests.RequestException as e:
            self.last_error = str(e)
            return False
        self.last_error = None
        return True

    async def wait_until_reachable(self, url: str, policy: RetryPolicy, log=logger) -> int:
        """Probes up to ``policy.max_attempts`` times, pausing between attempts.

        Returns the number of attempts used.

        Raises:
            ConnectivityError: when every attempt failed.
        """
        for attempt in range(1, policy.max_attempts + 1):
            log.info("connection attempt", attempt=attempt, max_attempts=policy.max_attempts, url=url)
            if await asyncio.to_thread(self.attempt, url):
                log.info("connection established", attempt=attempt, max_attempts=policy.max_attempts)
                return attempt
            if attempt < policy.max_attempts:
                log.warning("connection attempt failed, retrying",
                            attempt=attempt, max_attempts=policy.max_attempts,
                            error=self.last_error, retry_in=policy.delay_seconds)
                await self._sleep(policy.delay_seconds)
        log.error("all connection attempts failed",
                  max_attempts=policy.max_attempts, error=self.last_error)
        raise ConnectivityError(
            f"source unreachable after {policy.max_attempts} attempts: {self.last_error}",
            attempts=policy.max_attempts,
        )
