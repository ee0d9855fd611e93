"""Channel logo download stored next to a recording."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import requests
import structlog

logger = structlog.get_logger(__name__)

POSTER_NAME = "poster.jpg"


def fetch_logo(logo_url: Optional[str], destination: Path, channel_name: str = "?",
               session: Optional[requests.Session] = None, timeout: float = 30.0) -> bool:
    """Downloads ``logo_url`` to ``destination``; returns True on success.

    Only http(s) URLs are fetched.  Failures are logged, never raised.
    """
    if not logo_url or not logo_url.startswith(("http://", "https://")):
        logger.info("no tvg-logo found", channel=channel_name)
        return False
    session = session or requests.Session()
    try:
        with session.get(logo_url, stream=True, timeout=timeout) as response:
            response.raise_for_status()
            with open(destination, "wb") as fh:
                for chunk in response.iter_content(chunk_size=8192):
                    fh.write(chunk)
    except (requests.RequestException, OSError) as e:
        logger.warning("failed to download tvg-logo", channel=channel_name, error=str(e))
        return False
    logger.info("downloaded tvg-logo", channel=channel_name, path=str(destination))
    return True
