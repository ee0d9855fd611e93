"""M3U playlist parsing and channel lookup.

Only the ``#EXTINF`` metadata the recorder uses is read: ``group-title``,
``tvg-id``, ``tvg-name`` and ``tvg-logo`` (attribute names are matched
case-insensitively) plus the display name after the first comma.  The line
following an ``#EXTINF`` line is the stream URL.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional

import requests
import structlog

from ..recorder.request import ChannelInfo

logger = structlog.get_logger(__name__)

UNKNOWN_CHANNEL_NAME = "Unknown"
EXTINF_PREFIX = "#EXTINF"

_ATTRIBUTE_PATTERNS = {
    name: re.compile(rf'{name}="(.*?)"', re.IGNORECASE)
    for name in ("group-title", "tvg-id", "tvg-name", "tvg-logo")
}
_TRAILING_DIGITS = re.compile(r"(\d+)$")


@dataclass(frozen=True)
class Channel:
    name: str
    url: str
    code: str = "0"
    group_title: str = ""
    tvg_id: str = ""
    tvg_name: str = ""
    tvg_logo: str = ""

    @property
    def display_name(self) -> str:
        return self.tvg_name or self.name

    def info(self) -> ChannelInfo:
        return ChannelInfo(
            display_name=self.display_name,
            group_title=self.group_title,
            tvg_id=self.tvg_id,
            tvg_logo=self.tvg_logo,
        )


def _attribute(line: str, name: str) -> str:
    match = _ATTRIBUTE_PATTERNS[name].search(line)
    return match.group(1).strip() if match else ""


def _channel_name(line: str) -> str:
    comma = line.find(",")
    if comma != -1 and comma < len(line) - 1:
        return line[comma + 1:].strip() or UNKNOWN_CHANNEL_NAME
    return UNKNOWN_CHANNEL_NAME


def channel_code(url: str) -> str:
    """The trailing run of digits in ``url`` without its extension, or ``0``."""
    stem = url
    last_dot = url.rfind(".")
    if last_dot > url.rfind("/"):
        stem = url[:last_dot]
    match = _TRAILING_DIGITS.search(stem)
    return str(int(match.group(1))) if match else "0"


def parse_playlist(lines: Iterable[str]) -> List[Channel]:
    """Parses M3U lines into channels, keeping playlist order."""
    channels: List[Channel] = []
    iterator = iter(lines)
    for raw in iterator:
        line = raw.rstrip("\r\n")
        if not line.startswith(EXTINF_PREFIX):
            continue
        url = next(iterator, None)
        if url is None:
            break
        url = url.strip()
        if not url:
            continue
        channels.append(Channel(
            name=_channel_name(line),
            url=url,
            code=channel_code(url),
            group_title=_attribute(line, "group-title"),
            tvg_id=_attribute(line, "tvg-id"),
            tvg_name=_attribute(line, "tvg-name"),
            tvg_logo=_attribute(line, "tvg-logo"),
        ))
    return channels


def load_playlist(source: str, session: Optional[requests.Session] = None,
                  timeout: float = 30.0) -> List[Channel]:
    """Loads a playlist from a local file or an http(s) URL."""
    if source.startswith(("http://", "https://")):
        session = session or requests.Session()
        logger.info("downloading playlist", url=source)
        response = session.get(source, timeout=timeout)
        response.raise_for_status()
        channels = parse_playlist(response.text.splitlines())
    else:
        path = Path(source).expanduser()
        with open(path, "r", encoding="utf-8", errors="replace") as f:
            channels = parse_playlist(f)
    logger.info("playlist loaded", source=source, channels=len(channels))
    return channels


def find_channels(channels: Iterable[Channel], query: str) -> List[Channel]:
    """Channels whose tvg-name or name contains ``query``, exact matches first."""
    needle = query.strip().lower()
    exact, partial = [], []
    for channel in channels:
        names = {channel.tvg_name.lower(), channel.name.lower()} - {""}
        if needle in names:
            exact.append(channel)
        elif any(needle in name for name in names):
            partial.append(channel)
    return exact + partial
