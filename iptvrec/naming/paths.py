"""Destination paths for recordings.

Paths depend only on the channel, the timezone, the start/stop strings and
today's date in that timezone, so every attempt of the same recording
(including resumed ones) resolves to the same file.
"""

from __future__ import annotations

import datetime as dt
import re
from pathlib import Path
from typing import Optional
from zoneinfo import ZoneInfo

from ..recorder.request import ChannelInfo
from .tags import extract_event_tags

MAX_FILENAME_LENGTH = 255
FILE_EXTENSION = ".ts"
PLUS_REPLACEMENT = "plus"


def sanitize_for_filename(value: Optional[str]) -> str:
    """Collapses whitespace and non-alphanumerics into single underscores."""
    if not value:
        return "Unknown"
    value = value.replace("+", PLUS_REPLACEMENT)
    value = re.sub(r"[^A-Za-z0-9_]", "_", re.sub(r"\s+", "_", value))
    value = re.sub(r"_+", "_", value).strip("_")
    return value or "Unknown"


def _time_part(value: str) -> str:
    return re.sub(r"[^A-Za-z0-9]", "", value.replace(":", ""))


def build_destination_path(root, channel: ChannelInfo, timezone: str, start: str, stop: str,
                           today: Optional[dt.date] = None) -> Path:
    """Returns ``root/<folder>/<date>_<start>_<stop>/<name>.ts``, creating folders."""
    if today is None:
        today = dt.datetime.now(ZoneInfo(timezone)).date()
    date = today.strftime("%Y_%m_%d")
    start_part, stop_part = _time_part(start), _time_part(stop)
    suffix = f"_{date}_{start_part}_{stop_part}"
    display_name = channel.display_name.strip()
    group = sanitize_for_filename(channel.group_title.strip())

    if not channel.tvg_id:
        folder = group
        tags = extract_event_tags(display_name) if display_name else []
        base = group + "".join("_" + tag for tag in tags) + suffix
    elif display_name:
        folder = sanitize_for_filename(display_name)
        base = folder + suffix
    else:
        folder = group
        base = group + suffix

    limit = MAX_FILENAME_LENGTH - len(FILE_EXTENSION)
    if len(base) > limit:
        base = base[:limit]

    event_dir = Path(root) / folder / f"{date}_{start_part}_{stop_part}"
    event_dir.mkdir(parents=True, exist_ok=True)
    return (event_dir / (base + FILE_EXTENSION)).absolute()
