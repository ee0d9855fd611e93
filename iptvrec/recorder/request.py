"""The recording request and its process-to-process wire format.

A :class:`RecordingRequest` is built once per recorder process, either by the
``schedule`` command or from the argument vector of a ``record`` invocation.
The same vector is what a resumed successor receives, so the field order in
:data:`WIRE_FIELDS` is a versioned contract: change it only together with
:data:`WIRE_VERSION`.
"""

from __future__ import annotations

import dataclasses
import datetime as dt
import enum
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from ..utils.clock import parse_time_of_day

WIRE_VERSION = "1"

WIRE_FIELDS = (
    "source_url",
    "destination_root",
    "start_time",
    "stop_time",
    "capture_mode",
    "config_path",
    "display_name",
    "timezone",
    "is_24_hour",
    "log_file",
    "group_title",
    "tvg_id",
    "max_attempts",
    "delay_seconds",
    "tvg_logo",
    "is_resume",
)


class CaptureMode(str, enum.Enum):
    """How the stream is persisted."""

    FFMPEG = "ffmpeg"
    REGULAR = "regular"


@dataclass(frozen=True)
class ChannelInfo:
    """Channel metadata carried with a recording."""

    display_name: str = ""
    group_title: str = ""
    tvg_id: str = ""
    tvg_logo: str = ""


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 5
    delay_seconds: float = 60.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.delay_seconds < 0:
            raise ValueError("delay_seconds must not be negative")


def _parse_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in ("true", "1", "yes"):
        return True
    if lowered in ("false", "0", "no", ""):
        return False
    raise ValueError(f"invalid boolean {value!r}")


def _format_number(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else repr(float(value))


@dataclass(frozen=True)
class RecordingRequest:
    """Everything one recorder process needs; immutable once built."""

    source_url: str
    destination_root: Path
    start_time: str
    stop_time: str
    timezone: str = "Europe/Stockholm"
    capture_mode: CaptureMode = CaptureMode.REGULAR
    channel: ChannelInfo = field(default_factory=ChannelInfo)
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    is_resume: bool = False
    is_24_hour: bool = True
    config_path: Optional[str] = None
    log_file: Optional[str] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "destination_root", Path(self.destination_root))
        object.__setattr__(self, "capture_mode", CaptureMode(self.capture_mode))
        try:
            ZoneInfo(self.timezone)
        except ZoneInfoNotFoundError as exc:
            raise ValueError(f"unknown timezone {self.timezone!r}") from exc
        if self.start_of_day() > self.stop_of_day():
            raise ValueError(
                f"stop time {self.stop_time} is earlier than start time {self.start_time}"
            )

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

    def start_of_day(self) -> dt.time:
        return parse_time_of_day(self.start_time, self.is_24_hour)

    def stop_of_day(self) -> dt.time:
        return parse_time_of_day(self.stop_time, self.is_24_hour)

    def as_resume(self) -> "RecordingRequest":
        """The handoff for a successor process."""
        return dataclasses.replace(self, is_resume=True)

    def to_argv(self) -> List[str]:
        """Flattens the request into the versioned positional vector."""
        values = {
            "source_url": self.source_url,
            "destination_root": str(self.destination_root),
            "start_time": self.start_time,
            "stop_time": self.stop_time,
            "capture_mode": self.capture_mode.value,
            "config_path": self.config_path or "",
            "display_name": self.channel.display_name,
            "timezone": self.timezone,
            "is_24_hour": "true" if self.is_24_hour else "false",
            "log_file": self.log_file or "",
            "group_title": self.channel.group_title,
            "tvg_id": self.channel.tvg_id,
            "max_attempts": str(self.retry.max_attempts),
            "delay_seconds": _format_number(self.retry.delay_seconds),
            "tvg_logo": self.channel.tvg_logo,
            "is_resume": "true" if self.is_resume else "false",
        }
        return [WIRE_VERSION] + [values[name] for name in WIRE_FIELDS]

    @classmethod
    def from_argv(cls, argv: Sequence[str]) -> "RecordingRequest":
        """Rebuilds a request from :meth:`to_argv` output.

        Raises:
            ValueError: on a version mismatch, wrong arity or bad field value.
        """
        argv = list(argv)
        if not argv or argv[0] != WIRE_VERSION:
            raise ValueError(
                f"unsupported request wire version {argv[0] if argv else None!r}, "
                f"expected {WIRE_VERSION!r}"
            )
        if len(argv) - 1 != len(WIRE_FIELDS):
            raise ValueError(
                f"expected {len(WIRE_FIELDS)} request fields, got {len(argv) - 1}"
            )
        v = dict(zip(WIRE_FIELDS, argv[1:]))
        return cls(
            source_url=v["source_url"],
            destination_root=Path(v["destination_root"]),
            start_time=v["start_time"],
            stop_time=v["stop_time"],
            timezone=v["timezone"] or "Europe/Stockholm",
            capture_mode=CaptureMode(v["capture_mode"].lower()),
            channel=ChannelInfo(
                display_name=v["display_name"],
                group_title=v["group_title"],
                tvg_id=v["tvg_id"],
                tvg_logo=v["tvg_logo"],
            ),
            retry=RetryPolicy(
                max_attempts=int(v["max_attempts"]),
                delay_seconds=float(v["delay_seconds"]),
            ),
            is_resume=_parse_bool(v["is_resume"]),
            is_24_hour=_parse_bool(v["is_24_hour"]),
            config_path=v["config_path"] or None,
            log_file=v["log_file"] or None,
        )
