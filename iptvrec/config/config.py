"""Configuration management for the scheduled IPTV recorder.

This module defines a Pydantic model representing the application
configuration and implements functions to load configuration from a YAML
file.  Defaults are provided for all fields so a missing configuration file
will not prevent the recorder from starting.  Top-level values may also be
overridden through ``IPTVREC_<FIELD>`` environment variables, which take
precedence over the file.

Configuration values include:
 - ``destination_root``: Directory where recordings are saved.
 - ``timezone``: IANA zone the start/stop times of day are interpreted in.
 - ``capture_mode``: ``regular`` (in-process stream copy) or ``ffmpeg``.
 - ``playlist``: Path or URL of the M3U playlist used by ``schedule``.
 - ``retry_max_attempts``: Connection and start attempts before giving up.
 - ``retry_delay_seconds``: Fixed delay between those attempts.
 - ``poll_interval_seconds``: Granularity of every wall-clock poll.
 - ``mail``: SMTP settings for failure alerts.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import structlog
import yaml
from pydantic import BaseModel, Field, validator

ENV_PREFIX = "IPTVREC_"
CAPTURE_MODES = ("regular", "ffmpeg")


class MailSettings(BaseModel):
    """SMTP settings used for failure notifications."""

    send_mail: bool = Field(default=False, description="Send an alert when a recording fails")
    send_to: str = Field(default="", description="Recipient address(es), comma separated")
    sent_from: str = Field(default="", description="Sender address, also used as SMTP login")
    smtp_host: str = Field(default="", description="SMTP server host")
    smtp_port: int = Field(default=465, description="SMTP-over-SSL port")
    app_password: str = Field(default="", description="SMTP password or app password")


class Config(BaseModel):
    """Pydantic model describing application configuration."""

    destination_root: Path = Field(default=Path("./recordings"),
                                   description="Base directory for saved recordings")
    timezone: str = Field(default="Europe/Stockholm",
                          description="Timezone for start and stop times")
    capture_mode: str = Field(default="regular",
                              description="'regular' stream copy or 'ffmpeg' remux")
    is_24_hour: bool = Field(default=True,
                             description="Parse times as HH:MM instead of hh:mm AM/PM")
    playlist: Optional[str] = Field(default=None,
                                    description="M3U playlist file path or URL")
    retry_max_attempts: int = Field(default=5,
                                    description="Maximum connection/start attempts")
    retry_delay_seconds: float = Field(default=60.0,
                                       description="Seconds to wait between attempts")
    connect_timeout_seconds: float = Field(default=10.0,
                                           description="Connect timeout for stream connections")
    probe_read_timeout_seconds: float = Field(default=10.0,
                                              description="Read timeout for the connectivity probe")
    read_timeout_seconds: float = Field(default=60.0,
                                        description="Read timeout while copying a stream")
    chunk_size: int = Field(default=8192,
                            description="Bytes per read when copying a stream")
    poll_interval_seconds: float = Field(default=1.0,
                                         description="Wall-clock polling interval")
    resume_verify_delay_seconds: float = Field(default=2.0,
                                               description="Delay before checking a resumed process")
    min_free_disk_mb: int = Field(default=100,
                                  description="Free space required on the destination disk")
    ffmpeg_binary: str = Field(default="ffmpeg",
                               description="ffmpeg executable used in ffmpeg mode")
    log_file: Optional[Path] = Field(default=None,
                                     description="Optional file receiving log records")
    log_level: str = Field(default="INFO", description="Logging level name")
    mail: MailSettings = Field(default_factory=MailSettings)

    class Config:
        arbitrary_types_allowed = True

    @validator("capture_mode")
    def validate_capture_mode(cls, v: str) -> str:
        v = v.strip().lower()
        if v not in CAPTURE_MODES:
            raise ValueError(f"capture_mode must be one of {', '.join(CAPTURE_MODES)}")
        return v

    @validator("timezone")
    def validate_timezone(cls, v: str) -> str:
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"unknown timezone {v!r}") from e
        return v

    @validator("retry_max_attempts", "chunk_size")
    def validate_positive_int(cls, v: int) -> int:
        if v < 1:
            raise ValueError("value must be at least 1")
        return v

    @validator("poll_interval_seconds")
    def validate_poll_interval(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("poll_interval_seconds must be positive")
        return v

    @validator("retry_delay_seconds", "resume_verify_delay_seconds")
    def validate_non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError("delay must not be negative")
        return v


logger = structlog.get_logger(__name__)


def _resolve_config_file(path: Optional[str] = None) -> Path:
    """Return the configuration file path, creating defaults if necessary."""
    if path:
        candidate = Path(path).expanduser()
        if candidate.exists():
            return candidate
        logger.warning("config file not found, falling back", config_path=str(candidate))
    project_cfg = Path.cwd() / "config.yaml"
    if project_cfg.exists():
        return project_cfg
    fallback = Path.home() / ".iptvrec" / "config.yaml"
    if not fallback.exists():
        fallback.parent.mkdir(parents=True, exist_ok=True)
        with open(fallback, "w", encoding="utf-8") as f:
            yaml.safe_dump(Config().model_dump(mode="json"), f)
    return fallback


def _env_overrides() -> dict:
    """Collects ``IPTVREC_<FIELD>`` overrides for top-level scalar fields."""
    overrides = {}
    for name in Config.model_fields:
        if name == "mail":
            continue
        value = os.environ.get(ENV_PREFIX + name.upper())
        if value is not None and value.strip():
            overrides[name] = value.strip()
    return overrides


def load_config(path: Optional[str] = None) -> Tuple[Config, Path]:
    """Loads configuration from a YAML file, returning the config and path used."""
    config_file = _resolve_config_file(path)
    data: dict = {}
    try:
        with open(config_file, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        logger.warning("failed to parse config file", config_path=str(config_file), error=str(e))
    overrides = _env_overrides()
    if overrides:
        logger.info("applying environment overrides", fields=sorted(overrides))
        data.update(overrides)
    logger.info("loaded configuration", config_path=str(config_file))
    return Config(**data), config_file
