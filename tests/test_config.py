"""Tests for configuration loading and path resolution."""

from pathlib import Path

import pytest
import yaml
from pydantic import ValidationError

from iptvrec.config.config import Config, load_config


def test_load_config_uses_project_file(tmp_path, monkeypatch):
    cfg = tmp_path / "config.yaml"
    cfg.write_text("retry_max_attempts: 7\ncapture_mode: ffmpeg\n", encoding="utf-8")
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(Path, "home", lambda: tmp_path)

    config, path = load_config()

    assert path == cfg
    assert config.retry_max_attempts == 7
    assert config.capture_mode == "ffmpeg"


def test_load_config_creates_default(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(Path, "home", lambda: tmp_path)

    config, path = load_config()

    expected = tmp_path / ".iptvrec" / "config.yaml"
    assert path == expected
    assert path.exists()

    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f)

    assert data == Config().model_dump(mode="json")
    assert config == Config()


def test_explicit_path_wins(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    (tmp_path / "config.yaml").write_text("retry_max_attempts: 2\n", encoding="utf-8")
    explicit = tmp_path / "other.yaml"
    explicit.write_text("retry_max_attempts: 9\n", encoding="utf-8")

    config, path = load_config(str(explicit))

    assert path == explicit
    assert config.retry_max_attempts == 9


def test_environment_overrides_file(tmp_path, monkeypatch):
    cfg = tmp_path / "config.yaml"
    cfg.write_text("timezone: Europe/Stockholm\nretry_delay_seconds: 60\n", encoding="utf-8")
    monkeypatch.setenv("IPTVREC_TIMEZONE", "UTC")
    monkeypatch.setenv("IPTVREC_RETRY_DELAY_SECONDS", "5")

    config, _ = load_config(str(cfg))

    assert config.timezone == "UTC"
    assert config.retry_delay_seconds == 5.0


def test_mail_settings_nested(tmp_path):
    cfg = tmp_path / "config.yaml"
    cfg.write_text("mail:\n  send_mail: true\n  smtp_host: smtp.example.com\n", encoding="utf-8")

    config, _ = load_config(str(cfg))

    assert config.mail.send_mail is True
    assert config.mail.smtp_host == "smtp.example.com"
    assert config.mail.smtp_port == 465


@pytest.mark.parametrize("field,value", [
    ("capture_mode", "vlc"),
    ("timezone", "Mars/Olympus"),
    ("retry_max_attempts", 0),
    ("chunk_size", 0),
    ("poll_interval_seconds", 0),
    ("retry_delay_seconds", -1),
])
def test_invalid_values_rejected(field, value):
    with pytest.raises(ValidationError):
        Config(**{field: value})
