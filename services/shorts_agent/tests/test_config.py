from __future__ import annotations

from pathlib import Path

import pytest

from shorts_agent.config import Settings, get_settings
from shorts_agent.observability import setup_logging


def test_settings_from_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("DATA_DIR", str(tmp_path))
    monkeypatch.setenv("USE_STUBS", "false")
    monkeypatch.setenv("STUB_FAIL_RATE", "0.25")

    settings = get_settings()

    assert settings.data_dir == tmp_path
    assert settings.use_stubs is False
    assert settings.stub_fail_rate == 0.25
    assert get_settings() is settings


def test_render_timeout_covers_slow_stub_renders() -> None:
    assert Settings(_env_file=None, render_timeout_s=120, stub_render_ms=5000).effective_render_timeout_s == 120
    assert Settings(_env_file=None, render_timeout_s=10, stub_render_ms=60000).effective_render_timeout_s == 180


def test_fail_rate_must_be_a_probability() -> None:
    with pytest.raises(ValueError):
        Settings(_env_file=None, stub_fail_rate=1.5)


def test_unreadable_logging_config_falls_back(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    path = tmp_path / "logging.json"
    path.write_text("{not json", encoding="utf-8")

    setup_logging("info", config_path=path)

    assert "Ignoring logging config" in caplog.text
