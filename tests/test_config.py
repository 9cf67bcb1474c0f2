"""Tests for settings and structured logging."""

import json
import logging

from loyaltyrec.api.logging_config import JSONFormatter
from loyaltyrec.config import Settings


def test_settings_defaults(monkeypatch):
    for name in (
        "DATABASE_URL",
        "LOG_LEVEL",
        "BASKET_WINDOW_MINUTES",
        "TRANSACTION_LIMIT",
        "SCHEDULE_INTERVAL_DAYS",
    ):
        monkeypatch.delenv(f"LOYALTYREC_{name}", raising=False)

    settings = Settings.from_env()

    assert settings.database_url == "sqlite:///./loyaltyrec.db"
    assert settings.basket_window_minutes == 5
    assert settings.transaction_limit == 100000
    assert settings.schedule_interval_days == 14


def test_settings_from_environment(monkeypatch):
    monkeypatch.setenv("LOYALTYREC_DATABASE_URL", "postgresql://loyalty@db/loyalty")
    monkeypatch.setenv("LOYALTYREC_BASKET_WINDOW_MINUTES", "10")
    monkeypatch.setenv("LOYALTYREC_SCHEDULE_INTERVAL_DAYS", "7")

    settings = Settings.from_env()

    assert settings.database_url == "postgresql://loyalty@db/loyalty"
    assert settings.basket_window_minutes == 10
    assert settings.schedule_interval_days == 7


def test_invalid_integer_falls_back_to_default(monkeypatch, caplog):
    monkeypatch.setenv("LOYALTYREC_TRANSACTION_LIMIT", "lots")

    with caplog.at_level(logging.WARNING):
        settings = Settings.from_env()

    assert settings.transaction_limit == 100000
    assert "LOYALTYREC_TRANSACTION_LIMIT" in caplog.text


def test_json_formatter_includes_extra_fields():
    record = logging.LogRecord(
        name="loyaltyrec.engine.recompute",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg="Association recompute completed",
        args=None,
        exc_info=None,
    )
    record.owner_id = 7
    record.updated = 12

    data = json.loads(JSONFormatter().format(record))

    assert data["message"] == "Association recompute completed"
    assert data["level"] == "INFO"
    assert data["logger"] == "loyaltyrec.engine.recompute"
    assert data["owner_id"] == 7
    assert data["updated"] == 12
    assert "timestamp" in data
