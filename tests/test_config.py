"""Settings and engine helpers."""

import logging

import pytest
from pydantic import ValidationError as SettingsError
from sqlalchemy.pool import StaticPool

from app.config import Settings
from app.core.logging import JSONFormatter, TextFormatter
from app.database import _mask_url, create_db_engine


def test_heroku_style_postgres_scheme_is_normalized():
    settings = Settings(database_url="postgres://u:pw@db:5432/ads")
    assert settings.effective_database_url == "postgresql://u:pw@db:5432/ads"


def test_sqlite_fallback_without_database_url(monkeypatch):
    monkeypatch.delenv("VERCEL", raising=False)
    assert Settings(database_url="").effective_database_url == "sqlite:///./tracionar.db"


def test_page_size_is_capped_at_meta_limit():
    with pytest.raises(SettingsError):
        Settings(meta_page_size=501)


def test_graph_url_includes_version():
    settings = Settings(meta_base_url="https://graph.example", meta_api_version="v19.0")
    assert settings.meta_graph_url == "https://graph.example/v19.0"


def test_password_is_masked():
    masked = _mask_url("postgresql://ads:hunter2@db:5432/tracionar")
    assert "hunter2" not in masked
    assert masked.endswith("@db:5432/tracionar")


def test_memory_sqlite_shares_one_connection(tmp_path):
    assert isinstance(create_db_engine("sqlite://").pool, StaticPool)
    assert not isinstance(create_db_engine(f"sqlite:///{tmp_path}/t.db").pool, StaticPool)


def _record(**extra) -> logging.LogRecord:
    record = logging.LogRecord("tracionar.test", logging.INFO, __file__, 1, "Sync done", None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_formatter_keeps_known_context_only():
    line = JSONFormatter().format(_record(account_id=3, secret="x"))
    assert '"account_id": 3' in line
    assert "secret" not in line


def test_text_formatter_appends_context():
    line = TextFormatter().format(_record(records_touched=8))
    assert line.endswith("Sync done records_touched=8")
