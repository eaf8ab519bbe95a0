import logging

from apps.helpdesk.core.config import Settings, get_settings
from apps.helpdesk.core.logging import build_logging_config, configure_logging, init_tracer, parse_headers
from apps.helpdesk.main import to_async_dsn


def test_parse_headers_ignores_malformed_items():
    assert parse_headers("api-key=abc, tenant = helpdesk,broken,=x") == {"api-key": "abc", "tenant": "helpdesk"}
    assert parse_headers(None) == {}


def test_logging_config_follows_settings():
    config = build_logging_config(Settings(log_level="debug", database_echo=True))

    assert config["root"]["level"] == logging.DEBUG
    assert config["loggers"]["apps.helpdesk.lifecycle"]["level"] == logging.DEBUG
    assert config["loggers"]["sqlalchemy.engine"]["level"] == logging.INFO


def test_unknown_log_level_falls_back_to_info():
    logger = configure_logging(Settings(log_level="chatty", app_name="helpdesk-test"))

    assert logger.level == logging.INFO


def test_tracer_is_not_installed_when_disabled():
    assert init_tracer(Settings(otel_enabled=False)) is None


def test_settings_are_cached():
    assert get_settings() is get_settings()


def test_dsn_is_rewritten_for_asyncpg():
    assert to_async_dsn("postgresql://u:p@db/helpdesk") == "postgresql+asyncpg://u:p@db/helpdesk"
    assert to_async_dsn("sqlite+aiosqlite:///:memory:") == "sqlite+aiosqlite:///:memory:"
