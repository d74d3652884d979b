"""Tests for environment-based settings."""

from pathlib import Path

from podscope.config.settings import Settings, get_settings


def test_defaults(monkeypatch):
    for name in ("PODSCOPE_HISTORY_MAX_SNAPSHOTS", "PODSCOPE_PROMETHEUS_URL", "PODSCOPE_CONFIG_PATH"):
        monkeypatch.delenv(name, raising=False)
    settings = Settings(_env_file=None)
    assert settings.history_max_snapshots == 50
    assert settings.default_queue_limit == 20
    assert settings.redis_connect_timeout == 5.0
    assert settings.config_path is None
    assert settings.history_path.name == "config-history.json"


def test_env_prefix(monkeypatch):
    monkeypatch.setenv("PODSCOPE_HISTORY_MAX_SNAPSHOTS", "5")
    monkeypatch.setenv("PODSCOPE_CONFIG_PATH", "/tmp/dash.yaml")
    monkeypatch.setenv("PODSCOPE_REDIS_INSTANCES", "main:localhost:6379:")
    settings = Settings(_env_file=None)
    assert settings.history_max_snapshots == 5
    assert settings.config_path == Path("/tmp/dash.yaml")
    assert settings.redis_instances == "main:localhost:6379:"


def test_get_settings_is_cached():
    get_settings.cache_clear()
    try:
        assert get_settings() is get_settings()
    finally:
        get_settings.cache_clear()
