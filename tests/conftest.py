"""Root test configuration."""

import logging

import pytest
import structlog

from podscope.config.settings import get_settings
from podscope.history import HistoryBus
from podscope.storage import DashboardStorage


def pytest_configure(config):
    """Configure structlog for tests to suppress debug/info output."""
    logging.basicConfig(level=logging.WARNING, force=True)
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.processors.add_log_level,
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer(),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )


@pytest.fixture
def storage(tmp_path):
    """Dashboard storage backed by files in a temporary directory."""
    return DashboardStorage(tmp_path / "dashboard.yaml", tmp_path / "user-queries.yaml")


@pytest.fixture
def bus():
    """Private history bus so tests never share listeners."""
    return HistoryBus()


@pytest.fixture
def podscope_env(tmp_path, monkeypatch):
    """Point every Podscope setting at files under tmp_path."""
    monkeypatch.setenv("PODSCOPE_CONFIG_PATH", str(tmp_path / "dashboard.yaml"))
    monkeypatch.setenv("PODSCOPE_USER_QUERIES_PATH", str(tmp_path / "user-queries.yaml"))
    monkeypatch.setenv("PODSCOPE_HISTORY_PATH", str(tmp_path / "history.json"))
    monkeypatch.delenv("REDIS_INSTANCES", raising=False)
    get_settings.cache_clear()
    yield tmp_path
    get_settings.cache_clear()
