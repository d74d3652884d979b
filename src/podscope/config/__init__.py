"""
Podscope Configuration System.

Provides:
- Pydantic-based settings (environment variables, .env files)
- Dashboard configuration schema and file loading
- Built-in default dashboard and query library
"""

from podscope.config.loader import (
    ConfigLoader,
    get_config_path,
    load_config,
)
from podscope.config.schema import (
    ChangeType,
    DashboardConfig,
    PageConfig,
    QueueJobStatus,
    QueueProviderConfig,
    QueueProviderType,
    QueueQuery,
    parse_queue_query,
)
from podscope.config.settings import Settings, get_settings

__all__ = [
    # Settings
    "Settings",
    "get_settings",
    # Schema
    "ChangeType",
    "DashboardConfig",
    "PageConfig",
    "QueueJobStatus",
    "QueueProviderConfig",
    "QueueProviderType",
    "QueueQuery",
    "parse_queue_query",
    # Loader
    "ConfigLoader",
    "load_config",
    "get_config_path",
]
