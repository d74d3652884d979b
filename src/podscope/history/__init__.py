from __future__ import annotations

from podscope.history.events import CONFIG_RESTORED, HISTORY_CHANGED, HistoryBus, HistoryEvent, history_bus
from podscope.history.manager import ConfigHistoryManager, ConfigSource
from podscope.history.models import DEFAULT_MAX_SNAPSHOTS, ConfigHistory, ConfigSnapshot, HistoryResult
from podscope.history.store import HistoryStore, InMemoryHistoryStore, JsonFileHistoryStore

__all__ = [
    "CONFIG_RESTORED",
    "ConfigHistory",
    "ConfigHistoryManager",
    "ConfigSnapshot",
    "ConfigSource",
    "DEFAULT_MAX_SNAPSHOTS",
    "HISTORY_CHANGED",
    "HistoryBus",
    "HistoryEvent",
    "HistoryResult",
    "HistoryStore",
    "InMemoryHistoryStore",
    "JsonFileHistoryStore",
    "history_bus",
]
