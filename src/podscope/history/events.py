"""
Process-wide change notification for configuration history.

Managers publish on every mutation; other managers bound to the same store
key adopt the published history instead of polling the store.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from typing import Callable

import structlog

from podscope.history.models import ConfigHistory, ConfigSnapshot

logger = structlog.get_logger()

HISTORY_CHANGED = "history_changed"
CONFIG_RESTORED = "config_restored"


@dataclass(frozen=True)
class HistoryEvent:
    kind: str
    key: str
    source: object
    history: ConfigHistory
    snapshot: ConfigSnapshot | None = None


Listener = Callable[[HistoryEvent], None]


class HistoryBus:
    def __init__(self) -> None:
        self._listeners: dict[str, list[Listener]] = defaultdict(list)

    def subscribe(self, key: str, listener: Listener) -> Callable[[], None]:
        """Register ``listener`` for events on ``key``; returns an unsubscribe callable."""
        self._listeners[key].append(listener)

        def unsubscribe() -> None:
            self.unsubscribe(key, listener)

        return unsubscribe

    def unsubscribe(self, key: str, listener: Listener) -> None:
        listeners = self._listeners.get(key, [])
        if listener in listeners:
            listeners.remove(listener)
        if not listeners:
            self._listeners.pop(key, None)

    def listener_count(self, key: str) -> int:
        return len(self._listeners.get(key, []))

    def publish(self, event: HistoryEvent) -> None:
        for listener in list(self._listeners.get(event.key, [])):
            try:
                listener(event)
            except Exception as exc:
                logger.error("history_listener_failed", kind=event.kind, key=event.key, error=str(exc))


history_bus = HistoryBus()
