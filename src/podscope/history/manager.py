"""
Configuration history manager.

Bounded, persisted, linear undo/redo over full configuration snapshots.

Every mutation computes the next ConfigHistory from the current one,
persists it, swaps it in, and then broadcasts it so that other managers
bound to the same store stay in sync.
"""

from __future__ import annotations

import asyncio
from typing import Any, Protocol

import structlog

from podscope.config.schema import ChangeType
from podscope.core.errors import ConfigurationError
from podscope.history.events import (
    CONFIG_RESTORED,
    HISTORY_CHANGED,
    HistoryBus,
    HistoryEvent,
    history_bus,
)
from podscope.history.models import (
    DEFAULT_MAX_SNAPSHOTS,
    ConfigHistory,
    ConfigSnapshot,
    HistoryResult,
)
from podscope.history.store import HistoryStore

logger = structlog.get_logger()


class ConfigSource(Protocol):
    """Live configuration the history snapshots and restores."""

    def current_config(self) -> dict[str, Any]:
        ...

    def apply_config(self, config: dict[str, Any]) -> None:
        ...


class ConfigHistoryManager:
    def __init__(
        self,
        store: HistoryStore,
        config_source: ConfigSource,
        *,
        max_snapshots: int = DEFAULT_MAX_SNAPSHOTS,
        bus: HistoryBus | None = None,
    ) -> None:
        self._store = store
        self._config_source = config_source
        self._max_snapshots = max_snapshots
        self._bus = history_bus if bus is None else bus
        self._history = ConfigHistory()
        self._loaded = False
        self._lock = asyncio.Lock()
        self._unsubscribe = self._bus.subscribe(store.key, self._on_event)

    # === State ===

    @property
    def history(self) -> ConfigHistory:
        return self._history

    @property
    def snapshots(self) -> list[ConfigSnapshot]:
        return list(self._history.snapshots)

    @property
    def current_index(self) -> int:
        return self._history.current_index

    @property
    def current_snapshot(self) -> ConfigSnapshot | None:
        return self._history.current

    @property
    def max_snapshots(self) -> int:
        return self._max_snapshots

    def can_undo(self) -> bool:
        return self._history.current_index > 0

    def can_redo(self) -> bool:
        return self._history.current_index < len(self._history) - 1

    async def load(self) -> ConfigHistory:
        """Load the persisted history once; later calls return the cached copy."""
        if not self._loaded:
            await self.refresh()
        return self._history

    async def refresh(self) -> ConfigHistory:
        """Re-read the persisted history, starting empty if it is missing or corrupt."""
        try:
            history = await self._store.read()
        except ConfigurationError as e:
            logger.error("failed_to_load_config_history", key=self._store.key, error=e.message)
            history = None
        self._history = history or ConfigHistory()
        self._loaded = True
        return self._history

    # === Mutations ===

    async def create_snapshot(
        self,
        change_type: ChangeType | str,
        label: str | None = None,
    ) -> ConfigSnapshot:
        """Capture the live configuration and make it the newest entry."""
        async with self._lock:
            await self.load()
            snapshot = ConfigSnapshot.capture(
                self._config_source.current_config(), change_type, label
            )
            history = self._history.append(snapshot, self._max_snapshots)
            await self._commit(history)

        logger.info(
            "config_snapshot_created",
            snapshot_id=snapshot.id,
            change_type=str(snapshot.change_type),
            snapshots=len(history),
        )
        return snapshot

    async def undo(self) -> HistoryResult:
        """Step back one snapshot; the caller applies the returned config."""
        async with self._lock:
            await self.load()
            if not self.can_undo():
                return HistoryResult(success=False, reason="Nothing to undo")
            history = self._history.move_to(self._history.current_index - 1)
            await self._commit(history)

        logger.info("config_undo", snapshot_id=history.current.id, index=history.current_index)
        return HistoryResult(success=True, snapshot=history.current)

    async def redo(self) -> HistoryResult:
        """Step forward one snapshot; the caller applies the returned config."""
        async with self._lock:
            await self.load()
            if not self.can_redo():
                return HistoryResult(success=False, reason="Nothing to redo")
            history = self._history.move_to(self._history.current_index + 1)
            await self._commit(history)

        logger.info("config_redo", snapshot_id=history.current.id, index=history.current_index)
        return HistoryResult(success=True, snapshot=history.current)

    async def restore_from_snapshot(self, snapshot_id: str) -> HistoryResult:
        """
        Make a snapshot's config live and point at it.

        Restoring is navigation: no new snapshot is recorded.
        """
        async with self._lock:
            await self.load()
            index = self._history.index_of(snapshot_id)
            if index is None:
                logger.warning("snapshot_not_found", snapshot_id=snapshot_id)
                return HistoryResult(success=False, reason=f"Snapshot not found: {snapshot_id}")

            snapshot = self._history.snapshots[index]
            self._config_source.apply_config(snapshot.config_copy())
            history = self._history.move_to(index)
            await self._commit(history)
            self._publish(CONFIG_RESTORED, history, snapshot)

        logger.info("config_restored", snapshot_id=snapshot_id, index=index)
        return HistoryResult(success=True, snapshot=snapshot)

    async def delete_snapshot(self, snapshot_id: str) -> HistoryResult:
        async with self._lock:
            await self.load()
            history = self._history.remove(snapshot_id)
            if history is None:
                return HistoryResult(success=False, reason=f"Snapshot not found: {snapshot_id}")
            await self._commit(history)

        logger.info("config_snapshot_deleted", snapshot_id=snapshot_id, index=history.current_index)
        return HistoryResult(success=True, snapshot=history.current)

    async def clear_history(self) -> None:
        async with self._lock:
            await self._store.clear()
            self._history = ConfigHistory()
            self._loaded = True
            self._publish(HISTORY_CHANGED, self._history)
        logger.info("config_history_cleared", key=self._store.key)

    def close(self) -> None:
        """Stop listening for changes made by other managers."""
        self._unsubscribe()

    # === Internals ===

    async def _commit(self, history: ConfigHistory) -> None:
        await self._store.write(history)
        self._history = history
        self._publish(HISTORY_CHANGED, history)

    def _publish(
        self,
        kind: str,
        history: ConfigHistory,
        snapshot: ConfigSnapshot | None = None,
    ) -> None:
        self._bus.publish(
            HistoryEvent(kind=kind, key=self._store.key, source=self, history=history, snapshot=snapshot)
        )

    def _on_event(self, event: HistoryEvent) -> None:
        if event.source is self or event.kind != HISTORY_CHANGED:
            return
        self._history = event.history
        self._loaded = True
