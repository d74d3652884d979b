"""
Dashboard service: the composition root.

Builds the storage, query library, queue provider registry, history manager
and metrics client from Settings, and exposes the boundary operations that
a presentation layer calls per widget:

- resolve / execute a metrics query reference
- execute a queue query by reference or inline
- undo, redo, snapshot and restore the dashboard configuration
- query, page and template edits, each recorded as a history snapshot

Widget-facing operations return WidgetResult so that one failing widget
renders its own error state instead of failing the whole dashboard.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import partial
from pathlib import Path
from typing import Any, Mapping

import structlog

from podscope.config.loader import CONFIG_DIR_NAME, CONFIG_FILE_NAME, get_config_path
from podscope.config.schema import (
    ChangeType,
    DashboardConfig,
    PageConfig,
    QueueProviderType,
    QueueQuery,
)
from podscope.config.settings import Settings, get_settings
from podscope.core.errors import PodscopeError, ValidationError
from podscope.history import (
    ConfigHistoryManager,
    ConfigSnapshot,
    HistoryResult,
    JsonFileHistoryStore,
)
from podscope.metrics import PrometheusClient
from podscope.queries.library import QueryLibraryManager
from podscope.queue.bullmq import REDIS_INSTANCES_ENV, BullMQProvider, BullProvider
from podscope.queue.memory import InMemoryQueueProvider
from podscope.queue.registry import ProviderFactory, QueueProviderRegistry
from podscope.storage import DashboardStorage, ImportResult

logger = structlog.get_logger()

BASELINE_LABEL = "Initial configuration"


@dataclass(frozen=True)
class WidgetResult:
    """Typed success/failure for a single widget's data request."""

    ok: bool
    value: Any = None
    error: str | None = None
    error_type: str | None = None

    @classmethod
    def success(cls, value: Any) -> WidgetResult:
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, exc: PodscopeError) -> WidgetResult:
        return cls(ok=False, error=exc.message, error_type=type(exc).__name__)

    def to_dict(self) -> dict[str, Any]:
        if not self.ok:
            return {"ok": False, "error": self.error, "errorType": self.error_type}
        value = self.value.to_dict() if hasattr(self.value, "to_dict") else self.value
        return {"ok": True, "value": value}


class DashboardService:
    def __init__(
        self,
        storage: DashboardStorage,
        queries: QueryLibraryManager,
        registry: QueueProviderRegistry,
        history: ConfigHistoryManager,
        metrics: PrometheusClient,
    ) -> None:
        self.storage = storage
        self.queries = queries
        self.registry = registry
        self.history = history
        self.metrics = metrics

    # === Queries ===

    def resolve_metrics_query(
        self,
        reference: str,
        variables: Mapping[str, Any] | None = None,
    ) -> WidgetResult:
        try:
            return WidgetResult.success(self.queries.resolve(reference, variables))
        except PodscopeError as exc:
            return WidgetResult.failure(exc)

    async def execute_metrics_query(
        self,
        reference: str,
        variables: Mapping[str, Any] | None = None,
    ) -> WidgetResult:
        """Resolve a reference with variables and run it against Prometheus."""
        resolved = self.resolve_metrics_query(reference, variables or {})
        if not resolved.ok:
            return resolved

        result = await self.metrics.query(resolved.value.text)
        if not result.success:
            return WidgetResult(ok=False, error=result.error, error_type="PrometheusQueryError")
        return WidgetResult.success(result)

    async def execute_queue_query(
        self,
        ref: str | None = None,
        inline: QueueQuery | Mapping[str, Any] | None = None,
    ) -> WidgetResult:
        """Run a queue query given either a ``queueQueries.*`` reference or an inline payload."""
        try:
            if (ref is None) == (inline is None):
                raise ValidationError("Provide exactly one of a query reference or an inline query")
            if ref is not None:
                result = await self.registry.execute_query_by_ref(ref)
            else:
                result = await self.registry.execute_query(inline)
        except PodscopeError as exc:
            logger.warning(
                "queue_query_failed",
                ref=ref,
                error_type=type(exc).__name__,
                error=exc.message,
            )
            return WidgetResult.failure(exc)
        return WidgetResult.success(result)

    # === Configuration history ===

    async def snapshot(self, change_type: ChangeType | str, label: str | None = None) -> ConfigSnapshot:
        return await self.history.create_snapshot(change_type, label)

    async def ensure_baseline(self) -> None:
        """Record the current config as the first snapshot of an empty history."""
        await self.history.load()
        if not self.history.snapshots:
            await self.history.create_snapshot(ChangeType.MANUAL, BASELINE_LABEL)

    async def undo(self) -> HistoryResult:
        result = await self.history.undo()
        if result.success and result.snapshot is not None:
            self.storage.apply_config(result.snapshot.config_copy())
        return result

    async def redo(self) -> HistoryResult:
        result = await self.history.redo()
        if result.success and result.snapshot is not None:
            self.storage.apply_config(result.snapshot.config_copy())
        return result

    async def restore(self, snapshot_id: str) -> HistoryResult:
        return await self.history.restore_from_snapshot(snapshot_id)

    # === Configuration edits recorded in history ===

    async def import_config(self, text: str, label: str | None = None) -> ImportResult:
        await self.ensure_baseline()
        result = self.storage.import_config(text)
        if result.success:
            await self.history.create_snapshot(ChangeType.IMPORT, label)
        return result

    async def reset_config(self) -> None:
        await self.ensure_baseline()
        self.storage.reset_to_defaults()
        await self.history.create_snapshot(ChangeType.RESET, "Reset to defaults")

    async def apply_template(
        self,
        template: DashboardConfig | dict[str, Any],
        name: str,
    ) -> DashboardConfig:
        """Replace the dashboard with a template and record it in history."""
        await self.ensure_baseline()
        config = self.storage.save_config(template)
        await self.history.create_snapshot(ChangeType.TEMPLATE, f"Applied template: {name}")
        return config

    async def add_query(self, namespace: str, name: str, template: str) -> None:
        await self.ensure_baseline()
        self.queries.add_query(namespace, name, template)
        await self.history.create_snapshot(ChangeType.QUERY_EDIT, f"Saved {namespace}.{name}")

    async def remove_query(self, namespace: str, name: str) -> bool:
        """Remove a user query; history only records an actual removal."""
        await self.ensure_baseline()
        removed = self.queries.remove_query(namespace, name)
        if removed:
            await self.history.create_snapshot(ChangeType.QUERY_EDIT, f"Removed {namespace}.{name}")
        return removed

    async def add_page(self, page: PageConfig | dict[str, Any]) -> DashboardConfig:
        await self.ensure_baseline()
        config = self.storage.add_page(page)
        new_page = config.pages[-1]
        await self.history.create_snapshot(ChangeType.PAGE_ADD, f"Added page {new_page.id}")
        return config

    async def update_page(self, page_id: str, updates: dict[str, Any]) -> DashboardConfig:
        await self.ensure_baseline()
        config = self.storage.update_page(page_id, updates)
        await self.history.create_snapshot(ChangeType.LAYOUT_EDIT, f"Edited page {page_id}")
        return config

    async def delete_page(self, page_id: str) -> DashboardConfig:
        await self.ensure_baseline()
        config = self.storage.delete_page(page_id)
        await self.history.create_snapshot(ChangeType.PAGE_REMOVE, f"Removed page {page_id}")
        return config

    async def aclose(self) -> None:
        await self.registry.disconnect_all()
        await self.metrics.aclose()
        self.history.close()


def _provider_factories(settings: Settings) -> dict[QueueProviderType, ProviderFactory]:
    environ: Mapping[str, str] = os.environ
    if settings.redis_instances:
        environ = {**os.environ, REDIS_INSTANCES_ENV: settings.redis_instances}
    redis_options = {
        "connect_timeout": settings.redis_connect_timeout,
        "command_timeout": settings.redis_command_timeout,
        "environ": environ,
    }
    return {
        QueueProviderType.BULLMQ: partial(BullMQProvider, **redis_options),
        QueueProviderType.BULL: partial(BullProvider, **redis_options),
        QueueProviderType.MEMORY: InMemoryQueueProvider,
    }


def build_storage(settings: Settings) -> DashboardStorage:
    config_path = (
        settings.config_path
        or get_config_path()
        or Path.home() / CONFIG_DIR_NAME / CONFIG_FILE_NAME
    )
    return DashboardStorage(Path(config_path).expanduser(), settings.user_queries_path.expanduser())


def build_service(settings: Settings | None = None) -> DashboardService:
    """Wire every component from settings. Nothing connects until first use."""
    settings = settings or get_settings()
    storage = build_storage(settings)

    registry = QueueProviderRegistry(
        lambda: storage.load_stored_config().queue_providers,
        lambda: storage.load_stored_config().queue_queries,
        factories=_provider_factories(settings),
    )
    history = ConfigHistoryManager(
        JsonFileHistoryStore(settings.history_path),
        storage,
        max_snapshots=settings.history_max_snapshots,
    )
    metrics = PrometheusClient(settings.prometheus_url, timeout=settings.http_timeout)

    logger.debug("service_built", config_path=str(storage.config_path))
    return DashboardService(
        storage=storage,
        queries=QueryLibraryManager(storage),
        registry=registry,
        history=history,
        metrics=metrics,
    )
