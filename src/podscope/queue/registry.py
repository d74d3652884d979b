"""
Queue provider registry.

Instantiates one driver per configured provider name, connects each
exactly once, and routes structured queue queries to the right driver.

The registry is constructed explicitly by the composition root (see
podscope.service) and handed to its consumers; there is no module-level
instance.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Callable, Mapping

import structlog

from podscope.config.schema import (
    QueueProviderConfig,
    QueueProviderType,
    QueueQuery,
    parse_queue_query,
)
from podscope.core.errors import (
    PodscopeError,
    ProviderNotFoundError,
    ProviderUnhealthyError,
    QueryNotFoundError,
    ReferenceFormatError,
    UnsupportedProviderTypeError,
    ValidationError,
)
from podscope.queue.base import QueueProvider
from podscope.queue.bullmq import BullMQProvider, BullProvider
from podscope.queue.memory import InMemoryQueueProvider
from podscope.queue.models import QueueQueryResult

logger = structlog.get_logger()

QUEUE_QUERIES_PREFIX = "queueQueries."

ProviderFactory = Callable[[], QueueProvider]
ProvidersSource = Callable[[], Mapping[str, QueueProviderConfig]]
QueueQueriesSource = Callable[[], Mapping[str, Mapping[str, QueueQuery]]]

DEFAULT_FACTORIES: dict[QueueProviderType, ProviderFactory] = {
    QueueProviderType.BULLMQ: BullMQProvider,
    QueueProviderType.BULL: BullProvider,
    QueueProviderType.MEMORY: InMemoryQueueProvider,
}


def create_provider(
    provider_type: QueueProviderType | str,
    factories: Mapping[QueueProviderType, ProviderFactory] | None = None,
) -> QueueProvider:
    """Create a driver for ``provider_type``; unknown types fail closed."""
    factories = DEFAULT_FACTORIES if factories is None else factories
    try:
        factory = factories[QueueProviderType(provider_type)]
    except (KeyError, ValueError) as exc:
        raise UnsupportedProviderTypeError(str(provider_type)) from exc
    return factory()


@dataclass(frozen=True)
class QueueQueryRef:
    namespace: str
    name: str


def parse_queue_query_ref(reference: Any) -> QueueQueryRef:
    """
    Parse ``queueQueries.<namespace>.<name>``.

    The prefix may be omitted; exactly two non-empty segments must remain.
    """
    if not isinstance(reference, str) or not reference.strip():
        raise ReferenceFormatError(reference, 'expected "queueQueries.namespace.queryName"')
    clean = reference[len(QUEUE_QUERIES_PREFIX):] if reference.startswith(QUEUE_QUERIES_PREFIX) else reference
    parts = clean.split(".")
    if len(parts) != 2 or not all(parts):
        raise ReferenceFormatError(
            reference, 'expected "queueQueries.namespace.queryName"'
        )
    return QueueQueryRef(namespace=parts[0], name=parts[1])


def create_queue_query_ref(namespace: str, name: str) -> str:
    return f"{QUEUE_QUERIES_PREFIX}{namespace}.{name}"


@dataclass(frozen=True)
class ProviderStatus:
    name: str
    type: str
    display_name: str
    healthy: bool
    registered: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "type": str(self.type),
            "displayName": self.display_name,
            "healthy": self.healthy,
        }


class QueueProviderRegistry:
    """Owns connected queue provider instances keyed by configured name."""

    def __init__(
        self,
        providers_source: ProvidersSource,
        queries_source: QueueQueriesSource | None = None,
        *,
        factories: Mapping[QueueProviderType, ProviderFactory] | None = None,
    ) -> None:
        self._providers_source = providers_source
        self._queries_source = queries_source
        self._factories = dict(DEFAULT_FACTORIES if factories is None else factories)
        self._providers: dict[str, QueueProvider] = {}
        self._initialized = False
        self._init_task: asyncio.Future[None] | None = None

    @property
    def initialized(self) -> bool:
        return self._initialized

    @property
    def provider_names(self) -> list[str]:
        return list(self._providers)

    def get_provider(self, name: str) -> QueueProvider | None:
        return self._providers.get(name)

    def get_all_providers(self) -> dict[str, QueueProvider]:
        return dict(self._providers)

    async def initialize(self) -> None:
        """
        Connect every configured provider once.

        Concurrent callers share the same in-flight initialization. A
        provider that fails to connect is logged and left out; the others
        are still registered.
        """
        if self._initialized:
            return
        if self._init_task is None:
            self._init_task = asyncio.ensure_future(self._initialize())
        await asyncio.shield(self._init_task)

    async def _initialize(self) -> None:
        try:
            try:
                configs = self._providers_source()
            except PodscopeError as exc:
                logger.error("queue_providers_config_failed", error=exc.message)
                return

            if not configs:
                logger.warning("no_queue_providers_configured")

            for name, config in configs.items():
                try:
                    provider = create_provider(config.type, self._factories)
                    await provider.connect(config.connection)
                except Exception as exc:
                    logger.error(
                        "queue_provider_init_failed",
                        name=name,
                        type=str(config.type),
                        error_type=type(exc).__name__,
                        error=str(exc),
                    )
                    continue
                self._providers[name] = provider
                logger.info("queue_provider_initialized", name=name, type=str(config.type))

            self._initialized = True
        finally:
            self._init_task = None

    async def execute_query(self, query: QueueQuery | Mapping[str, Any]) -> QueueQueryResult:
        """
        Run a structured queue query.

        Without ``queue`` this lists the provider's queues, otherwise it
        lists jobs. Provider health is checked before every dispatch.
        """
        if not isinstance(query, QueueQuery):
            parsed = parse_queue_query(query)
            if not parsed.ok or parsed.query is None:
                raise ValidationError("Invalid queue query", {"errors": parsed.errors})
            query = parsed.query

        if not self._initialized:
            await self.initialize()

        provider = self._providers.get(query.provider)
        if provider is None:
            raise ProviderNotFoundError(query.provider)

        if not await provider.is_healthy():
            raise ProviderUnhealthyError(query.provider)

        if query.queue:
            jobs = await provider.get_jobs(query)
            logger.debug("queue_jobs_fetched", provider=query.provider, queue=query.queue, count=len(jobs))
            return QueueQueryResult(
                provider=query.provider,
                provider_type=provider.type,
                queue=query.queue,
                jobs=jobs,
                count=len(jobs),
            )

        queues = await provider.list_queues()
        logger.debug("queues_listed", provider=query.provider, count=len(queues))
        return QueueQueryResult(
            provider=query.provider,
            provider_type=provider.type,
            queues=queues,
            count=len(queues),
        )

    def lookup_query(self, reference: str) -> QueueQuery:
        """Find the queue query a ``queueQueries.<namespace>.<name>`` reference names."""
        ref = parse_queue_query_ref(reference)
        library = self._queries_source() if self._queries_source else {}
        query = library.get(ref.namespace, {}).get(ref.name)
        if query is None:
            raise QueryNotFoundError(ref.namespace, ref.name, reference=reference)
        return query

    async def execute_query_by_ref(self, reference: str) -> QueueQueryResult:
        return await self.execute_query(self.lookup_query(reference))

    async def available_providers(self) -> list[ProviderStatus]:
        """List configured providers with live health; unregistered ones report unhealthy."""
        await self.initialize()
        statuses = []
        for name, config in self._providers_source().items():
            provider = self._providers.get(name)
            statuses.append(
                ProviderStatus(
                    name=name,
                    type=config.type,
                    display_name=config.display_name,
                    healthy=await provider.is_healthy() if provider else False,
                    registered=provider is not None,
                )
            )
        return statuses

    async def disconnect_all(self) -> None:
        """Disconnect every provider independently, then reset for a clean initialize()."""
        if self._init_task is not None:
            await asyncio.shield(self._init_task)

        for name, provider in list(self._providers.items()):
            try:
                await provider.disconnect()
                logger.info("queue_provider_disconnected", name=name)
            except Exception as exc:
                logger.error("queue_provider_disconnect_failed", name=name, error=str(exc))

        self._providers.clear()
        self._initialized = False
