"""
BullMQ queue provider.

Reads BullMQ (and Bull) state straight from Redis using the library's key
layout:

    bull:<queue>:id            job id counter, used for queue discovery
    bull:<queue>:wait          waiting jobs (list)
    bull:<queue>:prioritized   prioritized waiting jobs (sorted set)
    bull:<queue>:active        active jobs (list)
    bull:<queue>:completed     completed jobs (sorted set by finish time)
    bull:<queue>:failed        failed jobs (sorted set by finish time)
    bull:<queue>:delayed       delayed jobs (sorted set by due time)
    bull:<queue>:<jobId>       job hash
"""

from __future__ import annotations

import asyncio
import json
import os
from typing import Any, Callable, Mapping

import redis.asyncio as aioredis
import structlog
from pydantic import ValidationError as PydanticValidationError
from redis.exceptions import RedisError

from podscope.config.schema import (
    BullMQConnection,
    QueueJobStatus,
    QueueProviderType,
    QueueQuery,
    RedisInstanceConfig,
)
from podscope.core.errors import ProviderConnectionError, ProviderError
from podscope.queue.base import ProviderCapabilities
from podscope.queue.models import Job, QueueInfo, QueueStats, normalize_timestamp

logger = structlog.get_logger()

REDIS_INSTANCES_ENV = "REDIS_INSTANCES"
DEFAULT_KEY_PREFIX = "bull"

_IO_ERRORS = (RedisError, OSError, asyncio.TimeoutError)

# Redis key suffix holding jobs in each state
_STATUS_KEYS = {
    QueueJobStatus.WAITING: "wait",
    QueueJobStatus.ACTIVE: "active",
    QueueJobStatus.COMPLETED: "completed",
    QueueJobStatus.FAILED: "failed",
    QueueJobStatus.DELAYED: "delayed",
}

# Most recent first for finished jobs, soonest first for delayed
_NEWEST_FIRST = {QueueJobStatus.COMPLETED, QueueJobStatus.FAILED}

RedisClientFactory = Callable[[RedisInstanceConfig], Any]


def parse_redis_instances(value: str) -> list[RedisInstanceConfig]:
    """Parse the legacy ``name:host:port:password,...`` format."""
    instances = []
    for entry in value.split(","):
        entry = entry.strip()
        if not entry:
            continue
        parts = entry.split(":")
        try:
            port = int(parts[2]) if len(parts) > 2 and parts[2] else 6379
        except ValueError as exc:
            raise ProviderConnectionError(
                f"Invalid Redis port in instance {parts[0]!r}", {"instance": parts[0]}
            ) from exc
        instances.append(
            RedisInstanceConfig(
                name=parts[0] or "default",
                host=parts[1] if len(parts) > 1 and parts[1] else "localhost",
                port=port,
                password=parts[3] if len(parts) > 3 and parts[3] else None,
            )
        )
    return instances


class BullMQProvider:
    """Queue provider for BullMQ queues stored in one or more Redis instances."""

    type = QueueProviderType.BULLMQ
    capabilities = ProviderCapabilities(
        supports_delayed_jobs=True,
        supports_job_retry=True,
        supports_priority=True,
        supports_dead_letter=False,
        supports_job_progress=True,
        supports_multiple_queues=True,
    )

    def __init__(
        self,
        *,
        client_factory: RedisClientFactory | None = None,
        connect_timeout: float = 5.0,
        command_timeout: float = 10.0,
        key_prefix: str = DEFAULT_KEY_PREFIX,
        environ: Mapping[str, str] | None = None,
    ) -> None:
        self._client_factory = client_factory or self._default_client
        self._connect_timeout = connect_timeout
        self._command_timeout = command_timeout
        self._prefix = key_prefix
        self._environ = environ if environ is not None else os.environ
        self._clients: dict[str, Any] = {}
        self._connected = False

    def _default_client(self, instance: RedisInstanceConfig) -> aioredis.Redis:
        return aioredis.Redis(
            host=instance.host,
            port=instance.port,
            password=instance.password,
            db=instance.db or 0,
            socket_connect_timeout=self._connect_timeout,
            socket_timeout=self._command_timeout,
            decode_responses=True,
        )

    @property
    def connected(self) -> bool:
        return self._connected

    @property
    def instance_names(self) -> list[str]:
        return list(self._clients)

    def resolve_instances(self, connection: Mapping[str, Any]) -> list[RedisInstanceConfig]:
        """Work out which Redis instances a connection bag points at."""
        try:
            conn = BullMQConnection.model_validate(dict(connection))
        except PydanticValidationError as exc:
            raise ProviderConnectionError(
                "Invalid BullMQ connection configuration", {"error": str(exc)}
            ) from exc

        if isinstance(conn.instances, list) and conn.instances:
            return conn.instances
        if isinstance(conn.instances, str) and conn.instances:
            if ":" in conn.instances:
                return parse_redis_instances(conn.instances)
            # Bare word: name of an env var holding the legacy string
            return parse_redis_instances(self._environ.get(conn.instances, ""))
        if conn.env_var:
            return parse_redis_instances(self._environ.get(conn.env_var, ""))
        return parse_redis_instances(self._environ.get(REDIS_INSTANCES_ENV, ""))

    async def connect(self, connection: Mapping[str, Any]) -> None:
        instances = self.resolve_instances(connection)
        if not instances:
            raise ProviderConnectionError(f"No Redis instances configured in {REDIS_INSTANCES_ENV}")

        clients: dict[str, Any] = {}
        try:
            for instance in instances:
                client = self._client_factory(instance)
                clients[instance.name] = client
                await client.ping()
        except _IO_ERRORS as exc:
            await self._close_clients(clients)
            raise ProviderConnectionError(
                f"Failed to connect to Redis: {exc}",
                {"instances": [i.name for i in instances]},
            ) from exc

        self._clients = clients
        self._connected = True
        logger.debug("bullmq_connected", instances=list(clients))

    async def disconnect(self) -> None:
        await self._close_clients(self._clients)
        self._clients = {}
        self._connected = False

    async def _close_clients(self, clients: Mapping[str, Any]) -> None:
        for name, client in clients.items():
            try:
                await client.aclose()
            except _IO_ERRORS as exc:
                logger.warning("bullmq_close_failed", instance=name, error=str(exc))

    async def is_healthy(self) -> bool:
        if not self._connected or not self._clients:
            return False
        try:
            for client in self._clients.values():
                await client.ping()
        except Exception as exc:
            logger.warning("bullmq_health_check_failed", error=str(exc))
            return False
        return True

    def _client(self, instance: str | None) -> tuple[str, Any]:
        if not self._connected:
            raise ProviderConnectionError("BullMQ provider not connected")
        if instance is None:
            name = next(iter(self._clients), None)
            if name is None:
                raise ProviderConnectionError("No BullMQ instances available")
            return name, self._clients[name]
        if instance not in self._clients:
            raise ProviderError(f"Unknown BullMQ instance: {instance}", {"instance": instance})
        return instance, self._clients[instance]

    def _key(self, queue: str, suffix: str) -> str:
        return f"{self._prefix}:{queue}:{suffix}"

    async def discover_queues(self, instance: str | None = None) -> list[str]:
        """Find queue names by scanning for ``bull:<queue>:id`` keys."""
        _, client = self._client(instance)
        head, tail = f"{self._prefix}:", ":id"
        names = set()
        try:
            async for key in client.scan_iter(match=f"{head}*{tail}", count=100):
                inner = key[len(head):-len(tail)]
                if inner and ":" not in inner:
                    names.add(inner)
        except _IO_ERRORS as exc:
            raise ProviderConnectionError(f"Failed to scan queues: {exc}") from exc
        return sorted(names)

    async def _count(self, client: Any, key: str) -> int:
        kind = await client.type(key)
        if kind == "list":
            return int(await client.llen(key))
        if kind == "zset":
            return int(await client.zcard(key))
        return 0

    async def get_queue_stats(self, queue: str, instance: str | None = None) -> QueueInfo:
        name, client = self._client(instance)
        try:
            stats = QueueStats(
                waiting=await self._count(client, self._key(queue, "wait"))
                + await self._count(client, self._key(queue, "prioritized")),
                active=await self._count(client, self._key(queue, "active")),
                completed=await self._count(client, self._key(queue, "completed")),
                failed=await self._count(client, self._key(queue, "failed")),
                delayed=await self._count(client, self._key(queue, "delayed")),
            )
            paused = bool(await client.exists(self._key(queue, "paused")))
        except _IO_ERRORS as exc:
            raise ProviderConnectionError(
                f"Failed to fetch queue stats for {queue}: {exc}", {"queue": queue, "instance": name}
            ) from exc

        return QueueInfo(
            name=queue,
            provider=name,
            provider_type=self.type,
            stats=stats,
            paused=paused,
            metadata={"failure_rate": stats.failure_rate, "total_jobs": stats.total},
        )

    async def list_queues(self) -> list[QueueInfo]:
        queues: list[QueueInfo] = []
        for instance in list(self._clients):
            try:
                for queue in await self.discover_queues(instance):
                    queues.append(await self.get_queue_stats(queue, instance))
            except ProviderConnectionError as exc:
                logger.error("bullmq_list_queues_failed", instance=instance, error=exc.message)
        return queues

    async def _job_ids(self, client: Any, key: str, status: QueueJobStatus, limit: int) -> list[str]:
        kind = await client.type(key)
        if kind == "list":
            return list(await client.lrange(key, 0, limit - 1))
        if kind == "zset":
            if status in _NEWEST_FIRST:
                return list(await client.zrevrange(key, 0, limit - 1))
            return list(await client.zrange(key, 0, limit - 1))
        return []

    async def get_jobs(self, query: QueueQuery) -> list[Job]:
        if not query.queue:
            raise ProviderError("Queue name is required for BullMQ job query")

        instance, client = self._client(query.provider_options.get("instance"))
        status = query.status or QueueJobStatus.WAITING
        key = self._key(query.queue, _STATUS_KEYS[status])

        jobs: list[Job] = []
        try:
            job_ids = await self._job_ids(client, key, status, query.limit)
            for job_id in job_ids[: query.limit]:
                raw = await client.hgetall(self._key(query.queue, job_id))
                if raw:
                    jobs.append(self._normalize_job(job_id, raw, query.queue, instance, status))
        except _IO_ERRORS as exc:
            raise ProviderConnectionError(
                f"Failed to fetch jobs for queue {query.queue}: {exc}",
                {"queue": query.queue, "instance": instance},
            ) from exc
        return jobs

    def _normalize_job(
        self,
        job_id: str,
        raw: Mapping[str, Any],
        queue: str,
        instance: str,
        status: QueueJobStatus,
    ) -> Job:
        stacktrace = _json_or_raw(raw.get("stacktrace"))
        if isinstance(stacktrace, list):
            stacktrace = stacktrace[0] if stacktrace else None
        opts = _json_or_raw(raw.get("opts"))
        failed_reason = raw.get("failedReason") or None
        timestamp = normalize_timestamp(raw.get("timestamp"))
        delay = _as_int(raw.get("delay"))

        return Job(
            id=str(job_id),
            queue=queue,
            provider=instance,
            status=status,
            data=_json_or_raw(raw.get("data")),
            name=raw.get("name") or None,
            created_at=timestamp,
            processed_at=normalize_timestamp(raw.get("processedOn")),
            finished_at=normalize_timestamp(raw.get("finishedOn")),
            failed_at=normalize_timestamp(raw.get("finishedOn")) if failed_reason else None,
            scheduled_for=(
                normalize_timestamp(int(timestamp.timestamp() * 1000) + delay)
                if status == QueueJobStatus.DELAYED and timestamp and delay
                else None
            ),
            attempts=_as_int(raw.get("attemptsMade") or raw.get("atm")),
            error=failed_reason,
            stacktrace=stacktrace,
            progress=_json_or_raw(raw.get("progress")),
            provider_metadata={
                k: v
                for k, v in {
                    "delay": delay or None,
                    "priority": opts.get("priority") if isinstance(opts, dict) else None,
                    "returnValue": _json_or_raw(raw.get("returnvalue")),
                }.items()
                if v is not None
            },
        )


class BullProvider(BullMQProvider):
    """Bull (v3) queues share BullMQ's key layout."""

    type = QueueProviderType.BULL


def _json_or_raw(value: Any) -> Any:
    if not isinstance(value, str):
        return value
    try:
        return json.loads(value)
    except ValueError:
        return value


def _as_int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0
