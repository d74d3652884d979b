from __future__ import annotations

import asyncio
import itertools
from datetime import datetime, timezone
from typing import Any, Mapping

from podscope.config.schema import QueueJobStatus, QueueProviderType, QueueQuery
from podscope.core.errors import ProviderConnectionError, ProviderError
from podscope.queue.base import ProviderCapabilities
from podscope.queue.models import Job, QueueInfo, QueueStats, normalize_timestamp


class InMemoryQueueProvider:
    """
    Process-local queue provider for local development and tests.

    The connection bag may seed queues:
        {"queues": {"emails": [{"id": "1", "status": "failed", "data": {...}}]}}
    """

    type = QueueProviderType.MEMORY
    capabilities = ProviderCapabilities(
        supports_delayed_jobs=True,
        supports_job_progress=True,
        supports_multiple_queues=True,
    )

    name = "memory"

    def __init__(self) -> None:
        self._queues: dict[str, list[Job]] = {}
        self._lock = asyncio.Lock()
        self._ids = itertools.count(1)
        self._connected = False
        self.healthy = True

    async def connect(self, connection: Mapping[str, Any]) -> None:
        seed = connection.get("queues", {})
        if not isinstance(seed, Mapping):
            raise ProviderConnectionError("In-memory provider 'queues' must be a mapping")
        queues: dict[str, list[Job]] = {}
        for queue, jobs in seed.items():
            if jobs is not None and not isinstance(jobs, list):
                raise ProviderConnectionError(f"Seed jobs for queue {queue} must be a list")
            queues[str(queue)] = [self._job_from_seed(str(queue), raw) for raw in jobs or []]
        self._queues = queues
        self._connected = True

    async def disconnect(self) -> None:
        self._connected = False

    async def is_healthy(self) -> bool:
        return self._connected and self.healthy

    def _job_from_seed(self, queue: str, raw: Any) -> Job:
        if not isinstance(raw, Mapping):
            raise ProviderConnectionError(f"Seed job in queue {queue} must be a mapping")
        try:
            status = QueueJobStatus(raw.get("status", QueueJobStatus.WAITING))
            attempts = int(raw.get("attempts", 0))
        except (TypeError, ValueError) as exc:
            raise ProviderConnectionError(f"Invalid seed job in queue {queue}: {exc}") from exc
        return Job(
            id=str(raw.get("id") or next(self._ids)),
            queue=queue,
            provider=self.name,
            status=status,
            data=raw.get("data"),
            name=raw.get("name"),
            created_at=normalize_timestamp(raw.get("timestamp")) or datetime.now(timezone.utc),
            error=raw.get("error"),
            attempts=attempts,
        )

    async def enqueue(
        self,
        queue: str,
        data: Any,
        *,
        status: QueueJobStatus = QueueJobStatus.WAITING,
        name: str | None = None,
        error: str | None = None,
    ) -> Job:
        async with self._lock:
            job = Job(
                id=str(next(self._ids)),
                queue=queue,
                provider=self.name,
                status=status,
                data=data,
                name=name,
                created_at=datetime.now(timezone.utc),
                error=error,
            )
            self._queues.setdefault(queue, []).append(job)
        return job

    def size(self, queue: str) -> int:
        return len(self._queues.get(queue, []))

    def _require_connected(self) -> None:
        if not self._connected:
            raise ProviderConnectionError("In-memory provider not connected")

    async def get_queue_stats(self, queue: str, instance: str | None = None) -> QueueInfo:
        self._require_connected()
        if queue not in self._queues:
            raise ProviderError(f"Queue {queue} not found", {"queue": queue})
        counts = {status: 0 for status in QueueJobStatus}
        for job in self._queues[queue]:
            counts[job.status] += 1
        return QueueInfo(
            name=queue,
            provider=self.name,
            provider_type=self.type,
            stats=QueueStats(**{str(status): count for status, count in counts.items()}),
        )

    async def list_queues(self) -> list[QueueInfo]:
        self._require_connected()
        return [await self.get_queue_stats(queue) for queue in sorted(self._queues)]

    async def get_jobs(self, query: QueueQuery) -> list[Job]:
        self._require_connected()
        if not query.queue:
            raise ProviderError("Queue name is required for job query")
        status = query.status or QueueJobStatus.WAITING
        jobs = [job for job in self._queues.get(query.queue, []) if job.status == status]
        return jobs[: query.limit]
