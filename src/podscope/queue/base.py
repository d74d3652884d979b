from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Protocol

from podscope.config.schema import QueueProviderType, QueueQuery
from podscope.queue.models import Job, QueueInfo


@dataclass(frozen=True)
class ProviderCapabilities:
    """Features a queue backend supports."""

    supports_delayed_jobs: bool = False
    supports_job_retry: bool = False
    supports_priority: bool = False
    supports_dead_letter: bool = False
    supports_job_progress: bool = False
    supports_multiple_queues: bool = True


class QueueProvider(Protocol):
    """
    Contract every job-queue backend driver implements.

    - connect raises ProviderConnectionError on an unreachable or invalid endpoint
    - disconnect is idempotent
    - is_healthy never raises
    """

    type: QueueProviderType
    capabilities: ProviderCapabilities

    async def connect(self, connection: Mapping[str, Any]) -> None:
        ...

    async def disconnect(self) -> None:
        ...

    async def is_healthy(self) -> bool:
        ...

    async def list_queues(self) -> list[QueueInfo]:
        ...

    async def get_queue_stats(self, queue: str, instance: str | None = None) -> QueueInfo:
        ...

    async def get_jobs(self, query: QueueQuery) -> list[Job]:
        ...


def format_queue_name(name: str, provider: str) -> str:
    return f"{provider}:{name}"
