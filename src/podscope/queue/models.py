from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from podscope.config.schema import QueueJobStatus, QueueProviderType


def normalize_timestamp(value: Any) -> datetime | None:
    """Convert epoch milliseconds, ISO strings or datetimes to an aware UTC datetime."""
    if value is None or value == "" or value == 0:
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    if isinstance(value, str):
        if value.lstrip("-").isdigit():
            return normalize_timestamp(int(value))
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    return None


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


@dataclass(slots=True)
class QueueStats:
    waiting: int = 0
    active: int = 0
    completed: int = 0
    failed: int = 0
    delayed: int = 0

    @property
    def total(self) -> int:
        return self.waiting + self.active + self.completed + self.failed + self.delayed

    @property
    def failure_rate(self) -> float:
        """Failed jobs as a percentage of all jobs, rounded to two places."""
        if not self.total:
            return 0.0
        return round(self.failed / self.total * 100, 2)

    def to_dict(self) -> dict[str, int]:
        return {
            "waiting": self.waiting,
            "active": self.active,
            "completed": self.completed,
            "failed": self.failed,
            "delayed": self.delayed,
        }


@dataclass(slots=True)
class QueueInfo:
    """Queue descriptor normalized across providers."""

    name: str
    provider: str
    provider_type: QueueProviderType
    stats: QueueStats = field(default_factory=QueueStats)
    paused: bool = False
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "provider": self.provider,
            "providerType": str(self.provider_type),
            "stats": self.stats.to_dict(),
            "paused": self.paused,
            "metadata": dict(self.metadata),
        }


@dataclass(slots=True)
class Job:
    """Job record normalized across providers."""

    id: str
    queue: str
    provider: str
    status: QueueJobStatus
    data: Any = None
    name: str | None = None
    created_at: datetime | None = None
    processed_at: datetime | None = None
    finished_at: datetime | None = None
    failed_at: datetime | None = None
    scheduled_for: datetime | None = None
    attempts: int = 0
    error: str | None = None
    stacktrace: str | None = None
    progress: Any = None
    provider_metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def summary(self) -> str:
        """Short payload summary for list views."""
        if self.data is None:
            return ""
        text = self.data if isinstance(self.data, str) else json.dumps(self.data, default=str)
        return text if len(text) <= 80 else text[:77] + "..."

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "id": self.id,
            "queue": self.queue,
            "provider": self.provider,
            "status": str(self.status),
            "name": self.name,
            "data": self.data,
            "createdAt": _iso(self.created_at),
            "processedAt": _iso(self.processed_at),
            "finishedAt": _iso(self.finished_at),
            "failedAt": _iso(self.failed_at),
            "scheduledFor": _iso(self.scheduled_for),
            "attempts": self.attempts,
            "error": self.error,
            "stacktrace": self.stacktrace,
            "progress": self.progress,
            "providerMetadata": dict(self.provider_metadata),
        }
        return {k: v for k, v in payload.items() if v is not None}


@dataclass(slots=True)
class QueueQueryResult:
    """
    Result of a queue query: either a queue listing or a job listing.

    Both shapes carry the provider name, its type and an item count.
    """

    provider: str
    provider_type: QueueProviderType
    count: int
    queue: str | None = None
    queues: list[QueueInfo] | None = None
    jobs: list[Job] | None = None

    @property
    def is_job_list(self) -> bool:
        return self.jobs is not None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "provider": self.provider,
            "providerType": str(self.provider_type),
        }
        if self.jobs is not None:
            payload["queue"] = self.queue
            payload["jobs"] = [job.to_dict() for job in self.jobs]
        else:
            payload["queues"] = [queue.to_dict() for queue in self.queues or []]
        payload["count"] = self.count
        return payload
