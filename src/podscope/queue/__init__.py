from __future__ import annotations

from podscope.queue.base import ProviderCapabilities, QueueProvider
from podscope.queue.bullmq import BullMQProvider, BullProvider
from podscope.queue.memory import InMemoryQueueProvider
from podscope.queue.models import Job, QueueInfo, QueueQueryResult, QueueStats
from podscope.queue.registry import (
    ProviderStatus,
    QueueProviderRegistry,
    create_provider,
    parse_queue_query_ref,
)

__all__ = [
    "BullMQProvider",
    "BullProvider",
    "InMemoryQueueProvider",
    "Job",
    "ProviderCapabilities",
    "ProviderStatus",
    "QueueInfo",
    "QueueProvider",
    "QueueProviderRegistry",
    "QueueQueryResult",
    "QueueStats",
    "create_provider",
    "parse_queue_query_ref",
]
