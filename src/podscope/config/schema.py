"""
Dashboard configuration schema.

Pydantic models for the on-disk dashboard configuration. Field aliases
keep the camelCase keys used by the dashboard files (``queueProviders``,
``displayName``) while Python code uses snake_case attributes.

Nested libraries:
    queries.<namespace>.<queryName_vX-Y-Z>       -> PromQL template string
    queueQueries.<namespace>.<queryName_vX-Y-Z>  -> QueueQuery
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

QUERY_NAME_PATTERN = re.compile(r"_v\d+-\d+-\d+$")

DEFAULT_QUEUE_LIMIT = 20
MAX_QUEUE_LIMIT = 1000

QueryLibrary = dict[str, dict[str, str]]


class QueueProviderType(StrEnum):
    """Supported queue provider types."""

    BULLMQ = "bullmq"
    BULL = "bull"
    RABBITMQ = "rabbitmq"
    SQS = "sqs"
    KAFKA = "kafka"
    GCP_PUBSUB = "gcp-pubsub"
    AZURE_SERVICE_BUS = "azure-service-bus"
    MEMORY = "memory"


class QueueJobStatus(StrEnum):
    """Job states a queue query can filter on."""

    WAITING = "waiting"
    ACTIVE = "active"
    COMPLETED = "completed"
    FAILED = "failed"
    DELAYED = "delayed"


# Older dashboards use the provider-neutral names
_STATUS_ALIASES = {
    "pending": QueueJobStatus.WAITING,
    "processing": QueueJobStatus.ACTIVE,
}


class ChangeType(StrEnum):
    """Kinds of configuration edit recorded in the history."""

    LAYOUT_EDIT = "layout-edit"
    QUERY_EDIT = "query-edit"
    PAGE_ADD = "page-add"
    PAGE_REMOVE = "page-remove"
    IMPORT = "import"
    TEMPLATE = "template"
    RESET = "reset"
    EDIT = "edit"
    MANUAL = "manual"


def is_versioned_query_name(name: str) -> bool:
    """Check that a query name ends with _v<major>-<minor>-<patch>."""
    return bool(QUERY_NAME_PATTERN.search(name))


class _ConfigModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class RedisInstanceConfig(_ConfigModel):
    """Direct Redis connection for the BullMQ driver."""

    name: str = "default"
    host: str
    port: int = 6379
    password: str | None = None
    db: int | None = None


class BullMQConnection(_ConfigModel):
    """
    BullMQ connection parameters.

    Supports three modes:
    1. Direct instances list: [{name, host, port, password}]
    2. Env var reference: {envVar: "REDIS_INSTANCES"} or {useEnv: true}
    3. Legacy string: "name:host:port:password,..."
    """

    instances: list[RedisInstanceConfig] | str | None = None
    env_var: str | None = Field(default=None, alias="envVar")
    use_env: bool = Field(default=False, alias="useEnv")


class QueueProviderConfig(_ConfigModel):
    """
    A named queue provider: type tag, display name, opaque connection bag.

    ``type`` is kept as a plain string so a dashboard naming a provider
    without a driver still loads; the registry rejects that one provider.
    """

    type: str = Field(min_length=1)
    display_name: str = Field(alias="displayName")
    connection: dict[str, Any] = Field(default_factory=dict)


class QueueQuery(BaseModel):
    """
    Structured queue query.

    Without ``queue`` the query lists the provider's queues; with it, the
    query lists jobs in that queue. Unknown fields are rejected.
    """

    model_config = ConfigDict(extra="forbid", frozen=True, populate_by_name=True)

    provider: str = Field(min_length=1)
    queue: str | None = None
    status: QueueJobStatus | None = None
    limit: int = Field(default=DEFAULT_QUEUE_LIMIT, ge=1, le=MAX_QUEUE_LIMIT)
    provider_options: dict[str, Any] = Field(default_factory=dict, alias="providerOptions")

    @field_validator("status", mode="before")
    @classmethod
    def _normalize_status(cls, value: Any) -> Any:
        if isinstance(value, str):
            return _STATUS_ALIASES.get(value.lower(), value.lower())
        return value

    @field_validator("queue", mode="before")
    @classmethod
    def _blank_queue_is_absent(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


@dataclass(frozen=True)
class QueueQueryParseResult:
    """Outcome of validating an inbound inline queue query."""

    ok: bool
    query: QueueQuery | None = None
    errors: list[dict[str, Any]] = field(default_factory=list)


def parse_queue_query(data: Any) -> QueueQueryParseResult:
    """Validate an inline queue query payload without raising."""
    if isinstance(data, QueueQuery):
        return QueueQueryParseResult(ok=True, query=data)
    if not isinstance(data, dict):
        return QueueQueryParseResult(
            ok=False,
            errors=[{"loc": [], "msg": "Queue query must be an object", "type": "type_error"}],
        )
    try:
        query = QueueQuery.model_validate(data)
    except PydanticValidationError as exc:
        errors = [
            {"loc": list(err["loc"]), "msg": err["msg"], "type": err["type"]}
            for err in exc.errors()
        ]
        return QueueQueryParseResult(ok=False, errors=errors)
    return QueueQueryParseResult(ok=True, query=query)


class ContainerConfig(_ConfigModel):
    """A single widget placed on the page grid."""

    i: str
    x: int = Field(ge=0)
    y: int = Field(ge=0)
    w: int = Field(ge=1, le=12)
    h: int = Field(ge=1)
    component: str
    config: dict[str, Any] | None = None
    min_w: int | None = Field(default=None, alias="minW")
    min_h: int | None = Field(default=None, alias="minH")
    max_w: int | None = Field(default=None, alias="maxW")
    max_h: int | None = Field(default=None, alias="maxH")
    static: bool | None = None


class PageConfig(_ConfigModel):
    """A dashboard page (tab)."""

    id: str
    name: str
    layout: list[ContainerConfig] = Field(default_factory=list)
    icon: str | None = None


class DashboardConfig(_ConfigModel):
    """Root configuration for the entire dashboard."""

    version: str = "1.0.0"
    queries: QueryLibrary = Field(default_factory=dict)
    kube_queries: dict[str, dict[str, dict[str, Any]]] | None = Field(
        default=None, alias="kubeQueries"
    )
    queue_providers: dict[str, QueueProviderConfig] = Field(
        default_factory=dict, alias="queueProviders"
    )
    queue_queries: dict[str, dict[str, QueueQuery]] = Field(
        default_factory=dict, alias="queueQueries"
    )
    pages: list[PageConfig] = Field(min_length=1)

    def get_page(self, page_id: str) -> PageConfig | None:
        for page in self.pages:
            if page.id == page_id:
                return page
        return None

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DashboardConfig:
        return cls.model_validate(data)
