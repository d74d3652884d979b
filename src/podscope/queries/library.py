"""
Query library: shipped base queries overlaid with user-authored overrides.

Precedence is explicit and two-level: for each namespace, user entries
shadow base entries with the same query name; namespaces that only exist
in the base library are copied verbatim. Neither input is mutated.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Mapping

import structlog

from podscope.config.schema import QueryLibrary, is_versioned_query_name
from podscope.core.errors import InvalidQueryNameError, ValidationError
from podscope.queries.resolver import (
    ResolvedQuery,
    get_namespace_queries,
    get_namespaces,
    query_exists,
    resolve_queries,
    resolve_query,
)

if TYPE_CHECKING:
    from podscope.storage import DashboardStorage

logger = structlog.get_logger()


def merge_libraries(
    base: Mapping[str, Mapping[str, str]],
    user: Mapping[str, Mapping[str, str]],
) -> QueryLibrary:
    """Copy ``base`` and overlay ``user`` on it, namespace by namespace. User wins."""
    merged: QueryLibrary = {namespace: dict(queries) for namespace, queries in base.items()}
    for namespace, queries in user.items():
        merged.setdefault(namespace, {}).update(queries)
    return merged


def validate_query_name(name: str) -> None:
    """Raise InvalidQueryNameError unless ``name`` ends with _v<major>-<minor>-<patch>."""
    if not is_versioned_query_name(name):
        raise InvalidQueryNameError(name)


class QueryLibraryManager:
    """
    Read/write access to the merged query library.

    Writes go to the user-override library in storage and are persisted
    immediately; the merged view is rebuilt on every read so removing an
    override reverts to the base entry.
    """

    def __init__(self, storage: DashboardStorage) -> None:
        self._storage = storage

    @property
    def base_queries(self) -> QueryLibrary:
        return self._storage.load_base_queries()

    @property
    def user_queries(self) -> QueryLibrary:
        return self._storage.load_user_queries()

    @property
    def library(self) -> QueryLibrary:
        return merge_libraries(self.base_queries, self.user_queries)

    def add_query(self, namespace: str, name: str, template: str) -> None:
        """Add or overwrite a user query. The name must carry a version suffix."""
        if not namespace or "." in namespace:
            raise ValidationError(
                f"Invalid query namespace {namespace!r}", {"namespace": namespace}
            )
        validate_query_name(name)
        if "." in name:
            raise ValidationError(f"Query name {name!r} must not contain '.'", {"query": name})
        self._storage.save_user_query(namespace, name, template)
        logger.info("query_saved", namespace=namespace, query=name)

    def remove_query(self, namespace: str, name: str) -> bool:
        """Remove a user override. Returns False if there was none."""
        removed = self._storage.delete_user_query(namespace, name)
        if removed:
            logger.info("query_removed", namespace=namespace, query=name)
        return removed

    def update_queries(self, queries: Mapping[str, Mapping[str, str]]) -> None:
        """Replace the whole user-override library."""
        for namespace_queries in queries.values():
            for name in namespace_queries:
                validate_query_name(name)
        self._storage.save_user_queries({ns: dict(q) for ns, q in queries.items()})

    def namespaces(self) -> list[str]:
        return get_namespaces(self.library)

    def get_queries(self, namespace: str) -> dict[str, str]:
        return get_namespace_queries(namespace, self.library)

    def exists(self, reference: str) -> bool:
        return query_exists(reference, self.library)

    def resolve(self, reference: str, variables: Mapping[str, Any] | None = None) -> ResolvedQuery:
        return resolve_query(reference, self.library, variables)

    def resolve_many(
        self, references: list[str], variables: Mapping[str, Any] | None = None
    ) -> list[ResolvedQuery]:
        return resolve_queries(references, self.library, variables)
