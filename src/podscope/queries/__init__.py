"""Query library and reference resolution."""

from podscope.queries.library import (
    QueryLibraryManager,
    merge_libraries,
    validate_query_name,
)
from podscope.queries.resolver import (
    QueryRef,
    ResolvedQuery,
    VariableValidation,
    extract_variables,
    filter_query_refs,
    parse_query_ref,
    resolve_queries,
    resolve_query,
    substitute_variables,
    validate_variables,
)

__all__ = [
    "QueryLibraryManager",
    "QueryRef",
    "ResolvedQuery",
    "VariableValidation",
    "extract_variables",
    "filter_query_refs",
    "merge_libraries",
    "parse_query_ref",
    "resolve_queries",
    "resolve_query",
    "substitute_variables",
    "validate_query_name",
    "validate_variables",
]
