"""
Query reference resolution.

Widgets never embed PromQL directly; they hold a reference such as
``"clusterMetrics.cpu_usage_v1-0-0"`` (optionally prefixed with
``promQueries.``) plus optional variables. The resolver turns that
reference into the template stored in the merged query library and, when
variables are supplied, substitutes every ``{{name}}`` placeholder.

Resolution does not check the version suffix on query names; that rule is
enforced when queries are written (see podscope.queries.library).
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Iterable, Mapping

import structlog

from podscope.core.errors import (
    MissingVariableError,
    QueryNotFoundError,
    ReferenceFormatError,
)

logger = structlog.get_logger()

PROM_QUERIES_PREFIX = "promQueries."
VARIABLE_PATTERN = re.compile(r"\{\{(\w+)\}\}")

# Literal serializations of absent values that leak into widget configs
SERIALIZED_EMPTY_REFS = frozenset({"{}", "[]", "null", "undefined", "None"})

LibraryView = Mapping[str, Mapping[str, str]]


@dataclass(frozen=True)
class QueryRef:
    """A parsed ``namespace.queryName`` reference."""

    namespace: str
    name: str

    def __str__(self) -> str:
        return f"{self.namespace}.{self.name}"


@dataclass(frozen=True)
class ResolvedQuery:
    """A query template located by reference, optionally substituted."""

    reference: str
    namespace: str
    name: str
    template: str
    variables: tuple[str, ...]
    query: str | None = None

    @property
    def is_substituted(self) -> bool:
        return self.query is not None

    @property
    def text(self) -> str:
        """The substituted query when available, otherwise the raw template."""
        return self.query if self.query is not None else self.template


@dataclass(frozen=True)
class VariableValidation:
    valid: bool
    missing: list[str]


def parse_query_ref(reference: Any) -> QueryRef:
    """
    Parse a query reference into namespace and query name.

    Accepts ``namespace.queryName`` or ``promQueries.namespace.queryName``.

    Raises:
        ReferenceFormatError: If the reference is not a non-empty string made
            of exactly two dot-separated, non-empty parts.
    """
    if not isinstance(reference, str) or not reference.strip():
        raise ReferenceFormatError(reference, 'expected a non-empty string "namespace.queryName"')
    if reference in SERIALIZED_EMPTY_REFS:
        raise ReferenceFormatError(reference, "looks like a serialized empty value")

    clean = reference[len(PROM_QUERIES_PREFIX):] if reference.startswith(PROM_QUERIES_PREFIX) else reference
    parts = clean.split(".")
    if len(parts) != 2:
        raise ReferenceFormatError(
            reference, f'expected "namespace.queryName" but got {len(parts)} parts'
        )
    namespace, name = parts
    if not namespace or not name:
        raise ReferenceFormatError(reference, "namespace and query name must both be non-empty")
    return QueryRef(namespace=namespace, name=name)


def create_query_ref(namespace: str, name: str) -> str:
    return f"{PROM_QUERIES_PREFIX}{namespace}.{name}"


def extract_variables(template: str) -> list[str]:
    """Return the distinct ``{{name}}`` placeholders in first-seen order."""
    seen: dict[str, None] = {}
    for match in VARIABLE_PATTERN.finditer(template):
        seen.setdefault(match.group(1), None)
    return list(seen)


def _has_value(values: Mapping[str, Any], name: str) -> bool:
    value = values.get(name)
    return value is not None and value != ""


def validate_variables(template: str, values: Mapping[str, Any]) -> VariableValidation:
    """Check that every template variable has a value. No substitution happens."""
    missing = [name for name in extract_variables(template) if not _has_value(values, name)]
    return VariableValidation(valid=not missing, missing=missing)


def substitute_variables(template: str, values: Mapping[str, Any]) -> str:
    """
    Replace ``{{name}}`` placeholders with values.

    Placeholders without a value are left untouched and logged; callers that
    need a complete query should use resolve_query, which refuses instead.
    """

    def _replace(match: re.Match[str]) -> str:
        name = match.group(1)
        if _has_value(values, name):
            return str(values[name])
        return match.group(0)

    result = VARIABLE_PATTERN.sub(_replace, template)
    remaining = extract_variables(result)
    if remaining:
        logger.warning("unsubstituted_query_variables", missing=remaining, query=result)
    return result


def resolve_query(
    reference: str,
    library: LibraryView,
    variables: Mapping[str, Any] | None = None,
) -> ResolvedQuery:
    """
    Resolve a query reference against a (merged) query library.

    Args:
        reference: ``namespace.queryName`` or ``promQueries.namespace.queryName``
        library: Mapping of namespace -> query name -> template
        variables: Values for ``{{name}}`` placeholders. When omitted the
            template is returned unsubstituted so callers can defer substitution.

    Raises:
        ReferenceFormatError: Malformed reference
        QueryNotFoundError: No such (namespace, name) in the library
        MissingVariableError: ``variables`` given but incomplete
    """
    try:
        ref = parse_query_ref(reference)
        template = library.get(ref.namespace, {}).get(ref.name)
        if template is None:
            raise QueryNotFoundError(ref.namespace, ref.name, reference=reference)

        names = tuple(extract_variables(template))
        if variables is None:
            return ResolvedQuery(
                reference=reference,
                namespace=ref.namespace,
                name=ref.name,
                template=template,
                variables=names,
            )

        missing = [name for name in names if not _has_value(variables, name)]
        if missing:
            raise MissingVariableError(missing, reference=reference)

        return ResolvedQuery(
            reference=reference,
            namespace=ref.namespace,
            name=ref.name,
            template=template,
            variables=names,
            query=substitute_variables(template, variables),
        )
    except (ReferenceFormatError, QueryNotFoundError, MissingVariableError) as exc:
        logger.warning(
            "query_resolution_failed",
            reference=reference,
            error_type=type(exc).__name__,
            error=exc.message,
        )
        raise


def resolve_queries(
    references: Iterable[str],
    library: LibraryView,
    variables: Mapping[str, Any] | None = None,
) -> list[ResolvedQuery]:
    """Resolve several references; the first failure propagates."""
    resolved = []
    for index, reference in enumerate(references):
        try:
            resolved.append(resolve_query(reference, library, variables))
        except (ReferenceFormatError, QueryNotFoundError, MissingVariableError):
            logger.error("query_resolution_failed_at_index", reference=reference, index=index)
            raise
    return resolved


def filter_query_refs(references: Iterable[Any]) -> list[str]:
    """
    Drop references that cannot possibly resolve before calling resolve_queries.

    Empty strings, non-strings and serialized empty values (``{}``, ``null``,
    ...) are skipped with a warning rather than raised.
    """
    refs = list(references)
    valid: list[str] = []
    for index, ref in enumerate(refs):
        if not isinstance(ref, str) or not ref.strip():
            logger.warning("skipping_invalid_query_ref", ref=ref, index=index, reason="empty or non-string")
            continue
        if ref in SERIALIZED_EMPTY_REFS:
            logger.warning("skipping_invalid_query_ref", ref=ref, index=index, reason="serialized empty value")
            continue
        valid.append(ref)

    if refs and not valid:
        logger.warning("all_query_refs_filtered", original=len(refs))
    elif len(valid) < len(refs):
        logger.warning(
            "query_refs_filtered",
            original=len(refs),
            valid=len(valid),
            filtered=len(refs) - len(valid),
        )
    return valid


def query_exists(reference: str, library: LibraryView) -> bool:
    try:
        ref = parse_query_ref(reference)
    except ReferenceFormatError:
        return False
    return ref.name in library.get(ref.namespace, {})


def get_namespace_queries(namespace: str, library: LibraryView) -> dict[str, str]:
    return dict(library.get(namespace, {}))


def get_namespaces(library: LibraryView) -> list[str]:
    return list(library.keys())
