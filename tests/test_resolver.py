"""Tests for query reference resolution and variable substitution."""

import pytest

from podscope.core.errors import MissingVariableError, QueryNotFoundError, ReferenceFormatError
from podscope.queries.resolver import (
    create_query_ref,
    extract_variables,
    filter_query_refs,
    get_namespace_queries,
    get_namespaces,
    parse_query_ref,
    query_exists,
    resolve_queries,
    resolve_query,
    substitute_variables,
    validate_variables,
)

LIBRARY = {
    "podFilters": {
        "failed_pods_v1-0-0": 'sum(pod_status{namespace="{{namespace}}"})',
    },
    "podMetrics": {
        "cpu_usage_v1-0-0": 'rate(cpu{namespace="{{namespace}}",pod="{{pod}}"}[5m]) / on(pod) cpu_limit{pod="{{pod}}"}',
    },
    "clusterMetrics": {
        "node_count_v1-0-0": "count(kube_node_info)",
    },
    "legacy": {
        "unversioned": "up",
    },
}


class TestExtractVariables:
    def test_first_seen_order_without_duplicates(self):
        template = "{{b}} {{a}} {{b}} {{c}} {{a}}"
        assert extract_variables(template) == ["b", "a", "c"]

    def test_no_placeholders(self):
        assert extract_variables("count(kube_node_info)") == []

    def test_ignores_malformed_placeholders(self):
        assert extract_variables("{{ spaced }} {single} {{ok}}") == ["ok"]


class TestParseQueryRef:
    def test_plain_reference(self):
        ref = parse_query_ref("podFilters.failed_pods_v1-0-0")
        assert (ref.namespace, ref.name) == ("podFilters", "failed_pods_v1-0-0")

    def test_optional_prefix_is_stripped(self):
        ref = parse_query_ref("promQueries.podFilters.failed_pods_v1-0-0")
        assert str(ref) == "podFilters.failed_pods_v1-0-0"

    @pytest.mark.parametrize(
        "reference",
        ["", "   ", "noDot", "a.b.c", ".name", "ns.", None, 42, "{}", "null", "undefined"],
    )
    def test_malformed(self, reference):
        with pytest.raises(ReferenceFormatError):
            parse_query_ref(reference)

    def test_create_query_ref(self):
        ref = create_query_ref("podFilters", "failed_pods_v1-0-0")
        assert ref == "promQueries.podFilters.failed_pods_v1-0-0"
        assert str(parse_query_ref(ref)) == "podFilters.failed_pods_v1-0-0"


class TestResolveQuery:
    def test_failed_pods_scenario(self):
        resolved = resolve_query("podFilters.failed_pods_v1-0-0", LIBRARY, {"namespace": "prod"})
        assert resolved.query == 'sum(pod_status{namespace="prod"})'
        assert resolved.variables == ("namespace",)
        assert resolved.is_substituted

    def test_without_variables_returns_template(self):
        resolved = resolve_query("podFilters.failed_pods_v1-0-0", LIBRARY)
        assert resolved.query is None
        assert resolved.text == resolved.template
        assert resolved.variables == ("namespace",)

    def test_repeated_placeholders_receive_same_value(self):
        resolved = resolve_query(
            "podMetrics.cpu_usage_v1-0-0", LIBRARY, {"namespace": "prod", "pod": "api-1"}
        )
        assert resolved.query.count('pod="api-1"') == 2
        assert "{{" not in resolved.query

    def test_missing_variables_named(self):
        with pytest.raises(MissingVariableError) as exc_info:
            resolve_query("podMetrics.cpu_usage_v1-0-0", LIBRARY, {"namespace": "prod"})
        assert exc_info.value.missing == ["pod"]

    def test_empty_value_counts_as_missing(self):
        with pytest.raises(MissingVariableError) as exc_info:
            resolve_query("podFilters.failed_pods_v1-0-0", LIBRARY, {"namespace": ""})
        assert exc_info.value.missing == ["namespace"]

    def test_unknown_query(self):
        with pytest.raises(QueryNotFoundError) as exc_info:
            resolve_query("podFilters.missing_v1-0-0", LIBRARY)
        assert exc_info.value.namespace == "podFilters"
        assert exc_info.value.name == "missing_v1-0-0"

    def test_unknown_namespace(self):
        with pytest.raises(QueryNotFoundError):
            resolve_query("nope.failed_pods_v1-0-0", LIBRARY)

    def test_malformed_reference(self):
        with pytest.raises(ReferenceFormatError):
            resolve_query("podFilters.failed.pods", LIBRARY)

    def test_unversioned_stored_name_still_resolves(self):
        assert resolve_query("legacy.unversioned", LIBRARY).template == "up"

    def test_deterministic(self):
        first = resolve_query("podFilters.failed_pods_v1-0-0", LIBRARY, {"namespace": "a"})
        second = resolve_query("podFilters.failed_pods_v1-0-0", LIBRARY, {"namespace": "a"})
        assert first == second

    def test_values_are_not_re_expanded(self):
        resolved = resolve_query(
            "podFilters.failed_pods_v1-0-0", LIBRARY, {"namespace": "{{namespace}}x"}
        )
        assert resolved.query == 'sum(pod_status{namespace="{{namespace}}x"})'


class TestResolveQueries:
    def test_each_reference_resolved(self):
        results = resolve_queries(
            ["podFilters.failed_pods_v1-0-0", "clusterMetrics.node_count_v1-0-0"],
            LIBRARY,
            {"namespace": "prod"},
        )
        assert [r.text for r in results] == [
            'sum(pod_status{namespace="prod"})',
            "count(kube_node_info)",
        ]

    def test_first_failure_propagates(self):
        with pytest.raises(QueryNotFoundError):
            resolve_queries(["clusterMetrics.node_count_v1-0-0", "x.y_v1-0-0"], LIBRARY)


class TestValidateVariables:
    def test_empty_values_report_all_missing(self):
        result = validate_variables("{{a}} and {{b}} and {{a}}", {})
        assert not result.valid
        assert result.missing == ["a", "b"]

    def test_complete(self):
        result = validate_variables("{{a}}", {"a": 1})
        assert result.valid
        assert result.missing == []

    def test_no_placeholders_is_valid(self):
        assert validate_variables("up", {}).valid


class TestSubstituteVariables:
    def test_leaves_unknown_placeholders(self):
        assert substitute_variables("{{a}}-{{b}}", {"a": "x"}) == "x-{{b}}"

    def test_non_string_values(self):
        assert substitute_variables("top{{n}}", {"n": 5}) == "top5"


class TestFilterQueryRefs:
    def test_drops_empty_and_serialized_values(self):
        refs = ["podFilters.failed_pods_v1-0-0", "", "  ", "{}", "[]", "null", "undefined", None, 3]
        assert filter_query_refs(refs) == ["podFilters.failed_pods_v1-0-0"]

    def test_all_filtered(self):
        assert filter_query_refs(["", None]) == []


class TestLibraryHelpers:
    def test_query_exists(self):
        assert query_exists("podFilters.failed_pods_v1-0-0", LIBRARY)
        assert not query_exists("podFilters.other_v1-0-0", LIBRARY)
        assert not query_exists("malformed", LIBRARY)

    def test_namespaces(self):
        assert get_namespaces(LIBRARY) == ["podFilters", "podMetrics", "clusterMetrics", "legacy"]
        assert get_namespace_queries("clusterMetrics", LIBRARY) == {
            "node_count_v1-0-0": "count(kube_node_info)"
        }
        assert get_namespace_queries("missing", LIBRARY) == {}
