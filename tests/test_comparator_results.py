"""Unit tests for Comparator results: presence, performance, errors, routes.

Tests cover:
- Missing response verdicts
- Performance comparison and its discrepancy threshold
- Failures converted to COMPARISON_ERROR results
- Route exclusions selected by request path
- End-to-end comparison scenarios
"""

import logging

import pytest

from response_parity import comparator as comparator_module
from response_parity.comparator import Comparator, compare_responses
from response_parity.models import (
    ArrayOrderHandling,
    DiscrepancySeverity,
    DiscrepancyType,
    EquivalencePolicy,
    MatchVerdict,
)
from tests.conftest import make_json_response, make_response


class TestMissingResponses:
    """Tests for absent responses."""

    @pytest.mark.parametrize(
        "left, right, verdict, summary",
        [
            (None, None, MatchVerdict.BOTH_MISSING, "Both responses are missing"),
            (None, make_response(), MatchVerdict.LEFT_MISSING, "Left response is missing"),
            (make_response(), None, MatchVerdict.RIGHT_MISSING, "Right response is missing"),
        ],
    )
    def test_missing_verdicts(self, comparator, left, right, verdict, summary):
        result = comparator.compare(left, right, "req-1")

        assert result.verdict == verdict
        assert result.summary == summary
        assert result.discrepancies == ()
        assert result.performance is None
        assert result.status_code_match is False
        assert result.body_match is False
        assert result.correlation_id == "req-1"


class TestResultFields:
    def test_correlation_id_copied(self, comparator):
        result = comparator.compare(make_response(), make_response(), "abc-123")
        assert result.correlation_id == "abc-123"

    def test_timestamp_is_utc(self, comparator):
        result = comparator.compare(make_response(), make_response(), "req-1")
        assert result.timestamp.utcoffset().total_seconds() == 0

    def test_result_serializes(self, comparator):
        left = make_json_response({"a": 1}, status_code=200)
        right = make_json_response({"a": 2}, status_code=500)

        data = comparator.compare(left, right, "req-1").model_dump(mode="json")

        assert data["verdict"] == "critical_differences"
        assert data["discrepancies"][0]["type"] == "status_code"
        assert data["discrepancies"][0]["severity"] == "critical"

    def test_policy_property(self):
        policy = EquivalencePolicy(exclude_fields=("id",))
        assert Comparator(policy).policy is policy
        assert Comparator().policy == EquivalencePolicy()


class TestPerformance:
    """Tests for response time comparison."""

    def test_performance_recorded(self, comparator):
        left = make_response(response_time_ms=120.0)
        right = make_response(response_time_ms=80.0)

        performance = comparator.compare(left, right, "req-1").performance

        assert performance.left_response_time_ms == 120.0
        assert performance.right_response_time_ms == 80.0
        assert performance.time_difference_ms == 40.0
        assert performance.faster_system == "right"

    def test_tie_goes_to_left(self, comparator):
        left = make_response(response_time_ms=50.0)
        right = make_response(response_time_ms=50.0)

        assert comparator.compare(left, right, "req-1").performance.faster_system == "left"

    def test_large_difference_is_minor_discrepancy(self, comparator):
        left = make_response(response_time_ms=10.0)
        right = make_response(response_time_ms=1500.0)

        result = comparator.compare(left, right, "req-1")

        assert len(result.discrepancies) == 1
        discrepancy = result.discrepancies[0]
        assert discrepancy.type == DiscrepancyType.PERFORMANCE
        assert discrepancy.severity == DiscrepancySeverity.MINOR
        assert discrepancy.field == "ResponseTime"
        assert discrepancy.left_value == "10ms"
        assert discrepancy.right_value == "1500ms"
        assert discrepancy.description == "Significant performance difference: 1490ms"
        assert result.verdict == MatchVerdict.MINOR_DIFFERENCES

    def test_threshold_is_exclusive(self, comparator):
        """A difference of exactly 1000ms is not reported."""
        left = make_response(response_time_ms=0.0)
        right = make_response(response_time_ms=1000.0)

        assert comparator.compare(left, right, "req-1").discrepancies == ()

    def test_fractional_times_kept(self, comparator):
        left = make_response(response_time_ms=0.5)
        right = make_response(response_time_ms=1200.75)

        discrepancy = comparator.compare(left, right, "req-1").discrepancies[0]

        assert discrepancy.left_value == "0.5ms"
        assert discrepancy.right_value == "1200.75ms"

    def test_performance_comes_last(self, comparator):
        left = make_json_response({"a": "x"}, response_time_ms=0.0)
        right = make_json_response({"a": "y"}, response_time_ms=5000.0)

        result = comparator.compare(left, right, "req-1")

        assert [d.type for d in result.discrepancies] == [
            DiscrepancyType.STRING_VALUE,
            DiscrepancyType.PERFORMANCE,
        ]


class TestComparisonError:
    """Tests for unexpected failures inside the comparison."""

    def test_error_becomes_verdict(self, comparator, monkeypatch, caplog):
        def explode(*args, **kwargs):
            raise RuntimeError("boom")

        monkeypatch.setattr(comparator_module, "diff_documents", explode)

        with caplog.at_level(logging.ERROR, logger="response_parity.comparator"):
            result = comparator.compare(
                make_json_response({"a": 1}), make_json_response({"a": 1}), "req-9"
            )

        assert result.verdict == MatchVerdict.COMPARISON_ERROR
        assert result.summary == "Comparison failed: boom"
        assert result.correlation_id == "req-9"
        assert result.discrepancies == ()
        assert "req-9" in caplog.text

    def test_parse_failure_is_not_an_error(self, comparator):
        """Unparseable JSON degrades to text comparison instead of failing."""
        left = make_response(body=b"not json")
        right = make_response(body=b"not json either")

        result = comparator.compare(left, right, "req-1")

        assert result.verdict == MatchVerdict.CRITICAL_DIFFERENCES


class TestRouteExclusions:
    """Tests for per-route excluded fields."""

    @pytest.fixture
    def route_comparator(self) -> Comparator:
        return Comparator(
            EquivalencePolicy(
                exclude_fields=("_id",),
                route_exclude_fields={"/api/v1/entries": ("sysTime",)},
            )
        )

    def test_route_exclusion_applies_on_matching_path(self, route_comparator):
        left = make_json_response({"_id": "1", "sysTime": "a", "sgv": 100})
        right = make_json_response({"_id": "2", "sysTime": "b", "sgv": 100})

        result = route_comparator.compare(left, right, "req-1", "/API/v1/entries.json")

        assert result.verdict == MatchVerdict.PERFECT

    def test_route_exclusion_skipped_on_other_path(self, route_comparator):
        left = make_json_response({"_id": "1", "sysTime": "a"})
        right = make_json_response({"_id": "2", "sysTime": "b"})

        result = route_comparator.compare(left, right, "req-1", "/api/v1/treatments")

        assert [d.field for d in result.discrepancies] == ["sysTime"]

    def test_no_request_path(self, route_comparator):
        left = make_json_response({"_id": "1", "sysTime": "a"})
        right = make_json_response({"_id": "2", "sysTime": "b"})

        result = route_comparator.compare(left, right, "req-1")

        assert [d.field for d in result.discrepancies] == ["sysTime"]

    def test_base_policy_unchanged(self, route_comparator):
        route_comparator.compare(make_response(), make_response(), "req-1", "/api/v1/entries")
        assert route_comparator.policy.exclude_fields == ("_id",)


class TestScenarios:
    """End-to-end comparisons of whole responses."""

    def test_identical_objects(self, comparator):
        result = comparator.compare(
            make_json_response({"a": 1, "b": 2}), make_json_response({"a": 1, "b": 2}), "req-1"
        )

        assert result.verdict == MatchVerdict.PERFECT
        assert result.discrepancies == ()
        assert result.summary == "Responses match perfectly"

    def test_superset_allowed(self, comparator):
        result = comparator.compare(
            make_json_response({"a": 1}), make_json_response({"a": 1, "b": 2}), "req-1"
        )

        assert result.verdict == MatchVerdict.PERFECT

    def test_superset_rejected(self, strict_comparator):
        result = strict_comparator.compare(
            make_json_response({"a": 1}), make_json_response({"a": 1, "b": 2}), "req-1"
        )

        assert len(result.discrepancies) == 1
        assert result.discrepancies[0].type == DiscrepancyType.JSON_STRUCTURE
        assert result.discrepancies[0].field == "b"
        assert result.verdict == MatchVerdict.CRITICAL_DIFFERENCES

    def test_numeric_within_tolerance(self, comparator):
        result = comparator.compare(
            make_json_response({"sgv": 100}), make_json_response({"sgv": 100.005}), "req-1"
        )

        assert result.verdict == MatchVerdict.PERFECT

    def test_shorter_array(self, comparator):
        result = comparator.compare(
            make_json_response({"items": [1, 2, 3]}), make_json_response({"items": [1, 2]}), "req-1"
        )

        assert len(result.discrepancies) == 1
        assert result.discrepancies[0].type == DiscrepancyType.ARRAY_LENGTH
        assert result.discrepancies[0].severity == DiscrepancySeverity.MAJOR
        assert result.discrepancies[0].field == "items"
        assert result.verdict == MatchVerdict.MAJOR_DIFFERENCES

    def test_null_and_empty_body(self, comparator):
        result = comparator.compare(make_response(body=None), make_response(body=b""), "req-1")

        assert result.body_match is True

    def test_sorted_arrays(self):
        comparator = Comparator(EquivalencePolicy(array_order_handling=ArrayOrderHandling.SORTED))
        left = make_json_response({"tags": ["b", "a", "c"]})
        right = make_json_response({"tags": ["c", "b", "a"]})

        assert comparator.compare(left, right, "req-1").verdict == MatchVerdict.PERFECT

    def test_mixed_severities_summary(self, comparator):
        left = make_json_response({"a": "x", "n": 1, "list": [1]}, status_code=200)
        right = make_json_response({"a": "y", "n": 2, "list": [1, 2]}, status_code=201)

        result = comparator.compare(left, right, "req-1")

        assert result.summary == "Critical differences found: 1 critical, 2 major, 1 minor"


class TestDeterminism:
    def test_repeated_calls_identical(self, comparator):
        left = make_json_response({"a": [3, 1, {"b": "x"}], "t": "2024-01-01T00:00:00Z"})
        right = make_json_response({"a": [1, 3, {"b": "y"}], "t": "2024-01-01T00:00:05Z"})

        first = comparator.compare(left, right, "req-1", "/api")
        second = comparator.compare(left, right, "req-1", "/api")

        assert first.discrepancies == second.discrepancies
        assert first.verdict == second.verdict
        assert first.summary == second.summary


class TestCompareResponses:
    def test_module_function(self):
        result = compare_responses(
            make_json_response({"a": 1}),
            make_json_response({"a": 1, "b": 2}),
            "req-1",
            policy=EquivalencePolicy(allow_superset_responses=False),
        )

        assert result.verdict == MatchVerdict.CRITICAL_DIFFERENCES

    def test_default_policy(self):
        result = compare_responses(make_json_response({"a": 1}), make_json_response({"a": 1}), "r")
        assert result.verdict == MatchVerdict.PERFECT
