"""Internal data models for response-parity.

All models use Pydantic v2 and are frozen: a comparison never mutates its
inputs, and results are built once and handed to the caller.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


# =============================================================================
# Captured HTTP Models
# =============================================================================


class CapturedResponse(BaseModel):
    """One HTTP response captured from a target system.

    Header values are arrays to support repeated headers. Header names keep
    whatever case the capturing side produced; lookups are case-insensitive.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    status_code: int = Field(description="HTTP status code")
    headers: dict[str, list[str]] = Field(
        default_factory=dict, description="Response headers (arrays for repeated headers)"
    )
    content_type: str | None = Field(default=None, description="Content-Type, e.g., application/json")
    body: bytes | None = Field(default=None, description="Raw response body")
    response_time_ms: float = Field(default=0.0, description="Response time in milliseconds")
    target: str = Field(default="", description="Optional label of the system that answered")


# =============================================================================
# Equivalence Policy Models
# =============================================================================


class ArrayOrderHandling(str, Enum):
    """How array elements are paired before comparison."""

    STRICT = "strict"  # Index to index
    LOOSE = "loose"  # Order-insensitive (currently paired like STRICT)
    SORTED = "sorted"  # Both sides sorted by string form, then paired


DEFAULT_MAX_RESPONSE_SIZE = 10 * 1024 * 1024


class EquivalencePolicy(BaseModel):
    """Settings that decide when two responses count as equivalent.

    Field names are accepted in snake_case or in the camelCase used by the
    proxy configuration files (``excludeFields``, ``arrayOrderHandling``, ...).
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    exclude_fields: tuple[str, ...] = Field(
        default=(),
        validation_alias=AliasChoices("exclude_fields", "excludeFields"),
        description="Field names skipped at any depth",
    )
    route_exclude_fields: dict[str, tuple[str, ...]] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("route_exclude_fields", "routeExcludeFields"),
        description="Request path prefix -> extra field names to skip",
    )
    allow_superset_responses: bool = Field(
        default=True,
        validation_alias=AliasChoices("allow_superset_responses", "allowSupersetResponses"),
        description="Right side may carry object keys the left side lacks",
    )
    timestamp_tolerance_ms: int = Field(
        default=1000,
        ge=0,
        validation_alias=AliasChoices("timestamp_tolerance_ms", "timestampToleranceMs"),
        description="Allowed difference between timestamp values",
    )
    numeric_precision_tolerance: float = Field(
        default=0.01,
        ge=0,
        validation_alias=AliasChoices("numeric_precision_tolerance", "numericPrecisionTolerance"),
        description="Allowed absolute difference between numbers",
    )
    normalize_field_ordering: bool = Field(
        default=True,
        validation_alias=AliasChoices("normalize_field_ordering", "normalizeFieldOrdering"),
        description="Kept for proxy configuration files; object keys always pair by name",
    )
    array_order_handling: ArrayOrderHandling = Field(
        default=ArrayOrderHandling.STRICT,
        validation_alias=AliasChoices("array_order_handling", "arrayOrderHandling"),
        description="Array element pairing strategy",
    )
    enable_deep_comparison: bool = Field(
        default=True,
        validation_alias=AliasChoices("enable_deep_comparison", "enableDeepComparison"),
        description="Walk JSON bodies field by field (False: whole-document equality)",
    )
    max_response_size_for_comparison: int = Field(
        default=DEFAULT_MAX_RESPONSE_SIZE,
        ge=0,
        validation_alias=AliasChoices(
            "max_response_size_for_comparison", "maxResponseSizeForComparison"
        ),
        description="Bodies larger than this (bytes) are only compared byte for byte",
    )

    @field_validator("array_order_handling", mode="before")
    @classmethod
    def normalize_array_order_handling(cls, v: Any) -> Any:
        # Configuration files spell the modes "Strict", "Loose", "Sorted"
        if isinstance(v, str):
            return v.lower()
        return v


# =============================================================================
# Comparison Result Models
# =============================================================================


class DiscrepancyType(str, Enum):
    """Which aspect of the responses diverged."""

    STATUS_CODE = "status_code"
    HEADER = "header"
    CONTENT_TYPE = "content_type"
    BODY = "body"
    JSON_STRUCTURE = "json_structure"
    ARRAY_LENGTH = "array_length"
    NUMERIC_VALUE = "numeric_value"
    TIMESTAMP = "timestamp"
    STRING_VALUE = "string_value"
    PERFORMANCE = "performance"


class DiscrepancySeverity(str, Enum):
    """How much a discrepancy matters for the migration."""

    CRITICAL = "critical"  # Blocks migration
    MAJOR = "major"  # Should block
    MINOR = "minor"  # Cosmetic or tolerable


class MatchVerdict(str, Enum):
    """Overall assessment of one response pair."""

    PERFECT = "perfect"
    MINOR_DIFFERENCES = "minor_differences"
    MAJOR_DIFFERENCES = "major_differences"
    CRITICAL_DIFFERENCES = "critical_differences"
    LEFT_MISSING = "left_missing"
    RIGHT_MISSING = "right_missing"
    BOTH_MISSING = "both_missing"
    COMPARISON_ERROR = "comparison_error"


class Discrepancy(BaseModel):
    """One divergence between the two responses at a specific location."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    type: DiscrepancyType = Field(description="Kind of divergence")
    severity: DiscrepancySeverity = Field(description="Severity level")
    field: str = Field(description="Structural path, header name, or response attribute")
    left_value: str = Field(description="Value from the reference (left) response")
    right_value: str = Field(description="Value from the candidate (right) response")
    description: str = Field(description="Human-readable explanation")


class PerformanceComparison(BaseModel):
    """Response time comparison between the two systems."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    left_response_time_ms: float = Field(description="Left response time")
    right_response_time_ms: float = Field(description="Right response time")
    time_difference_ms: float = Field(description="Absolute difference in response times")
    faster_system: str = Field(description="'left' or 'right' (ties go to 'left')")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ComparisonResult(BaseModel):
    """Outcome of comparing one request's two captured responses."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    correlation_id: str = Field(description="Opaque id linking the request to this result")
    timestamp: datetime = Field(default_factory=_utcnow, description="When the comparison ran")
    status_code_match: bool = Field(default=False, description="Whether status codes match")
    body_match: bool = Field(default=False, description="Whether bodies are equivalent")
    discrepancies: tuple[Discrepancy, ...] = Field(
        default=(), description="Detected discrepancies in detection order"
    )
    performance: PerformanceComparison | None = Field(
        default=None, description="Response time comparison (None if a response is missing)"
    )
    verdict: MatchVerdict = Field(description="Overall match assessment")
    summary: str = Field(description="Human-readable one-liner for logs")
