"""Structural Differ - Recursive comparison of two JSON documents.

Walks the left (reference) and right (candidate) documents in lock-step and
returns the discrepancies found, as an immutable tuple. Every call builds its
own result from its subtrees' results; nothing is shared between calls, so
independent subtrees could be compared in any order or in parallel.

Field paths are structural: object keys are joined with ".", array elements
get "[i]" (or "[sorted-i]" in sorted mode). The root path is "".
"""

from __future__ import annotations

import math
from datetime import datetime, timezone
from decimal import Decimal
from itertools import chain
from typing import Any

from response_parity.document import Document, NodeKind
from response_parity.models import (
    ArrayOrderHandling,
    Discrepancy,
    DiscrepancySeverity,
    DiscrepancyType,
    EquivalencePolicy,
)


def diff_documents(
    left: Document,
    right: Document,
    path: str,
    policy: EquivalencePolicy,
) -> tuple[Discrepancy, ...]:
    """Compare two documents at ``path``.

    Args:
        left: Node from the reference response.
        right: Node from the candidate response.
        path: Structural path of both nodes ("" at the root).
        policy: Effective policy (route exclusions already merged).

    Returns:
        Discrepancies in traversal order; empty if the nodes are equivalent.
    """
    if left.kind is NodeKind.NULL and right.kind is NodeKind.NULL:
        return ()

    if left.kind is NodeKind.NULL or right.kind is NodeKind.NULL:
        return (_null_mismatch(left, right, path),)

    if left.kind is not right.kind:
        return (
            Discrepancy(
                type=DiscrepancyType.JSON_STRUCTURE,
                severity=DiscrepancySeverity.CRITICAL,
                field=path,
                left_value=left.kind.value,
                right_value=right.kind.value,
                description="JSON node type mismatch",
            ),
        )

    if left.kind is NodeKind.OBJECT:
        return _diff_objects(left, right, path, policy)
    if left.kind is NodeKind.ARRAY:
        return _diff_arrays(left, right, path, policy)
    return _diff_scalars(left, right, path, policy)


def _null_mismatch(left: Document, right: Document, path: str) -> Discrepancy:
    if left.is_missing:
        description = "Field missing from left response"
    elif right.is_missing:
        description = "Field missing from right response"
    else:
        description = "JSON structure mismatch - one side is null"
    return Discrepancy(
        type=DiscrepancyType.JSON_STRUCTURE,
        severity=DiscrepancySeverity.CRITICAL,
        field=path,
        left_value=left.text(),
        right_value=right.text(),
        description=description,
    )


# =============================================================================
# Objects
# =============================================================================


def _diff_objects(
    left: Document,
    right: Document,
    path: str,
    policy: EquivalencePolicy,
) -> tuple[Discrepancy, ...]:
    keys = left.keys()
    if not policy.allow_superset_responses:
        keys += [key for key in right.keys() if not left.has_key(key)]

    excluded = frozenset(policy.exclude_fields)
    return tuple(
        chain.from_iterable(
            diff_documents(left.get(key), right.get(key), _child_path(path, key), policy)
            for key in keys
            if key not in excluded
        )
    )


def _child_path(path: str, key: str) -> str:
    return key if not path else f"{path}.{key}"


# =============================================================================
# Arrays
# =============================================================================


def _diff_arrays(
    left: Document,
    right: Document,
    path: str,
    policy: EquivalencePolicy,
) -> tuple[Discrepancy, ...]:
    differences: list[Discrepancy] = []

    if len(left) != len(right):
        differences.append(
            Discrepancy(
                type=DiscrepancyType.ARRAY_LENGTH,
                severity=DiscrepancySeverity.MAJOR,
                field=path,
                left_value=str(len(left)),
                right_value=str(len(right)),
                description="Array length mismatch",
            )
        )

    left_items = left.elements()
    right_items = right.elements()

    if policy.array_order_handling is ArrayOrderHandling.SORTED:
        # Ordering is lexicographic on the string form, so [10, 9] sorts as
        # ["10", "9"]. Existing comparison baselines depend on this.
        left_items = sorted(left_items, key=_sort_key)
        right_items = sorted(right_items, key=_sort_key)
        label = "sorted-{}"
    else:
        # TODO: LOOSE should pair each left element with an equivalent right
        # element regardless of position; until that matching exists it pairs
        # by index exactly like STRICT.
        label = "{}"

    for index, (left_item, right_item) in enumerate(zip(left_items, right_items)):
        differences.extend(
            diff_documents(left_item, right_item, f"{path}[{label.format(index)}]", policy)
        )

    return tuple(differences)


def _sort_key(node: Document) -> tuple[bool, str]:
    # nulls first, then ordinal order of the string form
    return (node.kind is not NodeKind.NULL, node.text())


# =============================================================================
# Scalars
# =============================================================================


def _diff_scalars(
    left: Document,
    right: Document,
    path: str,
    policy: EquivalencePolicy,
) -> tuple[Discrepancy, ...]:
    if left.is_number and right.is_number:
        if _numbers_equivalent(left.value, right.value, policy.numeric_precision_tolerance):
            return ()
        return (
            Discrepancy(
                type=DiscrepancyType.NUMERIC_VALUE,
                severity=DiscrepancySeverity.MINOR,
                field=path,
                left_value=left.text(),
                right_value=right.text(),
                description=(
                    f"Numeric value differs beyond tolerance "
                    f"({policy.numeric_precision_tolerance})"
                ),
            ),
        )

    if is_timestamp_field(path):
        left_time = parse_timestamp(left.value)
        right_time = parse_timestamp(right.value)
        if left_time is not None and right_time is not None:
            delta_ms = abs((left_time - right_time).total_seconds()) * 1000
            if delta_ms <= policy.timestamp_tolerance_ms:
                return ()
            return (
                Discrepancy(
                    type=DiscrepancyType.TIMESTAMP,
                    severity=DiscrepancySeverity.MINOR,
                    field=path,
                    left_value=left.text(),
                    right_value=right.text(),
                    description=(
                        f"Timestamp differs beyond tolerance "
                        f"({policy.timestamp_tolerance_ms}ms)"
                    ),
                ),
            )

    left_text = left.text()
    right_text = right.text()
    if left_text == right_text:
        return ()
    return (
        Discrepancy(
            type=DiscrepancyType.STRING_VALUE,
            severity=DiscrepancySeverity.MAJOR,
            field=path,
            left_value=left_text,
            right_value=right_text,
            description="String value differs",
        ),
    )


def _numbers_equivalent(left: int | float, right: int | float, tolerance: float) -> bool:
    """Check ``abs(left - right) <= tolerance`` on the decimal values.

    Decimal arithmetic on the shortest repr keeps the boundary exact:
    100.01 vs 100 with tolerance 0.01 is a match, not a float rounding miss.
    """
    if not all(math.isfinite(value) for value in (left, right) if isinstance(value, float)):
        # literals like 1e999 overflow to inf; only identical spellings match
        return str(left) == str(right)
    return abs(Decimal(str(left)) - Decimal(str(right))) <= Decimal(str(tolerance))


# =============================================================================
# Timestamps
# =============================================================================


def is_timestamp_field(path: str) -> bool:
    """Whether a structural path names a timestamp-like field."""
    lowered = path.lower()
    return "time" in lowered or "date" in lowered or lowered.endswith("_at")


def parse_timestamp(value: Any) -> datetime | None:
    """Parse an ISO 8601 string into an aware datetime, or None.

    Naive values are taken as UTC. Only strings are considered; epoch numbers
    are compared as numbers before this is reached.
    """
    if not isinstance(value, str):
        return None

    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"

    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
