"""Pytest configuration and fixtures for response-parity tests.

This file provides:
- make_response / make_json_response: CapturedResponse builders with defaults
- Fixtures: shared policies and comparators
"""

from __future__ import annotations

import json
from typing import Any

import pytest

from response_parity.comparator import Comparator
from response_parity.models import CapturedResponse, EquivalencePolicy


def make_response(
    status_code: int = 200,
    headers: dict[str, list[str]] | None = None,
    content_type: str | None = "application/json",
    body: bytes | None = None,
    response_time_ms: float = 10.0,
) -> CapturedResponse:
    """Create a CapturedResponse for testing comparisons.

    Prefer this over constructing CapturedResponse directly - it provides
    sensible defaults and documents which fields are typically varied in tests.
    """
    return CapturedResponse(
        status_code=status_code,
        headers=headers or {},
        content_type=content_type,
        body=body,
        response_time_ms=response_time_ms,
    )


def make_json_response(payload: Any, **kwargs: Any) -> CapturedResponse:
    """Create a JSON CapturedResponse from a Python value."""
    return make_response(body=json.dumps(payload).encode("utf-8"), **kwargs)


# =============================================================================
# Pytest Fixtures
# =============================================================================


@pytest.fixture
def policy() -> EquivalencePolicy:
    """Default policy with no exclusions (superset allowed, strict arrays)."""
    return EquivalencePolicy()


@pytest.fixture
def comparator(policy: EquivalencePolicy) -> Comparator:
    """Comparator over the default policy."""
    return Comparator(policy)


@pytest.fixture
def strict_comparator() -> Comparator:
    """Comparator that rejects extra keys on the right side."""
    return Comparator(EquivalencePolicy(allow_superset_responses=False))
