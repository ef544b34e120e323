"""Verdict - Derives the overall match verdict from discrepancy severities."""

from __future__ import annotations

from collections import Counter
from typing import Iterable

from response_parity.models import Discrepancy, DiscrepancySeverity, MatchVerdict


def count_by_severity(discrepancies: Iterable[Discrepancy]) -> Counter[DiscrepancySeverity]:
    """Count discrepancies per severity (missing severities count as 0)."""
    return Counter(d.severity for d in discrepancies)


def classify(discrepancies: Iterable[Discrepancy]) -> MatchVerdict:
    """Map a discrepancy list to its verdict.

    Any Critical wins, then any Major, then any Minor; no discrepancies is
    PERFECT. Order and discrepancy types do not matter.
    """
    counts = count_by_severity(discrepancies)
    if counts[DiscrepancySeverity.CRITICAL]:
        return MatchVerdict.CRITICAL_DIFFERENCES
    if counts[DiscrepancySeverity.MAJOR]:
        return MatchVerdict.MAJOR_DIFFERENCES
    if counts[DiscrepancySeverity.MINOR]:
        return MatchVerdict.MINOR_DIFFERENCES
    return MatchVerdict.PERFECT


def summarize(discrepancies: Iterable[Discrepancy]) -> str:
    """One-line summary matching the verdict of ``classify``."""
    counts = count_by_severity(discrepancies)
    critical = counts[DiscrepancySeverity.CRITICAL]
    major = counts[DiscrepancySeverity.MAJOR]
    minor = counts[DiscrepancySeverity.MINOR]

    if critical:
        return f"Critical differences found: {critical} critical, {major} major, {minor} minor"
    if major:
        return f"Major differences found: {major} major, {minor} minor"
    if minor:
        return f"Minor differences found: {minor} minor"
    return "Responses match perfectly"
