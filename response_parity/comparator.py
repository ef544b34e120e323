"""Comparator - Compares two captured responses to the same request.

The Comparator takes the reference (left) and candidate (right) responses,
compares status code, content type, a fixed set of headers, the body and
response times, and produces one ComparisonResult. JSON bodies are walked by
the structural differ under the effective policy for the request path.

``compare`` never raises: missing responses become explicit verdicts, body
parse failures fall back to coarser comparison, and any other error becomes a
COMPARISON_ERROR result.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from response_parity.config_loader import build_effective_policy
from response_parity.differ import diff_documents
from response_parity.document import DocumentParseError, parse_document
from response_parity.models import (
    CapturedResponse,
    ComparisonResult,
    Discrepancy,
    DiscrepancySeverity,
    DiscrepancyType,
    EquivalencePolicy,
    MatchVerdict,
    PerformanceComparison,
)
from response_parity.verdict import classify, summarize

logger = logging.getLogger(__name__)

# Headers worth comparing; the rest vary per host (dates, ids, server names)
COMPARED_HEADERS = ("cache-control", "content-encoding", "transfer-encoding")

# Response time difference above which a Performance discrepancy is reported
PERFORMANCE_THRESHOLD_MS = 1000

# Longest body text copied into a discrepancy
TRUNCATE_LENGTH = 200


# =============================================================================
# Body Comparison Result
# =============================================================================


@dataclass(frozen=True)
class BodyComparison:
    """Outcome of the body gate.

    Attributes:
        match: Whether the bodies are equivalent.
        discrepancies: Body-level or structural discrepancies found.
    """

    match: bool
    discrepancies: tuple[Discrepancy, ...] = ()


# =============================================================================
# Comparator
# =============================================================================


class Comparator:
    """Compares response pairs under an equivalence policy.

    Usage:
        comparator = Comparator(load_policy(Path("parity.yaml")))
        result = comparator.compare(legacy_response, new_response, "req-42", "/api/v1/entries")
        if result.verdict is not MatchVerdict.PERFECT:
            print(result.summary)

    The comparator holds only the immutable base policy, so one instance can
    serve concurrent callers.
    """

    def __init__(self, policy: EquivalencePolicy | None = None) -> None:
        """Initialize the Comparator.

        Args:
            policy: Base policy; route exclusions are merged per request.
                Defaults to EquivalencePolicy().
        """
        self._policy = policy or EquivalencePolicy()

    @property
    def policy(self) -> EquivalencePolicy:
        return self._policy

    def compare(
        self,
        left: CapturedResponse | None,
        right: CapturedResponse | None,
        correlation_id: str,
        request_path: str | None = None,
    ) -> ComparisonResult:
        """Compare two responses.

        Args:
            left: Response from the reference system (None if not captured).
            right: Response from the candidate system (None if not captured).
            correlation_id: Opaque id copied into the result.
            request_path: Request path used to select route exclusions.

        Returns:
            ComparisonResult. Never raises.
        """
        timestamp = datetime.now(timezone.utc)
        logger.debug(
            "Starting response comparison for correlation %s on path %s",
            correlation_id,
            request_path,
        )

        try:
            result = self._compare(left, right, correlation_id, request_path, timestamp)
        except Exception as e:
            logger.exception("Error comparing responses for correlation %s", correlation_id)
            return ComparisonResult(
                correlation_id=correlation_id,
                timestamp=timestamp,
                verdict=MatchVerdict.COMPARISON_ERROR,
                summary=f"Comparison failed: {e}",
            )

        logger.debug(
            "Response comparison completed for correlation %s. Match: %s, Discrepancies: %d",
            correlation_id,
            result.verdict.value,
            len(result.discrepancies),
        )
        return result

    def _compare(
        self,
        left: CapturedResponse | None,
        right: CapturedResponse | None,
        correlation_id: str,
        request_path: str | None,
        timestamp: datetime,
    ) -> ComparisonResult:
        # Phase 0: Presence
        missing = _missing_verdict(left, right)
        if missing is not None:
            verdict, summary = missing
            return ComparisonResult(
                correlation_id=correlation_id,
                timestamp=timestamp,
                verdict=verdict,
                summary=summary,
            )

        policy = build_effective_policy(self._policy, request_path)
        discrepancies: list[Discrepancy] = []

        # Phase 1: Status code
        status_code_match = left.status_code == right.status_code
        if not status_code_match:
            discrepancies.append(
                Discrepancy(
                    type=DiscrepancyType.STATUS_CODE,
                    severity=DiscrepancySeverity.CRITICAL,
                    field="StatusCode",
                    left_value=str(left.status_code),
                    right_value=str(right.status_code),
                    description=(
                        f"Status code mismatch: left={left.status_code}, "
                        f"right={right.status_code}"
                    ),
                )
            )

        # Phase 2: Content type and headers
        discrepancies.extend(self._compare_headers(left, right))

        # Phase 3: Body
        body = self._compare_body(left, right, policy)
        discrepancies.extend(body.discrepancies)

        # Phase 4: Performance
        performance = _compare_performance(left, right)
        if performance.time_difference_ms > PERFORMANCE_THRESHOLD_MS:
            discrepancies.append(
                Discrepancy(
                    type=DiscrepancyType.PERFORMANCE,
                    severity=DiscrepancySeverity.MINOR,
                    field="ResponseTime",
                    left_value=f"{_format_ms(left.response_time_ms)}ms",
                    right_value=f"{_format_ms(right.response_time_ms)}ms",
                    description=(
                        f"Significant performance difference: "
                        f"{_format_ms(performance.time_difference_ms)}ms"
                    ),
                )
            )

        return ComparisonResult(
            correlation_id=correlation_id,
            timestamp=timestamp,
            status_code_match=status_code_match,
            body_match=body.match,
            discrepancies=tuple(discrepancies),
            performance=performance,
            verdict=classify(discrepancies),
            summary=summarize(discrepancies),
        )

    def _compare_headers(
        self,
        left: CapturedResponse,
        right: CapturedResponse,
    ) -> list[Discrepancy]:
        """Compare content type and COMPARED_HEADERS (values case-insensitive)."""
        differences: list[Discrepancy] = []

        left_content_type = left.content_type or ""
        right_content_type = right.content_type or ""
        if left_content_type.lower() != right_content_type.lower():
            differences.append(
                Discrepancy(
                    type=DiscrepancyType.CONTENT_TYPE,
                    severity=DiscrepancySeverity.MINOR,
                    field="ContentType",
                    left_value=left_content_type,
                    right_value=right_content_type,
                    description="Content type mismatch",
                )
            )

        for header_name in COMPARED_HEADERS:
            left_value = _get_header_value(left.headers, header_name)
            right_value = _get_header_value(right.headers, header_name)
            if left_value.lower() != right_value.lower():
                differences.append(
                    Discrepancy(
                        type=DiscrepancyType.HEADER,
                        severity=DiscrepancySeverity.MINOR,
                        field=header_name,
                        left_value=left_value,
                        right_value=right_value,
                        description=f"Header '{header_name}' mismatch",
                    )
                )

        return differences

    def _compare_body(
        self,
        left: CapturedResponse,
        right: CapturedResponse,
        policy: EquivalencePolicy,
    ) -> BodyComparison:
        """Pick a body comparison strategy and run it.

        Order: presence, size limit, UTF-8 decoding, JSON (both content types
        mention json), plain text.
        """
        left_body = left.body or b""
        right_body = right.body or b""

        if not left_body and not right_body:
            return BodyComparison(match=True)

        if not left_body or not right_body:
            return BodyComparison(
                match=False,
                discrepancies=(
                    _body_discrepancy(
                        str(len(left_body)),
                        str(len(right_body)),
                        "Response body presence mismatch",
                    ),
                ),
            )

        max_size = policy.max_response_size_for_comparison
        if len(left_body) > max_size or len(right_body) > max_size:
            return _compare_bytes(
                left_body,
                right_body,
                "Large response bodies differ (detailed comparison skipped)",
            )

        try:
            left_text = left_body.decode("utf-8")
            right_text = right_body.decode("utf-8")
        except UnicodeDecodeError:
            logger.warning("Response bodies are not UTF-8, comparing bytes")
            return _compare_bytes(left_body, right_body, "Binary response bodies differ")

        if _is_json_content(left.content_type) and _is_json_content(right.content_type):
            return self._compare_json_bodies(left_text, right_text, policy)

        return _compare_text(left_text, right_text, "Response body text differs")

    def _compare_json_bodies(
        self,
        left_text: str,
        right_text: str,
        policy: EquivalencePolicy,
    ) -> BodyComparison:
        try:
            left_document = parse_document(left_text)
            right_document = parse_document(right_text)
        except DocumentParseError as e:
            logger.warning("Error parsing JSON for detailed comparison: %s", e)
            return _compare_text(
                left_text, right_text, "JSON responses differ (detailed comparison failed)"
            )

        if not policy.enable_deep_comparison:
            if _canonical_json(left_document.value) == _canonical_json(right_document.value):
                return BodyComparison(match=True)
            return BodyComparison(
                match=False,
                discrepancies=(
                    _body_discrepancy(
                        _truncate(left_document.text()),
                        _truncate(right_document.text()),
                        "JSON responses differ (deep comparison disabled)",
                    ),
                ),
            )

        differences = diff_documents(left_document, right_document, "", policy)
        return BodyComparison(match=not differences, discrepancies=differences)


def compare_responses(
    left: CapturedResponse | None,
    right: CapturedResponse | None,
    correlation_id: str,
    request_path: str | None = None,
    policy: EquivalencePolicy | None = None,
) -> ComparisonResult:
    """Compare two responses with a one-off Comparator."""
    return Comparator(policy).compare(left, right, correlation_id, request_path)


# =============================================================================
# Helpers
# =============================================================================


def _missing_verdict(
    left: CapturedResponse | None,
    right: CapturedResponse | None,
) -> tuple[MatchVerdict, str] | None:
    if left is None and right is None:
        return MatchVerdict.BOTH_MISSING, "Both responses are missing"
    if left is None:
        return MatchVerdict.LEFT_MISSING, "Left response is missing"
    if right is None:
        return MatchVerdict.RIGHT_MISSING, "Right response is missing"
    return None


def _compare_performance(left: CapturedResponse, right: CapturedResponse) -> PerformanceComparison:
    return PerformanceComparison(
        left_response_time_ms=left.response_time_ms,
        right_response_time_ms=right.response_time_ms,
        time_difference_ms=abs(left.response_time_ms - right.response_time_ms),
        faster_system="left" if left.response_time_ms <= right.response_time_ms else "right",
    )


def _compare_bytes(left_body: bytes, right_body: bytes, description: str) -> BodyComparison:
    """Byte-for-byte equality; a mismatch reports sizes only."""
    if left_body == right_body:
        return BodyComparison(match=True)
    return BodyComparison(
        match=False,
        discrepancies=(
            _body_discrepancy(f"{len(left_body)} bytes", f"{len(right_body)} bytes", description),
        ),
    )


def _compare_text(left_text: str, right_text: str, description: str) -> BodyComparison:
    """Ordinal text equality; a mismatch reports truncated texts."""
    if left_text == right_text:
        return BodyComparison(match=True)
    return BodyComparison(
        match=False,
        discrepancies=(
            _body_discrepancy(_truncate(left_text), _truncate(right_text), description),
        ),
    )


def _body_discrepancy(left_value: str, right_value: str, description: str) -> Discrepancy:
    return Discrepancy(
        type=DiscrepancyType.BODY,
        severity=DiscrepancySeverity.CRITICAL,
        field="Body",
        left_value=left_value,
        right_value=right_value,
        description=description,
    )


def _canonical_json(value: object) -> str:
    """Key-order-independent JSON text (keeps true and 1 apart, unlike ==)."""
    return json.dumps(value, sort_keys=True, ensure_ascii=False, separators=(",", ":"))


def _get_header_value(headers: dict[str, list[str]], name: str) -> str:
    """First value of a header (case-insensitive name), or "" if absent.

    Multi-value headers return only the first value.
    """
    name_lower = name.lower()
    for key, values in headers.items():
        if key.lower() == name_lower and values:
            return values[0]
    return ""


def _is_json_content(content_type: str | None) -> bool:
    return bool(content_type) and "json" in content_type.lower()


def _truncate(text: str, max_length: int = TRUNCATE_LENGTH) -> str:
    if len(text) <= max_length:
        return text
    return text[:max_length] + "..."


def _format_ms(value: float) -> str:
    """Render 1500.0 as "1500" and 12.5 as "12.5"."""
    if float(value).is_integer():
        return str(int(value))
    return str(value)
