"""Capture adapter - Converts httpx responses into CapturedResponse objects.

Sending the requests is the forwarding side's job; this only turns what it
received into the immutable input the Comparator expects.
"""

from __future__ import annotations

import httpx

from response_parity.models import CapturedResponse


def captured_response_from_httpx(
    response: httpx.Response,
    elapsed_ms: float | None = None,
    target: str = "",
) -> CapturedResponse:
    """Convert an httpx Response to a CapturedResponse.

    Args:
        response: httpx Response whose content has been read.
        elapsed_ms: Response time in milliseconds. If None, taken from
            ``response.elapsed``, which httpx only sets once the response
            has been read or closed.
        target: Optional label of the system that answered.

    Returns:
        CapturedResponse with lowercase header names and raw body bytes.
    """
    # Headers - lowercase keys, list values
    headers: dict[str, list[str]] = {}
    for key, value in response.headers.multi_items():
        headers.setdefault(key.lower(), []).append(value)

    if elapsed_ms is None:
        elapsed_ms = response.elapsed.total_seconds() * 1000

    return CapturedResponse(
        status_code=response.status_code,
        headers=headers,
        content_type=response.headers.get("content-type"),
        body=response.content or None,
        response_time_ms=elapsed_ms,
        target=target,
    )
