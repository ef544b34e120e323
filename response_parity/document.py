"""Document model for JSON response bodies.

A Document is a tagged view over a decoded JSON value: NULL, OBJECT, ARRAY or
SCALAR. The structural differ dispatches on the tag instead of on Python
types, so dict/list/str/int/float/bool never leak into its branches.

Missing object keys are represented by the NOT_FOUND sentinel. They classify
as NULL (a missing key and an explicit null are equivalent for comparison)
but keep their identity so discrepancies can say "<missing>" instead of
"null".
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any


class DocumentParseError(ValueError):
    """Raised when a body cannot be decoded as a JSON document."""


# Deepest container nesting accepted by parse_document; the differ recurses per level
MAX_DEPTH = 64


# =============================================================================
# Sentinel for Missing Fields
# =============================================================================


class _NotFound:
    """Sentinel for missing fields (distinct from JSON null)."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "<NOT_FOUND>"


NOT_FOUND = _NotFound()


# =============================================================================
# Document
# =============================================================================


class NodeKind(str, Enum):
    """Shape of a JSON node."""

    NULL = "null"
    OBJECT = "object"
    ARRAY = "array"
    SCALAR = "scalar"


@dataclass(frozen=True)
class Document:
    """A JSON node tagged with its kind.

    Children are wrapped lazily by ``get`` and ``elements``; the underlying
    decoded value is never copied or modified.
    """

    kind: NodeKind
    value: Any = None

    @classmethod
    def of(cls, value: Any) -> Document:
        """Wrap a decoded JSON value (or NOT_FOUND)."""
        if value is None or value is NOT_FOUND:
            return cls(NodeKind.NULL, value)
        if isinstance(value, dict):
            return cls(NodeKind.OBJECT, value)
        if isinstance(value, list):
            return cls(NodeKind.ARRAY, value)
        return cls(NodeKind.SCALAR, value)

    @property
    def is_missing(self) -> bool:
        return self.value is NOT_FOUND

    @property
    def is_number(self) -> bool:
        """True for JSON numbers. Booleans and numeric-looking strings are not numbers."""
        return (
            self.kind is NodeKind.SCALAR
            and isinstance(self.value, (int, float))
            and not isinstance(self.value, bool)
        )

    def keys(self) -> list[str]:
        if self.kind is not NodeKind.OBJECT:
            return []
        return list(self.value)

    def has_key(self, key: str) -> bool:
        return self.kind is NodeKind.OBJECT and key in self.value

    def get(self, key: str) -> Document:
        """Child node for an object key; NOT_FOUND-backed NULL if absent."""
        if self.kind is not NodeKind.OBJECT:
            return Document.of(NOT_FOUND)
        return Document.of(self.value.get(key, NOT_FOUND))

    def elements(self) -> list[Document]:
        if self.kind is not NodeKind.ARRAY:
            return []
        return [Document.of(item) for item in self.value]

    def __len__(self) -> int:
        if self.kind in (NodeKind.OBJECT, NodeKind.ARRAY):
            return len(self.value)
        return 0

    def text(self) -> str:
        """String form used in discrepancy values and for sorted array pairing.

        Strings are returned raw (no quotes), booleans and null in JSON
        spelling, numbers and containers as compact JSON.
        """
        if self.value is NOT_FOUND:
            return "<missing>"
        if self.kind is NodeKind.NULL:
            return "null"
        if isinstance(self.value, str):
            return self.value
        return json.dumps(self.value, ensure_ascii=False, separators=(",", ":"))


def parse_document(body: bytes | str) -> Document:
    """Parse a JSON body into a Document.

    Args:
        body: Raw bytes (must be UTF-8) or already-decoded text.

    Returns:
        Document for the top-level JSON value.

    Raises:
        DocumentParseError: If the bytes are not UTF-8, the text is not strict
            JSON (NaN and Infinity are rejected), or it nests deeper than MAX_DEPTH.
    """
    if isinstance(body, bytes):
        try:
            body = body.decode("utf-8")
        except UnicodeDecodeError as e:
            raise DocumentParseError(f"Body is not valid UTF-8: {e}") from e

    try:
        value = json.loads(body, parse_constant=_reject_constant)
    except (ValueError, RecursionError) as e:
        # ValueError covers JSONDecodeError, NaN/Infinity and over-long integers
        raise DocumentParseError(f"Body is not valid JSON: {e}") from e

    if _exceeds_depth(value, MAX_DEPTH):
        raise DocumentParseError(f"Body is nested deeper than {MAX_DEPTH} levels")
    return Document.of(value)


def _reject_constant(name: str) -> Any:
    raise ValueError(f"{name} is not a JSON value")


def _exceeds_depth(value: Any, limit: int) -> bool:
    """Whether containers nest more than ``limit`` levels (iterative walk)."""
    stack = [(value, 1)]
    while stack:
        node, depth = stack.pop()
        if isinstance(node, dict):
            children = node.values()
        elif isinstance(node, list):
            children = node
        else:
            continue
        if depth > limit:
            return True
        stack.extend((child, depth + 1) for child in children)
    return False
