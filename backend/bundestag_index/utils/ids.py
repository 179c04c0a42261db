"""Deterministic point identities."""

from __future__ import annotations

import hashlib
from typing import Iterator

_INT32_MASK = 0xFFFFFFFF
_INT32_SIGN = 0x80000000
_WIDE_MASK = (1 << 63) - 1
WIDE_PREFIX = "v2"


def point_key(namespace: str, source_id: str | int, chunk_index: int, part: int = 0) -> str:
    return f"{namespace}:{source_id}:{chunk_index}:{part}"


def string_hash32(text: str) -> int:
    """Polynomial hash over UTF-16 code units with signed 32-bit wraparound."""
    h = 0
    for unit in _utf16_units(text):
        h = (h * 31 + unit) & _INT32_MASK
    if h & _INT32_SIGN:
        h -= 1 << 32
    return h


def point_id(namespace: str, source_id: str | int, chunk_index: int, part: int = 0) -> int:
    """Legacy 32-bit identity; existing collections are keyed with it.

    >>> point_id("protocol", 100, 0, 0)
    385619835
    """
    return abs(string_hash32(point_key(namespace, source_id, chunk_index, part)))


def record_point_id(namespace: str, source_id: str | int) -> int:
    """Legacy identity of a metadata-only record, keyed on ``namespace:source_id``.

    >>> record_point_id("drucksache", 123)
    947204389
    """
    return abs(string_hash32(f"{namespace}:{source_id}"))


def wide_point_id(namespace: str, source_id: str | int, chunk_index: int, part: int = 0) -> int:
    """63-bit identity derived from SHA-256 for collections created under the v2 scheme."""
    key = f"{WIDE_PREFIX}:{point_key(namespace, source_id, chunk_index, part)}"
    digest = hashlib.sha256(key.encode("utf-8")).hexdigest()
    return int(digest[:16], 16) & _WIDE_MASK


def identity_for(scheme: str, namespace: str, source_id: str | int, chunk_index: int, part: int = 0) -> int:
    if scheme == "wide":
        return wide_point_id(namespace, source_id, chunk_index, part)
    if scheme == "legacy":
        return point_id(namespace, source_id, chunk_index, part)
    raise ValueError(f"Unknown id scheme: {scheme}")


def record_identity_for(scheme: str, namespace: str, source_id: str | int) -> int:
    if scheme == "wide":
        return wide_point_id(namespace, source_id, 0, 0)
    if scheme == "legacy":
        return record_point_id(namespace, source_id)
    raise ValueError(f"Unknown id scheme: {scheme}")


def _utf16_units(text: str) -> Iterator[int]:
    data = text.encode("utf-16-be")
    for offset in range(0, len(data), 2):
        yield (data[offset] << 8) | data[offset + 1]


__all__ = [
    "identity_for",
    "point_id",
    "point_key",
    "record_identity_for",
    "record_point_id",
    "string_hash32",
    "wide_point_id",
]
