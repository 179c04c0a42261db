"""Vector store abstraction."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Any, Protocol, Sequence

from bundestag_index.ingest.types import Point


@dataclass(slots=True)
class ScrollRecord:
    id: int
    payload: dict[str, Any]


@dataclass(slots=True)
class ScrollPage:
    records: list[ScrollRecord]
    next_offset: int | None = None


class VectorStore(Protocol):
    """Operations the indexer needs from a vector store."""

    def ensure_collection(self, collection: str, dim: int) -> None:
        ...

    def upsert(self, collection: str, points: Sequence[Point]) -> None:
        ...

    def retrieve(self, collection: str, ids: Sequence[int]) -> set[int]:
        ...

    def scroll(self, collection: str, limit: int = 1000, offset: int | None = None) -> ScrollPage:
        ...

    def count(self, collection: str) -> int:
        ...


class InMemoryVectorStore:
    """Dictionary-backed store with the same upsert-by-key semantics as Qdrant."""

    def __init__(self) -> None:
        self._collections: dict[str, dict[int, Point]] = {}
        self._dims: dict[str, int] = {}
        self._lock = threading.Lock()

    def ensure_collection(self, collection: str, dim: int) -> None:
        with self._lock:
            self._collections.setdefault(collection, {})
            self._dims.setdefault(collection, dim)

    def upsert(self, collection: str, points: Sequence[Point]) -> None:
        if not points:
            return
        with self._lock:
            dim = self._dims.get(collection)
            for point in points:
                if dim is not None and len(point.vector) != dim:
                    raise ValueError("Vector dimension mismatch")
            store = self._collections.setdefault(collection, {})
            for point in points:
                store[point.id] = Point(id=point.id, vector=list(point.vector), payload=dict(point.payload))

    def retrieve(self, collection: str, ids: Sequence[int]) -> set[int]:
        with self._lock:
            store = self._collections.get(collection, {})
            return {point_id for point_id in ids if point_id in store}

    def scroll(self, collection: str, limit: int = 1000, offset: int | None = None) -> ScrollPage:
        with self._lock:
            store = self._collections.get(collection, {})
            ordered = sorted(store)
            if offset is not None:
                ordered = [point_id for point_id in ordered if point_id >= offset]
            page = ordered[:limit]
            next_offset = ordered[limit] if len(ordered) > limit else None
            return ScrollPage(
                records=[ScrollRecord(id=point_id, payload=dict(store[point_id].payload)) for point_id in page],
                next_offset=next_offset,
            )

    def count(self, collection: str) -> int:
        with self._lock:
            return len(self._collections.get(collection, {}))

    def get(self, collection: str, point_id: int) -> Point | None:
        with self._lock:
            return self._collections.get(collection, {}).get(point_id)


__all__ = ["InMemoryVectorStore", "ScrollPage", "ScrollRecord", "VectorStore"]
