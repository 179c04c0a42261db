"""Per-(period, category) indexing watermarks persisted in SQLite."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Mapping

from bundestag_index.core.logging import get_logger
from bundestag_index.db.sqlite import SQLiteDatabase
from bundestag_index.index.vector_store import VectorStore
from bundestag_index.ingest.types import SourceCategory, category_for_document_type
from bundestag_index.utils.time import parse_iso, to_iso

logger = get_logger(__name__)

BOOTSTRAP_SCROLL_LIMIT = 1000

_CATEGORY_VALUES = frozenset(category.value for category in SourceCategory)

# doc_type values written by earlier index layouts
LEGACY_DOC_TYPES: Mapping[str, SourceCategory] = {
    "drucksache": SourceCategory.PRINTED,
    "vorgang": SourceCategory.PROCEEDING,
    "aktivitaet": SourceCategory.ACTIVITY,
    "person": SourceCategory.PERSON,
    "protocol": SourceCategory.TRANSCRIPT,
}


@dataclass(slots=True)
class Watermark:
    period: int
    category: str
    last_indexed_at: datetime
    indexed_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "period": self.period,
            "category": self.category,
            "last_indexed_at": to_iso(self.last_indexed_at),
            "indexed_count": self.indexed_count,
        }


class WatermarkStore:
    """Upsert semantics: the timestamp is replaced and the count is added."""

    def __init__(self, db: SQLiteDatabase) -> None:
        self.db = db
        self.db.ensure_schema()

    def get(self, period: int, category: str) -> Watermark | None:
        rows = self.db.query(
            "SELECT period, category, last_indexed_at, indexed_count FROM index_state WHERE period = ? AND category = ?",
            [period, _category_key(category)],
        )
        return _row_to_watermark(rows[0]) if rows else None

    def get_all(self) -> list[Watermark]:
        rows = self.db.query(
            "SELECT period, category, last_indexed_at, indexed_count FROM index_state "
            "ORDER BY period DESC, category"
        )
        return [_row_to_watermark(row) for row in rows]

    def set(self, period: int, category: str, timestamp: datetime, count: int = 0) -> None:
        with self.db.transaction() as cursor:
            cursor.execute(
                """
                INSERT INTO index_state (period, category, last_indexed_at, indexed_count)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(period, category) DO UPDATE SET
                  last_indexed_at = excluded.last_indexed_at,
                  indexed_count = indexed_count + excluded.indexed_count
                """,
                [period, _category_key(category), to_iso(timestamp), count],
            )

    def clear(self) -> int:
        with self.db.transaction() as cursor:
            cursor.execute("DELETE FROM index_state")
            deleted = cursor.rowcount
        logger.info("Cleared %s watermarks", deleted)
        return deleted

    def is_empty(self) -> bool:
        rows = self.db.query("SELECT COUNT(*) AS count FROM index_state")
        return int(rows[0]["count"]) == 0

    def bootstrap(
        self,
        vector_store: VectorStore,
        collections: Mapping[str, SourceCategory | None],
        scroll_limit: int = BOOTSTRAP_SCROLL_LIMIT,
    ) -> int:
        """Seed an empty table with the newest content date found per (period, category).

        ``collections`` maps each collection name to the category its points
        belong to, or ``None`` when the category is read from the payload.
        Returns the number of watermarks written; a populated table is left
        untouched.
        """
        if not self.is_empty():
            logger.info("Watermarks already present, skipping bootstrap")
            return 0

        latest: dict[tuple[int, str], datetime] = {}
        for collection, default_category in collections.items():
            try:
                if vector_store.count(collection) == 0:
                    logger.debug("Collection %s empty or missing, skipping", collection)
                    continue
                scanned = _scan_collection(vector_store, collection, default_category, scroll_limit, latest)
            except Exception as exc:
                logger.warning("Failed to bootstrap from %s: %s", collection, exc)
                continue
            logger.info("Scanned %s points in %s", scanned, collection)

        for (period, category), timestamp in sorted(latest.items()):
            self.set(period, category, timestamp, 0)
        if latest:
            logger.info("Bootstrapped %s watermarks from the vector store", len(latest))
        return len(latest)


def _scan_collection(
    vector_store: VectorStore,
    collection: str,
    default_category: SourceCategory | None,
    scroll_limit: int,
    latest: dict[tuple[int, str], datetime],
) -> int:
    scanned = 0
    offset: int | None = None
    while True:
        page = vector_store.scroll(collection, limit=scroll_limit, offset=offset)
        if not page.records:
            break
        for record in page.records:
            key = _payload_key(record.payload, default_category)
            content_date = parse_iso(record.payload.get("date") or record.payload.get("datum"))
            if key is None or content_date is None:
                continue
            current = latest.get(key)
            if current is None or content_date > current:
                latest[key] = content_date
        scanned += len(page.records)
        if page.next_offset is None:
            break
        offset = page.next_offset
    return scanned


def _payload_key(payload: Mapping[str, Any], default_category: SourceCategory | None) -> tuple[int, str] | None:
    period = payload.get("period", payload.get("wahlperiode"))
    if not period:
        return None
    category = payload.get("category")
    if category not in _CATEGORY_VALUES:
        category = None
    if category is None and default_category is not None:
        category = default_category.value
    if category is None:
        legacy = LEGACY_DOC_TYPES.get(payload.get("doc_type") or "")
        declared = category_for_document_type(payload.get("drucksachetyp"))
        resolved = legacy or declared
        category = resolved.value if resolved else None
    if category is None:
        return None
    return int(period), category


def _category_key(category: SourceCategory | str) -> str:
    return category.value if isinstance(category, SourceCategory) else str(category)


def _row_to_watermark(row: Any) -> Watermark:
    timestamp = parse_iso(row["last_indexed_at"])
    if timestamp is None:
        raise ValueError(f"Invalid watermark timestamp: {row['last_indexed_at']!r}")
    return Watermark(
        period=int(row["period"]),
        category=row["category"],
        last_indexed_at=timestamp,
        indexed_count=int(row["indexed_count"]),
    )


__all__ = ["LEGACY_DOC_TYPES", "Watermark", "WatermarkStore"]
