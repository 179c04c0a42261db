"""Common ingestion data structures."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping


class SourceCategory(str, Enum):
    TRANSCRIPT = "transcript"
    BILL = "bill"
    INQUIRY = "inquiry"
    MOTION = "motion"
    REPORT = "report"
    PRINTED = "printed"
    PROCEEDING = "proceeding"
    ACTIVITY = "activity"
    PERSON = "person"


@dataclass(frozen=True, slots=True)
class CategoryRoute:
    """Where a category is listed, fetched and stored."""

    category: SourceCategory
    endpoint: str
    namespace: str
    collection: str
    text_endpoint: str | None = None
    document_types: tuple[str, ...] = ()
    page_size: int | None = None
    publisher: str | None = None

    @property
    def chunked(self) -> bool:
        return self.text_endpoint is not None


_DOCUMENT_CHUNKS = "document_chunks"
_PROTOCOL_CHUNKS = "protocol_chunks"
_DOCUMENTS = "documents"

# collection values name Settings.collection_* fields
CATEGORY_ROUTES: Mapping[SourceCategory, CategoryRoute] = {
    SourceCategory.TRANSCRIPT: CategoryRoute(
        category=SourceCategory.TRANSCRIPT,
        endpoint="plenarprotokoll",
        text_endpoint="plenarprotokoll-text",
        namespace="protocol",
        collection=_PROTOCOL_CHUNKS,
        page_size=20,
        publisher="BT",
    ),
    SourceCategory.BILL: CategoryRoute(
        category=SourceCategory.BILL,
        endpoint="drucksache",
        text_endpoint="drucksache-text",
        namespace="document",
        collection=_DOCUMENT_CHUNKS,
        document_types=("Gesetzentwurf",),
    ),
    SourceCategory.INQUIRY: CategoryRoute(
        category=SourceCategory.INQUIRY,
        endpoint="drucksache",
        text_endpoint="drucksache-text",
        namespace="document",
        collection=_DOCUMENT_CHUNKS,
        document_types=("Kleine Anfrage", "Große Anfrage"),
    ),
    SourceCategory.MOTION: CategoryRoute(
        category=SourceCategory.MOTION,
        endpoint="drucksache",
        text_endpoint="drucksache-text",
        namespace="document",
        collection=_DOCUMENT_CHUNKS,
        document_types=("Antrag", "Entschließungsantrag"),
    ),
    SourceCategory.REPORT: CategoryRoute(
        category=SourceCategory.REPORT,
        endpoint="drucksache",
        text_endpoint="drucksache-text",
        namespace="document",
        collection=_DOCUMENT_CHUNKS,
        document_types=("Beschlussempfehlung und Bericht", "Bericht"),
    ),
    SourceCategory.PRINTED: CategoryRoute(
        category=SourceCategory.PRINTED,
        endpoint="drucksache",
        namespace="drucksache",
        collection=_DOCUMENTS,
    ),
    SourceCategory.PROCEEDING: CategoryRoute(
        category=SourceCategory.PROCEEDING,
        endpoint="vorgang",
        namespace="vorgang",
        collection=_DOCUMENTS,
    ),
    SourceCategory.ACTIVITY: CategoryRoute(
        category=SourceCategory.ACTIVITY,
        endpoint="aktivitaet",
        namespace="aktivitaet",
        collection=_DOCUMENTS,
    ),
    SourceCategory.PERSON: CategoryRoute(
        category=SourceCategory.PERSON,
        endpoint="person",
        namespace="person",
        collection=_DOCUMENTS,
    ),
}


def route_for(category: SourceCategory | str) -> CategoryRoute:
    return CATEGORY_ROUTES[SourceCategory(category)]


def category_for_document_type(document_type: str | None) -> SourceCategory | None:
    """Map a declared Drucksache type to the chunked category that lists it."""
    if not document_type:
        return None
    for route in CATEGORY_ROUTES.values():
        if document_type in route.document_types:
            return route.category
    return None


@dataclass(slots=True)
class SourceDocument:
    """A listing record from the upstream API."""

    source_id: str
    category: SourceCategory
    period: int | None = None
    date: str | None = None
    document_number: str | None = None
    title: str | None = None
    publisher: str | None = None
    document_type: str | None = None
    updated_at: str | None = None
    raw: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_record(cls, record: Mapping[str, Any], category: SourceCategory) -> "SourceDocument":
        fundstelle = record.get("fundstelle") or {}
        period = record.get("wahlperiode")
        return cls(
            source_id=str(record["id"]),
            category=category,
            period=int(period) if period is not None else None,
            date=record.get("datum") or fundstelle.get("datum"),
            document_number=record.get("dokumentnummer"),
            title=record.get("titel"),
            publisher=record.get("herausgeber"),
            document_type=record.get("drucksachetyp")
            or record.get("vorgangstyp")
            or record.get("aktivitaetsart"),
            updated_at=record.get("aktualisiert"),
            raw=dict(record),
        )

    def segment_metadata(self) -> dict[str, Any]:
        return {
            "id": self.source_id,
            "category": self.category.value,
            "document_number": self.document_number,
            "period": self.period,
            "date": self.date,
            "title": self.title,
            "publisher": self.publisher,
            "document_type": self.document_type,
        }


@dataclass(slots=True)
class Chunk:
    """Text segment produced by a segmenter."""

    chunk_type: str
    text: str
    chunk_index: int = 0
    chunk_part: int = 0
    attributes: dict[str, Any] = field(default_factory=dict)

    @property
    def text_length(self) -> int:
        return len(self.text)

    @property
    def section_title(self) -> str | None:
        return self.attributes.get("section_title")

    def to_dict(self) -> dict[str, Any]:
        return {
            **self.attributes,
            "chunk_index": self.chunk_index,
            "chunk_part": self.chunk_part,
            "chunk_type": self.chunk_type,
            "text": self.text,
            "text_length": self.text_length,
        }


@dataclass(slots=True)
class SegmentationResult:
    chunks: list[Chunk]
    document_type: str | None = None
    segmenter: str = "builtin"
    stats: dict[str, Any] = field(default_factory=dict)

    @property
    def counts(self) -> dict[str, int]:
        return dict(Counter(chunk.chunk_type for chunk in self.chunks))

    def to_dict(self) -> dict[str, Any]:
        return {
            "document_type": self.document_type,
            "segmenter": self.segmenter,
            "counts": self.counts,
            "stats": self.stats,
            "chunks": [chunk.to_dict() for chunk in self.chunks],
        }


@dataclass(slots=True)
class Point:
    id: int
    vector: list[float]
    payload: dict[str, Any]


@dataclass(slots=True)
class PairResult:
    """Outcome of indexing one (period, category) pair."""

    period: int
    category: SourceCategory
    mode: str
    indexed: int = 0
    chunks: int = 0
    skipped: int = 0
    errors: int = 0
    pages: int = 0
    completed: bool = False
    detail: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "period": self.period,
            "category": self.category.value,
            "mode": self.mode,
            "indexed": self.indexed,
            "chunks": self.chunks,
            "skipped": self.skipped,
            "errors": self.errors,
            "pages": self.pages,
            "completed": self.completed,
            "detail": self.detail,
        }


@dataclass(slots=True)
class PassStats:
    """Aggregated pass statistics."""

    mode: str = "full"
    status: str = "completed"
    detail: str | None = None
    indexed: int = 0
    chunks: int = 0
    skipped: int = 0
    errors: int = 0
    pairs: list[PairResult] = field(default_factory=list)

    def add(self, result: PairResult) -> None:
        self.pairs.append(result)
        self.indexed += result.indexed
        self.chunks += result.chunks
        self.skipped += result.skipped
        self.errors += result.errors

    def to_dict(self) -> dict[str, Any]:
        return {
            "mode": self.mode,
            "status": self.status,
            "detail": self.detail,
            "indexed": self.indexed,
            "chunks": self.chunks,
            "skipped": self.skipped,
            "errors": self.errors,
            "pairs": [pair.to_dict() for pair in self.pairs],
        }


__all__ = [
    "CATEGORY_ROUTES",
    "CategoryRoute",
    "Chunk",
    "PairResult",
    "PassStats",
    "Point",
    "SegmentationResult",
    "SourceCategory",
    "SourceDocument",
    "category_for_document_type",
    "route_for",
]
