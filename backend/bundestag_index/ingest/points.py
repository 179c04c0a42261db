"""Embedding text and payload assembly for vector store points."""

from __future__ import annotations

from typing import Any, Mapping

from bundestag_index.ingest.types import CategoryRoute, Chunk, SourceCategory, SourceDocument

EMBED_SEPARATOR = " | "


def chunk_embedding_text(chunk: Chunk, document: SourceDocument) -> str:
    """Prefix chunk text with the context a reader would need to place it."""
    parts: list[str] = []
    if document.category == SourceCategory.TRANSCRIPT:
        top = chunk.attributes.get("top")
        if top:
            parts.append(str(top))
        if chunk.attributes.get("speaker_party"):
            parts.append(f"Fraktion: {chunk.attributes['speaker_party']}")
        if chunk.attributes.get("speaker"):
            parts.append(f"Redner: {chunk.attributes['speaker']}")
    else:
        if document.title:
            parts.append(document.title)
        if chunk.section_title:
            parts.append(chunk.section_title)
    parts.append(chunk.text)
    return EMBED_SEPARATOR.join(parts)


def record_embedding_text(record: Mapping[str, Any]) -> str:
    """Single text describing a listing record that has no full text."""
    parts: list[str] = []
    if record.get("titel"):
        parts.append(str(record["titel"]))
    for key in ("drucksachetyp", "vorgangstyp"):
        if record.get(key):
            parts.append(f"Typ: {record[key]}")
    if record.get("aktivitaetsart"):
        parts.append(f"Art: {record['aktivitaetsart']}")
    if record.get("abstract"):
        parts.append(str(record["abstract"]))
    for key, label in (("sachgebiet", "Sachgebiet"), ("initiative", "Initiative")):
        value = _join_values(record.get(key))
        if value:
            parts.append(f"{label}: {value}")
    authors = _join_values(record.get("urheber"))
    if authors:
        parts.append(f"Urheber: {authors}")
    if record.get("ressort"):
        parts.append(f"Ressort: {_join_values(record['ressort'])}")
    topics = _join_values(record.get("deskriptoren"))
    if topics:
        parts.append(f"Themen: {topics}")
    if not parts:
        # persons carry their name outside of titel
        name = " ".join(str(record[key]) for key in ("vorname", "nachname") if record.get(key))
        if name:
            parts.append(name)
    return EMBED_SEPARATOR.join(parts)


def base_payload(document: SourceDocument) -> dict[str, Any]:
    return {
        "source_id": document.source_id,
        "category": document.category.value,
        "period": document.period,
        "date": document.date or document.updated_at,
        "document_number": document.document_number,
        "title": document.title,
        "publisher": document.publisher,
        "document_type": document.document_type,
    }


def chunk_payload(chunk: Chunk, document: SourceDocument) -> dict[str, Any]:
    payload = dict(chunk.attributes)
    payload.update(base_payload(document))
    payload.update(
        {
            "chunk_index": chunk.chunk_index,
            "chunk_part": chunk.chunk_part,
            "chunk_type": chunk.chunk_type,
            "text": chunk.text,
            "text_length": chunk.text_length,
        }
    )
    return payload


def record_payload(document: SourceDocument, route: CategoryRoute) -> dict[str, Any]:
    record = document.raw
    payload = base_payload(document)
    payload.update(
        {
            "doc_type": route.namespace,
            "abstract": record.get("abstract"),
            "authors": record.get("autoren") or record.get("urheber") or [],
            "descriptors": record.get("deskriptoren") or [],
            "sachgebiet": record.get("sachgebiet"),
            "initiative": record.get("initiative"),
            "fraktion": record.get("fraktion"),
            "ressort": record.get("ressort"),
            "chunk_index": 0,
            "chunk_part": 0,
            "chunk_type": "metadata",
        }
    )
    return payload


# Internal helpers -------------------------------------------------


def _join_values(value: Any) -> str:
    if not value:
        return ""
    if isinstance(value, (list, tuple)):
        return ", ".join(filter(None, (_label(item) for item in value)))
    return _label(value)


def _label(item: Any) -> str:
    if isinstance(item, Mapping):
        for key in ("name", "bezeichnung", "titel"):
            if item.get(key):
                return str(item[key])
        return ""
    return str(item)


__all__ = [
    "EMBED_SEPARATOR",
    "base_payload",
    "chunk_embedding_text",
    "chunk_payload",
    "record_embedding_text",
    "record_payload",
]
