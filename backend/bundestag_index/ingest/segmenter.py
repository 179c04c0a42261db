"""Segmenter strategies and per-document selection."""

from __future__ import annotations

from typing import Any, Mapping, Protocol, Sequence

from bundestag_index.clients.analysis import AnalysisClient
from bundestag_index.core.logging import get_logger
from bundestag_index.ingest.document_parser import parse_document
from bundestag_index.ingest.protocol_parser import parse_protocol
from bundestag_index.ingest.splitter import MAX_CHUNK_CHARS, reindex, split_oversized
from bundestag_index.ingest.types import Chunk, SegmentationResult, SourceCategory
from bundestag_index.utils.text import normalize

logger = get_logger(__name__)

MIN_EXTRACTED_SPEECH_CHARS = 50


class Segmenter(Protocol):
    name: str

    def segment(self, text: str, metadata: Mapping[str, Any]) -> SegmentationResult:
        ...


class BuiltinSegmenter:
    """Rule-based segmentation; never raises."""

    name = "builtin"

    def __init__(self, max_chars: int = MAX_CHUNK_CHARS) -> None:
        self.max_chars = max_chars

    def segment(self, text: str, metadata: Mapping[str, Any]) -> SegmentationResult:
        try:
            if metadata.get("category") == SourceCategory.TRANSCRIPT.value:
                return parse_protocol(text, metadata, self.max_chars)
            return parse_document(text, metadata, self.max_chars)
        except Exception:  # pragma: no cover - parsers are total over str input
            logger.exception("Segmentation failed for %s", metadata.get("id"))
            return SegmentationResult(chunks=[], document_type=metadata.get("document_type"))


class AnalysisServiceSegmenter:
    """Transcript segmentation delegated to the analysis service."""

    name = "analysis"

    def __init__(self, client: AnalysisClient, max_chars: int = MAX_CHUNK_CHARS) -> None:
        self.client = client
        self.max_chars = max_chars

    def segment(self, text: str, metadata: Mapping[str, Any]) -> SegmentationResult:
        speeches = self.client.extract_speeches(text)
        chunks = reindex(split_oversized(speeches_to_chunks(speeches), self.max_chars))
        return SegmentationResult(
            chunks=chunks,
            document_type="Plenarprotokoll",
            segmenter=self.name,
            stats={"total_speeches": len(speeches), "total_chunks": len(chunks)},
        )


def speeches_to_chunks(speeches: Sequence[Mapping[str, Any]]) -> list[Chunk]:
    chunks: list[Chunk] = []
    for speech in speeches:
        text = normalize(speech.get("text") or "")
        if len(text) < MIN_EXTRACTED_SPEECH_CHARS:
            continue
        chunks.append(
            Chunk(
                chunk_type="speech" if speech.get("category") == "rede" else "contribution",
                text=text,
                chunk_index=len(chunks),
                attributes={
                    "speaker": speech.get("speaker"),
                    "speaker_party": speech.get("party"),
                    "speaker_state": None,
                    "speaker_role": "government" if speech.get("is_government") else None,
                    "speech_type": speech.get("type"),
                    "speech_category": speech.get("category"),
                    "is_government": bool(speech.get("is_government")),
                    "first_name": speech.get("first_name"),
                    "last_name": speech.get("last_name"),
                    "acad_title": speech.get("acad_title"),
                    "top": None,
                    "top_title": None,
                },
            )
        )
    return chunks


class SegmenterSelector:
    """Pick a segmenter per document, falling back to the built-in rules.

    Transcripts go to the analysis service when it answers its health probe
    and returns at least one speech; every other case uses the built-in
    segmenter.
    """

    def __init__(
        self,
        builtin: BuiltinSegmenter | None = None,
        analysis: AnalysisServiceSegmenter | None = None,
    ) -> None:
        self.builtin = builtin or BuiltinSegmenter()
        self.analysis = analysis

    def segment(self, text: str, metadata: Mapping[str, Any]) -> SegmentationResult:
        if self.analysis is not None and metadata.get("category") == SourceCategory.TRANSCRIPT.value:
            if self.analysis.client.is_available():
                try:
                    result = self.analysis.segment(text, metadata)
                except Exception as exc:
                    logger.warning("Analysis service failed for %s, using built-in parser: %s", metadata.get("id"), exc)
                else:
                    if result.chunks:
                        return result
                    logger.info("Analysis service found no speeches in %s", metadata.get("id"))
        return self.builtin.segment(text, metadata)


__all__ = [
    "AnalysisServiceSegmenter",
    "BuiltinSegmenter",
    "Segmenter",
    "SegmenterSelector",
    "speeches_to_chunks",
]
