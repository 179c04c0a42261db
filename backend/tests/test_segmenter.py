"""Tests for segmenter selection and the analysis-service mapping."""

from __future__ import annotations

from bundestag_index.core.errors import UpstreamHTTPError
from bundestag_index.ingest.segmenter import (
    AnalysisServiceSegmenter,
    BuiltinSegmenter,
    SegmenterSelector,
    speeches_to_chunks,
)

SPEECH_TEXT = "Herr Präsident! Meine Damen und Herren! Die Schuldenbremse bleibt ein zentrales Thema."

TRANSCRIPT_META = {"id": "5001", "category": "transcript"}


class FakeAnalysisClient:
    def __init__(self, speeches=None, available: bool = True, error: Exception | None = None) -> None:
        self.speeches = speeches or []
        self.available = available
        self.error = error
        self.calls = 0

    def is_available(self) -> bool:
        return self.available

    def extract_speeches(self, text: str):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.speeches


def _selector(client: FakeAnalysisClient) -> SegmenterSelector:
    return SegmenterSelector(builtin=BuiltinSegmenter(), analysis=AnalysisServiceSegmenter(client))


def test_speeches_to_chunks_maps_fields() -> None:
    chunks = speeches_to_chunks(
        [
            {
                "speaker": "Christian Lindner",
                "party": "FDP",
                "type": "rede",
                "category": "rede",
                "is_government": True,
                "first_name": "Christian",
                "last_name": "Lindner",
                "text": SPEECH_TEXT,
            },
            {"speaker": "Zwischenrufer", "category": "zwischenruf", "text": "Hört, hört!"},
            {"speaker": "Anna Schmidt", "party": "CDU/CSU", "category": "kurzintervention", "text": SPEECH_TEXT},
        ]
    )
    assert [chunk.chunk_type for chunk in chunks] == ["speech", "contribution"]
    assert [chunk.chunk_index for chunk in chunks] == [0, 1]
    first = chunks[0]
    assert first.attributes["speaker_party"] == "FDP"
    assert first.attributes["speaker_role"] == "government"
    assert first.attributes["speech_category"] == "rede"
    assert chunks[1].attributes["is_government"] is False


def test_analysis_service_used_for_transcripts(protocol_text: str) -> None:
    client = FakeAnalysisClient([{"speaker": "Anna Schmidt", "category": "rede", "text": SPEECH_TEXT}])
    result = _selector(client).segment(protocol_text, TRANSCRIPT_META)
    assert result.segmenter == "analysis"
    assert result.stats == {"total_speeches": 1, "total_chunks": 1}
    assert result.chunks[0].attributes["speaker"] == "Anna Schmidt"


def test_falls_back_when_service_unavailable(protocol_text: str) -> None:
    client = FakeAnalysisClient(available=False)
    result = _selector(client).segment(protocol_text, TRANSCRIPT_META)
    assert result.segmenter == "builtin"
    assert len(result.chunks) == 3
    assert client.calls == 0


def test_falls_back_when_service_fails(protocol_text: str) -> None:
    client = FakeAnalysisClient(error=UpstreamHTTPError(500, "boom"))
    result = _selector(client).segment(protocol_text, TRANSCRIPT_META)
    assert result.segmenter == "builtin"
    assert client.calls == 1


def test_falls_back_when_service_finds_nothing(protocol_text: str) -> None:
    client = FakeAnalysisClient([{"speaker": "X", "category": "rede", "text": "zu kurz"}])
    result = _selector(client).segment(protocol_text, TRANSCRIPT_META)
    assert result.segmenter == "builtin"
    assert len(result.chunks) == 3


def test_printed_documents_skip_the_service() -> None:
    client = FakeAnalysisClient([{"speaker": "X", "category": "rede", "text": SPEECH_TEXT}])
    text = "Die Unterrichtung enthält einen ausführlichen Sachstand zu den laufenden Vorhaben der Regierung."
    result = _selector(client).segment(text, {"id": "1", "category": "printed", "document_type": "Unterrichtung"})
    assert result.segmenter == "builtin"
    assert client.calls == 0
