"""Tests for plenary transcript segmentation."""

from bundestag_index.ingest.protocol_parser import (
    LineClass,
    classify_line,
    parse_protocol,
    parse_speaker,
)


def test_speakers_and_agenda(protocol_text: str) -> None:
    result = parse_protocol(protocol_text, {"id": "5001", "publisher": "BT"})
    assert result.document_type == "Plenarprotokoll"
    assert [chunk.chunk_type for chunk in result.chunks] == ["procedural", "speech", "speech"]

    chair, first, second = result.chunks
    assert chair.attributes["speaker"] == "Julia Klöckner"
    assert chair.attributes["speaker_role"] == "Präsidentin"
    assert first.attributes["speaker"] == "Dr. Anna Schmidt"
    assert first.attributes["speaker_party"] == "CDU/CSU"
    assert first.attributes["top"] == "TOP 1"
    assert first.attributes["top_title"] == "Beratung des Gesetzentwurfs zur Stärkung der Wärmenetze"
    assert "(Beifall bei der CDU/CSU)" in first.text
    assert second.attributes["speaker_party"] == "BÜNDNIS 90/DIE GRÜNEN"
    assert second.attributes["top"] == "TOP 2"
    assert second.attributes["top_title"] == "Aktuelle Stunde Landwirtschaft"
    assert [chunk.chunk_index for chunk in result.chunks] == [0, 1, 2]
    assert result.stats["unique_speakers"] == 3


def test_short_speeches_are_dropped(protocol_text: str) -> None:
    result = parse_protocol(protocol_text)
    assert all(chunk.attributes["speaker"] != "Max Mustermann" for chunk in result.chunks)
    assert all(len(chunk.text) > 50 for chunk in result.chunks)


def test_segmentation_is_deterministic(protocol_text: str) -> None:
    first = parse_protocol(protocol_text).to_dict()
    second = parse_protocol(protocol_text).to_dict()
    assert first == second


def test_text_length_matches_text(protocol_text: str) -> None:
    for chunk in parse_protocol(protocol_text).chunks:
        assert chunk.text_length == len(chunk.text)
        assert "  " not in chunk.text


def test_long_speech_is_split_into_parts() -> None:
    sentence = "Das ist ein ausführlicher Satz über den Bundeshaushalt und seine Folgen. "
    text = "Beginn: 9.00 Uhr\nMax Mustermann (SPD):\n" + sentence * 120
    result = parse_protocol(text, max_chars=1000)
    assert len(result.chunks) > 1
    assert all(len(chunk.text) <= 1000 for chunk in result.chunks)
    assert [chunk.chunk_part for chunk in result.chunks] == list(range(len(result.chunks)))
    assert [chunk.chunk_index for chunk in result.chunks] == list(range(len(result.chunks)))
    assert result.stats["total_speeches"] == 1


def test_parse_speaker_variants() -> None:
    minister = parse_speaker("Lisa Paus, Bundesministerin für Familie:")
    assert minister is not None
    assert minister.name == "Lisa Paus"
    assert minister.role.startswith("Bundesministerin")

    state = parse_speaker("Winfried Kretschmann (Baden-Württemberg):", publisher="BR")
    assert state is not None
    assert state.state == "Baden-Württemberg"
    assert state.party is None

    vice = parse_speaker("Vizepräsident Omid Nouripour:")
    assert vice is not None
    assert vice.role == "Vizepräsident"

    assert parse_speaker("Das Protokoll vermerkt Folgendes.") is None


def test_classify_line() -> None:
    assert classify_line("")[0] is LineClass.BLANK
    assert classify_line("Beginn: 9.00 Uhr")[0] is LineClass.PROCEDURAL
    assert classify_line("TOP 12 Haushalt")[0] is LineClass.AGENDA
    assert classify_line("(Heiterkeit)")[0] is LineClass.REACTION
    assert classify_line("Fließtext ohne Doppelpunkt")[0] is LineClass.TEXT
    line_class, speaker = classify_line("Max Mustermann (SPD):")
    assert line_class is LineClass.SPEAKER
    assert speaker is not None and speaker.party == "SPD"


def test_no_speaker_yields_no_chunks() -> None:
    result = parse_protocol("Nur Kopfzeilen\nohne Redner\n")
    assert result.chunks == []
    assert result.stats["total_chunks"] == 0
