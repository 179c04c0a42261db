"""Tests for oversize splitting."""

from bundestag_index.ingest.splitter import reindex, split_oversized, split_text
from bundestag_index.ingest.types import Chunk


def test_short_chunks_pass_through() -> None:
    chunk = Chunk(chunk_type="speech", text="Kurzer Text.", attributes={"section_title": "Frage 1"})
    assert split_oversized([chunk]) == [chunk]
    assert chunk.section_title == "Frage 1"


def test_sentences_are_packed_greedily() -> None:
    text = "Erster Satz ist hier. Zweiter Satz ist hier. Dritter Satz ist hier."
    assert split_text(text, max_chars=45) == [
        "Erster Satz ist hier. Zweiter Satz ist hier.",
        "Dritter Satz ist hier.",
    ]


def test_sentence_without_boundaries_falls_back_to_words() -> None:
    text = " ".join(["Wort"] * 30)
    parts = split_text(text, max_chars=20)
    assert all(len(part) <= 20 for part in parts)
    assert " ".join(parts) == text


def test_single_long_token_is_cut() -> None:
    parts = split_text("x" * 25, max_chars=10)
    assert parts == ["x" * 10, "x" * 10, "x" * 5]


def test_parts_keep_attributes_and_number_titles() -> None:
    chunk = Chunk(
        chunk_type="artikel",
        text="Ein Satz über das Gesetz. " * 10,
        chunk_index=3,
        attributes={"section_title": "Artikel 1", "article": "1"},
    )
    parts = reindex(split_oversized([chunk], max_chars=60))
    assert len(parts) > 1
    assert [part.chunk_part for part in parts] == list(range(len(parts)))
    assert [part.chunk_index for part in parts] == list(range(len(parts)))
    assert parts[1].section_title == "Artikel 1 (Teil 2)"
    assert all(part.attributes["article"] == "1" for part in parts)
    assert chunk.section_title == "Artikel 1"
