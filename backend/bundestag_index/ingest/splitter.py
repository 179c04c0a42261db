"""Sentence-boundary splitting for oversized chunks."""

from __future__ import annotations

import re
from typing import Iterable, Iterator

from bundestag_index.ingest.types import Chunk

MAX_CHUNK_CHARS = 4000

SENTENCE_SPLIT_RE = re.compile(r"(?<=[.!?])\s+")


def split_oversized(chunks: Iterable[Chunk], max_chars: int = MAX_CHUNK_CHARS) -> list[Chunk]:
    """Re-split chunks longer than ``max_chars`` into numbered parts.

    Parts keep every attribute of their parent; a section title gets a
    ``(Teil N)`` suffix when more than one part results.
    """
    result: list[Chunk] = []
    for chunk in chunks:
        if len(chunk.text) <= max_chars:
            result.append(chunk)
            continue
        parts = split_text(chunk.text, max_chars)
        title = chunk.section_title
        for part_index, text in enumerate(parts):
            attributes = dict(chunk.attributes)
            if title and len(parts) > 1:
                attributes["section_title"] = f"{title} (Teil {part_index + 1})"
            result.append(
                Chunk(
                    chunk_type=chunk.chunk_type,
                    text=text,
                    chunk_index=chunk.chunk_index,
                    chunk_part=part_index,
                    attributes=attributes,
                )
            )
    return result


def split_text(text: str, max_chars: int = MAX_CHUNK_CHARS) -> list[str]:
    """Greedily pack sentences into parts of at most ``max_chars`` characters."""
    parts: list[str] = []
    current: list[str] = []
    current_len = 0
    for piece in _pieces(text, max_chars):
        if current_len + len(piece) > max_chars and current:
            parts.append(" ".join(current))
            current = []
            current_len = 0
        current.append(piece)
        current_len += len(piece) + 1
    if current:
        parts.append(" ".join(current))
    return parts


def reindex(chunks: list[Chunk]) -> list[Chunk]:
    for index, chunk in enumerate(chunks):
        chunk.chunk_index = index
    return chunks


def _pieces(text: str, max_chars: int) -> Iterator[str]:
    for sentence in SENTENCE_SPLIT_RE.split(text):
        if not sentence:
            continue
        if len(sentence) <= max_chars:
            yield sentence
        else:
            yield from _split_long_sentence(sentence, max_chars)


def _split_long_sentence(sentence: str, max_chars: int) -> Iterator[str]:
    current: list[str] = []
    current_len = 0
    for word in sentence.split():
        while len(word) > max_chars:
            if current:
                yield " ".join(current)
                current = []
                current_len = 0
            yield word[:max_chars]
            word = word[max_chars:]
        if current and current_len + 1 + len(word) > max_chars:
            yield " ".join(current)
            current = []
            current_len = 0
        current.append(word)
        current_len += len(word) + (1 if current_len else 0)
    if current:
        yield " ".join(current)


__all__ = ["MAX_CHUNK_CHARS", "reindex", "split_oversized", "split_text"]
