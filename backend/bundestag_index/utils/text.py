"""Text processing helpers."""

from __future__ import annotations

import re
from typing import Iterable

WHITESPACE_RE = re.compile(r"\s+")
_PARAGRAPH_RUN_RE = re.compile(r"\n{3,}")

BOILERPLATE_PATTERNS = (
    re.compile(r"^Gesamtherstellung:", re.IGNORECASE),
    re.compile(r"^Vertrieb:", re.IGNORECASE),
    re.compile(r"^ISSN\s+[\d-]+", re.IGNORECASE),
    re.compile(r"^www\.", re.IGNORECASE),
    re.compile(r"^Telefon\s*\(", re.IGNORECASE),
    re.compile(r"^Drucksache\s+\d+/\d+\s*-?\s*\d*\s*-?\s*$", re.IGNORECASE),
    re.compile(r"^\d+\.\s*Wahlperiode\s+[\d.]+$", re.IGNORECASE),
)


def normalize(text: str) -> str:
    """Collapse whitespace and strip."""
    return WHITESPACE_RE.sub(" ", text).strip()


def clean_text(lines: Iterable[str]) -> str:
    """Join lines and normalize them to single-spaced chunk text."""
    joined = "\n".join(lines)
    joined = _PARAGRAPH_RUN_RE.sub("\n\n", joined).strip()
    return normalize(joined)


def is_boilerplate(line: str) -> bool:
    stripped = line.strip()
    return any(pattern.search(stripped) for pattern in BOILERPLATE_PATTERNS)


__all__ = ["BOILERPLATE_PATTERNS", "clean_text", "is_boilerplate", "normalize"]
