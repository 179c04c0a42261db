"""Structured segmentation of printed parliamentary documents (Drucksachen)."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping

from bundestag_index.ingest.splitter import MAX_CHUNK_CHARS, reindex, split_oversized
from bundestag_index.ingest.types import Chunk, SegmentationResult
from bundestag_index.utils.text import clean_text, is_boilerplate

MIN_SECTION_CHARS = 50
MIN_QUESTION_CHARS = 20
MIN_POINT_CHARS = 20
MIN_RATIONALE_CHARS = 30
MIN_PARAGRAPH_CHARS = 100
PARAGRAPH_SOFT_CAP = 3500
DETECTION_WINDOW = 2000

# (pattern, chunk type, section title) for the lettered sections of a bill
BILL_SECTIONS: tuple[tuple[re.Pattern[str], str, str], ...] = (
    (re.compile(r"^A\.\s*Problem\s*$", re.IGNORECASE), "problem", "A. Problem"),
    (re.compile(r"^B\.\s*Lösung\s*$", re.IGNORECASE), "loesung", "B. Lösung"),
    (re.compile(r"^C\.\s*Alternativen?\s*$", re.IGNORECASE), "alternativen", "C. Alternativen"),
    (re.compile(r"^D\.\s*Haushaltsausgaben", re.IGNORECASE), "haushalt", "D. Haushaltsausgaben"),
    (re.compile(r"^E\.\s*Erfüllungsaufwand", re.IGNORECASE), "erfuellung", "E. Erfüllungsaufwand"),
    (re.compile(r"^F\.\s*Weitere Kosten", re.IGNORECASE), "kosten", "F. Weitere Kosten"),
)

ARTICLE_RE = re.compile(r"^Artikel\s+(\d+)\s*(?:\(([^)]+)\))?\s*$", re.IGNORECASE)
RATIONALE_START_RE = re.compile(r"^Begründung\s*$", re.IGNORECASE)
RATIONALE_COLON_RE = re.compile(r"^Begründung:", re.IGNORECASE)
GENERAL_PART_RE = re.compile(r"^A\.\s*Allgemeiner Teil", re.IGNORECASE)
SPECIFIC_PART_RE = re.compile(r"^B\.\s*Besonderer Teil", re.IGNORECASE)
ON_ARTICLE_RE = re.compile(r"^Zu\s+Artikel\s+(\d+)", re.IGNORECASE)

QUESTIONS_START_RE = re.compile(r"^Wir fragen die Bundesregierung:?\s*$", re.IGNORECASE)
NUMBERED_RE = re.compile(r"^(\d+)\.\s+(.+)")
RESOLUTION_RE = re.compile(
    r"^Der (?:Bundestag|Bundesrat) (?:möge beschließen|wolle beschließen|beschließt|fordert)",
    re.IGNORECASE,
)
ON_POINT_RE = re.compile(r"^[Zz]u\s+(\d+)\.\s*(.*)")

ROMAN_RE = re.compile(r"^([IVX]+)\.\s+(.+)")
CAPS_HEADER_RE = re.compile(r"^[A-ZÄÖÜ][A-ZÄÖÜ\s]+$")

HEADER_LINE_RES = (
    re.compile(r"^Deutscher Bundestag\s+Drucksache\s+(\d+/\d+)"),
    re.compile(r"^Bundesrat\s+Drucksache\s+(\d+/\d+)"),
    re.compile(r"^\d+\.\s*Wahlperiode", re.IGNORECASE),
)
DOCUMENT_TYPE_LINE_RE = re.compile(
    r"^(Gesetzentwurf|Kleine Anfrage|Große Anfrage|Antrag|Beschlussempfehlung|Unterrichtung"
    r"|Entschließungsantrag|Änderungsantrag|Bericht|Schriftliche Frage)\s*$",
    re.IGNORECASE,
)

# checked in order against the start of the text
DETECTION_RULES: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"Gesetzentwurf", re.IGNORECASE), "Gesetzentwurf"),
    (re.compile(r"Kleine Anfrage", re.IGNORECASE), "Kleine Anfrage"),
    (re.compile(r"Große Anfrage", re.IGNORECASE), "Große Anfrage"),
    (re.compile(r"Beschlussempfehlung und Bericht", re.IGNORECASE), "Beschlussempfehlung und Bericht"),
    (re.compile(r"Entschließungsantrag", re.IGNORECASE), "Entschließungsantrag"),
    (re.compile(r"Änderungsantrag", re.IGNORECASE), "Änderungsantrag"),
    (re.compile(r"Antrag\s*$", re.MULTILINE), "Antrag"),
    (re.compile(r"Unterrichtung", re.IGNORECASE), "Unterrichtung"),
    (re.compile(r"Bericht", re.IGNORECASE), "Bericht"),
    (re.compile(r"Schriftliche Frage", re.IGNORECASE), "Schriftliche Frage"),
)
UNKNOWN_TYPE = "Sonstige"


def detect_document_type(text: str) -> str:
    """Guess the document type from the first lines when the listing does not declare it."""
    window = text[:DETECTION_WINDOW]
    for pattern, document_type in DETECTION_RULES:
        if pattern.search(window):
            return document_type
    return UNKNOWN_TYPE


def parse_document(
    text: str,
    metadata: Mapping[str, Any] | None = None,
    max_chars: int = MAX_CHUNK_CHARS,
) -> SegmentationResult:
    """Segment a printed document according to its declared or detected type."""
    metadata = metadata or {}
    document_type = metadata.get("document_type") or detect_document_type(text)
    parser = _PARSERS.get(document_type, _parse_generic)
    chunks = reindex(split_oversized(parser(text.split("\n")), max_chars))
    result = SegmentationResult(chunks=chunks, document_type=document_type)
    result.stats = {"total_chunks": len(chunks), "chunk_types": result.counts}
    return result


@dataclass(slots=True)
class _Section:
    """Accumulates the lines of the section currently being read."""

    chunk_type: str | None = None
    title: str | None = None
    attributes: dict[str, Any] = field(default_factory=dict)
    lines: list[str] = field(default_factory=list)

    def add(self, line: str) -> None:
        self.lines.append(line)

    def blank(self) -> None:
        if self.lines:
            self.lines.append("")

    def flush(self, chunks: list[Chunk], default_type: str, min_chars: int = MIN_SECTION_CHARS) -> None:
        if self.chunk_type is None and not self.lines:
            return
        text = clean_text(self.lines)
        if len(text) < min_chars:
            return
        chunks.append(
            Chunk(
                chunk_type=self.chunk_type or default_type,
                text=text,
                attributes={"section_title": self.title or "Abschnitt", **self.attributes},
            )
        )


def _parse_bill(lines: list[str]) -> list[Chunk]:
    chunks: list[Chunk] = []
    section = _Section()
    in_rationale = False

    for raw in lines:
        line = raw.strip()
        if not line:
            section.blank()
            continue
        if is_boilerplate(line):
            continue

        if RATIONALE_START_RE.match(line):
            section.flush(chunks, "overview")
            in_rationale = True
            section = _Section("begruendung_header", "Begründung")
            continue

        if in_rationale:
            if GENERAL_PART_RE.match(line):
                section.flush(chunks, "begruendung")
                section = _Section("begruendung_allgemein", "Begründung - Allgemeiner Teil")
                continue
            if SPECIFIC_PART_RE.match(line):
                section.flush(chunks, "begruendung")
                section = _Section("begruendung_besonders", "Begründung - Besonderer Teil")
                continue
            match = ON_ARTICLE_RE.match(line)
            if match:
                section.flush(chunks, "begruendung")
                section = _Section(
                    "begruendung_artikel",
                    f"Begründung zu Artikel {match.group(1)}",
                    {"article": match.group(1)},
                )
                continue
        else:
            lettered = next(
                ((chunk_type, title) for pattern, chunk_type, title in BILL_SECTIONS if pattern.match(line)),
                None,
            )
            if lettered is not None:
                section.flush(chunks, "overview")
                section = _Section(*lettered)
                continue
            match = ARTICLE_RE.match(line)
            if match:
                section.flush(chunks, "article")
                section = _Section(
                    "artikel",
                    line,
                    {"article": match.group(1), "article_title": match.group(2)},
                )
                continue

        section.add(line)

    section.flush(chunks, "begruendung" if in_rationale else "article")
    return chunks


def _parse_inquiry(lines: list[str]) -> list[Chunk]:
    chunks: list[Chunk] = []
    preamble: list[str] = []
    in_preamble = True
    in_questions = False
    question: int | None = None
    current: list[str] = []

    def save_question() -> None:
        if question is None:
            return
        text = clean_text(current)
        if len(text) > MIN_QUESTION_CHARS:
            chunks.append(
                Chunk(
                    chunk_type="question",
                    text=text,
                    attributes={"section_title": f"Frage {question}", "question_number": question},
                )
            )

    for raw in lines:
        line = raw.strip()
        if not line:
            if current:
                current.append("")
            if in_preamble and preamble:
                preamble.append("")
            continue
        if is_boilerplate(line):
            continue

        if QUESTIONS_START_RE.match(line):
            text = clean_text(preamble)
            if len(text) > MIN_SECTION_CHARS:
                chunks.append(
                    Chunk(
                        chunk_type="vorbemerkung",
                        text=text,
                        attributes={"section_title": "Vorbemerkung der Fragesteller"},
                    )
                )
            in_preamble = False
            in_questions = True
            continue

        if in_questions:
            match = NUMBERED_RE.match(line)
            if match:
                save_question()
                question = int(match.group(1))
                current = [line]
            elif question is not None:
                current.append(line)
        elif not _is_header_line(line) and not DOCUMENT_TYPE_LINE_RE.match(line):
            preamble.append(line)

    save_question()
    return chunks


def _parse_motion(lines: list[str]) -> list[Chunk]:
    chunks: list[Chunk] = []
    intro: list[str] = []
    in_resolution = False
    in_rationale = False
    point: int | None = None
    current: list[str] = []

    def save_point() -> None:
        text = clean_text(current)
        if len(text) >= MIN_POINT_CHARS:
            chunks.append(
                Chunk(
                    chunk_type="resolution_point",
                    text=text,
                    attributes={"section_title": f"Beschlusspunkt {point}", "point_number": point},
                )
            )

    def save_rationale() -> None:
        text = clean_text(current)
        if len(text) > MIN_RATIONALE_CHARS:
            chunks.append(
                Chunk(
                    chunk_type="begruendung",
                    text=text,
                    attributes={
                        "section_title": f"Begründung zu Punkt {point}" if point else "Begründung",
                        "point_number": point,
                    },
                )
            )

    for raw in lines:
        line = raw.strip()
        if not line:
            if current:
                current.append("")
            if not in_resolution and not in_rationale and intro:
                intro.append("")
            continue
        if is_boilerplate(line):
            continue

        if RESOLUTION_RE.match(line):
            text = clean_text(intro)
            if len(text) > MIN_SECTION_CHARS:
                chunks.append(
                    Chunk(chunk_type="introduction", text=text, attributes={"section_title": "Einleitung"})
                )
            in_resolution = True
            current = [line]
            continue

        if RATIONALE_START_RE.match(line) or RATIONALE_COLON_RE.match(line):
            if point is not None:
                save_point()
            elif in_resolution and current:
                text = clean_text(current)
                if len(text) > MIN_RATIONALE_CHARS:
                    chunks.append(
                        Chunk(chunk_type="resolution", text=text, attributes={"section_title": "Beschlussantrag"})
                    )
            in_resolution = False
            in_rationale = True
            point = None
            current = []
            continue

        if in_resolution:
            match = NUMBERED_RE.match(line)
            if match:
                if point is not None:
                    save_point()
                point = int(match.group(1))
                current = [line]
                continue
            current.append(line)
        elif in_rationale:
            match = ON_POINT_RE.match(line)
            if match:
                if current:
                    save_rationale()
                point = int(match.group(1))
                current = [line]
                continue
            current.append(line)
        elif not _is_header_line(line) and not DOCUMENT_TYPE_LINE_RE.match(line):
            intro.append(line)

    if current and len(clean_text(current)) > MIN_RATIONALE_CHARS:
        if in_rationale:
            save_rationale()
        elif in_resolution and point is not None:
            save_point()
    return chunks


def _parse_report(lines: list[str]) -> list[Chunk]:
    chunks: list[Chunk] = []
    section = _Section()

    for raw in lines:
        line = raw.strip()
        if not line:
            section.blank()
            continue
        if is_boilerplate(line):
            continue

        match = ROMAN_RE.match(line)
        if match and len(line) < 200:
            section.flush(chunks, "section")
            section = _Section("section", line, {"numeral": match.group(1)})
            continue
        if CAPS_HEADER_RE.match(line) and 5 < len(line) < 100:
            section.flush(chunks, "section")
            section = _Section("section", line)
            continue

        section.add(line)

    section.flush(chunks, "section")
    return chunks


def _parse_generic(lines: list[str]) -> list[Chunk]:
    chunks: list[Chunk] = []
    current: list[str] = []

    def emit(text: str) -> None:
        chunks.append(
            Chunk(chunk_type="paragraph", text=text, attributes={"section_title": f"Abschnitt {len(chunks) + 1}"})
        )

    for raw in lines:
        line = raw.strip()
        if not line:
            if current:
                text = clean_text(current)
                if len(text) > MIN_PARAGRAPH_CHARS:
                    emit(text)
                    current = []
                else:
                    current.append("")
            continue
        if is_boilerplate(line):
            continue

        current.append(line)
        text = clean_text(current)
        if len(text) > PARAGRAPH_SOFT_CAP:
            emit(text)
            current = []

    if current:
        text = clean_text(current)
        if len(text) > MIN_SECTION_CHARS:
            emit(text)
    return chunks


def _is_header_line(line: str) -> bool:
    return any(pattern.match(line) for pattern in HEADER_LINE_RES)


_PARSERS: Mapping[str, Callable[[list[str]], list[Chunk]]] = {
    "Gesetzentwurf": _parse_bill,
    "Kleine Anfrage": _parse_inquiry,
    "Große Anfrage": _parse_inquiry,
    "Antrag": _parse_motion,
    "Entschließungsantrag": _parse_motion,
    "Beschlussempfehlung und Bericht": _parse_report,
    "Beschlussempfehlung": _parse_report,
    "Bericht": _parse_report,
}


__all__ = ["detect_document_type", "parse_document"]
