"""Plenary transcript segmentation.

The transcript is walked line by line through a small state machine. Each
line is classified first; the pair (state, line class) then selects an action
and the next state from ``TRANSITIONS``. Speeches are emitted when the next
speaker takes the floor and at the end of the text.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Sequence

from bundestag_index.ingest.splitter import MAX_CHUNK_CHARS, reindex, split_oversized
from bundestag_index.ingest.types import Chunk, SegmentationResult
from bundestag_index.utils.text import clean_text

PARLIAMENTARY_GROUPS = (
    "CDU/CSU",
    "SPD",
    "BÜNDNIS 90/DIE GRÜNEN",
    "FDP",
    "AfD",
    "Die Linke",
    "BSW",
    "fraktionslos",
)

FEDERAL_STATES = (
    "Baden-Württemberg",
    "Bayern",
    "Berlin",
    "Brandenburg",
    "Bremen",
    "Hamburg",
    "Hessen",
    "Mecklenburg-Vorpommern",
    "Niedersachsen",
    "Nordrhein-Westfalen",
    "Rheinland-Pfalz",
    "Saarland",
    "Sachsen",
    "Sachsen-Anhalt",
    "Schleswig-Holstein",
    "Thüringen",
)

MIN_SPEECH_CHARS = 50
AGENDA_TITLE_LOOKAHEAD = 4
AGENDA_TITLE_MAX_CHARS = 200

_NAME = r"[A-ZÄÖÜ][a-zäöüß]+(?:[-\s][A-ZÄÖÜ]?[a-zäöüß]+)*"

PRESIDING_RE = re.compile(rf"^((?:Vizep|P)räsident(?:in)?)\s+({_NAME})\s*:\s*$")
MINISTER_RE = re.compile(rf"^({_NAME}),\s*(Bundes(?:minister(?:in)?|kanzler(?:in)?)[^:]*)\s*:\s*$")
TITLED_RE = re.compile(rf"^((?:Dr\.|Prof\.|Prof\.\s*Dr\.)\s*{_NAME})\s*\(([^)]+)\)\s*:\s*$")
GROUP_RE = re.compile(rf"^({_NAME}(?:\s+\([A-Za-z]+\))?)\s*\(([^)]+)\)\s*:\s*$")
STATE_RE = re.compile(rf"^({_NAME})\s*\(([A-ZÄÖÜ][A-Za-zÄÖÜäöüß-]+)\)\s*:\s*$")
AGENDA_RE = re.compile(r"^(?:TOP\s+(\d+)|Tagesordnungspunkt\s+(\d+))", re.IGNORECASE)
REACTION_RE = re.compile(r"^\([^)]+\)\s*$")
PROCEDURAL_RE = re.compile(r"^(?:Beginn:|Ende:|Schluss:|Unterbrechung:)")


@dataclass(frozen=True, slots=True)
class Speaker:
    name: str
    party: str | None = None
    state: str | None = None
    role: str | None = None


class ParserState(str, Enum):
    HEADER = "header"
    BODY = "body"
    IN_SPEECH = "in_speech"


class LineClass(str, Enum):
    BLANK = "blank"
    PROCEDURAL = "procedural"
    AGENDA = "agenda"
    SPEAKER = "speaker"
    REACTION = "reaction"
    TEXT = "text"


class Action(str, Enum):
    SKIP = "skip"
    START_SPEECH = "start_speech"
    SWITCH_SPEAKER = "switch_speaker"
    SET_AGENDA = "set_agenda"
    BREAK = "break"
    APPEND = "append"
    APPEND_REACTION = "append_reaction"


TRANSITIONS: Mapping[tuple[ParserState, LineClass], tuple[Action, ParserState]] = {
    (ParserState.HEADER, LineClass.BLANK): (Action.SKIP, ParserState.HEADER),
    (ParserState.HEADER, LineClass.PROCEDURAL): (Action.SKIP, ParserState.BODY),
    (ParserState.HEADER, LineClass.AGENDA): (Action.SKIP, ParserState.HEADER),
    (ParserState.HEADER, LineClass.SPEAKER): (Action.START_SPEECH, ParserState.IN_SPEECH),
    (ParserState.HEADER, LineClass.REACTION): (Action.SKIP, ParserState.HEADER),
    (ParserState.HEADER, LineClass.TEXT): (Action.SKIP, ParserState.HEADER),
    (ParserState.BODY, LineClass.BLANK): (Action.SKIP, ParserState.BODY),
    (ParserState.BODY, LineClass.PROCEDURAL): (Action.SKIP, ParserState.BODY),
    (ParserState.BODY, LineClass.AGENDA): (Action.SET_AGENDA, ParserState.BODY),
    (ParserState.BODY, LineClass.SPEAKER): (Action.START_SPEECH, ParserState.IN_SPEECH),
    (ParserState.BODY, LineClass.REACTION): (Action.SKIP, ParserState.BODY),
    (ParserState.BODY, LineClass.TEXT): (Action.SKIP, ParserState.BODY),
    (ParserState.IN_SPEECH, LineClass.BLANK): (Action.BREAK, ParserState.IN_SPEECH),
    (ParserState.IN_SPEECH, LineClass.PROCEDURAL): (Action.APPEND, ParserState.IN_SPEECH),
    (ParserState.IN_SPEECH, LineClass.AGENDA): (Action.SET_AGENDA, ParserState.IN_SPEECH),
    (ParserState.IN_SPEECH, LineClass.SPEAKER): (Action.SWITCH_SPEAKER, ParserState.IN_SPEECH),
    (ParserState.IN_SPEECH, LineClass.REACTION): (Action.APPEND_REACTION, ParserState.IN_SPEECH),
    (ParserState.IN_SPEECH, LineClass.TEXT): (Action.APPEND, ParserState.IN_SPEECH),
}


def parse_speaker(line: str, publisher: str = "BT") -> Speaker | None:
    """Match a speaker line against the known speaker grammars, in order."""
    match = PRESIDING_RE.match(line)
    if match:
        return Speaker(name=match.group(2), role=match.group(1))

    match = MINISTER_RE.match(line)
    if match:
        return Speaker(name=match.group(1), role=match.group(2))

    match = TITLED_RE.match(line)
    if match:
        affiliation = match.group(2)
        return Speaker(
            name=match.group(1),
            party=affiliation if _names_group(affiliation) else None,
            state=affiliation if any(state in affiliation for state in FEDERAL_STATES) else None,
        )

    match = GROUP_RE.match(line)
    if match:
        affiliation = match.group(2)
        if _names_group(affiliation) or publisher == "BT":
            return Speaker(name=match.group(1), party=affiliation)

    match = STATE_RE.match(line)
    if match:
        affiliation = match.group(2)
        if affiliation in FEDERAL_STATES or publisher == "BR":
            return Speaker(name=match.group(1), state=affiliation)

    return None


def classify_line(line: str, publisher: str = "BT") -> tuple[LineClass, Speaker | None]:
    if not line:
        return LineClass.BLANK, None
    if PROCEDURAL_RE.match(line):
        return LineClass.PROCEDURAL, None
    if AGENDA_RE.match(line):
        return LineClass.AGENDA, None
    speaker = parse_speaker(line, publisher)
    if speaker is not None:
        return LineClass.SPEAKER, speaker
    if REACTION_RE.match(line):
        return LineClass.REACTION, None
    return LineClass.TEXT, None


@dataclass(slots=True)
class _Walk:
    lines: Sequence[str]
    publisher: str
    state: ParserState = ParserState.HEADER
    speaker: Speaker | None = None
    speech: list[str] = field(default_factory=list)
    agenda: str | None = None
    agenda_title: str | None = None
    speeches: list[Chunk] = field(default_factory=list)

    def emit(self) -> None:
        if self.speaker is None or not self.speech:
            return
        text = clean_text(self.speech)
        if len(text) <= MIN_SPEECH_CHARS:
            return
        self.speeches.append(
            Chunk(
                chunk_type="procedural" if self.speaker.role else "speech",
                text=text,
                chunk_index=len(self.speeches),
                attributes={
                    "speaker": self.speaker.name,
                    "speaker_party": self.speaker.party,
                    "speaker_state": self.speaker.state,
                    "speaker_role": self.speaker.role,
                    "top": self.agenda,
                    "top_title": self.agenda_title,
                },
            )
        )

    def set_agenda(self, position: int, match: re.Match[str]) -> None:
        self.agenda = f"TOP {match.group(1) or match.group(2)}"
        self.agenda_title = None
        end = min(position + 1 + AGENDA_TITLE_LOOKAHEAD, len(self.lines))
        for candidate in self.lines[position + 1 : end]:
            candidate = candidate.strip()
            if (
                candidate
                and parse_speaker(candidate, self.publisher) is None
                and not AGENDA_RE.match(candidate)
            ):
                self.agenda_title = candidate[:AGENDA_TITLE_MAX_CHARS]
                break


def parse_protocol(
    text: str,
    metadata: Mapping[str, Any] | None = None,
    max_chars: int = MAX_CHUNK_CHARS,
) -> SegmentationResult:
    """Segment a plenary transcript into speech chunks."""
    metadata = metadata or {}
    publisher = metadata.get("publisher") or "BT"
    lines = text.split("\n")
    walk = _Walk(lines=lines, publisher=publisher)

    for position, raw_line in enumerate(lines):
        line = raw_line.strip()
        line_class, speaker = classify_line(line, publisher)
        action, walk.state = TRANSITIONS[(walk.state, line_class)]

        if action is Action.START_SPEECH:
            walk.speaker = speaker
            walk.speech = []
        elif action is Action.SWITCH_SPEAKER:
            walk.emit()
            walk.speaker = speaker
            walk.speech = []
        elif action is Action.SET_AGENDA:
            match = AGENDA_RE.match(line)
            if match:
                walk.set_agenda(position, match)
        elif action is Action.BREAK:
            if walk.speech:
                walk.speech.append("")
        elif action is Action.APPEND_REACTION:
            if walk.speech:
                walk.speech.append(line)
        elif action is Action.APPEND:
            walk.speech.append(line)

    walk.emit()

    speeches = walk.speeches
    chunks = reindex(split_oversized(speeches, max_chars))
    return SegmentationResult(
        chunks=chunks,
        document_type="Plenarprotokoll",
        stats={
            "total_speeches": len(speeches),
            "total_chunks": len(chunks),
            "unique_speakers": len({chunk.attributes["speaker"] for chunk in speeches}),
        },
    )


def _names_group(affiliation: str) -> bool:
    return any(group in affiliation for group in PARLIAMENTARY_GROUPS)


__all__ = [
    "FEDERAL_STATES",
    "PARLIAMENTARY_GROUPS",
    "LineClass",
    "ParserState",
    "Speaker",
    "TRANSITIONS",
    "classify_line",
    "parse_protocol",
    "parse_speaker",
]
