"""Test fixtures for the Bundestag indexer."""

from __future__ import annotations

import sys
import threading
import time
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Sequence

import pytest

BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))


@pytest.fixture(autouse=True)
def reset_state(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Reset global singletons and environment between tests."""
    monkeypatch.setenv("BTIX_DB_PATH", str(tmp_path / "index_state.db"))
    monkeypatch.setenv("BTIX_VECTOR_BACKEND", "memory")
    monkeypatch.setenv("BTIX_EMBEDDING_PROVIDER", "hashed")
    monkeypatch.setenv("BTIX_EMBEDDING_DIM", "64")
    monkeypatch.setenv("BTIX_INDEXER_ENABLED", "false")
    monkeypatch.delenv("BTIX_CONFIG", raising=False)

    from bundestag_index.api import dependencies as deps

    deps.reset_singletons()
    yield
    deps.reset_singletons()


class FakeClock:
    """Monotonic clock advanced by hand."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class FakeDipClient:
    """In-memory stand-in for the DIP listing and text endpoints."""

    def __init__(self, pages: dict[str, list[list[dict[str, Any]]]], texts: dict[str, str] | None = None) -> None:
        self.pages = pages
        self.texts = texts or {}
        self.list_calls: list[dict[str, Any]] = []
        self.text_calls: list[tuple[str, str]] = []
        self.failures: list[Exception] = []

    def list_documents(
        self,
        endpoint: str,
        period: int | None = None,
        updated_since: datetime | None = None,
        cursor: str | None = None,
        rows: int = 100,
        document_types: Sequence[str] = (),
    ):
        from bundestag_index.clients.dip import ListingPage

        self.list_calls.append(
            {
                "endpoint": endpoint,
                "period": period,
                "updated_since": updated_since,
                "cursor": cursor,
                "rows": rows,
                "document_types": tuple(document_types),
            }
        )
        if self.failures:
            raise self.failures.pop(0)
        pages = self.pages.get(endpoint, [])
        index = int(cursor) if cursor else 0
        if index >= len(pages):
            return ListingPage(documents=[], cursor=cursor)
        next_cursor = str(index + 1) if index + 1 < len(pages) else cursor
        return ListingPage(documents=pages[index], cursor=next_cursor, num_found=sum(len(p) for p in pages))

    def get_text(self, text_endpoint: str, source_id: str) -> str | None:
        self.text_calls.append((text_endpoint, source_id))
        return self.texts.get(source_id)


class BlockingDip(FakeDipClient):
    """Holds the first listing call until released."""

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.entered = threading.Event()
        self.release = threading.Event()

    def list_documents(self, *args, **kwargs):
        self.entered.set()
        self.release.wait(timeout=10)
        return super().list_documents(*args, **kwargs)


def wait_idle(orchestrator, timeout: float = 5.0) -> None:
    deadline = time.monotonic() + timeout
    while orchestrator.running and time.monotonic() < deadline:
        time.sleep(0.01)


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def pass_time() -> datetime:
    return datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def overlap() -> timedelta:
    return timedelta(minutes=20)


@pytest.fixture(scope="session")
def protocol_text() -> str:
    return "\n".join(
        [
            "Deutscher Bundestag",
            "Stenografischer Bericht",
            "Beginn: 9.00 Uhr",
            "",
            "Tagesordnungspunkt 1:",
            "Beratung des Gesetzentwurfs zur Stärkung der Wärmenetze",
            "",
            "Präsidentin Julia Klöckner:",
            "Die Sitzung ist eröffnet. Ich rufe den Tagesordnungspunkt 1 auf und erteile das Wort.",
            "",
            "Dr. Anna Schmidt (CDU/CSU):",
            "Sehr geehrte Frau Präsidentin! Liebe Kolleginnen und Kollegen! Dieser Gesetzentwurf",
            "ist ein wichtiger Schritt für die kommunale Wärmeplanung in unserem Land.",
            "(Beifall bei der CDU/CSU)",
            "Wir werden ihm zustimmen.",
            "",
            "Max Mustermann (SPD):",
            "Kurz.",
            "",
            "Tagesordnungspunkt 2:",
            "Aktuelle Stunde Landwirtschaft",
            "",
            "Lena Weber (BÜNDNIS 90/DIE GRÜNEN):",
            "Die Landwirtschaft braucht verlässliche Rahmenbedingungen, und zwar jetzt und nicht erst morgen.",
            "",
            "Schluss: 13.05 Uhr",
        ]
    )
