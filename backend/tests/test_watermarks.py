"""Tests for the watermark store."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from bundestag_index.db.sqlite import SCHEMA_VERSION, SQLiteDatabase
from bundestag_index.db.watermarks import WatermarkStore
from bundestag_index.index.vector_store import InMemoryVectorStore
from bundestag_index.ingest.types import Point, SourceCategory


@pytest.fixture
def store(tmp_path: Path) -> WatermarkStore:
    return WatermarkStore(SQLiteDatabase(tmp_path / "state.db"))


def _point(point_id: int, **payload) -> Point:
    return Point(id=point_id, vector=[1.0, 0.0], payload=payload)


def test_set_replaces_timestamp_and_adds_count(store: WatermarkStore, pass_time: datetime) -> None:
    assert store.get(20, "bill") is None
    store.set(20, "bill", pass_time, 5)
    later = pass_time + timedelta(hours=1)
    store.set(20, SourceCategory.BILL, later, 3)

    watermark = store.get(20, "bill")
    assert watermark is not None
    assert watermark.last_indexed_at == later
    assert watermark.indexed_count == 8


def test_get_all_orders_by_period(store: WatermarkStore, pass_time: datetime) -> None:
    store.set(19, "transcript", pass_time)
    store.set(20, "printed", pass_time)
    store.set(20, "bill", pass_time)
    assert [(w.period, w.category) for w in store.get_all()] == [
        (20, "bill"),
        (20, "printed"),
        (19, "transcript"),
    ]


def test_clear(store: WatermarkStore, pass_time: datetime) -> None:
    store.set(20, "bill", pass_time)
    assert not store.is_empty()
    assert store.clear() == 1
    assert store.is_empty()


def test_timestamps_survive_reopen(tmp_path: Path, pass_time: datetime) -> None:
    path = tmp_path / "state.db"
    first = WatermarkStore(SQLiteDatabase(path))
    first.set(20, "bill", pass_time, 1)
    first.db.close()
    reopened = WatermarkStore(SQLiteDatabase(path)).get(20, "bill")
    assert reopened is not None
    assert reopened.last_indexed_at == pass_time
    assert reopened.last_indexed_at.tzinfo is not None


def test_bootstrap_seeds_latest_dates(store: WatermarkStore) -> None:
    vectors = InMemoryVectorStore()
    vectors.ensure_collection("docs", 2)
    vectors.ensure_collection("protocols", 2)
    vectors.ensure_collection("chunks", 2)
    vectors.upsert(
        "docs",
        [
            _point(1, wahlperiode=20, doc_type="drucksache", date="2024-03-01"),
            _point(2, wahlperiode=20, doc_type="drucksache", date="2024-04-15"),
            _point(3, wahlperiode=19, doc_type="vorgang", date="2021-09-01"),
            _point(4, doc_type="vorgang", date="2021-09-01"),
        ],
    )
    vectors.upsert("protocols", [_point(5, period=20, date="2024-05-02")])
    vectors.upsert("chunks", [_point(6, period=20, category="inquiry", date="2024-02-01")])

    written = store.bootstrap(
        vectors,
        {"docs": None, "protocols": SourceCategory.TRANSCRIPT, "chunks": None, "missing": None},
        scroll_limit=2,
    )
    assert written == 4
    marks = {(w.period, w.category): w for w in store.get_all()}
    assert marks[(20, "printed")].last_indexed_at == datetime(2024, 4, 15, tzinfo=timezone.utc)
    assert marks[(19, "proceeding")].last_indexed_at == datetime(2021, 9, 1, tzinfo=timezone.utc)
    assert (20, "transcript") in marks
    assert (20, "inquiry") in marks
    assert all(w.indexed_count == 0 for w in marks.values())


def test_bootstrap_never_overwrites(store: WatermarkStore, pass_time: datetime) -> None:
    vectors = InMemoryVectorStore()
    vectors.ensure_collection("protocols", 2)
    vectors.upsert("protocols", [_point(5, period=20, date="2030-01-01")])
    store.set(20, "transcript", pass_time, 7)

    assert store.bootstrap(vectors, {"protocols": SourceCategory.TRANSCRIPT}) == 0
    watermark = store.get(20, "transcript")
    assert watermark is not None
    assert watermark.last_indexed_at == pass_time
    assert watermark.indexed_count == 7


def test_schema_is_stamped(store: WatermarkStore) -> None:
    assert store.db.schema_version() == SCHEMA_VERSION
    store.db.ensure_schema()
    assert store.db.schema_version() == SCHEMA_VERSION


def test_bootstrap_with_nothing_indexed_writes_nothing(store: WatermarkStore) -> None:
    vectors = InMemoryVectorStore()
    vectors.ensure_collection("docs", 2)
    vectors.ensure_collection("protocols", 2)

    assert store.bootstrap(vectors, {"docs": None, "protocols": SourceCategory.TRANSCRIPT}) == 0
    assert store.is_empty()
    assert store.get_all() == []
