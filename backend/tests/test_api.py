"""API integration tests."""

from __future__ import annotations

from datetime import datetime

import pytest
from fastapi.testclient import TestClient

from bundestag_index.api import dependencies as deps
from bundestag_index.app import app
from bundestag_index.index.vector_store import InMemoryVectorStore
from bundestag_index.ingest.embeddings import HashedEmbeddingModel
from bundestag_index.ingest.orchestrator import IndexingOrchestrator
from bundestag_index.ingest.segmenter import SegmenterSelector
from conftest import BlockingDip, wait_idle


@pytest.fixture
def client() -> TestClient:
    with TestClient(app) as test_client:
        yield test_client


def test_health(client: TestClient) -> None:
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["ok"] is True


def test_status_reports_idle_indexer(client: TestClient) -> None:
    resp = client.get("/indexer/status")
    assert resp.status_code == 200
    data = resp.json()
    assert data["enabled"] is False
    assert data["scheduled"] is False
    assert data["running"] is False
    assert data["last_success_at"] is None
    assert data["periods"] == [20, 19]
    assert data["circuit"]["state"] == "closed"
    assert data["rate_limiter"]["total_requests"] == 0


def test_trigger_conflicts_while_running(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    dip = BlockingDip({})
    orchestrator = IndexingOrchestrator(
        dip=dip,
        embedder=HashedEmbeddingModel(dim=64),
        vector_store=InMemoryVectorStore(),
        watermarks=deps.get_watermark_store(),
        segmenter=SegmenterSelector(),
        settings=deps.get_app_settings().model_copy(update={"periods": [20], "categories": ["printed"]}),
        sleep=lambda _seconds: None,
    )
    monkeypatch.setattr(deps, "_ORCHESTRATOR", orchestrator)

    first = client.post("/indexer/run")
    assert first.status_code == 202
    assert first.json()["success"] is True
    assert dip.entered.wait(timeout=5)

    second = client.post("/indexer/run")
    assert second.status_code == 409

    dip.release.set()
    wait_idle(orchestrator)
    status = client.get("/indexer/status").json()
    assert status["running"] is False
    assert status["last_status"] == "completed"
    assert status["mode"] == "full"


def test_watermark_listing_and_reset(client: TestClient, pass_time: datetime) -> None:
    store = deps.get_watermark_store()
    store.set(20, "transcript", pass_time, 4)

    resp = client.get("/indexer/watermarks")
    assert resp.status_code == 200
    [watermark] = resp.json()
    assert watermark["period"] == 20
    assert watermark["category"] == "transcript"
    assert watermark["indexed_count"] == 4

    cleared = client.delete("/indexer/watermarks")
    assert cleared.json() == {"status": "ok", "deleted": 1}
    again = client.delete("/indexer/watermarks")
    assert again.json() == {"status": "noop", "deleted": 0}


def test_bootstrap_with_empty_store(client: TestClient) -> None:
    resp = client.post("/indexer/bootstrap")
    assert resp.status_code == 200
    assert resp.json() == {"status": "noop", "written": 0}


def test_metrics_endpoint(client: TestClient) -> None:
    resp = client.get("/metrics")
    assert resp.status_code == 200
    assert "btix_passes_total" in resp.text
