"""Indexer trigger and status routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status

from bundestag_index.api.dependencies import (
    get_app_settings,
    get_dip_client,
    get_orchestrator,
    get_scheduler,
    get_watermark_store,
)
from bundestag_index.clients.dip import DipClient
from bundestag_index.core.config import Settings
from bundestag_index.db.watermarks import WatermarkStore
from bundestag_index.ingest.orchestrator import IndexingOrchestrator
from bundestag_index.ingest.scheduler import IndexerScheduler
from bundestag_index.models.dto import (
    BootstrapResponse,
    IndexerStatusResponse,
    TriggerResponse,
    WatermarkClearResponse,
    WatermarkResponse,
)

router = APIRouter()


@router.post(
    "/run",
    response_model=TriggerResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Start an indexing pass in the background",
)
async def trigger_run(orchestrator: IndexingOrchestrator = Depends(get_orchestrator)) -> TriggerResponse:
    if not orchestrator.trigger():
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Indexing already in progress")
    return TriggerResponse(success=True, message="Indexing started")


@router.get("/status", response_model=IndexerStatusResponse, summary="Indexer statistics")
async def indexer_status(
    settings: Settings = Depends(get_app_settings),
    orchestrator: IndexingOrchestrator = Depends(get_orchestrator),
    scheduler: IndexerScheduler = Depends(get_scheduler),
    dip: DipClient = Depends(get_dip_client),
) -> IndexerStatusResponse:
    return IndexerStatusResponse(
        enabled=settings.indexer_enabled,
        scheduled=scheduler.started,
        circuit=dip.breaker.stats().to_dict(),
        rate_limiter=dip.limiter.stats(),
        **orchestrator.stats(),
    )


@router.get("/watermarks", response_model=list[WatermarkResponse], summary="List watermarks")
async def list_watermarks(store: WatermarkStore = Depends(get_watermark_store)) -> list[WatermarkResponse]:
    return [WatermarkResponse(**watermark.to_dict()) for watermark in store.get_all()]


@router.delete("/watermarks", response_model=WatermarkClearResponse, summary="Clear all watermarks")
async def clear_watermarks(store: WatermarkStore = Depends(get_watermark_store)) -> WatermarkClearResponse:
    deleted = store.clear()
    return WatermarkClearResponse(status="ok" if deleted else "noop", deleted=deleted)


@router.post("/bootstrap", response_model=BootstrapResponse, summary="Seed watermarks from the vector store")
def bootstrap_watermarks(
    orchestrator: IndexingOrchestrator = Depends(get_orchestrator),
) -> BootstrapResponse:
    written = orchestrator.bootstrap_watermarks()
    return BootstrapResponse(status="ok" if written else "noop", written=written)


__all__ = ["router"]
