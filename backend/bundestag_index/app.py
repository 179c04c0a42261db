"""FastAPI application setup for the Bundestag indexer."""

from __future__ import annotations

from fastapi import FastAPI

from bundestag_index.api.dependencies import (
    get_app_settings,
    get_database,
    get_scheduler,
    get_watermark_store,
    reset_singletons,
)
from bundestag_index.api.routes_indexer import router as indexer_router
from bundestag_index.core.logging import configure_logging, get_logger
from bundestag_index.core.metrics import metrics_response

configure_logging()
logger = get_logger(__name__)

app = FastAPI(
    title="Bundestag Index",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

app.include_router(indexer_router, prefix="/indexer", tags=["indexer"])


@app.on_event("startup")
async def startup() -> None:
    """Open storage and start the periodic indexer when enabled."""
    settings = get_app_settings()
    get_database()
    get_watermark_store()
    if settings.indexer_enabled:
        get_scheduler().start()
    else:
        logger.info("Background indexer disabled")


@app.on_event("shutdown")
async def shutdown() -> None:
    reset_singletons()


@app.get("/health", tags=["admin"])
def health() -> dict[str, bool]:
    """Simple liveness check."""
    return {"ok": True}


@app.get("/metrics", tags=["admin"], summary="Prometheus metrics")
async def get_metrics():
    return metrics_response()
