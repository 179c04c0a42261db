"""Shared FastAPI dependencies."""

from __future__ import annotations

from functools import lru_cache

from bundestag_index.clients.analysis import AnalysisClient
from bundestag_index.clients.dip import DipClient
from bundestag_index.core.config import Settings, get_settings
from bundestag_index.db.sqlite import SQLiteDatabase
from bundestag_index.db.watermarks import WatermarkStore
from bundestag_index.index.qdrant import QdrantVectorStore
from bundestag_index.index.vector_store import InMemoryVectorStore, VectorStore
from bundestag_index.ingest.embeddings import (
    EmbeddingProvider,
    HashedEmbeddingModel,
    MistralEmbeddingProvider,
)
from bundestag_index.ingest.orchestrator import IndexingOrchestrator
from bundestag_index.ingest.scheduler import IndexerScheduler
from bundestag_index.ingest.segmenter import (
    AnalysisServiceSegmenter,
    BuiltinSegmenter,
    SegmenterSelector,
)
from bundestag_index.resilience.circuit_breaker import CircuitBreaker, upstream_failure
from bundestag_index.resilience.rate_limiter import RateLimiter
from bundestag_index.resilience.retry import RetryPolicy

_DB: SQLiteDatabase | None = None
_WATERMARKS: WatermarkStore | None = None
_VECTOR_STORE: VectorStore | None = None
_EMBEDDER: EmbeddingProvider | None = None
_DIP: DipClient | None = None
_ORCHESTRATOR: IndexingOrchestrator | None = None
_SCHEDULER: IndexerScheduler | None = None


@lru_cache(maxsize=1)
def get_app_settings() -> Settings:
    return get_settings()


def get_database() -> SQLiteDatabase:
    global _DB
    if _DB is None:
        settings = get_app_settings()
        db = SQLiteDatabase(settings.db_path)
        db.ensure_schema()
        _DB = db
    return _DB


def get_watermark_store() -> WatermarkStore:
    global _WATERMARKS
    if _WATERMARKS is None:
        _WATERMARKS = WatermarkStore(get_database())
    return _WATERMARKS


def get_retry_policy(name: str) -> RetryPolicy:
    settings = get_app_settings()
    return RetryPolicy(
        name=name,
        max_retries=settings.max_retries,
        base_delay=settings.retry_base_delay,
        max_delay=settings.retry_max_delay,
    )


def get_vector_store() -> VectorStore:
    global _VECTOR_STORE
    if _VECTOR_STORE is None:
        settings = get_app_settings()
        if settings.vector_backend == "memory":
            _VECTOR_STORE = InMemoryVectorStore()
        else:
            _VECTOR_STORE = QdrantVectorStore(
                settings.qdrant_url,
                api_key=settings.qdrant_api_key,
                timeout=settings.qdrant_timeout,
                retry=get_retry_policy("qdrant"),
            )
    return _VECTOR_STORE


def get_embedding_provider() -> EmbeddingProvider:
    global _EMBEDDER
    if _EMBEDDER is None:
        settings = get_app_settings()
        if settings.embedding_provider == "hashed":
            _EMBEDDER = HashedEmbeddingModel(dim=settings.embedding_dim)
        else:
            _EMBEDDER = MistralEmbeddingProvider(
                settings.embedding_api_key,
                model_name=settings.embedding_model,
                url=settings.embedding_url,
                dim=settings.embedding_dim,
                retry=get_retry_policy("embeddings"),
            )
    return _EMBEDDER


def get_dip_client() -> DipClient:
    global _DIP
    if _DIP is None:
        settings = get_app_settings()
        _DIP = DipClient(
            settings.dip_base_url,
            settings.dip_api_key,
            timeout=settings.dip_timeout,
            limiter=RateLimiter(
                "dip",
                requests_per_minute=settings.requests_per_minute,
                burst_size=settings.burst_size,
                max_wait=settings.max_wait,
            ),
            breaker=CircuitBreaker(
                "dip",
                failure_threshold=settings.failure_threshold,
                reset_timeout=settings.reset_timeout,
                half_open_max_requests=settings.half_open_max_requests,
                is_failure=upstream_failure,
            ),
            retry=get_retry_policy("dip"),
        )
    return _DIP


def get_segmenter() -> SegmenterSelector:
    settings = get_app_settings()
    analysis = None
    if settings.analysis_enabled:
        analysis = AnalysisServiceSegmenter(AnalysisClient(settings.analysis_url))
    return SegmenterSelector(builtin=BuiltinSegmenter(), analysis=analysis)


def get_orchestrator() -> IndexingOrchestrator:
    global _ORCHESTRATOR
    if _ORCHESTRATOR is None:
        _ORCHESTRATOR = IndexingOrchestrator(
            dip=get_dip_client(),
            embedder=get_embedding_provider(),
            vector_store=get_vector_store(),
            watermarks=get_watermark_store(),
            segmenter=get_segmenter(),
            settings=get_app_settings(),
        )
    return _ORCHESTRATOR


def get_scheduler() -> IndexerScheduler:
    global _SCHEDULER
    if _SCHEDULER is None:
        _SCHEDULER = IndexerScheduler(get_orchestrator(), get_app_settings().interval_minutes)
    return _SCHEDULER


def reset_singletons() -> None:
    """Drop cached clients so the next request rebuilds them from settings."""
    global _DB, _WATERMARKS, _VECTOR_STORE, _EMBEDDER, _DIP, _ORCHESTRATOR, _SCHEDULER
    if _SCHEDULER is not None:
        _SCHEDULER.stop(grace=0)
    if _DB is not None:
        _DB.close()
    _DB = _WATERMARKS = _VECTOR_STORE = _EMBEDDER = _DIP = _ORCHESTRATOR = _SCHEDULER = None
    get_app_settings.cache_clear()
    get_settings.cache_clear()


__all__ = [
    "get_app_settings",
    "get_database",
    "get_dip_client",
    "get_embedding_provider",
    "get_orchestrator",
    "get_scheduler",
    "get_segmenter",
    "get_vector_store",
    "get_watermark_store",
    "reset_singletons",
]
