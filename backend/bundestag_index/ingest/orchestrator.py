"""Incremental indexing passes over the DIP listings."""

from __future__ import annotations

import threading
import time
from datetime import datetime, timedelta
from typing import Any, Callable, Iterator, Protocol, Sequence, TypeVar

from bundestag_index.clients.dip import ListingPage
from bundestag_index.core.config import Settings
from bundestag_index.core.errors import PassAlreadyRunning, is_rate_limit_error
from bundestag_index.core.logging import get_logger, log_context
from bundestag_index.core.metrics import (
    CHUNKS_UPSERTED,
    DOCUMENTS_INDEXED,
    DOCUMENTS_SKIPPED,
    ERRORS,
    INDEXER_RUNNING,
    PASS_COUNT,
    PASS_DURATION,
)
from bundestag_index.db.watermarks import WatermarkStore
from bundestag_index.index.vector_store import VectorStore
from bundestag_index.ingest.embeddings import EmbeddingProvider
from bundestag_index.ingest.points import (
    chunk_embedding_text,
    chunk_payload,
    record_embedding_text,
    record_payload,
)
from bundestag_index.ingest.segmenter import SegmenterSelector
from bundestag_index.ingest.types import (
    CategoryRoute,
    PairResult,
    PassStats,
    Point,
    SourceCategory,
    SourceDocument,
    route_for,
)
from bundestag_index.utils.ids import identity_for, record_identity_for
from bundestag_index.utils.time import to_iso, utc_now

logger = get_logger(__name__)

T = TypeVar("T")


class ListingClient(Protocol):
    def list_documents(
        self,
        endpoint: str,
        period: int | None = None,
        updated_since: datetime | None = None,
        cursor: str | None = None,
        rows: int = 100,
        document_types: Sequence[str] = (),
    ) -> ListingPage:
        ...

    def get_text(self, text_endpoint: str, source_id: str) -> str | None:
        ...


class IndexingOrchestrator:
    """Run indexing passes; at most one pass is in progress at a time."""

    def __init__(
        self,
        dip: ListingClient,
        embedder: EmbeddingProvider,
        vector_store: VectorStore,
        watermarks: WatermarkStore,
        segmenter: SegmenterSelector,
        settings: Settings,
        clock: Callable[[], datetime] = utc_now,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.dip = dip
        self.embedder = embedder
        self.vector_store = vector_store
        self.watermarks = watermarks
        self.segmenter = segmenter
        self.settings = settings
        self.clock = clock
        self.sleep = sleep
        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._running = False
        self._thread: threading.Thread | None = None
        self._mode: str | None = None
        self._last_started_at: datetime | None = None
        self._last_finished_at: datetime | None = None
        self._last_success_at: datetime | None = None
        self._last_duration: float | None = None
        self._last_pass: PassStats | None = None
        self._total_indexed = 0
        self._total_chunks = 0
        self._errors = 0

    @property
    def running(self) -> bool:
        with self._lock:
            return self._running

    def trigger(self) -> bool:
        """Start a pass on a background thread; False when one is already running."""
        if not self._claim():
            logger.warning("Indexing already in progress, trigger rejected")
            return False
        thread = threading.Thread(target=self._run_claimed, name="btix-indexer", daemon=True)
        self._thread = thread
        thread.start()
        return True

    def run_pass(self) -> PassStats:
        if not self._claim():
            raise PassAlreadyRunning()
        return self._run_claimed()

    def stop(self) -> None:
        """Ask the running pass to stop before its next batch."""
        self._stop.set()

    def shutdown(self, grace: float | None = None) -> bool:
        """Stop and wait up to ``grace`` seconds; True when no pass is left running."""
        self.stop()
        thread = self._thread
        if thread is not None and thread.is_alive():
            thread.join(timeout=self.settings.shutdown_grace if grace is None else grace)
        return not self.running

    def bootstrap_watermarks(self) -> int:
        """Seed watermarks from the vector store when the table is empty."""
        collections: dict[str, SourceCategory | None] = {
            self.settings.collection_documents: None,
            self.settings.collection_protocol_chunks: SourceCategory.TRANSCRIPT,
            self.settings.collection_document_chunks: None,
        }
        return self.watermarks.bootstrap(self.vector_store, collections)

    def stats(self) -> dict[str, Any]:
        with self._lock:
            last = self._last_pass
            return {
                "running": self._running,
                "mode": self._mode,
                "last_started_at": _iso_or_none(self._last_started_at),
                "last_finished_at": _iso_or_none(self._last_finished_at),
                "last_success_at": _iso_or_none(self._last_success_at),
                "last_duration": self._last_duration,
                "last_indexed": last.indexed if last else 0,
                "last_chunks": last.chunks if last else 0,
                "last_skipped": last.skipped if last else 0,
                "last_status": last.status if last else None,
                "total_indexed": self._total_indexed,
                "total_chunks": self._total_chunks,
                "errors": self._errors,
                "periods": list(self.settings.periods),
                "categories": list(self.settings.categories),
                "interval_minutes": self.settings.interval_minutes,
            }

    # Internal helpers -------------------------------------------------

    def _claim(self) -> bool:
        with self._lock:
            if self._running:
                return False
            self._running = True
            self._stop.clear()
        return True

    def _run_claimed(self) -> PassStats:
        try:
            return self._execute()
        finally:
            with self._lock:
                self._running = False
            INDEXER_RUNNING.set(0)

    def _execute(self) -> PassStats:
        INDEXER_RUNNING.set(1)
        started_at = self.clock()
        timer = time.monotonic()
        with self._lock:
            self._last_started_at = started_at
        pass_stats = PassStats()
        logger.info(
            "Starting indexing pass",
            extra=log_context(periods=self.settings.periods, categories=self.settings.categories),
        )
        try:
            self._ensure_collections()
            for period, category in self._pairs():
                if self._stop.is_set():
                    pass_stats.status = "stopped"
                    break
                pass_stats.add(self._index_pair(period, category, started_at))
            if self._stop.is_set():
                pass_stats.status = "stopped"
        except Exception as exc:
            logger.exception("Indexing pass failed: %s", exc)
            ERRORS.labels(stage="pass").inc()
            pass_stats.status = "failed"
            pass_stats.detail = str(exc)
            pass_stats.errors += 1
        pass_stats.mode = _pass_mode(pair.mode for pair in pass_stats.pairs)

        duration = time.monotonic() - timer
        finished_at = self.clock()
        PASS_COUNT.labels(outcome=pass_stats.status).inc()
        PASS_DURATION.observe(duration)
        with self._lock:
            self._mode = pass_stats.mode
            self._last_finished_at = finished_at
            self._last_duration = duration
            self._last_pass = pass_stats
            self._total_indexed += pass_stats.indexed
            self._total_chunks += pass_stats.chunks
            self._errors += pass_stats.errors
            if pass_stats.status == "completed":
                self._last_success_at = finished_at
        logger.info(
            "Indexing pass %s (%s): %s indexed, %s chunks, %s skipped, %s errors in %.1fs",
            pass_stats.status,
            pass_stats.mode,
            pass_stats.indexed,
            pass_stats.chunks,
            pass_stats.skipped,
            pass_stats.errors,
            duration,
        )
        return pass_stats

    def _pairs(self) -> Iterator[tuple[int, SourceCategory]]:
        for period in self.settings.periods:
            for name in self.settings.categories:
                try:
                    category = SourceCategory(name)
                except ValueError:
                    logger.warning("Unknown category %s in configuration, skipping", name)
                    continue
                yield period, category

    def _ensure_collections(self) -> None:
        for collection in self.settings.collections:
            self.vector_store.ensure_collection(collection, self.embedder.dim)

    def _index_pair(self, period: int, category: SourceCategory, pass_started: datetime) -> PairResult:
        route = route_for(category)
        watermark = self.watermarks.get(period, category.value)
        since: datetime | None = None
        if watermark is not None:
            since = watermark.last_indexed_at - timedelta(minutes=self.settings.overlap_minutes)
        result = PairResult(period=period, category=category, mode="full" if since is None else "incremental")
        logger.info(
            "Indexing %s for period %s (%s)",
            category.value,
            period,
            result.mode,
            extra=log_context(since=_iso_or_none(since)),
        )

        cursor: str | None = None
        cooldowns = 0
        while not self._stop.is_set():
            try:
                page = self.dip.list_documents(
                    route.endpoint,
                    period=period,
                    updated_since=since,
                    cursor=cursor,
                    rows=route.page_size or self.settings.page_size,
                    document_types=route.document_types,
                )
            except Exception as exc:
                if is_rate_limit_error(exc) and cooldowns < self.settings.rate_limit_max_cooldowns:
                    cooldowns += 1
                    logger.warning(
                        "Rate limited while listing %s, cooling down %.0fs (%s/%s)",
                        route.endpoint,
                        self.settings.rate_limit_cooldown,
                        cooldowns,
                        self.settings.rate_limit_max_cooldowns,
                    )
                    self.sleep(self.settings.rate_limit_cooldown)
                    continue
                logger.error("Failed to list %s for period %s: %s", route.endpoint, period, exc)
                ERRORS.labels(stage="listing").inc()
                result.errors += 1
                result.detail = str(exc)
                return result

            result.pages += 1
            cooldowns = 0
            if not page.documents:
                break
            documents = self._convert_records(page.documents, category, result)
            for batch in _batched(documents, self.settings.batch_size):
                if self._stop.is_set():
                    break
                self._process_batch(batch, route, result)
            if not page.cursor or page.cursor == cursor:
                break
            cursor = page.cursor
            self.sleep(self.settings.page_delay)

        if self._stop.is_set():
            result.detail = "stopped"
            return result
        result.completed = True
        self.watermarks.set(period, category.value, pass_started, result.indexed)
        logger.info(
            "Completed %s for period %s: %s new, %s skipped",
            category.value,
            period,
            result.indexed,
            result.skipped,
        )
        return result

    def _convert_records(
        self,
        records: Sequence[dict[str, Any]],
        category: SourceCategory,
        result: PairResult,
    ) -> list[SourceDocument]:
        documents: list[SourceDocument] = []
        for record in records:
            try:
                documents.append(SourceDocument.from_record(record, category))
            except (KeyError, TypeError, ValueError) as exc:
                logger.error(
                    "Skipping malformed %s record %s: %r",
                    category.value,
                    record.get("id"),
                    exc,
                )
                ERRORS.labels(stage="listing").inc()
                result.errors += 1
        return documents

    def _process_batch(self, batch: list[SourceDocument], route: CategoryRoute, result: PairResult) -> None:
        if route.publisher:
            batch = [document for document in batch if document.publisher in (None, route.publisher)]
        if not batch:
            return
        collection = self._collection(route)
        keys = [self._marker_id(route, document.source_id) for document in batch]
        try:
            existing = self.vector_store.retrieve(collection, keys)
        except Exception as exc:
            logger.error("Existence check failed in %s: %s", collection, exc)
            ERRORS.labels(stage="lookup").inc()
            result.errors += 1
            return

        fresh = [document for document, key in zip(batch, keys) if key not in existing]
        skipped = len(batch) - len(fresh)
        if skipped:
            result.skipped += skipped
            DOCUMENTS_SKIPPED.labels(category=route.category.value).inc(skipped)
        if not fresh:
            return
        if route.chunked:
            for document in fresh:
                if self._stop.is_set():
                    return
                self._index_document(document, route, collection, result)
        else:
            self._index_records(fresh, route, collection, result)

    def _index_records(
        self,
        documents: list[SourceDocument],
        route: CategoryRoute,
        collection: str,
        result: PairResult,
    ) -> None:
        documents = [document for document in documents if record_embedding_text(document.raw)]
        try:
            written = self._write_points(
                collection,
                ids=[self._marker_id(route, document.source_id) for document in documents],
                texts=[record_embedding_text(document.raw) for document in documents],
                payloads=[record_payload(document, route) for document in documents],
            )
        except Exception as exc:
            logger.error("Failed to index %s %s records: %s", len(documents), route.category.value, exc)
            ERRORS.labels(stage="upsert").inc()
            result.errors += 1
            return
        result.indexed += written
        result.chunks += written
        DOCUMENTS_INDEXED.labels(category=route.category.value).inc(written)

    def _index_document(
        self,
        document: SourceDocument,
        route: CategoryRoute,
        collection: str,
        result: PairResult,
    ) -> None:
        try:
            text = self.dip.get_text(route.text_endpoint or route.endpoint, document.source_id)
        except Exception as exc:
            logger.error("Failed to fetch text for %s %s: %s", route.endpoint, document.source_id, exc)
            ERRORS.labels(stage="fetch").inc()
            result.errors += 1
            return
        if not text:
            logger.debug("No full text for %s %s", route.endpoint, document.source_id)
            return

        segmentation = self.segmenter.segment(text, document.segment_metadata())
        if not segmentation.chunks:
            logger.warning("No chunks extracted from %s %s", route.endpoint, document.source_id)
            return
        chunks = segmentation.chunks
        try:
            written = self._write_points(
                collection,
                ids=[self._point_id(route, document.source_id, c.chunk_index, c.chunk_part) for c in chunks],
                texts=[chunk_embedding_text(chunk, document) for chunk in chunks],
                payloads=[chunk_payload(chunk, document) for chunk in chunks],
                marker=self._marker_id(route, document.source_id),
            )
        except Exception as exc:
            logger.error("Failed to index %s %s: %s", route.endpoint, document.source_id, exc)
            ERRORS.labels(stage="upsert").inc()
            result.errors += 1
            return
        result.indexed += 1
        result.chunks += written
        DOCUMENTS_INDEXED.labels(category=route.category.value).inc()
        logger.debug(
            "Indexed %s %s: %s chunks via %s",
            route.endpoint,
            document.source_id,
            written,
            segmentation.segmenter,
        )

    def _write_points(
        self,
        collection: str,
        ids: list[int],
        texts: list[str],
        payloads: list[dict[str, Any]],
        marker: int | None = None,
    ) -> int:
        points: list[Point] = []
        for start in range(0, len(texts), self.settings.embed_batch_size):
            end = start + self.settings.embed_batch_size
            vectors = self.embedder.embed(texts[start:end])
            points.extend(
                Point(id=point_id, vector=vector, payload=payload)
                for point_id, vector, payload in zip(ids[start:end], vectors, payloads[start:end])
            )
        if marker is not None:
            # the existence marker goes last so an interrupted write is redone on the next pass
            points.sort(key=lambda point: point.id == marker)
        for batch in _batched(points, self.settings.upsert_batch_size):
            self.vector_store.upsert(collection, batch)
            CHUNKS_UPSERTED.labels(collection=collection).inc(len(batch))
        return len(points)

    def _collection(self, route: CategoryRoute) -> str:
        return getattr(self.settings, f"collection_{route.collection}")

    def _point_id(self, route: CategoryRoute, source_id: str, chunk_index: int, part: int) -> int:
        return identity_for(self.settings.id_scheme, route.namespace, source_id, chunk_index, part)

    def _marker_id(self, route: CategoryRoute, source_id: str) -> int:
        if route.chunked:
            return self._point_id(route, source_id, 0, 0)
        return record_identity_for(self.settings.id_scheme, route.namespace, source_id)


def _batched(items: Sequence[T], size: int) -> Iterator[list[T]]:
    size = max(size, 1)
    for start in range(0, len(items), size):
        yield list(items[start : start + size])


def _pass_mode(modes: Iterator[str]) -> str:
    seen = set(modes)
    if len(seen) > 1:
        return "mixed"
    return seen.pop() if seen else "full"


def _iso_or_none(value: datetime | None) -> str | None:
    return to_iso(value) if value is not None else None


__all__ = ["IndexingOrchestrator", "ListingClient"]
