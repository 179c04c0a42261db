"""Periodic indexing passes on a background thread."""

from __future__ import annotations

import threading

from bundestag_index.core.errors import PassAlreadyRunning
from bundestag_index.core.logging import get_logger
from bundestag_index.ingest.orchestrator import IndexingOrchestrator

logger = get_logger(__name__)


class IndexerScheduler:
    """Run a pass immediately and then every ``interval_minutes``."""

    def __init__(self, orchestrator: IndexingOrchestrator, interval_minutes: float) -> None:
        self.orchestrator = orchestrator
        self.interval = max(interval_minutes, 0.0) * 60
        self._lock = threading.Lock()
        self._wake = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def started(self) -> bool:
        with self._lock:
            return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        with self._lock:
            if self._thread is not None and self._thread.is_alive():
                return
            self._wake.clear()
            self._thread = threading.Thread(target=self._loop, name="btix-scheduler", daemon=True)
            self._thread.start()
        logger.info("Background indexer started, interval %.0f minutes", self.interval / 60)

    def stop(self, grace: float | None = None) -> None:
        with self._lock:
            thread = self._thread
            self._thread = None
            if thread is None:
                return
            self._wake.set()
        self.orchestrator.shutdown(grace)
        thread.join(timeout=grace if grace is not None else self.orchestrator.settings.shutdown_grace)
        logger.info("Background indexer stopped")

    # Internal helpers -------------------------------------------------

    def _loop(self) -> None:
        try:
            self.orchestrator.bootstrap_watermarks()
        except Exception as exc:
            logger.error("Watermark bootstrap failed: %s", exc)
        while not self._wake.is_set():
            try:
                self.orchestrator.run_pass()
            except PassAlreadyRunning:
                logger.info("Scheduled pass skipped, another pass is running")
            if self._wake.wait(self.interval):
                break


__all__ = ["IndexerScheduler"]
