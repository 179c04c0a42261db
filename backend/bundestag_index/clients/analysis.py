"""HTTP client for the external speech-extraction service."""

from __future__ import annotations

from typing import Any

import requests

from bundestag_index.core.errors import MalformedResponseError, UpstreamHTTPError
from bundestag_index.core.logging import get_logger

logger = get_logger(__name__)

HEALTH_TIMEOUT = 5.0
EXTRACT_TIMEOUT = 60.0


class AnalysisClient:
    """Talks to the NLP analysis service that extracts speeches from transcripts."""

    def __init__(self, base_url: str, session: requests.Session | None = None) -> None:
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()

    def is_available(self) -> bool:
        try:
            resp = self.session.get(f"{self.base_url}/health", timeout=HEALTH_TIMEOUT)
        except requests.RequestException as exc:
            logger.debug("Analysis service not available: %s", exc)
            return False
        return resp.ok

    def extract_speeches(self, text: str) -> list[dict[str, Any]]:
        resp = self.session.post(
            f"{self.base_url}/extract/speeches",
            json={"text": text},
            timeout=EXTRACT_TIMEOUT,
        )
        if not resp.ok:
            raise UpstreamHTTPError(resp.status_code, resp.text, url=resp.url)
        try:
            payload = resp.json()
        except ValueError as exc:
            raise MalformedResponseError("Analysis service returned invalid JSON") from exc
        speeches = payload.get("speeches") if isinstance(payload, dict) else None
        if not isinstance(speeches, list):
            raise MalformedResponseError("Analysis response has no speeches list")
        logger.debug("Extracted %s speeches", payload.get("speech_count", len(speeches)))
        return speeches


__all__ = ["AnalysisClient"]
