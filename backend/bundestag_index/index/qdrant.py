"""Qdrant vector store over its REST API."""

from __future__ import annotations

from typing import Any, Sequence

import requests

from bundestag_index.core.errors import MalformedResponseError, UpstreamHTTPError
from bundestag_index.core.logging import get_logger
from bundestag_index.index.vector_store import ScrollPage, ScrollRecord
from bundestag_index.ingest.types import Point
from bundestag_index.resilience.retry import RetryPolicy

logger = get_logger(__name__)

PAYLOAD_INDEXES: dict[str, str] = {
    "source_id": "keyword",
    "category": "keyword",
    "period": "integer",
    "date": "keyword",
}


class QdrantVectorStore:
    """Points are upserted with ``wait=true`` so a finished call is durable."""

    def __init__(
        self,
        url: str,
        api_key: str | None = None,
        timeout: float = 30.0,
        retry: RetryPolicy | None = None,
        session: requests.Session | None = None,
    ) -> None:
        self.url = url.rstrip("/")
        self.timeout = timeout
        self.retry = retry or RetryPolicy(name="qdrant")
        self.session = session or requests.Session()
        if api_key:
            self.session.headers["api-key"] = api_key

    def ensure_collection(self, collection: str, dim: int) -> None:
        if self._collection_info(collection) is not None:
            return
        logger.info("Creating collection %s (dim=%s)", collection, dim)
        self._request("PUT", f"/collections/{collection}", json={"vectors": {"size": dim, "distance": "Cosine"}})
        for field_name, schema in PAYLOAD_INDEXES.items():
            self._request(
                "PUT",
                f"/collections/{collection}/index",
                json={"field_name": field_name, "field_schema": schema},
            )

    def upsert(self, collection: str, points: Sequence[Point]) -> None:
        if not points:
            return
        body = {
            "points": [
                {"id": point.id, "vector": point.vector, "payload": point.payload}
                for point in points
            ]
        }
        self._request("PUT", f"/collections/{collection}/points", params={"wait": "true"}, json=body)

    def retrieve(self, collection: str, ids: Sequence[int]) -> set[int]:
        if not ids:
            return set()
        result = self._request(
            "POST",
            f"/collections/{collection}/points",
            json={"ids": list(ids), "with_payload": False, "with_vector": False},
        )
        return {int(item["id"]) for item in result or []}

    def scroll(self, collection: str, limit: int = 1000, offset: int | None = None) -> ScrollPage:
        body: dict[str, Any] = {"limit": limit, "with_payload": True, "with_vector": False}
        if offset is not None:
            body["offset"] = offset
        result = self._request("POST", f"/collections/{collection}/points/scroll", json=body) or {}
        records = [
            ScrollRecord(id=int(item["id"]), payload=item.get("payload") or {})
            for item in result.get("points", [])
        ]
        return ScrollPage(records=records, next_offset=result.get("next_page_offset"))

    def count(self, collection: str) -> int:
        info = self._collection_info(collection)
        if info is None:
            return 0
        return int(info.get("points_count") or 0)

    # Internal helpers -------------------------------------------------

    def _collection_info(self, collection: str) -> dict[str, Any] | None:
        try:
            return self._request("GET", f"/collections/{collection}")
        except UpstreamHTTPError as exc:
            if exc.status == 404:
                return None
            raise

    def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        return self.retry.call(self._send, method, path, **kwargs)

    def _send(self, method: str, path: str, **kwargs: Any) -> Any:
        resp = self.session.request(method, f"{self.url}{path}", timeout=self.timeout, **kwargs)
        if not resp.ok:
            raise UpstreamHTTPError(resp.status_code, resp.text, url=path)
        try:
            payload = resp.json()
        except ValueError as exc:
            raise MalformedResponseError(f"Qdrant returned invalid JSON for {path}") from exc
        return payload.get("result") if isinstance(payload, dict) else None


__all__ = ["QdrantVectorStore"]
