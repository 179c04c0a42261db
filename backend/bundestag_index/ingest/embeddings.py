"""Embedding providers."""

from __future__ import annotations

import hashlib
import math
import re
from typing import Protocol, Sequence

import requests

from bundestag_index.core.errors import MalformedResponseError, UpstreamHTTPError
from bundestag_index.core.logging import get_logger
from bundestag_index.resilience.retry import RetryPolicy

logger = get_logger(__name__)

_TOKEN_RE = re.compile(r"\w+")


class EmbeddingProvider(Protocol):
    model_name: str

    @property
    def dim(self) -> int:
        ...

    def embed(self, texts: Sequence[str]) -> list[list[float]]:
        ...


class MistralEmbeddingProvider:
    """Mistral embeddings API; output order matches input order."""

    def __init__(
        self,
        api_key: str,
        model_name: str = "mistral-embed",
        url: str = "https://api.mistral.ai/v1/embeddings",
        dim: int = 1024,
        timeout: float = 60.0,
        retry: RetryPolicy | None = None,
        session: requests.Session | None = None,
    ) -> None:
        if not api_key:
            raise ValueError("Mistral API key not configured")
        self.model_name = model_name
        self.url = url
        self._dim = dim
        self.timeout = timeout
        self.retry = retry or RetryPolicy(name="embeddings")
        self.session = session or requests.Session()
        self.session.headers["Authorization"] = f"Bearer {api_key}"

    @property
    def dim(self) -> int:
        return self._dim

    def embed(self, texts: Sequence[str]) -> list[list[float]]:
        if not texts:
            return []
        vectors = self.retry.call(self._request, list(texts))
        logger.debug("Generated %s embeddings", len(vectors))
        return vectors

    def _request(self, texts: list[str]) -> list[list[float]]:
        resp = self.session.post(
            self.url,
            json={"model": self.model_name, "input": texts},
            timeout=self.timeout,
        )
        if not resp.ok:
            raise UpstreamHTTPError(resp.status_code, resp.text, url=self.url)
        try:
            data = resp.json()["data"]
            ordered = sorted(data, key=lambda item: item.get("index", 0))
            vectors = [list(item["embedding"]) for item in ordered]
        except (ValueError, KeyError, TypeError) as exc:
            raise MalformedResponseError("Unexpected embeddings response") from exc
        if len(vectors) != len(texts):
            raise MalformedResponseError(f"Expected {len(texts)} embeddings, got {len(vectors)}")
        return vectors


class HashedEmbeddingModel:
    """Lightweight hashed embedding model with deterministic output."""

    def __init__(self, model_name: str = "hashed", dim: int = 1024) -> None:
        self.model_name = model_name
        self._dim = dim

    @property
    def dim(self) -> int:
        return self._dim

    def embed(self, texts: Sequence[str]) -> list[list[float]]:
        vectors: list[list[float]] = []
        for text in texts:
            vector = [0.0] * self._dim
            for token in _tokenize(text):
                vector[_hash_token(token, self._dim)] += 1.0
            _normalize(vector)
            vectors.append(vector)
        return vectors


def _tokenize(text: str) -> list[str]:
    return _TOKEN_RE.findall(text.lower())


def _hash_token(token: str, dim: int) -> int:
    digest = hashlib.blake2b(token.encode("utf-8"), digest_size=8).digest()
    return int.from_bytes(digest, "big") % dim


def _normalize(vector: list[float]) -> None:
    norm = math.sqrt(sum(value * value for value in vector))
    if norm == 0:
        return
    inv = 1.0 / norm
    for idx, value in enumerate(vector):
        vector[idx] = value * inv


__all__ = ["EmbeddingProvider", "HashedEmbeddingModel", "MistralEmbeddingProvider"]
