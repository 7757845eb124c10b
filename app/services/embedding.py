"""
Embedding generation service using an OpenAI-compatible ``/embeddings`` API.

Provides:
- EmbeddingProvider: the capability the semantic index depends on
- OpenAIEmbeddingService: concurrency-limited, retrying, caching embedder
"""
from __future__ import annotations

import hashlib
import logging
from collections import OrderedDict
from typing import Dict, List, Optional, Protocol

import httpx

from app.config import settings
from app.exceptions import ProviderError
from app.services.provider_http import OpenAICompatibleClient

logger = logging.getLogger(__name__)


def _hash_text(content: str) -> str:
    """SHA-256 digest of a text string, used as the cache key."""
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


class EmbeddingProvider(Protocol):
    """Maps text to a fixed-length vector."""

    async def embed(self, text: str) -> List[float]: ...

    async def embed_batch(self, texts: List[str]) -> List[List[float]]: ...


class OpenAIEmbeddingService(OpenAICompatibleClient):
    """
    Embedding generation with production safeguards inherited from
    ``OpenAICompatibleClient`` plus a bounded in-process content-hash cache.
    Past ``cache_size`` entries the least recently used vector is evicted.
    """

    def __init__(
        self,
        *,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        model: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        max_retries: Optional[int] = None,
        max_concurrent: Optional[int] = None,
        cache_size: Optional[int] = None,
    ) -> None:
        super().__init__(
            api_key=api_key,
            base_url=base_url,
            timeout=settings.EMBEDDING_TIMEOUT,
            max_retries=max_retries,
            max_concurrent=max_concurrent,
            transport=transport,
        )
        self.model = model or settings.EMBED_MODEL
        self.cache_size = settings.EMBED_CACHE_SIZE if cache_size is None else cache_size
        self._cache: "OrderedDict[str, List[float]]" = OrderedDict()

    def _cached(self, key: str) -> Optional[List[float]]:
        vector = self._cache.get(key)
        if vector is not None:
            self._cache.move_to_end(key)
        return vector

    def _remember(self, key: str, vector: List[float]) -> None:
        self._cache[key] = vector
        self._cache.move_to_end(key)
        while len(self._cache) > self.cache_size:
            self._cache.popitem(last=False)

    async def embed(self, text: str) -> List[float]:
        """Embed a single text string.  Results are cached by SHA-256."""
        key = _hash_text(text)
        cached = self._cached(key)
        if cached is not None:
            return cached

        vectors = await self._request([text])
        self._remember(key, vectors[0])
        return vectors[0]

    async def embed_batch(self, texts: List[str]) -> List[List[float]]:
        """
        Embed a list of texts in one request.

        Cached texts are served locally; only the misses go over the wire.
        Returns vectors in the same order as *texts*.
        """
        if not texts:
            return []

        keys = [_hash_text(t) for t in texts]
        found: Dict[str, List[float]] = {}
        missing: Dict[str, str] = {}  # key -> text, each distinct text once
        for text, key in zip(texts, keys):
            if key in found or key in missing:
                continue
            cached = self._cached(key)
            if cached is None:
                missing[key] = text
            else:
                found[key] = cached

        if missing:
            fresh = await self._request(list(missing.values()))
            for key, vector in zip(missing, fresh):
                found[key] = vector
                self._remember(key, vector)

        logger.info(
            "embed_batch: %d texts (%d from cache)",
            len(texts),
            len(texts) - len(missing),
        )
        return [found[k] for k in keys]

    async def _request(self, inputs: List[str]) -> List[List[float]]:
        body = await self._post_json(
            "/embeddings", {"model": self.model, "input": inputs}
        )
        data = body.get("data")
        if not isinstance(data, list) or len(data) != len(inputs):
            raise ProviderError(
                f"/embeddings returned {len(data) if isinstance(data, list) else 'no'} "
                f"vectors for {len(inputs)} inputs"
            )

        # The API may return items out of order; "index" is authoritative.
        ordered = sorted(data, key=lambda item: item.get("index", 0))
        vectors: List[List[float]] = []
        for item in ordered:
            embedding = item.get("embedding")
            if not embedding:
                raise ProviderError("/embeddings response item is missing 'embedding'")
            vectors.append([float(x) for x in embedding])
        return vectors
