"""
Shared HTTP plumbing for the OpenAI-compatible provider clients.

Both the embedding client and the text-generation client talk to the same
kind of API, so the production safeguards live here once:

* API-key check before any network traffic (``MissingCredential``)
* Semaphore caps in-flight provider requests (PROVIDER_MAX_CONCURRENT); it
  is not held during a retry backoff
* Bounded per-call timeout
* Exponential-backoff retries on connection errors, timeouts, HTTP 429 and
  5xx responses (PROVIDER_MAX_RETRIES); other non-2xx responses fail at once
"""
from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Dict, Optional

import httpx

from app.config import settings
from app.exceptions import MissingCredential, ProviderError

logger = logging.getLogger(__name__)

_RETRYABLE_STATUS = frozenset({429, 500, 502, 503, 504})


class OpenAICompatibleClient:
    """Base class for clients of an OpenAI-compatible REST API."""

    def __init__(
        self,
        *,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: float = 60.0,
        max_retries: Optional[int] = None,
        max_concurrent: Optional[int] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.api_key = settings.OPENAI_API_KEY if api_key is None else api_key
        self.base_url = (base_url or settings.OPENAI_BASE_URL).rstrip("/")
        self.timeout = httpx.Timeout(timeout, connect=10.0)
        self.max_retries = max_retries or settings.PROVIDER_MAX_RETRIES
        self._transport = transport
        self._semaphore = asyncio.Semaphore(
            max_concurrent or settings.PROVIDER_MAX_CONCURRENT
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    def _require_credential(self) -> None:
        if not self.is_configured:
            raise MissingCredential("OPENAI_API_KEY is not set")

    async def _post_json(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        """
        POST *payload* to ``{base_url}{path}`` and return the decoded body.

        Raises ``MissingCredential`` without touching the network when no
        key is configured, and ``ProviderError`` once retries are exhausted
        or on a non-retryable error response.
        """
        self._require_credential()
        url = f"{self.base_url}{path}"
        headers = {"Authorization": f"Bearer {self.api_key}"}
        last_error = "no attempt made"

        for attempt in range(1, self.max_retries + 1):
            # Held per attempt; released before the backoff sleep
            async with self._semaphore:
                try:
                    t0 = time.perf_counter()
                    async with httpx.AsyncClient(
                        timeout=self.timeout, transport=self._transport
                    ) as client:
                        resp = await client.post(url, json=payload, headers=headers)
                    elapsed_ms = (time.perf_counter() - t0) * 1000
                except httpx.TimeoutException as exc:
                    last_error = f"timeout: {exc}"
                    logger.warning(
                        "%s timed out (attempt %d/%d)", path, attempt, self.max_retries
                    )
                except httpx.TransportError as exc:
                    last_error = f"connection error: {exc}"
                    logger.warning(
                        "%s connection error (attempt %d/%d): %s",
                        path,
                        attempt,
                        self.max_retries,
                        exc,
                    )
                else:
                    if resp.status_code == 200:
                        logger.debug("%s answered in %.1f ms", path, elapsed_ms)
                        try:
                            return resp.json()
                        except ValueError as exc:
                            raise ProviderError(
                                f"{path} returned a non-JSON body"
                            ) from exc

                    last_error = f"HTTP {resp.status_code}: {resp.text[:300]}"
                    logger.error(
                        "%s returned %d (attempt %d/%d): %s",
                        path,
                        resp.status_code,
                        attempt,
                        self.max_retries,
                        resp.text[:300],
                    )
                    if resp.status_code not in _RETRYABLE_STATUS:
                        raise ProviderError(
                            f"{path} failed with {last_error}",
                            status_code=resp.status_code,
                        )

            if attempt < self.max_retries:
                await asyncio.sleep(2 ** (attempt - 1))

        raise ProviderError(
            f"{path} failed after {self.max_retries} attempts ({last_error})"
        )

    async def check_health(self) -> bool:
        """Return ``True`` if the provider answers ``GET /models`` with 200."""
        if not self.is_configured:
            return False
        try:
            async with httpx.AsyncClient(
                timeout=5.0, transport=self._transport
            ) as client:
                resp = await client.get(
                    f"{self.base_url}/models",
                    headers={"Authorization": f"Bearer {self.api_key}"},
                )
            return resp.status_code == 200
        except httpx.HTTPError as exc:
            logger.error("Provider health check failed: %s", exc)
            return False
