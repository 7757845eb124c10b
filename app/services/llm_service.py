"""
Text-generation service using an OpenAI-compatible ``/chat/completions`` API.

Public API
----------
TextGenerator                                   (capability used by the stages)
OpenAILLMService.generate_structured_text(...)  -> str (JSON text)
OpenAILLMService.generate_text(...)             -> str (free text)
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Protocol

import httpx

from app.config import settings
from app.exceptions import ProviderError
from app.services.provider_http import OpenAICompatibleClient

logger = logging.getLogger(__name__)


class TextGenerator(Protocol):
    """Given a prompt, return text from a language model."""

    async def generate_structured_text(
        self, system_prompt: str, user_prompt: str, temperature: float
    ) -> str: ...

    async def generate_text(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float,
        max_tokens: Optional[int] = None,
    ) -> str: ...


class OpenAILLMService(OpenAICompatibleClient):
    """
    Chat-completion client.

    ``generate_structured_text`` asks the model for a JSON object via
    ``response_format``; validating the JSON is the caller's job.
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
    ) -> None:
        super().__init__(
            api_key=api_key,
            base_url=base_url,
            timeout=settings.LLM_TIMEOUT,
            max_retries=max_retries,
            max_concurrent=max_concurrent,
            transport=transport,
        )
        self.model = model or settings.LLM_MODEL

    async def generate_structured_text(
        self, system_prompt: str, user_prompt: str, temperature: float
    ) -> str:
        return await self._complete(
            system_prompt,
            user_prompt,
            temperature=temperature,
            response_format={"type": "json_object"},
        )

    async def generate_text(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float,
        max_tokens: Optional[int] = None,
    ) -> str:
        return await self._complete(
            system_prompt, user_prompt, temperature=temperature, max_tokens=max_tokens
        )

    async def _complete(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        temperature: float,
        max_tokens: Optional[int] = None,
        response_format: Optional[Dict[str, str]] = None,
    ) -> str:
        messages: List[Dict[str, str]] = [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_prompt},
        ]
        payload: Dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "temperature": temperature,
        }
        if max_tokens is not None:
            payload["max_tokens"] = max_tokens
        if response_format is not None:
            payload["response_format"] = response_format

        body = await self._post_json("/chat/completions", payload)

        try:
            content = body["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as exc:
            raise ProviderError("/chat/completions response has no message content") from exc

        if not content:
            raise ProviderError("No response from LLM")

        logger.debug(
            "_complete: %d prompt chars → %d response chars",
            len(system_prompt) + len(user_prompt),
            len(content),
        )
        return content
