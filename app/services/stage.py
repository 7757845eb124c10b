"""
Common contract shared by the five generation stages.

A stage renders a deterministic prompt from its typed input, asks the text
generator for a JSON object, and validates the reply against a pydantic
model.  A reply that is not JSON, does not match the model, or breaks the
stage's count rule raises ``GenerationContractViolation``.  Nothing is
retried and no defaults are substituted for a bad reply.
"""
from __future__ import annotations

import json
import logging
from typing import Iterable, Type, TypeVar

from pydantic import BaseModel, ValidationError

from app.exceptions import GenerationContractViolation
from app.services.llm_service import TextGenerator
from app.utils.helpers import strip_code_fences

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

BLOCK_SEPARATOR = "\n---\n"


def join_blocks(blocks: Iterable[str]) -> str:
    """Join per-item prompt blocks the way every stage lays them out."""
    return BLOCK_SEPARATOR.join(blocks)


def bullet_list(items: Iterable[str], separator: str = "\n- ") -> str:
    return separator.join(items)


class GenerationStage:
    """
    Base class for a single pipeline stage.

    Subclasses set ``name``, ``system_prompt`` and ``temperature`` and call
    :meth:`_generate` with their rendered user prompt.
    """

    name: str = "stage"
    system_prompt: str = ""
    temperature: float = 0.3

    def __init__(self, llm: TextGenerator) -> None:
        self._llm = llm

    async def _generate(self, user_prompt: str, model: Type[ModelT]) -> ModelT:
        raw = await self._llm.generate_structured_text(
            self.system_prompt, user_prompt, self.temperature
        )
        return self._parse(raw, model)

    def _parse(self, raw: str, model: Type[ModelT]) -> ModelT:
        text = strip_code_fences(raw or "")
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            logger.error("%s: reply is not JSON (%s): %r", self.name, exc, text[:200])
            raise GenerationContractViolation(self.name, f"not valid JSON ({exc})") from exc

        if not isinstance(data, dict):
            raise GenerationContractViolation(
                self.name, f"expected a JSON object, got {type(data).__name__}"
            )

        try:
            return model.model_validate(data)
        except ValidationError as exc:
            logger.error("%s: reply failed validation: %s", self.name, exc)
            raise GenerationContractViolation(
                self.name, f"{exc.error_count()} validation error(s): {exc.errors()[0]['msg']}"
            ) from exc

    def _require_count(self, what: str, count: int, minimum: int, maximum: int) -> None:
        if not minimum <= count <= maximum:
            expected = str(minimum) if minimum == maximum else f"{minimum}-{maximum}"
            raise GenerationContractViolation(
                self.name, f"expected {expected} {what}, got {count}"
            )
