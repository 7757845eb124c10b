"""
Background document ingestion.

Public API
----------
DocumentIngestionWorker.process_document(document_id, project_id, file_path)
    Extract text → summarize → save summary → add to the semantic index.
DocumentIngestionWorker.schedule(document_id, project_id, file_path)
    → asyncio.Task
    Same work, fire-and-forget.

Failure semantics
-----------------
* Extraction failures (unsupported type, unreadable file, blank text) stop
  the run before anything is written.
* Summary failures never stop the run: a placeholder summary is stored
  instead (one text for a missing API key, another for a provider error).
* If indexing fails or is cancelled after the summary was saved, the
  summary is reset to ``None`` so the document is left with neither
  summary nor index entry.
* When scheduled, errors are logged by the task wrapper and never reach
  whoever scheduled the work.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Optional

from app.config import settings
from app.exceptions import EmptyDocument, MissingCredential, ProviderError
from app.services.document_parser import DocumentParser
from app.services.llm_service import TextGenerator
from app.services.repository import DocumentStore
from app.services.task_manager import TaskManager
from app.services.vector_store import IndexDocument, SemanticIndex

logger = logging.getLogger(__name__)


SUMMARY_MISSING_KEY = "Summary generation requires OPENAI_API_KEY"
SUMMARY_FAILED = "Failed to generate summary"

_SUMMARY_SYSTEM_PROMPT = (
    "You are a research assistant. Generate a concise 2-3 sentence summary of the "
    "following document, focusing on key findings, methods, and contributions."
)
_SUMMARY_TEMPERATURE = 0.3
_SUMMARY_MAX_TOKENS = 200


class DocumentIngestionWorker:
    def __init__(
        self,
        parser: DocumentParser,
        llm: TextGenerator,
        index: SemanticIndex,
        documents: DocumentStore,
        tasks: Optional[TaskManager] = None,
    ) -> None:
        self._parser = parser
        self._llm = llm
        self._index = index
        self._documents = documents
        self._tasks = tasks or TaskManager()

    @property
    def tasks(self) -> TaskManager:
        return self._tasks

    def schedule(
        self, document_id: str, project_id: str, file_path: str
    ) -> asyncio.Task:
        """Run :meth:`process_document` in the background and return its task."""
        return self._tasks.start(
            document_id, self.process_document(document_id, project_id, file_path)
        )

    async def process_document(
        self, document_id: str, project_id: str, file_path: str
    ) -> None:
        """
        Ingest one stored document.

        Raises the extraction or indexing error after compensating; the task
        wrapper used by :meth:`schedule` logs it and stops it there.
        """
        text = await self._parser.extract_text(file_path)
        if not text or not text.strip():
            raise EmptyDocument(file_path)

        summary = await self.generate_summary(text)
        await self._documents.save_summary(document_id, summary)

        try:
            await self._index.upsert(
                project_id,
                [IndexDocument(id=document_id, text=text, metadata={"file_path": file_path})],
            )
        except BaseException:
            # Includes cancellation by TaskManager.shutdown()
            await self._reset_summary(document_id)
            raise

        logger.info("Processed document %s for project %s", document_id, project_id)

    async def generate_summary(self, text: str) -> str:
        """2-3 sentence summary of the start of *text*, or a fixed placeholder."""
        try:
            return await self._llm.generate_text(
                _SUMMARY_SYSTEM_PROMPT,
                f"Document text:\n\n{text[: settings.SUMMARY_INPUT_CHARS]}",
                _SUMMARY_TEMPERATURE,
                max_tokens=_SUMMARY_MAX_TOKENS,
            )
        except MissingCredential:
            logger.warning("No API key configured; storing placeholder summary")
            return SUMMARY_MISSING_KEY
        except ProviderError as exc:
            logger.error("Summary generation failed: %s", exc)
            return SUMMARY_FAILED

    async def _reset_summary(self, document_id: str) -> None:
        try:
            await self._documents.save_summary(document_id, None)
        except Exception as exc:
            logger.error(
                "Could not reset summary for document %s: %s", document_id, exc, exc_info=True
            )
