"""
Explicit construction and teardown of the application's services.

The semantic index lives for the lifetime of the container, and every
service that reads or writes it receives the same instance.  ``main.py``
builds one container at import time; tests build their own with fake
providers and swap it onto ``app.state.services``.
"""
from __future__ import annotations

import dataclasses
import logging
from typing import Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.services.document_parser import DocumentParser
from app.services.embedding import EmbeddingProvider, OpenAIEmbeddingService
from app.services.ingestion import DocumentIngestionWorker
from app.services.llm_service import OpenAILLMService, TextGenerator
from app.services.pipeline import AnalysisPipeline
from app.services.repository import DocumentStore, SqlDocumentStore
from app.services.task_manager import TaskManager
from app.services.vector_store import SemanticIndex

logger = logging.getLogger(__name__)


@dataclasses.dataclass
class Services:
    llm: TextGenerator
    embedder: EmbeddingProvider
    index: SemanticIndex
    documents: DocumentStore
    parser: DocumentParser
    tasks: TaskManager
    ingestion: DocumentIngestionWorker
    pipeline: AnalysisPipeline

    async def close(self) -> None:
        """Cancel background ingestion and drop the in-memory index."""
        await self.tasks.shutdown()
        self.index.close()
        logger.info("Services shut down")


def build_services(
    session_factory: Callable[[], AsyncSession],
    *,
    llm: Optional[TextGenerator] = None,
    embedder: Optional[EmbeddingProvider] = None,
    documents: Optional[DocumentStore] = None,
    parser: Optional[DocumentParser] = None,
) -> Services:
    """Wire every service; any collaborator can be replaced (tests pass fakes)."""
    llm = llm or OpenAILLMService()
    embedder = embedder or OpenAIEmbeddingService()
    documents = documents or SqlDocumentStore(session_factory)
    parser = parser or DocumentParser()

    index = SemanticIndex(embedder)
    tasks = TaskManager()
    return Services(
        llm=llm,
        embedder=embedder,
        index=index,
        documents=documents,
        parser=parser,
        tasks=tasks,
        ingestion=DocumentIngestionWorker(parser, llm, index, documents, tasks),
        pipeline=AnalysisPipeline(llm, index, documents),
    )
