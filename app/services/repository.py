"""
Document store: the persistence operations the analysis core depends on.

The Profiler reads a project and its document summaries; the ingestion
worker writes a document's summary back.  Both run outside a request, so
the SQL implementation opens its own short-lived session per call.
"""
from __future__ import annotations

import dataclasses
import logging
from typing import Callable, List, Optional, Protocol

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.database_models import Document, Project

logger = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True)
class ProjectRecord:
    id: str
    title: str
    description: Optional[str]


@dataclasses.dataclass(frozen=True)
class DocumentRecord:
    id: str
    title: str
    summary: Optional[str]


class DocumentStore(Protocol):
    async def get_project(self, project_id: str) -> Optional[ProjectRecord]: ...

    async def list_documents(self, project_id: str) -> List[DocumentRecord]: ...

    async def save_summary(self, document_id: str, summary: Optional[str]) -> None: ...


class SqlDocumentStore:
    """``DocumentStore`` backed by the application's SQLAlchemy session factory."""

    def __init__(self, session_factory: Callable[[], AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get_project(self, project_id: str) -> Optional[ProjectRecord]:
        async with self._session_factory() as session:
            project = await session.get(Project, project_id)
            if project is None:
                return None
            return ProjectRecord(
                id=project.id, title=project.title, description=project.description
            )

    async def list_documents(self, project_id: str) -> List[DocumentRecord]:
        """Documents of *project_id*, newest first."""
        async with self._session_factory() as session:
            result = await session.execute(
                select(Document)
                .where(Document.project_id == project_id)
                .order_by(Document.created_at.desc())
            )
            return [
                DocumentRecord(id=doc.id, title=doc.title, summary=doc.summary)
                for doc in result.scalars().all()
            ]

    async def save_summary(self, document_id: str, summary: Optional[str]) -> None:
        async with self._session_factory() as session:
            result = await session.execute(
                update(Document)
                .where(Document.id == document_id)
                .values(summary=summary)
            )
            await session.commit()
            if result.rowcount == 0:
                logger.warning("save_summary: document %s no longer exists", document_id)
