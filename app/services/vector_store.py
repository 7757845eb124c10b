"""
In-memory semantic index: per-project chunk store with exact cosine search.

Public API
----------
SemanticIndex.upsert(project_id, documents)       → List[Chunk]
SemanticIndex.query(project_id, query_text, top_k) → List[SearchResult]
SemanticIndex.clear(project_id)
SemanticIndex.get_project_chunks(project_id)       → Tuple[Chunk, ...]

Design notes
------------
* One chunk per document: the text is windowed, but only the first window
  is embedded and stored (``chunk_index = 0``).  The stored text is the
  first ``RETAINED_TEXT_CHARS`` characters of the document so retrieval
  results carry more context than the embedded window.
* Upserts never deduplicate: re-upserting a document id adds a second chunk.
* Each project's chunk list is replaced wholesale on upsert (copy-on-write)
  with no ``await`` between reading the old list and publishing the new one,
  so a concurrent query sees every chunk of an upsert or none of them.
* Brute-force scoring over every chunk of the project.  Ties keep insertion
  order (stable sort).
"""
from __future__ import annotations

import dataclasses
import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np

from app.config import settings
from app.services.chunking import split_into_chunks
from app.services.embedding import EmbeddingProvider
from app.utils.helpers import cosine_scores

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------

@dataclasses.dataclass(frozen=True)
class IndexDocument:
    """A document handed to the index for upsert."""

    id: str
    text: str
    metadata: Optional[Dict[str, Any]] = None


@dataclasses.dataclass(frozen=True)
class Chunk:
    """A bounded slice of document text paired with its embedding."""

    id: str
    text: str
    embedding: Tuple[float, ...]
    document_id: str
    project_id: str
    chunk_index: int
    extra_metadata: Mapping[str, Any] = dataclasses.field(default_factory=dict)

    @property
    def metadata(self) -> Dict[str, Any]:
        return {
            **self.extra_metadata,
            "document_id": self.document_id,
            "project_id": self.project_id,
            "chunk_index": self.chunk_index,
        }


@dataclasses.dataclass(frozen=True)
class SearchResult:
    """Result item returned from a similarity query."""

    text: str
    metadata: Dict[str, Any]
    score: float


# ---------------------------------------------------------------------------
# Index
# ---------------------------------------------------------------------------

class SemanticIndex:
    """
    Process-lifetime vector store keyed by project id.

    Construct one per application (or per test) and pass it to the services
    that need it; ``close()`` drops every project's chunks.
    """

    def __init__(
        self,
        embedder: EmbeddingProvider,
        *,
        chunk_size: Optional[int] = None,
        chunk_overlap: Optional[int] = None,
        retained_chars: Optional[int] = None,
    ) -> None:
        self._embedder = embedder
        self.chunk_size = chunk_size or settings.CHUNK_SIZE
        self.chunk_overlap = settings.CHUNK_OVERLAP if chunk_overlap is None else chunk_overlap
        self.retained_chars = retained_chars or settings.RETAINED_TEXT_CHARS
        self._store: Dict[str, List[Chunk]] = {}

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def upsert(
        self, project_id: str, documents: Sequence[IndexDocument]
    ) -> List[Chunk]:
        """
        Embed and append one chunk per document to *project_id*.

        Embedding failures propagate and leave the project's chunks untouched.
        """
        if not documents:
            return []

        windows: List[str] = []
        for doc in documents:
            pieces = split_into_chunks(doc.text, self.chunk_size, self.chunk_overlap)
            windows.append(pieces[0] if pieces else doc.text[: self.chunk_size])

        embeddings = await self._embedder.embed_batch(windows)

        new_chunks = [
            Chunk(
                id=f"{doc.id}-0",
                text=doc.text[: self.retained_chars],
                embedding=tuple(float(x) for x in vector),
                document_id=str(doc.id),
                project_id=project_id,
                chunk_index=0,
                extra_metadata=dict(doc.metadata or {}),
            )
            for doc, vector in zip(documents, embeddings)
        ]

        # Publish in one step: no await between read and write.
        existing = self._store.get(project_id, [])
        self._store[project_id] = [*existing, *new_chunks]

        logger.info(
            "upsert: project %s +%d chunk(s) (total %d)",
            project_id,
            len(new_chunks),
            len(self._store[project_id]),
        )
        return new_chunks

    def clear(self, project_id: str) -> None:
        """Remove every chunk belonging to *project_id*."""
        removed = len(self._store.pop(project_id, []))
        logger.info("clear: project %s, %d chunk(s) removed", project_id, removed)

    def close(self) -> None:
        """Drop all projects.  The index is unusable for old data afterwards."""
        self._store = {}

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_project_chunks(self, project_id: str) -> Tuple[Chunk, ...]:
        return tuple(self._store.get(project_id, ()))

    def chunk_count(self, project_id: str) -> int:
        return len(self._store.get(project_id, ()))

    async def query(
        self, project_id: str, query_text: str, top_k: int = 5
    ) -> List[SearchResult]:
        """
        Return the *top_k* chunks of *project_id* most similar to
        *query_text*, best first.  An empty project returns ``[]`` without
        calling the embedder.
        """
        chunks = self._store.get(project_id, [])
        if not chunks or top_k <= 0:
            return []

        query_vector = await self._embedder.embed(query_text)
        scores = cosine_scores(query_vector, [c.embedding for c in chunks])

        order = np.argsort(-scores, kind="stable")[:top_k]
        results = [
            SearchResult(
                text=chunks[i].text,
                metadata=chunks[i].metadata,
                score=float(scores[i]),
            )
            for i in order
        ]
        logger.debug(
            "query: project %s %r → %d result(s)", project_id, query_text[:60], len(results)
        )
        return results

