"""
Profiler stage: condenses a project's documents into a ``ProjectProfile``.

Context for the prompt comes from two places: the per-document summaries
held by the document store, and excerpts retrieved from the semantic index
with five fixed topic queries.
"""
from __future__ import annotations

import logging
from typing import List

from app.exceptions import NoDocuments, ProjectNotFound
from app.models.analysis import ProjectProfile
from app.services.repository import DocumentStore
from app.services.stage import GenerationStage
from app.services.vector_store import SemanticIndex
from app.services.llm_service import TextGenerator

logger = logging.getLogger(__name__)


PROFILE_QUERIES = (
    "research objectives and goals",
    "methodology and experimental approach",
    "key findings and results",
    "limitations and constraints",
    "open questions and future work",
)

_RESULTS_PER_QUERY = 2
_MAX_EXCERPTS = 5


_SYSTEM_PROMPT = (
    "You are a research analysis assistant. Analyze the provided research project "
    "documents and generate a structured project profile. Be specific and extract "
    "concrete information from the documents."
)

_USER_PROMPT = """\
Project Title: {title}
Project Description: {description}

Document Summaries:
{summaries}

Relevant Document Excerpts:
{excerpts}

Generate a structured project profile with the following fields:
- researchArea: A concise description of the research domain/area
- goals: Array of 3-5 specific research goals
- methods: Array of methods, techniques, or approaches used
- keyFindings: Array of 3-5 key findings or results
- knownLimitations: Array of limitations mentioned or apparent
- openQuestions: Array of open questions or areas for future investigation

Return ONLY a valid JSON object with this structure:
{{
  "researchArea": "...",
  "goals": ["...", "..."],
  "methods": ["...", "..."],
  "keyFindings": ["...", "..."],
  "knownLimitations": ["...", "..."],
  "openQuestions": ["...", "..."]
}}\
"""


class Profiler(GenerationStage):
    name = "profile"
    system_prompt = _SYSTEM_PROMPT
    temperature = 0.3

    def __init__(
        self, llm: TextGenerator, index: SemanticIndex, documents: DocumentStore
    ) -> None:
        super().__init__(llm)
        self._index = index
        self._documents = documents

    async def run(self, project_id: str) -> ProjectProfile:
        project = await self._documents.get_project(project_id)
        if project is None:
            raise ProjectNotFound(project_id)

        docs = await self._documents.list_documents(project_id)
        if not docs:
            raise NoDocuments(project_id)

        summaries = "\n".join(
            f"- {doc.title}: {doc.summary or 'No summary available'}" for doc in docs
        )
        excerpts = await self._collect_excerpts(project_id)

        prompt = _USER_PROMPT.format(
            title=project.title,
            description=project.description or "No description",
            summaries=summaries,
            excerpts="\n\n---\n\n".join(excerpts),
        )
        profile = await self._generate(prompt, ProjectProfile)
        logger.info(
            "Profiled project %s from %d document(s), %d excerpt(s)",
            project_id,
            len(docs),
            len(excerpts),
        )
        return profile

    async def _collect_excerpts(self, project_id: str) -> List[str]:
        """Non-empty, de-duplicated excerpts in query order, capped at five."""
        excerpts: List[str] = []
        for query in PROFILE_QUERIES:
            results = await self._index.query(project_id, query, _RESULTS_PER_QUERY)
            for result in results:
                if result.text and result.text not in excerpts:
                    excerpts.append(result.text)
        return excerpts[:_MAX_EXCERPTS]
