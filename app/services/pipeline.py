"""
Analysis pipeline orchestrator.

Public API
----------
AnalysisPipeline.run_full_analysis(project_id)
    → AnalysisResult
    Profile → Scout → GapFind → Direct → Critique, strictly in sequence.

Each stage receives only the typed outputs of the stages before it.  The
first failure aborts the run: later stages are never invoked and the error
is re-raised as ``PipelineStageError`` naming the stage, with the original
exception chained.  Nothing is persisted here; the caller stores the result.
"""
from __future__ import annotations

import logging
import time
from typing import Awaitable, Optional, TypeVar

from app.exceptions import PipelineStageError
from app.models.analysis import AnalysisResult
from app.services.critic import Critic
from app.services.direction_generator import DirectionGenerator
from app.services.gap_finder import GapFinder
from app.services.literature_scout import LiteratureScout
from app.services.llm_service import TextGenerator
from app.services.profiler import Profiler
from app.services.repository import DocumentStore
from app.services.vector_store import SemanticIndex

logger = logging.getLogger(__name__)

T = TypeVar("T")

_TOTAL_STAGES = 5


class AnalysisPipeline:
    """
    Chains the five generation stages for one project.

    Instances hold no per-run state, so concurrent runs on the same
    pipeline object are independent.
    """

    def __init__(
        self,
        llm: TextGenerator,
        index: SemanticIndex,
        documents: DocumentStore,
        *,
        num_papers: Optional[int] = None,
    ) -> None:
        self.profiler = Profiler(llm, index, documents)
        self.scout = LiteratureScout(llm)
        self.gap_finder = GapFinder(llm)
        self.direction_generator = DirectionGenerator(llm)
        self.critic = Critic(llm)
        self.num_papers = num_papers

    async def run_full_analysis(self, project_id: str) -> AnalysisResult:
        t0 = time.monotonic()
        logger.info("Starting analysis for project %s", project_id)

        profile = await self._stage(
            1, "profile", "Profiling project", self.profiler.run(project_id)
        )
        papers = await self._stage(
            2,
            "scout",
            "Scouting literature",
            self.scout.run(profile, self.num_papers),
        )
        logger.info("  %d relevant paper(s)", len(papers))

        gaps = await self._stage(
            3, "gap_find", "Finding gaps", self.gap_finder.run(profile, papers)
        )
        logger.info("  %d research gap(s)", len(gaps))

        directions = await self._stage(
            4, "direct", "Generating directions", self.direction_generator.run(gaps)
        )
        logger.info("  %d direction(s)", len(directions))

        criticized = await self._stage(
            5, "critique", "Critiquing directions", self.critic.run(directions)
        )

        elapsed = time.monotonic() - t0
        logger.info(
            "Analysis complete for project %s in %.1fs: %d papers, %d gaps, "
            "%d directions, %d critiques",
            project_id,
            elapsed,
            len(papers),
            len(gaps),
            len(directions),
            len(criticized),
        )
        return AnalysisResult(
            project_profile=profile,
            scouted_papers=papers,
            gaps=gaps,
            directions=directions,
            criticized_directions=criticized,
        )

    async def _stage(
        self, position: int, stage: str, label: str, work: Awaitable[T]
    ) -> T:
        logger.info("[%d/%d] %s...", position, _TOTAL_STAGES, label)
        try:
            return await work
        except Exception as exc:
            logger.error(
                "Analysis aborted at stage '%s': %s", stage, exc, exc_info=True
            )
            raise PipelineStageError(stage, exc) from exc
