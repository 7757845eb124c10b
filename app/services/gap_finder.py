"""
Gap Finder stage: compares the project with the scouted literature.
"""
from __future__ import annotations

import logging
from typing import List, Sequence

from app.models.analysis import Gap, GapsEnvelope, ProjectProfile, ScoutedPaper
from app.services.stage import GenerationStage, bullet_list, join_blocks

logger = logging.getLogger(__name__)

MIN_GAPS = 3
MAX_GAPS = 5


_SYSTEM_PROMPT = (
    "You are a research gap analysis expert. Compare the project work with the "
    "relevant literature to identify specific research gaps, missing approaches, or "
    "underexplored areas. Be specific and actionable."
)

_PAPER_BLOCK = """\

Paper {n}: {title}
Summary: {summary}
Relevance: {relevance}
Limitations: {limitations}
"""

_USER_PROMPT = """\
Project Profile:
Research Area: {research_area}
Goals: {goals}
Methods: {methods}
Key Findings: {key_findings}
Known Limitations: {known_limitations}
Open Questions: {open_questions}

Relevant Literature:
{papers}

Identify {min_gaps}-{max_gaps} specific research gaps by comparing what the project \
has done versus what exists in the literature. For each gap, provide:
- description: A clear description of the gap
- whyItMatters: Why addressing this gap is important
- whatSeemsMissing: What specific elements, methods, or knowledge are missing
- supportingRefs: Array of references (paper titles or project findings) that support \
this gap identification

Return ONLY a valid JSON object with this structure:
{{
  "gaps": [
    {{
      "description": "...",
      "whyItMatters": "...",
      "whatSeemsMissing": "...",
      "supportingRefs": ["...", "..."]
    }}
  ]
}}\
"""


def render_papers(papers: Sequence[ScoutedPaper]) -> str:
    return join_blocks(
        _PAPER_BLOCK.format(
            n=i,
            title=paper.title,
            summary=paper.summary,
            relevance=paper.relevance_reason,
            limitations=paper.limitations,
        )
        for i, paper in enumerate(papers, start=1)
    )


class GapFinder(GenerationStage):
    name = "gap_find"
    system_prompt = _SYSTEM_PROMPT
    temperature = 0.4

    async def run(
        self, profile: ProjectProfile, papers: Sequence[ScoutedPaper]
    ) -> List[Gap]:
        prompt = _USER_PROMPT.format(
            research_area=profile.research_area,
            goals=bullet_list(profile.goals),
            methods=bullet_list(profile.methods),
            key_findings=bullet_list(profile.key_findings),
            known_limitations=bullet_list(profile.known_limitations),
            open_questions=bullet_list(profile.open_questions),
            papers=render_papers(papers),
            min_gaps=MIN_GAPS,
            max_gaps=MAX_GAPS,
        )
        envelope = await self._generate(prompt, GapsEnvelope)
        self._require_count("gaps", len(envelope.gaps), MIN_GAPS, MAX_GAPS)
        return envelope.gaps
