"""
Literature Scout stage: proposes papers related to a project profile.

The papers are generated by the language model rather than looked up in a
bibliographic database.  A real search backend can replace this class as
long as it keeps the ``run(profile, num_papers)`` signature.
"""
from __future__ import annotations

import logging
from typing import List, Optional

from app.config import settings
from app.models.analysis import ProjectProfile, ScoutedPaper, ScoutedPapersEnvelope
from app.services.stage import GenerationStage

logger = logging.getLogger(__name__)


_SYSTEM_PROMPT = (
    "You are a literature review assistant. Based on the research project profile, "
    "generate a list of relevant research papers that would be found in a literature "
    "search. These should be realistic, relevant papers that address similar topics, "
    "methods, or questions."
)

_USER_PROMPT = """\
Research Area: {research_area}
Goals: {goals}
Methods: {methods}
Key Findings: {key_findings}

Generate {num_papers} relevant research papers. For each paper, provide:
- title: A realistic research paper title
- summary: A 2-3 sentence summary of the paper's main contributions
- relevanceReason: Why this paper is relevant to the project
- limitations: What limitations or gaps this paper has

Return ONLY a valid JSON object with this structure:
{{
  "scoutedPapers": [
    {{
      "title": "...",
      "summary": "...",
      "relevanceReason": "...",
      "limitations": "..."
    }}
  ]
}}\
"""


class LiteratureScout(GenerationStage):
    name = "scout"
    system_prompt = _SYSTEM_PROMPT
    temperature = 0.5

    async def run(
        self, profile: ProjectProfile, num_papers: Optional[int] = None
    ) -> List[ScoutedPaper]:
        count = settings.SCOUTED_PAPER_COUNT if num_papers is None else num_papers
        prompt = _USER_PROMPT.format(
            research_area=profile.research_area,
            goals=", ".join(profile.goals),
            methods=", ".join(profile.methods),
            key_findings=", ".join(profile.key_findings),
            num_papers=count,
        )
        envelope = await self._generate(prompt, ScoutedPapersEnvelope)
        self._require_count("papers", len(envelope.scouted_papers), count, count)
        return envelope.scouted_papers
