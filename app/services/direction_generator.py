"""
Direction Generator stage: turns research gaps into concrete directions.
One or two directions are asked for per gap.
"""
from __future__ import annotations

import logging
from typing import List, Sequence

from app.models.analysis import DirectionsEnvelope, Gap, ProposedDirection
from app.services.stage import GenerationStage, join_blocks

logger = logging.getLogger(__name__)

MAX_DIRECTIONS_PER_GAP = 2


_SYSTEM_PROMPT = (
    "You are a research strategy advisor. Based on identified research gaps, propose "
    "concrete, actionable research directions with specific hypotheses and "
    "experimental approaches."
)

_GAP_BLOCK = """\

Gap {n}: {description}
Why it matters: {why}
What's missing: {missing}
Supporting refs: {refs}
"""

_USER_PROMPT = """\
{gaps}

For each gap, propose 1-2 concrete research directions. For each direction, provide:
- title: A clear, descriptive title
- hypothesis: A testable hypothesis
- proposedExperiments: Array of 2-4 specific experiments or studies
- requiredData: Array of data or resources needed
- feasibility: "high", "medium", or "low"
- impact: "high", "medium", or "low"

Return ONLY a valid JSON object with this structure:
{{
  "directions": [
    {{
      "title": "...",
      "hypothesis": "...",
      "proposedExperiments": ["...", "..."],
      "requiredData": ["...", "..."],
      "feasibility": "high|medium|low",
      "impact": "high|medium|low"
    }}
  ]
}}\
"""


def render_gaps(gaps: Sequence[Gap]) -> str:
    return join_blocks(
        _GAP_BLOCK.format(
            n=i,
            description=gap.description,
            why=gap.why_it_matters,
            missing=gap.what_seems_missing,
            refs=", ".join(gap.supporting_refs),
        )
        for i, gap in enumerate(gaps, start=1)
    )


class DirectionGenerator(GenerationStage):
    name = "direct"
    system_prompt = _SYSTEM_PROMPT
    temperature = 0.5

    async def run(self, gaps: Sequence[Gap]) -> List[ProposedDirection]:
        envelope = await self._generate(
            _USER_PROMPT.format(gaps=render_gaps(gaps)), DirectionsEnvelope
        )
        self._require_count(
            "directions",
            len(envelope.directions),
            1,
            max(1, MAX_DIRECTIONS_PER_GAP * len(gaps)),
        )
        return envelope.directions
