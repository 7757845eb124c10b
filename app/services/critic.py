"""
Critic stage: reviews each proposed direction as a principal investigator.

The model is asked only for the review fields.  Each review is merged onto
the direction it belongs to (matched by position), so the title, hypothesis
and the rest of the direction come from the input and never from the
model's reply.
"""
from __future__ import annotations

import logging
from typing import List, Sequence

from app.models.analysis import CriticizedDirection, CritiquesEnvelope, ProposedDirection
from app.services.stage import GenerationStage, join_blocks

logger = logging.getLogger(__name__)


_SYSTEM_PROMPT = (
    "You are a Principal Investigator (PI) reviewing research proposals. Provide "
    "critical, constructive feedback from the perspective of an experienced researcher "
    "who evaluates proposals for funding, feasibility, and scientific rigor. Be "
    "thorough but fair."
)

_DIRECTION_BLOCK = """\

Direction {n}: {title}
Hypothesis: {hypothesis}
Proposed Experiments: {experiments}
Required Data: {data}
Feasibility: {feasibility}
Impact: {impact}
"""

_USER_PROMPT = """\
{directions}

Review each of the {count} proposed research directions from a PI perspective, in the \
order given. For each direction, provide:
- strengths: Array of 2-3 strengths
- weaknesses: Array of 2-3 weaknesses or concerns
- risks: Array of potential risks or challenges
- suggestedImprovements: Array of specific suggestions to improve the direction
- piComment: A 2-3 sentence overall comment from the PI perspective

Return ONLY a valid JSON object with exactly one entry per direction:
{{
  "criticizedDirections": [
    {{
      "strengths": ["...", "..."],
      "weaknesses": ["...", "..."],
      "risks": ["...", "..."],
      "suggestedImprovements": ["...", "..."],
      "piComment": "..."
    }}
  ]
}}\
"""


def render_directions(directions: Sequence[ProposedDirection]) -> str:
    return join_blocks(
        _DIRECTION_BLOCK.format(
            n=i,
            title=d.title,
            hypothesis=d.hypothesis,
            experiments="\n- ".join(d.proposed_experiments),
            data=", ".join(d.required_data),
            feasibility=d.feasibility.value,
            impact=d.impact.value,
        )
        for i, d in enumerate(directions, start=1)
    )


class Critic(GenerationStage):
    name = "critique"
    system_prompt = _SYSTEM_PROMPT
    temperature = 0.4

    async def run(
        self, directions: Sequence[ProposedDirection]
    ) -> List[CriticizedDirection]:
        prompt = _USER_PROMPT.format(
            directions=render_directions(directions), count=len(directions)
        )
        envelope = await self._generate(prompt, CritiquesEnvelope)
        critiques = envelope.criticized_directions
        self._require_count("critiques", len(critiques), len(directions), len(directions))
        return [
            CriticizedDirection.merge(direction, critique)
            for direction, critique in zip(directions, critiques)
        ]
