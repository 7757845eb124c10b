"""Tests for the five generation stages and their reply contracts."""
import json

import pytest

from app.exceptions import GenerationContractViolation, NoDocuments, ProjectNotFound
from app.models.analysis import Gap, ProjectProfile, ProposedDirection, Rating, ScoutedPaper
from app.services.critic import Critic
from app.services.direction_generator import DirectionGenerator
from app.services.gap_finder import GapFinder
from app.services.literature_scout import LiteratureScout
from app.services.profiler import PROFILE_QUERIES, Profiler
from app.services.vector_store import IndexDocument, SemanticIndex
from tests.conftest import (
    PROFILE,
    FakeEmbedder,
    FakeLLM,
    MemoryDocumentStore,
    make_critiques,
    make_directions,
    make_gaps,
    make_papers,
)


def _profile() -> ProjectProfile:
    return ProjectProfile.model_validate(PROFILE)


def _papers(count: int = 5):
    return [ScoutedPaper.model_validate(p) for p in make_papers(count)]


def _gaps(count: int = 3):
    return [Gap.model_validate(g) for g in make_gaps(count)]


def _directions(count: int = 4):
    return [ProposedDirection.model_validate(d) for d in make_directions(count)]


def _llm_for(stage_cls, reply: str) -> FakeLLM:
    return FakeLLM({stage_cls.system_prompt: reply})


# ---------------------------------------------------------------------------
# Profiler
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_profiler_builds_profile_from_summaries_and_excerpts():
    store = MemoryDocumentStore(title="X and Y", description="Does X help Y?")
    store.add_project("p1")
    store.add_document("p1", "d1", title="Study")
    store.summaries["d1"] = "X improves Y by 10%."

    embedder = FakeEmbedder()
    index = SemanticIndex(embedder)
    await index.upsert("p1", [IndexDocument(id="d1", text="Study of X improves Y by 10%.")])

    llm = FakeLLM()
    profile = await Profiler(llm, index, store).run("p1")

    assert profile.research_area == PROFILE["researchArea"]
    assert profile.key_findings == PROFILE["keyFindings"]

    system, prompt, temperature = llm.calls[0]
    assert system == Profiler.system_prompt
    assert temperature == 0.3
    assert "Project Title: X and Y" in prompt
    assert "Project Description: Does X help Y?" in prompt
    assert "- Study: X improves Y by 10%." in prompt
    # The single chunk comes back for every query but appears once
    assert prompt.count("Study of X improves Y by 10%.") == 1
    assert len(embedder.embed_calls) == len(PROFILE_QUERIES)


@pytest.mark.asyncio
async def test_profiler_uses_placeholders_for_missing_text():
    store = MemoryDocumentStore()
    store.add_project("p1")
    store.add_document("p1", "d1", title="Draft")

    llm = FakeLLM()
    await Profiler(llm, SemanticIndex(FakeEmbedder()), store).run("p1")

    prompt = llm.calls[0][1]
    assert "Project Description: No description" in prompt
    assert "- Draft: No summary available" in prompt


class _OneHotEmbedder:
    """Maps query *i* and documents ``excerpt-i``/``excerpt-(i+5)`` onto the same axis."""

    def _vector(self, text):
        if text in PROFILE_QUERIES:
            axis = PROFILE_QUERIES.index(text)
        else:
            axis = int(text.rsplit("-", 1)[1]) % len(PROFILE_QUERIES)
        vec = [0.0] * len(PROFILE_QUERIES)
        vec[axis] = 1.0
        return vec

    async def embed(self, text):
        return self._vector(text)

    async def embed_batch(self, texts):
        return [self._vector(t) for t in texts]


@pytest.mark.asyncio
async def test_profiler_caps_excerpts_at_five():
    store = MemoryDocumentStore()
    store.add_project("p1")
    index = SemanticIndex(_OneHotEmbedder())
    for i in range(8):
        store.add_document("p1", f"d{i}")
        await index.upsert("p1", [IndexDocument(id=f"d{i}", text=f"excerpt-{i}")])

    llm = FakeLLM()
    await Profiler(llm, index, store).run("p1")

    excerpt_section = llm.calls[0][1].split("Relevant Document Excerpts:\n", 1)[1]
    # The first two queries already yield four excerpts, the third fills the cap
    assert excerpt_section.count("excerpt-") == 5
    assert excerpt_section.index("excerpt-0") < excerpt_section.index("excerpt-1")


@pytest.mark.asyncio
async def test_profiler_without_documents_raises_before_generation():
    store = MemoryDocumentStore()
    store.add_project("p1")
    llm = FakeLLM()

    with pytest.raises(NoDocuments):
        await Profiler(llm, SemanticIndex(FakeEmbedder()), store).run("p1")
    assert llm.calls == []


@pytest.mark.asyncio
async def test_profiler_unknown_project():
    llm = FakeLLM()
    with pytest.raises(ProjectNotFound):
        await Profiler(llm, SemanticIndex(FakeEmbedder()), MemoryDocumentStore()).run("nope")
    assert llm.calls == []


# ---------------------------------------------------------------------------
# Shared reply handling
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_reply_in_code_fences_is_accepted():
    reply = "```json\n" + json.dumps({"scoutedPapers": make_papers(5)}) + "\n```"
    papers = await LiteratureScout(_llm_for(LiteratureScout, reply)).run(_profile())
    assert [p.title for p in papers] == [f"Paper {i}" for i in range(1, 6)]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "reply",
    ["not json at all", "", "[1, 2, 3]", '{"scoutedPapers": [{"title": "only a title"}]}'],
)
async def test_malformed_reply_is_a_contract_violation(reply: str):
    with pytest.raises(GenerationContractViolation) as exc_info:
        await LiteratureScout(_llm_for(LiteratureScout, reply)).run(_profile())
    assert exc_info.value.stage == "scout"


@pytest.mark.asyncio
async def test_null_profile_lists_read_as_empty():
    reply = json.dumps({"researchArea": "Area", "goals": None, "methods": None})
    store = MemoryDocumentStore()
    store.add_project("p1")
    store.add_document("p1", "d1")

    profile = await Profiler(
        _llm_for(Profiler, reply), SemanticIndex(FakeEmbedder()), store
    ).run("p1")

    assert profile.goals == []
    assert profile.methods == []
    assert profile.open_questions == []


# ---------------------------------------------------------------------------
# Literature Scout
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_scout_prompt_and_count():
    llm = FakeLLM()
    papers = await LiteratureScout(llm).run(_profile())

    assert len(papers) == 5
    system, prompt, temperature = llm.calls[0]
    assert temperature == 0.5
    assert "Research Area: Effect of X on Y" in prompt
    assert "Generate 5 relevant research papers" in prompt


@pytest.mark.asyncio
async def test_scout_honours_requested_paper_count():
    reply = json.dumps({"scoutedPapers": make_papers(3)})
    papers = await LiteratureScout(_llm_for(LiteratureScout, reply)).run(_profile(), 3)
    assert len(papers) == 3


@pytest.mark.asyncio
async def test_scout_wrong_paper_count_is_rejected():
    reply = json.dumps({"scoutedPapers": make_papers(4)})
    with pytest.raises(GenerationContractViolation, match="expected 5 papers, got 4"):
        await LiteratureScout(_llm_for(LiteratureScout, reply)).run(_profile())


# ---------------------------------------------------------------------------
# Gap Finder
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_gap_finder_renders_papers_in_order():
    llm = FakeLLM()
    gaps = await GapFinder(llm).run(_profile(), _papers())

    assert len(gaps) == 3
    prompt = llm.calls[0][1]
    assert llm.calls[0][2] == 0.4
    assert prompt.index("Paper 1: Paper 1") < prompt.index("Paper 5: Paper 5")
    assert "\n---\n" in prompt
    assert "Known Limitations: Single site" in prompt


@pytest.mark.asyncio
@pytest.mark.parametrize("count", [2, 6])
async def test_gap_finder_rejects_out_of_range_counts(count: int):
    reply = json.dumps({"gaps": make_gaps(count)})
    with pytest.raises(GenerationContractViolation) as exc_info:
        await GapFinder(_llm_for(GapFinder, reply)).run(_profile(), _papers())
    assert exc_info.value.stage == "gap_find"


@pytest.mark.asyncio
async def test_gap_without_refs_gets_empty_list():
    gaps = make_gaps(3)
    gaps[0]["supportingRefs"] = None
    del gaps[1]["supportingRefs"]
    result = await GapFinder(_llm_for(GapFinder, json.dumps({"gaps": gaps}))).run(
        _profile(), _papers()
    )
    assert result[0].supporting_refs == []
    assert result[1].supporting_refs == []


# ---------------------------------------------------------------------------
# Direction Generator
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_direction_generator_parses_ratings():
    llm = FakeLLM()
    directions = await DirectionGenerator(llm).run(_gaps())

    assert len(directions) == 4
    assert directions[0].feasibility is Rating.HIGH
    assert directions[1].impact is Rating.LOW
    assert llm.calls[0][2] == 0.5
    assert "Gap 3: Gap 3" in llm.calls[0][1]


@pytest.mark.asyncio
async def test_direction_generator_rejects_unknown_rating():
    directions = make_directions(2)
    directions[0]["feasibility"] = "very high"
    reply = json.dumps({"directions": directions})
    with pytest.raises(GenerationContractViolation):
        await DirectionGenerator(_llm_for(DirectionGenerator, reply)).run(_gaps())


@pytest.mark.asyncio
@pytest.mark.parametrize("count", [0, 7])
async def test_direction_generator_count_bounds(count: int):
    reply = json.dumps({"directions": make_directions(count)})
    with pytest.raises(GenerationContractViolation) as exc_info:
        await DirectionGenerator(_llm_for(DirectionGenerator, reply)).run(_gaps(3))
    assert exc_info.value.stage == "direct"


# ---------------------------------------------------------------------------
# Critic
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_critic_keeps_direction_fields_and_order():
    directions = _directions(4)
    llm = FakeLLM()

    criticized = await Critic(llm).run(directions)

    assert llm.calls[0][2] == 0.4
    assert [c.title for c in criticized] == [d.title for d in directions]
    for original, reviewed in zip(directions, criticized):
        assert reviewed.hypothesis == original.hypothesis
        assert reviewed.proposed_experiments == original.proposed_experiments
        assert reviewed.feasibility == original.feasibility
    assert criticized[2].pi_comment == "Comment on direction 3."


@pytest.mark.asyncio
async def test_critic_ignores_direction_fields_in_reply():
    critiques = make_critiques(1)
    critiques[0]["title"] = "Renamed by the model"
    reply = json.dumps({"criticizedDirections": critiques})

    criticized = await Critic(_llm_for(Critic, reply)).run(_directions(1))

    assert criticized[0].title == "Direction 1"


@pytest.mark.asyncio
async def test_critic_requires_one_critique_per_direction():
    reply = json.dumps({"criticizedDirections": make_critiques(3)})
    with pytest.raises(GenerationContractViolation, match="expected 4 critiques, got 3"):
        await Critic(_llm_for(Critic, reply)).run(_directions(4))


@pytest.mark.asyncio
async def test_scout_explicit_zero_is_not_replaced_by_default():
    llm = _llm_for(LiteratureScout, json.dumps({"scoutedPapers": []}))

    papers = await LiteratureScout(llm).run(_profile(), 0)

    assert papers == []
    assert "Generate 0 relevant research papers" in llm.calls[0][1]
