"""
Shared fixtures for ResearchNavigator backend tests.

API tests run against a throwaway SQLite database (aiosqlite) created and
dropped around every test.  Providers are replaced by deterministic fakes:
``FakeLLM`` answers each generation stage with canned JSON keyed by the
stage's system prompt, and ``FakeEmbedder`` maps text to a bag-of-words
vector so that identical text scores 1.0.
"""
from __future__ import annotations

import hashlib
import json
import os
import re
import tempfile
from typing import Any, AsyncGenerator, Dict, List, Optional, Tuple, Union

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

# Override settings *before* any app module is imported, so that
# settings.DATABASE_URL and the global engine point at the test DB.
if "NAVIGATOR_TEST_DIR" not in os.environ:
    os.environ["NAVIGATOR_TEST_DIR"] = tempfile.mkdtemp(prefix="navigator-test-")
_TEST_DIR = os.environ["NAVIGATOR_TEST_DIR"]
os.environ["DATABASE_URL"] = os.environ.get(
    "TEST_DATABASE_URL",
    f"sqlite+aiosqlite:///{os.path.join(_TEST_DIR, 'navigator_test.db')}",
)
os.environ["UPLOAD_DIR"] = os.path.join(_TEST_DIR, "uploads")
os.environ["OPENAI_API_KEY"] = ""

from app.database import AsyncSessionLocal, Base, engine  # noqa: E402
from app.main import app  # noqa: E402
from app.services.container import Services, build_services  # noqa: E402
from app.services.critic import Critic  # noqa: E402
from app.services.direction_generator import DirectionGenerator  # noqa: E402
from app.services.gap_finder import GapFinder  # noqa: E402
from app.services.literature_scout import LiteratureScout  # noqa: E402
from app.services.profiler import Profiler  # noqa: E402
from app.services.repository import DocumentRecord, ProjectRecord  # noqa: E402


# ---------------------------------------------------------------------------
# Canned stage replies
# ---------------------------------------------------------------------------

PROFILE = {
    "researchArea": "Effect of X on Y",
    "goals": ["Quantify how X changes Y"],
    "methods": ["Controlled study"],
    "keyFindings": ["X improves Y by 10%"],
    "knownLimitations": ["Single site"],
    "openQuestions": ["Does the effect persist?"],
}


def make_papers(count: int = 5) -> List[Dict[str, str]]:
    return [
        {
            "title": f"Paper {i}",
            "summary": f"Summary of paper {i}.",
            "relevanceReason": f"Studies X in context {i}.",
            "limitations": f"Small sample in study {i}.",
        }
        for i in range(1, count + 1)
    ]


def make_gaps(count: int = 3) -> List[Dict[str, Any]]:
    return [
        {
            "description": f"Gap {i}",
            "whyItMatters": f"Gap {i} blocks progress.",
            "whatSeemsMissing": f"Data for gap {i}.",
            "supportingRefs": [f"Paper {i}"],
        }
        for i in range(1, count + 1)
    ]


def make_directions(count: int = 4) -> List[Dict[str, Any]]:
    return [
        {
            "title": f"Direction {i}",
            "hypothesis": f"Hypothesis {i}.",
            "proposedExperiments": [f"Experiment {i}a", f"Experiment {i}b"],
            "requiredData": [f"Dataset {i}"],
            "feasibility": "high" if i % 2 else "medium",
            "impact": "medium" if i % 2 else "low",
        }
        for i in range(1, count + 1)
    ]


def make_critiques(count: int = 4) -> List[Dict[str, Any]]:
    return [
        {
            "strengths": [f"Strength {i}"],
            "weaknesses": [f"Weakness {i}"],
            "risks": [f"Risk {i}"],
            "suggestedImprovements": [f"Improvement {i}"],
            "piComment": f"Comment on direction {i}.",
        }
        for i in range(1, count + 1)
    ]


def stage_replies(
    papers: int = 5, gaps: int = 3, directions: int = 4
) -> Dict[str, str]:
    """Valid replies for a full run, keyed by stage system prompt."""
    return {
        Profiler.system_prompt: json.dumps(PROFILE),
        LiteratureScout.system_prompt: json.dumps({"scoutedPapers": make_papers(papers)}),
        GapFinder.system_prompt: json.dumps({"gaps": make_gaps(gaps)}),
        DirectionGenerator.system_prompt: json.dumps({"directions": make_directions(directions)}),
        Critic.system_prompt: json.dumps({"criticizedDirections": make_critiques(directions)}),
    }


# ---------------------------------------------------------------------------
# Fake providers
# ---------------------------------------------------------------------------

Reply = Union[str, Exception]


class FakeLLM:
    """Text generator with canned replies and a call log."""

    def __init__(
        self,
        replies: Optional[Dict[str, Reply]] = None,
        summary: Reply = "Study of X shows a 10% improvement in Y.",
    ) -> None:
        self.replies: Dict[str, Reply] = dict(replies if replies is not None else stage_replies())
        self.summary = summary
        self.calls: List[Tuple[str, str, float]] = []
        self.summary_calls: List[Tuple[str, str, float, Optional[int]]] = []

    async def generate_structured_text(
        self, system_prompt: str, user_prompt: str, temperature: float
    ) -> str:
        self.calls.append((system_prompt, user_prompt, temperature))
        reply = self.replies[system_prompt]
        if isinstance(reply, Exception):
            raise reply
        return reply

    async def generate_text(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float,
        max_tokens: Optional[int] = None,
    ) -> str:
        self.summary_calls.append((system_prompt, user_prompt, temperature, max_tokens))
        if isinstance(self.summary, Exception):
            raise self.summary
        return self.summary

    def calls_for(self, stage: type) -> int:
        return sum(1 for system, _, _ in self.calls if system == stage.system_prompt)


class FakeEmbedder:
    """Deterministic bag-of-words embedder."""

    def __init__(self, dim: int = 32, fail_with: Optional[Exception] = None) -> None:
        self.dim = dim
        self.fail_with = fail_with
        self.embed_calls: List[str] = []
        self.batch_calls: List[List[str]] = []

    def vector(self, text: str) -> List[float]:
        vec = [0.0] * self.dim
        for word in re.findall(r"\w+", text.lower()):
            bucket = int(hashlib.md5(word.encode("utf-8")).hexdigest(), 16) % self.dim
            vec[bucket] += 1.0
        return vec

    async def embed(self, text: str) -> List[float]:
        self.embed_calls.append(text)
        if self.fail_with is not None:
            raise self.fail_with
        return self.vector(text)

    async def embed_batch(self, texts: List[str]) -> List[List[float]]:
        self.batch_calls.append(list(texts))
        if self.fail_with is not None:
            raise self.fail_with
        return [self.vector(t) for t in texts]

    @property
    def total_calls(self) -> int:
        return len(self.embed_calls) + len(self.batch_calls)


class MemoryDocumentStore:
    """In-memory document store for core tests that do not need a database."""

    def __init__(self, title: str = "Project X", description: Optional[str] = None) -> None:
        self.projects: Dict[str, ProjectRecord] = {}
        self.documents: Dict[str, List[DocumentRecord]] = {}
        self.summaries: Dict[str, Optional[str]] = {}
        self.summary_writes: List[Tuple[str, Optional[str]]] = []
        self._title = title
        self._description = description

    def add_project(self, project_id: str) -> None:
        self.projects[project_id] = ProjectRecord(
            id=project_id, title=self._title, description=self._description
        )
        self.documents.setdefault(project_id, [])

    def add_document(self, project_id: str, document_id: str, title: str = "Doc") -> None:
        self.documents.setdefault(project_id, []).append(
            DocumentRecord(id=document_id, title=title, summary=None)
        )

    async def get_project(self, project_id: str) -> Optional[ProjectRecord]:
        return self.projects.get(project_id)

    async def list_documents(self, project_id: str) -> List[DocumentRecord]:
        return [
            DocumentRecord(id=d.id, title=d.title, summary=self.summaries.get(d.id))
            for d in self.documents.get(project_id, [])
        ]

    async def save_summary(self, document_id: str, summary: Optional[str]) -> None:
        self.summary_writes.append((document_id, summary))
        self.summaries[document_id] = summary


# ---------------------------------------------------------------------------
# Per-test fixtures
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Create all tables, provide a session for direct inspection, and drop the
    tables afterwards so each test starts with a clean slate.
    """
    from app.models import database_models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with AsyncSessionLocal() as session:
        yield session

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
def fake_llm() -> FakeLLM:
    return FakeLLM()


@pytest.fixture
def fake_embedder() -> FakeEmbedder:
    return FakeEmbedder()


@pytest_asyncio.fixture
async def services(
    fake_llm: FakeLLM, fake_embedder: FakeEmbedder
) -> AsyncGenerator[Services, None]:
    """A service container wired to the fakes and the test database."""
    container = build_services(AsyncSessionLocal, llm=fake_llm, embedder=fake_embedder)
    yield container
    await container.close()


@pytest_asyncio.fixture
async def client(
    db_session: AsyncSession, services: Services
) -> AsyncGenerator[AsyncClient, None]:
    """httpx AsyncClient wired to the FastAPI app with the fake service container."""
    original = app.state.services
    app.state.services = services

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    await services.tasks.wait_all()
    app.state.services = original


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

AUTH_HEADERS = {"X-User-Email": "test1@example.com"}

AUTH_HEADERS_USER2 = {"X-User-Email": "test2@example.com"}


async def create_project(
    client: AsyncClient, title: str = "Test Project", headers: Optional[Dict[str, str]] = None
) -> str:
    resp = await client.post(
        "/api/projects", json={"title": title}, headers=headers or AUTH_HEADERS
    )
    assert resp.status_code == 201
    return resp.json()["id"]


async def upload_text(
    client: AsyncClient,
    project_id: str,
    text: str = "Study of X improves Y by 10%.",
    filename: str = "study.txt",
    headers: Optional[Dict[str, str]] = None,
):
    return await client.post(
        "/api/documents/upload",
        headers=headers or AUTH_HEADERS,
        data={"projectId": project_id},
        files={"file": (filename, text.encode("utf-8"), "text/plain")},
    )
