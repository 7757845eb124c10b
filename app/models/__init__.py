"""Database, pipeline and schema models for ResearchNavigator."""
from app.models.database_models import (
    User,
    Project,
    Document,
    Analysis,
    Comment,
    CommentTargetType,
)
from app.models.analysis import (
    ProjectProfile,
    ScoutedPaper,
    Gap,
    ProposedDirection,
    CriticizedDirection,
    AnalysisResult,
    Rating,
)
from app.models.schemas import (
    ProjectCreate,
    ProjectResponse,
    DocumentResponse,
    CommentCreate,
    CommentResponse,
    HealthCheckResponse,
)

__all__ = [
    # Database models
    "User",
    "Project",
    "Document",
    "Analysis",
    "Comment",
    "CommentTargetType",
    # Pipeline contracts
    "ProjectProfile",
    "ScoutedPaper",
    "Gap",
    "ProposedDirection",
    "CriticizedDirection",
    "AnalysisResult",
    "Rating",
    # Pydantic schemas
    "ProjectCreate",
    "ProjectResponse",
    "DocumentResponse",
    "CommentCreate",
    "CommentResponse",
    "HealthCheckResponse",
]
