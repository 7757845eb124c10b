"""
Pydantic schemas for request/response validation.

Field names are snake_case in Python and camelCase on the wire.
"""
from pydantic import BaseModel, Field, ConfigDict, field_validator
from pydantic.alias_generators import to_camel
from typing import Optional, List, Dict, Any
from datetime import datetime
from enum import Enum

from app.models.analysis import AnalysisResult


class ApiModel(BaseModel):
    """Base schema: camelCase aliases, readable from ORM objects."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# Enums (matching database enums)
class CommentTargetTypeSchema(str, Enum):
    """Comment targets for API requests and responses."""

    PROFILE = "profile"
    PAPER = "paper"
    GAP = "gap"
    DIRECTION = "direction"


# User Schemas
class LoginRequest(ApiModel):
    """Schema for the login (find-or-create) request."""

    email: str = Field(..., min_length=3, max_length=255, pattern=r"^[^@\s]+@[^@\s]+$")


class UserResponse(ApiModel):
    id: str
    name: Optional[str] = None
    email: str


# Project Schemas
class ProjectCreate(ApiModel):
    """Schema for creating a new project."""

    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None


class ProjectResponse(ApiModel):
    """Schema for project responses."""

    id: str
    user_id: str
    title: str
    description: Optional[str] = None
    created_at: datetime
    updated_at: datetime


# Document Schemas
class DocumentResponse(ApiModel):
    """Schema for document responses.  ``summary`` is null until ingestion finishes."""

    id: str
    project_id: str
    title: str
    file_path: str
    original_file_name: str
    summary: Optional[str] = None
    created_at: datetime


class ProjectDetailResponse(ProjectResponse):
    """Project with its documents, newest first."""

    documents: List[DocumentResponse] = []


# Analysis Schemas
class AnalysisPreview(ApiModel):
    research_area: str


class AnalysisSummaryResponse(ApiModel):
    """One row of a project's analysis history."""

    id: str
    created_at: datetime
    preview: AnalysisPreview


class AnalysisRunResponse(AnalysisResult):
    """Result of POST /projects/{id}/analyze: the pipeline output plus its stored id."""

    id: str
    project_id: str
    created_at: datetime


# Comment Schemas
class CommentCreate(ApiModel):
    """Schema for creating a comment on an analysis item."""

    project_id: str = Field(..., min_length=1)
    analysis_id: Optional[str] = None
    target_type: CommentTargetTypeSchema
    target_id: str = Field(..., min_length=1)
    content: str = Field(..., min_length=1)


class CommentResponse(ApiModel):
    id: str
    project_id: str
    analysis_id: Optional[str] = None
    user_id: str
    target_type: CommentTargetTypeSchema
    target_id: str
    content: str
    created_at: datetime

    @field_validator("target_type", mode="before")
    @classmethod
    def _enum_value(cls, value: Any) -> Any:
        return value.value if isinstance(value, Enum) else value


class AnalysisDetailResponse(AnalysisRunResponse):
    """Stored analysis with its comments grouped by ``targetType:targetId``."""

    comments_by_target: Dict[str, List[CommentResponse]] = {}


# Health Schemas
class HealthCheckResponse(ApiModel):
    """Schema for health check response."""

    status: str
    database: str
    provider: str
    timestamp: datetime
    details: Optional[Dict[str, Any]] = None
