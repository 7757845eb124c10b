"""
Project management and analysis endpoints.

Route summary
-------------
POST   /api/projects                         — create project
GET    /api/projects                         — list user's projects
GET    /api/projects/{project_id}            — project detail with documents
DELETE /api/projects/{project_id}            — delete project (cascades)

POST   /api/projects/{project_id}/analyze    — run the analysis pipeline
GET    /api/projects/{project_id}/analyses   — analysis history with previews
"""
import json
import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.database import get_db
from app.dependencies.auth import get_authorized_project, get_or_create_user
from app.dependencies.services import get_services
from app.exceptions import NoDocuments, PipelineStageError
from app.models.database_models import Analysis, Document, Project, User
from app.models.schemas import (
    AnalysisPreview,
    AnalysisRunResponse,
    AnalysisSummaryResponse,
    ProjectCreate,
    ProjectDetailResponse,
    ProjectResponse,
)
from app.services.container import Services
from app.utils.helpers import safe_remove

logger = logging.getLogger(__name__)

router = APIRouter()

_NO_DOCUMENTS_DETAIL = "Project has no documents. Please upload documents first."


# ═══════════════════════════════════════════════════════════════════════════════
# PROJECT CRUD
# ═══════════════════════════════════════════════════════════════════════════════

@router.post("", response_model=ProjectResponse, status_code=status.HTTP_201_CREATED)
async def create_project(
    body: ProjectCreate,
    user: User = Depends(get_or_create_user),
    db: AsyncSession = Depends(get_db),
) -> ProjectResponse:
    """Create a new project for the authenticated user."""
    project = Project(
        title=body.title,
        description=body.description or None,
        user_id=user.id,
    )
    db.add(project)
    await db.flush()

    logger.info("Created project id=%s title=%r for user=%s", project.id, project.title, user.id)
    return ProjectResponse.model_validate(project)


@router.get("", response_model=List[ProjectResponse])
async def list_projects(
    user: User = Depends(get_or_create_user),
    db: AsyncSession = Depends(get_db),
) -> List[ProjectResponse]:
    """List all projects belonging to the authenticated user, most recently updated first."""
    result = await db.execute(
        select(Project)
        .where(Project.user_id == user.id)
        .order_by(Project.updated_at.desc())
    )
    return [ProjectResponse.model_validate(p) for p in result.scalars().all()]


@router.get("/{project_id}", response_model=ProjectDetailResponse)
async def get_project(
    project: Project = Depends(get_authorized_project),
    db: AsyncSession = Depends(get_db),
) -> ProjectDetailResponse:
    """Get project details including its documents, newest first."""
    result = await db.execute(
        select(Project)
        .options(selectinload(Project.documents))
        .where(Project.id == project.id)
        .execution_options(populate_existing=True)
    )
    return ProjectDetailResponse.model_validate(result.scalar_one())


@router.delete(
    "/{project_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_model=None,
)
async def delete_project(
    project: Project = Depends(get_authorized_project),
    db: AsyncSession = Depends(get_db),
    services: Services = Depends(get_services),
) -> None:
    """Delete a project and all its data (documents, analyses, comments, index)."""
    # Delete uploaded files from disk
    doc_result = await db.execute(
        select(Document.file_path).where(Document.project_id == project.id)
    )
    for (file_path,) in doc_result.all():
        safe_remove(file_path)

    services.index.clear(project.id)
    await db.delete(project)
    await db.flush()
    logger.info("Deleted project id=%s title=%r", project.id, project.title)


# ═══════════════════════════════════════════════════════════════════════════════
# ANALYSIS
# ═══════════════════════════════════════════════════════════════════════════════

@router.post("/{project_id}/analyze", response_model=AnalysisRunResponse)
async def analyze_project(
    project: Project = Depends(get_authorized_project),
    db: AsyncSession = Depends(get_db),
    services: Services = Depends(get_services),
) -> AnalysisRunResponse:
    """
    Run the five-stage analysis for the project and store the result.

    Returns 400 when the project has no documents.  A stage failure returns
    500 with a message naming the stage.
    """
    doc_count = (
        await db.execute(
            select(func.count(Document.id)).where(Document.project_id == project.id)
        )
    ).scalar() or 0
    if doc_count == 0:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=_NO_DOCUMENTS_DETAIL)

    # End the read transaction so no connection is held while the stages run
    await db.commit()

    try:
        result = await services.pipeline.run_full_analysis(project.id)
    except PipelineStageError as exc:
        if isinstance(exc.cause, NoDocuments):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST, detail=_NO_DOCUMENTS_DETAIL
            ) from exc
        raise

    analysis = Analysis(project_id=project.id, **result.to_storage())
    db.add(analysis)
    await db.flush()

    logger.info("Stored analysis id=%s for project id=%s", analysis.id, project.id)
    return AnalysisRunResponse(
        id=analysis.id,
        project_id=project.id,
        created_at=analysis.created_at,
        **dict(result),
    )


@router.get("/{project_id}/analyses", response_model=List[AnalysisSummaryResponse])
async def list_analyses(
    project: Project = Depends(get_authorized_project),
    db: AsyncSession = Depends(get_db),
) -> List[AnalysisSummaryResponse]:
    """List the project's analyses, newest first, with the research area as preview."""
    result = await db.execute(
        select(Analysis.id, Analysis.created_at, Analysis.project_profile)
        .where(Analysis.project_id == project.id)
        .order_by(Analysis.created_at.desc())
    )
    return [
        AnalysisSummaryResponse(
            id=row.id,
            created_at=row.created_at,
            preview=AnalysisPreview(
                research_area=json.loads(row.project_profile).get("researchArea", "")
            ),
        )
        for row in result.all()
    ]
