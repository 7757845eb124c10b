"""
Comment creation.

POST /api/comments — attach a comment to a profile, paper, gap or direction
                     of a project (optionally of a specific analysis).
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies.auth import get_existing_user
from app.models.database_models import Analysis, Comment, CommentTargetType, Project, User
from app.models.schemas import CommentCreate, CommentResponse

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("", response_model=CommentResponse, status_code=status.HTTP_201_CREATED)
async def create_comment(
    body: CommentCreate,
    user: User = Depends(get_existing_user),
    db: AsyncSession = Depends(get_db),
) -> CommentResponse:
    """Create a comment.  The project must belong to the caller."""
    content = body.content.strip()
    if not content:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Comment content must not be blank.",
        )

    project = (
        await db.execute(
            select(Project).where(Project.id == body.project_id, Project.user_id == user.id)
        )
    ).scalar_one_or_none()
    if project is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Project {body.project_id} not found.",
        )

    if body.analysis_id:
        analysis = (
            await db.execute(
                select(Analysis.id).where(
                    Analysis.id == body.analysis_id,
                    Analysis.project_id == project.id,
                )
            )
        ).scalar_one_or_none()
        if analysis is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Analysis {body.analysis_id} not found.",
            )

    comment = Comment(
        project_id=project.id,
        analysis_id=body.analysis_id or None,
        user_id=user.id,
        target_type=CommentTargetType(body.target_type.value),
        target_id=body.target_id,
        content=content,
    )
    db.add(comment)
    await db.flush()

    logger.info(
        "Comment id=%s on %s:%s by user=%s",
        comment.id,
        comment.target_type.value,
        comment.target_id,
        user.id,
    )
    return CommentResponse.model_validate(comment)
