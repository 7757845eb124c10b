"""
Stored analysis retrieval.

GET /api/analyses/{analysis_id} — full analysis plus its comments grouped by
                                  ``targetType:targetId``.
"""
import logging
from collections import defaultdict
from typing import Dict, List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.database import get_db
from app.dependencies.auth import get_existing_user
from app.models.analysis import AnalysisResult
from app.models.database_models import Analysis, Comment, User
from app.models.schemas import AnalysisDetailResponse, CommentResponse

logger = logging.getLogger(__name__)

router = APIRouter()


def group_comments(comments: List[Comment]) -> Dict[str, List[CommentResponse]]:
    """Group comments by ``"{target_type}:{target_id}"``, keeping their order."""
    grouped: Dict[str, List[CommentResponse]] = defaultdict(list)
    for comment in comments:
        key = f"{comment.target_type.value}:{comment.target_id}"
        grouped[key].append(CommentResponse.model_validate(comment))
    return dict(grouped)


@router.get("/{analysis_id}", response_model=AnalysisDetailResponse)
async def get_analysis(
    analysis_id: str,
    user: User = Depends(get_existing_user),
    db: AsyncSession = Depends(get_db),
) -> AnalysisDetailResponse:
    """Return one analysis.  403 when it belongs to another user's project."""
    result = await db.execute(
        select(Analysis)
        .options(selectinload(Analysis.project), selectinload(Analysis.comments))
        .where(Analysis.id == analysis_id)
    )
    analysis = result.scalar_one_or_none()
    if analysis is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Analysis {analysis_id} not found.",
        )

    if analysis.project.user_id != user.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Unauthorized")

    stored = AnalysisResult.from_storage(
        {
            "project_profile": analysis.project_profile,
            "scouted_papers": analysis.scouted_papers,
            "gaps": analysis.gaps,
            "directions": analysis.directions,
            "criticized_directions": analysis.criticized_directions,
        }
    )
    comments = sorted(analysis.comments, key=lambda c: c.created_at)

    return AnalysisDetailResponse(
        id=analysis.id,
        project_id=analysis.project_id,
        created_at=analysis.created_at,
        comments_by_target=group_comments(comments),
        **dict(stored),
    )
