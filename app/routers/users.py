"""
User login endpoint.

There is no password: login finds the user by email or creates it.
"""
import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies.auth import find_or_create_user
from app.models.schemas import LoginRequest, UserResponse

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/login", response_model=UserResponse)
async def login(body: LoginRequest, db: AsyncSession = Depends(get_db)) -> UserResponse:
    """Return the user for ``email``, creating it on first login."""
    user = await find_or_create_user(db, body.email.strip())
    return UserResponse.model_validate(user)
