"""
Authentication dependencies for FastAPI routes.

Identity comes from the X-User-Email header set by the frontend.  There are
no passwords: the first request carrying an unknown email creates the user.
"""
from __future__ import annotations

import logging
from typing import Optional

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.models.database_models import Project, User

logger = logging.getLogger(__name__)


def default_name(email: str) -> str:
    """Display name for a new user: the local part of the email."""
    return email.split("@", 1)[0]


async def find_or_create_user(db: AsyncSession, email: str) -> User:
    """Return the user with *email*, inserting it first if needed."""
    result = await db.execute(select(User).where(User.email == email))
    user = result.scalar_one_or_none()

    if user is None:
        user = User(email=email, name=default_name(email))
        db.add(user)
        await db.flush()
        logger.info("Created new user: id=%s email=%s", user.id, user.email)

    return user


async def get_current_email(
    x_user_email: Optional[str] = Header(None, alias="X-User-Email"),
) -> str:
    """Extract the caller's email from the request header. Raises 401 if missing."""
    email = (x_user_email or "").strip()
    if not email:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized: missing X-User-Email header.",
        )
    return email


async def get_or_create_user(
    email: str = Depends(get_current_email),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Ensure the user exists in the local users table. Creates if needed."""
    return await find_or_create_user(db, email)


async def get_existing_user(
    email: str = Depends(get_current_email),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Look the caller up without creating it. Raises 404 for an unknown email."""
    result = await db.execute(select(User).where(User.email == email))
    user = result.scalar_one_or_none()

    if user is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found.",
        )
    return user


async def get_authorized_project(
    project_id: str,
    user: User = Depends(get_existing_user),
    db: AsyncSession = Depends(get_db),
) -> Project:
    """
    Verify that the given project belongs to the current user.
    Returns the Project ORM object or raises 404.
    """
    result = await db.execute(
        select(Project).where(
            Project.id == project_id,
            Project.user_id == user.id,
        )
    )
    project = result.scalar_one_or_none()

    if project is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Project {project_id} not found.",
        )

    return project
