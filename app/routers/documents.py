"""
Document upload endpoint.

POST /upload  — save a PDF or TXT for a project; summary and indexing run in
                the background after the response is sent.
"""
from __future__ import annotations

import logging
import os
import time
from pathlib import Path

import aiofiles
from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.database import get_db
from app.dependencies.auth import get_existing_user
from app.dependencies.services import get_services
from app.models.database_models import Document, Project, User
from app.models.schemas import DocumentResponse
from app.services.container import Services
from app.utils.helpers import safe_remove, title_from_filename

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/upload",
    response_model=DocumentResponse,
    status_code=status.HTTP_201_CREATED,
)
async def upload_document(
    file: UploadFile = File(...),
    project_id: str = Form(..., alias="projectId"),
    user: User = Depends(get_existing_user),
    db: AsyncSession = Depends(get_db),
    services: Services = Depends(get_services),
) -> DocumentResponse:
    """
    Store an uploaded document and queue it for ingestion.

    - Accepted types: SUPPORTED_FILE_TYPES (``.pdf``, ``.txt``)
    - Max file size: 50 MB (configurable via MAX_FILE_SIZE)
    - The response returns before the summary exists; ``summary`` is null
      until background ingestion stores it
    """
    if not file.filename:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Upload must include a filename.",
        )

    file_ext = Path(file.filename).suffix.lower()
    if file_ext not in settings.SUPPORTED_FILE_TYPES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=(
                f"Unsupported file type '{file_ext}'. "
                f"Accepted: {', '.join(settings.SUPPORTED_FILE_TYPES)}"
            ),
        )

    result = await db.execute(
        select(Project).where(Project.id == project_id, Project.user_id == user.id)
    )
    project = result.scalar_one_or_none()
    if project is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Project {project_id} not found.",
        )

    # One directory per project; timestamp prefix prevents collisions
    upload_dir = os.path.join(settings.UPLOAD_DIR, project.id)
    os.makedirs(upload_dir, exist_ok=True)
    original_name = os.path.basename(file.filename)
    file_path = os.path.join(upload_dir, f"{int(time.time() * 1000)}-{original_name}")
    file_size = 0

    # Stream to disk while enforcing the size limit
    async with aiofiles.open(file_path, "wb") as out:
        while True:
            chunk = await file.read(1024 * 1024)   # 1 MB slices
            if not chunk:
                break
            file_size += len(chunk)
            if file_size > settings.MAX_FILE_SIZE:
                # Clean up partial file before raising
                await out.close()
                safe_remove(file_path)
                raise HTTPException(
                    status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                    detail=(
                        f"File exceeds the {settings.MAX_FILE_SIZE // (1024 * 1024)} MB "
                        "size limit."
                    ),
                )
            await out.write(chunk)

    logger.info("Saved %r → %s (%s bytes)", file.filename, file_path, f"{file_size:,}")

    document = Document(
        project_id=project.id,
        title=title_from_filename(original_name),
        file_path=file_path,
        original_file_name=original_name,
    )
    db.add(document)
    # Committed before scheduling: the worker updates the row from its own session
    await db.commit()

    services.ingestion.schedule(document.id, project.id, file_path)
    logger.info("Document %r stored as id=%s; ingestion queued", original_name, document.id)

    return DocumentResponse.model_validate(document)
