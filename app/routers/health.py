"""
Health check endpoint.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import text
from datetime import datetime
import logging

from app.database import get_db
from app.dependencies.services import get_services
from app.models.schemas import HealthCheckResponse
from app.services.container import Services

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/", response_model=HealthCheckResponse)
async def health_check(
    db: AsyncSession = Depends(get_db),
    services: Services = Depends(get_services),
):
    """
    Health check endpoint to verify system status.

    Returns:
        HealthCheckResponse with status of the database and the LLM provider
    """
    # Check database connection
    db_status = "ok"
    try:
        await db.execute(text("SELECT 1"))
    except Exception as e:
        logger.error("Database health check failed: %s", e)
        db_status = "error"

    # Check provider connection
    provider_status = "ok"
    check = getattr(services.llm, "check_health", None)
    if check is not None:
        try:
            if not await check():
                provider_status = "error"
        except Exception as e:
            logger.error("Provider health check failed: %s", e)
            provider_status = "error"

    # Overall status
    overall_status = "healthy" if db_status == "ok" and provider_status == "ok" else "degraded"

    return HealthCheckResponse(
        status=overall_status,
        database=db_status,
        provider=provider_status,
        timestamp=datetime.utcnow(),
    )
