"""Health check endpoints."""
import logging

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_agreement_store
from db.session import get_async_session
from services.agreement_store import AgreementStore
from services.exceptions import StorageUnavailableError


logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    database: str
    agreement_storage: str


@router.get("/health", response_model=HealthResponse)
async def health_check(
    db: AsyncSession = Depends(get_async_session),
    store: AgreementStore = Depends(get_agreement_store),
) -> HealthResponse:
    """
    Check application, database and acceptance table health.

    A missing acceptance table does not break page views (users are re-prompted),
    so it is reported as degraded here instead.
    """
    db_status = "healthy"
    try:
        await db.execute(text("SELECT 1"))
    except Exception:
        logger.exception("Database health check failed")
        db_status = "unhealthy"

    storage_status = "healthy"
    if db_status != "healthy":
        storage_status = "unknown"
    else:
        try:
            await store.get_user_accepted_at(0)
        except StorageUnavailableError:
            logger.warning("Agreement acceptance storage is unavailable", exc_info=True)
            storage_status = "unhealthy"

    healthy = db_status == "healthy" and storage_status == "healthy"
    return HealthResponse(
        status="healthy" if healthy else "degraded",
        database=db_status,
        agreement_storage=storage_status,
    )
