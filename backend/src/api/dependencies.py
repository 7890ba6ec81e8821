"""FastAPI dependencies for injection."""
from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from core.auth import (
    get_current_user,
    get_current_user_without_agreement,
    get_optional_user,
)
from core.config import Settings, get_settings
from db.session import get_async_session
from services.agreement_store import AgreementStore


def get_agreement_store(
    db: AsyncSession = Depends(get_async_session),
    settings: Settings = Depends(get_settings),
) -> AgreementStore:
    """Agreement store bound to the request's session."""
    return AgreementStore.from_settings(db, settings)


__all__ = [
    "get_agreement_store",
    "get_async_session",
    "get_current_user",
    "get_current_user_without_agreement",
    "get_optional_user",
    "get_settings",
]
