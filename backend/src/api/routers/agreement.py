"""User agreement endpoints: status check and acceptance."""
from fastapi import APIRouter, Depends

from api.dependencies import (
    get_agreement_store,
    get_current_user_without_agreement,
    get_optional_user,
    get_settings,
)
from core.config import Settings
from models.user import User
from schemas.agreement import AcceptanceResponse, AgreementStatusResponse
from services import agreement_service
from services.agreement_store import AgreementStore
from services.reacceptance import from_epoch

router = APIRouter(prefix="/agreement", tags=["agreement"])


@router.get("/status", response_model=AgreementStatusResponse)
async def check_agreement_status(
    current_user: User | None = Depends(get_optional_user),
    store: AgreementStore = Depends(get_agreement_store),
    settings: Settings = Depends(get_settings),
) -> AgreementStatusResponse:
    """
    Check if the user needs to accept (or re-accept) the user agreement.

    Returns:
        - must_accept=True with agreement_text if the user never accepted, the
          agreement changed since, or the reaccept window has expired
        - must_accept=False for anonymous users, an empty agreement, or a
          current acceptance
    """
    agreement_status = await agreement_service.get_agreement_status(
        store,
        current_user.id if current_user else None,
        settings.days_to_reaccept,
    )
    return AgreementStatusResponse.model_validate(agreement_status)


@router.post("/accept", response_model=AcceptanceResponse)
async def accept_agreement(
    current_user: User = Depends(get_current_user_without_agreement),
    store: AgreementStore = Depends(get_agreement_store),
) -> AcceptanceResponse:
    """
    Record that the current user accepted the user agreement now.

    The user is always taken from the verified token; accepting on behalf of
    another user is not possible.
    """
    accepted_at = await agreement_service.accept_agreement(store, current_user.id)
    return AcceptanceResponse(
        user_id=current_user.id,
        accepted_at=accepted_at,
        accepted_at_iso=from_epoch(accepted_at),
    )
