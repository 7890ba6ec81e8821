"""Service layer tying the agreement store to the reacceptance decision."""
import logging
from dataclasses import dataclass

from services.agreement_store import AgreementStore
from services.exceptions import StorageUnavailableError
from services.reacceptance import (
    EPOCH,
    Agreement,
    now_epoch,
    requires_acceptance,
)

logger = logging.getLogger(__name__)


@dataclass
class AgreementStatus:
    """Result of checking whether a user owes an acceptance."""

    must_accept: bool
    agreement_text: str | None = None
    agreement_last_modified_at: int = EPOCH
    user_accepted_at: int | None = None


async def _load_agreement(store: AgreementStore, now: int) -> Agreement:
    try:
        return await store.get_agreement()
    except StorageUnavailableError:
        logger.warning(
            "Could not read the user agreement page (%s:%s); treating it as modified now "
            "and showing the default text",
            store.namespace,
            store.title,
            exc_info=True,
        )
        # Modified "now" forces a prompt for every earlier acceptance
        return Agreement(text=store.default_text, last_modified_at=now)


async def _load_user_accepted_at(store: AgreementStore, user_id: int) -> int:
    try:
        return await store.get_user_accepted_at(user_id)
    except StorageUnavailableError:
        logger.warning(
            "Could not read the agreement acceptance for user %s; the "
            "user_agreement_acceptances table may be missing (run migrations). "
            "Treating the user as never having accepted.",
            user_id,
            exc_info=True,
        )
        return EPOCH


async def get_agreement_status(
    store: AgreementStore,
    user_id: int | None,
    reaccept_after_days: int | None,
    now: int | None = None,
) -> AgreementStatus:
    """
    Check whether the user must accept the agreement before continuing.

    Anonymous users (None or 0) are never prompted, and neither is anyone when the
    agreement text is empty. Storage faults never propagate: an unreadable acceptance
    counts as "never accepted" and an unreadable agreement page counts as modified
    now, so the agreement (or the configured default text) is shown again. The one
    case that still skips the prompt is an unreadable page with an empty default
    text, since there is nothing to show.

    The agreement text is only included when the user must accept.
    """
    if not user_id:
        return AgreementStatus(must_accept=False)

    if now is None:
        now = now_epoch()

    agreement = await _load_agreement(store, now)
    if not agreement.text:
        return AgreementStatus(
            must_accept=False,
            agreement_last_modified_at=agreement.last_modified_at,
        )

    user_accepted_at = await _load_user_accepted_at(store, user_id)

    must_accept = requires_acceptance(
        agreement,
        user_accepted_at,
        reaccept_after_days,
        now,
    )
    return AgreementStatus(
        must_accept=must_accept,
        agreement_text=agreement.text if must_accept else None,
        agreement_last_modified_at=agreement.last_modified_at,
        user_accepted_at=user_accepted_at,
    )


async def accept_agreement(
    store: AgreementStore,
    user_id: int,
    now: int | None = None,
) -> int:
    """
    Record that the user accepted the agreement now.

    The caller is responsible for user_id belonging to the authenticated user.
    Storage faults propagate so a failed accept is reported rather than lost.

    Returns:
        The recorded acceptance time in epoch seconds.
    """
    if not user_id or user_id < 0:
        raise ValueError("Anonymous users cannot accept the user agreement")

    accepted_at = now if now is not None else now_epoch()
    await store.record_user_accepted(user_id, accepted_at)
    logger.info("User %s accepted the user agreement at %s", user_id, accepted_at)
    return accepted_at
