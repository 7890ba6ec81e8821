"""Tests for the agreement service (status check and acceptance)."""
import logging
from datetime import UTC, datetime
from unittest.mock import AsyncMock

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from models.user import User
from services import agreement_service
from services.agreement_store import AgreementStore
from services.exceptions import StorageUnavailableError
from services.reacceptance import EPOCH, SECONDS_PER_DAY, Agreement
from tests.conftest import AGREEMENT_NAMESPACE, AGREEMENT_TITLE, add_agreement_page

AGREEMENT_EDITED = datetime(2024, 1, 1, tzinfo=UTC)
AGREEMENT_EDITED_TS = int(AGREEMENT_EDITED.timestamp())


@pytest.fixture
def store(db_session: AsyncSession) -> AgreementStore:
    """Store pointed at the default agreement page."""
    return AgreementStore(db_session, namespace=AGREEMENT_NAMESPACE, title=AGREEMENT_TITLE)


@pytest.fixture
async def agreement_page(db_session: AsyncSession) -> None:
    """Agreement page last edited on 2024-01-01."""
    await add_agreement_page(db_session, "Please be excellent.", AGREEMENT_EDITED)


def _failing_store(**overrides: object) -> AsyncMock:
    store = AsyncMock(spec=AgreementStore)
    store.namespace = AGREEMENT_NAMESPACE
    store.title = AGREEMENT_TITLE
    store.default_text = ""
    for name, value in overrides.items():
        setattr(store, name, value)
    return store


class TestGetAgreementStatus:
    """Tests for get_agreement_status."""

    @pytest.mark.usefixtures("agreement_page")
    @pytest.mark.parametrize("user_id", [None, 0])
    async def test__get_agreement_status__anonymous_never_prompted(
        self,
        store: AgreementStore,
        user_id: int | None,
    ) -> None:
        status = await agreement_service.get_agreement_status(store, user_id, 0)

        assert status.must_accept is False
        assert status.agreement_text is None
        assert status.user_accepted_at is None

    @pytest.mark.usefixtures("agreement_page")
    async def test__get_agreement_status__never_accepted_is_prompted_with_text(
        self,
        store: AgreementStore,
        test_user: User,
    ) -> None:
        status = await agreement_service.get_agreement_status(store, test_user.id, 0)

        assert status.must_accept is True
        assert status.agreement_text == "Please be excellent."
        assert status.agreement_last_modified_at == AGREEMENT_EDITED_TS
        assert status.user_accepted_at == EPOCH

    @pytest.mark.usefixtures("agreement_page")
    async def test__get_agreement_status__accepted_after_edit_not_prompted(
        self,
        store: AgreementStore,
        test_user: User,
    ) -> None:
        await store.record_user_accepted(test_user.id, AGREEMENT_EDITED_TS + 60)

        status = await agreement_service.get_agreement_status(store, test_user.id, 0)

        assert status.must_accept is False
        assert status.agreement_text is None
        assert status.user_accepted_at == AGREEMENT_EDITED_TS + 60

    async def test__get_agreement_status__agreement_edited_after_acceptance(
        self,
        db_session: AsyncSession,
        store: AgreementStore,
        test_user: User,
    ) -> None:
        await store.record_user_accepted(test_user.id, AGREEMENT_EDITED_TS - 60)
        await add_agreement_page(db_session, "Revised terms.", AGREEMENT_EDITED)

        status = await agreement_service.get_agreement_status(store, test_user.id, 0)

        assert status.must_accept is True
        assert status.agreement_text == "Revised terms."

    @pytest.mark.usefixtures("agreement_page")
    async def test__get_agreement_status__reaccept_window_expired(
        self,
        store: AgreementStore,
        test_user: User,
    ) -> None:
        accepted = AGREEMENT_EDITED_TS + 1000
        await store.record_user_accepted(test_user.id, accepted)

        expired = await agreement_service.get_agreement_status(
            store, test_user.id, 30, now=accepted + 40 * SECONDS_PER_DAY,
        )
        current = await agreement_service.get_agreement_status(
            store, test_user.id, 30, now=accepted + 10 * SECONDS_PER_DAY,
        )

        assert expired.must_accept is True
        assert current.must_accept is False

    async def test__get_agreement_status__missing_page_never_prompts(
        self,
        store: AgreementStore,
        test_user: User,
    ) -> None:
        """Never-edited agreement with the default empty text blocks nobody."""
        status = await agreement_service.get_agreement_status(store, test_user.id, 0)

        assert status.must_accept is False
        assert status.agreement_last_modified_at == EPOCH

    async def test__get_agreement_status__missing_page_with_default_text_prompts(
        self,
        db_session: AsyncSession,
        test_user: User,
    ) -> None:
        """Both timestamps at the epoch sentinel still prompt."""
        store = AgreementStore(
            db_session,
            namespace=AGREEMENT_NAMESPACE,
            title=AGREEMENT_TITLE,
            default_text="Default terms.",
        )

        status = await agreement_service.get_agreement_status(store, test_user.id, 0)

        assert status.must_accept is True
        assert status.agreement_text == "Default terms."
        assert status.agreement_last_modified_at == EPOCH
        assert status.user_accepted_at == EPOCH

    async def test__get_agreement_status__empty_page_never_prompts(
        self,
        db_session: AsyncSession,
        store: AgreementStore,
        test_user: User,
    ) -> None:
        await add_agreement_page(db_session, "", AGREEMENT_EDITED)

        status = await agreement_service.get_agreement_status(store, test_user.id, 30)

        assert status.must_accept is False
        store_read = await store.get_user_accepted_at(test_user.id)
        assert store_read == EPOCH

    async def test__get_agreement_status__acceptance_storage_fault_prompts(
        self,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        """An unreadable acceptance fails toward showing the agreement."""
        store = _failing_store()
        store.get_agreement.return_value = Agreement(text="Terms", last_modified_at=1000)
        store.get_user_accepted_at.side_effect = StorageUnavailableError(
            "get_user_accepted_at",
        )

        with caplog.at_level(logging.WARNING, logger="services.agreement_service"):
            status = await agreement_service.get_agreement_status(
                store, 42, 0, now=1_700_000_000,
            )

        assert status.must_accept is True
        assert status.agreement_text == "Terms"
        assert status.user_accepted_at == EPOCH
        assert "user_agreement_acceptances" in caplog.text

    async def test__get_agreement_status__agreement_storage_fault_prompts_with_default(
        self,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        """An unreadable page counts as modified now, so earlier acceptances prompt."""
        store = _failing_store(default_text="Fallback terms")
        store.get_agreement.side_effect = StorageUnavailableError("get_agreement")
        store.get_user_accepted_at.return_value = 500

        with caplog.at_level(logging.WARNING, logger="services.agreement_service"):
            status = await agreement_service.get_agreement_status(
                store, 42, 0, now=1_700_000_000,
            )

        assert status.must_accept is True
        assert status.agreement_text == "Fallback terms"
        assert status.agreement_last_modified_at == 1_700_000_000
        assert status.user_accepted_at == 500
        assert "treating it as modified now" in caplog.text

    async def test__get_agreement_status__agreement_storage_fault_without_default_text(
        self,
    ) -> None:
        """With no default text there is nothing to show, so nobody is prompted."""
        store = _failing_store()
        store.get_agreement.side_effect = StorageUnavailableError("get_agreement")

        status = await agreement_service.get_agreement_status(
            store, 42, 0, now=1_700_000_000,
        )

        assert status.must_accept is False
        store.get_user_accepted_at.assert_not_called()

    async def test__get_agreement_status__real_missing_table_prompts(
        self,
        db_session: AsyncSession,
        store: AgreementStore,
        test_user: User,
    ) -> None:
        """End to end: a dropped acceptance table degrades instead of raising."""
        from sqlalchemy import text  # noqa: PLC0415

        await add_agreement_page(db_session, "Terms", AGREEMENT_EDITED)
        await db_session.execute(text("DROP TABLE user_agreement_acceptances"))

        status = await agreement_service.get_agreement_status(store, test_user.id, 0)

        assert status.must_accept is True


class TestAcceptAgreement:
    """Tests for accept_agreement."""

    @pytest.mark.usefixtures("agreement_page")
    async def test__accept_agreement__clears_prompt(
        self,
        store: AgreementStore,
        test_user: User,
    ) -> None:
        accepted_at = await agreement_service.accept_agreement(store, test_user.id)

        assert accepted_at > AGREEMENT_EDITED_TS
        assert await store.get_user_accepted_at(test_user.id) == accepted_at
        status = await agreement_service.get_agreement_status(store, test_user.id, 0)
        assert status.must_accept is False

    async def test__accept_agreement__uses_given_time(
        self,
        store: AgreementStore,
        test_user: User,
    ) -> None:
        accepted_at = await agreement_service.accept_agreement(
            store, test_user.id, now=1_700_000_000,
        )

        assert accepted_at == 1_700_000_000
        assert await store.get_user_accepted_at(test_user.id) == 1_700_000_000

    @pytest.mark.parametrize("user_id", [0, -1])
    async def test__accept_agreement__rejects_anonymous(self, user_id: int) -> None:
        store = _failing_store()

        with pytest.raises(ValueError, match="Anonymous"):
            await agreement_service.accept_agreement(store, user_id)

        store.record_user_accepted.assert_not_called()

    async def test__accept_agreement__storage_fault_propagates(self) -> None:
        store = _failing_store()
        store.record_user_accepted.side_effect = StorageUnavailableError(
            "record_user_accepted",
        )

        with pytest.raises(StorageUnavailableError):
            await agreement_service.accept_agreement(store, 42)
