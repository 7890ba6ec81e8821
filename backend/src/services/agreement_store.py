"""Reads the agreement page and reads/writes per-user acceptance timestamps."""
from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import Settings
from models.agreement_acceptance import AgreementAcceptance
from models.wiki_page import WikiPage
from services.exceptions import StorageUnavailableError
from services.reacceptance import EPOCH, Agreement, from_epoch, to_epoch


class AgreementStore:
    """
    Timestamp store for the user agreement.

    The agreement page belongs to the host wiki and is only read. Acceptance rows are
    keyed by user id and written with a single upsert statement.

    Reads run inside a SAVEPOINT so that a database fault (e.g. a missing table) is
    rolled back on its own and the request's transaction stays usable. Such faults
    surface as StorageUnavailableError; a missing page or row never raises.
    """

    def __init__(
        self,
        db: AsyncSession,
        namespace: int,
        title: str,
        default_text: str = "",
    ) -> None:
        self.db = db
        self.namespace = namespace
        self.title = title
        self.default_text = default_text

    @classmethod
    def from_settings(cls, db: AsyncSession, settings: Settings) -> "AgreementStore":
        """Build a store for the agreement page named in settings."""
        return cls(
            db,
            namespace=settings.agreement_page_namespace,
            title=settings.agreement_page_title,
            default_text=settings.agreement_default_text,
        )

    async def _fetch_page(self) -> WikiPage | None:
        query = select(WikiPage).where(
            WikiPage.namespace == self.namespace,
            WikiPage.title == self.title,
        )
        try:
            async with self.db.begin_nested():
                result = await self.db.execute(query)
                return result.scalar_one_or_none()
        except DBAPIError as e:
            raise StorageUnavailableError("get_agreement") from e

    async def get_agreement(self) -> Agreement:
        """
        Return the agreement text and last modification time.

        A page that was never created yields the default text, modified at EPOCH.
        """
        page = await self._fetch_page()
        if page is None:
            return Agreement(text=self.default_text, last_modified_at=EPOCH)
        return Agreement(
            text=page.content or "",
            last_modified_at=to_epoch(page.latest_revision_at),
        )

    async def get_agreement_last_modified_at(self) -> int:
        """Return the agreement page's latest revision time, EPOCH if it never existed."""
        agreement = await self.get_agreement()
        return agreement.last_modified_at

    async def get_user_accepted_at(self, user_id: int) -> int:
        """Return when the user last accepted the agreement, EPOCH if never."""
        query = select(AgreementAcceptance.accepted_at).where(
            AgreementAcceptance.user_id == user_id,
        )
        try:
            async with self.db.begin_nested():
                result = await self.db.execute(query)
                accepted_at = result.scalar_one_or_none()
        except DBAPIError as e:
            raise StorageUnavailableError("get_user_accepted_at") from e

        if accepted_at is None:
            return EPOCH
        return to_epoch(accepted_at)

    async def record_user_accepted(self, user_id: int, at: int) -> None:
        """
        Insert or overwrite the user's acceptance time.

        A single INSERT ... ON CONFLICT statement, so concurrent acceptances by the
        same user resolve to last-writer-wins. Does not commit; the session
        generator handles commit at request end.
        """
        accepted_at = from_epoch(at)
        statement = insert(AgreementAcceptance).values(
            user_id=user_id,
            accepted_at=accepted_at,
        )
        statement = statement.on_conflict_do_update(
            index_elements=[AgreementAcceptance.user_id],
            set_={"accepted_at": statement.excluded.accepted_at},
        )
        try:
            await self.db.execute(statement)
        except DBAPIError as e:
            raise StorageUnavailableError("record_user_accepted") from e
