"""Acceptance record model - the last time each user accepted the user agreement."""
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship

from models.base import Base

if TYPE_CHECKING:
    from models.user import User


class AgreementAcceptance(Base):
    """
    One row per user holding their most recent acceptance of the user agreement.

    Rows are only ever written through an upsert on user_id, so a later acceptance
    overwrites the earlier one. No history is kept.
    """

    __tablename__ = "user_agreement_acceptances"

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
        comment="Foreign key to users table - one acceptance record per user",
    )
    accepted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        comment="When the user last accepted the user agreement (whole seconds)",
    )

    user: Mapped["User"] = relationship(back_populates="agreement_acceptance")
