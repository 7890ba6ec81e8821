"""Read-only mapping of the host wiki's page table."""
from datetime import datetime

from sqlalchemy import DateTime, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from models.base import Base


class WikiPage(Base):
    """
    A page owned by the host wiki.

    Only the columns needed to read the user agreement are mapped. This service
    never writes to the table and ships no migration for it; the wiki's own edit
    workflow creates and revises pages.
    """

    __tablename__ = "pages"
    __table_args__ = (UniqueConstraint("namespace", "title"),)

    id: Mapped[int] = mapped_column(primary_key=True)
    namespace: Mapped[int] = mapped_column(Integer)
    title: Mapped[str] = mapped_column(String(255))
    content: Mapped[str] = mapped_column(Text, default="")
    latest_revision_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        comment="Timestamp of the page's latest revision",
    )
