"""SQLAlchemy models."""
from models.agreement_acceptance import AgreementAcceptance
from models.base import Base, TimestampMixin
from models.user import User
from models.wiki_page import WikiPage

__all__ = [
    "AgreementAcceptance",
    "Base",
    "TimestampMixin",
    "User",
    "WikiPage",
]
