"""Pydantic schemas for user agreement endpoints."""
from datetime import datetime

from pydantic import BaseModel, Field


class AgreementStatusResponse(BaseModel):
    """Schema for checking whether the user must accept the agreement."""

    must_accept: bool = Field(
        ...,
        description="Whether the user must accept/re-accept the agreement before continuing",
    )
    agreement_text: str | None = Field(
        default=None,
        description="Agreement text to display; only set when must_accept is true",
    )
    agreement_last_modified_at: int = Field(
        ...,
        description="Unix timestamp of the agreement's last change (0 if never edited)",
    )
    user_accepted_at: int | None = Field(
        default=None,
        description="Unix timestamp of the user's last acceptance (0 if never, null if anonymous)",
    )

    model_config = {"from_attributes": True}


class AcceptanceResponse(BaseModel):
    """Schema for a recorded acceptance."""

    user_id: int
    accepted_at: int = Field(..., description="Unix timestamp of the acceptance")
    accepted_at_iso: datetime
