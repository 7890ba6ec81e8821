"""
Add user agreement acceptances table.

Revision ID: 9f2d6b83e1a5
Revises: 4c1e9a7b2d30
Create Date: 2026-09-28 10:31:47.902113
"""
from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "9f2d6b83e1a5"
down_revision: str | Sequence[str] | None = "4c1e9a7b2d30"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Upgrade schema."""
    # The user_id primary key is the conflict target of the acceptance upsert
    op.create_table(
        "user_agreement_acceptances",
        sa.Column(
            "user_id",
            sa.Integer(),
            nullable=False,
            comment="Foreign key to users table - one acceptance record per user",
        ),
        sa.Column(
            "accepted_at",
            sa.DateTime(timezone=True),
            nullable=False,
            comment="When the user last accepted the user agreement (whole seconds)",
        ),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("user_id"),
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table("user_agreement_acceptances")
