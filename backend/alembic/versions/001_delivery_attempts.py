"""Add delivery_attempts: append-only log of every notification channel attempt."""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "delivery_attempts",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("recipient_id", sa.Integer(), nullable=False),
        sa.Column("type", sa.String(32), nullable=False),
        sa.Column("channel", sa.String(20), nullable=False),
        sa.Column("title", sa.String(256), nullable=True),
        sa.Column("body", sa.Text(), nullable=True),
        sa.Column(
            "payload",
            sa.JSON().with_variant(postgresql.JSONB(), "postgresql"),
            nullable=False,
            server_default=sa.text("'{}'"),
        ),
        sa.Column("correlation_key", sa.String(64), nullable=True),
        sa.Column("status", sa.String(10), nullable=False),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("provider_message_id", sa.String(128), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_delivery_attempts_recipient_id", "delivery_attempts", ["recipient_id"])
    op.create_index("ix_delivery_attempts_type", "delivery_attempts", ["type"])
    op.create_index(
        "ix_delivery_attempts_dedupe",
        "delivery_attempts",
        ["type", "correlation_key", "recipient_id"],
    )


def downgrade() -> None:
    op.drop_index("ix_delivery_attempts_dedupe", table_name="delivery_attempts")
    op.drop_index("ix_delivery_attempts_type", table_name="delivery_attempts")
    op.drop_index("ix_delivery_attempts_recipient_id", table_name="delivery_attempts")
    op.drop_table("delivery_attempts")
