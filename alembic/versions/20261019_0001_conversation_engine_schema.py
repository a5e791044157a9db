"""conversation engine schema

Revision ID: 20261019_0001
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""

from __future__ import annotations

from collections.abc import Sequence

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "20261019_0001"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    conversation_status = sa.Enum(
        "ACTIVE", "PENDING_HUMAN", "RESOLVED", name="conversation_status"
    )
    message_sender = sa.Enum("CUSTOMER", "ASSISTANT", "OPERATOR", name="message_sender")

    bind = op.get_bind()
    conversation_status.create(bind, checkfirst=True)
    message_sender.create(bind, checkfirst=True)

    op.create_table(
        "conversations",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("customer_id", sa.String(length=120), nullable=False),
        sa.Column(
            "status",
            sa.Enum(
                "ACTIVE",
                "PENDING_HUMAN",
                "RESOLVED",
                name="conversation_status",
                create_type=False,
            ),
            nullable=False,
            server_default=sa.text("'ACTIVE'"),
        ),
        sa.Column("sentiment_score", sa.Integer(), nullable=True),
        sa.Column("assigned_operator_id", sa.String(length=120), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.CheckConstraint(
            "sentiment_score IS NULL OR sentiment_score BETWEEN 1 AND 5",
            name="ck_conversations_sentiment_range",
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_conversations_customer_id",
        "conversations",
        ["customer_id"],
        unique=False,
    )
    op.create_index(
        "ix_conversations_assigned_operator_id",
        "conversations",
        ["assigned_operator_id"],
        unique=False,
    )
    op.create_index(
        "uq_conversations_open_customer",
        "conversations",
        ["customer_id"],
        unique=True,
        postgresql_where=sa.text("status IN ('ACTIVE', 'PENDING_HUMAN')"),
    )

    op.create_table(
        "messages",
        sa.Column("id", sa.BigInteger(), sa.Identity(), nullable=False),
        sa.Column("conversation_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column(
            "sender",
            sa.Enum(
                "CUSTOMER",
                "ASSISTANT",
                "OPERATOR",
                name="message_sender",
                create_type=False,
            ),
            nullable=False,
        ),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("model_used", sa.String(length=200), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.ForeignKeyConstraint(
            ["conversation_id"], ["conversations.id"], ondelete="RESTRICT"
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_messages_conversation_id", "messages", ["conversation_id"], unique=False)
    op.create_index(
        "ix_messages_conversation_order",
        "messages",
        ["conversation_id", "created_at", "id"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index("ix_messages_conversation_order", table_name="messages")
    op.drop_index("ix_messages_conversation_id", table_name="messages")
    op.drop_table("messages")

    op.drop_index("uq_conversations_open_customer", table_name="conversations")
    op.drop_index("ix_conversations_assigned_operator_id", table_name="conversations")
    op.drop_index("ix_conversations_customer_id", table_name="conversations")
    op.drop_table("conversations")

    bind = op.get_bind()
    sa.Enum(name="message_sender").drop(bind, checkfirst=True)
    sa.Enum(name="conversation_status").drop(bind, checkfirst=True)
