"""Initial Crest schema: users, messages, programs, program periods."""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "202610010900"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "app_users",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("user_type", sa.String(length=16), nullable=False, server_default=sa.text("'human'")),
        sa.Column("display_name", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    )

    op.create_table(
        "messages",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("sender_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("receiver_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("is_important", sa.Boolean(), nullable=True),
        sa.Column("agent_type", sa.String(length=32), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.ForeignKeyConstraint(["sender_id"], ["app_users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["receiver_id"], ["app_users.id"], ondelete="CASCADE"),
    )
    op.create_index(
        "ix_messages_sender_receiver_created",
        "messages",
        ["sender_id", "receiver_id", "created_at"],
        unique=False,
    )
    op.create_index("ix_messages_agent_type", "messages", ["agent_type"], unique=False)

    op.create_table(
        "programs",
        sa.Column("program_id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("type", sa.String(length=64), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False, server_default=sa.text("'scheduled'")),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("period_length_weeks", sa.Integer(), nullable=False, server_default=sa.text("4")),
        sa.Column(
            "spec_json",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.ForeignKeyConstraint(["user_id"], ["app_users.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_programs_user_type_created", "programs", ["user_id", "type", "created_at"], unique=False)

    op.create_table(
        "program_periods",
        sa.Column("program_period_id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("program_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("period_index", sa.Integer(), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column(
            "period_json",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.ForeignKeyConstraint(["program_id"], ["programs.program_id"], ondelete="CASCADE"),
        sa.UniqueConstraint("program_id", "period_index", name="uq_program_periods_program_index"),
    )
    op.create_index("ix_program_periods_program_id", "program_periods", ["program_id"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_program_periods_program_id", table_name="program_periods")
    op.drop_table("program_periods")
    op.drop_index("ix_programs_user_type_created", table_name="programs")
    op.drop_table("programs")
    op.drop_index("ix_messages_agent_type", table_name="messages")
    op.drop_index("ix_messages_sender_receiver_created", table_name="messages")
    op.drop_table("messages")
    op.drop_table("app_users")
