"""create enrollment and ticket tables

Revision ID: 3b7e1c2d9a40
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "3b7e1c2d9a40"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "user",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("username", sa.String(), nullable=True),
        sa.Column("password", sa.String(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=True),
        sa.Column("first_name", sa.String(), nullable=True),
        sa.Column("last_name", sa.String(), nullable=True),
        sa.Column("email", sa.String(), nullable=True),
        sa.Column("participant_type", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        schema="public",
    )
    op.create_index(op.f("ix_public_user_id"), "user", ["id"], unique=False, schema="public")

    op.create_table(
        "token",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("user_id", sa.UUID(), nullable=False),
        sa.Column("token", sa.String(), nullable=False),
        sa.Column("expired_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["public.user.id"]),
        sa.PrimaryKeyConstraint("id"),
        schema="public",
    )
    op.create_index(op.f("ix_public_token_id"), "token", ["id"], unique=False, schema="public")
    op.create_index(
        op.f("ix_public_token_user_id"), "token", ["user_id"], unique=False, schema="public"
    )
    op.create_index(
        op.f("ix_public_token_token"), "token", ["token"], unique=False, schema="public"
    )

    op.create_table(
        "activity",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("description", sa.String(), nullable=True),
        sa.Column("location", sa.String(), nullable=True),
        sa.Column("activity_type", sa.String(), nullable=False),
        sa.Column("start", sa.DateTime(timezone=True), nullable=True),
        sa.Column("end", sa.DateTime(timezone=True), nullable=True),
        sa.Column("capacity", sa.Integer(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=True),
        sa.Column("published", sa.Boolean(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        schema="public",
    )
    op.create_index(
        op.f("ix_public_activity_id"), "activity", ["id"], unique=False, schema="public"
    )

    op.create_table(
        "enrollment",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("user_id", sa.UUID(), nullable=False),
        sa.Column("activity_id", sa.UUID(), nullable=False),
        sa.Column("seat_number", sa.Integer(), nullable=False),
        sa.Column("attended", sa.Boolean(), nullable=False),
        sa.Column("attended_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("ticket_id", sa.String(length=64), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["activity_id"], ["public.activity.id"]),
        sa.ForeignKeyConstraint(["user_id"], ["public.user.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id", "activity_id", name="uq_enrollment_user_activity"),
        sa.UniqueConstraint("activity_id", "seat_number", name="uq_enrollment_seat"),
        schema="public",
    )
    op.create_index(
        op.f("ix_public_enrollment_id"), "enrollment", ["id"], unique=False, schema="public"
    )
    op.create_index(
        op.f("ix_public_enrollment_user_id"),
        "enrollment",
        ["user_id"],
        unique=False,
        schema="public",
    )
    op.create_index(
        op.f("ix_public_enrollment_activity_id"),
        "enrollment",
        ["activity_id"],
        unique=False,
        schema="public",
    )

    op.create_table(
        "ticket",
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("user_id", sa.UUID(), nullable=False),
        sa.Column("activity_id", sa.UUID(), nullable=False),
        sa.Column("enrollment_id", sa.UUID(), nullable=True),
        sa.Column("issued_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("used", sa.Boolean(), nullable=False),
        sa.Column("used_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("used_by", sa.UUID(), nullable=True),
        sa.Column("revoked_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        schema="public",
    )
    op.create_index(
        op.f("ix_public_ticket_user_id"), "ticket", ["user_id"], unique=False, schema="public"
    )
    op.create_index(
        op.f("ix_public_ticket_activity_id"),
        "ticket",
        ["activity_id"],
        unique=False,
        schema="public",
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index(op.f("ix_public_ticket_activity_id"), table_name="ticket", schema="public")
    op.drop_index(op.f("ix_public_ticket_user_id"), table_name="ticket", schema="public")
    op.drop_table("ticket", schema="public")
    op.drop_index(
        op.f("ix_public_enrollment_activity_id"), table_name="enrollment", schema="public"
    )
    op.drop_index(
        op.f("ix_public_enrollment_user_id"), table_name="enrollment", schema="public"
    )
    op.drop_index(op.f("ix_public_enrollment_id"), table_name="enrollment", schema="public")
    op.drop_table("enrollment", schema="public")
    op.drop_index(op.f("ix_public_activity_id"), table_name="activity", schema="public")
    op.drop_table("activity", schema="public")
    op.drop_index(op.f("ix_public_token_token"), table_name="token", schema="public")
    op.drop_index(op.f("ix_public_token_user_id"), table_name="token", schema="public")
    op.drop_index(op.f("ix_public_token_id"), table_name="token", schema="public")
    op.drop_table("token", schema="public")
    op.drop_index(op.f("ix_public_user_id"), table_name="user", schema="public")
    op.drop_table("user", schema="public")
