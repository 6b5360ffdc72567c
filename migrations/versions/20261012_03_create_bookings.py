"""create bookings

Revision ID: 20261012_03
Revises: 20261012_02
Create Date: 2026-10-12 11:05:00
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "20261012_03"
down_revision: Union[str, None] = "20261012_02"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "bookings",
        sa.Column("id", sa.Integer(), sa.Identity(), primary_key=True, nullable=False),
        sa.Column("branch_code", sa.String(length=20), nullable=False),
        sa.Column("magic_link_id", sa.Integer(), nullable=True),
        sa.Column("plate", sa.String(length=20), nullable=False),
        sa.Column("vehicle_make", sa.String(length=50), nullable=False),
        sa.Column("vehicle_model", sa.String(length=50), nullable=False),
        sa.Column("customer_name", sa.String(length=100), nullable=True),
        sa.Column("customer_messenger", sa.String(length=255), nullable=True),
        sa.Column("preferred_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="queued"),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("cancelled_reason", sa.Text(), nullable=True),
        sa.Column("cancelled_by", sa.Integer(), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.ForeignKeyConstraint(["branch_code"], ["branches.code"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["magic_link_id"], ["magic_links.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["cancelled_by"], ["users.id"], ondelete="SET NULL"),
        sa.CheckConstraint(
            "status IN ('queued', 'in_service', 'done', 'cancelled')",
            name="ck_bookings_status",
        ),
        sa.CheckConstraint("position >= 0", name="ck_bookings_position"),
    )
    op.create_index("ix_bookings_id", "bookings", ["id"], unique=False)
    op.create_index("ix_bookings_magic_link_id", "bookings", ["magic_link_id"], unique=False)
    op.create_index(
        "ix_bookings_branch_status_position",
        "bookings",
        ["branch_code", "status", "position"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index("ix_bookings_branch_status_position", table_name="bookings")
    op.drop_index("ix_bookings_magic_link_id", table_name="bookings")
    op.drop_index("ix_bookings_id", table_name="bookings")
    op.drop_table("bookings")
