"""create magic links

Revision ID: 20261012_02
Revises: 20261012_01
Create Date: 2026-10-12 10:40:00
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "20261012_02"
down_revision: Union[str, None] = "20261012_01"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "magic_links",
        sa.Column("id", sa.Integer(), sa.Identity(), primary_key=True, nullable=False),
        sa.Column("branch_code", sa.String(length=20), nullable=False),
        sa.Column("token", sa.String(length=128), nullable=False),
        sa.Column("customer_name", sa.String(length=100), nullable=True),
        sa.Column("customer_messenger", sa.String(length=255), nullable=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("used_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("booking_id", sa.Integer(), nullable=True),
        sa.Column("created_by", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.ForeignKeyConstraint(["branch_code"], ["branches.code"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["created_by"], ["users.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("token", name="uq_magic_links_token"),
    )
    op.create_index("ix_magic_links_id", "magic_links", ["id"], unique=False)
    op.create_index("ix_magic_links_branch_code", "magic_links", ["branch_code"], unique=False)
    op.create_index("ix_magic_links_expires_at", "magic_links", ["expires_at"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_magic_links_expires_at", table_name="magic_links")
    op.drop_index("ix_magic_links_branch_code", table_name="magic_links")
    op.drop_index("ix_magic_links_id", table_name="magic_links")
    op.drop_table("magic_links")
