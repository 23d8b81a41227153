"""create users table

Revision ID: 003
Revises: 002
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = "003"
down_revision: Union[str, None] = "002"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("user_id", sa.String(255), primary_key=True),
        sa.Column("is_disabled", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("last_authenticated_at", sa.DateTime(), nullable=True),
        sa.Column("entitlement_list", sa.Text(), nullable=False, server_default="[]"),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    # users that already own certificates
    op.execute(
        "INSERT INTO users (user_id, is_disabled, entitlement_list, created_at) "
        "SELECT DISTINCT user_id, false, '[]', CURRENT_TIMESTAMP FROM certificates"
    )


def downgrade() -> None:
    op.drop_table("users")
