"""Add users.preferences.

Revision ID: 0002
Revises: 0001
Create Date: 2025-10-01

Stores created before the column existed get it with an empty-object
default. Fresh stores already have it from ``create_all``.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '0002'
down_revision: Union[str, None] = '0001'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    columns = {c["name"] for c in sa.inspect(op.get_bind()).get_columns("users")}
    if "preferences" in columns:
        return

    op.add_column(
        "users",
        sa.Column("preferences", sa.JSON(), nullable=True, server_default=sa.text("'{}'")),
    )


def downgrade() -> None:
    op.drop_column("users", "preferences")
