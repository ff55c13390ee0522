"""Drop the foreign key from tasks.user_id to users.id.

Revision ID: 0001
Revises: None
Create Date: 2025-09-01

Early schemas declared ``tasks.user_id REFERENCES users(id)``, which blocks
inserts owned by the ``default`` sentinel user. ``user_id`` is a scoping
value only, so the constraint is removed:
- PostgreSQL: every foreign key from tasks to users is dropped in place
- SQLite: constraints cannot be altered, so the table is rebuilt and rows copied
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '0001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    bind = op.get_bind()
    if bind.dialect.name == "postgresql":
        _drop_postgres_constraints(bind)
    elif bind.dialect.name == "sqlite":
        _rebuild_sqlite_tasks(bind)


def downgrade() -> None:
    # Irreversible: tasks owned by the sentinel user would violate the constraint
    pass


def _drop_postgres_constraints(bind) -> None:
    names = bind.execute(sa.text("""
        SELECT con.conname
        FROM pg_constraint con
        JOIN pg_class rel ON rel.oid = con.conrelid
        JOIN pg_class ref ON ref.oid = con.confrelid
        WHERE con.contype = 'f'
          AND rel.relname = 'tasks'
          AND ref.relname = 'users'
    """)).scalars().all()

    for name in names:
        op.execute(f'ALTER TABLE tasks DROP CONSTRAINT IF EXISTS "{name}"')


def _rebuild_sqlite_tasks(bind) -> None:
    from daily_vibe.models.task import Task

    foreign_keys = bind.execute(sa.text("PRAGMA foreign_key_list(tasks)")).mappings().all()
    if not any(fk["table"] == "users" for fk in foreign_keys):
        return

    legacy_columns = {
        row["name"] for row in bind.execute(sa.text("PRAGMA table_info(tasks)")).mappings()
    }
    columns = ", ".join(c.name for c in Task.__table__.columns if c.name in legacy_columns)

    # Build the replacement under a temporary name, then swap it in
    rebuilt = Task.__table__.to_metadata(sa.MetaData(), name="_tasks_rebuild")
    rebuilt.indexes.clear()
    rebuilt.create(bind)

    op.execute(f"INSERT INTO _tasks_rebuild ({columns}) SELECT {columns} FROM tasks")
    op.execute("DROP TABLE tasks")
    op.execute("ALTER TABLE _tasks_rebuild RENAME TO tasks")

    for index in Task.__table__.indexes:
        index.create(bind, checkfirst=True)
