"""Create events table

Revision ID: 001
Revises: None
Create Date: 2025-11-03

"""
from typing import Sequence, Union

from alembic import op
from sqlalchemy import text

revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    conn = op.get_bind()

    # start_at/end_at hold fixed-width UTC ISO text, so string order is time order
    conn.execute(text("""
        CREATE TABLE IF NOT EXISTS events (
            id TEXT PRIMARY KEY,
            owner_id TEXT NOT NULL,
            title TEXT NOT NULL,
            start_at TEXT NOT NULL,
            end_at TEXT NOT NULL,
            importance TEXT NOT NULL DEFAULT 'low',
            urgency TEXT NOT NULL DEFAULT 'low',
            difficulty TEXT NOT NULL DEFAULT 'medium',
            status TEXT,
            segment_of TEXT,
            segment_index INTEGER,
            is_recurring INTEGER NOT NULL DEFAULT 0,
            created_at TEXT NOT NULL
        )
    """))
    conn.execute(text("CREATE INDEX IF NOT EXISTS ix_events_owner_start ON events (owner_id, start_at)"))
    conn.execute(text("CREATE INDEX IF NOT EXISTS ix_events_segment_of ON events (segment_of)"))


def downgrade() -> None:
    conn = op.get_bind()
    conn.execute(text("DROP INDEX IF EXISTS ix_events_segment_of"))
    conn.execute(text("DROP INDEX IF EXISTS ix_events_owner_start"))
    conn.execute(text("DROP TABLE IF EXISTS events"))
