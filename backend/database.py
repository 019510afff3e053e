import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterable, Optional

import config
from models import Event, EventFamily

logger = logging.getLogger(__name__)

DATABASE_PATH = config.DATABASE_PATH

EVENT_COLUMNS = (
    "id", "owner_id", "title", "start_at", "end_at", "importance", "urgency", "difficulty",
    "status", "segment_of", "segment_index", "is_recurring", "created_at",
)
# Model field -> column, for fields whose names differ
FIELD_TO_COLUMN = {"start": "start_at", "end": "end_at"}


@contextmanager
def get_db():
    """Context manager for database connections."""
    conn = sqlite3.connect(DATABASE_PATH)
    conn.row_factory = sqlite3.Row
    try:
        yield conn
    finally:
        conn.close()


def init_db():
    """Initialize database by running Alembic migrations."""
    import os
    import subprocess

    env = dict(os.environ, SCHEDULER_DB_URL=f"sqlite:///{DATABASE_PATH}")
    subprocess.run(
        ["alembic", "upgrade", "head"],
        cwd=config.BACKEND_DIR,
        env=env,
        check=True
    )


def to_db_time(value: datetime) -> str:
    """Serialize an aware instant as fixed-width UTC ISO text.

    Fixed width keeps SQL string comparison equal to instant comparison, which the
    exact-interval conflict lookup and range queries rely on.
    """
    if value.tzinfo is None:
        raise ValueError("naive datetime cannot be stored; attach a timezone")
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def from_db_time(value: str) -> datetime:
    return datetime.fromisoformat(value)


def _row_to_event(row) -> Event:
    """Convert a database row to an Event model."""
    return Event(
        id=row["id"],
        owner_id=row["owner_id"],
        title=row["title"],
        start=from_db_time(row["start_at"]),
        end=from_db_time(row["end_at"]),
        importance=row["importance"],
        urgency=row["urgency"],
        difficulty=row["difficulty"] or "medium",
        status=row["status"],
        segment_of=row["segment_of"],
        segment_index=row["segment_index"],
        is_recurring=bool(row["is_recurring"]),
        created_at=row["created_at"],
    )


def create_event_db(
    event_id: str,
    owner_id: str,
    title: str,
    start: datetime,
    end: datetime,
    importance: str,
    urgency: str,
    difficulty: str = "medium",
    segment_of: Optional[str] = None,
    segment_index: Optional[int] = None,
    status: Optional[str] = None,
    is_recurring: bool = False,
) -> Event:
    """Insert an event. Callers validate the interval; this only persists."""
    created_at = datetime.now(timezone.utc).isoformat()
    with get_db() as conn:
        conn.execute(
            """INSERT INTO events
               (id, owner_id, title, start_at, end_at, importance, urgency, difficulty,
                status, segment_of, segment_index, is_recurring, created_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (event_id, owner_id, title, to_db_time(start), to_db_time(end), importance, urgency,
             difficulty, status, segment_of, segment_index, int(is_recurring), created_at)
        )
        conn.commit()

    logger.info("Created event %s (%s) for owner %s", event_id, title, owner_id)
    return Event(
        id=event_id,
        owner_id=owner_id,
        title=title,
        start=start.astimezone(timezone.utc),
        end=end.astimezone(timezone.utc),
        importance=importance,
        urgency=urgency,
        difficulty=difficulty,
        status=status,
        segment_of=segment_of,
        segment_index=segment_index,
        is_recurring=is_recurring,
        created_at=created_at,
    )


def get_event_db(event_id: str) -> Optional[Event]:
    with get_db() as conn:
        row = conn.execute("SELECT * FROM events WHERE id = ?", (event_id,)).fetchone()
        return _row_to_event(row) if row else None


def get_events_for_owner_db(owner_id: str) -> list[Event]:
    """All of an owner's events, earliest start first."""
    with get_db() as conn:
        rows = conn.execute(
            "SELECT * FROM events WHERE owner_id = ? ORDER BY start_at, segment_index",
            (owner_id,)
        ).fetchall()
        return [_row_to_event(row) for row in rows]


def get_events_between_db(owner_id: str, window_start: datetime, window_end: datetime) -> list[Event]:
    """Events overlapping the half-open window [window_start, window_end), ordered by start."""
    with get_db() as conn:
        rows = conn.execute(
            """SELECT * FROM events
               WHERE owner_id = ? AND start_at < ? AND end_at > ?
               ORDER BY start_at, segment_index""",
            (owner_id, to_db_time(window_end), to_db_time(window_start))
        ).fetchall()
        return [_row_to_event(row) for row in rows]


def find_exact_interval_db(
    owner_id: str,
    start: datetime,
    end: datetime,
    exclude_id: Optional[str] = None,
) -> list[Event]:
    """Events of owner_id whose interval is exactly [start, end)."""
    query = "SELECT * FROM events WHERE owner_id = ? AND start_at = ? AND end_at = ?"
    params: list = [owner_id, to_db_time(start), to_db_time(end)]
    if exclude_id:
        query += " AND id != ?"
        params.append(exclude_id)
    with get_db() as conn:
        rows = conn.execute(query + " ORDER BY created_at", params).fetchall()
        return [_row_to_event(row) for row in rows]


def get_children_db(parent_id: str) -> list[Event]:
    """Segments of a parent, in segment order."""
    with get_db() as conn:
        rows = conn.execute(
            "SELECT * FROM events WHERE segment_of = ? ORDER BY segment_index, start_at",
            (parent_id,)
        ).fetchall()
        return [_row_to_event(row) for row in rows]


def get_family_db(event_id: str) -> Optional[EventFamily]:
    """Resolve an event to standalone / parent / child together with its relatives."""
    event = get_event_db(event_id)
    if event is None:
        return None

    if event.segment_of:
        parent = get_event_db(event.segment_of)
        if parent is None:
            # Orphaned segment: its parent was removed outside the delete path
            logger.warning("Segment %s points at missing parent %s", event.id, event.segment_of)
            return EventFamily(kind="standalone", event=event)
        return EventFamily(kind="child", event=event, parent=parent, children=get_children_db(parent.id))

    children = get_children_db(event.id)
    if children:
        return EventFamily(kind="parent", event=event, children=children)
    return EventFamily(kind="standalone", event=event)


def update_event_db(event_id: str, **updates) -> Optional[Event]:
    """
    Update an event with any fields provided.
    Only updates fields that differ from current values.

    Args:
        event_id: Event ID to update
        **updates: Model field names and values (title, start, end, importance, urgency,
            difficulty, status)
    """
    with get_db() as conn:
        row = conn.execute("SELECT * FROM events WHERE id = ?", (event_id,)).fetchone()
        if not row:
            return None

        keys = row.keys()

        changes = {}
        for field, new_value in updates.items():
            column = FIELD_TO_COLUMN.get(field, field)
            if column not in keys or column in ("id", "owner_id"):
                continue
            if isinstance(new_value, datetime):
                new_value = to_db_time(new_value)
            elif isinstance(new_value, bool):
                new_value = int(new_value)
            if new_value != row[column]:
                changes[column] = new_value

        if changes:
            set_clause = ", ".join(f"{column} = ?" for column in changes.keys())
            values = list(changes.values()) + [event_id]
            conn.execute(f"UPDATE events SET {set_clause} WHERE id = ?", values)
            conn.commit()
            logger.info("Updated event %s: %s", event_id, ", ".join(changes))

        updated_row = conn.execute("SELECT * FROM events WHERE id = ?", (event_id,)).fetchone()
        return _row_to_event(updated_row)


def set_status_db(event_ids: Iterable[str], status: str, only_pending: bool = True) -> int:
    """Set status on many events at once. Returns the number of rows changed."""
    ids = list(event_ids)
    if not ids:
        return 0
    placeholders = ", ".join("?" for _ in ids)
    query = f"UPDATE events SET status = ? WHERE id IN ({placeholders})"
    if only_pending:
        query += " AND status IS NULL"
    with get_db() as conn:
        cursor = conn.execute(query, [status, *ids])
        conn.commit()
        return cursor.rowcount


def delete_event_db(event_id: str) -> bool:
    with get_db() as conn:
        cursor = conn.execute("DELETE FROM events WHERE id = ?", (event_id,))
        conn.commit()
        deleted = cursor.rowcount > 0
    if deleted:
        logger.info("Deleted event %s", event_id)
    return deleted


def delete_children_db(parent_id: str) -> int:
    with get_db() as conn:
        cursor = conn.execute("DELETE FROM events WHERE segment_of = ?", (parent_id,))
        conn.commit()
        count = cursor.rowcount
    if count:
        logger.info("Deleted %d segment(s) of %s", count, parent_id)
    return count


def _title_matches(title: str, guess: str, mode: str) -> bool:
    title_lower = title.lower()
    guess_lower = guess.lower().strip()
    if mode == "exact":
        return title_lower.strip() == guess_lower
    if mode == "tokens":
        tokens = guess_lower.split()
        return bool(tokens) and all(token in title_lower for token in tokens)
    return guess_lower in title_lower


def find_event_by_title_db(
    owner_id: str,
    title: str,
    mode: str = "substring",
    segments: Optional[bool] = None,
    pending_only: bool = False,
) -> Optional[Event]:
    """Find an owner's event by title (case-insensitive), most recent start first.

    mode: "substring", "exact" or "tokens" (every word of title appears).
    segments: True for segments only, False for non-segments only, None for both.
    """
    if not title or not title.strip():
        return None
    with get_db() as conn:
        rows = conn.execute(
            "SELECT * FROM events WHERE owner_id = ? ORDER BY start_at DESC",
            (owner_id,)
        ).fetchall()
    for row in rows:
        if segments is not None and (row["segment_of"] is not None) != segments:
            continue
        if pending_only and row["status"] is not None:
            continue
        if _title_matches(row["title"], title, mode):
            return _row_to_event(row)
    return None
