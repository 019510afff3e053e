"""Exact-interval double-booking detection and alternative slot suggestions."""
from dataclasses import dataclass, field
from datetime import datetime, time, timedelta, tzinfo
from typing import Optional

from database import find_exact_interval_db
from models import Event, Suggestion
from timeparse import format_span


@dataclass
class ConflictRecord:
    """A candidate interval and the owner's events that occupy exactly the same interval."""

    owner_id: str
    start: datetime
    end: datetime
    conflicts: list[Event] = field(default_factory=list)

    @property
    def has_conflict(self) -> bool:
        return bool(self.conflicts)

    @property
    def duration_minutes(self) -> int:
        return max(1, int((self.end - self.start).total_seconds() // 60))


def detect_conflicts(
    owner_id: str,
    start: datetime,
    end: datetime,
    exclude_id: Optional[str] = None,
) -> ConflictRecord:
    """Exact match only: the same owner with the identical start and end. Overlaps are not conflicts."""
    found = find_exact_interval_db(owner_id, start, end, exclude_id=exclude_id)
    return ConflictRecord(owner_id=owner_id, start=start, end=end, conflicts=found)


def build_suggestions(
    conflicts: list[Event],
    duration_minutes: int,
    now: datetime,
    tz: tzinfo,
) -> list[Suggestion]:
    """Three alternative slots, always in this order:

    1. right after the latest conflict ends (or now, if that is later)
    2. one hour after slot 1
    3. tomorrow at 08:00 in tz
    """
    if not conflicts:
        return []
    latest_end = max(c.end for c in conflicts)
    base_start = latest_end if latest_end > now else now
    duration = timedelta(minutes=max(1, duration_minutes))

    tomorrow = now.astimezone(tz).date() + timedelta(days=1)
    slots = [
        (base_start, "After conflict"),
        (base_start + timedelta(hours=1), "+1 hour"),
        (datetime.combine(tomorrow, time(8, 0), tzinfo=tz), "Tomorrow 8:00 AM"),
    ]
    return [
        Suggestion(start=start, end=start + duration, label=format_span(start, start + duration, tz), hint=hint)
        for start, hint in slots
    ]
