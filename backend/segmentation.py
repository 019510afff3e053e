"""
Dividing one event into N timed segments with fixed breaks.

The plan is exact to the minute: segment minutes plus break minutes always add
up to the parent's whole-minute length, the first `remainder` segments carry
one extra minute each, and the last segment ends exactly where the parent ends.
"""
import logging
import uuid
from datetime import datetime, timedelta
from typing import Optional

from database import create_event_db, get_family_db
from errors import NotFound, ValidationFailure
from models import SplitResult

logger = logging.getLogger(__name__)

DEFAULT_MIN_MINUTES = 180


def segment_lengths(total_minutes: int, count: int, break_minutes: int) -> list[int]:
    """Minutes per segment. Raises ValidationFailure when the breaks leave no room."""
    usable = total_minutes - (count - 1) * break_minutes
    if usable <= 0:
        raise ValidationFailure("Breaks too large for the window.")
    base, remainder = divmod(usable, count)
    return [base + 1 if i < remainder else base for i in range(count)]


def plan_segments(
    start: datetime,
    end: datetime,
    count: int,
    break_minutes: int = 0,
    min_minutes: int = DEFAULT_MIN_MINUTES,
) -> list[tuple[datetime, datetime]]:
    """Lay out `count` back-to-back segments of [start, end) separated by breaks."""
    if end <= start:
        raise ValidationFailure("Invalid parent time range: end must be after start.")
    if count < 2:
        raise ValidationFailure("Nothing to split (count must be >= 2).")
    if break_minutes < 0:
        raise ValidationFailure("Break length cannot be negative.")

    total_minutes = int((end - start).total_seconds() // 60)
    lengths = segment_lengths(total_minutes, count, break_minutes)
    if total_minutes < min_minutes:
        raise ValidationFailure(f"Event/Task must be at least {min_minutes} minutes to split.")

    plan = []
    cursor = start
    for i, minutes in enumerate(lengths):
        seg_end = cursor + timedelta(minutes=minutes)
        if i == count - 1:
            seg_end = end  # absorbs sub-minute leftovers of the parent
        plan.append((cursor, seg_end))
        cursor = seg_end + timedelta(minutes=break_minutes)
    return plan


def segment_title(base_title: str, index: int, titles: Optional[list[str]] = None) -> str:
    if titles and index < len(titles) and titles[index] and titles[index].strip():
        return titles[index].strip()
    return f"{base_title} — Segment {index + 1}"


def split_event(
    parent_id: str,
    count: int,
    break_minutes: int = 0,
    title_prefix: Optional[str] = None,
    titles: Optional[list[str]] = None,
    min_minutes: int = DEFAULT_MIN_MINUTES,
) -> SplitResult:
    """Split a stored event and persist its segments.

    Segments inherit owner, importance, urgency and difficulty from the parent,
    start pending, and are indexed 0..count-1 in chronological order.
    """
    family = get_family_db(parent_id)
    if family is None:
        raise NotFound("Parent event not found.")
    if family.kind == "child":
        raise ValidationFailure("A segment cannot be split further.")
    if family.kind == "parent":
        raise ValidationFailure(
            f"“{family.event.title}” is already split into {len(family.children)} segment(s). "
            "Delete its segments first."
        )

    parent = family.event
    plan = plan_segments(parent.start, parent.end, count, break_minutes, min_minutes=min_minutes)
    base_title = title_prefix.strip() if title_prefix and title_prefix.strip() else parent.title

    segments = [
        create_event_db(
            event_id=str(uuid.uuid4()),
            owner_id=parent.owner_id,
            title=segment_title(base_title, i, titles),
            start=seg_start,
            end=seg_end,
            importance=parent.importance,
            urgency=parent.urgency,
            difficulty=parent.difficulty,
            segment_of=parent.id,
            segment_index=i,
        )
        for i, (seg_start, seg_end) in enumerate(plan)
    ]
    logger.info("Split event %s into %d segment(s) with %d min breaks", parent.id, count, break_minutes)
    return SplitResult(parent_id=parent.id, segments=segments)


def check_reschedule(event_id: str, start: datetime, end: datetime) -> None:
    """Reject a new [start, end) that would break the event's family layout.

    A split parent cannot move away from its segments. A segment has to stay
    inside its parent's window, after the previous segment and before the next
    one, so segment_index keeps matching chronological order.
    """
    family = get_family_db(event_id)
    if family is None:
        raise NotFound("Event not found.")
    event = family.event

    if family.kind == "parent":
        raise ValidationFailure(
            f"“{event.title}” is split into segments. Delete its segments before rescheduling it."
        )
    if family.kind != "child":
        return

    parent = family.parent
    if start < parent.start or end > parent.end:
        raise ValidationFailure(f"“{event.title}” has to stay within “{parent.title}”.")

    siblings = family.children
    position = next(i for i, child in enumerate(siblings) if child.id == event.id)
    previous = siblings[position - 1] if position > 0 else None
    following = siblings[position + 1] if position + 1 < len(siblings) else None
    if previous and start < previous.end:
        raise ValidationFailure(f"“{event.title}” must start after “{previous.title}” ends.")
    if following and end > following.start:
        raise ValidationFailure(f"“{event.title}” must end before “{following.title}” starts.")
