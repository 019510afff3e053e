"""
Completion status of events and their segments.

States: pending (None), "completed", "missed". An event only ever leaves
pending; marking an already-resolved event is a no-op.

Marking is two steps: mark_event() writes the event itself, then
propagate_status() reconciles the family:
  - a segment: once every sibling is resolved the parent is finalized,
    "missed" if any sibling was missed, else "completed"
  - a parent marked completed: pending segments become completed
  - a parent marked missed: pending segments become missed only when
    cascade_missed is on
"""
import logging
from datetime import datetime, tzinfo
from typing import Iterable, Optional

from database import get_family_db, set_status_db, update_event_db
from errors import NotFound, TemporalPolicyViolation
from models import Event, StatusResult
from timeparse import format_when

logger = logging.getLogger(__name__)

STATUSES = ("completed", "missed")


def normalize_status(word: str) -> Optional[str]:
    """Map a user word to a status: complete/completed/done -> completed, missed/incomplete -> missed."""
    word = (word or "").strip().lower()
    if word in ("complete", "completed", "done"):
        return "completed"
    if word in ("missed", "incomplete"):
        return "missed"
    return None


def finalize_status(statuses: Iterable[Optional[str]]) -> Optional[str]:
    """Parent status derived from its segments, or None while any segment is pending."""
    statuses = list(statuses)
    if not statuses or any(s is None for s in statuses):
        return None
    return "missed" if "missed" in statuses else "completed"


def cascade_targets(children: list[Event], status: str, cascade_missed: bool) -> list[Event]:
    """Segments a parent's new status should be copied to."""
    if status == "completed" or (status == "missed" and cascade_missed):
        return [c for c in children if c.status is None]
    return []


def check_temporal_policy(
    event: Event, status: str, now: datetime, tz: tzinfo, children: Optional[list[Event]] = None
) -> None:
    """Completed requires the event, and any segment still pending, to have ended.

    Missed is allowed any time.
    """
    if status != "completed":
        return
    if event.end > now:
        raise TemporalPolicyViolation(
            f"Cannot mark “{event.title}” as completed: it ends at {format_when(event.end, tz)} "
            "(still in the future)."
        )
    for child in children or []:
        if child.status is None and child.end > now:
            raise TemporalPolicyViolation(
                f"Cannot mark “{event.title}” as completed: “{child.title}” ends at "
                f"{format_when(child.end, tz)} (still in the future)."
            )


def mark_event(
    event_id: str,
    status: str,
    now: datetime,
    tz: tzinfo,
    cascade_missed: bool = False,
    enforce_completion_after_end: bool = True,
) -> StatusResult:
    """Set an event's status and reconcile its family."""
    if status not in STATUSES:
        raise ValueError(f"unknown status {status!r}")

    family = get_family_db(event_id)
    if family is None:
        raise NotFound("Event not found.")
    event = family.event

    if event.status is not None:
        return StatusResult(
            event_id=event.id,
            status=event.status,
            changed=False,
            message=f"“{event.title}” is already marked {event.status}.",
        )

    if enforce_completion_after_end:
        children = family.children if family.kind == "parent" else None
        check_temporal_policy(event, status, now, tz, children=children)

    update_event_db(event.id, status=status)
    logger.info("Marked event %s as %s", event.id, status)
    return propagate_status(event.id, status, cascade_missed=cascade_missed)


def propagate_status(event_id: str, status: str, cascade_missed: bool = False) -> StatusResult:
    """Second step of a mark: finalize the parent or cascade to segments."""
    family = get_family_db(event_id)
    if family is None:
        raise NotFound("Event not found.")

    result = StatusResult(event_id=family.event.id, status=family.event.status)

    if family.kind == "child":
        parent = family.parent
        final = finalize_status(c.status for c in family.children)
        if final and parent.status is None:
            result.parent = update_event_db(parent.id, status=final)
            result.parent_updated = True
            result.finalized = True
            logger.info("Finalized parent %s as %s", parent.id, final)
        else:
            result.parent = parent

    elif family.kind == "parent":
        targets = cascade_targets(family.children, status, cascade_missed)
        result.cascaded = set_status_db([c.id for c in targets], status, only_pending=True)
        result.finalized = result.cascaded > 0
        if result.cascaded:
            logger.info("Cascaded %s to %d segment(s) of %s", status, result.cascaded, family.event.id)

    result.message = "Event and/or its segments finalized" if result.finalized else "Event status updated"
    return result
