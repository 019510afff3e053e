"""Weekly completed/missed counts, bucketed by local day of each event's end."""
from collections import defaultdict
from datetime import date, datetime, timedelta, tzinfo
from typing import Optional

from database import get_events_for_owner_db
from models import DayBucket, Event
from timeparse import DAY_ABBR, format_short_day, local_day_bounds


def week_start(now: datetime, tz: tzinfo) -> date:
    """Monday of the week containing now, in tz."""
    today = now.astimezone(tz).date()
    return today - timedelta(days=today.weekday())


def event_outcome(event: Event, now: datetime) -> Optional[str]:
    """completed / missed, with a pending event that already ended counting as missed."""
    if event.status:
        return event.status
    if event.end <= now:
        return "missed"
    return None


def group_outcome(segments: list[Event], now: datetime) -> Optional[str]:
    outcomes = [event_outcome(s, now) for s in segments]
    if all(o == "completed" for o in outcomes):
        return "completed"
    if "missed" in outcomes:
        return "missed"
    return None


def weekly_buckets(events: list[Event], now: datetime, tz: tzinfo) -> list[DayBucket]:
    """Seven Monday-first buckets for the week containing now.

    Standalone events count once each. A split event counts once per day through
    its segments that end that day, and its own row is not counted.
    """
    monday = week_start(now, tz)
    buckets = []
    for i in range(7):
        d = monday + timedelta(days=i)
        buckets.append(DayBucket(key=d.isoformat(), day=DAY_ABBR[d.weekday()], date=format_short_day(d)))
    by_key = {b.key: b for b in buckets}

    window_start, _ = local_day_bounds(monday, tz)
    _, window_end = local_day_bounds(monday + timedelta(days=6), tz)
    parent_ids = {e.segment_of for e in events if e.segment_of}

    segment_groups: dict[tuple[str, str], list[Event]] = defaultdict(list)
    for event in events:
        if not (window_start <= event.end < window_end):
            continue
        key = event.end.astimezone(tz).date().isoformat()
        if event.segment_of:
            segment_groups[(event.segment_of, key)].append(event)
            continue
        if event.id in parent_ids:
            continue
        _count(by_key[key], event_outcome(event, now))

    for (_, key), segments in segment_groups.items():
        _count(by_key[key], group_outcome(segments, now))

    return buckets


def _count(bucket: DayBucket, outcome: Optional[str]) -> None:
    if outcome == "completed":
        bucket.completed += 1
    elif outcome == "missed":
        bucket.missed += 1


def verdict(completed: int, missed: int) -> str:
    if completed + missed == 0:
        return "No data yet."
    return "Good week 👍" if completed >= max(1, missed) else "Needs work 👀"


def weekly_report(owner_id: str, now: datetime, tz: tzinfo) -> dict:
    buckets = weekly_buckets(get_events_for_owner_db(owner_id), now, tz)
    totals = {
        "completed": sum(b.completed for b in buckets),
        "missed": sum(b.missed for b in buckets),
    }
    return {
        "buckets": buckets,
        "totals": totals,
        "verdict": verdict(totals["completed"], totals["missed"]),
    }


def format_report(report: dict) -> str:
    lines = ["Weekly productivity (this week):"]
    lines += [f"• {b.day} ({b.date}): ✅ {b.completed} · ❌ {b.missed}" for b in report["buckets"]]
    totals = report["totals"]
    lines += ["", f"Total: ✅ {totals['completed']} · ❌ {totals['missed']}", report["verdict"]]
    return "\n".join(lines)
