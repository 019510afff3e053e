"""
Chat command routing.

A command is matched against RULES top to bottom and the first matching
rule's handler runs. Handlers turn the text into one storage mutation (or a
query) and return a CommandResult; recoverable failures raised as
SchedulerError become a plain message under the rule's intent.

    add task study react november 12 2-4pm urgent   -> ADD_TASK
    edit study react to nov 13 3-5pm                 -> EDIT_TASK
    mark segment 2 of study react completed          -> MARK_SEGMENT
    delete segments of study react                   -> DELETE_SEGMENTS
    split study react into 3 with 10m breaks         -> SPLIT_TASK
    what's my schedule tomorrow                      -> SCHEDULE
"""
import logging
import re
import uuid
from dataclasses import dataclass
from datetime import date, datetime, tzinfo
from typing import Callable, NamedTuple, Optional

import config
from attributes import extract_attributes, guess_title, guess_title_for_delete, mentioned_attributes
from conflicts import build_suggestions, detect_conflicts
from database import (
    create_event_db,
    delete_children_db,
    delete_event_db,
    find_event_by_title_db,
    get_children_db,
    get_event_db,
    get_events_between_db,
    update_event_db,
)
from errors import NotFound, ParseFailure, SchedulerError, TemporalPolicyViolation
from models import CommandResult, Event
from productivity import format_report, weekly_report
from prompts import HELP_MESSAGE
from segmentation import check_reschedule, split_event
from status import mark_event, normalize_status
from timeparse import (
    format_clock,
    format_day,
    format_span,
    local_day_bounds,
    parse_requested_date,
    parse_time_range,
    resolve_day,
)

logger = logging.getLogger(__name__)

PRODUCTIVITY_RE = re.compile(r"\b(productivity|good week|bad week|weekly)\b")
ADD_RE = re.compile(r"^\s*(add|create|make|new)\b")
EDIT_RE = re.compile(r"\b(edit|reschedule|move)\b")
MARK_VERB_RE = re.compile(r"\b(mark(?:ed)?|set)\b")
STATUS_WORD_RE = re.compile(r"\b(complete|completed|done|missed|incomplete)\b", re.IGNORECASE)
DELETE_RE = re.compile(r"\b(delete|remove)\b")
SPLIT_RE = re.compile(r"\bsplit\b")
SCHEDULE_RE = re.compile(r"\b(schedule|scheduled|agenda)\b")

SEGMENT_OF_RE = re.compile(r"\bsegment\s+(\d{1,3})\s+(?:of|for)\s+(.+?)\s*[.,;!]?\s*$", re.IGNORECASE)
SEGMENT_RE = re.compile(r"\bsegment\s+(\d{1,3})\s+(.+?)\s*[.,;!]?\s*$", re.IGNORECASE)
MARK_NOISE_RE = re.compile(
    r"\b(marked|mark|set|as|complete|completed|done|missed|incomplete)\b", re.IGNORECASE
)

DELETE_PHRASE_RES = (
    re.compile(r"\b(?:delete|remove)\s+(?:the\s+)?(?:segments?|parts?)\s+(?:of|for)\s+(.+)$", re.IGNORECASE),
    re.compile(r"\b(?:delete|remove)\s+(?:the\s+)?(.+?)\s+(?:segments?|parts?)$", re.IGNORECASE),
    re.compile(r"\b(?:delete|remove)\s+(?:the\s+)?(.+)$", re.IGNORECASE),
)
SEGMENTS_WORD_RE = re.compile(r"\b(segments|parts)\b")

SPLIT_COUNT_RE = re.compile(r"\binto\s+(\d{1,2})\b")
SPLIT_BREAK_RE = re.compile(r"\bwith\s+(?:a\s+)?(\d{1,3})\s*(?:m|mins?|minutes?)\s*-?\s*breaks?\b")


@dataclass
class CommandContext:
    owner_id: str
    text: str
    now: datetime
    tz: tzinfo
    cascade_missed: bool = False
    enforce_completion_after_end: bool = True
    split_min_minutes: int = 180

    @property
    def lower(self) -> str:
        return self.text.strip().lower()

    @property
    def today(self) -> date:
        return self.now.astimezone(self.tz).date()


class Rule(NamedTuple):
    intent: str
    matches: Callable[[str], bool]
    handler: Callable[[CommandContext], Optional[CommandResult]]


# Title resolution

def _find(owner_id: str, guess: str, modes=("substring", "tokens"), segments=None, pending_only=False) -> Optional[Event]:
    for mode in modes:
        event = find_event_by_title_db(owner_id, guess, mode=mode, segments=segments, pending_only=pending_only)
        if event:
            return event
    return None


def resolve_target(owner_id: str, guess: str, pending_only: bool = False) -> Optional[Event]:
    """Most recently started event matching guess, preferring non-segments."""
    return (
        _find(owner_id, guess, segments=False, pending_only=pending_only)
        or _find(owner_id, guess, segments=True, pending_only=pending_only)
    )


def resolve_parent(owner_id: str, guess: str) -> Optional[Event]:
    """A non-segment event matching guess, or the parent of a matching segment."""
    parent = _find(owner_id, guess, segments=False)
    if parent:
        return parent
    child = _find(owner_id, guess, modes=("substring",), segments=True)
    return get_event_db(child.segment_of) if child else None


def _conflict_lines(suggestions) -> list[str]:
    return [f"• {s.label} ({s.hint})" for s in suggestions]


# Handlers

def handle_productivity(ctx: CommandContext) -> CommandResult:
    report = weekly_report(ctx.owner_id, ctx.now, ctx.tz)
    return CommandResult(intent="PRODUCTIVITY", message=format_report(report), payload={"report": report})


def handle_add(ctx: CommandContext) -> CommandResult:
    day = resolve_day(ctx.text, ctx.today)
    span = parse_time_range(ctx.text, day, ctx.tz)
    if not span:
        raise ParseFailure("I couldn’t find a valid time range (e.g., 2-4pm).")
    start, end = span
    if start <= ctx.now:
        raise TemporalPolicyViolation(
            "I can't add an event that starts in the past. Please choose a future start time."
        )

    title = guess_title(ctx.text)
    attrs = extract_attributes(ctx.text)

    record = detect_conflicts(ctx.owner_id, start, end)
    if record.has_conflict:
        suggestions = build_suggestions(record.conflicts, record.duration_minutes, ctx.now, ctx.tz)
        first = record.conflicts[0]
        message = "\n".join([
            f"Exact time conflict with “{first.title}” ({format_span(first.start, first.end, ctx.tz)}).",
            "Here are some suggestions:",
            *_conflict_lines(suggestions),
            f"Reply with one of these times, e.g. “add task {title} <time>”.",
        ])
        return CommandResult(
            intent="ADD_TASK_CONFLICT",
            message=message,
            payload={
                "conflicts": record.conflicts,
                "suggestions": suggestions,
                "new_event": {
                    "owner_id": ctx.owner_id,
                    "title": title,
                    "start": start,
                    "end": end,
                    **attrs,
                    "allow_double": True,
                },
            },
        )

    event = create_event_db(str(uuid.uuid4()), ctx.owner_id, title, start, end, **attrs)
    return CommandResult(
        intent="ADD_TASK",
        message=f"Added “{event.title}” on {format_span(event.start, event.end, ctx.tz)}.",
        payload={"event": event},
    )


def handle_edit(ctx: CommandContext) -> CommandResult:
    guess = guess_title(ctx.text, fallback="")
    if not guess:
        return CommandResult(intent="EDIT_TASK", message="Which task should I edit?")

    event = resolve_target(ctx.owner_id, guess, pending_only=True)
    if not event:
        raise NotFound(f"I can’t find a task matching “{guess}”.")

    day = resolve_day(ctx.text, ctx.today, default=event.start.astimezone(ctx.tz).date())
    span = parse_time_range(ctx.text, day, ctx.tz)
    if not span:
        raise ParseFailure("I couldn’t find the new time range (e.g., 3-5pm).")
    start, end = span

    check_reschedule(event.id, start, end)

    record = detect_conflicts(ctx.owner_id, start, end, exclude_id=event.id)
    if record.has_conflict:
        suggestions = build_suggestions(record.conflicts, record.duration_minutes, ctx.now, ctx.tz)
        message = "\n".join([
            f"That new time exactly conflicts with “{record.conflicts[0].title}”.",
            "Suggestions:",
            *_conflict_lines(suggestions),
        ])
        return CommandResult(
            intent="EDIT_TASK_CONFLICT",
            message=message,
            payload={
                "conflicts": record.conflicts,
                "suggestions": suggestions,
                "target": {"id": event.id, "title": event.title},
            },
        )

    updated = update_event_db(event.id, start=start, end=end, **mentioned_attributes(ctx.text))
    return CommandResult(
        intent="EDIT_TASK",
        message=f"Rescheduled “{updated.title}” to {format_span(updated.start, updated.end, ctx.tz)}.",
        payload={"event": updated},
    )


def _clean_mark_phrase(text: str) -> str:
    return MARK_NOISE_RE.sub(" ", text or "").strip()


def _mark_segment(ctx: CommandContext, segment_number: int, phrase: str, status: str) -> CommandResult:
    guess = guess_title(_clean_mark_phrase(phrase), fallback="")
    parent = resolve_parent(ctx.owner_id, guess) if guess else None
    if not parent:
        raise NotFound(f"I can't find a parent task matching “{phrase.strip()}”.")

    children = get_children_db(parent.id)
    if not children:
        raise NotFound(f"No segments found for “{parent.title}”.")
    index = segment_number - 1
    if index < 0 or index >= len(children):
        raise NotFound(
            f"Segment {segment_number} not found for “{parent.title}” (there are {len(children)} segment(s))."
        )
    child = next((c for c in children if c.segment_index == index), children[index])

    result = mark_event(
        child.id,
        status,
        ctx.now,
        ctx.tz,
        cascade_missed=ctx.cascade_missed,
        enforce_completion_after_end=ctx.enforce_completion_after_end,
    )
    payload = {"segment": get_event_db(child.id), "parent_id": parent.id, "status_result": result}
    if not result.changed:
        return CommandResult(intent="MARK_SEGMENT", message=result.message, payload=payload)

    message = f"Marked segment {segment_number} of “{parent.title}” as {status}."
    if result.finalized:
        message += f" Parent finalized as {result.parent.status}."
    return CommandResult(intent="MARK_SEGMENT", message=message, payload=payload)


def handle_mark(ctx: CommandContext) -> Optional[CommandResult]:
    status_word = STATUS_WORD_RE.search(ctx.text)
    status = normalize_status(status_word.group(1)) if status_word else None
    if status is None:
        return None

    segment = SEGMENT_OF_RE.search(ctx.text) or SEGMENT_RE.search(ctx.text)
    if segment:
        return _mark_segment(ctx, int(segment.group(1)), segment.group(2), status)

    guess = guess_title(_clean_mark_phrase(ctx.text), fallback="")
    if not guess:
        return CommandResult(intent="MARK", message="Which task should I mark?")
    target = resolve_parent(ctx.owner_id, guess)
    if not target:
        raise NotFound(f"I can’t find a parent task matching “{guess}”.")

    result = mark_event(
        target.id,
        status,
        ctx.now,
        ctx.tz,
        cascade_missed=ctx.cascade_missed,
        enforce_completion_after_end=ctx.enforce_completion_after_end,
    )
    payload = {"parent_id": target.id, "status_result": result}
    if not result.changed:
        return CommandResult(intent="MARK", message=result.message, payload=payload)

    message = f"Marked “{target.title}” as {status}."
    if result.cascaded:
        message += f" {result.cascaded} pending segment(s) also marked {status}."
    return CommandResult(intent="MARK", message=message, payload=payload)


def handle_delete(ctx: CommandContext) -> CommandResult:
    segments_only = bool(SEGMENTS_WORD_RE.search(ctx.lower))
    intent = "DELETE_SEGMENTS" if segments_only else "DELETE_TASK"

    phrase = None
    for pattern in DELETE_PHRASE_RES:
        m = pattern.search(ctx.text.strip())
        if m:
            phrase = m.group(1).strip()
            break
    guess = guess_title_for_delete(phrase or ctx.text)
    if not guess:
        example = "delete segments of study react" if segments_only else "delete study react"
        what = "Which task’s segments should I delete?" if segments_only else "Which task should I delete?"
        return CommandResult(intent=intent, message=f"{what} e.g. `{example}`")

    if segments_only:
        parent = resolve_parent(ctx.owner_id, guess)
        if not parent:
            raise NotFound(f"I can’t find a parent task matching “{guess}”.")
        count = delete_children_db(parent.id)
        return CommandResult(
            intent="DELETE_SEGMENTS",
            message=f"Deleted {count} segment(s) for “{parent.title}”.",
            payload={"parent_id": parent.id, "deleted_count": count},
        )

    event = _find(ctx.owner_id, guess, modes=("exact", "substring", "tokens"))
    if not event:
        raise NotFound(f"I can’t find a task matching “{guess}”.")

    delete_event_db(event.id)
    if event.is_segment:
        return CommandResult(
            intent="DELETE_TASK",
            message=f"Deleted segment “{event.title}”.",
            payload={"deleted_parent": False, "deleted_segments": 1},
        )
    count = delete_children_db(event.id)
    return CommandResult(
        intent="DELETE_TASK",
        message=f"Deleted “{event.title}” and {count} segment(s).",
        payload={"deleted_parent": True, "deleted_segments": count},
    )


def handle_split(ctx: CommandContext) -> CommandResult:
    guess = guess_title(ctx.text, fallback="")
    if not guess:
        return CommandResult(intent="SPLIT_TASK", message="Which task should I split?")
    event = resolve_target(ctx.owner_id, guess, pending_only=True)
    if not event:
        raise NotFound(f"I can’t find a task matching “{guess}”.")

    count_match = SPLIT_COUNT_RE.search(ctx.lower)
    count = max(2, int(count_match.group(1))) if count_match else 2
    break_match = SPLIT_BREAK_RE.search(ctx.lower)
    break_minutes = int(break_match.group(1)) if break_match else 0

    result = split_event(event.id, count, break_minutes, min_minutes=ctx.split_min_minutes)
    lines = [f"Split “{event.title}” into {len(result.segments)} segment(s):"]
    lines += [f"• {s.title}: {format_span(s.start, s.end, ctx.tz)}" for s in result.segments]
    return CommandResult(
        intent="SPLIT_TASK",
        message="\n".join(lines),
        payload={"parent_id": result.parent_id, "segments": result.segments},
    )


def _describe(event: Event, tz: tzinfo) -> str:
    attrs = []
    if event.importance == "high":
        attrs.append("important")
    if event.urgency == "high":
        attrs.append("urgent")
    if event.difficulty and event.difficulty != "medium":
        attrs.append(event.difficulty)
    attr_text = f" • {', '.join(attrs)}" if attrs else ""
    done = f" [{event.status}]" if event.status else ""
    return f"• {format_clock(event.start, tz)}–{format_clock(event.end, tz)} — {event.title}{attr_text}{done}"


def handle_schedule(ctx: CommandContext) -> CommandResult:
    day = parse_requested_date(ctx.text, ctx.today) or ctx.today
    logger.info("Schedule request %r resolved to %s", ctx.text, day.isoformat())
    day_start, day_end = local_day_bounds(day, ctx.tz)
    events = get_events_between_db(ctx.owner_id, day_start, day_end)

    label = format_day(day)
    if not events:
        return CommandResult(
            intent="SCHEDULE",
            message=f"No tasks found for {label}.",
            payload={"date": day.isoformat(), "events": []},
        )
    return CommandResult(
        intent="SCHEDULE",
        message="\n".join([f"Schedule for {label}:", *[_describe(e, ctx.tz) for e in events]]),
        payload={"date": day.isoformat(), "events": events},
    )


RULES: list[Rule] = [
    Rule("PRODUCTIVITY", lambda lower: bool(PRODUCTIVITY_RE.search(lower)), handle_productivity),
    Rule("ADD_TASK", lambda lower: bool(ADD_RE.search(lower)), handle_add),
    Rule("EDIT_TASK", lambda lower: bool(EDIT_RE.search(lower)), handle_edit),
    Rule(
        "MARK",
        lambda lower: bool(MARK_VERB_RE.search(lower) and STATUS_WORD_RE.search(lower)),
        handle_mark,
    ),
    Rule("DELETE_TASK", lambda lower: bool(DELETE_RE.search(lower)), handle_delete),
    Rule("SPLIT_TASK", lambda lower: bool(SPLIT_RE.search(lower)), handle_split),
    Rule("SCHEDULE", lambda lower: bool(SCHEDULE_RE.search(lower)), handle_schedule),
]


def classify(text: str) -> str:
    """Intent name of the first rule that matches, or UNKNOWN."""
    lower = (text or "").strip().lower()
    for rule in RULES:
        if rule.matches(lower):
            return rule.intent
    return "UNKNOWN"


def route_command(
    owner_id: str,
    text: str,
    now: Optional[datetime] = None,
    tz: Optional[tzinfo] = None,
    cascade_missed: Optional[bool] = None,
    enforce_completion_after_end: Optional[bool] = None,
    split_min_minutes: Optional[int] = None,
) -> CommandResult:
    """Run one chat command for owner_id. Unset options fall back to config."""
    tz = tz or config.TZ
    ctx = CommandContext(
        owner_id=owner_id,
        text=text or "",
        now=now or datetime.now(tz),
        tz=tz,
        cascade_missed=config.CASCADE_MISSED_TO_SEGMENTS if cascade_missed is None else cascade_missed,
        enforce_completion_after_end=(
            config.ENFORCE_COMPLETION_AFTER_END
            if enforce_completion_after_end is None
            else enforce_completion_after_end
        ),
        split_min_minutes=config.SPLIT_MIN_MINUTES if split_min_minutes is None else split_min_minutes,
    )

    for rule in RULES:
        if not rule.matches(ctx.lower):
            continue
        try:
            result = rule.handler(ctx)
        except SchedulerError as e:
            intent = _failure_intent(rule, ctx)
            logger.info("Command %r -> %s: %s", ctx.text, intent, e)
            return CommandResult(intent=intent, message=str(e))
        if result is not None:
            logger.info("Command %r -> %s", ctx.text, result.intent)
            return result

    return CommandResult(intent="UNKNOWN", message=HELP_MESSAGE)


def _failure_intent(rule: Rule, ctx: CommandContext) -> str:
    """Intent reported when a handler fails; mark and delete have sub-intents."""
    if rule.intent == "MARK" and (SEGMENT_OF_RE.search(ctx.text) or SEGMENT_RE.search(ctx.text)):
        return "MARK_SEGMENT"
    if rule.intent == "DELETE_TASK" and SEGMENTS_WORD_RE.search(ctx.lower):
        return "DELETE_SEGMENTS"
    return rule.intent
