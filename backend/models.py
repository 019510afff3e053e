from datetime import datetime
from typing import Annotated, Any, Literal, Optional

from pydantic import AwareDatetime, BaseModel, BeforeValidator, Field, field_validator


def _lower(v):
    return v.strip().lower() if isinstance(v, str) else v


# Enum-like fields accept any casing ("High", " URGENT ") and store lowercase
Level = Annotated[Literal["high", "low"], BeforeValidator(_lower)]
Difficulty = Annotated[Literal["easy", "medium", "hard"], BeforeValidator(_lower)]
Status = Annotated[Literal["completed", "missed"], BeforeValidator(_lower)]
Intent = Literal[
    "ADD_TASK",
    "ADD_TASK_CONFLICT",
    "EDIT_TASK",
    "EDIT_TASK_CONFLICT",
    "DELETE_TASK",
    "DELETE_SEGMENTS",
    "MARK",
    "MARK_SEGMENT",
    "SPLIT_TASK",
    "PRODUCTIVITY",
    "SCHEDULE",
    "UNKNOWN",
]


class Event(BaseModel):
    id: str
    owner_id: str
    title: str
    start: datetime  # stored and returned as UTC
    end: datetime
    importance: Level
    urgency: Level
    difficulty: Difficulty = "medium"
    status: Optional[Status] = None  # None = pending
    segment_of: Optional[str] = None  # parent event id for segments
    segment_index: Optional[int] = None  # 0-based position among siblings
    is_recurring: bool = False
    created_at: str  # ISO format datetime string

    @property
    def is_segment(self) -> bool:
        return self.segment_of is not None

    @property
    def duration_minutes(self) -> int:
        return int((self.end - self.start).total_seconds() // 60)


class RankedEvent(Event):
    score: float
    rank: int


class EventCreate(BaseModel):
    owner_id: str = Field(..., min_length=1)
    title: str = Field(..., min_length=1)
    start: AwareDatetime
    end: AwareDatetime
    importance: Level
    urgency: Level
    difficulty: Difficulty = "medium"
    allow_double: bool = False

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, v: str) -> str:
        v2 = v.strip()
        if not v2:
            raise ValueError("title must not be blank")
        return v2


class EventUpdate(BaseModel):
    title: Optional[str] = None
    start: Optional[AwareDatetime] = None
    end: Optional[AwareDatetime] = None
    importance: Optional[Level] = None
    urgency: Optional[Level] = None
    difficulty: Optional[Difficulty] = None


class StatusUpdate(BaseModel):
    status: Status


class SplitRequest(BaseModel):
    count: int
    break_minutes: int = Field(0, ge=0)
    title_prefix: Optional[str] = None
    titles: Optional[list[str]] = None


class ChatRequest(BaseModel):
    owner_id: str = Field(..., min_length=1)
    text: str = Field(..., min_length=1)


class LLMRequest(BaseModel):
    system_prompt: str = ""
    user_prompt: str = Field(..., min_length=1)


class Suggestion(BaseModel):
    start: datetime
    end: datetime
    label: str  # e.g. "Nov 12, 4:00 PM – 6:00 PM"
    hint: str  # "After conflict", "+1 hour", "Tomorrow 8:00 AM"


class CommandResult(BaseModel):
    intent: Intent
    message: str
    payload: Optional[dict[str, Any]] = None


class SplitResult(BaseModel):
    parent_id: str
    segments: list[Event]


class StatusResult(BaseModel):
    event_id: str
    status: Optional[Status]
    parent_updated: bool = False
    parent: Optional[Event] = None
    finalized: bool = False
    cascaded: int = 0  # segments whose status was set by the cascade
    changed: bool = True  # False when the event was already resolved
    message: str = ""


class DayBucket(BaseModel):
    key: str  # YYYY-MM-DD in the operating timezone
    day: str  # Mon, Tue, ...
    date: str  # Nov 10
    completed: int = 0
    missed: int = 0


class EventFamily(BaseModel):
    """An event together with the relatives it is linked to.

    kind is "standalone" (no segments), "parent" (owns segments) or "child"
    (a segment; `parent` is its owner and `children` are all its siblings,
    itself included). Children are ordered by segment_index.
    """
    kind: Literal["standalone", "parent", "child"]
    event: Event
    parent: Optional[Event] = None
    children: list[Event] = Field(default_factory=list)

    @property
    def root(self) -> Event:
        return self.parent if self.kind == "child" else self.event
