import logging
import sqlite3
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone

import anthropic
from fastapi import FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

import config
from conflicts import ConflictRecord, build_suggestions, detect_conflicts
from database import (
    create_event_db,
    delete_children_db,
    delete_event_db,
    get_event_db,
    get_events_for_owner_db,
    init_db,
    update_event_db,
)
from errors import SchedulerError, TemporalPolicyViolation, ValidationFailure
from intents import route_command
from models import (
    ChatRequest,
    CommandResult,
    DayBucket,
    Event,
    EventCreate,
    EventUpdate,
    LLMRequest,
    RankedEvent,
    SplitRequest,
    SplitResult,
    StatusResult,
    StatusUpdate,
)
from productivity import weekly_report
from prompts import SYSTEM_PROMPT
from ranking import rank_events
from segmentation import check_reschedule, split_event
from status import mark_event

logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s")
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI):
    # Startup
    init_db()
    logger.info("Scheduler ready (timezone %s)", config.TZ_NAME)
    yield
    # Shutdown (nothing to do)

app = FastAPI(lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

client = anthropic.AsyncAnthropic(api_key=config.ANTHROPIC_API_KEY) if config.ANTHROPIC_API_KEY else None


@app.exception_handler(SchedulerError)
async def scheduler_error_handler(_request: Request, exc: SchedulerError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"detail": str(exc)})


@app.exception_handler(sqlite3.Error)
async def storage_error_handler(request: Request, exc: sqlite3.Error) -> JSONResponse:
    logger.error("Storage failure on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={"detail": "Internal storage error"})


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def conflict_response(record: ConflictRecord, now: datetime) -> JSONResponse:
    suggestions = build_suggestions(record.conflicts, record.duration_minutes, now, config.TZ)
    return JSONResponse(
        status_code=409,
        content=jsonable_encoder({
            "error": "Exact time conflict",
            "conflicts": record.conflicts,
            "suggestions": suggestions,
            "exact": True,
        }),
    )


@app.get("/healthz")
def healthz() -> dict:
    return {"ok": True}


@app.get("/events/{owner_id}")
def get_events(owner_id: str) -> list[RankedEvent]:
    """The owner's events, highest priority first."""
    return rank_events(get_events_for_owner_db(owner_id), utc_now())


@app.post("/events", response_model=None)
def create_event(event_data: EventCreate) -> Event | JSONResponse:
    if event_data.end <= event_data.start:
        raise ValidationFailure("end must be after start")
    now = utc_now()
    if event_data.start <= now:
        raise TemporalPolicyViolation("Event must start in the future.")

    if not event_data.allow_double:
        record = detect_conflicts(event_data.owner_id, event_data.start, event_data.end)
        if record.has_conflict:
            return conflict_response(record, now)

    return create_event_db(
        str(uuid.uuid4()),
        event_data.owner_id,
        event_data.title,
        event_data.start,
        event_data.end,
        event_data.importance,
        event_data.urgency,
        event_data.difficulty,
    )


@app.patch("/events/{event_id}", response_model=None)
def update_event(event_id: str, event_data: EventUpdate) -> Event | JSONResponse:
    current = get_event_db(event_id)
    if not current:
        raise HTTPException(status_code=404, detail="Event not found")

    updates = event_data.model_dump(exclude_none=True)
    if "title" in updates:
        updates["title"] = updates["title"].strip()
        if not updates["title"]:
            raise ValidationFailure("title must not be blank")
    start = updates.get("start", current.start)
    end = updates.get("end", current.end)
    if end <= start:
        raise ValidationFailure("end must be after start")

    if (start, end) != (current.start, current.end):
        check_reschedule(event_id, start, end)
        record = detect_conflicts(current.owner_id, start, end, exclude_id=event_id)
        if record.has_conflict:
            return conflict_response(record, utc_now())

    return update_event_db(event_id, **updates)


@app.delete("/events/{event_id}")
def delete_event(event_id: str) -> dict:
    deleted_segments = delete_children_db(event_id)
    delete_event_db(event_id)
    return {"status": "deleted", "deleted_segments": deleted_segments}


@app.patch("/events/{event_id}/status")
def update_status(event_id: str, status_data: StatusUpdate) -> StatusResult:
    return mark_event(
        event_id,
        status_data.status,
        utc_now(),
        config.TZ,
        cascade_missed=config.CASCADE_MISSED_TO_SEGMENTS,
        enforce_completion_after_end=config.ENFORCE_COMPLETION_AFTER_END,
    )


@app.post("/events/{event_id}/split")
def split(event_id: str, split_data: SplitRequest) -> SplitResult:
    return split_event(
        event_id,
        split_data.count,
        split_data.break_minutes,
        title_prefix=split_data.title_prefix,
        titles=split_data.titles,
        min_minutes=config.SPLIT_MIN_MINUTES,
    )


@app.get("/dashboard/weekly/{owner_id}")
def weekly_dashboard(owner_id: str) -> list[DayBucket]:
    """Completed/missed counts for Monday..Sunday of the current week."""
    return weekly_report(owner_id, utc_now(), config.TZ)["buckets"]


@app.post("/chat")
def chat(chat_request: ChatRequest) -> CommandResult:
    """Run one fixed-grammar command; never calls the LLM."""
    return route_command(chat_request.owner_id, chat_request.text, now=utc_now(), tz=config.TZ)


@app.post("/api/llm")
async def llm(llm_request: LLMRequest) -> dict:
    """Forward a prompt to Claude and return its text."""
    if client is None:
        raise HTTPException(status_code=503, detail="LLM is not configured")

    today = datetime.now(config.TZ).strftime("%Y-%m-%d")
    system_prompt = llm_request.system_prompt or SYSTEM_PROMPT.format(today=today, timezone=config.TZ_NAME)

    try:
        response = await client.messages.create(
            model=config.LLM_MODEL,
            max_tokens=1024,
            system=system_prompt,
            messages=[{"role": "user", "content": llm_request.user_prompt}],
        )
    except anthropic.APIError as e:
        logger.warning("LLM provider error: %s", e)
        raise HTTPException(status_code=502, detail=f"LLM provider error: {e}")

    text = "".join(block.text for block in response.content if block.type == "text")
    return {"text": text}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
