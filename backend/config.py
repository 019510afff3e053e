import os
from zoneinfo import ZoneInfo

from dotenv import load_dotenv

load_dotenv()

BACKEND_DIR = os.path.dirname(os.path.abspath(__file__))

# Operating timezone: used for relative phrases ("tomorrow", "2-4pm") and day buckets only.
# Stored instants are always UTC.
TZ_NAME = os.getenv("SCHEDULER_TZ", "Asia/Manila")
TZ = ZoneInfo(TZ_NAME)

DATABASE_PATH = os.getenv("SCHEDULER_DB_PATH", os.path.join(BACKEND_DIR, "scheduler.db"))

SPLIT_MIN_MINUTES = int(os.getenv("SPLIT_MIN_MINUTES", "180"))


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes"}


CASCADE_MISSED_TO_SEGMENTS = _flag("CASCADE_MISSED_TO_SEGMENTS", "false")
ENFORCE_COMPLETION_AFTER_END = _flag("ENFORCE_COMPLETION_AFTER_END", "true")

ANTHROPIC_API_KEY = os.getenv("ANTHROPIC_API_KEY")
LLM_MODEL = os.getenv("LLM_MODEL", "claude-sonnet-4-5")

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "http://localhost:5173").split(",") if o.strip()]
