"""
Date and time-range recognition for chat commands.

Only a fixed grammar is understood:
    "november 12", "nov 12, 2026", "tomorrow", "day after tomorrow",
    "2-4pm", "from 9:30am to 11", "2:15 - 3:45 pm".
All functions take "today" / the timezone explicitly; none read the clock.
"""
import re
from datetime import date, datetime, time, timedelta, tzinfo
from typing import Optional

MONTH_PATTERN = (
    r"(jan(?:uary)?|feb(?:ruary)?|mar(?:ch)?|apr(?:il)?|may|jun(?:e)?|jul(?:y)?|aug(?:ust)?"
    r"|sep(?:t(?:ember)?)?|oct(?:ober)?|nov(?:ember)?|dec(?:ember)?)"
)
MONTHS = {
    "jan": 1, "feb": 2, "mar": 3, "apr": 4, "may": 5, "jun": 6,
    "jul": 7, "aug": 8, "sep": 9, "oct": 10, "nov": 11, "dec": 12,
}
MONTH_ABBR = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")
DAY_ABBR = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")

MONTH_DAY_RE = re.compile(
    r"\b" + MONTH_PATTERN + r"\s+(\d{1,2})(?:st|nd|rd|th)?(?:(?:,\s*|\s+)(\d{4}))?\b",
    re.IGNORECASE,
)
ISO_DATE_RE = re.compile(r"\b(\d{4})[/-](\d{1,2})[/-](\d{1,2})\b")
NUMERIC_DATE_RE = re.compile(r"\b(\d{1,2})[/-](\d{1,2})(?:[/-](\d{2,4}))?\b")

# h[:mm][am|pm]-h[:mm][am|pm] after normalization; not part of a date like 2026-11-12
TIME_RANGE_RE = re.compile(
    r"(?<![\d:/-])(\d{1,2})(?::(\d{2}))?(?:\s*(am|pm)\b)?"
    r"-(\d{1,2})(?::(\d{2}))?(?:\s*(am|pm)\b)?(?![\d/-])",
    re.IGNORECASE,
)


def find_month_day(text: str, today: date) -> Optional[date]:
    """Month name + day (+ optional year). A yearless date already past rolls to next year."""
    m = MONTH_DAY_RE.search(text or "")
    if not m:
        return None
    month = MONTHS[m.group(1).lower()[:3]]
    day = int(m.group(2))
    year = int(m.group(3)) if m.group(3) else today.year
    try:
        found = date(year, month, day)
    except ValueError:
        return None
    if not m.group(3) and found < today:
        try:
            found = date(year + 1, month, day)
        except ValueError:
            return None
    return found


def find_relative_day(text: str, today: date) -> Optional[date]:
    lower = (text or "").lower()
    if re.search(r"\bday after tomorrow\b", lower):
        return today + timedelta(days=2)
    if re.search(r"\btomorrow\b", lower):
        return today + timedelta(days=1)
    if re.search(r"\btoday\b", lower):
        return today
    return None


def resolve_day(text: str, today: date, default: Optional[date] = None) -> date:
    """Explicit date phrase, else relative keyword, else default (today if not given)."""
    return find_month_day(text, today) or find_relative_day(text, today) or default or today


def _to_24(hour: int, meridiem: Optional[str]) -> int:
    if not meridiem:
        return hour
    base = hour % 12
    return base + 12 if meridiem == "pm" else base  # 12am -> 0, 12pm -> 12


def parse_time_range(text: str, day: date, tz: tzinfo) -> Optional[tuple[datetime, datetime]]:
    """Find a time range in text and place it on day in tz.

    Returns (start, end) as aware datetimes, or None when no range is present or
    the range does not end after it starts.
    """
    if not text:
        return None
    s = re.sub(r"[–—]", "-", text)
    s = re.sub(r"\s+to\s+", "-", s, flags=re.IGNORECASE)
    s = re.sub(r"\s*-\s*", "-", s)
    s = re.sub(r"\bfrom\s+", "", s, flags=re.IGNORECASE)

    m = TIME_RANGE_RE.search(s)
    if not m:
        return None

    h1 = int(m.group(1))
    min1 = int(m.group(2) or 0)
    ap1 = m.group(3).lower() if m.group(3) else None
    h2 = int(m.group(4))
    min2 = int(m.group(5) or 0)
    ap2 = m.group(6).lower() if m.group(6) else None

    start_hour = _to_24(h1, ap1)
    end_hour = _to_24(h2, ap2)

    # One-sided meridiem applies to the bare side too: "2-4pm" is 2pm-4pm
    if ap1 and not ap2 and h2 <= 12:
        end_hour = _to_24(h2, ap1)
    elif ap2 and not ap1 and h1 <= 12:
        start_hour = _to_24(h1, ap2)

    # No meridiem at all and the end does not follow the start: "10-2" is 10am-2pm
    if not ap1 and not ap2 and start_hour <= 12 and end_hour <= 12 and end_hour <= start_hour:
        if end_hour + 12 <= 23:
            end_hour += 12
        if end_hour <= start_hour and start_hour + 12 <= 23:
            start_hour += 12

    if start_hour > 23 or end_hour > 23 or min1 > 59 or min2 > 59:
        return None

    start = datetime.combine(day, time(start_hour, min1), tzinfo=tz)
    end = datetime.combine(day, time(end_hour, min2), tzinfo=tz)
    if end <= start:
        return None
    return start, end


def parse_requested_date(text: str, today: date) -> Optional[date]:
    """Date for a schedule query: relative, ISO, month name, then numeric MM/DD."""
    if not text:
        return None
    s = text.lower().strip()
    s = re.sub(r"(\d)(st|nd|rd|th)\b", r"\1", s)
    s = re.sub(r"[.,]", " ", s)
    s = re.sub(r"([a-z])(\d)", r"\1 \2", s)
    s = re.sub(r"\s+", " ", s)

    relative = find_relative_day(s, today)
    if relative:
        return relative

    iso = ISO_DATE_RE.search(s)
    if iso:
        try:
            return date(int(iso.group(1)), int(iso.group(2)), int(iso.group(3)))
        except ValueError:
            return None

    named = find_month_day(s, today)
    if named:
        return named

    numeric = NUMERIC_DATE_RE.search(s)
    if numeric:
        year = numeric.group(3)
        if year is None:
            year_num = today.year
        else:
            year_num = int(year) + 2000 if len(year) == 2 else int(year)
        try:
            return date(year_num, int(numeric.group(1)), int(numeric.group(2)))
        except ValueError:
            return None

    return None


def local_day_bounds(day: date, tz: tzinfo) -> tuple[datetime, datetime]:
    """[00:00, next 00:00) of a calendar day in tz."""
    start = datetime.combine(day, time.min, tzinfo=tz)
    end = datetime.combine(day + timedelta(days=1), time.min, tzinfo=tz)
    return start, end


def format_clock(value: datetime, tz: tzinfo) -> str:
    """2:05 PM"""
    local = value.astimezone(tz)
    hour = local.hour % 12 or 12
    return f"{hour}:{local.minute:02d} {'AM' if local.hour < 12 else 'PM'}"


def format_when(value: datetime, tz: tzinfo) -> str:
    """Nov 12, 2:05 PM"""
    local = value.astimezone(tz)
    return f"{MONTH_ABBR[local.month - 1]} {local.day}, {format_clock(local, tz)}"


def format_span(start: datetime, end: datetime, tz: tzinfo) -> str:
    """Nov 12, 2:00 PM – 4:00 PM, or the full end date when the span crosses midnight."""
    if start.astimezone(tz).date() == end.astimezone(tz).date():
        return f"{format_when(start, tz)} – {format_clock(end, tz)}"
    return f"{format_when(start, tz)} – {format_when(end, tz)}"


def format_day(day: date) -> str:
    """Wed, Nov 12, 2025"""
    return f"{DAY_ABBR[day.weekday()]}, {MONTH_ABBR[day.month - 1]} {day.day}, {day.year}"


def format_short_day(day: date) -> str:
    """Nov 12"""
    return f"{MONTH_ABBR[day.month - 1]} {day.day}"
