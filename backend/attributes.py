"""Keyword extraction of importance / urgency / difficulty and the task title."""
import re

from timeparse import ISO_DATE_RE, MONTH_DAY_RE, NUMERIC_DATE_RE

DEFAULT_TITLE = "Untitled task"

COMMAND_WORDS_RE = re.compile(
    r"\b(add|create|make|new|edit|reschedule|move|delete|remove|split)\b", re.IGNORECASE
)
RELATIVE_DAY_RE = re.compile(
    r"\b(day after tomorrow|today|tomorrow|tonight|this morning|this afternoon|this evening)\b", re.IGNORECASE
)
FILLER_RE = re.compile(
    r"\b(for|on|to|at|from|my|schedule|what(?:'|’)s|whats|is|please)\b", re.IGNORECASE
)
TIME_RANGE_TEXT_RE = re.compile(
    r"\b\d{1,2}(?::\d{2})?\s*(?:am|pm)?\s*(?:-|–|—)\s*\d{1,2}(?::\d{2})?(?:\s*(?:am|pm)\b)?",
    re.IGNORECASE,
)
SINGLE_TIME_RE = re.compile(r"\b\d{1,2}(?::\d{2})?\s*(?:am|pm)\b", re.IGNORECASE)
SPLIT_PHRASE_RE = re.compile(
    r"\binto\s+\d+(?:\s*(?:segments?|parts?|pieces?|blocks?))?\b"
    r"|\bwith\s+(?:a\s+)?\d+\s*(?:m|mins?|minutes?)(?:\s*-?\s*breaks?)?\b"
    r"|\bwith\s+no\s+breaks?\b",
    re.IGNORECASE,
)
ATTRIBUTE_RE = re.compile(
    r"\b(somewhat\s+important|somewhat\s+urgent|important|urgent|easy|medium|hard)\b", re.IGNORECASE
)
NOUN_RE = re.compile(r"\b(task|event|activity)\b", re.IGNORECASE)


def extract_urgency(text: str) -> str:
    return "high" if re.search(r"\burgent\b", text or "", re.IGNORECASE) else "low"


def extract_importance(text: str) -> str:
    lower = (text or "").lower()
    if re.search(r"\bimportant\b", lower) and not re.search(r"\bsomewhat\s+important\b", lower):
        return "high"
    return "low"


def extract_difficulty(text: str) -> str:
    lower = (text or "").lower()
    if re.search(r"\bhard\b", lower):
        return "hard"
    if re.search(r"\beasy\b", lower):
        return "easy"
    return "medium"


def extract_attributes(text: str) -> dict:
    return {
        "importance": extract_importance(text),
        "urgency": extract_urgency(text),
        "difficulty": extract_difficulty(text),
    }


def mentioned_attributes(text: str) -> dict:
    """Only the attributes the text actually names, for edits that keep the rest."""
    found = {}
    lower = (text or "").lower()
    if re.search(r"\burgent\b", lower):
        found["urgency"] = "high"
    if re.search(r"\bimportant\b", lower):
        found["importance"] = extract_importance(lower)
    if re.search(r"\b(hard|easy|medium)\b", lower):
        found["difficulty"] = re.search(r"\b(hard|easy|medium)\b", lower).group(1)
    return found


def _capitalize(title: str) -> str:
    return title[:1].upper() + title[1:] if title else title


def _tidy(text: str) -> str:
    text = re.sub(r"[·•\"“”'`]", " ", text)
    text = re.sub(r"\s+", " ", text).strip()
    return re.sub(r"^(?:a|an|the)\s+", "", text, flags=re.IGNORECASE)


def strip_schedule_phrases(text: str) -> str:
    """Remove dates and time ranges. Dates go first so 2026-11-12 is not read as 11-12."""
    t = ISO_DATE_RE.sub(" ", text or "")
    t = MONTH_DAY_RE.sub(" ", t)
    t = TIME_RANGE_TEXT_RE.sub(" ", t)
    t = SINGLE_TIME_RE.sub(" ", t)
    t = NUMERIC_DATE_RE.sub(" ", t)
    return RELATIVE_DAY_RE.sub(" ", t)


def guess_title(text: str, fallback: str = DEFAULT_TITLE) -> str:
    """Whatever is left of a command once verbs, dates, times and attributes are removed."""
    t = strip_schedule_phrases(text)
    t = COMMAND_WORDS_RE.sub(" ", t)
    t = SPLIT_PHRASE_RE.sub(" ", t)
    t = ATTRIBUTE_RE.sub(" ", t)
    t = FILLER_RE.sub(" ", t)
    t = re.sub(r"[–—]", " ", t)
    t = NOUN_RE.sub(" ", t)
    t = _tidy(t)
    return _capitalize(t) or fallback


def guess_title_for_delete(text: str) -> str:
    """Title phrase of a delete command; attribute words are kept since they may be part of it."""
    t = strip_schedule_phrases(text)
    t = COMMAND_WORDS_RE.sub(" ", t)
    t = re.sub(r"[–—]", " ", t)
    t = re.sub(r"\b(segments|parts|of)\b", " ", t, flags=re.IGNORECASE)
    t = FILLER_RE.sub(" ", t)
    t = NOUN_RE.sub(" ", t)
    return _capitalize(_tidy(t))
