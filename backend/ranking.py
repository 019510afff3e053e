from datetime import datetime

from models import Event, RankedEvent

IMPORTANCE_WEIGHT = {"high": 3, "low": 1}
URGENCY_WEIGHT = {"high": 2, "low": 1}
DIFFICULTY_FACTOR = {"easy": 1.1, "medium": 1.0, "hard": 0.9}
PROXIMITY_HALF_LIFE_MIN = 180


def priority_score(event: Event, now: datetime) -> float:
    """(importance*2 + urgency*1.5) * difficulty factor, plus a boost that grows as the start nears."""
    imp = IMPORTANCE_WEIGHT.get(event.importance, 1)
    urg = URGENCY_WEIGHT.get(event.urgency, 1)
    diff = DIFFICULTY_FACTOR.get(event.difficulty, 1.0)
    minutes_until_start = max(0.0, (event.start - now).total_seconds() / 60)
    proximity = 1 / (1 + minutes_until_start / PROXIMITY_HALF_LIFE_MIN)
    return (imp * 2 + urg * 1.5) * diff + proximity


def rank_events(events: list[Event], now: datetime) -> list[RankedEvent]:
    """Highest score first, earlier start breaking ties; rank is 1-based."""
    scored = sorted(
        ((priority_score(e, now), e) for e in events),
        key=lambda pair: (-pair[0], pair[1].start),
    )
    return [
        RankedEvent(**event.model_dump(), score=round(score, 4), rank=i)
        for i, (score, event) in enumerate(scored, start=1)
    ]
