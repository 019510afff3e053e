"""
Tests for conflicts.py - exact double-booking and suggested slots.
"""
import sys
import os
from datetime import datetime, timedelta

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from conftest import MANILA
from conflicts import build_suggestions, detect_conflicts

T = datetime(2025, 11, 12, 14, 0, tzinfo=MANILA)
NOW = datetime(2025, 11, 10, 9, 0, tzinfo=MANILA)


class TestDetectConflicts:
    """Exact-interval matching."""

    def test_identical_interval_conflicts(self, add_event):
        existing = add_event("Study", T, T + timedelta(minutes=60))
        record = detect_conflicts("u1", T, T + timedelta(minutes=60))

        assert record.has_conflict
        assert [e.id for e in record.conflicts] == [existing.id]
        assert record.duration_minutes == 60

    def test_shifted_by_one_minute_is_not_a_conflict(self, add_event):
        """Overlap alone is allowed."""
        add_event("Study", T, T + timedelta(minutes=60))
        record = detect_conflicts("u1", T + timedelta(minutes=1), T + timedelta(minutes=61))
        assert not record.has_conflict

    def test_other_owner_is_not_a_conflict(self, add_event):
        add_event("Study", T, T + timedelta(minutes=60), owner_id="u2")
        assert not detect_conflicts("u1", T, T + timedelta(minutes=60)).has_conflict

    def test_excluded_event_ignored(self, add_event):
        existing = add_event("Study", T, T + timedelta(minutes=60))
        record = detect_conflicts("u1", T, T + timedelta(minutes=60), exclude_id=existing.id)
        assert not record.has_conflict


class TestSuggestions:
    """Three alternatives in fixed order."""

    def test_order_and_duration(self, add_event):
        existing = add_event("Study", T, T + timedelta(minutes=120))
        suggestions = build_suggestions([existing], 120, NOW, MANILA)

        assert [s.hint for s in suggestions] == ["After conflict", "+1 hour", "Tomorrow 8:00 AM"]
        assert suggestions[0].start == T + timedelta(minutes=120)
        assert suggestions[1].start == suggestions[0].start + timedelta(hours=1)
        assert suggestions[2].start == datetime(2025, 11, 11, 8, 0, tzinfo=MANILA)
        for s in suggestions:
            assert s.end - s.start == timedelta(minutes=120)

    def test_label(self, add_event):
        existing = add_event("Study", T, T + timedelta(minutes=120))
        first = build_suggestions([existing], 120, NOW, MANILA)[0]
        assert first.label == "Nov 12, 4:00 PM – 6:00 PM"

    def test_now_used_when_conflict_already_ended(self, add_event):
        """A past conflict never yields a suggestion in the past."""
        existing = add_event("Study", T, T + timedelta(minutes=60))
        later = T + timedelta(hours=5)
        first = build_suggestions([existing], 60, later, MANILA)[0]
        assert first.start == later

    def test_latest_conflict_end_wins(self, add_event):
        a = add_event("A", T, T + timedelta(minutes=60))
        b = add_event("B", T, T + timedelta(minutes=90))
        assert build_suggestions([a, b], 60, NOW, MANILA)[0].start == T + timedelta(minutes=90)

    def test_no_conflicts_no_suggestions(self):
        assert build_suggestions([], 60, NOW, MANILA) == []
