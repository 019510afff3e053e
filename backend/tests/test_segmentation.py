"""
Tests for segmentation.py - split planning arithmetic and persisted splits.
"""
import pytest
import sys
import os
from datetime import datetime, timedelta

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from conftest import MANILA
from database import get_children_db, get_event_db
from errors import NotFound, ValidationFailure
from segmentation import plan_segments, segment_lengths, segment_title, split_event

START = datetime(2025, 11, 12, 13, 0, tzinfo=MANILA)


def minutes(delta):
    return int(delta.total_seconds() // 60)


class TestSegmentLengths:
    """Tests for dividing usable minutes."""

    def test_even(self):
        assert segment_lengths(180, 3, 0) == [60, 60, 60]

    def test_remainder_goes_to_first_segments(self):
        """Earlier segments carry the extra minutes."""
        assert segment_lengths(200, 3, 0) == [67, 67, 66]

    def test_breaks_reduce_usable(self):
        assert segment_lengths(200, 3, 10) == [60, 60, 60]

    def test_breaks_too_large(self):
        with pytest.raises(ValidationFailure, match="Breaks too large"):
            segment_lengths(180, 3, 90)

    @pytest.mark.parametrize("total,count,brk", [(181, 2, 0), (200, 3, 7), (240, 4, 15), (187, 5, 1)])
    def test_conservation_and_fairness(self, total, count, brk):
        """Segments plus breaks equal the whole; lengths differ by at most one minute."""
        lengths = segment_lengths(total, count, brk)
        assert sum(lengths) + (count - 1) * brk == total
        assert max(lengths) - min(lengths) <= 1
        assert lengths == sorted(lengths, reverse=True)


class TestPlanSegments:
    """Tests for laying segments out in time."""

    def test_scenario_200_minutes_three_parts_ten_minute_breaks(self):
        plan = plan_segments(START, START + timedelta(minutes=200), 3, 10)

        assert [minutes(e - s) for s, e in plan] == [60, 60, 60]
        assert [minutes(plan[i + 1][0] - plan[i][1]) for i in range(2)] == [10, 10]
        assert plan[0][0] == START
        assert plan[-1][1] == START + timedelta(minutes=200)

    def test_segments_never_overlap(self):
        plan = plan_segments(START, START + timedelta(minutes=187), 4, 3)
        for (_, first_end), (second_start, _) in zip(plan, plan[1:]):
            assert first_end <= second_start

    def test_floor_boundary(self):
        """179 minutes is too short, 180 is enough."""
        with pytest.raises(ValidationFailure, match="at least 180 minutes"):
            plan_segments(START, START + timedelta(minutes=179), 2)
        assert len(plan_segments(START, START + timedelta(minutes=180), 2)) == 2

    def test_custom_floor(self):
        assert len(plan_segments(START, START + timedelta(minutes=60), 2, min_minutes=30)) == 2

    def test_count_below_two(self):
        with pytest.raises(ValidationFailure, match="count must be >= 2"):
            plan_segments(START, START + timedelta(minutes=240), 1)

    def test_invalid_range(self):
        with pytest.raises(ValidationFailure, match="Invalid parent time range"):
            plan_segments(START, START, 2)

    def test_negative_break(self):
        with pytest.raises(ValidationFailure):
            plan_segments(START, START + timedelta(minutes=240), 2, -5)

    def test_last_segment_absorbs_seconds(self):
        """A parent with stray seconds still ends exactly where it did."""
        end = START + timedelta(minutes=200, seconds=30)
        plan = plan_segments(START, end, 3)
        assert plan[-1][1] == end


class TestSegmentTitle:
    """Tests for segment naming."""

    def test_default(self):
        assert segment_title("Study react", 1) == "Study react — Segment 2"

    def test_custom_titles(self):
        assert segment_title("Study", 0, ["Read docs", ""]) == "Read docs"
        assert segment_title("Study", 1, ["Read docs", ""]) == "Study — Segment 2"
        assert segment_title("Study", 2, ["Read docs"]) == "Study — Segment 3"


class TestSplitEvent:
    """Tests for persisted splits."""

    def test_split_creates_children(self, add_event):
        parent = add_event("Study react", START, START + timedelta(minutes=200), importance="high", urgency="high")
        result = split_event(parent.id, 3, 10)

        assert result.parent_id == parent.id
        children = get_children_db(parent.id)
        assert [c.segment_index for c in children] == [0, 1, 2]
        assert [c.title for c in children] == [
            "Study react — Segment 1",
            "Study react — Segment 2",
            "Study react — Segment 3",
        ]
        for child in children:
            assert child.segment_of == parent.id
            assert child.status is None
            assert child.importance == "high"
            assert child.urgency == "high"
            assert child.owner_id == "u1"
        assert get_event_db(parent.id).status is None

    def test_title_prefix(self, add_event):
        parent = add_event("Study react", START, START + timedelta(minutes=180))
        result = split_event(parent.id, 2, title_prefix="Hooks")
        assert result.segments[0].title == "Hooks — Segment 1"

    def test_missing_parent(self, test_db):
        with pytest.raises(NotFound):
            split_event("nope", 2)

    def test_child_cannot_be_split(self, add_event):
        parent = add_event("Study react", START, START + timedelta(minutes=400))
        child = split_event(parent.id, 2).segments[0]
        with pytest.raises(ValidationFailure, match="cannot be split"):
            split_event(child.id, 2)

    def test_parent_cannot_be_split_twice(self, add_event):
        parent = add_event("Study react", START, START + timedelta(minutes=240))
        split_event(parent.id, 2)
        with pytest.raises(ValidationFailure, match="already split"):
            split_event(parent.id, 2)
        assert len(get_children_db(parent.id)) == 2

    def test_too_short_creates_nothing(self, add_event):
        parent = add_event("Quick", START, START + timedelta(minutes=90))
        with pytest.raises(ValidationFailure):
            split_event(parent.id, 2)
        assert get_children_db(parent.id) == []
