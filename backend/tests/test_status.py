"""
Tests for status.py - finalization rules, marking, propagation between parents and segments.
"""
import pytest
import sys
import os
from datetime import datetime, timedelta

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from conftest import MANILA
from database import get_event_db, update_event_db
from errors import NotFound, TemporalPolicyViolation
from segmentation import split_event
from status import finalize_status, mark_event, normalize_status, propagate_status

# Everything below happens before AFTER, so completion is allowed
START = datetime(2025, 11, 12, 13, 0, tzinfo=MANILA)
AFTER = datetime(2025, 11, 13, 9, 0, tzinfo=MANILA)


@pytest.fixture
def family(add_event):
    """A 240-minute parent split into three segments."""
    parent = add_event("Study react", START, START + timedelta(minutes=240))
    children = split_event(parent.id, 3).segments
    return parent, children


class TestPureRules:
    """Tests for status words and finalization."""

    @pytest.mark.parametrize("word,expected", [
        ("complete", "completed"),
        ("Completed", "completed"),
        ("done", "completed"),
        ("missed", "missed"),
        ("incomplete", "missed"),
        ("later", None),
    ])
    def test_normalize_status(self, word, expected):
        assert normalize_status(word) == expected

    def test_finalize_all_completed(self):
        assert finalize_status(["completed", "completed"]) == "completed"

    def test_missed_beats_completed(self):
        assert finalize_status(["completed", "missed", "completed"]) == "missed"

    def test_pending_blocks_finalization(self):
        assert finalize_status(["completed", None]) is None

    def test_no_children(self):
        assert finalize_status([]) is None


class TestMarkStandalone:
    """Tests for marking events without segments."""

    def test_mark_completed(self, add_event):
        event = add_event("Gym", START, START + timedelta(hours=1))
        result = mark_event(event.id, "completed", AFTER, MANILA)

        assert result.changed is True
        assert result.status == "completed"
        assert result.finalized is False
        assert get_event_db(event.id).status == "completed"

    def test_missing_event(self, test_db):
        with pytest.raises(NotFound):
            mark_event("nope", "missed", AFTER, MANILA)

    def test_completion_before_end_rejected(self, add_event):
        """An event that has not ended cannot be completed."""
        event = add_event("Gym", START, START + timedelta(hours=1))
        with pytest.raises(TemporalPolicyViolation, match="still in the future"):
            mark_event(event.id, "completed", START + timedelta(minutes=30), MANILA)
        assert get_event_db(event.id).status is None

    def test_completion_check_can_be_disabled(self, add_event):
        event = add_event("Gym", START, START + timedelta(hours=1))
        result = mark_event(
            event.id, "completed", START, MANILA, enforce_completion_after_end=False
        )
        assert result.status == "completed"

    def test_missed_allowed_any_time(self, add_event):
        event = add_event("Gym", START, START + timedelta(hours=1))
        assert mark_event(event.id, "missed", START - timedelta(days=1), MANILA).status == "missed"

    def test_remark_is_noop(self, add_event):
        """Re-marking a resolved event changes nothing."""
        event = add_event("Gym", START, START + timedelta(hours=1))
        mark_event(event.id, "missed", AFTER, MANILA)
        result = mark_event(event.id, "completed", AFTER, MANILA)

        assert result.changed is False
        assert result.status == "missed"
        assert "already marked missed" in result.message
        assert get_event_db(event.id).status == "missed"


class TestSegmentsFirst:
    """Marking segments one by one finalizes the parent."""

    def test_partial_leaves_parent_pending(self, family):
        parent, children = family
        result = mark_event(children[0].id, "completed", AFTER, MANILA)

        assert result.finalized is False
        assert result.parent_updated is False
        assert get_event_db(parent.id).status is None

    def test_all_completed(self, family):
        parent, children = family
        for child in children:
            result = mark_event(child.id, "completed", AFTER, MANILA)

        assert result.finalized is True
        assert result.parent_updated is True
        assert result.parent.status == "completed"
        assert result.message == "Event and/or its segments finalized"
        assert get_event_db(parent.id).status == "completed"

    def test_last_missed_finalizes_parent_missed(self, family):
        """Two completed and one missed segment make the parent missed."""
        parent, children = family
        mark_event(children[0].id, "completed", AFTER, MANILA)
        mark_event(children[1].id, "completed", AFTER, MANILA)
        result = mark_event(children[2].id, "missed", AFTER, MANILA)

        assert result.finalized is True
        assert result.parent.status == "missed"
        assert get_event_db(parent.id).status == "missed"

    def test_resolved_parent_not_overwritten(self, family):
        parent, children = family
        update_event_db(parent.id, status="missed")
        for child in children:
            result = mark_event(child.id, "completed", AFTER, MANILA)

        assert result.finalized is False
        assert get_event_db(parent.id).status == "missed"


class TestParentFirst:
    """Marking the parent reaches pending segments."""

    def test_completed_cascades_to_pending(self, family):
        parent, children = family
        mark_event(children[0].id, "missed", AFTER, MANILA)
        result = mark_event(parent.id, "completed", AFTER, MANILA)

        assert result.cascaded == 2
        assert result.finalized is True
        assert get_event_db(children[0].id).status == "missed"
        assert get_event_db(children[1].id).status == "completed"
        assert get_event_db(children[2].id).status == "completed"

    def test_missed_does_not_cascade_by_default(self, family):
        parent, children = family
        result = mark_event(parent.id, "missed", AFTER, MANILA)

        assert result.cascaded == 0
        assert result.message == "Event status updated"
        assert all(get_event_db(c.id).status is None for c in children)

    def test_missed_cascades_when_enabled(self, family):
        parent, children = family
        result = mark_event(parent.id, "missed", AFTER, MANILA, cascade_missed=True)

        assert result.cascaded == 3
        assert all(get_event_db(c.id).status == "missed" for c in children)

    def test_completion_waits_for_pending_segment(self, family):
        """A pending segment running past the parent's end blocks completing the parent."""
        parent, children = family
        update_event_db(children[2].id, end=START + timedelta(minutes=300))
        just_after_parent = START + timedelta(minutes=241)

        with pytest.raises(TemporalPolicyViolation, match="Segment 3"):
            mark_event(parent.id, "completed", just_after_parent, MANILA)
        assert get_event_db(parent.id).status is None
        assert all(get_event_db(c.id).status is None for c in children)

    def test_resolved_segment_does_not_block(self, family):
        parent, children = family
        update_event_db(children[2].id, end=START + timedelta(minutes=300))
        just_after_parent = START + timedelta(minutes=241)
        mark_event(children[2].id, "missed", just_after_parent, MANILA)

        result = mark_event(parent.id, "completed", just_after_parent, MANILA)
        assert result.cascaded == 2


class TestPropagateStatus:
    """The second step can run on its own after a direct write."""

    def test_propagate_after_direct_write(self, family):
        parent, children = family
        for child in children:
            update_event_db(child.id, status="completed")

        result = propagate_status(children[-1].id, "completed")
        assert result.finalized is True
        assert get_event_db(parent.id).status == "completed"

    def test_propagate_missing(self, test_db):
        with pytest.raises(NotFound):
            propagate_status("nope", "completed")
