"""Tests for roster validation and reporting."""

from datetime import date

import pytest

from rostering.config import GenerationConfig
from rostering.domain.models import RosterEntry
from rostering.engine.assignment import AssignmentEngine
from rostering.rules.templates import RULE_TEMPLATES
from rostering.validator import roster_frame, roster_stats, summarize_roster, validate_roster


@pytest.fixture
def december(make_snapshot, rule):
    """Single Monday-to-Friday S1 employee, all template rules."""
    rules = [rule(n, tid) for n, tid in enumerate(RULE_TEMPLATES, start=1)]
    snapshot = make_snapshot([(1, "S1", {"Saturday", "Sunday"})], rules=rules)
    roster = AssignmentEngine(GenerationConfig(month=12, year=2024)).make_schedule(snapshot).roster
    return roster, snapshot


def test_roster_frame(december):
    roster, _ = december
    df = roster_frame(roster)
    assert len(df) == 31
    assert list(df.columns[:3]) == ["emp_id", "date", "shift_code"]
    assert df.iloc[0]["date"] == date(2024, 12, 1)
    assert int(df["violations"].sum()) == 22
    assert int(df["blocking"].sum()) == 0


def test_stats_match_december_scenario(december):
    roster, _ = december
    stats = roster_stats(roster)
    assert stats["total_assignments"] == 22
    assert stats["violations"] == 22
    assert stats["unresolved"] == 0
    assert stats["locked"] == 0
    assert stats["coverage"] == 100.0
    assert stats["efficiency"] == 56


def test_valid_roster_passes(december):
    roster, snapshot = december
    validate_roster(roster, snapshot.employees)


def test_duplicate_entry_detected(december):
    roster, _ = december
    roster.entries.append(RosterEntry(emp_id=1, date=date(2024, 12, 2), shift_code="S2", violations=[], revision=0))
    with pytest.raises(ValueError, match="Duplicate"):
        validate_roster(roster)


def test_week_off_misplacement_detected(december):
    roster, snapshot = december
    roster.entry_for(1, date(2024, 12, 4)).shift_code = "WO"
    with pytest.raises(ValueError, match="not a week-off"):
        validate_roster(roster, snapshot.employees)


def test_manual_edit_not_flagged(december):
    roster, snapshot = december
    entry = roster.entry_for(1, date(2024, 12, 4))
    entry.shift_code = "WO"
    entry.revision = 1
    validate_roster(roster, snapshot.employees)


def test_changed_locked_cell_detected(december, make_snapshot):
    roster, snapshot = december
    previous = AssignmentEngine(GenerationConfig(month=12, year=2024)).make_schedule(snapshot).roster
    locked = previous.entry_for(1, date(2024, 12, 2))
    locked.is_locked = True
    locked.shift_code = "S3"
    with pytest.raises(ValueError, match="Locked entry"):
        validate_roster(roster, previous=previous)


def test_summary_report(december):
    roster, _ = december
    text = summarize_roster(roster)
    assert "Coverage per day per shift:" in text
    assert "Shifts per employee:" in text
    assert "efficiency: 56" in text
