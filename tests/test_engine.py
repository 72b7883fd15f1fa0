"""Tests for month roster generation."""

from datetime import date, datetime, timedelta

import pytest

from rostering.config import GenerationConfig
from rostering.domain.models import RosterEntry
from rostering.domain.snapshot import EmployeeRecord, HolidayRecord, LeaveRecord, RuleRecord
from rostering.engine.assignment import AssignmentEngine, GenerationStatus, Slot, SlotState
from rostering.errors import InvalidConfig
from rostering.rules.templates import RULE_TEMPLATES

DEC = [date(2024, 12, 1) + timedelta(days=n) for n in range(31)]
WEEKEND_OFF = {"Saturday", "Sunday"}


@pytest.fixture
def all_rules(rule):
    return [rule(n, tid) for n, tid in enumerate(RULE_TEMPLATES, start=1)]


def generate(snapshot, **kwargs):
    toggles = kwargs.pop("toggles", {})
    engine = AssignmentEngine(GenerationConfig(month=12, year=2024, **toggles))
    return engine.make_schedule(snapshot, **kwargs)


def cells(result):
    return {(e.emp_id, e.date): e for e in result.roster.entries}


def test_week_offs_and_fixed_shift_december(make_snapshot, all_rules):
    snapshot = make_snapshot([(1, "S1", WEEKEND_OFF)], rules=all_rules)
    result = generate(snapshot)

    assert result.status == GenerationStatus.COMPLETED
    assert result.unresolved == []
    grid = cells(result)
    assert len(grid) == 31
    for day in DEC:
        expected = "WO" if day.weekday() >= 5 else "S1"
        assert grid[(1, day)].shift_code == expected

    # one person cannot meet the S1 minimum of three
    monday = grid[(1, date(2024, 12, 2))]
    assert [v["rule_type"] for v in monday.violations] == ["coverage"]
    assert monday.violations[0]["severity"] == "warn"
    assert grid[(1, date(2024, 12, 1))].violations == []

    roster = result.roster
    assert (roster.month, roster.year, roster.status, roster.version) == (12, 2024, "draft", 1)
    assert roster.name == "December 2024 Roster"
    assert roster.generation_config["respect_week_offs"] is True


def test_one_entry_per_employee_and_day(make_snapshot, all_rules):
    snapshot = make_snapshot(
        [(3, "S2", {"Monday"}), (1, "S1", WEEKEND_OFF), (2, "S5", set())], rules=all_rules
    )
    result = generate(snapshot)
    keys = [(e.emp_id, e.date) for e in result.roster.entries]
    assert len(keys) == len(set(keys)) == 3 * 31
    assert {d for _, d in keys} == set(DEC)
    # date-major, employees ascending
    assert keys[:3] == [(1, DEC[0]), (2, DEC[0]), (3, DEC[0])]


def test_regeneration_is_deterministic(make_snapshot, all_rules):
    snapshot = make_snapshot([(1, "S1", WEEKEND_OFF), (2, "S3", set()), (3, "S5", {"Friday"})], rules=all_rules)

    def fingerprint(result):
        return [(e.emp_id, e.date, e.shift_code, e.violations) for e in result.roster.entries]

    assert fingerprint(generate(snapshot)) == fingerprint(generate(snapshot))


def test_no_blocking_violation_on_final_entries(make_snapshot, all_rules):
    snapshot = make_snapshot([(1, "S5", set()), (2, "S1", set()), (3, "S3", {"Sunday"})], rules=all_rules)
    result = generate(snapshot)
    for entry in result.roster.entries:
        if entry.shift_code == "UNRESOLVED":
            continue
        assert not [v for v in entry.violations if v["severity"] == "block"]


def test_locked_entries_copied_verbatim(make_snapshot, rule):
    snapshot = make_snapshot([(1, "S1", WEEKEND_OFF)], rules=[rule(1, "min-rest")])
    stamp = datetime(2024, 11, 20, 9, 30)
    locked = RosterEntry(
        emp_id=1,
        date=date(2024, 12, 3),
        shift_code="S3",
        violations=[],
        is_locked=True,
        last_modified=stamp,
        modified_by="alice",
        revision=2,
    )
    result = generate(snapshot, locked_entries=[locked], toggles={"balance_workload": False})
    grid = cells(result)

    kept = grid[(1, date(2024, 12, 3))]
    assert (kept.shift_code, kept.is_locked, kept.modified_by, kept.revision) == ("S3", True, "alice", 2)
    assert kept.last_modified == stamp
    # S3 ends at 22:00, so S1 and S2 the next morning leave too little rest
    assert grid[(1, date(2024, 12, 4))].shift_code == "S3"
    assert grid[(1, date(2024, 12, 2))].shift_code == "S1"
    assert len(grid) == 31


def test_locked_cell_constrains_previous_day(make_snapshot, rule):
    snapshot = make_snapshot([(1, "S5", set())], rules=[rule(1, "min-rest")])
    locked = RosterEntry(
        emp_id=1, date=date(2024, 12, 10), shift_code="S3", violations=[], is_locked=True, revision=1
    )
    result = generate(snapshot, locked_entries=[locked], toggles={"balance_workload": False})
    grid = cells(result)
    # S5 on the 9th leaves 8h before the locked S3; S4 leaves 12h on both sides
    assert grid[(1, date(2024, 12, 9))].shift_code == "S4"
    assert grid[(1, date(2024, 12, 8))].shift_code == "S5"


def test_unresolved_when_every_shift_blocked(make_snapshot):
    no_wednesday = RuleRecord(
        9,
        "Closed Wednesdays",
        "custom",
        {"disallowedShifts": ["S1", "S2", "S3", "S4", "S5"], "weekdays": ["Wednesday"]},
        violation_action="block",
    )
    snapshot = make_snapshot([(1, "S1", set())], rules=[no_wednesday])
    result = generate(snapshot)
    wednesdays = [d for d in DEC if d.weekday() == 2]

    assert result.ok
    assert [s.date for s in result.unresolved] == wednesdays
    slot = result.unresolved[0]
    assert slot.state == SlotState.UNRESOLVED
    assert slot.to_dict()["tried"] == ["S1", "S2", "S3", "S4", "S5"]
    entry = cells(result)[(1, wednesdays[0])]
    assert entry.shift_code == "UNRESOLVED"
    assert entry.violations[0]["rule_name"] == "Closed Wednesdays"
    assert result.summary()["unresolved"][0]["blocked_by"] == ["Closed Wednesdays"]


def test_leave_and_holiday_precedence(make_snapshot):
    holidays = [
        HolidayRecord(date(2024, 12, 25), "Christmas", "public"),
        HolidayRecord(date(2024, 12, 24), "Christmas Eve", "optional"),
    ]
    leaves = [LeaveRecord(1, date(2024, 12, 23), date(2024, 12, 27), leave_type="vacation")]
    snapshot = make_snapshot([(1, "S1", set()), (2, "S2", set())], holidays=holidays, leaves=leaves)
    grid = cells(generate(snapshot))

    assert grid[(1, date(2024, 12, 25))].shift_code == "LEAVE"
    assert grid[(1, date(2024, 12, 23))].shift_code == "LEAVE"
    assert grid[(2, date(2024, 12, 25))].shift_code == "HOL"
    assert grid[(2, date(2024, 12, 24))].shift_code == "S2"


def test_toggles_disable_holidays_and_week_offs(make_snapshot):
    holidays = [HolidayRecord(date(2024, 12, 25), "Christmas", "public")]
    snapshot = make_snapshot([(1, "S1", WEEKEND_OFF)], holidays=holidays)
    result = generate(snapshot, toggles={"include_holidays": False, "respect_week_offs": False})
    codes = {e.shift_code for e in result.roster.entries}
    assert codes == {"S1"}


@pytest.mark.parametrize("action", ["warn", "block"])
def test_coverage_shortfall_marks_contributing_entries(make_snapshot, action):
    coverage = RuleRecord(4, "S1 cover", "coverage", {"minEmployeesPerShift": {"S1": 3}}, violation_action=action)
    snapshot = make_snapshot([(1, "S1", set()), (2, "S1", set())], rules=[coverage])
    result = generate(snapshot)

    assert result.unresolved == []
    assert len(result.shortfalls) == 31
    for entry in result.roster.entries:
        assert entry.shift_code == "S1"
        assert len(entry.violations) == 1
        assert entry.violations[0]["severity"] == action
        assert "2 assigned, minimum 3" in entry.violations[0]["message"]


def test_balance_moves_surplus_to_uncovered_shift(make_snapshot):
    coverage = RuleRecord(4, "Cover", "coverage", {"minEmployeesPerShift": {"S1": 1, "S2": 1}})
    snapshot = make_snapshot([(1, "S1", set()), (2, "S1", set()), (3, "S1", set())], rules=[coverage])

    balanced = cells(generate(snapshot))
    monday = date(2024, 12, 2)
    assert [balanced[(n, monday)].shift_code for n in (1, 2, 3)] == ["S2", "S1", "S1"]
    assert all(not e.violations for e in balanced.values())

    plain = generate(snapshot, toggles={"balance_workload": False})
    assert {e.shift_code for e in plain.roster.entries} == {"S1"}
    assert {(s.shift_code, s.assigned) for s in plain.shortfalls} == {("S2", 0)}


def test_history_enforces_rest_across_month_boundary(make_snapshot, rule):
    snapshot = make_snapshot([(1, "S1", set())], rules=[rule(1, "min-rest")])
    history = {(1, date(2024, 11, 30)): "S5"}
    grid = cells(generate(snapshot, history=history, toggles={"balance_workload": False}))
    # S5 ends 06:00 on the 1st; S4 at 18:00 is the first shift with 12h rest
    assert grid[(1, date(2024, 12, 1))].shift_code == "S4"
    assert (1, date(2024, 11, 30)) not in grid


def test_bad_rule_reported_not_fatal(make_snapshot, rule):
    broken = RuleRecord(8, "Broken", "rest", {"minRestHours": "lots"})
    snapshot = make_snapshot([(1, "S1", WEEKEND_OFF)], rules=[broken, rule(1, "min-rest")])
    result = generate(snapshot)
    assert result.ok
    assert [e.rule_id for e in result.rule_errors] == [8]
    assert result.summary()["rule_errors"][0]["rule_name"] == "Broken"


def test_no_active_employees_is_invalid(make_snapshot):
    inactive = EmployeeRecord(1, "Gone", "S1", active=False)
    with pytest.raises(InvalidConfig, match="No active employees"):
        generate(make_snapshot([inactive]))


def test_bad_month_is_invalid(make_snapshot):
    engine = AssignmentEngine(GenerationConfig(month=13, year=2024))
    with pytest.raises(InvalidConfig):
        engine.make_schedule(make_snapshot([(1, "S1", set())]))


def test_slot_state_machine():
    slot = Slot(1, date(2024, 12, 2))
    slot.propose("S1")
    slot.reject([])
    slot.propose("S2")
    slot.accept([])
    assert slot.state == SlotState.ACCEPTED
    assert slot.shift_code == "S2"
    with pytest.raises(RuntimeError):
        slot.propose("S3")
