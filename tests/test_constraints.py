"""Tests for the constraint evaluator."""

from datetime import date, time

import pytest

from rostering.config import GenerationConfig
from rostering.domain.snapshot import EmployeeRecord, RuleRecord, ShiftSpec
from rostering.rules import RuleRegistry, ViolationAction
from rostering.services.calendar import resolve_period
from rostering.services.constraints import (
    Candidate,
    ConstraintEvaluator,
    Violation,
    blocking,
    mark_overridden,
    surfaced,
)
from rostering.services.grid import RosterGrid

EMP = EmployeeRecord(1, "Ada", "S1")


def evaluator(catalog, records, **toggles):
    shifts = {s.code: s for s in catalog}
    cfg = GenerationConfig(month=12, year=2024, **toggles)
    return ConstraintEvaluator(RuleRegistry.from_records(records), shifts, resolve_period(2024, 12), cfg)


def test_rest_gap_after_night_shift(catalog, rule):
    ev = evaluator(catalog, [rule(1, "min-rest")])
    grid = RosterGrid({(1, date(2024, 12, 1)): "S5"})

    early = ev.evaluate(Candidate(1, date(2024, 12, 2), "S1"), EMP, grid)
    assert len(early) == 1
    assert early[0].severity == ViolationAction.BLOCK
    assert "0h after S5" in early[0].message
    assert blocking(early) == early

    assert ev.evaluate(Candidate(1, date(2024, 12, 2), "S5"), EMP, grid) == []


def test_rest_lookahead_checks_following_day(catalog, rule):
    ev = evaluator(catalog, [rule(1, "min-rest")])
    grid = RosterGrid({(1, date(2024, 12, 3)): "S1"})
    cand = Candidate(1, date(2024, 12, 2), "S5")
    assert ev.evaluate(cand, EMP, grid) == []
    ahead = ev.evaluate(cand, EMP, grid, lookahead=True)
    assert "before S1" in ahead[0].message


def test_rest_toggle_off_ignores(catalog, rule):
    ev = evaluator(catalog, [rule(1, "min-rest")], minimum_rest_period=False)
    grid = RosterGrid({(1, date(2024, 12, 1)): "S5"})
    violations = ev.evaluate(Candidate(1, date(2024, 12, 2), "S1"), EMP, grid)
    assert violations[0].severity == ViolationAction.IGNORE
    assert blocking(violations) == []
    assert surfaced(violations) == []


def test_rest_limited_to_listed_shifts(catalog):
    record = RuleRecord(1, "Night rest", "rest", {"minRestHours": 12, "applyToAllShifts": False, "shiftCodes": ["S5"]})
    ev = evaluator(catalog, [record])
    grid = RosterGrid({(1, date(2024, 12, 1)): "S5"})
    assert ev.evaluate(Candidate(1, date(2024, 12, 2), "S1"), EMP, grid) == []


def test_consecutive_days_limit(catalog, rule):
    ev = evaluator(catalog, [rule(2, "max-consecutive")])
    grid = RosterGrid({(1, date(2024, 12, d)): "S1" for d in range(2, 8)})
    violations = ev.evaluate(Candidate(1, date(2024, 12, 8), "S1"), EMP, grid)
    assert violations[0].severity == ViolationAction.WARN
    assert "7 consecutive" in violations[0].message

    grid.set(1, date(2024, 12, 4), "WO")
    assert ev.evaluate(Candidate(1, date(2024, 12, 8), "S1"), EMP, grid) == []


@pytest.mark.parametrize("limit, expected", [(6, 0), (5, 1)])
def test_consecutive_days_skip_weekends(catalog, limit, expected):
    record = RuleRecord(2, "Streak", "consecutive-shift", {"maxConsecutiveDays": limit, "includeWeekends": False})
    ev = evaluator(catalog, [record])
    # Mon 2 .. Fri 6 December 2024, weekend unassigned
    grid = RosterGrid({(1, date(2024, 12, d)): "S1" for d in range(2, 7)})
    assert len(ev.evaluate(Candidate(1, date(2024, 12, 9), "S1"), EMP, grid)) == expected
    # weekend days never count
    assert ev.evaluate(Candidate(1, date(2024, 12, 7), "S1"), EMP, grid) == []


def test_skill_matching(rule):
    shifts = (
        ShiftSpec("S1", time(6), time(14)),
        ShiftSpec("F1", time(8), time(16), required_skill="forklift"),
    )
    novice = EmployeeRecord(1, "Ada", "S1", skills=("forklift",), skill_levels=(("forklift", "beginner"),))
    expert = EmployeeRecord(2, "Bo", "S1", skills=("forklift",), skill_levels=(("forklift", "expert"),))
    nobody = EmployeeRecord(3, "Cy", "S1")

    loose = evaluator(shifts, [rule(3, "skill-match")])
    day = date(2024, 12, 2)
    assert loose.evaluate(Candidate(1, day, "F1"), novice, RosterGrid()) == []
    missing = loose.evaluate(Candidate(3, day, "F1"), nobody, RosterGrid())
    assert "Missing required skill" in missing[0].message
    assert loose.evaluate(Candidate(3, day, "S1"), nobody, RosterGrid()) == []

    strict = evaluator(shifts, [rule(3, "skill-match", conditions={"requireExactMatch": True, "minimumSkillLevel": "advanced"})])
    assert len(strict.evaluate(Candidate(1, day, "F1"), novice, RosterGrid())) == 1
    assert strict.evaluate(Candidate(2, day, "F1"), expert, RosterGrid()) == []

    off = evaluator(shifts, [rule(3, "skill-match")], enforce_skill_matching=False)
    assert off.evaluate(Candidate(3, day, "F1"), nobody, RosterGrid())[0].severity == ViolationAction.IGNORE


def test_custom_rule_weekday_scope(catalog):
    record = RuleRecord(
        5, "No Friday nights", "custom", {"disallowedShifts": ["S5"], "weekdays": ["Friday"]}, violation_action="block"
    )
    ev = evaluator(catalog, [record])
    friday = ev.evaluate(Candidate(1, date(2024, 12, 6), "S5"), EMP, RosterGrid())
    assert friday[0].is_blocking
    assert ev.evaluate(Candidate(1, date(2024, 12, 5), "S5"), EMP, RosterGrid()) == []
    assert ev.evaluate(Candidate(1, date(2024, 12, 6), "S4"), EMP, RosterGrid()) == []


def test_custom_rule_department_scope(catalog):
    record = RuleRecord(5, "Ops no nights", "custom", {"disallowedShifts": ["S5"], "departments": ["ops"]})
    ev = evaluator(catalog, [record])
    ops = EmployeeRecord(1, "Ada", "S1", department="ops")
    sales = EmployeeRecord(2, "Bo", "S1", department="sales")
    assert len(ev.evaluate(Candidate(1, date(2024, 12, 6), "S5"), ops, RosterGrid())) == 1
    assert ev.evaluate(Candidate(2, date(2024, 12, 6), "S5"), sales, RosterGrid()) == []


def test_pseudo_shifts_never_evaluated(catalog, rule):
    ev = evaluator(catalog, [rule(1, "min-rest")])
    grid = RosterGrid({(1, date(2024, 12, 1)): "S5"})
    for code in ("WO", "HOL", "LEAVE", "UNRESOLVED"):
        assert ev.evaluate(Candidate(1, date(2024, 12, 2), code), EMP, grid) == []


def test_all_triggered_rules_reported_in_priority_order(catalog, rule):
    records = [
        RuleRecord(7, "Late custom", "custom", {"disallowedShifts": ["S1"]}, violation_action="warn", priority=9),
        rule(1, "min-rest"),
    ]
    ev = evaluator(catalog, records)
    grid = RosterGrid({(1, date(2024, 12, 1)): "S5"})
    violations = ev.evaluate(Candidate(1, date(2024, 12, 2), "S1"), EMP, grid)
    assert [v.rule_id for v in violations] == [1, 7]
    assert len(blocking(violations)) == 1


def test_coverage_shortfalls(catalog, rule):
    ev = evaluator(catalog, [rule(4, "min-coverage")])
    day = date(2024, 12, 2)
    grid = RosterGrid({(1, day): "S1", (2, day): "S1", (3, day): "S2", (4, day): "S2"})
    gaps = {g.shift_code: g for g in ev.evaluate_coverage(day, grid)}
    assert set(gaps) == {"S1", "S3", "S4", "S5"}
    assert (gaps["S1"].required, gaps["S1"].assigned) == (3, 2)
    assert gaps["S1"].severity == ViolationAction.WARN
    assert ev.coverage_deficits(day, grid) == {"S1": 1, "S3": 4, "S4": 2, "S5": 1}
    assert ev.coverage_minimum(day, "S3") == 4
    assert gaps["S1"].as_violation().rule_type == "coverage"


def test_failing_rule_is_invalidated(rule):
    # the catalog lacks S9, so the rest check cannot look it up
    shifts = (ShiftSpec("S1", time(6), time(14)),)
    ev = evaluator(shifts, [rule(1, "min-rest")])
    grid = RosterGrid()
    assert ev.evaluate(Candidate(1, date(2024, 12, 2), "S9"), EMP, grid) == []
    assert len(ev.rule_errors) == 1
    assert ev.rule_errors[0].rule_id == 1
    assert ev.active_rules() == []


def test_violation_round_trip_and_override():
    v = Violation(1, "Rest", "rest", ViolationAction.BLOCK, "too short")
    assert Violation.from_dict(v.to_dict()) == v
    forced = mark_overridden([v])[0]
    assert forced.overridden
    assert not forced.is_blocking
    assert forced.to_dict()["overridden"] is True
