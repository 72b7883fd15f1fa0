"""Tests for CSV import/export functionality."""

import pandas as pd
import pytest

from rostering.config import GenerationConfig
from rostering.domain.repositories import (
    EmployeeRepository,
    HolidayRepository,
    LeaveRepository,
    RuleRepository,
    ShiftRepository,
)
from rostering.engine.assignment import AssignmentEngine
from rostering.errors import RuleConfigError
from rostering.io.export_csv import export_roster_entries_csv, export_roster_grid_csv
from rostering.io.import_csv import (
    import_employees_csv,
    import_holidays_csv,
    import_leaves_csv,
    import_rules_csv,
    import_shift_catalog_csv,
)


def test_import_employees_csv(db_session, tmp_path):
    csv_file = tmp_path / "employees.csv"
    csv_file.write_text(
        "employee_id,name,department,fixed_shift,week_offs,skills,skill_levels,status\n"
        "1,Ada Lovelace,ops,S1,sat;Sunday,forklift;first-aid,forklift:expert,active\n"
        "2,Bo Chen,,S3,,,,inactive\n"
    )
    assert import_employees_csv(db_session, csv_file) == 2

    ada = EmployeeRepository.get_by_id(db_session, 1)
    assert ada.week_offs == ["Saturday", "Sunday"]
    assert ada.skills == ["forklift", "first-aid"]
    assert ada.skill_levels == {"forklift": "expert"}
    assert ada.department == "ops"
    assert [e.employee_id for e in EmployeeRepository.get_active(db_session)] == [1]


def test_import_bad_skill_level(db_session, tmp_path):
    csv_file = tmp_path / "employees.csv"
    csv_file.write_text("employee_id,name,fixed_shift,skill_levels\n1,Ada,S1,forklift:wizard\n")
    with pytest.raises(ValueError):
        import_employees_csv(db_session, csv_file)


def test_import_shift_catalog_csv(db_session, tmp_path):
    csv_file = tmp_path / "shifts.csv"
    csv_file.write_text("code,name,start_time,end_time,required_skill,sort_order\nN1,Split,10:00,18:00,forklift,9\n")
    assert import_shift_catalog_csv(db_session, csv_file) == 1
    shift = ShiftRepository.get_by_code(db_session, "N1")
    assert (shift.start_time, shift.required_skill, shift.sort_order) == ("10:00", "forklift", 9)
    assert ShiftRepository.get_all(db_session)[-1].code == "N1"


def test_import_holidays_and_leaves(db_session, tmp_path):
    holidays = tmp_path / "holidays.csv"
    holidays.write_text(
        "date,name,holiday_type,recurring\n2024-12-25,Christmas,public,true\n2024-12-24,Eve,optional,\n"
    )
    assert import_holidays_csv(db_session, holidays) == 2
    assert HolidayRepository.get_all(db_session)[1].recurring is True

    leaves = tmp_path / "leaves.csv"
    leaves.write_text("emp_id,start_date,end_date,leave_type,status\n1,2024-12-10,2024-12-12,sick,approved\n")
    assert import_leaves_csv(db_session, leaves) == 1
    assert LeaveRepository.get_by_employee(db_session, 1)[0].leave_type == "sick"


def test_import_leave_bad_range(db_session, tmp_path):
    leaves = tmp_path / "leaves.csv"
    leaves.write_text("emp_id,start_date,end_date\n1,2024-12-12,2024-12-10\n")
    with pytest.raises(ValueError):
        import_leaves_csv(db_session, leaves)
    assert LeaveRepository.get_all(db_session) == []


def test_import_rules_csv(db_session, tmp_path):
    rules = tmp_path / "rules.csv"
    rules.write_text(
        "name,rule_type,violation_action,priority,allow_override,conditions\n"
        'Rest,rest,block,1,false,"{""minRestHours"": 11}"\n'
        'Cover,coverage,warn,4,,"{""minEmployeesPerShift"": {""S1"": 2}}"\n'
    )
    assert import_rules_csv(db_session, rules) == 2
    rest = RuleRepository.get_all(db_session)[0]
    assert rest.conditions == {"minRestHours": 11}
    assert rest.allow_override is False
    assert rest.enabled is True


def test_import_rules_rejects_bad_conditions(db_session, tmp_path):
    rules = tmp_path / "rules.csv"
    rules.write_text(
        "name,rule_type,conditions\n"
        'Good,rest,"{""minRestHours"": 11}"\n'
        'Bad,consecutive-shift,"{""maxConsecutiveDays"": ""many""}"\n'
    )
    with pytest.raises(RuleConfigError):
        import_rules_csv(db_session, rules)
    assert RuleRepository.get_all(db_session) == []


def test_export_roster(make_snapshot, tmp_path):
    snapshot = make_snapshot([(1, "S1", {"Sunday"}), (2, "S5", set())])
    roster = AssignmentEngine(GenerationConfig(month=2, year=2025)).make_schedule(snapshot).roster

    grid_path = tmp_path / "grid.csv"
    assert export_roster_grid_csv(roster, grid_path) == 2
    grid = pd.read_csv(grid_path)
    assert list(grid.columns)[:2] == ["emp_id", "2025-02-01"]
    assert len(grid.columns) == 29
    assert grid.loc[0, "2025-02-02"] == "WO"
    assert grid.loc[1, "2025-02-02"] == "S5"

    entries_path = tmp_path / "entries.csv"
    assert export_roster_entries_csv(roster, entries_path) == 56
    entries = pd.read_csv(entries_path)
    assert set(entries["shift_code"]) == {"S1", "S5", "WO"}
