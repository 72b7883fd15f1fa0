"""Pytest configuration and shared fixtures."""

from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from rostering.config import SchedulerConfig
from rostering.domain.db import seed_shift_catalog
from rostering.domain.models import Base
from rostering.domain.snapshot import EmployeeRecord, ReferenceSnapshot, RuleRecord, ShiftSpec, parse_hm
from rostering.rules.templates import RULE_TEMPLATES

CONFIG_PATH = Path(__file__).resolve().parent.parent / "roster_config.yaml"


def pytest_configure(config):
    """Configure pytest."""
    # Add custom markers
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests (deselect with '-m \"not integration\"')"
    )
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )


@pytest.fixture
def db_session():
    """Create in-memory database session for testing."""
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)
    SessionLocal = sessionmaker(bind=engine)
    session = SessionLocal()
    seed_shift_catalog(session, SchedulerConfig().shift_catalog)
    yield session
    session.close()


@pytest.fixture
def config_path():
    return CONFIG_PATH


@pytest.fixture
def catalog():
    """Default five-shift catalog as frozen specs."""
    return tuple(
        ShiftSpec(code=t.code, start=parse_hm(t.start), end=parse_hm(t.end), name=t.name, sort_order=i)
        for i, t in enumerate(SchedulerConfig().shift_catalog)
    )


def template_record(rule_id, template_id, **overrides):
    fields = dict(RULE_TEMPLATES[template_id])
    fields.update(overrides)
    return RuleRecord(
        rule_id=rule_id,
        name=fields["name"],
        rule_type=fields["rule_type"],
        conditions=fields["conditions"],
        violation_action=fields["violation_action"],
        allow_override=fields["allow_override"],
        enabled=fields.get("enabled", True),
        priority=fields["priority"],
    )


@pytest.fixture
def make_snapshot(catalog):
    """Factory: snapshot from (id, fixed_shift, week_offs) tuples or records."""

    def build(employees, rules=(), holidays=(), leaves=(), shifts=None):
        records = []
        for emp in employees:
            if isinstance(emp, EmployeeRecord):
                records.append(emp)
            else:
                emp_id, fixed, offs = emp
                records.append(EmployeeRecord(emp_id, f"Employee {emp_id}", fixed, frozenset(offs)))
        return ReferenceSnapshot(
            employees=tuple(records),
            shifts=tuple(shifts) if shifts is not None else catalog,
            rules=tuple(rules),
            holidays=tuple(holidays),
            leaves=tuple(leaves),
        )

    return build


@pytest.fixture
def rule():
    """Factory: RuleRecord from a built-in template with overrides."""
    return template_record
