"""SQLAlchemy models for the rostering system."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, relationship

from rostering.constants import HOLIDAY, LEAVE, UNRESOLVED, is_work_shift


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


class ShiftDefinition(Base):
    """Catalog shift. A shift whose end is not after its start finishes the next day."""

    __tablename__ = "shift_definitions"

    code = Column(String(10), primary_key=True)
    name = Column(String(100), nullable=False, default="")
    start_time = Column(String(5), nullable=False)  # HH:MM
    end_time = Column(String(5), nullable=False)  # HH:MM
    required_skill = Column(String(100), nullable=True)
    sort_order = Column(Integer, nullable=False, default=0)

    def __repr__(self) -> str:
        return f"<ShiftDefinition(code='{self.code}', {self.start_time}-{self.end_time})>"


class Employee(Base):
    """Employee with skills, week-offs and a fixed (preferred) shift."""

    __tablename__ = "employees"

    employee_id = Column(Integer, primary_key=True)
    name = Column(String(200), nullable=False)
    department = Column(String(100), nullable=True)
    skills = Column(JSON, nullable=False, default=list)  # ordered skill tags
    skill_levels = Column(JSON, nullable=False, default=dict)  # tag -> beginner..expert
    week_offs = Column(JSON, nullable=False, default=list)  # weekday names
    fixed_shift = Column(String(10), ForeignKey("shift_definitions.code"), nullable=False)
    status = Column(String(10), nullable=False, default="active")

    leaves = relationship("Leave", back_populates="employee")
    roster_entries = relationship("RosterEntry", back_populates="employee")

    @property
    def is_active(self) -> bool:
        return self.status == "active"

    def __repr__(self) -> str:
        return f"<Employee(id={self.employee_id}, name='{self.name}', fixed_shift='{self.fixed_shift}')>"


class Holiday(Base):
    """Holiday record; recurring holidays repeat on the same month/day every year."""

    __tablename__ = "holidays"
    __table_args__ = (UniqueConstraint("date", "holiday_type", name="uq_holiday_date_type"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    date = Column(Date, nullable=False)
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    holiday_type = Column(String(20), nullable=False, default="public")  # public, company, optional
    recurring = Column(Boolean, nullable=False, default=False)

    def __repr__(self) -> str:
        return f"<Holiday(date={self.date}, name='{self.name}', type='{self.holiday_type}')>"


class Leave(Base):
    """Leave request over an inclusive date range. Only approved leave blocks shifts."""

    __tablename__ = "leaves"
    __table_args__ = (CheckConstraint("start_date <= end_date", name="ck_leave_range"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    emp_id = Column(Integer, ForeignKey("employees.employee_id"), nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    reason = Column(Text, nullable=True)
    leave_type = Column(String(20), nullable=False, default="vacation")
    status = Column(String(20), nullable=False, default="pending")  # pending, approved, rejected
    applied_date = Column(Date, nullable=True)
    approved_by = Column(String(100), nullable=True)

    employee = relationship("Employee", back_populates="leaves")

    def __repr__(self) -> str:
        return f"<Leave(emp={self.emp_id}, {self.start_date}..{self.end_date}, status='{self.status}')>"


class Rule(Base):
    """Scheduling rule. ``conditions`` is the type-specific camelCase payload."""

    __tablename__ = "rules"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    rule_type = Column(String(30), nullable=False)
    enabled = Column(Boolean, nullable=False, default=True)
    priority = Column(Integer, nullable=False, default=5)  # lower wins
    conditions = Column(JSON, nullable=False, default=dict)
    violation_action = Column(String(10), nullable=False, default="warn")  # block, warn, ignore
    allow_override = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self) -> str:
        return f"<Rule(id={self.id}, name='{self.name}', type='{self.rule_type}', priority={self.priority})>"


class Roster(Base):
    """A month of roster entries with lifecycle status and a save counter."""

    __tablename__ = "rosters"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False)
    month = Column(Integer, nullable=False)  # 1..12
    year = Column(Integer, nullable=False)
    status = Column(String(20), nullable=False, default="draft")  # draft, published, archived
    version = Column(Integer, nullable=False, default=1)
    generation_config = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    created_by = Column(String(100), nullable=True)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    published_at = Column(DateTime, nullable=True)
    archived_at = Column(DateTime, nullable=True)

    entries = relationship(
        "RosterEntry",
        back_populates="roster",
        cascade="all, delete-orphan",
        order_by="RosterEntry.date",
    )

    def entry_for(self, emp_id: int, day) -> "RosterEntry | None":
        for entry in self.entries:
            if entry.emp_id == emp_id and entry.date == day:
                return entry
        return None

    def __repr__(self) -> str:
        return f"<Roster(id={self.id}, name='{self.name}', {self.year}-{self.month:02d}, status='{self.status}', v{self.version})>"


class RosterEntry(Base):
    """One (employee, date) cell of a roster."""

    __tablename__ = "roster_entries"
    __table_args__ = (UniqueConstraint("roster_id", "emp_id", "date", name="uq_roster_cell"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    roster_id = Column(Integer, ForeignKey("rosters.id"), nullable=False)
    emp_id = Column(Integer, ForeignKey("employees.employee_id"), nullable=False)
    date = Column(Date, nullable=False)
    shift_code = Column(String(12), nullable=False)
    # list of {rule_id, rule_name, rule_type, severity, message[, overridden]}
    violations = Column(JSON, nullable=False, default=list)
    is_locked = Column(Boolean, nullable=False, default=False)
    last_modified = Column(DateTime, nullable=True)
    modified_by = Column(String(100), nullable=True)
    revision = Column(Integer, nullable=False, default=0)  # bumped on every cell write

    roster = relationship("Roster", back_populates="entries")
    employee = relationship("Employee", back_populates="roster_entries")

    @property
    def is_holiday(self) -> bool:
        return self.shift_code == HOLIDAY

    @property
    def is_leave(self) -> bool:
        return self.shift_code == LEAVE

    @property
    def is_unresolved(self) -> bool:
        return self.shift_code == UNRESOLVED

    @property
    def is_work(self) -> bool:
        return is_work_shift(self.shift_code)

    def __repr__(self) -> str:
        lock = " locked" if self.is_locked else ""
        return f"<RosterEntry(emp={self.emp_id}, date={self.date}, shift='{self.shift_code}'{lock})>"
