"""Repository classes for data access."""

from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import List, Optional

from sqlalchemy import case, create_engine, extract, or_
from sqlalchemy.orm import Session, sessionmaker

from rostering.errors import InvalidTransition
from rostering.rules.base import parse_rule

from .models import Base, Employee, Holiday, Leave, Roster, RosterEntry, Rule, ShiftDefinition


class DatabaseManager:
    """Manages database connection and session factory."""

    def __init__(self, db_url: str = "sqlite:///roster.db"):
        """
        Initialize database manager.

        Args:
            db_url: SQLAlchemy database URL (default: sqlite:///roster.db)
        """
        self.engine = create_engine(db_url, echo=False)
        self.SessionLocal = sessionmaker(bind=self.engine)

    def create_tables(self):
        """Create all tables if they don't exist."""
        Base.metadata.create_all(self.engine)

    def drop_tables(self):
        """Drop all tables (use with caution!)."""
        Base.metadata.drop_all(self.engine)

    def get_session(self) -> Session:
        """Get a new database session."""
        return self.SessionLocal()


class ShiftRepository:
    """Repository for the shift catalog."""

    @staticmethod
    def get_all(session: Session) -> List[ShiftDefinition]:
        """Get all catalog shifts in fallback order."""
        return session.query(ShiftDefinition).order_by(ShiftDefinition.sort_order, ShiftDefinition.code).all()

    @staticmethod
    def get_by_code(session: Session, code: str) -> Optional[ShiftDefinition]:
        return session.query(ShiftDefinition).filter(ShiftDefinition.code == code).first()

    @staticmethod
    def bulk_create(session: Session, shifts: List[ShiftDefinition]) -> None:
        """Create multiple catalog shifts."""
        session.add_all(shifts)
        session.commit()


class EmployeeRepository:
    """Repository for employee data access."""

    @staticmethod
    def get_all(session: Session) -> List[Employee]:
        """Get all employees."""
        return session.query(Employee).order_by(Employee.employee_id).all()

    @staticmethod
    def get_active(session: Session) -> List[Employee]:
        """Get active employees ordered by id."""
        return (
            session.query(Employee)
            .filter(Employee.status == "active")
            .order_by(Employee.employee_id)
            .all()
        )

    @staticmethod
    def get_by_id(session: Session, employee_id: int) -> Optional[Employee]:
        """Get employee by ID."""
        return session.query(Employee).filter(Employee.employee_id == employee_id).first()

    @staticmethod
    def create(session: Session, employee: Employee) -> Employee:
        """Create a new employee."""
        session.add(employee)
        session.commit()
        session.refresh(employee)
        return employee

    @staticmethod
    def update(session: Session, employee: Employee) -> Employee:
        """Update an existing employee."""
        session.merge(employee)
        session.commit()
        return employee

    @staticmethod
    def bulk_create(session: Session, employees: List[Employee]) -> None:
        """Create multiple employees."""
        session.add_all(employees)
        session.commit()


class HolidayRepository:
    """Repository for holidays."""

    @staticmethod
    def get_all(session: Session) -> List[Holiday]:
        return session.query(Holiday).order_by(Holiday.date).all()

    @staticmethod
    def get_between(session: Session, start: date, end: date) -> List[Holiday]:
        """Holidays dated inside [start, end] plus every recurring holiday."""
        return (
            session.query(Holiday)
            .filter(or_(Holiday.recurring.is_(True), Holiday.date.between(start, end)))
            .order_by(Holiday.date)
            .all()
        )

    @staticmethod
    def get_for_month(session: Session, year: int, month: int) -> List[Holiday]:
        """Dated holidays of the month plus recurring ones falling in that month."""
        return (
            session.query(Holiday)
            .filter(extract("month", Holiday.date) == month)
            .filter(or_(Holiday.recurring.is_(True), extract("year", Holiday.date) == year))
            .order_by(Holiday.date)
            .all()
        )

    @staticmethod
    def create(session: Session, holiday: Holiday) -> Holiday:
        session.add(holiday)
        session.commit()
        session.refresh(holiday)
        return holiday

    @staticmethod
    def bulk_create(session: Session, holidays: List[Holiday]) -> None:
        session.add_all(holidays)
        session.commit()


class LeaveRepository:
    """Repository for leave requests."""

    @staticmethod
    def get_all(session: Session) -> List[Leave]:
        return session.query(Leave).order_by(Leave.start_date, Leave.emp_id).all()

    @staticmethod
    def get_by_employee(session: Session, emp_id: int) -> List[Leave]:
        return session.query(Leave).filter(Leave.emp_id == emp_id).order_by(Leave.start_date).all()

    @staticmethod
    def get_approved_between(session: Session, start: date, end: date) -> List[Leave]:
        """Approved leaves overlapping the inclusive window [start, end]."""
        return (
            session.query(Leave)
            .filter(Leave.status == "approved")
            .filter(Leave.start_date <= end, Leave.end_date >= start)
            .order_by(Leave.start_date, Leave.emp_id)
            .all()
        )

    @staticmethod
    def create(session: Session, leave: Leave) -> Leave:
        if leave.start_date > leave.end_date:
            raise ValueError(f"Leave start {leave.start_date} is after end {leave.end_date}")
        session.add(leave)
        session.commit()
        session.refresh(leave)
        return leave

    @staticmethod
    def bulk_create(session: Session, leaves: List[Leave]) -> None:
        for leave in leaves:
            if leave.start_date > leave.end_date:
                raise ValueError(f"Leave start {leave.start_date} is after end {leave.end_date}")
        session.add_all(leaves)
        session.commit()


class RuleRepository:
    """Repository for rules. Condition payloads are validated on save."""

    @staticmethod
    def get_all(session: Session) -> List[Rule]:
        return session.query(Rule).order_by(Rule.priority, Rule.id).all()

    @staticmethod
    def get_enabled(session: Session) -> List[Rule]:
        """Enabled rules, lowest priority number first."""
        return session.query(Rule).filter(Rule.enabled.is_(True)).order_by(Rule.priority, Rule.id).all()

    @staticmethod
    def get_by_id(session: Session, rule_id: int) -> Optional[Rule]:
        return session.query(Rule).filter(Rule.id == rule_id).first()

    @staticmethod
    def _validate(rule: Rule) -> None:
        # raises RuleConfigError
        parse_rule(
            rule_id=rule.id,
            name=rule.name,
            rule_type=rule.rule_type,
            conditions=rule.conditions or {},
            violation_action=rule.violation_action or "warn",
            allow_override=True if rule.allow_override is None else rule.allow_override,
            enabled=True if rule.enabled is None else rule.enabled,
            priority=5 if rule.priority is None else rule.priority,
        )

    @staticmethod
    def create(session: Session, rule: Rule) -> Rule:
        """Create a new rule after validating its conditions."""
        RuleRepository._validate(rule)
        session.add(rule)
        session.commit()
        session.refresh(rule)
        return rule

    @staticmethod
    def update(session: Session, rule: Rule) -> Rule:
        RuleRepository._validate(rule)
        rule.updated_at = datetime.utcnow()
        merged = session.merge(rule)
        session.commit()
        return merged

    @staticmethod
    def set_enabled(session: Session, rule_id: int, enabled: bool) -> Optional[Rule]:
        rule = RuleRepository.get_by_id(session, rule_id)
        if rule is None:
            return None
        rule.enabled = enabled
        rule.updated_at = datetime.utcnow()
        session.commit()
        return rule

    @staticmethod
    def delete(session: Session, rule_id: int) -> bool:
        rule = RuleRepository.get_by_id(session, rule_id)
        if rule is None:
            return False
        session.delete(rule)
        session.commit()
        return True

    @staticmethod
    def bulk_create(session: Session, rules: List[Rule]) -> None:
        for rule in rules:
            RuleRepository._validate(rule)
        session.add_all(rules)
        session.commit()


class RosterRepository:
    """Repository for rosters and their entries."""

    @staticmethod
    def get_all(session: Session) -> List[Roster]:
        return session.query(Roster).order_by(Roster.year.desc(), Roster.month.desc(), Roster.id.desc()).all()

    @staticmethod
    def get_by_id(session: Session, roster_id: int) -> Optional[Roster]:
        return session.query(Roster).filter(Roster.id == roster_id).first()

    @staticmethod
    def get_latest_for_month(session: Session, year: int, month: int) -> Optional[Roster]:
        """Published roster if there is one, otherwise the most recently updated."""
        published_first = case((Roster.status == "published", 0), else_=1)
        return (
            session.query(Roster)
            .filter(Roster.year == year, Roster.month == month)
            .order_by(published_first, Roster.updated_at.desc(), Roster.id.desc())
            .first()
        )

    @staticmethod
    def create(session: Session, roster: Roster) -> Roster:
        """Persist a freshly generated roster with its entries."""
        session.add(roster)
        session.commit()
        session.refresh(roster)
        return roster

    @staticmethod
    def save(session: Session, roster: Roster) -> Roster:
        """Commit pending changes on a roster (entries included)."""
        roster.updated_at = datetime.utcnow()
        session.add(roster)
        session.commit()
        return roster

    @staticmethod
    def replace_entries(session: Session, roster: Roster, entries: List[RosterEntry]) -> Roster:
        """
        Swap a roster's unlocked entries for regenerated ones.

        Locked entries stay attached as they are; the version goes up by one.
        """
        keep = {(e.emp_id, e.date) for e in roster.entries if e.is_locked}
        for old in [e for e in roster.entries if not e.is_locked]:
            roster.entries.remove(old)
        # deletes must hit the unique (roster, employee, date) index before the inserts
        session.flush()
        roster.entries.extend(e for e in entries if (e.emp_id, e.date) not in keep)
        roster.version = (roster.version or 0) + 1
        return RosterRepository.save(session, roster)

    @staticmethod
    def _transition(session: Session, roster: Roster, current: str, requested: str) -> Roster:
        if roster.status != current:
            raise InvalidTransition(roster.id, roster.status, requested)
        roster.status = requested
        now = datetime.utcnow()
        if requested == "published":
            roster.published_at = now
        elif requested == "archived":
            roster.archived_at = now
        return RosterRepository.save(session, roster)

    @staticmethod
    def publish(session: Session, roster: Roster) -> Roster:
        """draft -> published."""
        return RosterRepository._transition(session, roster, "draft", "published")

    @staticmethod
    def archive(session: Session, roster: Roster) -> Roster:
        """published -> archived."""
        return RosterRepository._transition(session, roster, "published", "archived")


def month_bounds(year: int, month: int) -> tuple[date, date]:
    """First and last calendar day of a month."""
    first = date(year, month, 1)
    nxt = date(year + (month == 12), month % 12 + 1, 1)
    return first, nxt - timedelta(days=1)
