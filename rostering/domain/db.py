"""Database initialization and utilities."""

from __future__ import annotations

import logging
from typing import Iterable

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from .models import Base, ShiftDefinition

logger = logging.getLogger(__name__)

DEFAULT_DB_URL = "sqlite:///roster.db"


def create_db_engine(db_url: str = DEFAULT_DB_URL, echo: bool = False):
    """Create SQLAlchemy engine."""
    return create_engine(db_url, echo=echo)


def init_database(db_url: str = DEFAULT_DB_URL) -> None:
    """Initialize database and create all tables."""
    engine = create_db_engine(db_url)
    Base.metadata.create_all(engine)
    logger.info("Database initialized: %s", db_url)


def get_session_factory(db_url: str = DEFAULT_DB_URL):
    """Get a session factory for the database."""
    engine = create_db_engine(db_url)
    return sessionmaker(bind=engine)


def get_session(db_url: str = DEFAULT_DB_URL) -> Session:
    """Get a new database session."""
    SessionFactory = get_session_factory(db_url)
    return SessionFactory()


def reset_database(db_url: str = DEFAULT_DB_URL) -> None:
    """Drop all tables and recreate (WARNING: deletes all data!)."""
    engine = create_db_engine(db_url)
    Base.metadata.drop_all(engine)
    Base.metadata.create_all(engine)
    logger.warning("Database reset: %s", db_url)


def seed_shift_catalog(session: Session, templates: Iterable) -> int:
    """Insert catalog shifts that are not present yet. Returns number added."""
    existing = {code for (code,) in session.query(ShiftDefinition.code).all()}
    added = 0
    for order, tpl in enumerate(templates):
        if tpl.code in existing:
            continue
        session.add(
            ShiftDefinition(
                code=tpl.code,
                name=tpl.name,
                start_time=tpl.start,
                end_time=tpl.end,
                required_skill=tpl.required_skill,
                sort_order=order,
            )
        )
        added += 1
    session.commit()
    return added
