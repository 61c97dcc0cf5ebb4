from __future__ import annotations

import logging

from sqlalchemy import inspect

from app.db.base import Base
from app.db.session import engine

import app.models  # noqa: F401

logger = logging.getLogger(__name__)

REQUIRED_TABLES: tuple[str, ...] = (
    "users",
    "academic_sessions",
    "session_holidays",
    "classes",
    "sections",
    "subjects",
    "teachers",
    "class_subjects",
    "timetable_templates",
    "timetable_slots",
    "activity_logs",
)


def _assert_required_tables() -> None:
    with engine.begin() as connection:
        table_names = set(inspect(connection).get_table_names())
        missing_tables = [name for name in REQUIRED_TABLES if name not in table_names]
        if missing_tables:
            raise RuntimeError(f"Missing required tables: {', '.join(sorted(missing_tables))}")


def ensure_runtime_schema_compatibility() -> None:
    try:
        Base.metadata.create_all(bind=engine)
        _assert_required_tables()
    except Exception as exc:  # pragma: no cover - runtime environment dependent
        logger.exception("Runtime schema compatibility bootstrap failed")
        raise RuntimeError("Runtime schema compatibility bootstrap failed") from exc
