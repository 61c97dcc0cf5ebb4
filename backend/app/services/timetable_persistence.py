from __future__ import annotations

import logging
from collections.abc import Sequence

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.exceptions import DuplicateSlot, IntegrityViolation
from app.models.curriculum import Subject
from app.models.teacher import Teacher
from app.models.timetable import TimetableSlot
from app.services.timetable_scheduler import GeneratedAssignment

logger = logging.getLogger(__name__)

UNIQUE_VIOLATION_SQLSTATE = "23505"


def sanitize_reference(value: str | None) -> str | None:
    """Blank or whitespace-only ids are stored as NULL."""
    if value is None:
        return None
    value = value.strip()
    return value or None


def is_unique_violation(exc: IntegrityError) -> bool:
    """True when ``exc`` comes from a unique constraint rather than a FK or NOT NULL check."""
    if getattr(exc.orig, "sqlstate", None) == UNIQUE_VIOLATION_SQLSTATE:
        return True
    return "UNIQUE constraint failed" in str(exc.orig)


def verify_references(db: Session, institution_id: str, assignments: Sequence[GeneratedAssignment]) -> None:
    subject_ids = sorted({sanitize_reference(item.subject_id) for item in assignments} - {None})
    teacher_ids = sorted({sanitize_reference(item.teacher_id) for item in assignments} - {None})

    if subject_ids:
        known = set(
            db.execute(
                select(Subject.id).where(Subject.id.in_(subject_ids), Subject.institution_id == institution_id)
            ).scalars()
        )
        for subject_id in subject_ids:
            if subject_id not in known:
                logger.error("Generated slot references unknown subject | subject_id=%s", subject_id)
                raise IntegrityViolation("subject", subject_id)

    if teacher_ids:
        known = set(
            db.execute(
                select(Teacher.id).where(Teacher.id.in_(teacher_ids), Teacher.institution_id == institution_id)
            ).scalars()
        )
        for teacher_id in teacher_ids:
            if teacher_id not in known:
                logger.error("Generated slot references unknown teacher | teacher_id=%s", teacher_id)
                raise IntegrityViolation("teacher", teacher_id)


def replace_section_timetable(
    db: Session,
    *,
    institution_id: str,
    class_id: str,
    section_id: str,
    session_id: str,
    assignments: Sequence[GeneratedAssignment],
) -> int:
    """Swap the section's stored grid for ``assignments`` in one transaction.

    Nothing is committed unless every row is written; on failure the previous
    grid is left as it was.
    """
    verify_references(db, institution_id, assignments)

    current: GeneratedAssignment | None = None
    try:
        db.execute(
            delete(TimetableSlot).where(
                TimetableSlot.section_id == section_id,
                TimetableSlot.session_id == session_id,
            )
        )
        for current in assignments:
            db.add(
                TimetableSlot(
                    institution_id=institution_id,
                    class_id=class_id,
                    section_id=section_id,
                    session_id=session_id,
                    subject_id=sanitize_reference(current.subject_id),
                    teacher_id=sanitize_reference(current.teacher_id),
                    day_of_week=current.day,
                    slot_number=current.slot,
                    slot_type=current.slot_type,
                    start_time=current.start_time,
                    end_time=current.end_time,
                )
            )
            db.flush()
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        if not is_unique_violation(exc):
            logger.error(
                "Timetable write rejected by storage | section_id=%s session_id=%s error=%s",
                section_id,
                session_id,
                exc.orig,
            )
            raise
        day = current.day if current is not None else -1
        slot = current.slot if current is not None else -1
        logger.error(
            "Duplicate timetable slot | section_id=%s session_id=%s day=%s slot=%s",
            section_id,
            session_id,
            day,
            slot,
        )
        raise DuplicateSlot(day, slot) from exc
    except Exception:
        db.rollback()
        raise

    logger.info(
        "Timetable persisted | section_id=%s session_id=%s slots=%s",
        section_id,
        session_id,
        len(assignments),
    )
    return len(assignments)
