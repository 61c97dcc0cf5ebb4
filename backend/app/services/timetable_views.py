from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.exceptions import ResourceNotFoundError, SectionNotFound
from app.models.curriculum import Subject
from app.models.school_class import SchoolClass, Section
from app.models.teacher import Teacher
from app.models.timetable import TimetableSlot
from app.schemas.timetable import (
    DAY_NAMES,
    ClassSummary,
    SectionSummary,
    SectionTimetableView,
    SubjectSummary,
    TeacherSummary,
    TimetableDay,
    TimetableSlotOut,
)


def _enrich_slots(db: Session, institution_id: str, rows: list[TimetableSlot]) -> list[TimetableSlotOut]:
    subject_ids = {row.subject_id for row in rows if row.subject_id}
    teacher_ids = {row.teacher_id for row in rows if row.teacher_id}
    subjects: dict[str, Subject] = {}
    teachers: dict[str, Teacher] = {}
    if subject_ids:
        subjects = {
            item.id: item
            for item in db.execute(
                select(Subject).where(Subject.id.in_(subject_ids), Subject.institution_id == institution_id)
            ).scalars()
        }
    if teacher_ids:
        teachers = {
            item.id: item
            for item in db.execute(
                select(Teacher).where(Teacher.id.in_(teacher_ids), Teacher.institution_id == institution_id)
            ).scalars()
        }

    enriched: list[TimetableSlotOut] = []
    for row in rows:
        item = TimetableSlotOut.model_validate(row)
        subject = subjects.get(row.subject_id) if row.subject_id else None
        teacher = teachers.get(row.teacher_id) if row.teacher_id else None
        if subject is not None:
            item.subject = SubjectSummary(
                id=subject.id, name=subject.name, code=subject.code, color_code=subject.color_code
            )
        if teacher is not None:
            item.teacher = TeacherSummary(
                id=teacher.id, name=teacher.name, employee_id=teacher.employee_id, email=teacher.email
            )
        enriched.append(item)
    return enriched


def get_section_timetable(db: Session, *, institution_id: str, section_id: str, session_id: str) -> SectionTimetableView:
    section = db.execute(
        select(Section).where(Section.id == section_id, Section.institution_id == institution_id)
    ).scalar_one_or_none()
    if section is None:
        raise SectionNotFound(section_id)
    school_class = db.get(SchoolClass, section.class_id)

    rows = (
        db.execute(
            select(TimetableSlot)
            .where(
                TimetableSlot.institution_id == institution_id,
                TimetableSlot.section_id == section_id,
                TimetableSlot.session_id == session_id,
                TimetableSlot.is_active.is_(True),
            )
            .order_by(TimetableSlot.day_of_week.asc(), TimetableSlot.slot_number.asc())
        )
        .scalars()
        .all()
    )
    slots = _enrich_slots(db, institution_id, list(rows))

    days = [TimetableDay(day_of_week=day, day_name=DAY_NAMES[day]) for day in range(7)]
    for slot in slots:
        days[slot.day_of_week].slots.append(slot)

    return SectionTimetableView(
        section=SectionSummary(
            id=section.id,
            name=section.name,
            school_class=ClassSummary(
                id=section.class_id,
                name=school_class.name if school_class is not None else "",
            ),
        ),
        days=days,
    )


def get_teacher_timetable(db: Session, *, institution_id: str, teacher_id: str, session_id: str) -> list[TimetableSlotOut]:
    teacher = db.execute(
        select(Teacher).where(Teacher.id == teacher_id, Teacher.institution_id == institution_id)
    ).scalar_one_or_none()
    if teacher is None:
        raise ResourceNotFoundError("Teacher", teacher_id)

    rows = (
        db.execute(
            select(TimetableSlot)
            .where(
                TimetableSlot.institution_id == institution_id,
                TimetableSlot.teacher_id == teacher_id,
                TimetableSlot.session_id == session_id,
                TimetableSlot.is_active.is_(True),
            )
            .order_by(TimetableSlot.day_of_week.asc(), TimetableSlot.slot_number.asc())
        )
        .scalars()
        .all()
    )
    return _enrich_slots(db, institution_id, list(rows))
