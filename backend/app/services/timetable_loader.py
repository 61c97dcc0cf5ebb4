from __future__ import annotations

import logging
import math
from dataclasses import dataclass

from pydantic import ValidationError
from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from app.core.config import Settings, get_settings
from app.core.exceptions import NoSubjectsConfigured, SchedulerError, TemplateMissing
from app.models.curriculum import ClassSubject, Subject
from app.models.school_class import Section
from app.models.timetable import TimetableSlotType, TimetableTemplate
from app.schemas.timetable import (
    TIME_PATTERN,
    GenerationRules,
    SchedulingPreferences,
    minutes_to_time,
    parse_time_to_minutes,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True, order=True)
class SlotCoordinate:
    day: int
    slot: int


@dataclass(frozen=True)
class SubjectRequirement:
    requirement_id: str
    subject_id: str
    subject_name: str
    class_id: str
    section_id: str | None
    teacher_id: str | None
    periods_per_week: int
    max_periods_per_day: int
    preferences: SchedulingPreferences
    special_room_type: str | None = None

    @property
    def priority(self) -> int:
        return self.preferences.priority


@dataclass(frozen=True)
class TemplateLayout:
    total_slots: int
    start_time: str
    slot_duration: int
    break_slots: frozenset[int]
    lunch_slot: int | None
    max_consecutive_hours_teacher: int
    max_periods_per_subject_per_day: int
    max_periods_per_teacher_per_day: int
    balance_subject_distribution: bool = True

    @classmethod
    def from_record(cls, template: TimetableTemplate, settings: Settings | None = None) -> "TemplateLayout":
        settings = settings or get_settings()
        try:
            rules = GenerationRules.model_validate(template.generation_rules or {})
        except ValidationError as exc:
            raise SchedulerError(
                message="Timetable template has invalid generation rules",
                details={"template_id": template.id, "errors": exc.errors(include_url=False, include_context=False)},
            ) from exc

        start_time = template.start_time or settings.timetable_default_start_time
        if not TIME_PATTERN.match(start_time):
            raise SchedulerError(
                message="Timetable template start time must be in HH:MM format",
                details={"template_id": template.id, "start_time": start_time},
            )

        layout = cls(
            total_slots=template.total_slots_per_day or settings.timetable_default_slots_per_day,
            start_time=start_time,
            slot_duration=template.slot_duration_minutes or settings.timetable_default_slot_minutes,
            break_slots=frozenset(template.break_slots or []),
            # A stored zero means "no lunch".
            lunch_slot=template.lunch_slot or None,
            max_consecutive_hours_teacher=_rule_or_default(
                rules.max_consecutive_hours_teacher, settings.timetable_max_consecutive_hours_teacher
            ),
            max_periods_per_subject_per_day=_rule_or_default(
                rules.max_periods_per_subject_per_day, settings.timetable_max_periods_per_subject_per_day
            ),
            max_periods_per_teacher_per_day=_rule_or_default(
                rules.max_periods_per_teacher_per_day, settings.timetable_max_periods_per_teacher_per_day
            ),
            balance_subject_distribution=(
                True if rules.balance_subject_distribution is None else rules.balance_subject_distribution
            ),
        )
        if layout.academic_slots_per_day <= 0:
            raise SchedulerError(
                message="Timetable template has no academic slots",
                details={"template_id": template.id},
            )
        return layout

    def is_academic(self, slot: int) -> bool:
        return 1 <= slot <= self.total_slots and slot not in self.break_slots and slot != self.lunch_slot

    @property
    def academic_slots_per_day(self) -> int:
        return sum(1 for slot in range(1, self.total_slots + 1) if self.is_academic(slot))

    def non_academic_type(self, slot: int) -> TimetableSlotType | None:
        if slot == self.lunch_slot:
            return TimetableSlotType.lunch
        if slot in self.break_slots:
            return TimetableSlotType.break_
        return None

    @property
    def midday_boundary(self) -> int:
        """Slot separating morning from afternoon: the lunch slot, else the middle of the day."""
        return self.lunch_slot or math.ceil(self.total_slots / 2)

    def slot_times(self, slot: int) -> tuple[str, str]:
        start = parse_time_to_minutes(self.start_time) + self.slot_duration * (slot - 1)
        return minutes_to_time(start), minutes_to_time(start + self.slot_duration)


def _rule_or_default(value: int | None, default: int) -> int:
    return default if value is None else value


def resolve_template(db: Session, institution_id: str, template_id: str | None = None) -> TimetableTemplate:
    if template_id:
        template = db.execute(
            select(TimetableTemplate).where(
                TimetableTemplate.id == template_id,
                TimetableTemplate.institution_id == institution_id,
            )
        ).scalar_one_or_none()
        if template is None:
            raise TemplateMissing(template_id)
        return template

    template = db.execute(
        select(TimetableTemplate).where(
            TimetableTemplate.institution_id == institution_id,
            TimetableTemplate.is_default.is_(True),
            TimetableTemplate.is_active.is_(True),
        )
    ).scalars().first()
    if template is None:
        template = db.execute(
            select(TimetableTemplate)
            .where(
                TimetableTemplate.institution_id == institution_id,
                TimetableTemplate.is_active.is_(True),
            )
            .order_by(TimetableTemplate.created_at.asc(), TimetableTemplate.id.asc())
        ).scalars().first()
    if template is None:
        raise TemplateMissing()
    return template


def _blank_to_none(value: str | None) -> str | None:
    if value is None or not value.strip():
        return None
    return value


def load_subject_requirements(
    db: Session,
    *,
    institution_id: str,
    section: Section,
    session_id: str,
    layout: TemplateLayout,
) -> list[SubjectRequirement]:
    rows = (
        db.execute(
            select(ClassSubject)
            .where(
                ClassSubject.institution_id == institution_id,
                ClassSubject.session_id == session_id,
                ClassSubject.is_active.is_(True),
                or_(
                    ClassSubject.section_id == section.id,
                    (ClassSubject.class_id == section.class_id) & ClassSubject.section_id.is_(None),
                ),
            )
            .order_by(ClassSubject.subject_id.asc(), ClassSubject.id.asc())
        )
        .scalars()
        .all()
    )
    logger.info(
        "Loaded subject requirement rows | section_id=%s session_id=%s rows=%s",
        section.id,
        session_id,
        len(rows),
    )

    # Section-specific rows override class-wide rows for the same subject.
    merged: dict[str, ClassSubject] = {}
    for row in rows:
        if row.section_id or row.subject_id not in merged:
            merged[row.subject_id] = row

    subject_names = {
        subject.id: subject.name
        for subject in db.execute(
            select(Subject).where(Subject.id.in_(list(merged)), Subject.institution_id == institution_id)
        ).scalars()
    }

    requirements: list[SubjectRequirement] = []
    for subject_id, row in merged.items():
        if row.periods_per_week <= 0:
            logger.warning(
                "Skipping requirement without weekly periods | requirement_id=%s subject_id=%s",
                row.id,
                subject_id,
            )
            continue
        try:
            preferences = SchedulingPreferences.model_validate(row.scheduling_preferences or {})
        except ValidationError as exc:
            raise SchedulerError(
                message=f"Invalid scheduling preferences for subject {subject_names.get(subject_id, subject_id)}",
                details={"requirement_id": row.id, "errors": exc.errors(include_url=False, include_context=False)},
            ) from exc

        requirements.append(
            SubjectRequirement(
                requirement_id=row.id,
                subject_id=subject_id,
                subject_name=subject_names.get(subject_id, "Unknown"),
                class_id=row.class_id,
                section_id=row.section_id,
                teacher_id=_blank_to_none(row.teacher_id),
                periods_per_week=row.periods_per_week,
                max_periods_per_day=row.max_periods_per_day or layout.max_periods_per_subject_per_day,
                preferences=preferences,
                special_room_type=row.special_room_type if row.requires_special_room else None,
            )
        )

    if not requirements:
        raise NoSubjectsConfigured(section.id)

    requirements.sort(key=lambda item: (-item.priority, -item.periods_per_week))
    return requirements
