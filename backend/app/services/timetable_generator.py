from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.exceptions import SectionNotFound, SessionArchived, SessionLocked, SessionNotFound
from app.models.academic_session import AcademicSession, AcademicSessionStatus
from app.models.school_class import Section
from app.models.timetable import TimetableSlot
from app.schemas.timetable import GenerateTimetableRequest, GenerationResult
from app.services.academic_calendar import DayStatus, build_session_calendar
from app.services.calendar_reliability import analyze_calendar_reliability
from app.services.scheduler_state import TeacherSlot
from app.services.slot_scorer import RelaxationLevel
from app.services.timetable_loader import TemplateLayout, load_subject_requirements, resolve_template
from app.services.timetable_persistence import replace_section_timetable
from app.services.timetable_scheduler import schedule_section

logger = logging.getLogger(__name__)

CLOSED_SESSION_STATUSES = {AcademicSessionStatus.completed, AcademicSessionStatus.archived}


class TimetableGenerator:
    """Generates and stores the weekly timetable of one section."""

    def __init__(self, db: Session, institution_id: str) -> None:
        self.db = db
        self.institution_id = institution_id

    def generate(self, request: GenerateTimetableRequest) -> GenerationResult:
        section = self._load_section(request.section_id)
        session = self._load_session(request.session_id)
        if session.is_locked:
            raise SessionLocked(session.id)
        if session.status in CLOSED_SESSION_STATUSES:
            raise SessionArchived(session.id, session.status.value)

        template = resolve_template(self.db, self.institution_id, request.template_id)
        layout = TemplateLayout.from_record(template)
        requirements = load_subject_requirements(
            self.db,
            institution_id=self.institution_id,
            section=section,
            session_id=session.id,
            layout=layout,
        )

        calendar = build_session_calendar(self.db, session)
        weekly_off_days = set(session.weekly_off_days or [])
        reliability = analyze_calendar_reliability(
            {day: status == DayStatus.working for day, status in calendar.items()},
            weekly_off_days=weekly_off_days,
        )
        working_days = [day for day in range(7) if day not in weekly_off_days]
        logger.info(
            "Generating timetable | section_id=%s session_id=%s template_id=%s subjects=%s working_days=%s",
            section.id,
            session.id,
            template.id,
            len(requirements),
            working_days,
        )

        outcome = schedule_section(
            layout=layout,
            working_days=working_days,
            requirements=requirements,
            reliability=reliability,
            cross_section_busy=self._cross_section_busy(section.id, session.id),
        )
        slots_created = replace_section_timetable(
            self.db,
            institution_id=self.institution_id,
            class_id=section.class_id,
            section_id=section.id,
            session_id=session.id,
            assignments=outcome.assignments,
        )

        warnings = list(reliability.warnings)
        if outcome.level_reached > RelaxationLevel.STRICT:
            warnings.append(
                f"Some scheduling constraints were relaxed to place every period "
                f"(level {outcome.level_reached.name})."
            )
        return GenerationResult(success=True, slots_created=slots_created, warnings=warnings)

    def _load_section(self, section_id: str) -> Section:
        section = self.db.execute(
            select(Section).where(Section.id == section_id, Section.institution_id == self.institution_id)
        ).scalar_one_or_none()
        if section is None:
            raise SectionNotFound(section_id)
        return section

    def _load_session(self, session_id: str) -> AcademicSession:
        session = self.db.execute(
            select(AcademicSession).where(
                AcademicSession.id == session_id,
                AcademicSession.institution_id == self.institution_id,
            )
        ).scalar_one_or_none()
        if session is None:
            raise SessionNotFound(session_id)
        return session

    def _cross_section_busy(self, section_id: str, session_id: str) -> set[TeacherSlot]:
        rows = self.db.execute(
            select(TimetableSlot.teacher_id, TimetableSlot.day_of_week, TimetableSlot.slot_number).where(
                TimetableSlot.institution_id == self.institution_id,
                TimetableSlot.session_id == session_id,
                TimetableSlot.section_id != section_id,
                TimetableSlot.teacher_id.is_not(None),
                TimetableSlot.is_active.is_(True),
            )
        ).all()
        return {(teacher_id, day, slot) for teacher_id, day, slot in rows}
