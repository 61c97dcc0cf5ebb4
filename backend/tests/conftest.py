from datetime import date
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.api.deps import get_db
from app.core.security import create_access_token
from app.db.base import Base
from app.main import app
from app.models.academic_session import AcademicSession, AcademicSessionStatus
from app.models.curriculum import ClassSubject, Subject
from app.models.school_class import SchoolClass, Section
from app.models.teacher import Teacher
from app.models.timetable import TimetableTemplate
from app.models.user import User, UserRole
from app.schemas.timetable import SchedulingPreferences
from app.services.calendar_reliability import CalendarReliability
from app.services.timetable_loader import SubjectRequirement, TemplateLayout

INSTITUTION_ID = "inst-1"


@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture()
def db_session(session_factory):
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def client(session_factory):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture()
def auth_headers(db_session):
    def _make(role: UserRole = UserRole.admin, institution_id: str = INSTITUTION_ID) -> dict:
        user = User(
            institution_id=institution_id,
            name=f"{role.value.title()} User",
            email=f"{role.value}-{institution_id}@example.com",
            role=role,
        )
        db_session.add(user)
        db_session.commit()
        token = create_access_token(subject=user.id)
        return {"Authorization": f"Bearer {token}"}

    return _make


@pytest.fixture()
def school(db_session):
    """Two sections of one class, a Monday-Friday session and a 6-slot default template.

    Slot 3 is a break and slot 5 is lunch, which leaves 4 academic slots per
    day and 20 per week.
    """
    school_class = SchoolClass(institution_id=INSTITUTION_ID, name="Grade 5")
    db_session.add(school_class)
    db_session.flush()
    section_a = Section(institution_id=INSTITUTION_ID, class_id=school_class.id, name="A")
    section_b = Section(institution_id=INSTITUTION_ID, class_id=school_class.id, name="B")
    session = AcademicSession(
        institution_id=INSTITUTION_ID,
        name="2024 Term 1",
        start_date=date(2024, 1, 1),
        end_date=date(2024, 3, 31),
        weekly_off_days=[0, 6],
        status=AcademicSessionStatus.active,
    )
    template = TimetableTemplate(
        institution_id=INSTITUTION_ID,
        name="Standard day",
        total_slots_per_day=6,
        start_time="08:00",
        slot_duration_minutes=45,
        break_slots=[3],
        lunch_slot=5,
        generation_rules={},
        is_default=True,
    )
    math_subject = Subject(institution_id=INSTITUTION_ID, code="MATH", name="Mathematics", color_code="#1f77b4")
    english = Subject(institution_id=INSTITUTION_ID, code="ENG", name="English")
    science = Subject(institution_id=INSTITUTION_ID, code="SCI", name="Science")
    teacher_one = Teacher(institution_id=INSTITUTION_ID, employee_id="T-001", name="Asha Rao")
    teacher_two = Teacher(institution_id=INSTITUTION_ID, employee_id="T-002", name="Daniel Kim")
    db_session.add_all(
        [section_a, section_b, session, template, math_subject, english, science, teacher_one, teacher_two]
    )
    db_session.commit()
    return SimpleNamespace(
        class_id=school_class.id,
        section_a=section_a.id,
        section_b=section_b.id,
        session_id=session.id,
        template_id=template.id,
        math=math_subject.id,
        english=english.id,
        science=science.id,
        teacher_one=teacher_one.id,
        teacher_two=teacher_two.id,
    )


@pytest.fixture()
def add_requirement(db_session, school):
    def _add(
        subject_id: str,
        periods_per_week: int,
        *,
        teacher_id: str | None = None,
        section_id: str | None = None,
        max_periods_per_day: int | None = None,
        preferences: dict | None = None,
    ) -> ClassSubject:
        row = ClassSubject(
            institution_id=INSTITUTION_ID,
            session_id=school.session_id,
            class_id=school.class_id,
            section_id=section_id,
            subject_id=subject_id,
            teacher_id=teacher_id,
            periods_per_week=periods_per_week,
            max_periods_per_day=max_periods_per_day,
            scheduling_preferences=preferences or {},
        )
        db_session.add(row)
        db_session.commit()
        return row

    return _add


@pytest.fixture()
def make_layout():
    def _make(**overrides) -> TemplateLayout:
        values = {
            "total_slots": 6,
            "start_time": "08:00",
            "slot_duration": 45,
            "break_slots": frozenset({3}),
            "lunch_slot": 5,
            "max_consecutive_hours_teacher": 4,
            "max_periods_per_subject_per_day": 2,
            "max_periods_per_teacher_per_day": 6,
        }
        values.update(overrides)
        return TemplateLayout(**values)

    return _make


@pytest.fixture()
def make_requirement():
    def _make(
        subject_id: str,
        periods_per_week: int,
        *,
        teacher_id: str | None = None,
        max_periods_per_day: int = 2,
        **preferences,
    ) -> SubjectRequirement:
        preferences.setdefault("spread_evenly", False)
        return SubjectRequirement(
            requirement_id=f"req-{subject_id}",
            subject_id=subject_id,
            subject_name=subject_id.title(),
            class_id="class-1",
            section_id=None,
            teacher_id=teacher_id,
            periods_per_week=periods_per_week,
            max_periods_per_day=max_periods_per_day,
            preferences=SchedulingPreferences(**preferences),
        )

    return _make


@pytest.fixture()
def flat_reliability():
    return CalendarReliability(reliability={}, working_counts={})
