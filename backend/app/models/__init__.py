from app.models.academic_session import (  # noqa: F401
    AcademicSession,
    AcademicSessionStatus,
    SessionHoliday,
)
from app.models.activity_log import ActivityLog  # noqa: F401
from app.models.curriculum import ClassSubject, Subject  # noqa: F401
from app.models.school_class import SchoolClass, Section  # noqa: F401
from app.models.teacher import Teacher  # noqa: F401
from app.models.timetable import TimetableSlot, TimetableSlotType, TimetableTemplate  # noqa: F401
from app.models.user import User, UserRole  # noqa: F401
