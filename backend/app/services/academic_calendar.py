from __future__ import annotations

from datetime import date, timedelta
from enum import Enum

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models.academic_session import AcademicSession, SessionHoliday


class DayStatus(str, Enum):
    working = "working"
    holiday = "holiday"
    weekly_off = "weekly_off"


def weekday_index(value: date) -> int:
    """Weekday number with Sunday as 0, matching stored off-days and slot days."""
    return value.isoweekday() % 7


def build_session_calendar(db: Session, session: AcademicSession) -> dict[date, DayStatus]:
    holidays = (
        db.execute(
            select(SessionHoliday).where(
                SessionHoliday.session_id == session.id,
                SessionHoliday.institution_id == session.institution_id,
            )
        )
        .scalars()
        .all()
    )
    off_days = set(session.weekly_off_days or [])

    calendar: dict[date, DayStatus] = {}
    cursor = session.start_date
    while cursor <= session.end_date:
        if any(item.start_date <= cursor <= item.end_date for item in holidays):
            calendar[cursor] = DayStatus.holiday
        elif weekday_index(cursor) in off_days:
            calendar[cursor] = DayStatus.weekly_off
        else:
            calendar[cursor] = DayStatus.working
        cursor += timedelta(days=1)
    return calendar
