from __future__ import annotations

from collections import Counter
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import date

from app.schemas.timetable import DAY_NAMES
from app.services.academic_calendar import weekday_index

LOW_INSTRUCTION_RATIO = 0.8


@dataclass(frozen=True)
class CalendarReliability:
    reliability: dict[int, float]
    working_counts: dict[int, int]
    warnings: list[str] = field(default_factory=list)

    def for_day(self, day: int) -> float:
        return self.reliability.get(day, 1.0)


def analyze_calendar_reliability(
    calendar: Mapping[date, bool],
    weekly_off_days: Iterable[int] = (),
) -> CalendarReliability:
    """Weight each weekday by how often it is actually a working day.

    ``calendar`` maps each date of the session to whether it is a working day.
    Weights run from 0.5 (never working) to 1.0 (the most frequent working
    weekday), so heavy subjects drift towards weekdays that lose fewer periods
    to holidays.
    """
    counts = Counter(weekday_index(day) for day, is_working in calendar.items() if is_working)
    working_counts = {day: counts.get(day, 0) for day in range(7)}
    max_count = max(max(working_counts.values()), 1)
    reliability = {day: 0.5 + 0.5 * (count / max_count) for day, count in working_counts.items()}

    warnings: list[str] = []
    if calendar:
        off_days = set(weekly_off_days)
        for day, count in working_counts.items():
            if day in off_days:
                continue
            if count < max_count * LOW_INSTRUCTION_RATIO:
                warnings.append(
                    f"{DAY_NAMES[day]} has significantly fewer instructional days ({count}) "
                    "due to holidays in this session."
                )
    return CalendarReliability(reliability=reliability, working_counts=working_counts, warnings=warnings)
