from __future__ import annotations

from enum import IntEnum

from app.services.calendar_reliability import CalendarReliability
from app.services.scheduler_state import SchedulerState
from app.services.timetable_loader import SubjectRequirement, TemplateLayout

FIXED_SLOT_SCORE = 10_000.0

BASE_WEIGHT = 100.0
HEAVY_SUBJECT_WEIGHT = 150.0
HEAVY_SUBJECT_PERIODS = 4
PREFERRED_DAY_BONUS = 50.0
EXACT_SLOT_BONUS = 40.0
EDGE_SLOT_BONUS = 30.0
HALF_DAY_BONUS = 20.0
AVOID_DAY_PENALTY = 200.0
AVOID_SLOT_PENALTY = 150.0
SPREAD_PENALTY = 40.0
CONSECUTIVE_BONUS = 60.0
TEACHER_SPAN_PENALTY = 50.0
TEACHER_LOAD_PENALTY = 15.0


class RelaxationLevel(IntEnum):
    STRICT = 0
    RELAX_PREFERENCES = 1
    RELAX_AVOID = 2
    RELAX_MAX_PER_DAY = 3
    EMERGENCY = 4


class SlotScorer:
    """Scores how desirable a (subject, day, slot) placement is.

    Reads the run state but never changes it, so the same inputs always yield
    the same score.
    """

    def __init__(
        self,
        *,
        layout: TemplateLayout,
        reliability: CalendarReliability,
        state: SchedulerState,
    ) -> None:
        self.layout = layout
        self.reliability = reliability
        self.state = state

    def score(self, requirement: SubjectRequirement, day: int, slot: int, level: RelaxationLevel) -> float:
        prefs = requirement.preferences
        if prefs.has_fixed_slot(day, slot):
            return FIXED_SLOT_SCORE

        reliability = self.reliability.for_day(day)
        score = BASE_WEIGHT * reliability
        if requirement.periods_per_week >= HEAVY_SUBJECT_PERIODS:
            score += HEAVY_SUBJECT_WEIGHT * reliability

        # RELAX_PREFERENCES drops the bonuses; RELAX_AVOID applies them again.
        if level in (RelaxationLevel.STRICT, RelaxationLevel.RELAX_AVOID):
            if day in prefs.preferred_days:
                score += PREFERRED_DAY_BONUS
            score += self._preferred_slot_bonus(requirement, slot)

        if level == RelaxationLevel.STRICT:
            if day in prefs.avoid_days:
                score -= AVOID_DAY_PENALTY
            if slot in prefs.avoid_slots:
                score -= AVOID_SLOT_PENALTY

        if prefs.spread_evenly:
            score -= SPREAD_PENALTY * self.state.subject_day_count(requirement.subject_id, day)

        if prefs.prefer_consecutive:
            existing = self.state.subject_slots_on(requirement.subject_id, day)
            if slot - 1 in existing or slot + 1 in existing:
                score += CONSECUTIVE_BONUS

        max_consecutive = self.layout.max_consecutive_hours_teacher
        if requirement.teacher_id and max_consecutive > 0:
            span = self.state.teacher_consecutive_span(requirement.teacher_id, day, slot)
            score -= TEACHER_SPAN_PENALTY * max(0, span - max_consecutive)

        score -= TEACHER_LOAD_PENALTY * self.state.teacher_load(requirement.teacher_id, day)
        return score

    def _preferred_slot_bonus(self, requirement: SubjectRequirement, slot: int) -> float:
        total = self.layout.total_slots
        boundary = self.layout.midday_boundary
        bonus = 0.0
        for preferred in requirement.preferences.preferred_slots:
            if isinstance(preferred, int):
                if preferred == slot:
                    bonus += EXACT_SLOT_BONUS
            elif preferred == "first" and slot <= 2:
                bonus += EDGE_SLOT_BONUS
            elif preferred == "last" and slot >= total - 1:
                bonus += EDGE_SLOT_BONUS
            elif preferred == "morning" and slot < boundary:
                bonus += HALF_DAY_BONUS
            elif preferred == "afternoon" and slot > boundary:
                bonus += HALF_DAY_BONUS
        return bonus
