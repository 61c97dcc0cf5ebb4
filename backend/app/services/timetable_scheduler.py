from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import asdict, dataclass

from app.core.exceptions import CapacityExceeded, UnsatisfiableRequirements
from app.models.timetable import TimetableSlotType
from app.services.calendar_reliability import CalendarReliability
from app.services.scheduler_state import SchedulerState, TeacherSlot
from app.services.slot_scorer import RelaxationLevel, SlotScorer
from app.services.timetable_loader import SlotCoordinate, SubjectRequirement, TemplateLayout

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GeneratedAssignment:
    coordinate: SlotCoordinate
    slot_type: TimetableSlotType
    start_time: str
    end_time: str
    subject_id: str | None = None
    teacher_id: str | None = None

    @property
    def day(self) -> int:
        return self.coordinate.day

    @property
    def slot(self) -> int:
        return self.coordinate.slot


@dataclass(frozen=True)
class UnmetRequirement:
    subject_id: str
    subject_name: str
    remaining: int
    teacher_id: str | None
    teacher_busy_slots: int
    max_periods_per_day: int
    days_saturated: bool

    def as_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class ScheduleOutcome:
    assignments: list[GeneratedAssignment]
    level_reached: RelaxationLevel
    fixed_placed: int

    @property
    def regular_count(self) -> int:
        return sum(1 for item in self.assignments if item.slot_type == TimetableSlotType.regular)


def academic_grid(layout: TemplateLayout, working_days: Iterable[int]) -> list[SlotCoordinate]:
    return [
        SlotCoordinate(day, slot)
        for day in sorted(set(working_days))
        for slot in range(1, layout.total_slots + 1)
        if layout.is_academic(slot)
    ]


def check_capacity(
    requirements: Sequence[SubjectRequirement],
    layout: TemplateLayout,
    working_days: Iterable[int],
) -> tuple[int, int]:
    required = sum(item.periods_per_week for item in requirements)
    available = len(set(working_days)) * layout.academic_slots_per_day
    logger.info("Capacity check | required=%s available=%s", required, available)
    if required > available:
        raise CapacityExceeded(required=required, available=available)
    return required, available


class ProgressiveScheduler:
    """Greedy placement with progressive constraint relaxation.

    Fixed slots are placed first. Then, level by level, the single best
    scoring legal (subject, day, slot) move is committed until no legal move
    is left, after which the next, more permissive level is tried.
    """

    def __init__(
        self,
        *,
        layout: TemplateLayout,
        working_days: Iterable[int],
        requirements: Sequence[SubjectRequirement],
        state: SchedulerState,
        scorer: SlotScorer,
    ) -> None:
        self.layout = layout
        self.working_days = sorted(set(working_days))
        self.requirements = list(requirements)
        self.state = state
        self.scorer = scorer
        self.grid = academic_grid(layout, self.working_days)

    def place_fixed_slots(self) -> int:
        placed = 0
        working = set(self.working_days)
        for requirement in self.requirements:
            for fixed in requirement.preferences.fixed_slots:
                if self.state.remaining(requirement.subject_id) <= 0:
                    break
                if fixed.day not in working or not self.layout.is_academic(fixed.slot):
                    continue
                if not self.state.is_slot_free(fixed.day, fixed.slot):
                    continue
                if not self.state.is_teacher_free(requirement.teacher_id, fixed.day, fixed.slot):
                    continue
                self.state.record(requirement, SlotCoordinate(fixed.day, fixed.slot))
                placed += 1
        return placed

    def can_place(self, requirement: SubjectRequirement, coordinate: SlotCoordinate, level: RelaxationLevel) -> bool:
        day, slot = coordinate.day, coordinate.slot
        if not self.state.is_slot_free(day, slot):
            return False
        if not self.state.is_teacher_free(requirement.teacher_id, day, slot):
            return False

        day_count = self.state.subject_day_count(requirement.subject_id, day)
        if level < RelaxationLevel.RELAX_MAX_PER_DAY:
            if day_count >= requirement.max_periods_per_day:
                return False
        elif level == RelaxationLevel.RELAX_MAX_PER_DAY:
            if day_count >= requirement.max_periods_per_day + 1:
                return False

        if level < RelaxationLevel.RELAX_AVOID and day in requirement.preferences.avoid_days:
            return False

        if requirement.teacher_id and level < RelaxationLevel.EMERGENCY:
            if self.state.teacher_load(requirement.teacher_id, day) >= self.layout.max_periods_per_teacher_per_day:
                return False
        return True

    def pending_requirements(self) -> list[SubjectRequirement]:
        pending = [item for item in self.requirements if self.state.remaining(item.subject_id) > 0]
        pending.sort(key=lambda item: (-item.priority, -self.state.remaining(item.subject_id)))
        return pending

    def try_assign_best(self, level: RelaxationLevel) -> bool:
        best: tuple[float, SubjectRequirement, SlotCoordinate] | None = None
        for requirement in self.pending_requirements():
            for coordinate in self.grid:
                if not self.can_place(requirement, coordinate, level):
                    continue
                score = self.scorer.score(requirement, coordinate.day, coordinate.slot, level)
                if best is None or score > best[0]:
                    best = (score, requirement, coordinate)
        if best is None:
            return False
        _, requirement, coordinate = best
        self.state.record(requirement, coordinate)
        return True

    def run(self) -> tuple[RelaxationLevel, int]:
        fixed_placed = self.place_fixed_slots()
        level_reached = RelaxationLevel.STRICT
        for level in RelaxationLevel:
            level_reached = level
            placed = 0
            while self.try_assign_best(level):
                placed += 1
            logger.info("Relaxation level complete | level=%s placed=%s", level.name, placed)
            if self.state.all_satisfied():
                logger.info("All periods scheduled at relaxation level %s", level.name)
                break
        return level_reached, fixed_placed


def build_regular_assignments(layout: TemplateLayout, state: SchedulerState) -> list[GeneratedAssignment]:
    assignments: list[GeneratedAssignment] = []
    for coordinate in sorted(state.occupied):
        placement = state.occupied[coordinate]
        start_time, end_time = layout.slot_times(coordinate.slot)
        assignments.append(
            GeneratedAssignment(
                coordinate=coordinate,
                slot_type=TimetableSlotType.regular,
                start_time=start_time,
                end_time=end_time,
                subject_id=placement.requirement.subject_id,
                teacher_id=placement.requirement.teacher_id,
            )
        )
    return assignments


def build_break_assignments(layout: TemplateLayout, working_days: Iterable[int]) -> list[GeneratedAssignment]:
    assignments: list[GeneratedAssignment] = []
    for day in sorted(set(working_days)):
        for slot in range(1, layout.total_slots + 1):
            slot_type = layout.non_academic_type(slot)
            if slot_type is None:
                continue
            start_time, end_time = layout.slot_times(slot)
            assignments.append(
                GeneratedAssignment(
                    coordinate=SlotCoordinate(day, slot),
                    slot_type=slot_type,
                    start_time=start_time,
                    end_time=end_time,
                )
            )
    return assignments


def collect_unmet_requirements(
    requirements: Sequence[SubjectRequirement],
    state: SchedulerState,
    *,
    grid: Sequence[SlotCoordinate],
    working_days: Iterable[int],
) -> list[UnmetRequirement]:
    days = sorted(set(working_days))
    unmet: list[UnmetRequirement] = []
    for requirement in requirements:
        remaining = state.remaining(requirement.subject_id)
        if remaining <= 0:
            continue
        teacher_busy = 0
        if requirement.teacher_id:
            teacher_busy = sum(
                1
                for coordinate in grid
                if state.is_slot_free(coordinate.day, coordinate.slot)
                and not state.is_teacher_free(requirement.teacher_id, coordinate.day, coordinate.slot)
            )
        saturated = all(
            state.subject_day_count(requirement.subject_id, day) >= requirement.max_periods_per_day
            for day in days
        )
        unmet.append(
            UnmetRequirement(
                subject_id=requirement.subject_id,
                subject_name=requirement.subject_name,
                remaining=remaining,
                teacher_id=requirement.teacher_id,
                teacher_busy_slots=teacher_busy,
                max_periods_per_day=requirement.max_periods_per_day,
                days_saturated=saturated,
            )
        )
    return unmet


def schedule_section(
    *,
    layout: TemplateLayout,
    working_days: Iterable[int],
    requirements: Sequence[SubjectRequirement],
    reliability: CalendarReliability,
    cross_section_busy: Iterable[TeacherSlot] = (),
) -> ScheduleOutcome:
    """Build the complete weekly grid for one section, or raise.

    Raises ``CapacityExceeded`` before any placement when the week is too
    small, and ``UnsatisfiableRequirements`` when periods remain after the
    most permissive level.
    """
    working_days = sorted(set(working_days))
    check_capacity(requirements, layout, working_days)

    state = SchedulerState.for_requirements(
        requirements,
        total_slots=layout.total_slots,
        cross_section_busy=cross_section_busy,
    )
    scorer = SlotScorer(layout=layout, reliability=reliability, state=state)
    scheduler = ProgressiveScheduler(
        layout=layout,
        working_days=working_days,
        requirements=requirements,
        state=state,
        scorer=scorer,
    )
    level_reached, fixed_placed = scheduler.run()

    breaks = build_break_assignments(layout, working_days)
    unmet = collect_unmet_requirements(requirements, state, grid=scheduler.grid, working_days=working_days)
    if unmet:
        for item in unmet:
            logger.warning(
                "Unmet requirement | subject_id=%s remaining=%s teacher_busy_slots=%s days_saturated=%s",
                item.subject_id,
                item.remaining,
                item.teacher_busy_slots,
                item.days_saturated,
            )
        raise UnsatisfiableRequirements(unmet)

    assignments = build_regular_assignments(layout, state) + breaks
    assignments.sort(key=lambda item: item.coordinate)
    return ScheduleOutcome(assignments=assignments, level_reached=level_reached, fixed_placed=fixed_placed)
