from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass, field

from app.services.timetable_loader import SlotCoordinate, SubjectRequirement

TeacherSlot = tuple[str, int, int]


@dataclass(frozen=True)
class Placement:
    requirement: SubjectRequirement
    coordinate: SlotCoordinate


@dataclass
class SchedulerState:
    """Mutable bookkeeping for one generation run.

    Created fresh per run and discarded afterwards. ``cross_section_busy`` is
    the snapshot of other sections' teacher bookings and is never written.
    """

    total_slots: int
    remaining_periods: dict[str, int]
    cross_section_busy: frozenset[TeacherSlot] = frozenset()
    occupied: dict[SlotCoordinate, Placement] = field(default_factory=dict)
    day_count: defaultdict[str, defaultdict[int, int]] = field(
        default_factory=lambda: defaultdict(lambda: defaultdict(int))
    )
    day_slots: defaultdict[str, defaultdict[int, list[int]]] = field(
        default_factory=lambda: defaultdict(lambda: defaultdict(list))
    )
    teacher_daily_load: defaultdict[str, defaultdict[int, int]] = field(
        default_factory=lambda: defaultdict(lambda: defaultdict(int))
    )
    teacher_slots: defaultdict[str, defaultdict[int, set[int]]] = field(
        default_factory=lambda: defaultdict(lambda: defaultdict(set))
    )

    @classmethod
    def for_requirements(
        cls,
        requirements: Iterable[SubjectRequirement],
        *,
        total_slots: int,
        cross_section_busy: Iterable[TeacherSlot] = (),
    ) -> "SchedulerState":
        return cls(
            total_slots=total_slots,
            remaining_periods={item.subject_id: item.periods_per_week for item in requirements},
            cross_section_busy=frozenset(cross_section_busy),
        )

    def is_slot_free(self, day: int, slot: int) -> bool:
        return SlotCoordinate(day, slot) not in self.occupied

    def is_teacher_free(self, teacher_id: str | None, day: int, slot: int) -> bool:
        if not teacher_id:
            return True
        if (teacher_id, day, slot) in self.cross_section_busy:
            return False
        return slot not in self.teacher_slots.get(teacher_id, {}).get(day, ())

    def teacher_consecutive_span(self, teacher_id: str | None, day: int, slot: int) -> int:
        """Length of the teacher's contiguous in-run block on ``day`` if ``slot`` were added."""
        if not teacher_id:
            return 0
        taken = self.teacher_slots.get(teacher_id, {}).get(day, ())
        span = 1
        cursor = slot - 1
        while cursor >= 1 and cursor in taken:
            span += 1
            cursor -= 1
        cursor = slot + 1
        while cursor <= self.total_slots and cursor in taken:
            span += 1
            cursor += 1
        return span

    def remaining(self, subject_id: str) -> int:
        return self.remaining_periods.get(subject_id, 0)

    def subject_day_count(self, subject_id: str, day: int) -> int:
        return self.day_count.get(subject_id, {}).get(day, 0)

    def subject_slots_on(self, subject_id: str, day: int) -> list[int]:
        return list(self.day_slots.get(subject_id, {}).get(day, ()))

    def teacher_load(self, teacher_id: str | None, day: int) -> int:
        if not teacher_id:
            return 0
        return self.teacher_daily_load.get(teacher_id, {}).get(day, 0)

    def pending_subject_ids(self) -> list[str]:
        return [subject_id for subject_id, count in self.remaining_periods.items() if count > 0]

    def all_satisfied(self) -> bool:
        return not self.pending_subject_ids()

    def record(self, requirement: SubjectRequirement, coordinate: SlotCoordinate) -> Placement:
        if coordinate in self.occupied:
            raise ValueError(f"Slot {coordinate} is already occupied")
        if self.remaining(requirement.subject_id) <= 0:
            raise ValueError(f"No periods remaining for subject {requirement.subject_id}")

        placement = Placement(requirement=requirement, coordinate=coordinate)
        self.occupied[coordinate] = placement
        self.remaining_periods[requirement.subject_id] -= 1
        self.day_count[requirement.subject_id][coordinate.day] += 1
        self.day_slots[requirement.subject_id][coordinate.day].append(coordinate.slot)
        if requirement.teacher_id:
            self.teacher_daily_load[requirement.teacher_id][coordinate.day] += 1
            self.teacher_slots[requirement.teacher_id][coordinate.day].add(coordinate.slot)
        return placement
