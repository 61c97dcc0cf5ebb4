from collections import Counter

import pytest

from app.core.exceptions import CapacityExceeded, UnsatisfiableRequirements
from app.models.timetable import TimetableSlotType
from app.services.scheduler_state import SchedulerState
from app.services.slot_scorer import RelaxationLevel, SlotScorer
from app.services.timetable_loader import SlotCoordinate
from app.services.timetable_scheduler import (
    ProgressiveScheduler,
    build_break_assignments,
    schedule_section,
)

WEEKDAYS = [1, 2, 3, 4, 5]


def _regular(outcome):
    return [item for item in outcome.assignments if item.slot_type == TimetableSlotType.regular]


def _scheduler(layout, requirements, reliability, cross_section_busy=()):
    state = SchedulerState.for_requirements(
        requirements,
        total_slots=layout.total_slots,
        cross_section_busy=cross_section_busy,
    )
    scorer = SlotScorer(layout=layout, reliability=reliability, state=state)
    return ProgressiveScheduler(
        layout=layout,
        working_days=WEEKDAYS,
        requirements=requirements,
        state=state,
        scorer=scorer,
    )


def test_two_subjects_fill_every_academic_slot(make_layout, make_requirement, flat_reliability):
    requirements = [make_requirement("x", 10), make_requirement("y", 10)]

    outcome = schedule_section(
        layout=make_layout(),
        working_days=WEEKDAYS,
        requirements=requirements,
        reliability=flat_reliability,
    )

    regular = _regular(outcome)
    assert len(regular) == 20
    assert Counter(item.subject_id for item in regular) == {"x": 10, "y": 10}
    assert {item.coordinate for item in regular} == {
        SlotCoordinate(day, slot) for day in WEEKDAYS for slot in (1, 2, 4, 6)
    }


def test_capacity_is_checked_before_placement(make_layout, make_requirement, flat_reliability):
    requirements = [make_requirement("x", 15), make_requirement("y", 10)]

    with pytest.raises(CapacityExceeded) as exc_info:
        schedule_section(
            layout=make_layout(),
            working_days=WEEKDAYS,
            requirements=requirements,
            reliability=flat_reliability,
        )

    assert exc_info.value.required == 25
    assert exc_info.value.available == 20


def test_fixed_slot_wins_over_avoid_day(make_layout, make_requirement, flat_reliability):
    requirements = [
        make_requirement("z", 2, avoid_days={1}, fixed_slots=[{"day": 1, "slot": 4}]),
        make_requirement("w", 6),
    ]

    outcome = schedule_section(
        layout=make_layout(),
        working_days=WEEKDAYS,
        requirements=requirements,
        reliability=flat_reliability,
    )

    placed = {item.coordinate: item.subject_id for item in _regular(outcome)}
    assert placed[SlotCoordinate(1, 4)] == "z"
    assert outcome.fixed_placed == 1


def test_fixed_slots_skip_invalid_coordinates(make_layout, make_requirement, flat_reliability):
    art = make_requirement(
        "art",
        1,
        fixed_slots=[{"day": 0, "slot": 1}, {"day": 2, "slot": 3}, {"day": 2, "slot": 2}, {"day": 3, "slot": 1}],
    )
    scheduler = _scheduler(make_layout(), [art], flat_reliability)

    placed = scheduler.place_fixed_slots()

    # Sunday is not a working day and slot 3 is a break; the single period stops the rest.
    assert placed == 1
    assert set(scheduler.state.occupied) == {SlotCoordinate(2, 2)}


def test_fixed_slot_respects_busy_teacher(make_layout, make_requirement, flat_reliability):
    art = make_requirement("art", 1, teacher_id="t-1", fixed_slots=[{"day": 1, "slot": 1}])
    scheduler = _scheduler(make_layout(), [art], flat_reliability, cross_section_busy={("t-1", 1, 1)})

    assert scheduler.place_fixed_slots() == 0


def test_every_break_and_lunch_is_emitted_once_per_working_day(make_layout):
    breaks = build_break_assignments(make_layout(), WEEKDAYS)

    assert len(breaks) == 10
    lunch = [item for item in breaks if item.slot_type == TimetableSlotType.lunch]
    assert {item.coordinate for item in lunch} == {SlotCoordinate(day, 5) for day in WEEKDAYS}
    first_break = next(item for item in breaks if item.slot_type == TimetableSlotType.break_)
    assert (first_break.start_time, first_break.end_time) == ("09:30", "10:15")
    assert first_break.subject_id is None


def test_can_place_relaxes_daily_subject_limit(make_layout, make_requirement, flat_reliability):
    maths = make_requirement("math", 6, max_periods_per_day=1)
    scheduler = _scheduler(make_layout(), [maths], flat_reliability)
    scheduler.state.record(maths, SlotCoordinate(1, 1))
    target = SlotCoordinate(1, 2)

    assert not scheduler.can_place(maths, target, RelaxationLevel.RELAX_AVOID)
    assert scheduler.can_place(maths, target, RelaxationLevel.RELAX_MAX_PER_DAY)

    scheduler.state.record(maths, target)
    assert not scheduler.can_place(maths, SlotCoordinate(1, 4), RelaxationLevel.RELAX_MAX_PER_DAY)
    assert scheduler.can_place(maths, SlotCoordinate(1, 4), RelaxationLevel.EMERGENCY)


def test_can_place_blocks_avoid_days_until_relaxed(make_layout, make_requirement, flat_reliability):
    history = make_requirement("history", 2, avoid_days={2})
    scheduler = _scheduler(make_layout(), [history], flat_reliability)
    target = SlotCoordinate(2, 1)

    assert not scheduler.can_place(history, target, RelaxationLevel.STRICT)
    assert not scheduler.can_place(history, target, RelaxationLevel.RELAX_PREFERENCES)
    assert scheduler.can_place(history, target, RelaxationLevel.RELAX_AVOID)


def test_can_place_caps_teacher_daily_load_until_emergency(make_layout, make_requirement, flat_reliability):
    maths = make_requirement("math", 2, teacher_id="t-1")
    physics = make_requirement("physics", 2, teacher_id="t-1")
    scheduler = _scheduler(make_layout(max_periods_per_teacher_per_day=1), [maths, physics], flat_reliability)
    scheduler.state.record(maths, SlotCoordinate(1, 1))
    target = SlotCoordinate(1, 2)

    assert not scheduler.can_place(physics, target, RelaxationLevel.RELAX_MAX_PER_DAY)
    assert scheduler.can_place(physics, target, RelaxationLevel.EMERGENCY)


def test_try_assign_best_reports_when_nothing_is_legal(make_layout, make_requirement, flat_reliability):
    maths = make_requirement("math", 1)
    scheduler = _scheduler(make_layout(), [maths], flat_reliability)

    assert scheduler.try_assign_best(RelaxationLevel.STRICT) is True
    assert scheduler.try_assign_best(RelaxationLevel.STRICT) is False


def test_higher_priority_subject_takes_contested_preferred_slot(make_layout, make_requirement, flat_reliability):
    urgent = make_requirement("urgent", 1, priority=9, preferred_days={1}, preferred_slots=[1])
    casual = make_requirement("casual", 1, priority=2, preferred_days={1}, preferred_slots=[1])
    scheduler = _scheduler(make_layout(), [casual, urgent], flat_reliability)

    scheduler.try_assign_best(RelaxationLevel.STRICT)

    assert scheduler.state.occupied[SlotCoordinate(1, 1)].requirement.subject_id == "urgent"


def test_avoid_day_is_used_only_when_nothing_else_is_left(make_layout, make_requirement, flat_reliability):
    # Two periods a day over the four allowed days cannot hold ten periods.
    requirements = [
        make_requirement("x", 10, avoid_days={5}),
        make_requirement("y", 10),
    ]

    outcome = schedule_section(
        layout=make_layout(),
        working_days=WEEKDAYS,
        requirements=requirements,
        reliability=flat_reliability,
    )

    x_days = Counter(item.day for item in _regular(outcome) if item.subject_id == "x")
    assert sum(x_days.values()) == 10
    assert x_days[5] == 2
    assert outcome.level_reached > RelaxationLevel.STRICT


def test_teacher_never_double_booked_across_sections(make_layout, make_requirement, flat_reliability):
    busy = {("t-1", day, slot) for day in WEEKDAYS for slot in (1, 2)}
    requirements = [make_requirement("math", 6, teacher_id="t-1"), make_requirement("art", 4)]

    outcome = schedule_section(
        layout=make_layout(),
        working_days=WEEKDAYS,
        requirements=requirements,
        reliability=flat_reliability,
        cross_section_busy=busy,
    )

    for item in _regular(outcome):
        if item.teacher_id == "t-1":
            assert ("t-1", item.day, item.slot) not in busy


def test_unsatisfiable_requirement_reports_diagnostics(make_layout, make_requirement, flat_reliability):
    busy = {("t-1", day, slot) for day in WEEKDAYS for slot in (1, 2, 4, 6)}
    requirements = [make_requirement("math", 2, teacher_id="t-1")]

    with pytest.raises(UnsatisfiableRequirements) as exc_info:
        schedule_section(
            layout=make_layout(),
            working_days=WEEKDAYS,
            requirements=requirements,
            reliability=flat_reliability,
            cross_section_busy=busy,
        )

    [unmet] = exc_info.value.unmet
    assert unmet.subject_id == "math"
    assert unmet.remaining == 2
    assert unmet.teacher_busy_slots == 20
    assert unmet.days_saturated is False


def test_generation_is_deterministic(make_layout, make_requirement, flat_reliability):
    def run():
        requirements = [
            make_requirement("math", 6, teacher_id="t-1", preferred_slots=["morning"]),
            make_requirement("english", 5, teacher_id="t-2", spread_evenly=True),
            make_requirement("art", 3, prefer_consecutive=True, avoid_days={3}),
        ]
        return schedule_section(
            layout=make_layout(),
            working_days=WEEKDAYS,
            requirements=requirements,
            reliability=flat_reliability,
        ).assignments

    assert run() == run()


def test_assignments_carry_slot_times(make_layout, make_requirement, flat_reliability):
    outcome = schedule_section(
        layout=make_layout(),
        working_days=[1],
        requirements=[make_requirement("math", 1, preferred_slots=[6])],
        reliability=flat_reliability,
    )

    [placed] = _regular(outcome)
    assert placed.coordinate == SlotCoordinate(1, 6)
    assert (placed.start_time, placed.end_time) == ("11:45", "12:30")
