import pytest

from app.services.scheduler_state import SchedulerState
from app.services.timetable_loader import SlotCoordinate


def test_record_updates_every_counter(make_requirement):
    maths = make_requirement("math", 3, teacher_id="t-1")
    state = SchedulerState.for_requirements([maths], total_slots=6)

    state.record(maths, SlotCoordinate(1, 2))

    assert not state.is_slot_free(1, 2)
    assert state.remaining("math") == 2
    assert state.subject_day_count("math", 1) == 1
    assert state.subject_slots_on("math", 1) == [2]
    assert state.teacher_load("t-1", 1) == 1
    assert not state.is_teacher_free("t-1", 1, 2)
    assert state.is_teacher_free("t-1", 1, 3)


def test_record_rejects_occupied_slot_and_exhausted_subject(make_requirement):
    maths = make_requirement("math", 1)
    english = make_requirement("english", 2)
    state = SchedulerState.for_requirements([maths, english], total_slots=6)
    state.record(maths, SlotCoordinate(1, 1))

    with pytest.raises(ValueError):
        state.record(english, SlotCoordinate(1, 1))
    with pytest.raises(ValueError):
        state.record(maths, SlotCoordinate(1, 2))


def test_cross_section_bookings_block_teacher(make_requirement):
    maths = make_requirement("math", 2, teacher_id="t-1")
    state = SchedulerState.for_requirements([maths], total_slots=6, cross_section_busy={("t-1", 1, 2)})

    assert not state.is_teacher_free("t-1", 1, 2)
    assert state.is_teacher_free("t-2", 1, 2)
    assert state.is_teacher_free(None, 1, 2)


def test_teacher_consecutive_span_counts_both_directions(make_requirement):
    maths = make_requirement("math", 4, teacher_id="t-1", max_periods_per_day=4)
    state = SchedulerState.for_requirements([maths], total_slots=6)
    for slot in (1, 2, 4):
        state.record(maths, SlotCoordinate(1, slot))

    assert state.teacher_consecutive_span("t-1", 1, 3) == 4
    assert state.teacher_consecutive_span("t-1", 1, 6) == 1
    assert state.teacher_consecutive_span(None, 1, 3) == 0


def test_all_satisfied_tracks_pending_subjects(make_requirement):
    maths = make_requirement("math", 1)
    state = SchedulerState.for_requirements([maths], total_slots=6)
    assert state.pending_subject_ids() == ["math"]

    state.record(maths, SlotCoordinate(2, 1))

    assert state.all_satisfied()
