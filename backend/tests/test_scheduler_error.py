from app.core.exceptions import (
    AppError,
    CapacityExceeded,
    DuplicateSlot,
    IntegrityViolation,
    SchedulerError,
    SessionLocked,
    TemplateMissing,
    UnsatisfiableRequirements,
)
from app.services.timetable_scheduler import UnmetRequirement


def test_scheduler_error_structure():
    err = SchedulerError(message="Test error", details={"foo": "bar"})
    assert err.status_code == 400
    assert err.message == "Test error"
    assert err.details == {"foo": "bar"}
    assert isinstance(err, AppError)


def test_app_error_defaults():
    err = AppError("Generic error")
    assert err.status_code == 500
    assert err.details == {}


def test_capacity_exceeded_carries_counts():
    err = CapacityExceeded(required=25, available=20)
    assert err.status_code == 400
    assert err.details == {"required": 25, "available": 20}
    assert "required 25, available 20" in err.message


def test_unsatisfiable_requirements_keeps_structured_diagnostics():
    unmet = UnmetRequirement(
        subject_id="sub-1",
        subject_name="Physics",
        remaining=2,
        teacher_id="t-1",
        teacher_busy_slots=7,
        max_periods_per_day=2,
        days_saturated=False,
    )
    err = UnsatisfiableRequirements([unmet])
    assert err.status_code == 409
    assert err.unmet == [unmet]
    assert err.details["unmet"][0]["teacher_busy_slots"] == 7
    assert err.details["unmet"][0]["days_saturated"] is False


def test_status_codes_of_generation_failures():
    assert TemplateMissing().status_code == 404
    assert SessionLocked("s-1").status_code == 403
    assert IntegrityViolation("teacher", "t-9").details == {"kind": "teacher", "id": "t-9"}
    duplicate = DuplicateSlot(2, 4)
    assert duplicate.status_code == 409
    assert duplicate.details == {"day": 2, "slot": 4}
