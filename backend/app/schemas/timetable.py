from __future__ import annotations

import re
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator, model_validator

from app.models.timetable import TimetableSlotType

# Weekday numbering follows the stored calendar: 0 = Sunday.
DAY_NAMES = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]

TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")

SymbolicSlot = Literal["first", "last", "morning", "afternoon"]


def parse_time_to_minutes(value: str) -> int:
    if not TIME_PATTERN.match(value):
        raise ValueError("Time must be in HH:MM 24-hour format")
    hours, minutes = value.split(":")
    return int(hours) * 60 + int(minutes)


def minutes_to_time(value: int) -> str:
    value %= 24 * 60
    return f"{value // 60:02d}:{value % 60:02d}"


def _validate_weekdays(values: frozenset[int]) -> frozenset[int]:
    invalid = sorted(day for day in values if day < 0 or day > 6)
    if invalid:
        raise ValueError(f"Weekday values must be between 0 and 6, got {invalid}")
    return values


class FixedSlot(BaseModel):
    model_config = {"frozen": True}

    day: int = Field(ge=0, le=6)
    slot: int = Field(ge=1)


class SchedulingPreferences(BaseModel):
    """Per-subject placement preferences stored as JSON on the requirement row."""

    model_config = {"frozen": True}

    preferred_days: frozenset[int] = Field(default_factory=frozenset)
    avoid_days: frozenset[int] = Field(default_factory=frozenset)
    preferred_slots: tuple[int | SymbolicSlot, ...] = ()
    avoid_slots: frozenset[int] = Field(default_factory=frozenset)
    prefer_consecutive: bool = False
    spread_evenly: bool = True
    priority: int = Field(default=5, ge=1, le=10)
    fixed_slots: tuple[FixedSlot, ...] = ()

    @model_validator(mode="before")
    @classmethod
    def drop_null_fields(cls, data: Any) -> Any:
        if isinstance(data, dict):
            return {key: value for key, value in data.items() if value is not None}
        return data

    @field_validator("preferred_days", "avoid_days")
    @classmethod
    def validate_days(cls, value: frozenset[int]) -> frozenset[int]:
        return _validate_weekdays(value)

    def has_fixed_slot(self, day: int, slot: int) -> bool:
        return any(item.day == day and item.slot == slot for item in self.fixed_slots)


class GenerationRules(BaseModel):
    max_consecutive_hours_teacher: int | None = Field(default=None, ge=0, le=20)
    max_periods_per_subject_per_day: int | None = Field(default=None, ge=1, le=20)
    max_periods_per_teacher_per_day: int | None = Field(default=None, ge=1, le=20)
    balance_subject_distribution: bool | None = None


class TimetableTemplateBase(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    total_slots_per_day: int | None = Field(default=None, ge=1, le=20)
    start_time: str | None = None
    slot_duration_minutes: int | None = Field(default=None, ge=5, le=240)
    break_slots: list[int] = Field(default_factory=list, max_length=20)
    lunch_slot: int | None = Field(default=None, ge=1, le=20)
    generation_rules: GenerationRules = Field(default_factory=GenerationRules)
    is_default: bool = False
    is_active: bool = True

    @field_validator("start_time")
    @classmethod
    def validate_start_time(cls, value: str | None) -> str | None:
        if value is not None and not TIME_PATTERN.match(value):
            raise ValueError("Time must be in HH:MM 24-hour format")
        return value

    @model_validator(mode="after")
    def validate_slot_positions(self) -> "TimetableTemplateBase":
        if self.total_slots_per_day is None:
            return self
        positions = list(self.break_slots)
        if self.lunch_slot is not None:
            positions.append(self.lunch_slot)
        out_of_range = sorted(item for item in positions if item < 1 or item > self.total_slots_per_day)
        if out_of_range:
            raise ValueError(f"Break/lunch slots out of range: {out_of_range}")
        return self


class TimetableTemplateCreate(TimetableTemplateBase):
    pass


class TimetableTemplateOut(TimetableTemplateBase):
    id: str

    model_config = {"from_attributes": True}


class GenerateTimetableRequest(BaseModel):
    section_id: str = Field(min_length=1, max_length=36)
    session_id: str = Field(min_length=1, max_length=36)
    template_id: str | None = Field(default=None, min_length=1, max_length=36)


class GenerationResult(BaseModel):
    success: bool
    slots_created: int
    warnings: list[str] = Field(default_factory=list)


class SubjectSummary(BaseModel):
    id: str
    name: str
    code: str | None = None
    color_code: str | None = None


class TeacherSummary(BaseModel):
    id: str
    name: str
    employee_id: str | None = None
    email: str | None = None


class TimetableSlotOut(BaseModel):
    id: str
    section_id: str
    day_of_week: int
    slot_number: int
    slot_type: TimetableSlotType
    start_time: str
    end_time: str
    subject_id: str | None = None
    teacher_id: str | None = None
    room_number: str | None = None
    notes: str | None = None
    subject: SubjectSummary | None = None
    teacher: TeacherSummary | None = None

    model_config = {"from_attributes": True}


class ClassSummary(BaseModel):
    id: str
    name: str


class SectionSummary(BaseModel):
    id: str
    name: str
    school_class: ClassSummary = Field(alias="class")

    model_config = {"populate_by_name": True}


class TimetableDay(BaseModel):
    day_of_week: int
    day_name: str
    slots: list[TimetableSlotOut] = Field(default_factory=list)


class SectionTimetableView(BaseModel):
    section: SectionSummary
    days: list[TimetableDay]
