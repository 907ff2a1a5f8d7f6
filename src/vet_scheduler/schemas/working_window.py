"""
Working window Pydantic schemas for validation and serialization.

This module contains the create, update and response schemas for the weekly
working windows that make up a veterinarian's schedule.
"""

from datetime import time
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator, model_validator

from ..models.working_window import DEFAULT_SLOT_MINUTES, MAX_SLOT_MINUTES, MIN_SLOT_MINUTES
from ..utils.datetime_utils import DayOfWeek, format_time_of_day, parse_time_of_day, time_to_minutes


def _parse_day_of_week(value: Any) -> Any:
    """Accept enum members, weekday numbers (Monday=0) and day names."""
    if isinstance(value, DayOfWeek):
        return value
    if isinstance(value, int) and not isinstance(value, bool):
        return DayOfWeek(value)
    if isinstance(value, str):
        name = value.strip().upper()
        if name in DayOfWeek.__members__:
            return DayOfWeek[name]
        raise ValueError(f"Unknown day of week: {value!r}")
    return value


class WorkingWindowBase(BaseModel):
    """Base working window schema with common fields."""

    model_config = ConfigDict(
        from_attributes=True,
        validate_assignment=True,
        str_strip_whitespace=True,
    )

    day_of_week: DayOfWeek = Field(..., description="Day of the week the window recurs on")
    start_time: time = Field(..., description="Local time the window opens")
    end_time: time = Field(..., description="Local time the window closes")
    slot_duration_minutes: int = Field(
        DEFAULT_SLOT_MINUTES,
        description="Length of each bookable slot in minutes",
        ge=MIN_SLOT_MINUTES,
        le=MAX_SLOT_MINUTES,
    )
    notes: Optional[str] = Field(None, description="Free-text notes", max_length=500)

    @field_validator("day_of_week", mode="before")
    @classmethod
    def parse_day_of_week(cls, v: Any) -> Any:
        return _parse_day_of_week(v)

    @field_validator("start_time", "end_time", mode="before")
    @classmethod
    def parse_times(cls, v: Any) -> time:
        """Normalize every accepted time representation."""
        return parse_time_of_day(v)

    @model_validator(mode="after")
    def validate_span(self) -> "WorkingWindowBase":
        """Validate that the window opens before it closes and holds a slot."""
        if self.start_time >= self.end_time:
            raise ValueError("Start time must be before end time")

        span = time_to_minutes(self.end_time) - time_to_minutes(self.start_time)
        if span < self.slot_duration_minutes:
            raise ValueError(
                "The window must hold at least one slot of "
                f"{self.slot_duration_minutes} minutes"
            )
        return self


class WorkingWindowCreate(WorkingWindowBase):
    """Schema for creating a new working window."""

    veterinarian_id: UUID = Field(..., description="Veterinarian who works this window")
    is_active: bool = Field(True, description="Whether the window produces slots")


class WorkingWindowUpdate(BaseModel):
    """
    Schema for updating an existing working window.

    Only provided fields are changed; the merged window is validated again
    against WorkingWindowBase before it is stored.
    """

    model_config = ConfigDict(validate_assignment=True, str_strip_whitespace=True)

    day_of_week: Optional[DayOfWeek] = None
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    slot_duration_minutes: Optional[int] = Field(
        None, ge=MIN_SLOT_MINUTES, le=MAX_SLOT_MINUTES
    )
    notes: Optional[str] = Field(None, max_length=500)

    @field_validator("day_of_week", mode="before")
    @classmethod
    def parse_day_of_week(cls, v: Any) -> Any:
        if v is None:
            return v
        return _parse_day_of_week(v)

    @field_validator("start_time", "end_time", mode="before")
    @classmethod
    def parse_times(cls, v: Any) -> Optional[time]:
        if v is None:
            return v
        return parse_time_of_day(v)


class WorkingWindowResponse(BaseModel):
    """Schema for working window responses."""

    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: UUID
    veterinarian_id: UUID
    day_of_week: DayOfWeek
    start_time: time
    end_time: time
    slot_duration_minutes: int
    is_active: bool
    notes: Optional[str] = None
    capacity: int = Field(..., description="Number of whole slots in the window")

    @field_serializer("start_time", "end_time")
    def serialize_time(self, value: time) -> str:
        return format_time_of_day(value)

    @field_serializer("day_of_week")
    def serialize_day(self, value: DayOfWeek) -> str:
        return value.name
