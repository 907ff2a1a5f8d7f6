"""
Availability Pydantic schemas.

These schemas describe the read model produced by the availability resolver:
the slots of a veterinarian on one date, which of them can be booked, and the
appointments occupying the rest. Times leave the package as ``"HH:MM:SS"``.
"""

import datetime as dt
from typing import List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_serializer

from ..models.appointment import AppointmentStatus
from ..utils.datetime_utils import DayOfWeek, TimeLike, format_time_of_day, parse_time_of_day
from .working_window import WorkingWindowResponse

BlockingReason = Literal["occupied", "past"]


class SlotSchema(BaseModel):
    """A candidate start time on the agenda."""

    model_config = ConfigDict(frozen=True)

    time: dt.time = Field(..., description="Slot start time")
    available: bool = Field(..., description="Whether the slot can be booked")
    blocking_reason: Optional[BlockingReason] = Field(
        None, description="Why the slot cannot be booked"
    )
    blocking_appointment_id: Optional[UUID] = Field(
        None, description="Appointment occupying the slot"
    )

    @field_serializer("time")
    def serialize_time(self, value: dt.time) -> str:
        return format_time_of_day(value)


class OccupiedAppointment(BaseModel):
    """Summary of a booked appointment shown next to the slots."""

    model_config = ConfigDict(frozen=True)

    appointment_id: UUID
    time: dt.time
    duration_minutes: int
    status: AppointmentStatus
    subject_name: str
    service_name: str

    @field_serializer("time")
    def serialize_time(self, value: dt.time) -> str:
        return format_time_of_day(value)

    @field_serializer("status")
    def serialize_status(self, value: AppointmentStatus) -> str:
        return value.name


class AvailabilityResult(BaseModel):
    """Bookable slots of one veterinarian on one date."""

    model_config = ConfigDict(frozen=True)

    practitioner_id: UUID
    practitioner_name: str
    date: dt.date
    day_of_week: DayOfWeek
    has_schedule: bool = Field(
        ..., description="False when no active window covers the day"
    )
    windows: List[WorkingWindowResponse] = Field(default_factory=list)
    slots: List[SlotSchema] = Field(default_factory=list)
    occupied_appointments: List[OccupiedAppointment] = Field(default_factory=list)

    @field_serializer("day_of_week")
    def serialize_day(self, value: DayOfWeek) -> str:
        return value.name

    @property
    def available_slots(self) -> List[SlotSchema]:
        return [slot for slot in self.slots if slot.available]

    def find_slot(self, at: TimeLike) -> Optional[SlotSchema]:
        """Look a slot up by any accepted time representation."""
        wanted = parse_time_of_day(at)
        for slot in self.slots:
            if slot.time == wanted:
                return slot
        return None

    def is_available(self, at: TimeLike) -> bool:
        slot = self.find_slot(at)
        return slot is not None and slot.available
