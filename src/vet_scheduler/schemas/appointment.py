"""
Appointment Pydantic schemas for validation and serialization.

This module contains the request schemas used when booking and
rescheduling, the response schema returned by every lifecycle operation and
the agenda and reminder views.
"""

import datetime as dt
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

from ..models.appointment import AppointmentStatus
from ..utils.datetime_utils import format_time_of_day, parse_calendar_date, parse_time_of_day


class AppointmentRequest(BaseModel):
    """
    Schema for requesting a new appointment.

    Only the shape of the input is checked here. Reason length, dates in the
    past and slot availability depend on settings and the clock and are
    enforced by the lifecycle.
    """

    model_config = ConfigDict(validate_assignment=True, str_strip_whitespace=True)

    subject_id: UUID = Field(..., description="Pet the appointment is for")
    service_id: UUID = Field(..., description="Clinic service being booked")
    practitioner_id: UUID = Field(..., description="Veterinarian being booked")
    date: dt.date = Field(..., description="Local calendar date")
    time: dt.time = Field(..., description="Local start time")
    reason_text: str = Field("", description="Reason for the visit", max_length=2000)
    is_emergency: bool = Field(False, description="Flagged as an emergency")

    @field_validator("date", mode="before")
    @classmethod
    def parse_date(cls, v: Any) -> dt.date:
        return parse_calendar_date(v)

    @field_validator("time", mode="before")
    @classmethod
    def parse_time(cls, v: Any) -> dt.time:
        """Normalize ``"HH:mm"``, ``"HH:mm:ss"``, 12-hour and mapping forms."""
        return parse_time_of_day(v)

    @field_validator("reason_text", mode="before")
    @classmethod
    def default_reason(cls, v: Any) -> Any:
        return "" if v is None else v


class AppointmentReschedule(BaseModel):
    """Schema for moving an appointment to another date and time."""

    date: dt.date = Field(..., description="New local calendar date")
    time: dt.time = Field(..., description="New local start time")

    @field_validator("date", mode="before")
    @classmethod
    def parse_date(cls, v: Any) -> dt.date:
        return parse_calendar_date(v)

    @field_validator("time", mode="before")
    @classmethod
    def parse_time(cls, v: Any) -> dt.time:
        return parse_time_of_day(v)


class AppointmentResponse(BaseModel):
    """Schema for appointment responses."""

    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: UUID
    pet_id: UUID
    veterinarian_id: UUID
    service_id: UUID
    appointment_date: dt.date
    appointment_time: dt.time
    duration_minutes: int
    status: AppointmentStatus
    reason: str
    is_emergency: bool
    requested_by: Optional[UUID] = None
    cancellation_reason: Optional[str] = None
    cancelled_by: Optional[UUID] = None
    confirmed_at: Optional[dt.datetime] = None
    started_at: Optional[dt.datetime] = None
    completed_at: Optional[dt.datetime] = None
    cancelled_at: Optional[dt.datetime] = None
    no_show_at: Optional[dt.datetime] = None
    created_at: dt.datetime
    updated_at: dt.datetime

    @field_serializer("appointment_time")
    def serialize_time(self, value: dt.time) -> str:
        return format_time_of_day(value)

    @field_serializer("status")
    def serialize_status(self, value: AppointmentStatus) -> str:
        return value.name


class AgendaItem(BaseModel):
    """An appointment with the names shown on agenda listings."""

    model_config = ConfigDict(frozen=True)

    appointment: AppointmentResponse
    subject_name: str
    owner_id: UUID
    service_name: str
    practitioner_name: str


class AppointmentReminder(BaseModel):
    """Upcoming appointment that a reminder should be sent for."""

    model_config = ConfigDict(frozen=True)

    appointment_id: UUID
    subject_id: UUID
    subject_name: str
    owner_id: UUID
    practitioner_id: UUID
    practitioner_name: str
    service_name: str
    date: dt.date
    time: dt.time
    status: AppointmentStatus
    starts_at: dt.datetime = Field(..., description="Start in the clinic timezone")

    @field_serializer("time")
    def serialize_time(self, value: dt.time) -> str:
        return format_time_of_day(value)

    @field_serializer("status")
    def serialize_status(self, value: AppointmentStatus) -> str:
        return value.name
