"""
Appointment model for the vet-scheduler package.

This module contains the Appointment SQLAlchemy model and its status state
machine. An appointment occupies ``[appointment_time, appointment_time +
duration_minutes)`` on the veterinarian's agenda for ``appointment_date``
until it is cancelled. Appointments are never deleted; they only move to a
terminal status.
"""

import enum
import uuid
from datetime import date, datetime, time
from typing import Any, Dict, FrozenSet, Optional, Tuple

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    String,
    Text,
    Time,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from ..utils.datetime_utils import (
    combine_local,
    format_duration,
    format_time_of_day,
    intervals_overlap,
    time_interval,
)
from .base import BaseModel


class AppointmentStatus(enum.Enum):
    """Enumeration of appointment statuses."""

    REQUESTED = "requested"
    CONFIRMED = "confirmed"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"


class AppointmentEvent(enum.Enum):
    """Events that move an appointment between statuses."""

    REQUEST = "request"
    CONFIRM = "confirm"
    CANCEL = "cancel"
    START_ATTENDANCE = "start_attendance"
    COMPLETE = "complete"
    MARK_NO_SHOW = "mark_no_show"


TERMINAL_STATUSES: FrozenSet[AppointmentStatus] = frozenset(
    {
        AppointmentStatus.COMPLETED,
        AppointmentStatus.CANCELLED,
        AppointmentStatus.NO_SHOW,
    }
)

# Statuses that keep the slot occupied. A no-show still held the practitioner's time.
OCCUPYING_STATUSES: FrozenSet[AppointmentStatus] = frozenset(
    set(AppointmentStatus) - {AppointmentStatus.CANCELLED}
)

# Statuses from which an appointment may still be moved to another slot
RESCHEDULABLE_STATUSES: FrozenSet[AppointmentStatus] = frozenset(
    {AppointmentStatus.REQUESTED, AppointmentStatus.CONFIRMED}
)

TRANSITIONS: Dict[Tuple[AppointmentStatus, AppointmentEvent], AppointmentStatus] = {
    (AppointmentStatus.REQUESTED, AppointmentEvent.CONFIRM): AppointmentStatus.CONFIRMED,
    (AppointmentStatus.REQUESTED, AppointmentEvent.CANCEL): AppointmentStatus.CANCELLED,
    (AppointmentStatus.CONFIRMED, AppointmentEvent.CANCEL): AppointmentStatus.CANCELLED,
    (AppointmentStatus.CONFIRMED, AppointmentEvent.START_ATTENDANCE): AppointmentStatus.IN_PROGRESS,
    (AppointmentStatus.CONFIRMED, AppointmentEvent.MARK_NO_SHOW): AppointmentStatus.NO_SHOW,
    (AppointmentStatus.IN_PROGRESS, AppointmentEvent.COMPLETE): AppointmentStatus.COMPLETED,
}


class Appointment(BaseModel):
    """
    Booked appointment on a veterinarian's agenda.

    Status changes go through ``apply_event`` so that the transition table
    and the timestamp bookkeeping stay in one place; authorization and field
    guards live in the scheduling lifecycle.
    """

    __tablename__ = "appointments"

    def __init__(self, **kwargs: Any) -> None:
        """Initialize Appointment with default values."""
        if "status" not in kwargs:
            kwargs["status"] = AppointmentStatus.REQUESTED
        if "is_emergency" not in kwargs:
            kwargs["is_emergency"] = False
        super().__init__(**kwargs)

    # Relationship foreign keys
    pet_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("pets.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="UUID of the pet for this appointment",
    )

    veterinarian_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("veterinarians.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="UUID of the assigned veterinarian",
    )

    service_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("clinic_services.id"),
        nullable=False,
        index=True,
        comment="UUID of the booked clinic service",
    )

    # Scheduling information
    appointment_date: Mapped[date] = mapped_column(
        Date,
        nullable=False,
        index=True,
        comment="Local calendar date of the appointment",
    )

    appointment_time: Mapped[time] = mapped_column(
        Time,
        nullable=False,
        comment="Local start time of the appointment",
    )

    duration_minutes: Mapped[int] = mapped_column(
        nullable=False,
        comment="Minutes the appointment occupies on the agenda",
    )

    status: Mapped[AppointmentStatus] = mapped_column(
        Enum(AppointmentStatus, name="appointment_status"),
        nullable=False,
        default=AppointmentStatus.REQUESTED,
        index=True,
        comment="Current status of the appointment",
    )

    reason: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        comment="Reason for the appointment or chief complaint",
    )

    is_emergency: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        comment="Flagged as an emergency by the requester",
    )

    requested_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        nullable=True,
        comment="User account that requested the appointment",
    )

    # Cancellation information
    cancellation_reason: Mapped[Optional[str]] = mapped_column(
        String(500),
        nullable=True,
        comment="Reason for appointment cancellation",
    )

    cancelled_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        nullable=True,
        comment="User account that cancelled the appointment",
    )

    # Timing information
    confirmed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        comment="When the appointment was confirmed",
    )

    started_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        comment="When the attendance started",
    )

    completed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        comment="When the appointment was completed",
    )

    cancelled_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        comment="When the appointment was cancelled",
    )

    no_show_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        comment="When the appointment was marked as a no-show",
    )

    __table_args__ = (
        CheckConstraint(
            "duration_minutes > 0",
            name="ck_appointments_duration_positive",
        ),
        CheckConstraint(
            "status != 'CANCELLED' OR cancellation_reason IS NOT NULL",
            name="ck_appointments_cancellation_reason_required",
        ),
        # One live appointment per practitioner start time; the overlap check
        # in the ledger covers partially overlapping intervals.
        Index(
            "uq_appointments_vet_slot_active",
            "veterinarian_id",
            "appointment_date",
            "appointment_time",
            unique=True,
            postgresql_where=text("status != 'CANCELLED'"),
            sqlite_where=text("status != 'CANCELLED'"),
        ),
        Index("idx_appointments_vet_date", "veterinarian_id", "appointment_date"),
        Index("idx_appointments_pet_date", "pet_id", "appointment_date"),
        Index("idx_appointments_status_date", "status", "appointment_date"),
    )

    def __repr__(self) -> str:
        """String representation of the Appointment model."""
        return (
            f"<Appointment(id={self.id}, pet_id={self.pet_id}, "
            f"date='{self.appointment_date}', time='{self.appointment_time}', "
            f"status='{self.status.value}')>"
        )

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def occupies_slot(self) -> bool:
        """Check if the appointment still blocks its time on the agenda."""
        return self.status in OCCUPYING_STATUSES

    @property
    def interval(self) -> Tuple[int, int]:
        """Occupied ``[start, end)`` interval in minutes since midnight."""
        return time_interval(self.appointment_time, self.duration_minutes)

    def overlaps(self, start: time, duration_minutes: int) -> bool:
        """Check if ``[start, start + duration)`` overlaps this appointment."""
        return intervals_overlap(self.interval, time_interval(start, duration_minutes))

    def starts_at(self, timezone: str = "UTC") -> datetime:
        """Timezone-aware start of the appointment in the clinic timezone."""
        return combine_local(self.appointment_date, self.appointment_time, timezone)

    def can_apply(self, event: AppointmentEvent) -> bool:
        """Check if the event is allowed from the current status."""
        return (self.status, event) in TRANSITIONS

    def apply_event(self, event: AppointmentEvent, at: datetime) -> AppointmentStatus:
        """
        Move the appointment to the status the event leads to.

        Args:
            event: Lifecycle event to apply
            at: Timestamp recorded for the transition

        Returns:
            The new status

        Raises:
            ValueError: If the event is not allowed from the current status
        """
        target = TRANSITIONS.get((self.status, event))
        if target is None:
            raise ValueError(
                f"Cannot {event.value.replace('_', ' ')} appointment with status {self.status.value}"
            )

        self.status = target
        self.updated_at = at
        timestamp_field = {
            AppointmentStatus.CONFIRMED: "confirmed_at",
            AppointmentStatus.IN_PROGRESS: "started_at",
            AppointmentStatus.COMPLETED: "completed_at",
            AppointmentStatus.CANCELLED: "cancelled_at",
            AppointmentStatus.NO_SHOW: "no_show_at",
        }[target]
        setattr(self, timestamp_field, at)
        return target

    @property
    def can_reschedule(self) -> bool:
        return self.status in RESCHEDULABLE_STATUSES

    def move_to(
        self, new_date: date, new_time: time, duration_minutes: int, at: datetime
    ) -> None:
        """
        Move the appointment to another start on the same agenda.

        The status is kept; a confirmed appointment stays confirmed.

        Raises:
            ValueError: If the appointment can no longer be rescheduled
        """
        if not self.can_reschedule:
            raise ValueError(f"Cannot reschedule appointment with status {self.status.value}")

        self.appointment_date = new_date
        self.appointment_time = new_time
        self.duration_minutes = duration_minutes
        self.updated_at = at

    def get_duration_display(self) -> str:
        """Get a human-readable duration display."""
        return format_duration(self.duration_minutes)

    def get_time_display(self) -> str:
        return format_time_of_day(self.appointment_time)

    def get_status_display(self) -> str:
        """Get a human-readable status display."""
        status_display = {
            AppointmentStatus.REQUESTED: "Requested",
            AppointmentStatus.CONFIRMED: "Confirmed",
            AppointmentStatus.IN_PROGRESS: "In Progress",
            AppointmentStatus.COMPLETED: "Completed",
            AppointmentStatus.CANCELLED: "Cancelled",
            AppointmentStatus.NO_SHOW: "No Show",
        }
        return status_display.get(self.status, self.status.value.title())
