"""
Pydantic schemas for validation and serialization.

This module contains the schemas the scheduling engine accepts as input and
returns as output.
"""

from .appointment import (
    AgendaItem,
    AppointmentReminder,
    AppointmentRequest,
    AppointmentReschedule,
    AppointmentResponse,
)
from .availability import AvailabilityResult, OccupiedAppointment, SlotSchema
from .working_window import (
    WorkingWindowBase,
    WorkingWindowCreate,
    WorkingWindowResponse,
    WorkingWindowUpdate,
)

__all__ = [
    # Appointment schemas
    "AppointmentRequest",
    "AppointmentReschedule",
    "AppointmentResponse",
    "AgendaItem",
    "AppointmentReminder",
    # Availability schemas
    "AvailabilityResult",
    "SlotSchema",
    "OccupiedAppointment",
    # Working window schemas
    "WorkingWindowBase",
    "WorkingWindowCreate",
    "WorkingWindowUpdate",
    "WorkingWindowResponse",
]
