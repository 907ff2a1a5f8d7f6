"""
Database models for the vet-scheduler package.

This module contains SQLAlchemy models for the entities the scheduling
engine reads and writes.
"""

from .appointment import (
    OCCUPYING_STATUSES,
    RESCHEDULABLE_STATUSES,
    TERMINAL_STATUSES,
    TRANSITIONS,
    Appointment,
    AppointmentEvent,
    AppointmentStatus,
)

# Base model will be imported by all other models
from .base import Base, BaseModel
from .pet import Pet
from .service import ClinicService
from .veterinarian import Veterinarian, VeterinarianStatus
from .working_window import (
    DEFAULT_SLOT_MINUTES,
    MAX_SLOT_MINUTES,
    MIN_SLOT_MINUTES,
    WorkingWindow,
)

__all__ = [
    "Base",
    "BaseModel",
    "Veterinarian",
    "VeterinarianStatus",
    "Pet",
    "ClinicService",
    "WorkingWindow",
    "MIN_SLOT_MINUTES",
    "MAX_SLOT_MINUTES",
    "DEFAULT_SLOT_MINUTES",
    "Appointment",
    "AppointmentStatus",
    "AppointmentEvent",
    "TRANSITIONS",
    "TERMINAL_STATUSES",
    "OCCUPYING_STATUSES",
    "RESCHEDULABLE_STATUSES",
]
