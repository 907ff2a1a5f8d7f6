"""
Vet Scheduler Package

Appointment scheduling and availability engine for a multi-role veterinary
clinic portal (owners, veterinarians, receptionists, auxiliaries and
administrators). It includes:

- Bookable slot resolution from weekly working windows and booked appointments
- Atomic conflict detection when an appointment is requested
- A role-scoped appointment lifecycle (request, confirm, attend, complete,
  cancel, no-show) with notifications after each committed change
- The four-step booking wizard as an explicit state machine
- SQLAlchemy models, Pydantic schemas and async database utilities

Quick Start:
    >>> from vet_scheduler import SchedulingService, SchedulerSettings, ActorContext
    >>> service = SchedulingService.from_settings(SchedulerSettings.from_environment())
    >>> await service.initialize()

    >>> availability = await service.get_availability(vet_id, "2024-06-03")
    >>> owner = ActorContext.owner(user_id)
    >>> appointment = await service.request_appointment(
    ...     owner, pet_id, service_id, vet_id, "2024-06-03", "09:30",
    ...     reason_text="Annual check-up",
    ... )
    >>> await service.transition_appointment(receptionist, appointment.id, "Confirm")

Requirements:
    - Python 3.11+
    - PostgreSQL 13+ (asyncpg) or SQLite (aiosqlite)
    - SQLAlchemy 2.0+
    - Pydantic 2.5+
"""

__version__ = "0.1.0"
__author__ = "Vet Clinic Platform Team"
__email__ = "dev@vetclinic.com"
__license__ = "MIT"

# Import implemented modules
from . import database, exceptions, models, scheduling, schemas, utils

# Convenience imports for common usage patterns
from .database import SessionManager, create_engine
from .exceptions import (
    AuthorizationException,
    ConflictException,
    NotFoundException,
    ValidationException,
    VetSchedulerException,
)
from .models import Appointment, AppointmentEvent, AppointmentStatus, WorkingWindow
from .scheduling import ActorContext, ActorRole, BookingWorkflow, SchedulingService
from .utils import SchedulerSettings

__all__ = [
    # Version and metadata
    "__version__",
    "__author__",
    "__email__",
    "__license__",
    # Core modules
    "database",
    "exceptions",
    "models",
    "scheduling",
    "schemas",
    "utils",
    # Convenience imports
    "create_engine",
    "SessionManager",
    "VetSchedulerException",
    "ValidationException",
    "ConflictException",
    "AuthorizationException",
    "NotFoundException",
    "Appointment",
    "AppointmentEvent",
    "AppointmentStatus",
    "WorkingWindow",
    "ActorContext",
    "ActorRole",
    "BookingWorkflow",
    "SchedulingService",
    "SchedulerSettings",
]
