"""
Appointment scheduling engine.

Availability resolution, the appointment lifecycle and the booking workflow,
built on the weekly schedule store and the appointment ledger.
"""

from .actors import ActorContext, ActorRole
from .availability import AvailabilityResolver, find_window_for, generate_slot_times
from .booking import (
    BookingSelections,
    BookingState,
    BookingStep,
    BookingWorkflow,
    advance,
    build_request,
    go_back,
    is_slot_selected,
    select,
    should_reset,
)
from .ledger import AppointmentLedger, LedgerEntry
from .lifecycle import AppointmentLifecycle, parse_event
from .notifications import (
    APPOINTMENT_CANCELLED,
    APPOINTMENT_CONFIRMED,
    APPOINTMENT_REQUESTED,
    APPOINTMENT_RESCHEDULED,
    LoggingNotifier,
    Notifier,
)
from .schedule_store import WeeklyScheduleStore
from .service import SchedulingService, parse_statuses

__all__ = [
    # Actors
    "ActorContext",
    "ActorRole",
    # Components
    "WeeklyScheduleStore",
    "AppointmentLedger",
    "LedgerEntry",
    "AvailabilityResolver",
    "generate_slot_times",
    "find_window_for",
    "AppointmentLifecycle",
    "parse_event",
    "SchedulingService",
    "parse_statuses",
    # Booking workflow
    "BookingStep",
    "BookingSelections",
    "BookingState",
    "BookingWorkflow",
    "select",
    "advance",
    "go_back",
    "is_slot_selected",
    "should_reset",
    "build_request",
    # Notifications
    "Notifier",
    "LoggingNotifier",
    "APPOINTMENT_REQUESTED",
    "APPOINTMENT_CONFIRMED",
    "APPOINTMENT_CANCELLED",
    "APPOINTMENT_RESCHEDULED",
]
