"""
Booking workflow.

The four-step booking wizard as an explicit state machine::

    SUBJECT -> SERVICE -> SCHEDULE -> CONFIRMATION -> DONE

The transition functions (``select``, ``advance``, ``go_back``) are pure:
they take a frozen BookingState and return a new one, which makes every step
easy to test and replay. BookingWorkflow wraps them with the asynchronous
calls a front end needs: loading availability for the schedule step and
submitting the request at confirmation.

Nothing is persisted before ``submit``; abandoning a workflow needs no
clean-up.
"""

import enum
import logging
import uuid
from dataclasses import dataclass, field, fields, replace
from datetime import date, datetime, time
from typing import TYPE_CHECKING, Any, Callable, Dict, Optional, Union

from ..exceptions import ConflictException, ValidationException, VetSchedulerException
from ..schemas.appointment import AppointmentResponse
from ..schemas.availability import AvailabilityResult, SlotSchema
from ..utils.datetime_utils import TimeLike, parse_calendar_date, parse_time_of_day
from ..utils.validation import coerce_uuid, coerce_with, sanitize_string
from .actors import ActorContext

if TYPE_CHECKING:
    from .service import SchedulingService

logger = logging.getLogger(__name__)

DEFAULT_DISPLAY_SECONDS = 5


class BookingStep(enum.Enum):
    """Steps of the booking wizard, in order."""

    SUBJECT = 1
    SERVICE = 2
    SCHEDULE = 3
    CONFIRMATION = 4
    DONE = 5


@dataclass(frozen=True)
class BookingSelections:
    """Choices collected so far."""

    subject_id: Optional[uuid.UUID] = None
    service_id: Optional[uuid.UUID] = None
    service_name: Optional[str] = None
    practitioner_id: Optional[uuid.UUID] = None
    date: Optional[date] = None
    time: Optional[time] = None
    reason_text: str = ""
    is_emergency: bool = False


@dataclass(frozen=True)
class BookingState:
    """Immutable snapshot of a booking in progress."""

    step: BookingStep = BookingStep.SUBJECT
    selections: BookingSelections = field(default_factory=BookingSelections)
    availability: Optional[AvailabilityResult] = None
    error: Optional[str] = None
    appointment: Optional[AppointmentResponse] = None
    completed_at: Optional[datetime] = None


_SELECTION_FIELDS = {f.name for f in fields(BookingSelections)}
_UUID_FIELDS = ("subject_id", "service_id", "practitioner_id")


def _normalize(name: str, value: Any) -> Any:
    if value is None:
        return None
    if name in _UUID_FIELDS:
        return coerce_uuid(value, name)
    if name == "date":
        return coerce_with(parse_calendar_date, value, "date")
    if name == "time":
        return coerce_with(parse_time_of_day, value, "time")
    if name == "reason_text":
        return str(value)
    if name == "is_emergency":
        return bool(value)
    return value


def select(state: BookingState, **changes: Any) -> BookingState:
    """
    Record choices on the current booking.

    Changing the veterinarian or the date drops the chosen time and the
    loaded availability, since both belong to the previous agenda. A
    schedule change made on the confirmation step sends the booking back to
    SCHEDULE so the new slot is checked again.

    Raises:
        ValidationException: On unknown fields, malformed values or when the
            booking is already done
    """
    if state.step == BookingStep.DONE:
        raise ValidationException("This booking has already been submitted", field="step")

    unknown = set(changes) - _SELECTION_FIELDS
    if unknown:
        raise ValidationException(
            f"Unknown booking field(s): {', '.join(sorted(unknown))}",
            field=sorted(unknown)[0],
        )

    normalized = {name: _normalize(name, value) for name, value in changes.items()}
    current = state.selections
    agenda_changed = any(
        name in normalized and normalized[name] != getattr(current, name)
        for name in ("practitioner_id", "date")
    )

    if "service_id" in normalized and normalized["service_id"] != current.service_id:
        normalized.setdefault("service_name", None)
    if agenda_changed:
        normalized.setdefault("time", None)

    step = state.step
    time_changed = "time" in normalized and normalized["time"] != current.time
    if step == BookingStep.CONFIRMATION and (agenda_changed or time_changed):
        step = BookingStep.SCHEDULE

    return replace(
        state,
        step=step,
        selections=replace(current, **normalized),
        availability=None if agenda_changed else state.availability,
        error=None,
    )


def with_availability(state: BookingState, availability: AvailabilityResult) -> BookingState:
    """Attach availability, provided it belongs to the selected agenda."""
    selections = state.selections
    if (
        availability.practitioner_id != selections.practitioner_id
        or availability.date != selections.date
    ):
        raise ValidationException(
            "Availability does not match the selected veterinarian and date",
            field="availability",
        )
    return replace(state, availability=availability, error=None)


def _require(value: Any, message: str, field_name: str) -> None:
    if value is None:
        raise ValidationException(message, field=field_name)


def advance(state: BookingState) -> BookingState:
    """
    Move to the next step once the current one is complete.

    Raises:
        ValidationException: If a required choice is missing or the chosen
            time is not an available slot
    """
    selections = state.selections

    if state.step == BookingStep.SUBJECT:
        _require(selections.subject_id, "Select a pet", "subject_id")
        next_step = BookingStep.SERVICE
    elif state.step == BookingStep.SERVICE:
        _require(selections.service_id, "Select a service", "service_id")
        next_step = BookingStep.SCHEDULE
    elif state.step == BookingStep.SCHEDULE:
        _require(selections.practitioner_id, "Select a veterinarian", "practitioner_id")
        _require(selections.date, "Select a date", "date")
        _require(selections.time, "Select a time", "time")
        if state.availability is None:
            raise ValidationException(
                "Availability has not been loaded for the selected date", field="availability"
            )
        if not state.availability.is_available(selections.time):
            raise ValidationException("The selected time is not available", field="time")
        next_step = BookingStep.CONFIRMATION
    elif state.step == BookingStep.CONFIRMATION:
        raise ValidationException("Submit the booking to finish", field="step")
    else:
        raise ValidationException("This booking has already been submitted", field="step")

    return replace(state, step=next_step, error=None)


def go_back(state: BookingState) -> BookingState:
    """Return to the previous step, keeping every choice; a finished booking starts over."""
    if state.step == BookingStep.DONE:
        return BookingState()
    if state.step == BookingStep.SUBJECT:
        return replace(state, error=None)
    return replace(state, step=BookingStep(state.step.value - 1), error=None)


def is_slot_selected(state: BookingState, slot: Union[SlotSchema, TimeLike]) -> bool:
    """Compare a slot with the chosen time on their canonical form."""
    chosen = state.selections.time
    if chosen is None:
        return False
    slot_time = slot.time if isinstance(slot, SlotSchema) else parse_time_of_day(slot)
    return slot_time == chosen


def should_reset(
    state: BookingState, now: datetime, display_seconds: float = DEFAULT_DISPLAY_SECONDS
) -> bool:
    """Check whether the confirmation has been displayed long enough."""
    if state.step != BookingStep.DONE or state.completed_at is None:
        return False
    return (now - state.completed_at).total_seconds() >= display_seconds


def build_request(state: BookingState) -> Dict[str, Any]:
    """
    Request arguments for the current selections.

    A blank reason becomes "Appointment for <service name>".
    """
    selections = state.selections
    reason = sanitize_string(selections.reason_text or "")
    if not reason:
        reason = f"Appointment for {selections.service_name or 'the selected service'}"
    return {
        "subject_id": selections.subject_id,
        "service_id": selections.service_id,
        "practitioner_id": selections.practitioner_id,
        "date": selections.date,
        "time": selections.time,
        "reason_text": reason,
        "is_emergency": selections.is_emergency,
    }


class BookingWorkflow:
    """
    Drives a BookingState against the scheduling service.

    Args:
        service: Scheduling service used for availability and requests
        actor: Who is booking
        clock: Returns the current time in the clinic timezone
        display_seconds: How long the confirmation stays before resetting
    """

    def __init__(
        self,
        service: "SchedulingService",
        actor: ActorContext,
        clock: Callable[[], datetime],
        display_seconds: float = DEFAULT_DISPLAY_SECONDS,
        state: Optional[BookingState] = None,
    ):
        self.service = service
        self.actor = actor
        self.clock = clock
        self.display_seconds = display_seconds
        self._state = state or BookingState()

    @property
    def state(self) -> BookingState:
        return self._state

    @property
    def step(self) -> BookingStep:
        return self._state.step

    def select(self, **changes: Any) -> BookingState:
        self._state = select(self._state, **changes)
        return self._state

    def advance(self) -> BookingState:
        self._state = advance(self._state)
        return self._state

    def go_back(self) -> BookingState:
        self._state = go_back(self._state)
        return self._state

    def is_slot_selected(self, slot: Union[SlotSchema, TimeLike]) -> bool:
        return is_slot_selected(self._state, slot)

    async def load_availability(self) -> AvailabilityResult:
        """
        Fetch the slots for the selected veterinarian and date.

        Raises:
            ValidationException: If no veterinarian or date is selected
        """
        selections = self._state.selections
        _require(selections.practitioner_id, "Select a veterinarian", "practitioner_id")
        _require(selections.date, "Select a date", "date")

        availability = await self.service.get_availability(
            selections.practitioner_id, selections.date
        )
        self._state = with_availability(self._state, availability)
        return availability

    async def submit(self) -> BookingState:
        """
        Request the appointment.

        On success the workflow moves to DONE. When the slot was taken in the
        meantime it goes back to SCHEDULE with fresh availability and no time
        selected. Any other failure keeps it on CONFIRMATION with the message
        in ``state.error``.

        Raises:
            ValidationException: If the workflow is not on CONFIRMATION
        """
        state = self._state
        if state.step != BookingStep.CONFIRMATION:
            raise ValidationException("Nothing to submit yet", field="step")

        try:
            appointment = await self.service.request_appointment(
                self.actor, **build_request(state)
            )
        except ConflictException as e:
            logger.info(
                f"Slot {state.selections.time} was taken before submission, "
                "returning to the schedule step"
            )
            selections = state.selections
            availability = await self.service.get_availability(
                selections.practitioner_id, selections.date
            )
            self._state = replace(
                state,
                step=BookingStep.SCHEDULE,
                selections=replace(selections, time=None),
                availability=availability,
                error=e.message,
            )
            return self._state
        except VetSchedulerException as e:
            self._state = replace(state, error=e.message)
            return self._state

        self._state = replace(
            state,
            step=BookingStep.DONE,
            appointment=appointment,
            completed_at=self.clock(),
            error=None,
        )
        return self._state

    def tick(self) -> bool:
        """Reset the workflow once the confirmation was displayed long enough."""
        if should_reset(self._state, self.clock(), self.display_seconds):
            self._state = BookingState()
            return True
        return False

    def dismiss(self) -> BookingState:
        """Abandon the booking and start over."""
        self._state = BookingState()
        return self._state
