"""
Appointment lifecycle.

State machine of an appointment, with the role each transition requires and
the notification it sends::

    (none)      --request-->          REQUESTED    notify appointment_requested
    REQUESTED   --confirm-->          CONFIRMED    notify appointment_confirmed
    REQUESTED,
    CONFIRMED   --cancel-->           CANCELLED    notify appointment_cancelled
    CONFIRMED   --start_attendance--> IN_PROGRESS
    IN_PROGRESS --complete-->         COMPLETED
    CONFIRMED   --mark_no_show-->     NO_SHOW

REQUESTED and CONFIRMED appointments can also be rescheduled to another slot
of the same veterinarian; the status is kept and ``appointment_rescheduled``
is sent.

Guards are checked in a fixed order: who is acting, then whether the event
is allowed from the current status, then the values supplied. Notifications
are sent after the transaction commits and a failing notifier never rolls a
transition back.
"""

import logging
import re
import uuid
from datetime import date, time
from typing import Any, Dict, Mapping, Optional, Union

from sqlalchemy.ext.asyncio import AsyncSession

from ..database.session import SessionManager
from ..exceptions import (
    AuthorizationException,
    BusinessRuleException,
    NotFoundException,
    ValidationException,
)
from ..models import (
    Appointment,
    AppointmentEvent,
    AppointmentStatus,
    ClinicService,
    Pet,
    Veterinarian,
)
from ..schemas.appointment import (
    AppointmentRequest,
    AppointmentReschedule,
    AppointmentResponse,
)
from ..utils.config import SchedulerSettings
from ..utils.datetime_utils import DayOfWeek, format_time_of_day
from ..utils.validation import coerce_uuid, require_min_length, validate_schema
from .actors import ActorContext, ActorRole
from .availability import Clock, find_window_for
from .ledger import AppointmentLedger
from .notifications import (
    APPOINTMENT_CANCELLED,
    APPOINTMENT_CONFIRMED,
    APPOINTMENT_REQUESTED,
    APPOINTMENT_RESCHEDULED,
    Notifier,
    dispatch_notification,
)
from .schedule_store import WeeklyScheduleStore

logger = logging.getLogger(__name__)

EventLike = Union[AppointmentEvent, str]

REQUEST_ROLES = frozenset(
    {
        ActorRole.OWNER,
        ActorRole.RECEPTIONIST,
        ActorRole.VETERINARIAN,
        ActorRole.ADMINISTRATOR,
    }
)

EVENT_ROLES: Dict[AppointmentEvent, frozenset] = {
    AppointmentEvent.CONFIRM: frozenset(
        {ActorRole.VETERINARIAN, ActorRole.RECEPTIONIST, ActorRole.ADMINISTRATOR}
    ),
    AppointmentEvent.CANCEL: REQUEST_ROLES,
    AppointmentEvent.START_ATTENDANCE: frozenset({ActorRole.VETERINARIAN}),
    AppointmentEvent.COMPLETE: frozenset({ActorRole.VETERINARIAN}),
    AppointmentEvent.MARK_NO_SHOW: frozenset(
        {ActorRole.VETERINARIAN, ActorRole.RECEPTIONIST, ActorRole.ADMINISTRATOR}
    ),
}

# Only the veterinarian the appointment is assigned to may run these
ASSIGNED_VETERINARIAN_EVENTS = frozenset(
    {AppointmentEvent.START_ATTENDANCE, AppointmentEvent.COMPLETE}
)

EVENT_TEMPLATES: Dict[AppointmentEvent, str] = {
    AppointmentEvent.REQUEST: APPOINTMENT_REQUESTED,
    AppointmentEvent.CONFIRM: APPOINTMENT_CONFIRMED,
    AppointmentEvent.CANCEL: APPOINTMENT_CANCELLED,
}

RESCHEDULE_OPERATION = "reschedule"

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")


def parse_event(event: EventLike) -> AppointmentEvent:
    """
    Accept an event as enum member or name.

    ``"Confirm"``, ``"StartAttendance"``, ``"start_attendance"`` and
    ``"MARK_NO_SHOW"`` are all understood.

    Raises:
        ValidationException: If the name is not a lifecycle event
    """
    if isinstance(event, AppointmentEvent):
        return event
    if isinstance(event, str):
        key = _CAMEL_BOUNDARY.sub("_", event.strip()).replace("-", "_").replace(" ", "_").lower()
        try:
            return AppointmentEvent(key)
        except ValueError:
            pass
    raise ValidationException(f"Unknown appointment event: {event!r}", field="event", value=event)


def _event_label(event: AppointmentEvent) -> str:
    return event.value.replace("_", " ")


class AppointmentLifecycle:
    """Applies lifecycle events to appointments."""

    def __init__(
        self,
        session_manager: SessionManager,
        schedule_store: WeeklyScheduleStore,
        ledger: AppointmentLedger,
        notifier: Notifier,
        clock: Clock,
        settings: SchedulerSettings,
    ):
        self.session_manager = session_manager
        self.schedule_store = schedule_store
        self.ledger = ledger
        self.notifier = notifier
        self.clock = clock
        self.settings = settings

    async def request(
        self,
        actor: ActorContext,
        data: Union[AppointmentRequest, Mapping[str, Any]],
    ) -> AppointmentResponse:
        """
        Book a new appointment in REQUESTED status.

        Raises:
            AuthorizationException: If the actor may not book for the pet
            ValidationException: If the input is malformed, the reason too
                short, the time in the past or off the schedule
            NotFoundException: If the pet, service or veterinarian is unknown
            ConflictException: If the slot was taken in the meantime
        """
        if not actor.has_role(*REQUEST_ROLES):
            raise AuthorizationException(
                f"Role '{actor.role.value}' cannot request appointments",
                actor_role=actor.role.value,
                operation=AppointmentEvent.REQUEST.value,
            )

        payload: AppointmentRequest = validate_schema(AppointmentRequest, data)

        lock = self.ledger.lock_for(payload.practitioner_id, payload.date)
        async with lock:
            async with self.session_manager.get_transaction() as session:
                pet = await self._load(session, Pet, payload.subject_id, "Pet")
                if actor.role == ActorRole.OWNER and not pet.is_owned_by(actor.user_id):
                    raise AuthorizationException(
                        "Owners can only request appointments for their own pets",
                        actor_role=actor.role.value,
                        operation=AppointmentEvent.REQUEST.value,
                    )

                reason = require_min_length(
                    payload.reason_text,
                    self.settings.min_reason_length,
                    "reason_text",
                    label="Reason",
                )
                self._check_not_past(payload.date, payload.time)

                veterinarian = await self._load(
                    session, Veterinarian, payload.practitioner_id, "Veterinarian"
                )
                if not veterinarian.is_active:
                    raise BusinessRuleException(
                        f"{veterinarian.display_name} is not taking appointments",
                        rule_name="veterinarian_active",
                    )
                service = await self._load(session, ClinicService, payload.service_id, "Service")
                if not service.is_active:
                    raise BusinessRuleException(
                        f"Service '{service.name}' is not available for booking",
                        rule_name="service_active",
                    )

                duration = await self._check_on_schedule(
                    session, payload.practitioner_id, payload.date, payload.time, service
                )

                appointment = Appointment(
                    pet_id=pet.id,
                    veterinarian_id=veterinarian.id,
                    service_id=service.id,
                    appointment_date=payload.date,
                    appointment_time=payload.time,
                    duration_minutes=duration,
                    status=AppointmentStatus.REQUESTED,
                    reason=reason,
                    is_emergency=payload.is_emergency,
                    requested_by=actor.user_id,
                )
                await self.ledger.claim(session, appointment)
                response = AppointmentResponse.model_validate(appointment)
                notification = self._notification_payload(
                    appointment, pet, service, veterinarian
                )

        logger.info(
            f"Appointment {appointment.id} requested for {payload.date} "
            f"{format_time_of_day(payload.time)} with veterinarian {veterinarian.id}"
        )
        await self._notify(APPOINTMENT_REQUESTED, pet.id, notification)
        return response

    async def transition(
        self,
        actor: ActorContext,
        appointment_id: Any,
        event: EventLike,
        cancellation_reason: Optional[str] = None,
    ) -> AppointmentResponse:
        """
        Apply a lifecycle event to an existing appointment.

        Raises:
            ValidationException: If the event or id is malformed or the
                cancellation reason is too short
            NotFoundException: If the appointment does not exist
            AuthorizationException: If the actor may not apply the event
            BusinessRuleException: If the event is not allowed from the
                current status or its precondition does not hold
        """
        event = parse_event(event)
        if event == AppointmentEvent.REQUEST:
            raise ValidationException(
                "New appointments are booked with request(), not transition()",
                field="event",
                value=event.value,
            )
        appointment_id = coerce_uuid(appointment_id, "appointment_id")

        async with self.session_manager.get_transaction() as session:
            appointment = await self.ledger.get(session, appointment_id)
            pet = await self._load(session, Pet, appointment.pet_id, "Pet")

            self._authorize(actor, event, appointment, pet)
            previous = appointment.status
            if not appointment.can_apply(event):
                raise BusinessRuleException(
                    f"Cannot {_event_label(event)} an appointment that is "
                    f"{appointment.get_status_display().lower()}",
                    rule_name="appointment_status_transition",
                    context={"status": previous.name, "event": event.name},
                )

            now = self.clock()
            if event == AppointmentEvent.CANCEL:
                appointment.cancellation_reason = require_min_length(
                    cancellation_reason,
                    self.settings.min_reason_length,
                    "cancellation_reason",
                    label="Cancellation reason",
                )
                appointment.cancelled_by = actor.user_id
            elif event == AppointmentEvent.MARK_NO_SHOW:
                if appointment.starts_at(self.settings.timezone) > now:
                    raise BusinessRuleException(
                        "An appointment can only be marked as a no-show after it was due to start",
                        rule_name="no_show_after_start",
                    )

            appointment.apply_event(event, at=now)
            await session.flush()
            response = AppointmentResponse.model_validate(appointment)

            notification: Optional[Dict[str, Any]] = None
            if event in EVENT_TEMPLATES:
                service = await self._load(session, ClinicService, appointment.service_id, "Service")
                veterinarian = await self._load(
                    session, Veterinarian, appointment.veterinarian_id, "Veterinarian"
                )
                notification = self._notification_payload(appointment, pet, service, veterinarian)

        logger.info(
            f"Appointment {appointment.id} moved from {previous.name} to "
            f"{appointment.status.name} by {actor.role.value} {actor.user_id}"
        )
        if notification is not None:
            await self._notify(EVENT_TEMPLATES[event], pet.id, notification)
        return response

    async def reschedule(
        self,
        actor: ActorContext,
        appointment_id: Any,
        data: Union[AppointmentReschedule, Mapping[str, Any]],
    ) -> AppointmentResponse:
        """
        Move a requested or confirmed appointment to another slot of its veterinarian.

        The new slot goes through the same checks as a new request and is
        claimed atomically; the old slot is released in the same transaction.

        Raises:
            AuthorizationException: If the actor may not manage the appointment
            ValidationException: If the input is malformed, unchanged, in the
                past or off the schedule
            NotFoundException: If the appointment does not exist
            BusinessRuleException: If the appointment can no longer be moved
            ConflictException: If the new slot is taken
        """
        if not actor.has_role(*REQUEST_ROLES):
            raise AuthorizationException(
                f"Role '{actor.role.value}' cannot reschedule appointments",
                actor_role=actor.role.value,
                operation=RESCHEDULE_OPERATION,
            )
        appointment_id = coerce_uuid(appointment_id, "appointment_id")
        payload: AppointmentReschedule = validate_schema(AppointmentReschedule, data)

        # The veterinarian never changes, so the lock can be chosen before the
        # appointment is locked for update.
        async with self.session_manager.get_session() as session:
            current = await self._load(session, Appointment, appointment_id, "Appointment")
            practitioner_id = current.veterinarian_id

        lock = self.ledger.lock_for(practitioner_id, payload.date)
        async with lock:
            async with self.session_manager.get_transaction() as session:
                appointment = await self.ledger.get(session, appointment_id)
                pet = await self._load(session, Pet, appointment.pet_id, "Pet")
                if actor.role == ActorRole.OWNER and not pet.is_owned_by(actor.user_id):
                    raise AuthorizationException(
                        "Owners can only manage appointments of their own pets",
                        actor_role=actor.role.value,
                        operation=RESCHEDULE_OPERATION,
                    )
                if not appointment.can_reschedule:
                    raise BusinessRuleException(
                        "Only requested or confirmed appointments can be rescheduled",
                        rule_name="appointment_reschedulable",
                        context={"status": appointment.status.name},
                    )

                previous_date = appointment.appointment_date
                previous_time = appointment.appointment_time
                if (payload.date, payload.time) == (previous_date, previous_time):
                    raise ValidationException(
                        "The new date and time must differ from the current ones",
                        field="time",
                        value=format_time_of_day(payload.time),
                    )
                self._check_not_past(payload.date, payload.time)

                veterinarian = await self._load(
                    session, Veterinarian, practitioner_id, "Veterinarian"
                )
                if not veterinarian.is_active:
                    raise BusinessRuleException(
                        f"{veterinarian.display_name} is not taking appointments",
                        rule_name="veterinarian_active",
                    )
                service = await self._load(
                    session, ClinicService, appointment.service_id, "Service"
                )
                duration = await self._check_on_schedule(
                    session, practitioner_id, payload.date, payload.time, service
                )

                appointment.move_to(payload.date, payload.time, duration, at=self.clock())
                await self.ledger.claim(session, appointment)
                response = AppointmentResponse.model_validate(appointment)
                notification = self._notification_payload(
                    appointment, pet, service, veterinarian
                )
                notification["previous_date"] = previous_date.isoformat()
                notification["previous_time"] = format_time_of_day(previous_time)

        logger.info(
            f"Appointment {appointment.id} moved from {previous_date} "
            f"{format_time_of_day(previous_time)} to {payload.date} "
            f"{format_time_of_day(payload.time)} by {actor.role.value} {actor.user_id}"
        )
        await self._notify(APPOINTMENT_RESCHEDULED, pet.id, notification)
        return response

    def _authorize(
        self,
        actor: ActorContext,
        event: AppointmentEvent,
        appointment: Appointment,
        pet: Pet,
    ) -> None:
        allowed = EVENT_ROLES[event]
        if not actor.has_role(*allowed):
            raise AuthorizationException(
                f"Role '{actor.role.value}' cannot {_event_label(event)} appointments",
                actor_role=actor.role.value,
                operation=event.value,
            )
        if actor.role == ActorRole.OWNER and not pet.is_owned_by(actor.user_id):
            raise AuthorizationException(
                "Owners can only manage appointments of their own pets",
                actor_role=actor.role.value,
                operation=event.value,
            )
        if (
            event in ASSIGNED_VETERINARIAN_EVENTS
            and actor.practitioner_id != appointment.veterinarian_id
        ):
            raise AuthorizationException(
                "Only the assigned veterinarian can "
                f"{_event_label(event)} this appointment",
                actor_role=actor.role.value,
                operation=event.value,
            )

    def _check_not_past(self, day: date, at: time) -> None:
        now = self.clock()
        today = now.date()
        if day < today:
            raise ValidationException(
                "Appointment date cannot be in the past",
                field="date",
                value=day.isoformat(),
            )
        if day == today and at < now.time().replace(tzinfo=None):
            raise ValidationException(
                "Appointment time has already passed",
                field="time",
                value=format_time_of_day(at),
            )

    async def _check_on_schedule(
        self,
        session: AsyncSession,
        practitioner_id: uuid.UUID,
        day: date,
        at: time,
        service: ClinicService,
    ) -> int:
        """Return the appointment duration once the time is known to be on the schedule."""
        windows = await self.schedule_store.get_windows(
            practitioner_id, DayOfWeek.from_date(day), session=session
        )
        window = find_window_for(windows, at)
        if window is None:
            raise ValidationException(
                f"{format_time_of_day(at)} on {day.isoformat()} "
                "is not a slot on the veterinarian's schedule",
                field="time",
                value=format_time_of_day(at),
            )

        duration = service.resolve_duration(window.slot_duration_minutes)
        if not window.contains(at, duration):
            raise ValidationException(
                f"Service '{service.name}' takes {duration} minutes and does not fit "
                f"before the window closes at {format_time_of_day(window.end_time)}",
                field="time",
                value=format_time_of_day(at),
            )
        return duration

    @staticmethod
    async def _load(session: AsyncSession, model: Any, entity_id: uuid.UUID, label: str) -> Any:
        instance = await session.get(model, entity_id)
        if instance is None:
            raise NotFoundException(label, entity_id)
        return instance

    @staticmethod
    def _notification_payload(
        appointment: Appointment,
        pet: Pet,
        service: ClinicService,
        veterinarian: Veterinarian,
    ) -> Dict[str, Any]:
        payload = {
            "appointment_id": str(appointment.id),
            "owner_id": str(pet.owner_id),
            "pet_name": pet.name,
            "service_name": service.name,
            "practitioner_name": veterinarian.display_name,
            "date": appointment.appointment_date.isoformat(),
            "time": format_time_of_day(appointment.appointment_time),
            "status": appointment.status.name,
        }
        if appointment.cancellation_reason:
            payload["cancellation_reason"] = appointment.cancellation_reason
        return payload

    async def _notify(
        self, template_id: str, subject_id: uuid.UUID, payload: Dict[str, Any]
    ) -> None:
        await dispatch_notification(
            self.notifier,
            subject_id,
            self.settings.notification_channel,
            template_id,
            payload,
        )
