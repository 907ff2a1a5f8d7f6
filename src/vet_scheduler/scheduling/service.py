"""
Scheduling service.

Single entry point wiring the schedule store, the ledger, the availability
resolver and the lifecycle together. Transport layers (HTTP handlers, task
queues) call this class and translate VetSchedulerException subclasses with
``create_error_response``.

Example:
    >>> settings = SchedulerSettings.from_environment()
    >>> service = SchedulingService.from_settings(settings)
    >>> await service.initialize()
    >>> result = await service.get_availability(vet_id, "2024-06-03")
    >>> [slot.time for slot in result.available_slots]
"""

import logging
from datetime import date as Date
from datetime import timedelta
from typing import Any, Iterable, List, Optional

from sqlalchemy.ext.asyncio import AsyncEngine

from ..database.connection import create_engine
from ..database.session import SessionManager
from ..exceptions import AuthorizationException, NotFoundException, ValidationException
from ..models import AppointmentStatus, Base, Pet, Veterinarian
from ..schemas.appointment import AgendaItem, AppointmentReminder, AppointmentResponse
from ..schemas.availability import AvailabilityResult
from ..utils.config import SchedulerSettings
from ..utils.datetime_utils import get_current_local, parse_calendar_date
from ..utils.validation import coerce_uuid, coerce_with
from .actors import ActorContext, ActorRole
from .availability import AvailabilityResolver, Clock
from .booking import BookingWorkflow
from .ledger import AppointmentLedger, LedgerEntry
from .lifecycle import AppointmentLifecycle, EventLike
from .notifications import LoggingNotifier, Notifier
from .schedule_store import WeeklyScheduleStore

logger = logging.getLogger(__name__)

REMINDER_STATUSES = (AppointmentStatus.REQUESTED, AppointmentStatus.CONFIRMED)

# Receptionists and administrators see every agenda, veterinarians their own
AGENDA_ROLES = frozenset(
    {ActorRole.VETERINARIAN, ActorRole.RECEPTIONIST, ActorRole.ADMINISTRATOR}
)
LIST_OPERATION = "list_appointments"


def parse_statuses(statuses: Optional[Iterable[Any]]) -> Optional[List[AppointmentStatus]]:
    """
    Accept statuses as enum members, values or names.

    Raises:
        ValidationException: If a status is unknown
    """
    if statuses is None:
        return None
    if isinstance(statuses, (str, AppointmentStatus)):
        statuses = [statuses]

    parsed: List[AppointmentStatus] = []
    for status in statuses:
        if isinstance(status, AppointmentStatus):
            parsed.append(status)
            continue
        key = str(status).strip().lower()
        try:
            parsed.append(AppointmentStatus(key))
        except ValueError:
            raise ValidationException(
                f"Unknown appointment status: {status!r}", field="statuses", value=status
            ) from None
    return parsed


class SchedulingService:
    """Facade over the scheduling components."""

    def __init__(
        self,
        session_manager: SessionManager,
        settings: Optional[SchedulerSettings] = None,
        notifier: Optional[Notifier] = None,
        clock: Optional[Clock] = None,
    ):
        """
        Args:
            session_manager: Session manager bound to the scheduler database
            settings: Engine settings; defaults apply when omitted
            notifier: Notification sink; LoggingNotifier when omitted
            clock: Returns the current timezone-aware time in the clinic
                timezone; the system clock when omitted
        """
        self.session_manager = session_manager
        self.settings = settings or SchedulerSettings()
        self.notifier = notifier or LoggingNotifier()
        self.clock = clock or self._system_clock

        self.schedule_store = WeeklyScheduleStore(session_manager)
        self.ledger = AppointmentLedger(session_manager)
        self.resolver = AvailabilityResolver(
            session_manager, self.schedule_store, self.ledger, self.clock
        )
        self.lifecycle = AppointmentLifecycle(
            session_manager,
            self.schedule_store,
            self.ledger,
            self.notifier,
            self.clock,
            self.settings,
        )

    @classmethod
    def from_settings(
        cls,
        settings: SchedulerSettings,
        notifier: Optional[Notifier] = None,
        engine: Optional[AsyncEngine] = None,
    ) -> "SchedulingService":
        """Build the service and its database engine from settings."""
        engine = engine or create_engine(settings.database_url)
        return cls(SessionManager(engine), settings=settings, notifier=notifier)

    def _system_clock(self):
        return get_current_local(self.settings.timezone)

    async def initialize(self) -> None:
        """Create the scheduler tables if they do not exist."""
        await self.session_manager.initialize_database(Base.metadata)

    async def close(self) -> None:
        await self.session_manager.close_all_sessions()

    async def get_availability(self, practitioner_id: Any, date: Any) -> AvailabilityResult:
        """Slots of a veterinarian on a date; see AvailabilityResolver.resolve."""
        return await self.resolver.resolve(practitioner_id, date)

    async def request_appointment(
        self,
        actor: ActorContext,
        subject_id: Any,
        service_id: Any,
        practitioner_id: Any,
        date: Any,
        time: Any,
        reason_text: Optional[str],
        is_emergency: bool = False,
    ) -> AppointmentResponse:
        """Book an appointment; see AppointmentLifecycle.request."""
        return await self.lifecycle.request(
            actor,
            {
                "subject_id": subject_id,
                "service_id": service_id,
                "practitioner_id": practitioner_id,
                "date": date,
                "time": time,
                "reason_text": reason_text,
                "is_emergency": is_emergency,
            },
        )

    async def transition_appointment(
        self,
        actor: ActorContext,
        appointment_id: Any,
        event: EventLike,
        cancellation_reason: Optional[str] = None,
    ) -> AppointmentResponse:
        """Apply a lifecycle event; see AppointmentLifecycle.transition."""
        return await self.lifecycle.transition(
            actor, appointment_id, event, cancellation_reason=cancellation_reason
        )

    async def reschedule_appointment(
        self, actor: ActorContext, appointment_id: Any, date: Any, time: Any
    ) -> AppointmentResponse:
        """Move an appointment to another slot; see AppointmentLifecycle.reschedule."""
        return await self.lifecycle.reschedule(
            actor, appointment_id, {"date": date, "time": time}
        )

    async def list_appointments(
        self,
        actor: ActorContext,
        start_date: Any,
        end_date: Any,
        statuses: Optional[Iterable[Any]] = None,
    ) -> List[AgendaItem]:
        """
        Appointments of every veterinarian between two dates, inclusive.

        Raises:
            AuthorizationException: If the actor is not clinic staff
            ValidationException: If a date or status is malformed or the
                range is reversed
        """
        if not actor.is_staff:
            raise AuthorizationException(
                f"Role '{actor.role.value}' cannot list the clinic agenda",
                actor_role=actor.role.value,
                operation=LIST_OPERATION,
            )
        start_day, end_day = self._parse_range(start_date, end_date)
        if start_day is None or end_day is None:
            raise ValidationException(
                "Both ends of the date range are required", field="start_date"
            )
        entries = await self.ledger.list_between(
            start_day, end_day, parse_statuses(statuses)
        )
        return self._agenda(entries)

    async def list_practitioner_appointments(
        self,
        actor: ActorContext,
        practitioner_id: Any,
        start_date: Any = None,
        end_date: Any = None,
        statuses: Optional[Iterable[Any]] = None,
    ) -> List[AgendaItem]:
        """
        Appointments on one veterinarian's agenda.

        Raises:
            AuthorizationException: If the actor may not see the agenda
            NotFoundException: If the veterinarian does not exist
        """
        practitioner_id = coerce_uuid(practitioner_id, "practitioner_id")
        if not actor.has_role(*AGENDA_ROLES):
            raise AuthorizationException(
                f"Role '{actor.role.value}' cannot list a veterinarian's agenda",
                actor_role=actor.role.value,
                operation=LIST_OPERATION,
            )
        if actor.role == ActorRole.VETERINARIAN and actor.practitioner_id != practitioner_id:
            raise AuthorizationException(
                "Veterinarians can only list their own agenda",
                actor_role=actor.role.value,
                operation=LIST_OPERATION,
            )
        start_day, end_day = self._parse_range(start_date, end_date)

        async with self.session_manager.get_session() as session:
            if await session.get(Veterinarian, practitioner_id) is None:
                raise NotFoundException("Veterinarian", practitioner_id)
            entries = await self.ledger.list_between(
                start_day,
                end_day,
                parse_statuses(statuses),
                practitioner_id=practitioner_id,
                session=session,
            )
        return self._agenda(entries)

    async def list_subject_appointments(
        self, actor: ActorContext, subject_id: Any
    ) -> List[AgendaItem]:
        """
        Appointment history of a pet, oldest first.

        Raises:
            AuthorizationException: If an owner asks for someone else's pet
            NotFoundException: If the pet does not exist
        """
        subject_id = coerce_uuid(subject_id, "subject_id")
        async with self.session_manager.get_session() as session:
            pet = await session.get(Pet, subject_id)
            if pet is None:
                raise NotFoundException("Pet", subject_id)
            if actor.role == ActorRole.OWNER and not pet.is_owned_by(actor.user_id):
                raise AuthorizationException(
                    "Owners can only list appointments of their own pets",
                    actor_role=actor.role.value,
                    operation=LIST_OPERATION,
                )
            entries = await self.ledger.list_between(subject_id=subject_id, session=session)
        return self._agenda(entries)

    async def list_my_appointments(
        self,
        actor: ActorContext,
        start_date: Any = None,
        end_date: Any = None,
        statuses: Optional[Iterable[Any]] = None,
    ) -> List[AgendaItem]:
        """
        Appointments of the acting user.

        Owners get the appointments of all their pets, veterinarians their
        own agenda.

        Raises:
            AuthorizationException: For any other role
        """
        start_day, end_day = self._parse_range(start_date, end_date)
        parsed = parse_statuses(statuses)
        if actor.role == ActorRole.OWNER:
            entries = await self.ledger.list_between(
                start_day, end_day, parsed, owner_id=actor.user_id
            )
        elif actor.role == ActorRole.VETERINARIAN and actor.practitioner_id is not None:
            entries = await self.ledger.list_between(
                start_day, end_day, parsed, practitioner_id=actor.practitioner_id
            )
        else:
            raise AuthorizationException(
                f"Role '{actor.role.value}' has no appointments of its own",
                actor_role=actor.role.value,
                operation=LIST_OPERATION,
            )
        return self._agenda(entries)

    @staticmethod
    def _parse_range(start_date: Any, end_date: Any):
        start_day: Optional[Date] = None
        end_day: Optional[Date] = None
        if start_date is not None:
            start_day = coerce_with(parse_calendar_date, start_date, "start_date")
        if end_date is not None:
            end_day = coerce_with(parse_calendar_date, end_date, "end_date")
        if start_day is not None and end_day is not None and start_day > end_day:
            raise ValidationException(
                "Start date must not be after end date",
                field="end_date",
                value=end_day.isoformat(),
            )
        return start_day, end_day

    @staticmethod
    def _agenda(entries: List[LedgerEntry]) -> List[AgendaItem]:
        return [
            AgendaItem(
                appointment=AppointmentResponse.model_validate(entry.appointment),
                subject_name=entry.subject_name,
                owner_id=entry.owner_id,
                service_name=entry.service_name,
                practitioner_name=entry.practitioner_name,
            )
            for entry in entries
        ]

    async def list_upcoming_reminders(
        self, within_hours: Optional[int] = None
    ) -> List[AppointmentReminder]:
        """
        Live appointments starting within the reminder horizon.

        Args:
            within_hours: Horizon in hours; the configured reminder hours
                when omitted

        Raises:
            ValidationException: If the horizon is not positive
        """
        hours = self.settings.reminder_hours if within_hours is None else within_hours
        if hours <= 0:
            raise ValidationException(
                "Reminder horizon must be positive", field="within_hours", value=hours
            )

        now = self.clock()
        horizon = now + timedelta(hours=hours)
        entries = await self.ledger.list_between(now.date(), horizon.date(), REMINDER_STATUSES)

        reminders: List[AppointmentReminder] = []
        for entry in entries:
            appointment = entry.appointment
            starts_at = appointment.starts_at(self.settings.timezone)
            if not now < starts_at <= horizon:
                continue
            reminders.append(
                AppointmentReminder(
                    appointment_id=appointment.id,
                    subject_id=appointment.pet_id,
                    subject_name=entry.subject_name,
                    owner_id=entry.owner_id,
                    practitioner_id=appointment.veterinarian_id,
                    practitioner_name=entry.practitioner_name,
                    service_name=entry.service_name,
                    date=appointment.appointment_date,
                    time=appointment.appointment_time,
                    status=appointment.status,
                    starts_at=starts_at,
                )
            )

        logger.debug(f"{len(reminders)} appointments due within {hours}h")
        return reminders

    def start_booking(
        self, actor: ActorContext, display_seconds: Optional[float] = None
    ) -> BookingWorkflow:
        """Start a booking wizard for an actor."""
        if display_seconds is None:
            display_seconds = self.settings.confirmation_display_seconds
        return BookingWorkflow(self, actor, self.clock, display_seconds=display_seconds)
