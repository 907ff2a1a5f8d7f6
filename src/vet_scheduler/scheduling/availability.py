"""
Availability resolver.

Turns a veterinarian's weekly working windows and the appointments already
booked on a date into the ordered list of candidate slots for that date.

For each active window of the weekday, slot starts run from the window start
in steps of the slot duration while a whole slot still fits before the window
end. A slot is unavailable when its interval overlaps an appointment that
still occupies the agenda, or, on the current day, when it has already
started. Windows are visited in start-time order and the first window to
produce a start time owns it.

The resolver only reads; calling it twice without an intervening booking
gives the same result. Availability is a hint valid at read time, the ledger
re-checks when an appointment is requested.
"""

import logging
from datetime import date, datetime, time
from typing import Any, Callable, Iterable, List, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from ..database.session import SessionManager
from ..exceptions import NotFoundException
from ..models import Veterinarian, WorkingWindow
from ..schemas.availability import AvailabilityResult, OccupiedAppointment, SlotSchema
from ..schemas.working_window import WorkingWindowResponse
from ..utils.datetime_utils import (
    DayOfWeek,
    intervals_overlap,
    parse_calendar_date,
    time_interval,
)
from ..utils.validation import coerce_uuid, coerce_with
from .ledger import AppointmentLedger, LedgerEntry
from .schedule_store import WeeklyScheduleStore

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

OCCUPIED = "occupied"
PAST = "past"


def generate_slot_times(window: WorkingWindow) -> List[time]:
    """Slot start times of a window; a trailing partial slot is dropped."""
    return window.slot_starts()


def find_window_for(windows: Iterable[WorkingWindow], at: time) -> Optional[WorkingWindow]:
    """First window whose slot grid contains ``at``."""
    for window in windows:
        if window.is_on_grid(at):
            return window
    return None


class AvailabilityResolver:
    """Computes bookable slots for a veterinarian on a date."""

    def __init__(
        self,
        session_manager: SessionManager,
        schedule_store: WeeklyScheduleStore,
        ledger: AppointmentLedger,
        clock: Clock,
    ):
        self.session_manager = session_manager
        self.schedule_store = schedule_store
        self.ledger = ledger
        self.clock = clock

    async def resolve(
        self,
        practitioner_id: Any,
        on_date: Any,
        session: Optional[AsyncSession] = None,
    ) -> AvailabilityResult:
        """
        Resolve the slots of a veterinarian on a date.

        Args:
            practitioner_id: Veterinarian id, as UUID or string
            on_date: Calendar date, as ``date`` or ISO string

        Returns:
            AvailabilityResult; ``has_schedule`` is False when the
            veterinarian does not work that weekday

        Raises:
            ValidationException: If the id or the date is malformed
            NotFoundException: If the veterinarian does not exist
        """
        practitioner_id = coerce_uuid(practitioner_id, "practitioner_id")
        day = coerce_with(parse_calendar_date, on_date, "date")
        day_of_week = DayOfWeek.from_date(day)

        async with self.session_manager.use_session(session) as s:
            veterinarian = await s.get(Veterinarian, practitioner_id)
            if veterinarian is None:
                raise NotFoundException("Veterinarian", practitioner_id)

            windows: List[WorkingWindow] = []
            if veterinarian.is_active:
                windows = await self.schedule_store.get_windows(
                    practitioner_id, day_of_week, session=s
                )
            entries = await self.ledger.list_for_day(practitioner_id, day, session=s)

        slots = self._build_slots(windows, entries, day, self.clock())

        logger.debug(
            f"Resolved {len(slots)} slots for veterinarian {practitioner_id} on {day}"
        )
        return AvailabilityResult(
            practitioner_id=practitioner_id,
            practitioner_name=veterinarian.display_name,
            date=day,
            day_of_week=day_of_week,
            has_schedule=bool(windows),
            windows=[WorkingWindowResponse.model_validate(w) for w in windows],
            slots=slots,
            occupied_appointments=[
                OccupiedAppointment(
                    appointment_id=entry.appointment.id,
                    time=entry.appointment.appointment_time,
                    duration_minutes=entry.appointment.duration_minutes,
                    status=entry.appointment.status,
                    subject_name=entry.subject_name,
                    service_name=entry.service_name,
                )
                for entry in entries
            ],
        )

    @staticmethod
    def _build_slots(
        windows: Sequence[WorkingWindow],
        entries: Sequence[LedgerEntry],
        day: date,
        now: datetime,
    ) -> List[SlotSchema]:
        today = now.date()
        current_time = now.time().replace(tzinfo=None)

        slots: List[SlotSchema] = []
        seen = set()
        for window in windows:
            for start in generate_slot_times(window):
                if start in seen:
                    continue
                seen.add(start)

                interval = time_interval(start, window.slot_duration_minutes)
                blocking = next(
                    (
                        entry.appointment
                        for entry in entries
                        if intervals_overlap(interval, entry.appointment.interval)
                    ),
                    None,
                )

                if blocking is not None:
                    slots.append(
                        SlotSchema(
                            time=start,
                            available=False,
                            blocking_reason=OCCUPIED,
                            blocking_appointment_id=blocking.id,
                        )
                    )
                elif day == today and start < current_time:
                    slots.append(SlotSchema(time=start, available=False, blocking_reason=PAST))
                else:
                    slots.append(SlotSchema(time=start, available=True))

        slots.sort(key=lambda slot: slot.time)
        return slots
