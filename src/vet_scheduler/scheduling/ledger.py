"""
Appointment ledger.

The ledger is the authoritative store of booked appointments and the only
place where a slot is claimed. Claims are serialised per (veterinarian, date).
An asyncio lock shared by every ledger on the same database orders
cooperating coroutines. Write transactions start with BEGIN IMMEDIATE on
SQLite and lock the veterinarian row on PostgreSQL, so the overlap check
always reads under the write lock. A partial unique index on the live start
times is the last line of defence. Whatever the path, losing the race
surfaces as ConflictException.
"""

import asyncio
import logging
import uuid
import weakref
from datetime import date
from typing import Iterable, List, NamedTuple, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..database.session import SessionManager
from ..exceptions import ConflictException, NotFoundException
from ..models import (
    OCCUPYING_STATUSES,
    Appointment,
    AppointmentStatus,
    ClinicService,
    Pet,
    Veterinarian,
)

logger = logging.getLogger(__name__)

# Locks live only while a claim holds or waits on them
_CLAIM_LOCKS: "weakref.WeakValueDictionary[Tuple[str, uuid.UUID, date], asyncio.Lock]" = (
    weakref.WeakValueDictionary()
)


class LedgerEntry(NamedTuple):
    """An appointment together with the names shown to staff."""

    appointment: Appointment
    subject_name: str
    owner_id: uuid.UUID
    service_name: str
    practitioner_name: str


class AppointmentLedger:
    """Date- and practitioner-scoped access to booked appointments."""

    def __init__(self, session_manager: SessionManager):
        self.session_manager = session_manager
        self._database = str(session_manager.engine.url)

    def lock_for(self, practitioner_id: uuid.UUID, day: date) -> asyncio.Lock:
        """
        In-process lock guarding claims on one veterinarian's day.

        Ledgers bound to the same database share the lock, the caller must
        keep a reference for as long as it holds or waits on it.
        """
        key = (self._database, practitioner_id, day)
        lock = _CLAIM_LOCKS.get(key)
        if lock is None:
            lock = asyncio.Lock()
            _CLAIM_LOCKS[key] = lock
        return lock

    async def list_for_day(
        self,
        practitioner_id: uuid.UUID,
        day: date,
        session: Optional[AsyncSession] = None,
    ) -> List[LedgerEntry]:
        """Appointments still occupying the veterinarian's agenda on a date, by start time."""
        stmt = (
            self._entries()
            .where(
                Appointment.veterinarian_id == practitioner_id,
                Appointment.appointment_date == day,
                Appointment.status.in_(list(OCCUPYING_STATUSES)),
            )
            .order_by(Appointment.appointment_time, Appointment.created_at)
        )
        async with self.session_manager.use_session(session) as s:
            result = await s.execute(stmt)
            return [self._entry(row) for row in result.all()]

    async def list_between(
        self,
        start_day: Optional[date] = None,
        end_day: Optional[date] = None,
        statuses: Optional[Iterable[AppointmentStatus]] = None,
        practitioner_id: Optional[uuid.UUID] = None,
        subject_id: Optional[uuid.UUID] = None,
        owner_id: Optional[uuid.UUID] = None,
        session: Optional[AsyncSession] = None,
    ) -> List[LedgerEntry]:
        """
        Appointments dated from ``start_day`` to ``end_day`` inclusive.

        Every filter left as None is not applied. Results are ordered by
        date and start time.
        """
        conditions = []
        if start_day is not None:
            conditions.append(Appointment.appointment_date >= start_day)
        if end_day is not None:
            conditions.append(Appointment.appointment_date <= end_day)
        if statuses is not None:
            conditions.append(Appointment.status.in_(list(statuses)))
        if practitioner_id is not None:
            conditions.append(Appointment.veterinarian_id == practitioner_id)
        if subject_id is not None:
            conditions.append(Appointment.pet_id == subject_id)
        if owner_id is not None:
            conditions.append(Pet.owner_id == owner_id)

        stmt = (
            self._entries()
            .where(*conditions)
            .order_by(Appointment.appointment_date, Appointment.appointment_time)
        )
        async with self.session_manager.use_session(session) as s:
            result = await s.execute(stmt)
            return [self._entry(row) for row in result.all()]

    async def get(self, session: AsyncSession, appointment_id: uuid.UUID) -> Appointment:
        """
        Load an appointment for update within the caller's transaction.

        Raises:
            NotFoundException: If the appointment does not exist
        """
        stmt = (
            select(Appointment)
            .where(Appointment.id == appointment_id)
            .with_for_update()
        )
        appointment = (await session.execute(stmt)).scalar_one_or_none()
        if appointment is None:
            raise NotFoundException("Appointment", appointment_id)
        return appointment

    async def claim(self, session: AsyncSession, appointment: Appointment) -> Appointment:
        """
        Insert an appointment, or store a moved one, if its interval is still free.

        The appointment itself is left out of the overlap check, so a
        rescheduled appointment may move within its own interval. Must run
        inside a transaction; the caller commits.

        Raises:
            ConflictException: If a live appointment overlaps the interval
        """
        # A moved appointment must not be flushed before the check
        with session.no_autoflush:
            # Row lock on the veterinarian serialises concurrent claims for the
            # same agenda. SQLite ignores FOR UPDATE; the transaction already
            # holds the database write lock from BEGIN IMMEDIATE.
            await session.execute(
                select(Veterinarian.id)
                .where(Veterinarian.id == appointment.veterinarian_id)
                .with_for_update()
            )
            occupied = await session.execute(
                select(Appointment).where(
                    Appointment.veterinarian_id == appointment.veterinarian_id,
                    Appointment.appointment_date == appointment.appointment_date,
                    Appointment.status.in_(list(OCCUPYING_STATUSES)),
                    Appointment.id != appointment.id,
                )
            )
        for existing in occupied.scalars():
            if existing.overlaps(appointment.appointment_time, appointment.duration_minutes):
                logger.info(
                    f"Slot {appointment.appointment_date} {appointment.appointment_time} "
                    f"of veterinarian {appointment.veterinarian_id} already taken by {existing.id}"
                )
                raise ConflictException(
                    practitioner_id=appointment.veterinarian_id,
                    appointment_date=appointment.appointment_date,
                    appointment_time=appointment.appointment_time,
                    conflicting_appointment_id=existing.id,
                )

        session.add(appointment)
        try:
            await session.flush()
        except IntegrityError as e:
            logger.info(
                f"Unique slot index rejected appointment for veterinarian "
                f"{appointment.veterinarian_id} at {appointment.appointment_date} "
                f"{appointment.appointment_time}"
            )
            raise ConflictException(
                practitioner_id=appointment.veterinarian_id,
                appointment_date=appointment.appointment_date,
                appointment_time=appointment.appointment_time,
            ) from e
        return appointment

    @staticmethod
    def _entries():
        return (
            select(
                Appointment,
                Pet.name,
                Pet.owner_id,
                ClinicService.name,
                Veterinarian.first_name,
                Veterinarian.last_name,
            )
            .join(Pet, Pet.id == Appointment.pet_id)
            .join(ClinicService, ClinicService.id == Appointment.service_id)
            .join(Veterinarian, Veterinarian.id == Appointment.veterinarian_id)
        )

    @staticmethod
    def _entry(row) -> LedgerEntry:
        appointment, pet_name, owner_id, service_name, first_name, last_name = row
        return LedgerEntry(
            appointment=appointment,
            subject_name=pet_name,
            owner_id=owner_id,
            service_name=service_name,
            practitioner_name=f"Dr. {first_name} {last_name}".strip(),
        )
