"""
Pytest configuration and fixtures for vet-scheduler testing.

This module provides a throwaway SQLite database per test, factory classes
for the scheduling entities, a controllable clock and fake notifiers.
"""

import uuid
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Any, AsyncGenerator, Dict, List, Optional
from zoneinfo import ZoneInfo

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession

from vet_scheduler.database import SessionManager, create_engine
from vet_scheduler.models import (
    Appointment,
    AppointmentStatus,
    Base,
    ClinicService,
    Pet,
    Veterinarian,
    WorkingWindow,
)
from vet_scheduler.scheduling import ActorContext, ActorRole, SchedulingService
from vet_scheduler.utils import DayOfWeek, SchedulerSettings

# Wednesday 2024-06-05 10:00 in the clinic timezone
FIXED_NOW = datetime(2024, 6, 5, 10, 0, tzinfo=ZoneInfo("UTC"))
TODAY = FIXED_NOW.date()
NEXT_MONDAY = date(2024, 6, 10)
LAST_MONDAY = date(2024, 6, 3)


class FakeClock:
    """Clock returning a settable, timezone-aware 'now'."""

    def __init__(self, now: datetime = FIXED_NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: Any) -> None:
        self.now = self.now + timedelta(**kwargs)


class RecordingNotifier:
    """Notifier that keeps every message it is asked to deliver."""

    def __init__(self) -> None:
        self.sent: List[Dict[str, Any]] = []

    async def notify(self, subject_id, channel, template_id, payload) -> None:
        self.sent.append(
            {
                "subject_id": subject_id,
                "channel": channel,
                "template_id": template_id,
                "payload": dict(payload),
            }
        )

    @property
    def templates(self) -> List[str]:
        return [message["template_id"] for message in self.sent]


class FailingNotifier:
    """Notifier whose delivery always fails."""

    def __init__(self) -> None:
        self.attempts = 0

    async def notify(self, subject_id, channel, template_id, payload) -> None:
        self.attempts += 1
        raise RuntimeError("notification gateway unavailable")


@pytest_asyncio.fixture
async def session_manager(tmp_path) -> AsyncGenerator[SessionManager, None]:
    """
    Provide a session manager bound to a fresh SQLite database.

    A file database is used so that concurrent sessions see each other's
    commits.
    """
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'scheduler.db'}")
    manager = SessionManager(engine)
    await manager.initialize_database(Base.metadata)

    yield manager

    await manager.close_all_sessions()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def settings() -> SchedulerSettings:
    return SchedulerSettings(timezone="UTC")


@pytest.fixture
def scheduling_service(session_manager, settings, notifier, clock) -> SchedulingService:
    """Scheduling service wired to the test database, clock and notifier."""
    return SchedulingService(session_manager, settings=settings, notifier=notifier, clock=clock)


# Factory classes for creating test entities
class VeterinarianFactory:
    """Factory for creating test Veterinarian instances."""

    @staticmethod
    def build(**kwargs) -> Veterinarian:
        defaults = {
            "user_id": uuid.uuid4(),
            "first_name": "Ana",
            "last_name": f"Silva{uuid.uuid4().hex[:4]}",
        }
        defaults.update(kwargs)
        return Veterinarian(**defaults)

    @staticmethod
    async def create(session: AsyncSession, **kwargs) -> Veterinarian:
        """Create and save a Veterinarian instance to the database."""
        veterinarian = VeterinarianFactory.build(**kwargs)
        session.add(veterinarian)
        await session.flush()
        return veterinarian


class PetFactory:
    """Factory for creating test Pet instances."""

    @staticmethod
    def build(owner_id: Optional[uuid.UUID] = None, **kwargs) -> Pet:
        defaults = {
            "owner_id": owner_id or uuid.uuid4(),
            "name": "Rex",
            "species": "dog",
        }
        defaults.update(kwargs)
        return Pet(**defaults)

    @staticmethod
    async def create(session: AsyncSession, **kwargs) -> Pet:
        """Create and save a Pet instance to the database."""
        pet = PetFactory.build(**kwargs)
        session.add(pet)
        await session.flush()
        return pet


class ClinicServiceFactory:
    """Factory for creating test ClinicService instances."""

    @staticmethod
    def build(**kwargs) -> ClinicService:
        defaults = {
            "name": f"Consultation {uuid.uuid4().hex[:6]}",
            "description": "General consultation",
        }
        defaults.update(kwargs)
        return ClinicService(**defaults)

    @staticmethod
    async def create(session: AsyncSession, **kwargs) -> ClinicService:
        """Create and save a ClinicService instance to the database."""
        service = ClinicServiceFactory.build(**kwargs)
        session.add(service)
        await session.flush()
        return service


class WorkingWindowFactory:
    """Factory for creating test WorkingWindow instances."""

    @staticmethod
    def build(veterinarian_id: uuid.UUID, **kwargs) -> WorkingWindow:
        defaults = {
            "veterinarian_id": veterinarian_id,
            "day_of_week": DayOfWeek.MONDAY,
            "start_time": time(8, 0),
            "end_time": time(12, 0),
            "slot_duration_minutes": 30,
        }
        defaults.update(kwargs)
        return WorkingWindow(**defaults)

    @staticmethod
    async def create(session: AsyncSession, veterinarian_id: uuid.UUID, **kwargs) -> WorkingWindow:
        """Create and save a WorkingWindow instance to the database."""
        window = WorkingWindowFactory.build(veterinarian_id, **kwargs)
        session.add(window)
        await session.flush()
        return window


class AppointmentFactory:
    """Factory for creating test Appointment instances."""

    @staticmethod
    def build(
        pet_id: uuid.UUID,
        veterinarian_id: uuid.UUID,
        service_id: uuid.UUID,
        **kwargs,
    ) -> Appointment:
        defaults = {
            "pet_id": pet_id,
            "veterinarian_id": veterinarian_id,
            "service_id": service_id,
            "appointment_date": NEXT_MONDAY,
            "appointment_time": time(9, 0),
            "duration_minutes": 30,
            "status": AppointmentStatus.REQUESTED,
            "reason": "Routine check-up",
        }
        defaults.update(kwargs)
        if defaults["status"] == AppointmentStatus.CANCELLED:
            defaults.setdefault("cancellation_reason", "Owner called to cancel")
        return Appointment(**defaults)

    @staticmethod
    async def create(session: AsyncSession, **kwargs) -> Appointment:
        """Create and save an Appointment instance to the database."""
        appointment = AppointmentFactory.build(**kwargs)
        session.add(appointment)
        await session.flush()
        return appointment


@dataclass
class ClinicScenario:
    """
    A veterinarian working Mondays 08:00-12:00 in 30 minute slots, one owner
    with one pet and one bookable service.
    """

    veterinarian: Veterinarian
    window: WorkingWindow
    pet: Pet
    service: ClinicService
    owner_id: uuid.UUID
    vet_user_id: uuid.UUID

    @property
    def owner(self) -> ActorContext:
        return ActorContext.owner(self.owner_id)

    @property
    def vet(self) -> ActorContext:
        return ActorContext.veterinarian(self.vet_user_id, self.veterinarian.id)

    @property
    def receptionist(self) -> ActorContext:
        return ActorContext(user_id=uuid.uuid4(), role=ActorRole.RECEPTIONIST)

    @property
    def auxiliary(self) -> ActorContext:
        return ActorContext(user_id=uuid.uuid4(), role=ActorRole.AUXILIARY)

    @property
    def administrator(self) -> ActorContext:
        return ActorContext(user_id=uuid.uuid4(), role=ActorRole.ADMINISTRATOR)

    def booking(self, **overrides: Any) -> Dict[str, Any]:
        """Keyword arguments for SchedulingService.request_appointment."""
        arguments = {
            "subject_id": self.pet.id,
            "service_id": self.service.id,
            "practitioner_id": self.veterinarian.id,
            "date": NEXT_MONDAY,
            "time": "09:00",
            "reason_text": "Annual vaccination",
        }
        arguments.update(overrides)
        return arguments


@pytest_asyncio.fixture
async def clinic(session_manager: SessionManager) -> ClinicScenario:
    """Seed the standard scenario used by most scheduling tests."""
    owner_id = uuid.uuid4()
    vet_user_id = uuid.uuid4()
    async with session_manager.get_transaction() as session:
        veterinarian = await VeterinarianFactory.create(
            session, user_id=vet_user_id, first_name="Ana", last_name="Silva"
        )
        window = await WorkingWindowFactory.create(session, veterinarian.id)
        pet = await PetFactory.create(session, owner_id=owner_id, name="Rex")
        service = await ClinicServiceFactory.create(session, name="Consultation")

    return ClinicScenario(
        veterinarian=veterinarian,
        window=window,
        pet=pet,
        service=service,
        owner_id=owner_id,
        vet_user_id=vet_user_id,
    )
