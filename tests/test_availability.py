"""
Tests for the availability resolver.
"""

import uuid
from datetime import time, timedelta

import pytest

from vet_scheduler.exceptions import NotFoundException, ValidationException
from vet_scheduler.models import AppointmentStatus, VeterinarianStatus
from vet_scheduler.scheduling import find_window_for, generate_slot_times
from vet_scheduler.utils import DayOfWeek

from .conftest import (
    LAST_MONDAY,
    NEXT_MONDAY,
    TODAY,
    AppointmentFactory,
    ClinicServiceFactory,
    VeterinarianFactory,
    WorkingWindowFactory,
)

MONDAY_SLOTS = [
    time(8, 0),
    time(8, 30),
    time(9, 0),
    time(9, 30),
    time(10, 0),
    time(10, 30),
    time(11, 0),
    time(11, 30),
]


async def add_appointment(session_manager, clinic, **kwargs):
    async with session_manager.get_transaction() as session:
        return await AppointmentFactory.create(
            session,
            pet_id=clinic.pet.id,
            veterinarian_id=clinic.veterinarian.id,
            service_id=clinic.service.id,
            **kwargs,
        )


class TestSlotGeneration:
    """Slot grid of a single window."""

    def test_window_produces_whole_slots(self, clinic):
        assert generate_slot_times(clinic.window) == MONDAY_SLOTS

    def test_trailing_partial_slot_is_dropped(self):
        window = WorkingWindowFactory.build(
            uuid.uuid4(), start_time=time(8, 0), end_time=time(9, 40), slot_duration_minutes=30
        )

        assert generate_slot_times(window) == [time(8, 0), time(8, 30), time(9, 0)]
        assert window.last_slot_end() == time(9, 30)

    def test_find_window_for_uses_the_grid(self):
        morning = WorkingWindowFactory.build(uuid.uuid4())
        afternoon = WorkingWindowFactory.build(
            uuid.uuid4(), start_time=time(14, 0), end_time=time(17, 0), slot_duration_minutes=45
        )

        assert find_window_for([morning, afternoon], time(9, 30)) is morning
        assert find_window_for([morning, afternoon], time(14, 45)) is afternoon
        assert find_window_for([morning, afternoon], time(9, 15)) is None
        assert find_window_for([morning, afternoon], time(16, 15)) is None


class TestResolveAvailability:
    """AvailabilityResolver.resolve through the scheduling service."""

    async def test_booked_slot_is_occupied(self, scheduling_service, session_manager, clinic):
        booked = await add_appointment(session_manager, clinic, appointment_time=time(9, 0))

        result = await scheduling_service.get_availability(clinic.veterinarian.id, NEXT_MONDAY)

        assert result.has_schedule is True
        assert result.day_of_week == DayOfWeek.MONDAY
        assert [slot.time for slot in result.slots] == MONDAY_SLOTS

        nine = result.find_slot("09:00")
        assert nine.available is False
        assert nine.blocking_reason == "occupied"
        assert nine.blocking_appointment_id == booked.id
        assert [slot.time for slot in result.available_slots] == [
            t for t in MONDAY_SLOTS if t != time(9, 0)
        ]

    async def test_occupied_appointments_are_listed(
        self, scheduling_service, session_manager, clinic
    ):
        await add_appointment(session_manager, clinic, appointment_time=time(10, 30))

        result = await scheduling_service.get_availability(clinic.veterinarian.id, NEXT_MONDAY)

        assert len(result.occupied_appointments) == 1
        occupied = result.occupied_appointments[0]
        assert occupied.time == time(10, 30)
        assert occupied.subject_name == "Rex"
        assert occupied.service_name == "Consultation"
        assert occupied.status == AppointmentStatus.REQUESTED
        assert result.practitioner_name == "Dr. Ana Silva"

    async def test_longer_service_blocks_every_overlapping_slot(
        self, scheduling_service, session_manager, clinic
    ):
        await add_appointment(
            session_manager, clinic, appointment_time=time(9, 0), duration_minutes=60
        )

        result = await scheduling_service.get_availability(clinic.veterinarian.id, NEXT_MONDAY)

        assert result.find_slot("09:00").blocking_reason == "occupied"
        assert result.find_slot("09:30").blocking_reason == "occupied"
        assert result.is_available("10:00")
        assert result.is_available("08:30")

    async def test_cancelled_appointment_frees_the_slot(
        self, scheduling_service, session_manager, clinic
    ):
        await add_appointment(
            session_manager,
            clinic,
            appointment_time=time(9, 0),
            status=AppointmentStatus.CANCELLED,
        )

        result = await scheduling_service.get_availability(clinic.veterinarian.id, NEXT_MONDAY)

        assert result.is_available("09:00")
        assert result.occupied_appointments == []

    async def test_no_show_keeps_the_slot_occupied(
        self, scheduling_service, session_manager, clinic
    ):
        await add_appointment(
            session_manager,
            clinic,
            appointment_time=time(9, 0),
            status=AppointmentStatus.NO_SHOW,
        )

        result = await scheduling_service.get_availability(clinic.veterinarian.id, NEXT_MONDAY)

        assert result.find_slot("09:00").blocking_reason == "occupied"

    async def test_day_without_windows(self, scheduling_service, clinic):
        tuesday = NEXT_MONDAY + timedelta(days=1)

        result = await scheduling_service.get_availability(clinic.veterinarian.id, tuesday)

        assert result.has_schedule is False
        assert result.slots == []
        assert result.windows == []

    async def test_inactive_window_produces_no_slots(
        self, scheduling_service, session_manager, clinic
    ):
        await scheduling_service.schedule_store.deactivate_window(clinic.window.id)

        result = await scheduling_service.get_availability(clinic.veterinarian.id, NEXT_MONDAY)

        assert result.has_schedule is False
        assert result.slots == []

    async def test_inactive_veterinarian_has_no_schedule(self, scheduling_service, session_manager):
        async with session_manager.get_transaction() as session:
            veterinarian = await VeterinarianFactory.create(
                session, status=VeterinarianStatus.ON_LEAVE
            )
            await WorkingWindowFactory.create(session, veterinarian.id)

        result = await scheduling_service.get_availability(veterinarian.id, NEXT_MONDAY)

        assert result.has_schedule is False
        assert result.slots == []

    async def test_overlapping_windows_do_not_duplicate_slots(
        self, scheduling_service, session_manager, clinic
    ):
        async with session_manager.get_transaction() as session:
            await WorkingWindowFactory.create(
                session,
                clinic.veterinarian.id,
                start_time=time(11, 0),
                end_time=time(13, 0),
            )

        result = await scheduling_service.get_availability(clinic.veterinarian.id, NEXT_MONDAY)
        times = [slot.time for slot in result.slots]

        assert times == MONDAY_SLOTS + [time(12, 0), time(12, 30)]
        assert len(times) == len(set(times))
        assert len(result.windows) == 2

    async def test_windows_with_different_grids_are_merged_in_order(
        self, scheduling_service, session_manager, clinic
    ):
        async with session_manager.get_transaction() as session:
            await WorkingWindowFactory.create(
                session,
                clinic.veterinarian.id,
                start_time=time(14, 0),
                end_time=time(15, 30),
                slot_duration_minutes=45,
            )

        result = await scheduling_service.get_availability(clinic.veterinarian.id, NEXT_MONDAY)

        assert [slot.time for slot in result.slots][-2:] == [time(14, 0), time(14, 45)]

    async def test_started_slots_of_today_are_past(
        self, scheduling_service, session_manager, clinic
    ):
        async with session_manager.get_transaction() as session:
            await WorkingWindowFactory.create(
                session, clinic.veterinarian.id, day_of_week=DayOfWeek.from_date(TODAY)
            )

        result = await scheduling_service.get_availability(clinic.veterinarian.id, TODAY)

        past = [slot.time for slot in result.slots if slot.blocking_reason == "past"]
        assert past == [time(8, 0), time(8, 30), time(9, 0), time(9, 30)]
        assert result.is_available("10:00")
        assert result.is_available("11:30")

    async def test_earlier_dates_are_not_filtered(self, scheduling_service, clinic):
        result = await scheduling_service.get_availability(clinic.veterinarian.id, LAST_MONDAY)

        assert result.has_schedule is True
        assert result.find_slot("08:00").available is True
        assert len(result.available_slots) == 8
        assert all(slot.blocking_reason is None for slot in result.slots)

    async def test_occupied_takes_precedence_over_past(
        self, scheduling_service, session_manager, clinic
    ):
        async with session_manager.get_transaction() as session:
            await WorkingWindowFactory.create(
                session, clinic.veterinarian.id, day_of_week=DayOfWeek.from_date(TODAY)
            )
        booked = await add_appointment(
            session_manager,
            clinic,
            appointment_date=TODAY,
            appointment_time=time(9, 0),
            status=AppointmentStatus.COMPLETED,
        )

        result = await scheduling_service.get_availability(clinic.veterinarian.id, TODAY)

        nine = result.find_slot("09:00")
        assert nine.blocking_reason == "occupied"
        assert nine.blocking_appointment_id == booked.id
        assert result.find_slot("08:30").blocking_reason == "past"

    async def test_occupied_on_earlier_date_is_still_reported(
        self, scheduling_service, session_manager, clinic
    ):
        await add_appointment(
            session_manager,
            clinic,
            appointment_date=LAST_MONDAY,
            appointment_time=time(9, 0),
            status=AppointmentStatus.COMPLETED,
        )

        result = await scheduling_service.get_availability(clinic.veterinarian.id, LAST_MONDAY)

        assert result.find_slot("09:00").blocking_reason == "occupied"
        assert result.find_slot("08:30").available is True

    async def test_other_veterinarians_do_not_block(
        self, scheduling_service, session_manager, clinic
    ):
        async with session_manager.get_transaction() as session:
            other = await VeterinarianFactory.create(session)
            service = await ClinicServiceFactory.create(session)
            await AppointmentFactory.create(
                session,
                pet_id=clinic.pet.id,
                veterinarian_id=other.id,
                service_id=service.id,
                appointment_time=time(9, 0),
            )

        result = await scheduling_service.get_availability(clinic.veterinarian.id, NEXT_MONDAY)

        assert result.is_available("09:00")

    async def test_resolving_twice_gives_the_same_result(
        self, scheduling_service, session_manager, clinic
    ):
        await add_appointment(session_manager, clinic, appointment_time=time(11, 0))

        first = await scheduling_service.get_availability(clinic.veterinarian.id, NEXT_MONDAY)
        second = await scheduling_service.get_availability(
            str(clinic.veterinarian.id), NEXT_MONDAY.isoformat()
        )

        assert first == second

    async def test_serialized_times_use_canonical_form(self, scheduling_service, clinic):
        result = await scheduling_service.get_availability(clinic.veterinarian.id, NEXT_MONDAY)

        data = result.model_dump(mode="json")
        assert data["slots"][0]["time"] == "08:00:00"
        assert data["day_of_week"] == "MONDAY"
        assert data["windows"][0]["start_time"] == "08:00:00"

    async def test_unknown_veterinarian(self, scheduling_service, clinic):
        with pytest.raises(NotFoundException) as exc_info:
            await scheduling_service.get_availability(uuid.uuid4(), NEXT_MONDAY)

        assert exc_info.value.entity == "Veterinarian"

    @pytest.mark.parametrize("bad_date", ["2024-13-45", "next monday", ""])
    async def test_malformed_date(self, scheduling_service, clinic, bad_date):
        with pytest.raises(ValidationException) as exc_info:
            await scheduling_service.get_availability(clinic.veterinarian.id, bad_date)

        assert exc_info.value.field == "date"

    async def test_malformed_practitioner_id(self, scheduling_service, clinic):
        with pytest.raises(ValidationException):
            await scheduling_service.get_availability("not-a-uuid", NEXT_MONDAY)
