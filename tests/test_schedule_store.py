"""
Tests for the weekly schedule store.
"""

import uuid
from datetime import time

import pytest

from vet_scheduler.exceptions import (
    BusinessRuleException,
    NotFoundException,
    SchemaValidationException,
)
from vet_scheduler.utils import DayOfWeek

from .conftest import NEXT_MONDAY


@pytest.fixture
def store(scheduling_service):
    return scheduling_service.schedule_store


class TestCreateWindow:
    """WeeklyScheduleStore.create_window."""

    async def test_create_window(self, store, clinic):
        window = await store.create_window(
            {
                "veterinarian_id": str(clinic.veterinarian.id),
                "day_of_week": "tuesday",
                "start_time": "14:00",
                "end_time": "18:00",
                "slot_duration_minutes": 20,
                "notes": "Afternoon clinic",
            }
        )

        assert window.day_of_week == DayOfWeek.TUESDAY
        assert window.start_time == time(14, 0)
        assert window.capacity == 12
        assert window.is_active is True
        assert window.model_dump(mode="json")["end_time"] == "18:00:00"

    async def test_new_window_is_used_for_availability(self, store, scheduling_service, clinic):
        await store.create_window(
            {
                "veterinarian_id": clinic.veterinarian.id,
                "day_of_week": DayOfWeek.MONDAY,
                "start_time": "14:00",
                "end_time": "15:00",
            }
        )

        result = await scheduling_service.get_availability(clinic.veterinarian.id, NEXT_MONDAY)

        assert result.is_available("14:00")
        assert result.is_available("14:30")
        assert len(result.slots) == 10

    async def test_overlapping_window_is_rejected(self, store, clinic):
        with pytest.raises(BusinessRuleException) as exc_info:
            await store.create_window(
                {
                    "veterinarian_id": clinic.veterinarian.id,
                    "day_of_week": "MONDAY",
                    "start_time": "11:00",
                    "end_time": "13:00",
                }
            )

        assert exc_info.value.rule_name == "working_windows_do_not_overlap"

    async def test_touching_windows_are_allowed(self, store, clinic):
        window = await store.create_window(
            {
                "veterinarian_id": clinic.veterinarian.id,
                "day_of_week": 0,
                "start_time": "12:00",
                "end_time": "13:00",
            }
        )

        assert window.start_time == time(12, 0)

    @pytest.mark.parametrize(
        "overrides",
        [
            {"start_time": "12:00", "end_time": "09:00"},
            {"start_time": "09:00", "end_time": "09:20"},
            {"slot_duration_minutes": 5},
            {"day_of_week": "someday"},
            {"start_time": "nine"},
        ],
    )
    async def test_malformed_window(self, store, clinic, overrides):
        data = {
            "veterinarian_id": clinic.veterinarian.id,
            "day_of_week": "FRIDAY",
            "start_time": "08:00",
            "end_time": "12:00",
        }
        data.update(overrides)

        with pytest.raises(SchemaValidationException):
            await store.create_window(data)

    async def test_unknown_veterinarian(self, store, clinic):
        with pytest.raises(NotFoundException):
            await store.create_window(
                {
                    "veterinarian_id": uuid.uuid4(),
                    "day_of_week": "FRIDAY",
                    "start_time": "08:00",
                    "end_time": "12:00",
                }
            )


class TestManageWindows:
    """Updating, listing and (de)activating windows."""

    async def test_update_window(self, store, clinic):
        updated = await store.update_window(
            clinic.window.id, {"end_time": "13:00", "slot_duration_minutes": 60}
        )

        assert updated.start_time == time(8, 0)
        assert updated.end_time == time(13, 0)
        assert updated.capacity == 5

    async def test_update_is_validated_as_a_whole(self, store, clinic):
        with pytest.raises(SchemaValidationException):
            await store.update_window(clinic.window.id, {"end_time": "07:00"})

    async def test_update_cannot_create_overlap(self, store, clinic):
        await store.create_window(
            {
                "veterinarian_id": clinic.veterinarian.id,
                "day_of_week": "TUESDAY",
                "start_time": "09:00",
                "end_time": "11:00",
            }
        )

        with pytest.raises(BusinessRuleException):
            await store.update_window(clinic.window.id, {"day_of_week": "TUESDAY"})

    async def test_list_windows(self, store, clinic):
        await store.create_window(
            {
                "veterinarian_id": clinic.veterinarian.id,
                "day_of_week": "SUNDAY",
                "start_time": "10:00",
                "end_time": "12:00",
                "is_active": False,
            }
        )
        await store.create_window(
            {
                "veterinarian_id": clinic.veterinarian.id,
                "day_of_week": "WEDNESDAY",
                "start_time": "10:00",
                "end_time": "12:00",
            }
        )

        all_windows = await store.list_windows(clinic.veterinarian.id)
        active = await store.list_windows(clinic.veterinarian.id, include_inactive=False)

        assert [w.day_of_week for w in all_windows] == [
            DayOfWeek.MONDAY,
            DayOfWeek.WEDNESDAY,
            DayOfWeek.SUNDAY,
        ]
        assert [w.day_of_week for w in active] == [DayOfWeek.MONDAY, DayOfWeek.WEDNESDAY]

    async def test_deactivate_and_activate(self, store, scheduling_service, clinic):
        deactivated = await store.deactivate_window(clinic.window.id)
        assert deactivated.is_active is False

        activated = await store.activate_window(clinic.window.id)
        assert activated.is_active is True

        result = await scheduling_service.get_availability(clinic.veterinarian.id, NEXT_MONDAY)
        assert result.has_schedule is True

    async def test_activation_cannot_create_overlap(self, store, clinic):
        await store.deactivate_window(clinic.window.id)
        await store.create_window(
            {
                "veterinarian_id": clinic.veterinarian.id,
                "day_of_week": "MONDAY",
                "start_time": "09:00",
                "end_time": "10:00",
            }
        )

        with pytest.raises(BusinessRuleException):
            await store.activate_window(clinic.window.id)

    async def test_unknown_window(self, store, clinic):
        with pytest.raises(NotFoundException):
            await store.deactivate_window(uuid.uuid4())
