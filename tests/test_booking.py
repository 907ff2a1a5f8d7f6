"""
Tests for the booking workflow state machine.
"""

from datetime import time, timedelta

import pytest

from vet_scheduler.exceptions import ValidationException
from vet_scheduler.models import AppointmentStatus
from vet_scheduler.scheduling import (
    BookingState,
    BookingStep,
    advance,
    build_request,
    go_back,
    is_slot_selected,
    select,
    should_reset,
)

from .conftest import FIXED_NOW, NEXT_MONDAY


def state_at_schedule(clinic) -> BookingState:
    state = select(BookingState(), subject_id=clinic.pet.id)
    state = advance(state)
    state = select(state, service_id=clinic.service.id, service_name=clinic.service.name)
    return advance(state)


class TestPureTransitions:
    """select, advance and go_back on immutable states."""

    def test_initial_state(self):
        state = BookingState()

        assert state.step == BookingStep.SUBJECT
        assert state.selections.subject_id is None
        assert state.availability is None

    def test_cannot_advance_without_a_pet(self):
        with pytest.raises(ValidationException) as exc_info:
            advance(BookingState())

        assert exc_info.value.field == "subject_id"

    def test_steps_follow_each_other(self, clinic):
        state = state_at_schedule(clinic)

        assert state.step == BookingStep.SCHEDULE
        assert state.selections.subject_id == clinic.pet.id
        assert state.selections.service_name == "Consultation"

    def test_select_accepts_string_forms(self, clinic):
        state = select(
            BookingState(),
            subject_id=str(clinic.pet.id),
            date=NEXT_MONDAY.isoformat(),
            time="9:00",
        )

        assert state.selections.subject_id == clinic.pet.id
        assert state.selections.date == NEXT_MONDAY
        assert state.selections.time == time(9, 0)

    def test_select_rejects_unknown_fields(self):
        with pytest.raises(ValidationException):
            select(BookingState(), colour="blue")

    def test_select_rejects_malformed_values(self):
        with pytest.raises(ValidationException):
            select(BookingState(), date="yesterday")

    def test_changing_date_clears_time(self, clinic):
        state = select(
            state_at_schedule(clinic),
            practitioner_id=clinic.veterinarian.id,
            date=NEXT_MONDAY,
            time="09:00",
        )

        moved = select(state, date=NEXT_MONDAY + timedelta(days=7))

        assert moved.selections.time is None
        assert moved.availability is None

    def test_reselecting_same_date_keeps_time(self, clinic):
        state = select(
            state_at_schedule(clinic),
            practitioner_id=clinic.veterinarian.id,
            date=NEXT_MONDAY,
            time="09:00",
        )

        same = select(state, date=NEXT_MONDAY.isoformat())

        assert same.selections.time == time(9, 0)

    def test_changing_service_drops_its_name(self, clinic):
        state = state_at_schedule(clinic)

        changed = select(state, service_id=clinic.pet.id)

        assert changed.selections.service_name is None

    def test_go_back_keeps_choices(self, clinic):
        state = state_at_schedule(clinic)

        back = go_back(state)

        assert back.step == BookingStep.SERVICE
        assert back.selections == state.selections
        assert go_back(go_back(back)).step == BookingStep.SUBJECT

    def test_slot_selection_compares_canonical_times(self, clinic):
        state = select(BookingState(), time="09:00:00")

        assert is_slot_selected(state, "09:00")
        assert is_slot_selected(state, "9:00 AM")
        assert not is_slot_selected(state, "09:30")
        assert not is_slot_selected(BookingState(), "09:00")

    def test_build_request_defaults_the_reason(self, clinic):
        state = state_at_schedule(clinic)

        assert build_request(state)["reason_text"] == "Appointment for Consultation"

        state = select(state, service_id=clinic.service.id, service_name=None)
        assert build_request(state)["reason_text"] == "Appointment for the selected service"

        state = select(state, reason_text="  Limping on the left leg ")
        assert build_request(state)["reason_text"] == "Limping on the left leg"

    def test_should_reset_only_after_display_interval(self):
        state = BookingState(step=BookingStep.DONE, completed_at=FIXED_NOW)

        assert not should_reset(state, FIXED_NOW + timedelta(seconds=4), display_seconds=5)
        assert should_reset(state, FIXED_NOW + timedelta(seconds=5), display_seconds=5)
        assert not should_reset(BookingState(), FIXED_NOW + timedelta(hours=1))


class TestBookingWorkflow:
    """BookingWorkflow against the scheduling service."""

    async def prepare(self, scheduling_service, clinic, at="09:00"):
        workflow = scheduling_service.start_booking(clinic.owner)
        workflow.select(subject_id=clinic.pet.id)
        workflow.advance()
        workflow.select(service_id=clinic.service.id, service_name=clinic.service.name)
        workflow.advance()
        workflow.select(practitioner_id=clinic.veterinarian.id, date=NEXT_MONDAY)
        await workflow.load_availability()
        workflow.select(time=at)
        return workflow

    async def test_happy_path(self, scheduling_service, clinic, clock, notifier):
        workflow = await self.prepare(scheduling_service, clinic)

        assert workflow.is_slot_selected("09:00")
        workflow.advance()
        assert workflow.step == BookingStep.CONFIRMATION

        state = await workflow.submit()

        assert state.step == BookingStep.DONE
        assert state.error is None
        assert state.appointment.status == AppointmentStatus.REQUESTED
        assert state.appointment.reason == "Appointment for Consultation"
        assert state.completed_at == clock()
        assert notifier.templates == ["appointment_requested"]

    async def test_resets_after_display_interval(self, scheduling_service, clinic, clock):
        workflow = await self.prepare(scheduling_service, clinic)
        workflow.advance()
        await workflow.submit()

        clock.advance(seconds=2)
        assert workflow.tick() is False
        assert workflow.step == BookingStep.DONE

        clock.advance(seconds=3)
        assert workflow.tick() is True
        assert workflow.state == BookingState()

    async def test_unavailable_slot_cannot_be_confirmed(
        self, scheduling_service, clinic
    ):
        await scheduling_service.request_appointment(clinic.receptionist, **clinic.booking())
        workflow = await self.prepare(scheduling_service, clinic)

        with pytest.raises(ValidationException) as exc_info:
            workflow.advance()

        assert exc_info.value.field == "time"
        assert workflow.step == BookingStep.SCHEDULE

    async def test_schedule_needs_loaded_availability(self, scheduling_service, clinic):
        workflow = await self.prepare(scheduling_service, clinic)
        workflow.select(date=NEXT_MONDAY + timedelta(days=7), time="09:00")

        with pytest.raises(ValidationException) as exc_info:
            workflow.advance()

        assert exc_info.value.field == "availability"

    async def test_slot_taken_before_submit_returns_to_schedule(
        self, scheduling_service, clinic
    ):
        workflow = await self.prepare(scheduling_service, clinic)
        workflow.advance()
        taken = await scheduling_service.request_appointment(
            clinic.receptionist, **clinic.booking()
        )

        state = await workflow.submit()

        assert state.step == BookingStep.SCHEDULE
        assert state.selections.time is None
        assert state.error is not None
        assert state.availability.find_slot("09:00").blocking_appointment_id == taken.id
        assert state.selections.subject_id == clinic.pet.id

    async def test_other_failures_stay_on_confirmation(self, scheduling_service, clinic):
        workflow = await self.prepare(scheduling_service, clinic)
        workflow.select(reason_text="hi")
        workflow.advance()

        state = await workflow.submit()

        assert state.step == BookingStep.CONFIRMATION
        assert "at least" in state.error
        assert state.appointment is None

    async def test_changing_date_on_confirmation_returns_to_schedule(
        self, scheduling_service, clinic
    ):
        workflow = await self.prepare(scheduling_service, clinic)
        workflow.advance()

        state = workflow.select(date=NEXT_MONDAY + timedelta(days=7))

        assert state.step == BookingStep.SCHEDULE
        assert state.selections.time is None
        assert state.availability is None
        with pytest.raises(ValidationException):
            await workflow.submit()

        await workflow.load_availability()
        workflow.select(time="10:00")
        workflow.advance()
        submitted = await workflow.submit()

        assert submitted.step == BookingStep.DONE
        assert submitted.appointment.appointment_date == NEXT_MONDAY + timedelta(days=7)

    async def test_changing_time_on_confirmation_is_checked_again(
        self, scheduling_service, clinic
    ):
        workflow = await self.prepare(scheduling_service, clinic)
        workflow.advance()

        state = workflow.select(time="10:30")

        assert state.step == BookingStep.SCHEDULE
        assert state.availability is not None
        assert workflow.advance().step == BookingStep.CONFIRMATION

    async def test_reason_change_on_confirmation_keeps_the_step(
        self, scheduling_service, clinic
    ):
        workflow = await self.prepare(scheduling_service, clinic)
        workflow.advance()

        state = workflow.select(reason_text="Limping on the left leg")

        assert state.step == BookingStep.CONFIRMATION

    async def test_submit_requires_confirmation_step(self, scheduling_service, clinic):
        workflow = await self.prepare(scheduling_service, clinic)

        with pytest.raises(ValidationException):
            await workflow.submit()

    async def test_done_booking_is_read_only(self, scheduling_service, clinic):
        workflow = await self.prepare(scheduling_service, clinic)
        workflow.advance()
        await workflow.submit()

        with pytest.raises(ValidationException):
            workflow.select(time="10:00")
        with pytest.raises(ValidationException):
            workflow.advance()

        assert workflow.go_back() == BookingState()

    async def test_dismiss_starts_over(self, scheduling_service, clinic):
        workflow = await self.prepare(scheduling_service, clinic)

        assert workflow.dismiss() == BookingState()
        assert workflow.step == BookingStep.SUBJECT
