"""
Weekly schedule store.

Stores the recurring working windows of each veterinarian. The availability
resolver reads active windows per day; staff manage windows through the
create, update, activate and deactivate operations. Two active windows of the
same veterinarian on the same day may not overlap.
"""

import logging
import uuid
from typing import Any, List, Mapping, Optional, Union

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..database.session import SessionManager
from ..exceptions import BusinessRuleException, NotFoundException
from ..models import Veterinarian, WorkingWindow
from ..schemas.working_window import (
    WorkingWindowBase,
    WorkingWindowCreate,
    WorkingWindowResponse,
    WorkingWindowUpdate,
)
from ..utils.datetime_utils import DayOfWeek, intervals_overlap, time_to_minutes
from ..utils.validation import coerce_uuid, validate_schema

logger = logging.getLogger(__name__)


def _span(window: Union[WorkingWindow, WorkingWindowBase]):
    return time_to_minutes(window.start_time), time_to_minutes(window.end_time)


class WeeklyScheduleStore:
    """Persistence and validation of weekly working windows."""

    def __init__(self, session_manager: SessionManager):
        self.session_manager = session_manager

    async def get_windows(
        self,
        practitioner_id: uuid.UUID,
        day_of_week: DayOfWeek,
        session: Optional[AsyncSession] = None,
    ) -> List[WorkingWindow]:
        """
        Active windows of a veterinarian on a weekday, earliest first.

        Windows with the same start time keep their creation order.
        """
        stmt = (
            select(WorkingWindow)
            .where(
                WorkingWindow.veterinarian_id == practitioner_id,
                WorkingWindow.day_of_week == day_of_week,
                WorkingWindow.is_active.is_(True),
            )
            .order_by(WorkingWindow.start_time, WorkingWindow.created_at)
        )
        async with self.session_manager.use_session(session) as s:
            result = await s.execute(stmt)
            return list(result.scalars().all())

    async def list_windows(
        self, practitioner_id: Any, include_inactive: bool = True
    ) -> List[WorkingWindowResponse]:
        """All windows of a veterinarian ordered by weekday and start time."""
        practitioner_id = coerce_uuid(practitioner_id, "practitioner_id")
        stmt = select(WorkingWindow).where(
            WorkingWindow.veterinarian_id == practitioner_id
        )
        if not include_inactive:
            stmt = stmt.where(WorkingWindow.is_active.is_(True))

        async with self.session_manager.get_session() as session:
            result = await session.execute(stmt)
            windows = list(result.scalars().all())

        windows.sort(key=lambda w: (w.day_of_week.value, w.start_time, w.created_at))
        return [WorkingWindowResponse.model_validate(w) for w in windows]

    async def create_window(
        self, data: Union[WorkingWindowCreate, Mapping[str, Any]]
    ) -> WorkingWindowResponse:
        """
        Create a working window.

        Raises:
            SchemaValidationException: If the window is malformed
            NotFoundException: If the veterinarian does not exist
            BusinessRuleException: If it overlaps another active window
        """
        payload: WorkingWindowCreate = validate_schema(WorkingWindowCreate, data)

        async with self.session_manager.get_transaction() as session:
            if await session.get(Veterinarian, payload.veterinarian_id) is None:
                raise NotFoundException("Veterinarian", payload.veterinarian_id)

            if payload.is_active:
                await self._check_overlap(session, payload.veterinarian_id, payload)

            window = WorkingWindow(
                veterinarian_id=payload.veterinarian_id,
                day_of_week=payload.day_of_week,
                start_time=payload.start_time,
                end_time=payload.end_time,
                slot_duration_minutes=payload.slot_duration_minutes,
                is_active=payload.is_active,
                notes=payload.notes,
            )
            session.add(window)
            await self._flush(session, window)

        logger.info(f"Created working window {window.id}: {window.describe()}")
        return WorkingWindowResponse.model_validate(window)

    async def update_window(
        self, window_id: Any, data: Union[WorkingWindowUpdate, Mapping[str, Any]]
    ) -> WorkingWindowResponse:
        """
        Change the day, span, slot duration or notes of a window.

        The merged window is validated as a whole, so e.g. moving only the
        end time before the start time is rejected.
        """
        window_id = coerce_uuid(window_id, "window_id")
        changes: WorkingWindowUpdate = validate_schema(WorkingWindowUpdate, data)

        async with self.session_manager.get_transaction() as session:
            window = await self._get_window(session, window_id)

            merged = {
                "day_of_week": window.day_of_week,
                "start_time": window.start_time,
                "end_time": window.end_time,
                "slot_duration_minutes": window.slot_duration_minutes,
                "notes": window.notes,
            }
            merged.update(changes.model_dump(exclude_unset=True))
            candidate: WorkingWindowBase = validate_schema(WorkingWindowBase, merged)

            if window.is_active:
                await self._check_overlap(
                    session, window.veterinarian_id, candidate, exclude_id=window.id
                )

            window.update_fields(**candidate.model_dump())
            await self._flush(session, window)

        logger.info(f"Updated working window {window.id}: {window.describe()}")
        return WorkingWindowResponse.model_validate(window)

    async def activate_window(self, window_id: Any) -> WorkingWindowResponse:
        """Put a window back on the schedule, provided it does not overlap."""
        window_id = coerce_uuid(window_id, "window_id")
        async with self.session_manager.get_transaction() as session:
            window = await self._get_window(session, window_id)
            if not window.is_active:
                await self._check_overlap(
                    session, window.veterinarian_id, window, exclude_id=window.id
                )
                window.is_active = True

        logger.info(f"Activated working window {window.id}")
        return WorkingWindowResponse.model_validate(window)

    async def deactivate_window(self, window_id: Any) -> WorkingWindowResponse:
        """
        Take a window off the schedule.

        Appointments already booked inside it are kept.
        """
        window_id = coerce_uuid(window_id, "window_id")
        async with self.session_manager.get_transaction() as session:
            window = await self._get_window(session, window_id)
            window.is_active = False

        logger.info(f"Deactivated working window {window.id}")
        return WorkingWindowResponse.model_validate(window)

    async def _get_window(self, session: AsyncSession, window_id: uuid.UUID) -> WorkingWindow:
        window = await session.get(WorkingWindow, window_id)
        if window is None:
            raise NotFoundException("Working window", window_id)
        return window

    async def _check_overlap(
        self,
        session: AsyncSession,
        practitioner_id: uuid.UUID,
        candidate: Union[WorkingWindow, WorkingWindowBase],
        exclude_id: Optional[uuid.UUID] = None,
    ) -> None:
        others = await self.get_windows(practitioner_id, candidate.day_of_week, session=session)
        for other in others:
            if other.id == exclude_id:
                continue
            if intervals_overlap(_span(candidate), _span(other)):
                raise BusinessRuleException(
                    f"Window overlaps the existing window {other.describe()}",
                    rule_name="working_windows_do_not_overlap",
                    context={"conflicting_window_id": str(other.id)},
                )

    async def _flush(self, session: AsyncSession, window: WorkingWindow) -> None:
        try:
            await session.flush()
        except IntegrityError as e:
            raise BusinessRuleException(
                "An identical working window already exists",
                rule_name="working_window_unique_span",
                context={"veterinarian_id": str(window.veterinarian_id)},
            ) from e
