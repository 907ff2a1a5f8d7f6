"""
Working window model for the vet-scheduler package.

A working window is a recurring weekly block of time in which a veterinarian
takes appointments, e.g. "Mondays 08:00-12:00 in 30 minute slots". Slots are
laid out from the window start in steps of the slot duration; trailing time
too short for a full slot is never offered.
"""

import uuid
from datetime import time
from typing import Any, List, Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Enum,
    ForeignKey,
    Index,
    String,
    Time,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from ..utils.datetime_utils import (
    DayOfWeek,
    add_minutes,
    format_duration,
    minutes_to_time,
    time_to_minutes,
)
from .base import BaseModel

MIN_SLOT_MINUTES = 15
MAX_SLOT_MINUTES = 240
DEFAULT_SLOT_MINUTES = 30


class WorkingWindow(BaseModel):
    """Recurring weekly availability block of a veterinarian."""

    __tablename__ = "working_windows"

    def __init__(self, **kwargs: Any) -> None:
        """Initialize WorkingWindow with default values."""
        if "slot_duration_minutes" not in kwargs:
            kwargs["slot_duration_minutes"] = DEFAULT_SLOT_MINUTES
        if "is_active" not in kwargs:
            kwargs["is_active"] = True
        super().__init__(**kwargs)

    veterinarian_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("veterinarians.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="UUID of the veterinarian who works this window",
    )

    day_of_week: Mapped[DayOfWeek] = mapped_column(
        Enum(DayOfWeek, name="day_of_week"),
        nullable=False,
        comment="Day of the week the window recurs on",
    )

    start_time: Mapped[time] = mapped_column(
        Time,
        nullable=False,
        comment="Local time the window opens",
    )

    end_time: Mapped[time] = mapped_column(
        Time,
        nullable=False,
        comment="Local time the window closes",
    )

    slot_duration_minutes: Mapped[int] = mapped_column(
        nullable=False,
        default=DEFAULT_SLOT_MINUTES,
        comment="Length of each bookable slot in minutes",
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
        comment="Inactive windows produce no slots",
    )

    notes: Mapped[Optional[str]] = mapped_column(
        String(500),
        nullable=True,
        comment="Free-text notes, e.g. 'surgery mornings'",
    )

    __table_args__ = (
        CheckConstraint(
            "start_time < end_time",
            name="ck_working_windows_start_before_end",
        ),
        CheckConstraint(
            f"slot_duration_minutes >= {MIN_SLOT_MINUTES} "
            f"AND slot_duration_minutes <= {MAX_SLOT_MINUTES}",
            name="ck_working_windows_slot_duration_range",
        ),
        UniqueConstraint(
            "veterinarian_id",
            "day_of_week",
            "start_time",
            "end_time",
            name="uq_working_windows_vet_day_span",
        ),
        Index(
            "idx_working_windows_vet_day_active",
            "veterinarian_id",
            "day_of_week",
            "is_active",
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<WorkingWindow(id={self.id}, veterinarian_id={self.veterinarian_id}, "
            f"day='{self.day_of_week.name}', {self.start_time}-{self.end_time})>"
        )

    @property
    def span_minutes(self) -> int:
        return time_to_minutes(self.end_time) - time_to_minutes(self.start_time)

    @property
    def capacity(self) -> int:
        """Number of whole slots the window holds."""
        if self.slot_duration_minutes <= 0 or self.span_minutes <= 0:
            return 0
        return self.span_minutes // self.slot_duration_minutes

    def slot_starts(self) -> List[time]:
        """Start times of every whole slot, in order."""
        start = time_to_minutes(self.start_time)
        return [
            minutes_to_time(start + index * self.slot_duration_minutes)
            for index in range(self.capacity)
        ]

    def contains(self, start: time, duration_minutes: int) -> bool:
        """Check whether ``[start, start + duration)`` lies inside the window."""
        begin = time_to_minutes(start)
        return (
            time_to_minutes(self.start_time) <= begin
            and begin + duration_minutes <= time_to_minutes(self.end_time)
        )

    def is_on_grid(self, start: time) -> bool:
        """Check whether a time is one of the window's slot starts."""
        offset = time_to_minutes(start) - time_to_minutes(self.start_time)
        return (
            start.second == 0
            and offset >= 0
            and offset % self.slot_duration_minutes == 0
            and offset + self.slot_duration_minutes <= self.span_minutes
        )

    def last_slot_end(self) -> time:
        """End of the last whole slot; earlier than ``end_time`` when a remainder is dropped."""
        return add_minutes(self.start_time, self.capacity * self.slot_duration_minutes)

    def describe(self) -> str:
        """Human-readable one-line summary of the window."""
        summary = (
            f"{self.day_of_week.display_name} "
            f"{self.start_time.strftime('%H:%M')}-{self.end_time.strftime('%H:%M')}, "
            f"{self.capacity} x {format_duration(self.slot_duration_minutes)}"
        )
        if not self.is_active:
            summary += " (inactive)"
        return summary
