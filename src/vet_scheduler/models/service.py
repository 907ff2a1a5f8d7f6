"""
Clinic service model for the vet-scheduler package.

A clinic service (consultation, vaccination, grooming...) is what an
appointment is booked for. When the service declares its own duration the
appointment occupies that long; otherwise it occupies one slot of the
working window it was booked in.
"""

from typing import Any, Optional

from sqlalchemy import Boolean, CheckConstraint, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from ..utils.datetime_utils import format_duration
from .base import BaseModel


class ClinicService(BaseModel):
    """Bookable clinic service."""

    __tablename__ = "clinic_services"

    def __init__(self, **kwargs: Any) -> None:
        """Initialize ClinicService with default values."""
        if "is_active" not in kwargs:
            kwargs["is_active"] = True
        super().__init__(**kwargs)

    name: Mapped[str] = mapped_column(
        String(150),
        nullable=False,
        unique=True,
        comment="Service name shown to clients",
    )

    description: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
        comment="Longer description of the service",
    )

    duration_minutes: Mapped[Optional[int]] = mapped_column(
        nullable=True,
        comment="Time the service occupies; NULL means one schedule slot",
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
        comment="Whether the service can be booked",
    )

    __table_args__ = (
        CheckConstraint(
            "duration_minutes IS NULL OR duration_minutes > 0",
            name="ck_clinic_services_duration_positive",
        ),
    )

    def __repr__(self) -> str:
        return f"<ClinicService(id={self.id}, name='{self.name}')>"

    def resolve_duration(self, slot_duration_minutes: int) -> int:
        """Minutes an appointment for this service occupies in a given window."""
        return self.duration_minutes or slot_duration_minutes

    def get_duration_display(self) -> str:
        """Get a human-readable duration display."""
        if self.duration_minutes is None:
            return "One schedule slot"
        return format_duration(self.duration_minutes)
