"""
Veterinarian model for the vet-scheduler package.

This module contains the Veterinarian SQLAlchemy model. A veterinarian is the
practitioner whose agenda the scheduling engine manages; the record carries a
direct reference to the user account so that an authenticated actor can be
matched to their agenda without lookups by name or email.
"""

import enum
import uuid
from typing import Any

from sqlalchemy import Enum, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from .base import BaseModel


class VeterinarianStatus(enum.Enum):
    """Enumeration of veterinarian statuses."""

    ACTIVE = "active"
    INACTIVE = "inactive"
    ON_LEAVE = "on_leave"


class Veterinarian(BaseModel):
    """Practitioner whose weekly working windows produce bookable slots."""

    __tablename__ = "veterinarians"

    def __init__(self, **kwargs: Any) -> None:
        """Initialize Veterinarian with default values."""
        if "status" not in kwargs:
            kwargs["status"] = VeterinarianStatus.ACTIVE
        super().__init__(**kwargs)

    user_id: Mapped[uuid.UUID] = mapped_column(
        nullable=False,
        unique=True,
        index=True,
        comment="UUID of the associated user account",
    )

    first_name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        comment="Veterinarian's first name",
    )

    last_name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        comment="Veterinarian's last name",
    )

    status: Mapped[VeterinarianStatus] = mapped_column(
        Enum(VeterinarianStatus, name="veterinarian_status"),
        nullable=False,
        default=VeterinarianStatus.ACTIVE,
        index=True,
        comment="Current employment status",
    )

    __table_args__ = (
        Index("idx_veterinarians_name", "last_name", "first_name"),
    )

    def __repr__(self) -> str:
        """Return string representation of the Veterinarian model."""
        return (
            f"<Veterinarian(id={self.id}, user_id={self.user_id}, "
            f"status='{self.status.value}')>"
        )

    @property
    def is_active(self) -> bool:
        """Check if the veterinarian is taking appointments."""
        return self.status == VeterinarianStatus.ACTIVE

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def display_name(self) -> str:
        """Get a display-friendly name."""
        return f"Dr. {self.full_name}"

    def get_status_display(self) -> str:
        """Get a human-readable status display."""
        status_display = {
            VeterinarianStatus.ACTIVE: "Active",
            VeterinarianStatus.INACTIVE: "Inactive",
            VeterinarianStatus.ON_LEAVE: "On Leave",
        }
        return status_display.get(self.status, self.status.value.title())
