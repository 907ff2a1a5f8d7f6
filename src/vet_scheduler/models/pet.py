"""
Pet model for the vet-scheduler package.

The scheduler only needs to know a pet's name and who owns it: the name is
shown on occupied slots and the owner decides whether an owner actor may book
or cancel on the pet's behalf.
"""

import uuid
from typing import Optional

from sqlalchemy import Index, String
from sqlalchemy.orm import Mapped, mapped_column

from .base import BaseModel


class Pet(BaseModel):
    """Subject of an appointment."""

    __tablename__ = "pets"

    owner_id: Mapped[uuid.UUID] = mapped_column(
        nullable=False,
        index=True,
        comment="UUID of the owner's user account",
    )

    name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        comment="Pet's name",
    )

    species: Mapped[Optional[str]] = mapped_column(
        String(50),
        nullable=True,
        comment="Free-text species, e.g. 'dog' or 'cat'",
    )

    __table_args__ = (
        Index("idx_pets_owner_name", "owner_id", "name"),
    )

    def __repr__(self) -> str:
        return f"<Pet(id={self.id}, name='{self.name}', owner_id={self.owner_id})>"

    def is_owned_by(self, user_id: uuid.UUID) -> bool:
        return self.owner_id == user_id
