"""
Actor context for scheduling operations.

Authentication happens outside the engine; callers pass in who is acting and
in which role. The lifecycle uses this to decide whether an operation is
allowed.
"""

import enum
import uuid
from dataclasses import dataclass
from typing import Optional


class ActorRole(enum.Enum):
    """Roles of the clinic portal."""

    OWNER = "owner"
    VETERINARIAN = "veterinarian"
    RECEPTIONIST = "receptionist"
    AUXILIARY = "auxiliary"
    ADMINISTRATOR = "administrator"


STAFF_ROLES = frozenset(
    {
        ActorRole.VETERINARIAN,
        ActorRole.RECEPTIONIST,
        ActorRole.AUXILIARY,
        ActorRole.ADMINISTRATOR,
    }
)


@dataclass(frozen=True)
class ActorContext:
    """
    The authenticated user performing an operation.

    Attributes:
        user_id: User account id
        role: Role the user acts in
        practitioner_id: Veterinarian record of the user, for veterinarians
    """

    user_id: uuid.UUID
    role: ActorRole
    practitioner_id: Optional[uuid.UUID] = None

    @classmethod
    def owner(cls, user_id: uuid.UUID) -> "ActorContext":
        return cls(user_id=user_id, role=ActorRole.OWNER)

    @classmethod
    def veterinarian(cls, user_id: uuid.UUID, practitioner_id: uuid.UUID) -> "ActorContext":
        return cls(user_id=user_id, role=ActorRole.VETERINARIAN, practitioner_id=practitioner_id)

    @property
    def is_staff(self) -> bool:
        return self.role in STAFF_ROLES

    def has_role(self, *roles: ActorRole) -> bool:
        return self.role in roles
