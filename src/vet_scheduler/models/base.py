"""
Base model class for all SQLAlchemy models in the vet-scheduler package.

This module provides the foundational base model class that all other models inherit from,
including the UUID primary key, audit timestamps and utility methods.

The BaseModel class follows modern SQLAlchemy 2.0 patterns with:
- UUID primary keys generated on the Python side so that PostgreSQL and
  SQLite behave identically
- Automatic timestamp management for audit trails
- Common utility methods for data conversion

Example:
    >>> from vet_scheduler.models.base import BaseModel
    >>> from sqlalchemy.orm import Mapped, mapped_column
    >>> from sqlalchemy import String

    >>> class Room(BaseModel):
    ...     __tablename__ = "rooms"
    ...     name: Mapped[str] = mapped_column(String(100))

    >>> room = Room(name="Exam 1")
    >>> data = room.to_dict()
    >>> print(data['name'])  # "Exam 1"
"""

import enum
import uuid
from datetime import date, datetime, time, timezone
from typing import Any, Dict, TypeVar

from sqlalchemy import DateTime, Uuid
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# Type variable for model classes
T = TypeVar("T", bound="BaseModel")


def utc_now() -> datetime:
    """Timezone-aware current UTC time used for audit columns."""
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """
    Base declarative class for all SQLAlchemy models.

    Attributes:
        type_annotation_map: Maps Python types to SQLAlchemy column types
    """

    type_annotation_map = {
        uuid.UUID: Uuid(as_uuid=True),
    }


class BaseModel(Base):
    """
    Abstract base model class providing common functionality for all entities.

    Attributes:
        id (UUID): Primary key, automatically generated UUID4
        created_at (datetime): Timestamp when record was created (UTC)
        updated_at (datetime): Timestamp when record was last updated (UTC)

    Note:
        This is an abstract base class and cannot be instantiated directly.
        All concrete models must define a __tablename__ attribute.
    """

    __abstract__ = True

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )

    # Audit fields
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
        onupdate=utc_now,
    )

    def __init__(self, **kwargs: Any) -> None:
        # Column defaults only fire on INSERT
        kwargs.setdefault("id", uuid.uuid4())
        now = utc_now()
        kwargs.setdefault("created_at", now)
        kwargs.setdefault("updated_at", now)
        super().__init__(**kwargs)

    def __repr__(self) -> str:
        """Return string representation in the form ``<ModelName(id=uuid)>``."""
        return f"<{self.__class__.__name__}(id={self.id})>"

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert model instance to dictionary representation.

        Converts all column values to JSON-serializable types:
        - datetime, date and time objects to ISO format strings
        - UUID objects to string representation
        - Enum members to their name
        - Other types remain unchanged

        Returns:
            Dictionary with column names as keys and serialized values.
        """
        result: Dict[str, Any] = {}
        for column in self.__table__.columns:
            value = getattr(self, column.key)
            if isinstance(value, (datetime, date, time)):
                result[column.key] = value.isoformat()
            elif isinstance(value, uuid.UUID):
                result[column.key] = str(value)
            elif isinstance(value, enum.Enum):
                result[column.key] = value.name
            else:
                result[column.key] = value
        return result

    def update_fields(self, **kwargs: Any) -> None:
        """
        Update multiple fields on the model instance in a single operation.

        Raises:
            AttributeError: If any field name doesn't exist on the model.

        Note:
            This method only modifies the instance. You must commit the
            transaction to persist changes to the database.
        """
        for field, value in kwargs.items():
            if hasattr(self, field):
                setattr(self, field, value)
            else:
                raise AttributeError(
                    f"'{self.__class__.__name__}' has no attribute '{field}'"
                )
