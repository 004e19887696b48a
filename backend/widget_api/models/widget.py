"""
Widget API Backend: Widget SQLAlchemy Model
==============================================

What:  ORM model representing the `widgets` table.
How:   Inherits from the shared DeclarativeBase; the external migration
       collaborator owns the DDL, tests build it with metadata.create_all.
Who:   Used by WidgetRepository for every query and mutation.

Table Design:
    - ULID primary key: 26 chars, time-ordered and collision-resistant.
      Generated in Python at construction, never reassigned.
    - owner_id: the authenticated principal's subject claim. Opaque string;
      immutable after insert.
    - version: optimistic-lock counter. 0 on insert, +1 on every successful
      update, enforced by the repository's conditional UPDATE.
    - created_at / updated_at: UTC, set by the service on every write.

Indexes:
    (owner_id, created_at): the default listing ("my widgets, newest first")
    (owner_id, category):   the category-filtered listing
"""

import enum
from datetime import datetime, timezone

from sqlalchemy import DateTime, Enum, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column
from ulid import ULID

from widget_api.database import Base

ULID_LENGTH = 26


def new_widget_id() -> str:
    """Generate a new 26-character ULID string (uppercase Crockford base32)."""
    return str(ULID())


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class WidgetCategory(str, enum.Enum):
    """Fixed enumeration of widget categories."""

    BASIC = "BASIC"
    ADVANCED = "ADVANCED"
    PREMIUM = "PREMIUM"
    CUSTOM = "CUSTOM"

    @classmethod
    def names(cls) -> list[str]:
        return [member.value for member in cls]

    @classmethod
    def parse(cls, value: str) -> "WidgetCategory":
        """
        Case-insensitive lookup ("basic" → BASIC).

        Raises:
            ValueError: value is not one of the enumeration names
        """
        try:
            return cls(value.strip().upper())
        except ValueError:
            raise ValueError(
                f"Invalid category: {value}. Valid values are: {', '.join(cls.names())}"
            ) from None


class Widget(Base):
    """
    A widget owned by exactly one principal.

    Lifecycle:
        1. Created by an authenticated principal (id assigned, version = 0)
        2. Updated only by its owner with a matching expected version
        3. Deleted permanently by its owner (no soft delete)
    """

    __tablename__ = "widgets"

    id: Mapped[str] = mapped_column(
        String(ULID_LENGTH),
        primary_key=True,
        default=new_widget_id,
    )

    owner_id: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    description: Mapped[str] = mapped_column(
        String(1000),
        nullable=False,
    )

    # Stored as the member name in a VARCHAR; no native DB enum type
    category: Mapped[WidgetCategory] = mapped_column(
        Enum(WidgetCategory, native_enum=False, length=20, validate_strings=True),
        nullable=False,
    )

    level: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
    )

    version: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )

    __table_args__ = (
        Index("idx_widgets_owner_created_at", "owner_id", "created_at"),
        Index("idx_widgets_owner_category", "owner_id", "category"),
    )

    def __repr__(self) -> str:
        return (
            f"<Widget(id={self.id}, owner_id='{self.owner_id}', "
            f"version={self.version})>"
        )
