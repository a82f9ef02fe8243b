"""
Declarative base and shared column mixins.
"""

from datetime import UTC, datetime

from sqlalchemy import DateTime, func
from sqlalchemy.orm import Mapped, declarative_base, mapped_column

Base = declarative_base()


def utc_now() -> datetime:
    """Timezone-aware current time used for column defaults."""
    return datetime.now(UTC)


class TimestampMixin:
    """Adds created_at / updated_at columns maintained on insert and update."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utc_now,
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utc_now,
        server_default=func.now(),
        onupdate=utc_now,
        nullable=False,
    )


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes read back from backends without tz support (SQLite)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value
