"""
Declarative base, ULID ids and timestamp columns shared by every model.
"""
from datetime import datetime
from sqlalchemy import DateTime, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from ulid import ULID


def generate_ulid() -> str:
    """New 26-character ULID; ids sort by creation time."""
    return str(ULID())


class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy models.

    Models declare `id` as `String(26)` with `default=generate_ulid` and mix in
    TimestampMixin, e.g. Agreement:

        class Agreement(Base, TimestampMixin):
            __tablename__ = "agreements"

            id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
            name: Mapped[str] = mapped_column(String(255), unique=True)
    """
    pass


class TimestampMixin:
    """
    Server-side `created_at` / `updated_at`.

    Both are set by the database, so they are unloaded on a freshly flushed
    object; reload (refresh or populate_existing) before serializing it.
    """
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
