"""
City reference data.
"""
from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database.base import Base, TimestampMixin, generate_ulid


class City(Base, TimestampMixin):
    """City referenced by contractors (primary city) and service points."""
    __tablename__ = "cities"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)

    def __repr__(self) -> str:
        return f"<City(id={self.id}, name={self.name!r})>"
