"""
Agreement reference data.
"""
from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database.base import Base, TimestampMixin, generate_ulid


class Agreement(Base, TimestampMixin):
    """Agreement (contract template) referenced by contractors."""
    __tablename__ = "agreements"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)

    def __repr__(self) -> str:
        return f"<Agreement(id={self.id}, name={self.name!r})>"
