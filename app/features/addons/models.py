"""
Addon model and its service point association table.
"""
from sqlalchemy import String, ForeignKey, Table, Column, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database.base import Base, TimestampMixin, generate_ulid


service_point_addons = Table(
    "service_point_addons",
    Base.metadata,
    Column("service_point_id", String(26), ForeignKey("service_points.id", ondelete="CASCADE"), primary_key=True),
    Column("addon_id", String(26), ForeignKey("addons.id", ondelete="CASCADE"), primary_key=True),
)


class Addon(Base, TimestampMixin):
    """
    Named attribute attachable to service points.

    Examples: delivery, loyalty program, extra equipment
    """
    __tablename__ = "addons"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    name: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    color: Mapped[str | None] = mapped_column(String(20), nullable=True)

    def __repr__(self) -> str:
        return f"<Addon(id={self.id}, name={self.name!r})>"
