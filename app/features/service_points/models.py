"""
ServicePoint SQLAlchemy model.
"""
from sqlalchemy import String, Integer, ForeignKey, Text, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database.base import Base, TimestampMixin, generate_ulid
from app.features.addons.models import service_point_addons


class ServicePoint(Base, TimestampMixin):
    """
    Physical location belonging to exactly one contractor.

    `fronts_on_service` never exceeds `fronts_count`; routes validate this and
    the table carries a matching check constraint.
    """
    __tablename__ = "service_points"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    contractor_id: Mapped[str] = mapped_column(
        ForeignKey("contractors.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    address: Mapped[str | None] = mapped_column(String(500))
    city_id: Mapped[str | None] = mapped_column(ForeignKey("cities.id"), index=True)
    crm_id: Mapped[str | None] = mapped_column(String(100))

    fronts_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    fronts_on_service: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    description: Mapped[str | None] = mapped_column(Text)
    notes: Mapped[str | None] = mapped_column(Text)
    individual_terms: Mapped[str | None] = mapped_column(Text)

    city = relationship("City", lazy="selectin")
    addons = relationship("Addon", secondary=service_point_addons, lazy="selectin")

    __table_args__ = (
        CheckConstraint("fronts_count >= 0", name="ck_service_points_fronts_count"),
        CheckConstraint(
            "fronts_on_service >= 0 AND fronts_on_service <= fronts_count",
            name="ck_service_points_fronts_on_service",
        ),
    )

    def __repr__(self):
        return f"<ServicePoint(id={self.id}, contractor_id={self.contractor_id}, name={self.name!r})>"


class ServicePointFile(Base, TimestampMixin):
    """Metadata row for a file attached to a service point."""
    __tablename__ = "service_point_files"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    service_point_id: Mapped[str] = mapped_column(
        ForeignKey("service_points.id", ondelete="CASCADE"), nullable=False, index=True
    )
    filename: Mapped[str] = mapped_column(String(255), nullable=False)
    storage_path: Mapped[str] = mapped_column(String(500), nullable=False)
    file_type: Mapped[str] = mapped_column(String(20), nullable=False, default="document")
    mime_type: Mapped[str | None] = mapped_column(String(100))
    size: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    uploaded_by_id: Mapped[str | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"))

    def __repr__(self):
        return f"<ServicePointFile(id={self.id}, service_point_id={self.service_point_id}, filename={self.filename!r})>"
