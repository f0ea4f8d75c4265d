"""
Contractor (client) and ContractorFile SQLAlchemy models.
"""
from enum import Enum

from sqlalchemy import String, Boolean, Integer, ForeignKey, Index, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database.base import Base, TimestampMixin, generate_ulid


class ContractorStatus(str, Enum):
    ACTIVE = "ACTIVE"
    DEBT = "DEBT"
    LEFT = "LEFT"
    CLOSED = "CLOSED"
    NO_CONTRACT = "NO_CONTRACT"
    SEASONAL = "SEASONAL"
    LAUNCHING = "LAUNCHING"


class Contractor(Base, TimestampMixin):
    """
    Contractor entity: a managed client account.

    Attributes:
        id: ULID primary key
        name: Display name
        inn: Tax identification number
        status: One of ContractorStatus
        has_chain: Contractor operates a chain of service points
        general_description / general_notes / general_individual_terms: free text
        primary_city_id: Main city (nullable, cleared by forced city deletion)
        agreement_id: Agreement in force (nullable, cleared by forced agreement deletion)
        manager_id: Assigned manager; together with created_by_id defines ownership
        created_by_id: User who created the record
        is_hidden: Hidden from users without the hide permissions
        version: Optimistic concurrency counter, bumped on every ORM update
    """
    __tablename__ = "contractors"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    inn: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    status: Mapped[str] = mapped_column(String(20), default=ContractorStatus.ACTIVE.value, nullable=False, index=True)
    has_chain: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    general_description: Mapped[str | None] = mapped_column(Text)
    general_notes: Mapped[str | None] = mapped_column(Text)
    general_individual_terms: Mapped[str | None] = mapped_column(Text)

    # References to cities/agreements are restricted; deletion must clear them explicitly
    primary_city_id: Mapped[str | None] = mapped_column(ForeignKey("cities.id"), index=True)
    agreement_id: Mapped[str | None] = mapped_column(ForeignKey("agreements.id"), index=True)

    manager_id: Mapped[str | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), index=True)
    created_by_id: Mapped[str | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), index=True)

    is_hidden: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False, index=True)

    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    # Relationships
    primary_city = relationship("City", lazy="selectin")
    agreement = relationship("Agreement", lazy="selectin")
    manager = relationship("User", foreign_keys=[manager_id], lazy="selectin")
    created_by = relationship("User", foreign_keys=[created_by_id], lazy="selectin")
    service_points = relationship(
        "ServicePoint",
        cascade="all, delete-orphan",
        order_by="ServicePoint.created_at",
        lazy="selectin",
    )
    files = relationship(
        "ContractorFile",
        back_populates="contractor",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        Index("ix_contractors_manager_hidden", "manager_id", "is_hidden"),
    )

    def __repr__(self):
        return f"<Contractor(id={self.id}, name={self.name!r}, status={self.status})>"


def file_type_for(mime_type: str | None) -> str:
    """Classify an attachment as image, video or document by MIME type."""
    if mime_type and mime_type.startswith("image/"):
        return "image"
    if mime_type and mime_type.startswith("video/"):
        return "video"
    return "document"


class ContractorFile(Base, TimestampMixin):
    """
    Metadata row for a file attached to a contractor.

    Pending files are uploaded for a suggestion and stay out of the
    contractor's visible file list until the suggestion is approved. Only the
    uploader can link a pending file to their suggestion.
    """
    __tablename__ = "contractor_files"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    contractor_id: Mapped[str] = mapped_column(
        ForeignKey("contractors.id", ondelete="CASCADE"), nullable=False, index=True
    )
    filename: Mapped[str] = mapped_column(String(255), nullable=False)
    storage_path: Mapped[str] = mapped_column(String(500), nullable=False)
    file_type: Mapped[str] = mapped_column(String(20), nullable=False, default="document")
    mime_type: Mapped[str | None] = mapped_column(String(100))
    size: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_pending: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False, index=True)
    suggestion_id: Mapped[str | None] = mapped_column(
        ForeignKey("contractor_suggestions.id", ondelete="SET NULL"), index=True
    )
    uploaded_by_id: Mapped[str | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), index=True)

    contractor = relationship("Contractor", back_populates="files")

    def __repr__(self):
        return f"<ContractorFile(id={self.id}, contractor_id={self.contractor_id}, filename={self.filename!r})>"
