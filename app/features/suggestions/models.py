"""
ContractorSuggestion model: a pending change-set proposed for a contractor.
"""
from datetime import datetime
from enum import Enum
from typing import Any, Dict

from sqlalchemy import String, ForeignKey, JSON, Text, DateTime
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database.base import Base, TimestampMixin, generate_ulid


class SuggestionStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class ContractorSuggestion(Base, TimestampMixin):
    """
    Change proposal made by a user without edit rights.

    `changes` holds the serialized change-set (see suggestions.changeset).
    PENDING moves to APPROVED or REJECTED exactly once.
    """
    __tablename__ = "contractor_suggestions"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    contractor_id: Mapped[str] = mapped_column(
        ForeignKey("contractors.id", ondelete="CASCADE"), nullable=False, index=True
    )
    author_id: Mapped[str | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), index=True)

    changes: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False)
    comment: Mapped[str | None] = mapped_column(Text)

    status: Mapped[str] = mapped_column(
        String(20), default=SuggestionStatus.PENDING.value, nullable=False, index=True
    )
    reviewed_by_id: Mapped[str | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"))
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    review_comment: Mapped[str | None] = mapped_column(Text)

    # Relationships
    contractor = relationship("Contractor", lazy="selectin")
    author = relationship("User", foreign_keys=[author_id], lazy="selectin")
    reviewed_by = relationship("User", foreign_keys=[reviewed_by_id], lazy="selectin")
    files = relationship(
        "ContractorFile",
        primaryjoin="ContractorSuggestion.id == ContractorFile.suggestion_id",
        viewonly=True,
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<ContractorSuggestion(id={self.id}, contractor_id={self.contractor_id}, status={self.status})>"
