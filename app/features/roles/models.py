"""
Role model: a named permission template.
"""
from sqlalchemy import String, Boolean, JSON, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database.base import Base, TimestampMixin, generate_ulid


class Role(Base, TimestampMixin):
    """
    Role model for grouping permissions.
    
    Roles are templates: assigning one copies its permissions onto a user, there
    is no live link. At most one role is the default for new users.
    """
    __tablename__ = "roles"
    
    # Primary key using ULID
    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    
    # Role definition
    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    color: Mapped[str | None] = mapped_column(String(20), nullable=True)
    is_default: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    
    permissions: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    
    def __repr__(self) -> str:
        return f"<Role(id={self.id}, name={self.name!r}, default={self.is_default})>"
