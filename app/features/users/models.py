"""
User model with ULID primary keys.
"""
from sqlalchemy import String, JSON
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database.base import Base, TimestampMixin, generate_ulid


class User(Base, TimestampMixin):
    """
    User model representing back-office staff.
    
    Permissions are an ordered list of tags stored as JSON; use `permission_set`
    for checks.
    """
    __tablename__ = "users"
    
    # Primary key using ULID (Universally Unique Lexicographically Sortable Identifier)
    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    
    # Credentials
    login: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    
    # User information
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    avatar: Mapped[str | None] = mapped_column(String(500), nullable=True)
    
    permissions: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    
    @property
    def permission_set(self) -> frozenset[str]:
        return frozenset(self.permissions or ())
    
    def __repr__(self) -> str:
        return f"<User(id={self.id}, login={self.login!r})>"
