"""
Pydantic schemas for user-related requests and responses.
"""
from datetime import datetime
from pydantic import BaseModel, Field, field_validator

from app.features.permissions.models import Permission, normalize_permissions


class UserBase(BaseModel):
    """Base user schema with common fields."""
    login: str = Field(..., min_length=1, max_length=100)
    name: str = Field(..., min_length=1, max_length=255)


class UserCreate(UserBase):
    """Schema for creating a new user."""
    password: str = Field(..., min_length=1, max_length=128)
    permissions: list[Permission] = Field(default_factory=list)

    @field_validator("permissions")
    @classmethod
    def dedupe_permissions(cls, v: list[Permission]) -> list[Permission]:
        return [Permission(p) for p in normalize_permissions(v)]


class UserUpdate(BaseModel):
    """Schema for updating user information. Permissions are applied for admins only."""
    name: str | None = Field(None, min_length=1, max_length=255)
    password: str | None = Field(None, min_length=1, max_length=128)
    avatar: str | None = Field(None, max_length=500)
    permissions: list[Permission] | None = None

    @field_validator("permissions")
    @classmethod
    def dedupe_permissions(cls, v: list[Permission] | None) -> list[Permission] | None:
        if v is None:
            return v
        return [Permission(p) for p in normalize_permissions(v)]


class LoginRequest(BaseModel):
    login: str
    password: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"


class UserResponse(UserBase):
    """Schema for user responses."""
    id: str
    avatar: str | None = None
    permissions: list[str] = []
    created_at: datetime
    
    model_config = {"from_attributes": True}


class UserWithCounts(UserResponse):
    """Admin listing entry with managed/created contractor counts."""
    managed_contractors: int = 0
    created_contractors: int = 0


class UserPublic(BaseModel):
    """Public user information (limited fields)."""
    id: str
    name: str
    avatar: str | None = None
    
    model_config = {"from_attributes": True}
