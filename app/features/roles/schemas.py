"""
Pydantic schemas for roles.
"""
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field, ConfigDict, field_validator

from app.features.permissions.models import Permission, normalize_permissions


class RoleBase(BaseModel):
    """Base role schema."""
    name: str = Field(..., min_length=1, max_length=100, description="Unique role name")
    description: Optional[str] = Field(None, max_length=1000, description="Role description")
    color: Optional[str] = Field(None, max_length=20)
    is_default: bool = False


class RoleCreate(RoleBase):
    """Schema for creating a new role."""
    permissions: List[Permission] = Field(..., description="Permission tags granted by the role")

    @field_validator("permissions")
    @classmethod
    def dedupe_permissions(cls, v: List[Permission]) -> List[Permission]:
        return [Permission(p) for p in normalize_permissions(v)]


class RoleUpdate(BaseModel):
    """Schema for updating a role."""
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=1000)
    color: Optional[str] = Field(None, max_length=20)
    is_default: Optional[bool] = None
    permissions: Optional[List[Permission]] = None

    @field_validator("permissions")
    @classmethod
    def dedupe_permissions(cls, v: Optional[List[Permission]]) -> Optional[List[Permission]]:
        if v is None:
            return v
        return [Permission(p) for p in normalize_permissions(v)]


class RoleResponse(RoleBase):
    """Schema for role response."""
    id: str
    permissions: List[str]
    created_at: datetime
    updated_at: datetime
    
    model_config = ConfigDict(from_attributes=True)
