"""
Pydantic schemas for permission management.
"""
from typing import List, Optional
from pydantic import BaseModel, Field

from app.features.permissions.models import Permission
from app.features.permissions.policy import Action


class PermissionResponse(BaseModel):
    """A permission tag with its human-readable description."""
    name: Permission
    description: str


class RolePresetResponse(BaseModel):
    """Built-in role template."""
    key: str
    name: str
    description: str
    permissions: List[Permission]


class PermissionCheckRequest(BaseModel):
    """Evaluate the current user's permissions, optionally against a contractor."""
    required: List[Permission] = Field(default_factory=list, description="Alternatives; any one is enough")
    contractor_id: Optional[str] = Field(None, description="Contractor for an ownership-aware check")
    action: Optional[Action] = Field(None, description="Action family checked against the contractor")


class PermissionCheckResponse(BaseModel):
    allowed: bool
    is_owner: Optional[bool] = None
