"""
Permission API routes.

Exposes the permission catalog, role presets and a check endpoint the UI uses
to decide which controls to show.
"""
from typing import List
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.features.users.dependencies import get_current_user
from app.features.users.models import User
from app.features.contractors.models import Contractor
from app.features.permissions.models import Permission, PERMISSION_DESCRIPTIONS, ROLE_PRESETS
from app.features.permissions.schemas import (
    PermissionResponse,
    RolePresetResponse,
    PermissionCheckRequest,
    PermissionCheckResponse,
)
from app.features.permissions.dependencies import has_permission
from app.features.permissions.policy import can_perform, is_owner


router = APIRouter()


@router.get("", response_model=List[PermissionResponse])
async def list_permissions(current_user: User = Depends(get_current_user)):
    """List every permission tag."""
    return [
        PermissionResponse(name=permission, description=PERMISSION_DESCRIPTIONS[permission])
        for permission in Permission
    ]


@router.get("/presets", response_model=List[RolePresetResponse])
async def list_role_presets(current_user: User = Depends(get_current_user)):
    """List the built-in role templates."""
    return [RolePresetResponse(key=key, **preset) for key, preset in ROLE_PRESETS.items()]


@router.post("/check", response_model=PermissionCheckResponse)
async def check_permission(
    check: PermissionCheckRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """
    Check the current user's permissions.

    Without a contractor this evaluates `required` (any of). With `contractor_id`
    and `action` it runs the ownership-aware policy for that record.
    """
    if check.contractor_id is None:
        return PermissionCheckResponse(allowed=has_permission(current_user.permission_set, check.required))

    if check.action is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="action is required with contractor_id")

    contractor = await db.get(Contractor, check.contractor_id)
    if contractor is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Contractor not found")

    return PermissionCheckResponse(
        allowed=can_perform(current_user.permission_set, current_user.id, contractor, check.action),
        is_owner=is_owner(current_user.id, contractor),
    )
