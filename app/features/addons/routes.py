"""
Addon API routes.
"""
from typing import Annotated
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.features.users.models import User
from app.features.users.dependencies import get_current_user
from app.features.permissions.dependencies import require_permission
from app.features.permissions.models import Permission
from app.features.addons.models import Addon
from app.features.addons.schemas import AddonCreate, AddonUpdate, AddonResponse


router = APIRouter(tags=["addons"])

require_manage_addons = require_permission(Permission.MANAGE_ADDONS)


async def _get_addon_or_404(db: AsyncSession, addon_id: str) -> Addon:
    addon = await db.get(Addon, addon_id)
    if addon is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Addon not found")
    return addon


@router.get("", response_model=list[AddonResponse])
async def list_addons(
    user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """List addons ordered by name."""
    result = await db.execute(select(Addon).order_by(Addon.name))
    return result.scalars().all()


@router.post("", response_model=AddonResponse, status_code=status.HTTP_201_CREATED)
async def create_addon(
    addon_data: AddonCreate,
    user: Annotated[User, Depends(require_manage_addons)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Create an addon."""
    addon = Addon(**addon_data.model_dump())
    db.add(addon)
    await db.commit()
    await db.refresh(addon)
    return addon


@router.put("/{addon_id}", response_model=AddonResponse)
async def update_addon(
    addon_id: str,
    addon_data: AddonUpdate,
    user: Annotated[User, Depends(require_manage_addons)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Replace an addon's name, description and color."""
    addon = await _get_addon_or_404(db, addon_id)
    for field, value in addon_data.model_dump().items():
        setattr(addon, field, value)
    await db.commit()
    await db.refresh(addon)
    return addon


@router.delete("/{addon_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_addon(
    addon_id: str,
    user: Annotated[User, Depends(require_manage_addons)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Delete an addon; it is detached from every service point."""
    addon = await _get_addon_or_404(db, addon_id)
    await db.delete(addon)
    await db.commit()
