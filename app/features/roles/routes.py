"""
Role management API routes.

Roles are permission templates. Writes are admin only; setting a role as the
default clears the flag on every other role in the same transaction.
"""
from typing import List
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.features.users.dependencies import get_current_user
from app.features.users.models import User
from app.features.permissions.dependencies import require_admin
from app.features.roles.models import Role
from app.features.roles.schemas import RoleCreate, RoleUpdate, RoleResponse
from app.utils import get_logger


log = get_logger(__name__)
router = APIRouter()


async def _clear_other_defaults(db: AsyncSession, keep_role_id: str) -> None:
    await db.execute(
        update(Role)
        .where(Role.is_default == True, Role.id != keep_role_id)  # noqa: E712
        .values(is_default=False)
    )


async def _get_role_or_404(db: AsyncSession, role_id: str) -> Role:
    role = await db.get(Role, role_id)
    if not role:
        raise HTTPException(status_code=404, detail="Role not found")
    return role


@router.get("", response_model=List[RoleResponse])
async def list_roles(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """List roles ordered by name."""
    result = await db.execute(select(Role).order_by(Role.name))
    return result.scalars().all()


@router.post("", response_model=RoleResponse, status_code=status.HTTP_201_CREATED)
async def create_role(
    role: RoleCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    """Create a new role (admin only)."""
    db_role = Role(
        name=role.name,
        description=role.description,
        color=role.color or None,
        is_default=role.is_default,
        permissions=[p.value for p in role.permissions],
    )
    db.add(db_role)
    try:
        await db.flush()
        if db_role.is_default:
            await _clear_other_defaults(db, db_role.id)
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Role with this name already exists"
        )
    await db.refresh(db_role)
    log.info("User %s created role %s", current_user.id, db_role.name)
    return db_role


@router.get("/{role_id}", response_model=RoleResponse)
async def get_role(
    role_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Get a specific role with its permissions."""
    return await _get_role_or_404(db, role_id)


@router.put("/{role_id}", response_model=RoleResponse)
async def update_role(
    role_id: str,
    role_update: RoleUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    """Update a role (admin only)."""
    db_role = await _get_role_or_404(db, role_id)

    update_data = role_update.model_dump(exclude_unset=True)
    if "permissions" in update_data and update_data["permissions"] is not None:
        update_data["permissions"] = [p.value for p in role_update.permissions]
    if "color" in update_data:
        update_data["color"] = update_data["color"] or None

    for key, value in update_data.items():
        if value is None and key in ("name", "permissions", "is_default"):
            continue
        setattr(db_role, key, value)

    try:
        if db_role.is_default:
            await _clear_other_defaults(db, db_role.id)
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Role with this name already exists"
        )
    await db.refresh(db_role)
    return db_role


@router.delete("/{role_id}")
async def delete_role(
    role_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    """Delete a role (admin only). Users keep the permissions copied from it."""
    db_role = await _get_role_or_404(db, role_id)
    await db.delete(db_role)
    await db.commit()
    log.info("User %s deleted role %s", current_user.id, role_id)
    return {"success": True}
