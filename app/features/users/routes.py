"""
User feature routes.
"""
from typing import Annotated
from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core import config
from app.core.database.engine import get_db
from app.core.limiter import limiter
from app.features.users.models import User
from app.features.users.schemas import (
    LoginRequest,
    TokenResponse,
    UserCreate,
    UserResponse,
    UserUpdate,
    UserWithCounts,
)
from app.features.users.dependencies import get_current_user
from app.features.users.auth import create_access_token, get_password_hash, verify_password
from app.features.permissions.dependencies import is_admin, require_admin, require_any_permission
from app.features.permissions.models import Permission
from app.features.roles.models import Role
from app.features.contractors.models import Contractor
from app.utils import get_logger


log = get_logger(__name__)
router = APIRouter(tags=["users"])


async def _get_user_or_404(db: AsyncSession, user_id: str) -> User:
    user = await db.get(User, user_id)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found"
        )
    return user


def _require_admin_or_self(current_user: User, user_id: str) -> None:
    if not is_admin(current_user) and current_user.id != user_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")


@router.post("/login", response_model=TokenResponse)
@limiter.limit(config.LOGIN_RATE_LIMIT)
async def login(
    request: Request,
    credentials: LoginRequest,
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Exchange login and password for a bearer token."""
    user = await db.scalar(select(User).where(User.login == credentials.login))
    if user is None or not verify_password(credentials.password, user.password_hash):
        log.info("Failed login for %r", credentials.login)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid login or password",
        )
    return TokenResponse(access_token=create_access_token(user.id))


@router.get("/me", response_model=UserResponse)
async def get_current_user_profile(
    user: Annotated[User, Depends(get_current_user)]
):
    """Get current authenticated user's profile."""
    return user


@router.get("", response_model=list[UserWithCounts])
async def list_users(
    admin: Annotated[User, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """List all users with the number of contractors they manage and created (admin only)."""
    managed = (
        select(func.count(Contractor.id))
        .where(Contractor.manager_id == User.id)
        .correlate(User)
        .scalar_subquery()
    )
    created = (
        select(func.count(Contractor.id))
        .where(Contractor.created_by_id == User.id)
        .correlate(User)
        .scalar_subquery()
    )
    result = await db.execute(
        select(User, managed, created).order_by(User.created_at.desc())
    )
    return [
        UserWithCounts(
            **UserResponse.model_validate(user).model_dump(),
            managed_contractors=managed_count,
            created_contractors=created_count,
        )
        for user, managed_count, created_count in result.all()
    ]


@router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
    user_data: UserCreate,
    current_user: Annotated[User, Depends(require_any_permission([Permission.ADMIN, Permission.CREATE_USER]))],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """
    Create a user.

    Only administrators may grant permissions explicitly. When no permissions are
    given the default role's permissions are copied onto the new user.
    """
    if user_data.permissions and not is_admin(current_user):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only administrators can grant permissions"
        )

    existing = await db.scalar(select(User).where(User.login == user_data.login))
    if existing:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="User with this login already exists"
        )

    permissions = [p.value for p in user_data.permissions]
    if not permissions:
        default_role = await db.scalar(select(Role).where(Role.is_default == True))  # noqa: E712
        if default_role is not None:
            permissions = list(default_role.permissions)

    user = User(
        login=user_data.login,
        name=user_data.name,
        password_hash=get_password_hash(user_data.password),
        permissions=permissions,
    )
    db.add(user)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="User with this login already exists"
        )
    await db.refresh(user)
    log.info("User %s created %s", current_user.id, user.id)
    return user


@router.get("/{user_id}", response_model=UserResponse)
async def get_user_by_id(
    user_id: str,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Get a user profile (admin or self)."""
    _require_admin_or_self(current_user, user_id)
    return await _get_user_or_404(db, user_id)


@router.put("/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: str,
    update_data: UserUpdate,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Update name, password or avatar (admin or self); permissions (admin only)."""
    _require_admin_or_self(current_user, user_id)

    if update_data.permissions is not None and not is_admin(current_user):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only administrators can change permissions"
        )

    user = await _get_user_or_404(db, user_id)

    if update_data.name is not None:
        user.name = update_data.name
    if update_data.avatar is not None:
        user.avatar = update_data.avatar
    if update_data.password is not None:
        user.password_hash = get_password_hash(update_data.password)
    if update_data.permissions is not None:
        user.permissions = [p.value for p in update_data.permissions]

    await db.commit()
    await db.refresh(user)
    return user


@router.delete("/{user_id}")
async def delete_user(
    user_id: str,
    admin: Annotated[User, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Delete a user account (admin only)."""
    # Prevent self-deletion
    if user_id == admin.id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot delete your own account"
        )

    user = await _get_user_or_404(db, user_id)
    await db.delete(user)
    await db.commit()
    log.info("User %s deleted %s", admin.id, user_id)

    return {"success": True}
