"""
Permission checking utilities and dependencies for RBAC.

Implements:
- The permission evaluator (pure function)
- FastAPI dependencies for route protection
"""
from collections.abc import Collection, Iterable
from typing import Union

from fastapi import Depends, HTTPException, status

from app.features.users.dependencies import get_current_user
from app.features.users.models import User
from app.features.permissions.models import Permission
from app.utils import get_logger


log = get_logger(__name__)


RequiredPermission = Union[Permission, str, Collection[Union[Permission, str]]]


def _tag(value: Union[Permission, str]) -> str:
    return value.value if isinstance(value, Permission) else value


# ============================================================================
# Permission Evaluator
# ============================================================================

def has_permission(user_permissions: Iterable[str], required: RequiredPermission) -> bool:
    """
    Check whether a permission set satisfies a requirement.

    Args:
        user_permissions: Tags held by the user
        required: A single tag, or a collection of alternatives (any one is enough)

    Returns:
        True if the user holds ADMIN, or holds the tag / at least one of the alternatives.
        Unknown tags simply evaluate to False.
    """
    held = user_permissions if isinstance(user_permissions, (set, frozenset)) else set(user_permissions)

    if Permission.ADMIN.value in held:
        return True

    if isinstance(required, (str, Permission)):
        return _tag(required) in held

    return any(_tag(p) in held for p in required)


def is_admin(user: User) -> bool:
    return Permission.ADMIN.value in user.permission_set


# ============================================================================
# FastAPI Dependencies
# ============================================================================

def require_permission(permission: Union[Permission, str]):
    """
    FastAPI dependency to require a specific permission.

    Usage:
        @router.post("/cities")
        async def create_city(
            user: User = Depends(require_permission(Permission.MANAGE_CITIES))
        ):
            ...

    Returns:
        Dependency function that returns the current user if they have permission

    Raises:
        HTTPException: 403 if user doesn't have permission
    """
    async def permission_dependency(current_user: User = Depends(get_current_user)) -> User:
        if not has_permission(current_user.permission_set, permission):
            log.info("User %s denied: requires %s", current_user.id, _tag(permission))
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Access denied"
            )
        return current_user

    return permission_dependency


def require_any_permission(permissions: Collection[Union[Permission, str]]):
    """
    FastAPI dependency to require ANY of the specified permissions.

    Usage:
        @router.post("/users")
        async def create_user(
            user: User = Depends(require_any_permission([Permission.ADMIN, Permission.CREATE_USER]))
        ):
            pass
    """
    async def permission_dependency(current_user: User = Depends(get_current_user)) -> User:
        if not has_permission(current_user.permission_set, permissions):
            log.info(
                "User %s denied: requires one of %s",
                current_user.id, [_tag(p) for p in permissions]
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Access denied"
            )
        return current_user

    return permission_dependency


require_admin = require_permission(Permission.ADMIN)
