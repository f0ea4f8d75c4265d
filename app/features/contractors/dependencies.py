"""
Contractor lookup, access checks and reference validation.
"""
from typing import Iterable

from fastapi import HTTPException, status
from sqlalchemy import select, and_, or_
from sqlalchemy.ext.asyncio import AsyncSession

from app.features.agreements.models import Agreement
from app.features.cities.models import City
from app.features.contractors.models import Contractor
from app.features.permissions.dependencies import has_permission
from app.features.permissions.models import Permission
from app.features.permissions.policy import Action, can_perform, can_view
from app.features.users.models import User
from app.utils import get_logger


log = get_logger(__name__)


async def load_contractor(db: AsyncSession, contractor_id: str) -> Contractor | None:
    """Load a contractor with fresh relationship state, overwriting anything in the session."""
    result = await db.execute(
        select(Contractor)
        .where(Contractor.id == contractor_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_contractor_or_404(db: AsyncSession, contractor_id: str) -> Contractor:
    """
    Get contractor by ID or raise 404.

    Raises:
        HTTPException: 404 if contractor not found
    """
    contractor = await load_contractor(db, contractor_id)
    if contractor is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Contractor not found"
        )
    return contractor


def ensure_can(user: User, contractor: Contractor, action: Action, detail: str = "Access denied") -> None:
    """Raise 403 unless the ownership-aware policy allows `action` on `contractor`."""
    if not can_perform(user.permission_set, user.id, contractor, action):
        log.info("User %s denied %s on contractor %s", user.id, action.value, contractor.id)
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


def ensure_can_view(user: User, contractor: Contractor) -> None:
    if not can_view(user.permission_set, user.id, contractor, contractor.is_hidden):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")


def visibility_filters(user: User) -> list:
    """
    WHERE clauses restricting a contractor listing to what `user` may see.

    Hidden contractors need HIDE_ALL_CLIENTS, or HIDE_OWN_CLIENT for owned ones.
    Without VIEW_ALL_CLIENTS only owned contractors are listed.
    """
    owned = or_(Contractor.manager_id == user.id, Contractor.created_by_id == user.id)
    permissions = user.permission_set
    filters = []

    if not has_permission(permissions, Permission.HIDE_ALL_CLIENTS):
        if has_permission(permissions, Permission.HIDE_OWN_CLIENT):
            filters.append(or_(Contractor.is_hidden == False, and_(Contractor.is_hidden == True, owned)))  # noqa: E712
        else:
            filters.append(Contractor.is_hidden == False)  # noqa: E712

    if not has_permission(permissions, Permission.VIEW_ALL_CLIENTS):
        filters.append(owned)

    return filters


async def validate_references(db: AsyncSession, data: dict) -> None:
    """Reject unknown city, agreement or manager ids with 400."""
    checks = (
        ("primary_city_id", City, "City not found"),
        ("agreement_id", Agreement, "Agreement not found"),
        ("manager_id", User, "Manager not found"),
    )
    for key, model, message in checks:
        value = data.get(key)
        if value is not None and await db.get(model, value) is None:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=message)


def apply_fields(contractor: Contractor, data: dict, fields: Iterable[str] | None = None) -> list[str]:
    """Set the given fields on the contractor; returns the names actually changed."""
    changed = []
    for key, value in data.items():
        if fields is not None and key not in fields:
            continue
        if getattr(contractor, key) != value:
            setattr(contractor, key, value)
            changed.append(key)
    return changed
