"""
City API routes.

Deleting a city that is still referenced fails unless `force=true`, in which
case contractor and service point references are cleared first.
"""
from typing import Annotated
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select, update, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.features.users.models import User
from app.features.users.dependencies import get_current_user
from app.features.permissions.dependencies import require_permission
from app.features.permissions.models import Permission
from app.features.cities.models import City
from app.features.cities.schemas import CityCreate, CityUpdate, CityResponse
from app.features.contractors.models import Contractor
from app.features.service_points.models import ServicePoint
from app.utils import get_logger


log = get_logger(__name__)
router = APIRouter(tags=["cities"])

require_manage_cities = require_permission(Permission.MANAGE_CITIES)


async def _get_city_or_404(db: AsyncSession, city_id: str) -> City:
    city = await db.get(City, city_id)
    if city is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="City not found")
    return city


@router.get("", response_model=list[CityResponse])
async def list_cities(
    user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """List cities ordered by name."""
    result = await db.execute(select(City).order_by(City.name))
    return result.scalars().all()


@router.post("", response_model=CityResponse, status_code=status.HTTP_201_CREATED)
async def create_city(
    city_data: CityCreate,
    user: Annotated[User, Depends(require_manage_cities)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Create a city."""
    city = City(name=city_data.name)
    db.add(city)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="City already exists")
    await db.refresh(city)
    return city


@router.put("/{city_id}", response_model=CityResponse)
async def update_city(
    city_id: str,
    city_data: CityUpdate,
    user: Annotated[User, Depends(require_manage_cities)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Rename a city."""
    city = await _get_city_or_404(db, city_id)
    city.name = city_data.name
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="City already exists")
    await db.refresh(city)
    return city


@router.delete("/{city_id}")
async def delete_city(
    city_id: str,
    user: Annotated[User, Depends(require_manage_cities)],
    db: Annotated[AsyncSession, Depends(get_db)],
    force: bool = False
):
    """Delete a city; `force=true` clears references first."""
    city = await _get_city_or_404(db, city_id)

    contractor_refs = await db.scalar(
        select(func.count(Contractor.id)).where(Contractor.primary_city_id == city_id)
    )
    point_refs = await db.scalar(
        select(func.count(ServicePoint.id)).where(ServicePoint.city_id == city_id)
    )

    if contractor_refs or point_refs:
        if not force:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Cannot delete a city used by clients"
            )
        await db.execute(
            update(Contractor)
            .where(Contractor.primary_city_id == city_id)
            .values(primary_city_id=None)
            .execution_options(synchronize_session=False)
        )
        await db.execute(
            update(ServicePoint)
            .where(ServicePoint.city_id == city_id)
            .values(city_id=None)
            .execution_options(synchronize_session=False)
        )
        log.info(
            "User %s force-deleting city %s (%d contractors, %d service points)",
            user.id, city_id, contractor_refs, point_refs
        )

    await db.delete(city)
    await db.commit()
    return {"success": True}
