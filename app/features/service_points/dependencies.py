"""
Service point helpers shared by the contractor, service point and suggestion routes.
"""
from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.features.addons.models import Addon
from app.features.cities.models import City
from app.features.service_points.models import ServicePoint
from app.features.service_points.schemas import ServicePointCreate, ServicePointUpdate, check_fronts


async def get_addons_or_400(db: AsyncSession, addon_ids: list[str]) -> list[Addon]:
    if not addon_ids:
        return []
    unique_ids = list(dict.fromkeys(addon_ids))
    result = await db.execute(select(Addon).where(Addon.id.in_(unique_ids)))
    addons = result.scalars().all()
    if len(addons) != len(unique_ids):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Addon not found")
    return list(addons)


async def _validate_city(db: AsyncSession, city_id: str | None) -> None:
    if city_id is not None and await db.get(City, city_id) is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="City not found")


async def build_service_point(db: AsyncSession, contractor_id: str, data: ServicePointCreate) -> ServicePoint:
    """Create (but do not commit) a service point with its addons."""
    await _validate_city(db, data.city_id)
    service_point = ServicePoint(
        contractor_id=contractor_id,
        **data.model_dump(exclude={"addon_ids"}),
    )
    service_point.addons = await get_addons_or_400(db, data.addon_ids)
    db.add(service_point)
    return service_point


async def apply_service_point_update(
    db: AsyncSession,
    service_point: ServicePoint,
    data: ServicePointUpdate,
) -> None:
    """
    Apply a partial update to a service point.

    Raises:
        HTTPException: 400 when the resulting fronts would be inconsistent or a
        referenced city/addon does not exist
    """
    update_data = data.model_dump(exclude_unset=True)
    addon_ids = update_data.pop("addon_ids", None)

    for key in ("name", "fronts_count", "fronts_on_service"):
        if key in update_data and update_data[key] is None:
            update_data.pop(key)

    if "city_id" in update_data:
        await _validate_city(db, update_data["city_id"])

    try:
        check_fronts(
            update_data.get("fronts_count", service_point.fronts_count),
            update_data.get("fronts_on_service", service_point.fronts_on_service),
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    for key, value in update_data.items():
        setattr(service_point, key, value)

    if addon_ids is not None:
        service_point.addons = await get_addons_or_400(db, addon_ids)


async def load_service_point(db: AsyncSession, service_point_id: str) -> ServicePoint | None:
    result = await db.execute(
        select(ServicePoint)
        .where(ServicePoint.id == service_point_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()
