"""
Service point API routes.

Mutations, including attachments, are authorized with the edit permissions
of the parent contractor; reads need view rights on it.
"""
from typing import Annotated
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.features.users.models import User
from app.features.users.dependencies import get_current_user
from app.features.contractors.dependencies import ensure_can, ensure_can_view, get_contractor_or_404
from app.features.contractors.models import file_type_for
from app.features.permissions.policy import Action
from app.features.service_points.models import ServicePoint, ServicePointFile
from app.features.service_points.schemas import (
    ServicePointFileCreate,
    ServicePointFileResponse,
    ServicePointResponse,
    ServicePointUpdate,
)
from app.features.service_points.dependencies import apply_service_point_update, load_service_point
from app.utils import get_logger


log = get_logger(__name__)
router = APIRouter(tags=["service-points"])


async def _get_service_point_or_404(db: AsyncSession, service_point_id: str) -> ServicePoint:
    service_point = await load_service_point(db, service_point_id)
    if service_point is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Service point not found")
    return service_point


@router.get("/{service_point_id}", response_model=ServicePointResponse)
async def get_service_point(
    service_point_id: str,
    user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    service_point = await _get_service_point_or_404(db, service_point_id)
    contractor = await get_contractor_or_404(db, service_point.contractor_id)
    ensure_can_view(user, contractor)
    return service_point


@router.put("/{service_point_id}", response_model=ServicePointResponse)
async def update_service_point(
    service_point_id: str,
    update_data: ServicePointUpdate,
    user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """
    Partially update a service point.

    Raises:
        HTTPException: 400 if fronts_on_service would exceed fronts_count
    """
    service_point = await _get_service_point_or_404(db, service_point_id)
    contractor = await get_contractor_or_404(db, service_point.contractor_id)
    ensure_can(user, contractor, Action.EDIT)

    await apply_service_point_update(db, service_point, update_data)
    await db.commit()
    return await load_service_point(db, service_point_id)


@router.delete("/{service_point_id}")
async def delete_service_point(
    service_point_id: str,
    user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    service_point = await _get_service_point_or_404(db, service_point_id)
    contractor = await get_contractor_or_404(db, service_point.contractor_id)
    ensure_can(user, contractor, Action.EDIT)

    await db.delete(service_point)
    await db.commit()
    log.info("User %s deleted service point %s of contractor %s", user.id, service_point_id, contractor.id)
    return {"success": True}


@router.get("/{service_point_id}/files", response_model=list[ServicePointFileResponse])
async def list_service_point_files(
    service_point_id: str,
    user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    service_point = await _get_service_point_or_404(db, service_point_id)
    contractor = await get_contractor_or_404(db, service_point.contractor_id)
    ensure_can_view(user, contractor)

    result = await db.execute(
        select(ServicePointFile)
        .where(ServicePointFile.service_point_id == service_point_id)
        .order_by(ServicePointFile.created_at)
    )
    return result.scalars().all()


@router.post(
    "/{service_point_id}/files",
    response_model=list[ServicePointFileResponse],
    status_code=status.HTTP_201_CREATED,
)
async def add_service_point_files(
    service_point_id: str,
    files: list[ServicePointFileCreate],
    user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Register uploaded files for a service point."""
    if not files:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No files provided")

    service_point = await _get_service_point_or_404(db, service_point_id)
    contractor = await get_contractor_or_404(db, service_point.contractor_id)
    ensure_can(user, contractor, Action.EDIT)

    created = [
        ServicePointFile(
            service_point_id=service_point_id,
            uploaded_by_id=user.id,
            file_type=file_type_for(file_data.mime_type),
            **file_data.model_dump(),
        )
        for file_data in files
    ]
    db.add_all(created)
    await db.commit()
    for point_file in created:
        await db.refresh(point_file)
    log.info("User %s attached %d file(s) to service point %s", user.id, len(created), service_point_id)
    return created


@router.delete("/{service_point_id}/files/{file_id}")
async def delete_service_point_file(
    service_point_id: str,
    file_id: str,
    user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    service_point = await _get_service_point_or_404(db, service_point_id)
    contractor = await get_contractor_or_404(db, service_point.contractor_id)
    ensure_can(user, contractor, Action.EDIT)

    point_file = await db.get(ServicePointFile, file_id)
    if point_file is None or point_file.service_point_id != service_point_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="File not found")

    await db.delete(point_file)
    await db.commit()
    return {"success": True}
