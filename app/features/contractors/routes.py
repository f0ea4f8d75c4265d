"""
Contractor API routes.

Edits are checked with the ownership-aware policy. A user without edit rights
but holding SUGGEST_EDITS gets a PENDING suggestion (201) instead of a write.
"""
from typing import Annotated
from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from sqlalchemy import select, or_
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.features.users.models import User
from app.features.users.dependencies import get_current_user
from app.features.permissions.dependencies import has_permission, require_any_permission
from app.features.permissions.models import Permission
from app.features.permissions.policy import Action, can_perform
from app.features.contractors.models import Contractor, ContractorFile, ContractorStatus, file_type_for
from app.features.contractors.schemas import (
    ContractorCreate,
    ContractorFileCreate,
    ContractorFileResponse,
    ContractorResponse,
    ContractorUpdate,
)
from app.features.contractors.dependencies import (
    apply_fields,
    ensure_can,
    ensure_can_view,
    get_contractor_or_404,
    load_contractor,
    validate_references,
    visibility_filters,
)
from app.features.service_points.dependencies import build_service_point, load_service_point
from app.features.service_points.schemas import ServicePointCreate, ServicePointResponse
from app.features.suggestions.changeset import ChangeSet, ChangeSetError
from app.features.suggestions.schemas import SuggestionResponse
from app.features.suggestions.workflow import create_suggestion
from app.utils import get_logger


log = get_logger(__name__)
router = APIRouter(tags=["contractors"])

require_create_client = require_any_permission([Permission.ADMIN, Permission.CREATE_CLIENT])


@router.get("", response_model=list[ContractorResponse])
async def list_contractors(
    user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
    search: str | None = None,
    status_filter: Annotated[ContractorStatus | None, Query(alias="status")] = None,
    city_id: str | None = None,
    manager_id: str | None = None,
    my_clients: bool = False,
    is_hidden: bool | None = None,
    skip: int = 0,
    limit: int = 100
):
    """
    List contractors visible to the user, most recently updated first.

    Parameters:
        search: Substring of the name or INN
        status: Contractor status
        city_id: Primary city
        manager_id: Assigned manager
        my_clients: Only contractors managed by the current user
        is_hidden: Filter by visibility flag (hidden ones still need the hide permissions)
    """
    query = select(Contractor)

    if search:
        pattern = f"%{search}%"
        query = query.where(or_(Contractor.name.ilike(pattern), Contractor.inn.ilike(pattern)))
    if status_filter is not None:
        query = query.where(Contractor.status == status_filter.value)
    if city_id:
        query = query.where(Contractor.primary_city_id == city_id)
    if my_clients:
        query = query.where(Contractor.manager_id == user.id)
    elif manager_id:
        query = query.where(Contractor.manager_id == manager_id)
    if is_hidden is not None:
        query = query.where(Contractor.is_hidden == is_hidden)

    for clause in visibility_filters(user):
        query = query.where(clause)

    query = query.order_by(Contractor.updated_at.desc()).offset(skip).limit(limit)
    result = await db.execute(query)
    return [ContractorResponse.from_contractor(c) for c in result.scalars().all()]


@router.post("", response_model=ContractorResponse, status_code=status.HTTP_201_CREATED)
async def create_contractor(
    contractor_data: ContractorCreate,
    user: Annotated[User, Depends(require_create_client)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Create a contractor with its service points; the caller is recorded as creator."""
    data = contractor_data.model_dump(exclude={"service_points"})
    data["status"] = contractor_data.status.value
    await validate_references(db, data)

    contractor = Contractor(**data, created_by_id=user.id)
    db.add(contractor)
    await db.flush()

    for point in contractor_data.service_points:
        await build_service_point(db, contractor.id, point)

    await db.commit()
    log.info("User %s created contractor %s", user.id, contractor.id)
    return ContractorResponse.from_contractor(await load_contractor(db, contractor.id))


@router.get("/{contractor_id}", response_model=ContractorResponse)
async def get_contractor(
    contractor_id: str,
    user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    contractor = await get_contractor_or_404(db, contractor_id)
    ensure_can_view(user, contractor)
    return ContractorResponse.from_contractor(contractor)


@router.put(
    "/{contractor_id}",
    response_model=ContractorResponse,
    responses={201: {"model": SuggestionResponse, "description": "Suggestion created instead of an edit"}},
)
async def update_contractor(
    contractor_id: str,
    update_data: ContractorUpdate,
    user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """
    Update a contractor.

    With edit rights the change is applied (visibility additionally needs the
    hide permissions). Without them, SUGGEST_EDITS turns the body into a
    PENDING suggestion and the contractor stays unchanged.

    Raises:
        HTTPException: 409 if `version` is stale, 403 if neither editing nor
        suggesting is allowed
    """
    contractor = await get_contractor_or_404(db, contractor_id)

    if update_data.version is not None and update_data.version != contractor.version:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Client was modified by another user"
        )

    data = update_data.changed_fields()
    visibility_change = "is_hidden" in data and data["is_hidden"] != contractor.is_hidden
    permissions = user.permission_set

    if can_perform(permissions, user.id, contractor, Action.EDIT):
        if visibility_change:
            ensure_can(user, contractor, Action.HIDE, "You cannot change visibility of this client")
        await validate_references(db, data)
        changed = apply_fields(contractor, data)
        if changed:
            await db.commit()
            log.info("User %s updated contractor %s: %s", user.id, contractor_id, ", ".join(changed))
        return ContractorResponse.from_contractor(await load_contractor(db, contractor_id))

    if has_permission(permissions, Permission.SUGGEST_EDITS):
        if visibility_change:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="You cannot change visibility of this client"
            )
        data.pop("is_hidden", None)
        await validate_references(db, data)
        old = {key: getattr(contractor, key) for key in data}
        try:
            changeset = ChangeSet.from_diff(old, data)
        except ChangeSetError as e:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

        suggestion = await create_suggestion(db, contractor, user, changeset)
        return JSONResponse(
            status_code=status.HTTP_201_CREATED,
            content=jsonable_encoder(SuggestionResponse.model_validate(suggestion)),
        )

    log.info("User %s denied edit on contractor %s", user.id, contractor_id)
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")


@router.delete("/{contractor_id}")
async def delete_contractor(
    contractor_id: str,
    user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Delete a contractor with its service points, files and suggestions."""
    contractor = await get_contractor_or_404(db, contractor_id)
    ensure_can(user, contractor, Action.DELETE)

    await db.delete(contractor)
    await db.commit()
    log.info("User %s deleted contractor %s", user.id, contractor_id)
    return {"success": True}


@router.get("/{contractor_id}/files", response_model=list[ContractorFileResponse])
async def list_contractor_files(
    contractor_id: str,
    user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """List the contractor's files, excluding ones pending in a suggestion."""
    contractor = await get_contractor_or_404(db, contractor_id)
    ensure_can_view(user, contractor)

    result = await db.execute(
        select(ContractorFile)
        .where(ContractorFile.contractor_id == contractor_id, ContractorFile.is_pending == False)  # noqa: E712
        .order_by(ContractorFile.created_at)
    )
    return result.scalars().all()


@router.post(
    "/{contractor_id}/files",
    response_model=list[ContractorFileResponse],
    status_code=status.HTTP_201_CREATED,
)
async def add_contractor_files(
    contractor_id: str,
    files: list[ContractorFileCreate],
    user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """
    Register uploaded files for a contractor.

    Pending files (to be referenced from a suggestion) need SUGGEST_EDITS or
    edit rights; files attached directly need edit rights.
    """
    if not files:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No files provided")

    contractor = await get_contractor_or_404(db, contractor_id)
    can_edit = can_perform(user.permission_set, user.id, contractor, Action.EDIT)
    if any(not f.is_pending for f in files) and not can_edit:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")
    if not can_edit and not has_permission(user.permission_set, Permission.SUGGEST_EDITS):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")

    created = []
    for file_data in files:
        contractor_file = ContractorFile(
            contractor_id=contractor_id,
            uploaded_by_id=user.id,
            file_type=file_type_for(file_data.mime_type),
            **file_data.model_dump(),
        )
        db.add(contractor_file)
        created.append(contractor_file)

    await db.commit()
    for contractor_file in created:
        await db.refresh(contractor_file)
    return created


@router.delete("/{contractor_id}/files/{file_id}")
async def delete_contractor_file(
    contractor_id: str,
    file_id: str,
    user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    contractor = await get_contractor_or_404(db, contractor_id)
    ensure_can(user, contractor, Action.EDIT)

    contractor_file = await db.get(ContractorFile, file_id)
    if contractor_file is None or contractor_file.contractor_id != contractor_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="File not found")

    await db.delete(contractor_file)
    await db.commit()
    return {"success": True}


@router.get("/{contractor_id}/service-points", response_model=list[ServicePointResponse])
async def list_contractor_service_points(
    contractor_id: str,
    user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    contractor = await get_contractor_or_404(db, contractor_id)
    ensure_can_view(user, contractor)
    return contractor.service_points


@router.post(
    "/{contractor_id}/service-points",
    response_model=ServicePointResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_contractor_service_point(
    contractor_id: str,
    point_data: ServicePointCreate,
    user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Add a service point to a contractor (edit rights on the contractor)."""
    contractor = await get_contractor_or_404(db, contractor_id)
    ensure_can(user, contractor, Action.EDIT)

    service_point = await build_service_point(db, contractor_id, point_data)
    await db.commit()
    return await load_service_point(db, service_point.id)
