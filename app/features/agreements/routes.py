"""
Agreement API routes.
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
from app.features.agreements.models import Agreement
from app.features.agreements.schemas import AgreementCreate, AgreementUpdate, AgreementResponse
from app.features.contractors.models import Contractor
from app.utils import get_logger


log = get_logger(__name__)
router = APIRouter(tags=["agreements"])

require_manage_agreements = require_permission(Permission.MANAGE_AGREEMENTS)


async def _get_agreement_or_404(db: AsyncSession, agreement_id: str) -> Agreement:
    agreement = await db.get(Agreement, agreement_id)
    if agreement is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Agreement not found")
    return agreement


@router.get("", response_model=list[AgreementResponse])
async def list_agreements(
    user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """List agreements ordered by name."""
    result = await db.execute(select(Agreement).order_by(Agreement.name))
    return result.scalars().all()


@router.post("", response_model=AgreementResponse, status_code=status.HTTP_201_CREATED)
async def create_agreement(
    agreement_data: AgreementCreate,
    user: Annotated[User, Depends(require_manage_agreements)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    agreement = Agreement(name=agreement_data.name)
    db.add(agreement)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Agreement already exists")
    await db.refresh(agreement)
    return agreement


@router.put("/{agreement_id}", response_model=AgreementResponse)
async def update_agreement(
    agreement_id: str,
    agreement_data: AgreementUpdate,
    user: Annotated[User, Depends(require_manage_agreements)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    agreement = await _get_agreement_or_404(db, agreement_id)
    agreement.name = agreement_data.name
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Agreement already exists")
    await db.refresh(agreement)
    return agreement


@router.delete("/{agreement_id}")
async def delete_agreement(
    agreement_id: str,
    user: Annotated[User, Depends(require_manage_agreements)],
    db: Annotated[AsyncSession, Depends(get_db)],
    force: bool = False
):
    """Delete an agreement; `force=true` detaches it from contractors first."""
    agreement = await _get_agreement_or_404(db, agreement_id)

    refs = await db.scalar(
        select(func.count(Contractor.id)).where(Contractor.agreement_id == agreement_id)
    )
    if refs:
        if not force:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Cannot delete an agreement used by clients"
            )
        await db.execute(
            update(Contractor)
            .where(Contractor.agreement_id == agreement_id)
            .values(agreement_id=None)
            .execution_options(synchronize_session=False)
        )
        log.info("User %s force-deleting agreement %s (%d contractors)", user.id, agreement_id, refs)

    await db.delete(agreement)
    await db.commit()
    return {"success": True}
