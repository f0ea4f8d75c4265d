"""
Suggestion API routes.

Users holding SUGGEST_EDITS propose change-sets; reviewers with edit rights on
the contractor approve or reject them.
"""
from typing import Annotated
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import select, func, and_, or_, true
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.features.users.models import User
from app.features.users.dependencies import get_current_user
from app.features.permissions.dependencies import has_permission, require_any_permission
from app.features.permissions.models import Permission
from app.features.permissions.policy import Action, can_perform
from app.features.contractors.models import Contractor
from app.features.contractors.dependencies import get_contractor_or_404, ensure_can
from app.features.suggestions.changeset import ChangeSet, ChangeSetError
from app.features.suggestions.models import ContractorSuggestion, SuggestionStatus
from app.features.suggestions.schemas import (
    SuggestionCount,
    SuggestionCreate,
    SuggestionResponse,
    SuggestionReview,
)
from app.features.suggestions.workflow import (
    approve_suggestion,
    create_suggestion,
    load_suggestion,
    needs_resolution,
    reject_suggestion,
)


router = APIRouter(tags=["suggestions"])

require_suggest = require_any_permission([Permission.ADMIN, Permission.SUGGEST_EDITS])


def _review_scope(user: User):
    """
    WHERE clause for the suggestions `user` may review, or None if they may review none.

    EDIT_ALL_CLIENTS (or ADMIN) covers every contractor, EDIT_OWN_CLIENT only owned ones.
    """
    permissions = user.permission_set
    if has_permission(permissions, Permission.EDIT_ALL_CLIENTS):
        return true()
    if has_permission(permissions, Permission.EDIT_OWN_CLIENT):
        return or_(Contractor.manager_id == user.id, Contractor.created_by_id == user.id)
    return None


async def _get_suggestion_or_404(db: AsyncSession, suggestion_id: str) -> ContractorSuggestion:
    suggestion = await load_suggestion(db, suggestion_id)
    if suggestion is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Suggestion not found")
    return suggestion


@router.get("", response_model=list[SuggestionResponse])
async def list_suggestions(
    user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
    status_filter: Annotated[SuggestionStatus | None, Query(alias="status")] = None,
    mine: bool = False,
    skip: int = 0,
    limit: int = 100
):
    """
    List suggestions the user can review plus the ones they authored.

    `mine=true` restricts the list to the user's own suggestions.
    """
    query = select(ContractorSuggestion).join(
        Contractor, ContractorSuggestion.contractor_id == Contractor.id
    )

    authored = ContractorSuggestion.author_id == user.id
    scope = _review_scope(user)
    if mine or scope is None:
        query = query.where(authored)
    else:
        query = query.where(or_(authored, scope))

    if status_filter is not None:
        query = query.where(ContractorSuggestion.status == status_filter.value)

    query = query.order_by(ContractorSuggestion.created_at.desc()).offset(skip).limit(limit)
    result = await db.execute(query)
    return result.scalars().all()


@router.post("", response_model=SuggestionResponse, status_code=status.HTTP_201_CREATED)
async def create_suggestion_route(
    suggestion_data: SuggestionCreate,
    user: Annotated[User, Depends(require_suggest)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Propose a change-set for a contractor. Ownership is not required."""
    contractor = await get_contractor_or_404(db, suggestion_data.contractor_id)
    try:
        changeset = ChangeSet.parse(suggestion_data.changes)
    except ChangeSetError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    return await create_suggestion(db, contractor, user, changeset, suggestion_data.comment)


@router.get("/count", response_model=SuggestionCount)
async def count_suggestions(
    user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Pending suggestions awaiting the user's review and the number of contractors they manage."""
    pending = 0
    scope = _review_scope(user)
    if scope is not None:
        pending = await db.scalar(
            select(func.count(ContractorSuggestion.id))
            .join(Contractor, ContractorSuggestion.contractor_id == Contractor.id)
            .where(and_(ContractorSuggestion.status == SuggestionStatus.PENDING.value, scope))
        )

    managed = await db.scalar(
        select(func.count(Contractor.id)).where(Contractor.manager_id == user.id)
    )
    return SuggestionCount(count=pending or 0, managed_clients_count=managed or 0)


@router.get("/{suggestion_id}", response_model=SuggestionResponse)
async def get_suggestion(
    suggestion_id: str,
    user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Get a suggestion (its author or a reviewer of the contractor)."""
    suggestion = await _get_suggestion_or_404(db, suggestion_id)
    if suggestion.author_id != user.id and not can_perform(
        user.permission_set, user.id, suggestion.contractor, Action.EDIT
    ):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")
    return suggestion


@router.put("/{suggestion_id}", response_model=SuggestionResponse)
async def review_suggestion(
    suggestion_id: str,
    review: SuggestionReview,
    user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """
    Approve or reject a suggestion.

    Repeating the decision already taken returns the suggestion unchanged;
    asking for the opposite decision is a 409.
    """
    suggestion = await _get_suggestion_or_404(db, suggestion_id)
    ensure_can(user, suggestion.contractor, Action.EDIT, "You cannot review suggestions for this client")

    if needs_resolution(suggestion.status, review.action):
        if review.action == "approve":
            resolved = await approve_suggestion(
                db, suggestion, user, review.accepted_fields, review.review_comment
            )
        else:
            resolved = await reject_suggestion(db, suggestion, user, review.review_comment)

        if not resolved:
            # another reviewer got there first
            current = await _get_suggestion_or_404(db, suggestion_id)
            needs_resolution(current.status, review.action)

    return await _get_suggestion_or_404(db, suggestion_id)
