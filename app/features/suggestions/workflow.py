"""
Suggestion workflow: creation, approval (apply) and rejection.

Review is guarded by a conditional UPDATE on `status = 'PENDING'`, so two
reviewers racing on the same suggestion cannot both resolve it. Approval claims
the suggestion and applies its changes in one transaction; any failure rolls
both back and the suggestion stays PENDING.
"""
from datetime import datetime, timezone
from typing import Iterable, Literal, Optional

from fastapi import HTTPException, status
from pydantic import ValidationError
from sqlalchemy import select, update, delete, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.features.contractors.dependencies import apply_fields, load_contractor, validate_references
from app.features.contractors.models import Contractor, ContractorFile
from app.features.contractors.schemas import ContractorUpdate
from app.features.service_points.dependencies import apply_service_point_update
from app.features.service_points.schemas import ServicePointUpdate
from app.features.suggestions.changeset import ChangeSet, ChangeSetError, FILES_KEY, SERVICE_POINTS_KEY
from app.features.suggestions.models import ContractorSuggestion, SuggestionStatus
from app.features.users.models import User
from app.utils import get_logger


log = get_logger(__name__)

ReviewAction = Literal["approve", "reject"]

_TARGET_STATUS = {
    "approve": SuggestionStatus.APPROVED,
    "reject": SuggestionStatus.REJECTED,
}


def needs_resolution(current_status: str, action: ReviewAction) -> bool:
    """
    Decide what a review request does to a suggestion in `current_status`.

    Returns:
        True if the suggestion is PENDING and must be resolved now; False if it
        already reached the requested terminal state (a repeat is a no-op).

    Raises:
        HTTPException: 409 if it already reached the other terminal state
    """
    target = _TARGET_STATUS[action]
    if current_status == SuggestionStatus.PENDING.value:
        return True
    if current_status == target.value:
        return False
    raise HTTPException(
        status_code=status.HTTP_409_CONFLICT,
        detail=f"Suggestion has already been {current_status.lower()}"
    )


def _validation_message(exc: ValidationError) -> str:
    first = exc.errors()[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    return f"{location}: {first.get('msg')}" if location else str(first.get("msg"))


async def load_suggestion(db: AsyncSession, suggestion_id: str) -> Optional[ContractorSuggestion]:
    result = await db.execute(
        select(ContractorSuggestion)
        .where(ContractorSuggestion.id == suggestion_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def create_suggestion(
    db: AsyncSession,
    contractor: Contractor,
    author: User,
    changeset: ChangeSet,
    comment: Optional[str] = None,
) -> ContractorSuggestion:
    """
    Store a PENDING suggestion and link the files it adds.

    Added files must be pending uploads of the author on this contractor that no
    other suggestion has claimed. The author's remaining unlinked pending
    uploads on the contractor are dropped.

    Raises:
        HTTPException: 400 if an added file id is not such an upload
    """
    added = changeset.added_file_ids
    linkable = (
        ContractorFile.contractor_id == contractor.id,
        ContractorFile.uploaded_by_id == author.id,
        ContractorFile.is_pending == True,  # noqa: E712
        ContractorFile.suggestion_id.is_(None),
    )
    if added:
        result = await db.execute(
            select(func.count()).select_from(ContractorFile).where(ContractorFile.id.in_(added), *linkable)
        )
        if result.scalar_one() != len(set(added)):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Added files must be your pending uploads for this client"
            )

    suggestion = ContractorSuggestion(
        contractor_id=contractor.id,
        author_id=author.id,
        changes=changeset.to_payload(),
        comment=comment,
        status=SuggestionStatus.PENDING.value,
    )
    db.add(suggestion)
    await db.flush()

    if added:
        await db.execute(
            update(ContractorFile)
            .where(ContractorFile.id.in_(added), *linkable)
            .values(suggestion_id=suggestion.id)
            .execution_options(synchronize_session=False)
        )
    await db.execute(
        delete(ContractorFile)
        .where(*linkable)
        .execution_options(synchronize_session=False)
    )

    await db.commit()
    log.info("User %s suggested changes %s for contractor %s", author.id, suggestion.id, contractor.id)
    return await load_suggestion(db, suggestion.id)


async def _claim(
    db: AsyncSession,
    suggestion: ContractorSuggestion,
    reviewer: User,
    target: SuggestionStatus,
    review_comment: Optional[str],
) -> bool:
    result = await db.execute(
        update(ContractorSuggestion)
        .where(
            ContractorSuggestion.id == suggestion.id,
            ContractorSuggestion.status == SuggestionStatus.PENDING.value,
        )
        .values(
            status=target.value,
            reviewed_by_id=reviewer.id,
            reviewed_at=datetime.now(timezone.utc),
            review_comment=review_comment,
        )
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def _apply_fields(db: AsyncSession, contractor: Contractor, changeset: ChangeSet, accepts) -> None:
    proposed = {change.field: change.new for change in changeset.field_changes if accepts(change.field)}
    if not proposed:
        return
    try:
        validated = ContractorUpdate(**proposed)
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=_validation_message(e))
    data = validated.changed_fields()
    await validate_references(db, data)
    apply_fields(contractor, data)


async def _apply_service_points(db: AsyncSession, contractor: Contractor, changeset: ChangeSet) -> None:
    points = {sp.id: sp for sp in contractor.service_points}

    for change in changeset.service_point_changes:
        service_point = points.get(change.service_point_id)
        if service_point is None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Service point {change.service_point_id} not found"
            )
        try:
            data = ServicePointUpdate(**change.fields)
        except ValidationError as e:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=_validation_message(e))
        await apply_service_point_update(db, service_point, data)

    for service_point_id in changeset.removed_service_point_ids:
        service_point = points.get(service_point_id)
        # already gone: nothing left to delete
        if service_point is not None:
            await db.delete(service_point)


async def _discard_pending_files(db: AsyncSession, suggestion_id: str) -> None:
    await db.execute(
        delete(ContractorFile)
        .where(ContractorFile.suggestion_id == suggestion_id)
        .execution_options(synchronize_session=False)
    )


async def approve_suggestion(
    db: AsyncSession,
    suggestion: ContractorSuggestion,
    reviewer: User,
    accepted_fields: Optional[Iterable[str]] = None,
    review_comment: Optional[str] = None,
) -> bool:
    """
    Claim a PENDING suggestion as APPROVED and apply its accepted changes.

    `accepted_fields` limits what is applied (merge semantics: only those
    contractor fields are written; "files" and "service_points" select the
    attachment and service point parts). None means everything.

    Returns:
        False if another reviewer resolved the suggestion first; nothing is applied.
    """
    try:
        changeset = ChangeSet.parse(suggestion.changes)
    except ChangeSetError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    accepted = None
    if accepted_fields is not None:
        accepted = {"service_points" if name == "servicePoints" else name for name in accepted_fields}

    def accepts(name: str) -> bool:
        return accepted is None or name in accepted

    if not await _claim(db, suggestion, reviewer, SuggestionStatus.APPROVED, review_comment):
        return False

    contractor = await load_contractor(db, suggestion.contractor_id)

    await _apply_fields(db, contractor, changeset, accepts)

    if accepts(SERVICE_POINTS_KEY):
        await _apply_service_points(db, contractor, changeset)

    if accepts(FILES_KEY):
        await db.execute(
            update(ContractorFile)
            .where(ContractorFile.suggestion_id == suggestion.id)
            .values(is_pending=False, suggestion_id=None)
            .execution_options(synchronize_session=False)
        )
        removed = changeset.removed_file_ids
        if removed:
            await db.execute(
                delete(ContractorFile)
                .where(
                    ContractorFile.id.in_(removed),
                    ContractorFile.contractor_id == contractor.id,
                    ContractorFile.is_pending == False,  # noqa: E712
                )
                .execution_options(synchronize_session=False)
            )
    else:
        await _discard_pending_files(db, suggestion.id)

    await db.commit()
    log.info("User %s approved suggestion %s", reviewer.id, suggestion.id)
    return True


async def reject_suggestion(
    db: AsyncSession,
    suggestion: ContractorSuggestion,
    reviewer: User,
    review_comment: Optional[str] = None,
) -> bool:
    """
    Claim a PENDING suggestion as REJECTED and drop its pending files.

    Returns:
        False if another reviewer resolved the suggestion first.
    """
    if not await _claim(db, suggestion, reviewer, SuggestionStatus.REJECTED, review_comment):
        return False

    await _discard_pending_files(db, suggestion.id)
    await db.commit()
    log.info("User %s rejected suggestion %s", reviewer.id, suggestion.id)
    return True
