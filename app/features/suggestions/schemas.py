"""
Pydantic schemas for suggestion requests/responses.
"""
from datetime import datetime
from typing import Any, Literal
from pydantic import BaseModel, Field, ConfigDict, AliasChoices

from app.features.users.schemas import UserPublic


class SuggestionCreate(BaseModel):
    """Schema for proposing changes to a contractor."""
    contractor_id: str = Field(..., validation_alias=AliasChoices("contractor_id", "client_id"))
    changes: dict[str, Any]
    comment: str | None = Field(None, max_length=2000)


class SuggestionReview(BaseModel):
    """
    Review decision.

    `accepted_fields` restricts an approval to the listed contractor fields
    ("files" and "service_points" select those parts). Omitted means all.
    """
    action: Literal["approve", "reject"]
    review_comment: str | None = Field(None, max_length=2000)
    accepted_fields: list[str] | None = None


class SuggestionContractor(BaseModel):
    id: str
    name: str
    inn: str

    model_config = ConfigDict(from_attributes=True)


class SuggestionFile(BaseModel):
    id: str
    filename: str
    file_type: str
    is_pending: bool

    model_config = ConfigDict(from_attributes=True)


class SuggestionResponse(BaseModel):
    id: str
    contractor_id: str
    author_id: str | None = None
    changes: dict[str, Any]
    comment: str | None = None
    status: str
    reviewed_by_id: str | None = None
    reviewed_at: datetime | None = None
    review_comment: str | None = None
    created_at: datetime
    updated_at: datetime

    contractor: SuggestionContractor | None = None
    author: UserPublic | None = None
    reviewed_by: UserPublic | None = None
    files: list[SuggestionFile] = []

    model_config = ConfigDict(from_attributes=True)


class SuggestionCount(BaseModel):
    """Pending suggestions visible to the reviewer and the contractors they manage."""
    count: int
    managed_clients_count: int
