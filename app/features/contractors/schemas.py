"""
Pydantic schemas for Contractor and ContractorFile API requests/responses.
"""
from datetime import datetime
from pydantic import BaseModel, Field, ConfigDict, field_validator

from app.features.agreements.schemas import AgreementPublic
from app.features.cities.schemas import CityPublic
from app.features.contractors.models import Contractor, ContractorStatus
from app.features.service_points.schemas import ServicePointCreate, ServicePointResponse
from app.features.users.schemas import UserPublic


REFERENCE_FIELDS = ("primary_city_id", "agreement_id", "manager_id")


def _blank_to_none(v: str | None) -> str | None:
    if isinstance(v, str) and not v.strip():
        return None
    return v


class ContractorFields(BaseModel):
    """Editable contractor fields shared by create and update."""
    has_chain: bool = False
    status: ContractorStatus = ContractorStatus.ACTIVE
    general_description: str | None = None
    general_notes: str | None = None
    general_individual_terms: str | None = None
    primary_city_id: str | None = None
    agreement_id: str | None = None
    manager_id: str | None = None

    @field_validator(*REFERENCE_FIELDS)
    @classmethod
    def empty_reference_is_null(cls, v: str | None) -> str | None:
        return _blank_to_none(v)


class ContractorCreate(ContractorFields):
    """Schema for creating a contractor, optionally with its service points."""
    name: str = Field(..., min_length=1, max_length=255)
    inn: str = Field(..., min_length=1, max_length=20)
    service_points: list[ServicePointCreate] = Field(default_factory=list)


class ContractorUpdate(BaseModel):
    """
    Partial contractor update.

    Also validates the field diff of an approved suggestion, so unknown fields
    are rejected. `version` is optional: when sent it must match the stored one.
    """
    name: str | None = Field(None, min_length=1, max_length=255)
    inn: str | None = Field(None, min_length=1, max_length=20)
    has_chain: bool | None = None
    status: ContractorStatus | None = None
    general_description: str | None = None
    general_notes: str | None = None
    general_individual_terms: str | None = None
    primary_city_id: str | None = None
    agreement_id: str | None = None
    manager_id: str | None = None
    is_hidden: bool | None = None
    version: int | None = None

    model_config = ConfigDict(extra="forbid")

    @field_validator(*REFERENCE_FIELDS)
    @classmethod
    def empty_reference_is_null(cls, v: str | None) -> str | None:
        return _blank_to_none(v)

    def changed_fields(self) -> dict:
        """Fields explicitly provided by the caller, excluding `version`."""
        data = self.model_dump(exclude_unset=True, exclude={"version"})
        # name/inn/flags cannot be cleared
        for key in ("name", "inn", "has_chain", "status", "is_hidden"):
            if key in data and data[key] is None:
                data.pop(key)
        if "status" in data:
            data["status"] = ContractorStatus(data["status"]).value
        return data


class ContractorFileCreate(BaseModel):
    """Metadata for an attachment already written to storage."""
    filename: str = Field(..., min_length=1, max_length=255)
    storage_path: str = Field(..., min_length=1, max_length=500)
    mime_type: str | None = Field(None, max_length=100)
    size: int = Field(0, ge=0)
    is_pending: bool = False


class ContractorFileResponse(BaseModel):
    id: str
    contractor_id: str
    filename: str
    storage_path: str
    file_type: str
    mime_type: str | None = None
    size: int
    is_pending: bool
    suggestion_id: str | None = None
    uploaded_by_id: str | None = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ContractorResponse(BaseModel):
    """
    Contractor with its references, service points and visible files.

    `total_fronts`, `fronts_on_service` and `service_points_count` are computed
    from the loaded service points.
    """
    id: str
    name: str
    inn: str
    status: ContractorStatus
    has_chain: bool
    general_description: str | None = None
    general_notes: str | None = None
    general_individual_terms: str | None = None
    primary_city_id: str | None = None
    agreement_id: str | None = None
    manager_id: str | None = None
    created_by_id: str | None = None
    is_hidden: bool
    version: int

    primary_city: CityPublic | None = None
    agreement: AgreementPublic | None = None
    manager: UserPublic | None = None
    created_by: UserPublic | None = None
    service_points: list[ServicePointResponse] = []
    files: list[ContractorFileResponse] = []

    total_fronts: int = 0
    fronts_on_service: int = 0
    service_points_count: int = 0

    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @classmethod
    def from_contractor(cls, contractor: Contractor) -> "ContractorResponse":
        response = cls.model_validate(contractor)
        response.files = [f for f in response.files if not f.is_pending]
        response.total_fronts = sum(sp.fronts_count for sp in contractor.service_points)
        response.fronts_on_service = sum(sp.fronts_on_service for sp in contractor.service_points)
        response.service_points_count = len(contractor.service_points)
        return response
