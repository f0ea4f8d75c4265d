"""
Pydantic schemas for service points.
"""
from datetime import datetime
from pydantic import BaseModel, Field, ConfigDict, model_validator

from app.features.addons.schemas import AddonPublic
from app.features.cities.schemas import CityPublic


def check_fronts(fronts_count: int | None, fronts_on_service: int | None) -> None:
    """Raise ValueError when more fronts are on service than exist."""
    if fronts_count is not None and fronts_on_service is not None and fronts_on_service > fronts_count:
        raise ValueError("fronts_on_service cannot exceed fronts_count")


class ServicePointBase(BaseModel):
    """Base schema for a service point."""
    name: str = Field(..., min_length=1, max_length=255)
    address: str | None = Field(None, max_length=500)
    city_id: str | None = None
    crm_id: str | None = Field(None, max_length=100)
    fronts_count: int = Field(0, ge=0)
    fronts_on_service: int = Field(0, ge=0)
    description: str | None = None
    notes: str | None = None
    individual_terms: str | None = None


class ServicePointCreate(ServicePointBase):
    """Schema for creating a service point under a contractor."""
    addon_ids: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def fronts_within_total(self):
        check_fronts(self.fronts_count, self.fronts_on_service)
        return self


class ServicePointUpdate(BaseModel):
    """Partial update; `addon_ids` replaces the whole addon set when given."""
    name: str | None = Field(None, min_length=1, max_length=255)
    address: str | None = Field(None, max_length=500)
    city_id: str | None = None
    crm_id: str | None = Field(None, max_length=100)
    fronts_count: int | None = Field(None, ge=0)
    fronts_on_service: int | None = Field(None, ge=0)
    description: str | None = None
    notes: str | None = None
    individual_terms: str | None = None
    addon_ids: list[str] | None = None

    model_config = ConfigDict(extra="forbid")


class ServicePointResponse(ServicePointBase):
    """Schema for service point response."""
    id: str
    contractor_id: str
    city: CityPublic | None = None
    addons: list[AddonPublic] = []
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ServicePointFileCreate(BaseModel):
    """Metadata for a service point attachment already written to storage."""
    filename: str = Field(..., min_length=1, max_length=255)
    storage_path: str = Field(..., min_length=1, max_length=500)
    mime_type: str | None = Field(None, max_length=100)
    size: int = Field(0, ge=0)


class ServicePointFileResponse(BaseModel):
    id: str
    service_point_id: str
    filename: str
    storage_path: str
    file_type: str
    mime_type: str | None = None
    size: int
    uploaded_by_id: str | None = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
