"""
Pydantic schemas for addons.
"""
from datetime import datetime
from pydantic import BaseModel, Field, ConfigDict


class AddonBase(BaseModel):
    """Base addon schema."""
    name: str = Field(..., min_length=1, max_length=100)
    description: str | None = Field(None, max_length=1000)
    color: str | None = Field(None, max_length=20, description="Color tag shown in the UI")


class AddonCreate(AddonBase):
    pass


class AddonUpdate(AddonBase):
    pass


class AddonResponse(AddonBase):
    id: str
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class AddonPublic(BaseModel):
    id: str
    name: str
    color: str | None = None

    model_config = ConfigDict(from_attributes=True)
