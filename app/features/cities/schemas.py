"""
Pydantic schemas for cities.
"""
from datetime import datetime
from pydantic import BaseModel, Field, ConfigDict


class CityBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)


class CityCreate(CityBase):
    pass


class CityUpdate(CityBase):
    pass


class CityResponse(CityBase):
    id: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class CityPublic(BaseModel):
    id: str
    name: str

    model_config = ConfigDict(from_attributes=True)
