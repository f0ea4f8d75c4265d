"""
Pydantic schemas for agreements.
"""
from datetime import datetime
from pydantic import BaseModel, Field, ConfigDict


class AgreementBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)


class AgreementCreate(AgreementBase):
    pass


class AgreementUpdate(AgreementBase):
    pass


class AgreementResponse(AgreementBase):
    id: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class AgreementPublic(BaseModel):
    id: str
    name: str

    model_config = ConfigDict(from_attributes=True)
