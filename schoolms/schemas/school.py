from datetime import datetime
from uuid import UUID
from pydantic import BaseModel, ConfigDict, Field


class SchoolClassCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)


class SchoolClassResponse(BaseModel):
    id: UUID
    name: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
