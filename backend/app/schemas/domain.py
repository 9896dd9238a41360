"""Publishing domain registry schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class DomainRegisterRequest(BaseModel):
    domain: str = Field(min_length=1, max_length=255)


class DomainRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    domain: str
    verification_token: str
    verified_at: datetime | None
    created_at: datetime
    updated_at: datetime
