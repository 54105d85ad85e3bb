from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from tumi.domain.registrations.statuses import RegistrationFormStatus


class RegistrationSubmitRequest(BaseModel):
    data: dict[str, Any] = Field(default_factory=dict)


class RegistrationResponse(BaseModel):
    id: str
    user_id: str
    status: RegistrationFormStatus
    data: dict[str, Any]
    created_at: datetime

    class Config:
        from_attributes = True
