from datetime import datetime

from pydantic import BaseModel, Field, model_validator

from tumi.domain.users.statuses import MemberStatus, UserRole


class UserResponse(BaseModel):
    id: str
    first_name: str
    last_name: str
    email: str
    status: MemberStatus
    role: UserRole
    created_at: datetime

    class Config:
        from_attributes = True


class UserListResponse(BaseModel):
    items: list[UserResponse]


class UserUpdateRequest(BaseModel):
    first_name: str | None = Field(default=None, min_length=1, max_length=255)
    last_name: str | None = Field(default=None, min_length=1, max_length=255)
    email: str | None = Field(default=None, min_length=3, max_length=320)
    status: MemberStatus | None = None
    role: UserRole | None = None

    @model_validator(mode="after")
    def reject_explicit_nulls(self) -> "UserUpdateRequest":
        nulled = sorted(field for field in self.model_fields_set if getattr(self, field) is None)
        if nulled:
            raise ValueError(f"Fields cannot be null: {', '.join(nulled)}")
        return self
