"""Request/response schemas for the user directory and account administration."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from accounts.core.security import USERNAME_PATTERN
from accounts.schemas.auth import EMAIL_PATTERN


class RoleRef(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str


class GroupRef(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str


class UserOut(BaseModel):
    """Account as exposed to API clients (never includes the password hash)."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    email: str
    name: str
    phone: str | None = None
    avatar: str | None = None
    avatar_url: str | None = None
    active: bool
    role: RoleRef | None = None
    groups: list[GroupRef] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime | None = None


class UserCreateRequest(BaseModel):
    """Administrative account creation; role is given directly and no email is sent."""

    username: str = Field(..., min_length=1, max_length=255, pattern=USERNAME_PATTERN)
    password: str = Field(..., min_length=8, max_length=128)
    name: str = Field(..., min_length=1, max_length=255)
    email: str = Field(..., max_length=255, pattern=EMAIL_PATTERN)
    phone: str | None = Field(default=None, max_length=64)
    role_id: int | None = None
    group_ids: list[int] = Field(default_factory=list)
    active: bool = True


class UserUpdateRequest(BaseModel):
    """Partial update; omitted fields are left unchanged."""

    username: str | None = Field(default=None, min_length=1, max_length=255, pattern=USERNAME_PATTERN)
    name: str | None = Field(default=None, min_length=1, max_length=255)
    email: str | None = Field(default=None, max_length=255, pattern=EMAIL_PATTERN)
    phone: str | None = Field(default=None, max_length=64)
    role_id: int | None = None
    group_ids: list[int] | None = None
    active: bool | None = None


class UserPage(BaseModel):
    """One page of the user directory; total_count is the size of the filtered set."""

    items: list[UserOut]
    total_count: int
    page: int


class DeleteResponse(BaseModel):
    id: int
    delete_success: bool


class AvatarResponse(BaseModel):
    filename: str
    url: str
