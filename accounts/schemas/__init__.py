"""Pydantic request/response schemas."""

from accounts.schemas.auth import (
    CurrentUser,
    LoginRequest,
    PasswordChangeRequest,
    RecoveryRequest,
    RegisterRequest,
    RegisterResponse,
    RequestContext,
    StatusResponse,
    TokenResponse,
)
from accounts.schemas.health import HealthResponse
from accounts.schemas.users import (
    AvatarResponse,
    DeleteResponse,
    GroupRef,
    RoleRef,
    UserCreateRequest,
    UserOut,
    UserPage,
    UserUpdateRequest,
)

__all__ = [
    "AvatarResponse",
    "CurrentUser",
    "DeleteResponse",
    "GroupRef",
    "HealthResponse",
    "LoginRequest",
    "PasswordChangeRequest",
    "RecoveryRequest",
    "RegisterRequest",
    "RegisterResponse",
    "RequestContext",
    "RoleRef",
    "StatusResponse",
    "TokenResponse",
    "UserCreateRequest",
    "UserOut",
    "UserPage",
    "UserUpdateRequest",
]
