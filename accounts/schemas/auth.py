"""Request/response schemas for login, registration, activation and recovery."""

from pydantic import BaseModel, Field

from accounts.core.security import USERNAME_PATTERN

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


class LoginRequest(BaseModel):
    """Credentials for login."""

    username: str = Field(..., min_length=1, max_length=255, description="Username")
    password: str = Field(..., min_length=1, max_length=128, description="Password")


class TokenResponse(BaseModel):
    """JWT login token returned after successful authentication."""

    token: str = Field(..., description="Signed login token")
    token_type: str = Field(default="bearer", description="Token type")


class RegisterRequest(BaseModel):
    """Self-service registration; the account stays inactive until activated."""

    username: str = Field(..., min_length=1, max_length=255, pattern=USERNAME_PATTERN)
    password: str = Field(..., min_length=8, max_length=128)
    name: str = Field(..., min_length=1, max_length=255)
    email: str = Field(..., max_length=255, pattern=EMAIL_PATTERN)
    phone: str | None = Field(default=None, max_length=64)


class RegisterResponse(BaseModel):
    status: bool = True
    id: int
    email: str


class RecoveryRequest(BaseModel):
    email: str = Field(..., max_length=255, pattern=EMAIL_PATTERN)


class PasswordChangeRequest(BaseModel):
    """New password plus confirmation; a mismatch is reported, not raised."""

    password: str = Field(..., min_length=8, max_length=128)
    password_verify: str = Field(..., min_length=1, max_length=128)


class StatusResponse(BaseModel):
    """Small status object returned by activation and password flows."""

    status: bool
    message: str


class RequestContext(BaseModel):
    """Client details recorded with sessions and failed logins."""

    ip: str | None = None
    user_agent: str | None = None


class CurrentUser(BaseModel):
    """Authenticated caller, rebuilt from login token claims."""

    id: int
    username: str
    role: str | None = None
    session_id: int | None = None
