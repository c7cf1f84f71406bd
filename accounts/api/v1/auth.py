"""Login, registration, activation and password recovery routes, plus auth dependencies."""

from typing import Annotated

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from accounts.api.v1.errors import http_error
from accounts.core.config import Settings, get_settings
from accounts.core.database import get_db
from accounts.core.errors import (
    AccountsError,
    InvalidCredentialError,
    TokenError,
    UnknownUserError,
)
from accounts.core.security import decode_token
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
from accounts.schemas.users import UserOut
from accounts.services.collaborators import AvatarStorage
from accounts.services.mailer import SmtpMailer, UserEmailManager
from accounts.services.storage import LocalAvatarStorage
from accounts.services.users import UserService

router = APIRouter()
security = HTTPBearer(auto_error=False)


def get_email_manager(settings: Annotated[Settings, Depends(get_settings)]) -> UserEmailManager:
    return UserEmailManager(SmtpMailer(settings), settings)


def get_avatar_storage(settings: Annotated[Settings, Depends(get_settings)]) -> AvatarStorage:
    return LocalAvatarStorage(settings.MEDIA_ROOT, settings.AVATAR_MAX_BYTES)


def get_user_service(
    db: Annotated[Session, Depends(get_db)],
    settings: Annotated[Settings, Depends(get_settings)],
    background_tasks: BackgroundTasks,
    email_manager: Annotated[UserEmailManager, Depends(get_email_manager)],
    storage: Annotated[AvatarStorage, Depends(get_avatar_storage)],
) -> UserService:
    """Dependency: UserService bound to the request's DB session; mail goes out after the response."""
    return UserService(
        db,
        settings,
        email_manager=email_manager,
        storage=storage,
        schedule=background_tasks.add_task,
    )


def request_context(request: Request) -> RequestContext:
    """Client IP (first X-Forwarded-For hop when present) and user agent."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        ip = forwarded.split(",")[0].strip()
    elif request.client and request.client.host:
        ip = request.client.host
    else:
        ip = None
    return RequestContext(ip=ip, user_agent=request.headers.get("user-agent"))


def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    service: Annotated[UserService, Depends(get_user_service)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> CurrentUser:
    """Dependency: require a valid Bearer login token for a non-deleted account. Raises 401 otherwise."""
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        claims = decode_token(credentials.credentials, settings, scope="login")
    except TokenError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=e.message,
            headers={"WWW-Authenticate": "Bearer"},
        ) from e
    try:
        user_id = int(claims["id"])
    except (KeyError, TypeError, ValueError):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
            headers={"WWW-Authenticate": "Bearer"},
        )
    user = service.find_user(user_id)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return CurrentUser(
        id=user.id,
        username=user.username,
        role=user.role.name if user.role else None,
        session_id=claims.get("session_id"),
    )


@router.post("", response_model=TokenResponse)
def login(
    body: LoginRequest,
    context: Annotated[RequestContext, Depends(request_context)],
    service: Annotated[UserService, Depends(get_user_service)],
) -> TokenResponse:
    """
    Authenticate with username and password; returns a signed login token.
    Include the token in the Authorization header as: Bearer <token>
    """
    try:
        return service.authenticate(body.username, body.password, context)
    except (UnknownUserError, InvalidCredentialError) as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid username or password.",
        ) from e
    except AccountsError as e:
        raise http_error(e) from e


@router.post("/register", response_model=RegisterResponse, status_code=201)
def register(
    body: RegisterRequest,
    service: Annotated[UserService, Depends(get_user_service)],
) -> RegisterResponse:
    """Create an inactive account and email an activation link."""
    try:
        return service.register_user(body.username, body.password, body.name, body.email, body.phone)
    except AccountsError as e:
        raise http_error(e) from e


@router.get("/activate/{token}", response_model=StatusResponse)
def activate(
    token: str,
    service: Annotated[UserService, Depends(get_user_service)],
) -> StatusResponse:
    try:
        return service.activate_with_token(token)
    except AccountsError as e:
        raise http_error(e) from e


@router.post("/recovery", response_model=StatusResponse)
def recovery(
    body: RecoveryRequest,
    service: Annotated[UserService, Depends(get_user_service)],
) -> StatusResponse:
    """Email a password reset link to the account with this address."""
    try:
        return service.recover_password(body.email)
    except AccountsError as e:
        raise http_error(e) from e


@router.post("/reset-password/{token}", response_model=StatusResponse)
def reset_password(
    token: str,
    body: PasswordChangeRequest,
    service: Annotated[UserService, Depends(get_user_service)],
) -> StatusResponse:
    try:
        return service.reset_password(token, body.password, body.password_verify)
    except AccountsError as e:
        raise http_error(e) from e


@router.get("/me", response_model=UserOut)
def me(
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    service: Annotated[UserService, Depends(get_user_service)],
) -> UserOut:
    user = service.find_user(current_user.id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return UserOut.model_validate(user)
