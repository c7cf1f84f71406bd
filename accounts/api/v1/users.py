"""User directory and account administration routes. All routes require a login token."""

from typing import Annotated

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile, status

from accounts.api.v1.auth import get_current_user, get_user_service
from accounts.api.v1.errors import http_error
from accounts.core.errors import AccountsError
from accounts.schemas.auth import CurrentUser, PasswordChangeRequest, StatusResponse
from accounts.schemas.users import (
    AvatarResponse,
    DeleteResponse,
    UserCreateRequest,
    UserOut,
    UserPage,
    UserUpdateRequest,
)
from accounts.services.users import UserService

router = APIRouter()


@router.get("", response_model=UserPage)
def list_users(
    _user: Annotated[CurrentUser, Depends(get_current_user)],
    service: Annotated[UserService, Depends(get_user_service)],
    limit: Annotated[int, Query(ge=1, le=100)] = 10,
    page: Annotated[int, Query(ge=1)] = 1,
    search: Annotated[str | None, Query(max_length=255)] = None,
    order_by: str | None = None,
    order_desc: bool = False,
) -> UserPage:
    """
    Paginated directory of non-deleted users.

    - **search**: case-insensitive substring match on name, username, email or phone.
    - **order_by** / **order_desc**: single sort field; default is creation order.
    """
    try:
        return service.paginate_users(limit, page, search, order_by, order_desc)
    except AccountsError as e:
        raise http_error(e) from e


@router.post("", response_model=UserOut, status_code=201)
def create_user(
    body: UserCreateRequest,
    _user: Annotated[CurrentUser, Depends(get_current_user)],
    service: Annotated[UserService, Depends(get_user_service)],
) -> UserOut:
    """Create an account directly (no activation email)."""
    try:
        user = service.create_user(
            body.username,
            body.password,
            body.name,
            body.email,
            phone=body.phone,
            role_id=body.role_id,
            group_ids=body.group_ids,
            active=body.active,
        )
    except AccountsError as e:
        raise http_error(e) from e
    return UserOut.model_validate(user)


@router.post("/me/avatar", response_model=AvatarResponse)
def upload_avatar(
    file: Annotated[UploadFile, File(description="Avatar image")],
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    service: Annotated[UserService, Depends(get_user_service)],
) -> AvatarResponse:
    """Replace the caller's avatar; the returned URL carries a cache-busting suffix."""
    user = service.find_user(current_user.id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    try:
        return service.set_avatar(user, file.file, file.filename or "")
    except AccountsError as e:
        raise http_error(e) from e


@router.get("/{user_id}", response_model=UserOut)
def get_user(
    user_id: int,
    _user: Annotated[CurrentUser, Depends(get_current_user)],
    service: Annotated[UserService, Depends(get_user_service)],
) -> UserOut:
    user = service.find_user(user_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return UserOut.model_validate(user)


@router.patch("/{user_id}", response_model=UserOut)
def update_user(
    user_id: int,
    body: UserUpdateRequest,
    _user: Annotated[CurrentUser, Depends(get_current_user)],
    service: Annotated[UserService, Depends(get_user_service)],
) -> UserOut:
    try:
        user = service.update_user(user_id, **body.model_dump(exclude_unset=True))
    except AccountsError as e:
        raise http_error(e) from e
    return UserOut.model_validate(user)


@router.delete("/{user_id}", response_model=DeleteResponse)
def delete_user(
    user_id: int,
    _user: Annotated[CurrentUser, Depends(get_current_user)],
    service: Annotated[UserService, Depends(get_user_service)],
) -> DeleteResponse:
    """Soft delete: the account disappears from listings and lookups."""
    try:
        return service.delete_user(user_id)
    except AccountsError as e:
        raise http_error(e) from e


@router.post("/{user_id}/password", response_model=StatusResponse)
def change_password(
    user_id: int,
    body: PasswordChangeRequest,
    _user: Annotated[CurrentUser, Depends(get_current_user)],
    service: Annotated[UserService, Depends(get_user_service)],
) -> StatusResponse:
    """Set a new password. A confirmation mismatch returns status=false rather than an error."""
    try:
        return service.change_password(user_id, body.password, body.password_verify)
    except AccountsError as e:
        raise http_error(e) from e
