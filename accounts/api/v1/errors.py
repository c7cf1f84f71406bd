"""Map account service errors to HTTP responses."""

from fastapi import HTTPException, status

from accounts.core.errors import (
    AccountNotFoundError,
    AccountsError,
    AccountValidationError,
    DispatchFailure,
    InactiveAccountError,
    InvalidCredentialError,
    RoleNotFoundError,
    TokenError,
    UnknownEmailError,
    UnknownUserError,
    UpdateFailedError,
)

_STATUS_BY_ERROR: list[tuple[type[AccountsError], int]] = [
    (AccountValidationError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (UnknownUserError, status.HTTP_401_UNAUTHORIZED),
    (InvalidCredentialError, status.HTTP_401_UNAUTHORIZED),
    (InactiveAccountError, status.HTTP_403_FORBIDDEN),
    (TokenError, status.HTTP_400_BAD_REQUEST),
    (UnknownEmailError, status.HTTP_404_NOT_FOUND),
    (AccountNotFoundError, status.HTTP_404_NOT_FOUND),
    (RoleNotFoundError, status.HTTP_500_INTERNAL_SERVER_ERROR),
    (UpdateFailedError, status.HTTP_500_INTERNAL_SERVER_ERROR),
    (DispatchFailure, status.HTTP_500_INTERNAL_SERVER_ERROR),
]


def http_error(error: AccountsError) -> HTTPException:
    """Build the HTTPException for a service error; validation errors keep their field map."""
    code = next(
        (c for cls, c in _STATUS_BY_ERROR if isinstance(error, cls)),
        status.HTTP_500_INTERNAL_SERVER_ERROR,
    )
    if isinstance(error, AccountValidationError):
        return HTTPException(status_code=code, detail={"message": error.message, "errors": error.errors})
    return HTTPException(status_code=code, detail=error.message)
