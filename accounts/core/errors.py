"""Typed errors raised by the account services.

Every error carries a human-readable ``message``; the HTTP layer maps the
class to a status code and never leaks the underlying exception.
"""

from __future__ import annotations


class AccountsError(Exception):
    """Base class for all account service errors."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class AccountValidationError(AccountsError):
    """Field-level validation failure (bad input or a store constraint)."""

    def __init__(self, message: str, errors: dict[str, str] | None = None) -> None:
        self.errors = errors or {}
        super().__init__(message)


class DuplicateAccountError(AccountValidationError):
    """Username or email already belongs to a non-deleted account."""


class UnknownUserError(AccountsError):
    pass


class UnknownEmailError(AccountsError):
    pass


class AccountNotFoundError(AccountsError):
    pass


class InvalidCredentialError(AccountsError):
    pass


class InactiveAccountError(AccountsError):
    pass


class RoleNotFoundError(AccountsError):
    """The role required by the operation does not exist in the store."""


class UpdateFailedError(AccountsError):
    """The store rejected or failed a write."""


class ActivationFailedError(UpdateFailedError):
    pass


class TokenError(AccountsError):
    pass


class ExpiredTokenError(TokenError):
    pass


class InvalidSignatureError(TokenError):
    pass


class MalformedTokenError(TokenError):
    pass


class DispatchFailure(AccountsError):
    """An outbound sink (mail, file storage) failed."""

    def __init__(self, message: str, cause: Exception | None = None) -> None:
        self.cause = cause
        super().__init__(message)


class StorageError(DispatchFailure):
    pass
