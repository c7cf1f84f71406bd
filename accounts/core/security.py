"""Password hashing and JWT creation/verification for authentication."""

from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any, Literal

import bcrypt
import jwt

from accounts.core.errors import (
    ExpiredTokenError,
    InvalidSignatureError,
    MalformedTokenError,
)

if TYPE_CHECKING:
    from accounts.core.config import Settings

# Bcrypt cost (rounds). The cost is encoded in every hash, so raising it later
# does not invalidate stored hashes.
BCRYPT_ROUNDS = 10

# Min/max lengths for username and password validation.
USERNAME_MIN_LEN = 1
USERNAME_MAX_LEN = 255
PASSWORD_MIN_LEN = 8
PASSWORD_MAX_LEN = 128

# Usernames are also avatar file names: no path separators or URL delimiters.
USERNAME_PATTERN = r"^[A-Za-z0-9][A-Za-z0-9_.@+-]*$"

TokenScope = Literal["login", "registration", "recovery"]

# Claims added by create_token; stripped again by decode_token.
RESERVED_CLAIMS = ("exp", "iat", "scope")


def hash_password(plain_password: str) -> str:
    """Hash a plain-text password for storage. Do not store plain passwords."""
    # bcrypt has a 72-byte limit; truncate to avoid errors (validation already limits length).
    pw_bytes = plain_password.encode("utf-8")[:72]
    return bcrypt.hashpw(pw_bytes, bcrypt.gensalt(rounds=BCRYPT_ROUNDS)).decode("utf-8")


def verify_password(plain_password: str, hashed: str) -> bool:
    """Verify a plain password against a stored hash."""
    pw_bytes = plain_password.encode("utf-8")[:72]
    try:
        return bcrypt.checkpw(pw_bytes, hashed.encode("utf-8"))
    except (ValueError, TypeError, AttributeError):
        return False


def create_token(
    claims: dict[str, Any],
    expires_minutes: int,
    scope: TokenScope,
    settings: "Settings",
) -> str:
    """Sign claims into a JWT that expires expires_minutes from now."""
    now = datetime.now(UTC)
    payload: dict[str, Any] = {
        **claims,
        "scope": scope,
        "iat": now,
        "exp": now + timedelta(minutes=expires_minutes),
    }
    return jwt.encode(
        payload,
        settings.JWT_SECRET.get_secret_value(),
        algorithm=settings.JWT_ALGORITHM,
    )


def decode_token(
    token: str,
    settings: "Settings",
    scope: TokenScope | None = None,
) -> dict[str, Any]:
    """
    Validate a JWT and return the claims it was issued with.

    Raises ExpiredTokenError, InvalidSignatureError or MalformedTokenError.
    When scope is given, a token issued for another scope is rejected as malformed.
    """
    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET.get_secret_value(),
            algorithms=[settings.JWT_ALGORITHM],
            options={"require": ["exp"]},
        )
    except jwt.ExpiredSignatureError as e:
        raise ExpiredTokenError("Token has expired.") from e
    except jwt.InvalidSignatureError as e:
        raise InvalidSignatureError("Token signature is invalid.") from e
    except jwt.PyJWTError as e:
        raise MalformedTokenError(f"Token could not be decoded: {e!s}") from e

    if scope is not None and payload.get("scope") != scope:
        raise MalformedTokenError(f"Token is not a {scope} token.")
    return {k: v for k, v in payload.items() if k not in RESERVED_CLAIMS}
