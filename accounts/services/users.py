"""Account lifecycle: registration, activation, login, password recovery, directory and avatars."""

from __future__ import annotations

import logging
import os
import re
import secrets
import string
from collections.abc import Callable, Iterable
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, BinaryIO
from urllib.parse import quote

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Query, Session, joinedload, selectinload

from accounts.core.errors import (
    AccountNotFoundError,
    AccountValidationError,
    ActivationFailedError,
    DuplicateAccountError,
    InactiveAccountError,
    InvalidCredentialError,
    RoleNotFoundError,
    UnknownEmailError,
    UnknownUserError,
    UpdateFailedError,
)
from accounts.core.security import (
    USERNAME_PATTERN,
    create_token,
    decode_token,
    hash_password,
    verify_password,
)
from accounts.models import Group, Role, User
from accounts.schemas.auth import RegisterResponse, RequestContext, StatusResponse, TokenResponse
from accounts.schemas.users import AvatarResponse, DeleteResponse, UserOut, UserPage
from accounts.services.collaborators import (
    AvatarStorage,
    LoginFailureRecorder,
    RoleLookup,
    SessionRegistry,
    SqlLoginFailureRecorder,
    SqlRoleLookup,
    SqlSessionRegistry,
)
from accounts.services.mailer import SmtpMailer, UserEmailManager
from accounts.services.storage import LocalAvatarStorage

if TYPE_CHECKING:
    from accounts.core.config import Settings

logger = logging.getLogger(__name__)

# Runs a side effect (email) outside the caller's result; BackgroundTasks.add_task fits.
Scheduler = Callable[..., Any]

# Fields the directory listing may be sorted by (API name -> column).
SORTABLE_FIELDS = {
    "id": User.id,
    "username": User.username,
    "name": User.name,
    "email": User.email,
    "phone": User.phone,
    "active": User.active,
    "created_at": User.created_at,
    "updated_at": User.updated_at,
}

UPDATABLE_FIELDS = frozenset({"username", "name", "email", "phone", "role_id", "group_ids", "active"})
NON_NULLABLE_FIELDS = frozenset({"username", "name", "email", "active"})

AVATAR_EXTENSIONS = frozenset({".png", ".jpg", ".jpeg", ".gif", ".webp"})
CACHE_BUST_ALPHABET = string.ascii_letters + string.digits


def run_now(fn: Callable[..., Any], *args: Any) -> None:
    """Default scheduler: run the side effect inline."""
    fn(*args)


def random_suffix(length: int = 3) -> str:
    """Short random marker appended to avatar URLs so browsers refetch after re-upload."""
    return "".join(secrets.choice(CACHE_BUST_ALPHABET) for _ in range(length))


def login_claims(user: User, session_id: int | None) -> dict[str, Any]:
    """Profile claims embedded in a login token."""
    return {
        "id": user.id,
        "name": user.name,
        "username": user.username,
        "email": user.email,
        "phone": user.phone,
        "role": {"id": user.role.id, "name": user.role.name} if user.role else None,
        "groups": [{"id": g.id, "name": g.name} for g in user.groups],
        "avatar_url": user.avatar_url,
        "session_id": session_id,
    }


def check_username(username: str) -> None:
    """Reject usernames that cannot be used as an avatar file name."""
    if not re.fullmatch(USERNAME_PATTERN, username or ""):
        raise AccountValidationError(
            f"Invalid username: {username!r}",
            {"username": "letters, digits and _ . @ + - only; must start with a letter or digit"},
        )


def _validation_error_from_integrity(error: IntegrityError) -> AccountValidationError:
    """Translate a store constraint violation into a field-level validation error."""
    detail = str(error.orig).lower()
    if "foreign key" in detail:
        return AccountValidationError(
            "Referenced role or group does not exist.",
            {"role_id": "unknown reference"},
        )
    fields = {f: f"{f} already exists" for f in ("username", "email") if f in detail}
    if not fields:
        fields = {"account": "account already exists"}
    return DuplicateAccountError("Account already exists: " + ", ".join(sorted(fields)), fields)


class UserService:
    """
    Orchestrates the account store and its collaborators.

    Collaborators default to the SQL/SMTP/filesystem implementations; tests and
    the HTTP layer inject their own. Email is handed to ``schedule`` so it never
    gates the result; session and login-failure side effects are isolated and
    logged.
    """

    def __init__(
        self,
        db: Session,
        settings: Settings,
        *,
        roles: RoleLookup | None = None,
        sessions: SessionRegistry | None = None,
        login_failures: LoginFailureRecorder | None = None,
        email_manager: UserEmailManager | None = None,
        storage: AvatarStorage | None = None,
        schedule: Scheduler = run_now,
    ) -> None:
        self.db = db
        self.settings = settings
        self.roles = roles or SqlRoleLookup(db)
        self.sessions = sessions or SqlSessionRegistry(db)
        self.login_failures = login_failures or SqlLoginFailureRecorder(db)
        self.email_manager = email_manager or UserEmailManager(SmtpMailer(settings), settings)
        self.storage = storage or LocalAvatarStorage(settings.MEDIA_ROOT, settings.AVATAR_MAX_BYTES)
        self.schedule = schedule

    # ------------------------------------------------------------------ helpers
    def _now(self) -> datetime:
        return datetime.now(UTC)

    def _query(self) -> Query:
        """Non-deleted accounts with role and groups resolved."""
        return (
            self.db.query(User)
            .options(joinedload(User.role), selectinload(User.groups))
            .filter(User.deleted.is_(False))
        )

    def _commit(self, failure: type[UpdateFailedError], message: str) -> None:
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise _validation_error_from_integrity(e) from e
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception("Store write failed: %s", message)
            raise failure(message) from e

    def _notify(self, fn: Callable[..., Any], *args: Any) -> None:
        try:
            self.schedule(fn, *args)
        except Exception:
            logger.exception("Could not schedule %s", getattr(fn, "__name__", fn))

    def _record_login_failure(self, username: str, context: RequestContext) -> None:
        try:
            self.login_failures.record_failure(username, context)
        except Exception:
            logger.exception("Could not record login failure for username=%s", username)

    def _resolve_role(self, role_id: int | None) -> Role | None:
        if role_id is None:
            return None
        role = self.db.get(Role, role_id)
        if role is None:
            raise AccountValidationError(f"Role {role_id} not found.", {"role_id": "unknown role"})
        return role

    def _resolve_groups(self, group_ids: Iterable[int] | None) -> list[Group]:
        ids = sorted(set(group_ids or []))
        if not ids:
            return []
        groups = self.db.query(Group).filter(Group.id.in_(ids)).order_by(Group.id).all()
        if len(groups) != len(ids):
            missing = sorted(set(ids) - {g.id for g in groups})
            raise AccountValidationError(
                f"Unknown group ids: {missing}",
                {"group_ids": "unknown group"},
            )
        return groups

    def _get_or_raise(self, user_id: int) -> User:
        user = self.find_user(user_id)
        if user is None:
            raise AccountNotFoundError(f"User {user_id} not found.")
        return user

    # ------------------------------------------------------------------ lookups
    def find_users(self) -> list[User]:
        return self._query().order_by(User.id).all()

    def find_user(self, user_id: int) -> User | None:
        return self._query().filter(User.id == user_id).first()

    def find_user_by_username(self, username: str) -> User | None:
        return self._query().filter(User.username == username).first()

    # ------------------------------------------------------------- registration
    def register_user(
        self,
        username: str,
        password: str,
        name: str,
        email: str,
        phone: str | None = None,
    ) -> RegisterResponse:
        """
        Self-service registration: create an inactive account with the default role
        and send an activation link.

        Raises RoleNotFoundError when the default role is missing and
        DuplicateAccountError when the store reports a username/email clash.
        Mail delivery never affects the result.
        """
        check_username(username)
        role_name = self.settings.DEFAULT_ROLE_NAME
        role = self.roles.find_role_by_name(role_name)
        if role is None:
            raise RoleNotFoundError(f"Role '{role_name}' not found.")

        user = User(
            username=username,
            email=email,
            password_hash=hash_password(password),
            name=name,
            phone=phone,
            active=False,
            deleted=False,
            role=role,
            created_at=self._now(),
        )
        self.db.add(user)
        self._commit(UpdateFailedError, "Could not save the new account.")
        logger.info("User registered: id=%s username=%s", user.id, user.username)

        token = create_token(
            {"id": user.id, "username": user.username, "role": {"name": role.name}},
            self.settings.JWT_REGISTER_EXPIRE_MINUTES,
            "registration",
            self.settings,
        )
        url = f"{self.settings.APP_WEB_URL}/activation-user/{token}"
        self._notify(self.email_manager.activation, user.email, url)
        return RegisterResponse(status=True, id=user.id, email=user.email)

    def create_user(
        self,
        username: str,
        password: str,
        name: str,
        email: str,
        phone: str | None = None,
        role_id: int | None = None,
        group_ids: Iterable[int] | None = None,
        active: bool = True,
    ) -> User:
        """Administrative creation: role given directly, no activation mail."""
        check_username(username)
        user = User(
            username=username,
            email=email,
            password_hash=hash_password(password),
            name=name,
            phone=phone,
            active=active,
            deleted=False,
            role=self._resolve_role(role_id),
            groups=self._resolve_groups(group_ids),
            created_at=self._now(),
        )
        self.db.add(user)
        self._commit(UpdateFailedError, "Could not save the new account.")
        logger.info("User created: id=%s username=%s active=%s", user.id, user.username, active)
        return user

    def update_user(self, user_id: int, **fields: Any) -> User:
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise AccountValidationError(
                f"Fields cannot be updated: {sorted(unknown)}",
                {f: "not updatable" for f in unknown},
            )
        if fields.get("username") is not None:
            check_username(fields["username"])
        user = self._get_or_raise(user_id)
        for field, value in fields.items():
            if value is None and field in NON_NULLABLE_FIELDS:
                continue
            if field == "role_id":
                user.role = self._resolve_role(value)
            elif field == "group_ids":
                user.groups = self._resolve_groups(value)
            else:
                setattr(user, field, value)
        user.updated_at = self._now()
        self._commit(UpdateFailedError, f"Could not update user {user_id}.")
        return user

    def delete_user(self, user_id: int) -> DeleteResponse:
        """Soft delete: the row stays, hidden from every default lookup."""
        user = self._get_or_raise(user_id)
        now = self._now()
        user.deleted = True
        user.deleted_at = now
        user.updated_at = now
        self._commit(UpdateFailedError, f"Could not delete user {user_id}.")
        logger.info("User soft-deleted: id=%s", user_id)
        return DeleteResponse(id=user_id, delete_success=True)

    # --------------------------------------------------------------- activation
    def activate_user(self, user_id: int) -> StatusResponse:
        """Set active=True. Idempotent; unknown ids and write failures are distinct errors."""
        try:
            user = self.find_user(user_id)
        except SQLAlchemyError as e:
            logger.exception("Activation lookup failed for user_id=%s", user_id)
            raise ActivationFailedError("Could not activate the account.") from e
        if user is None:
            raise AccountNotFoundError(f"User {user_id} not found.")
        if not user.active:
            user.active = True
            user.updated_at = self._now()
            self._commit(ActivationFailedError, "Could not activate the account.")
            logger.info("User activated: id=%s", user_id)
        return StatusResponse(status=True, message="Account activated successfully.")

    def activate_with_token(self, token: str) -> StatusResponse:
        claims = decode_token(token, self.settings, scope="registration")
        return self.activate_user(int(claims["id"]))

    # ------------------------------------------------------------------- login
    def authenticate(self, username: str, password: str, context: RequestContext) -> TokenResponse:
        """
        Verify credentials and return a login token carrying the profile claims.

        A wrong password notifies the login-failure recorder once, then raises
        InvalidCredentialError. The active flag is only checked when
        LOGIN_REQUIRE_ACTIVE is set.
        """
        user = self.find_user_by_username(username)
        if user is None:
            raise UnknownUserError("No user with that username.")

        if not verify_password(password, user.password_hash):
            self._record_login_failure(username, context)
            raise InvalidCredentialError("Incorrect password.")

        if self.settings.LOGIN_REQUIRE_ACTIVE and not user.active:
            raise InactiveAccountError("Account is not activated.")

        session_id: int | None = None
        try:
            session_id = self.sessions.create_session(user, context).id
        except Exception:
            logger.exception("Could not create session for user_id=%s", user.id)

        token = create_token(
            login_claims(user, session_id),
            self.settings.JWT_LOGIN_EXPIRE_MINUTES,
            "login",
            self.settings,
        )
        logger.info("Login succeeded: user_id=%s session_id=%s", user.id, session_id)
        return TokenResponse(token=token)

    # ----------------------------------------------------------------- password
    def recover_password(self, email: str) -> StatusResponse:
        """Send a password reset link to the account registered with email."""
        try:
            user = self._query().filter(User.email == email).first()
        except SQLAlchemyError:
            logger.exception("Recovery lookup failed")
            return StatusResponse(status=False, message="Internal server error.")
        if user is None:
            raise UnknownEmailError("No user with that email.")

        token = create_token(
            {
                "id": user.id,
                "username": user.username,
                "role": {"name": user.role.name if user.role else None},
            },
            self.settings.JWT_RECOVERY_EXPIRE_MINUTES,
            "recovery",
            self.settings,
        )
        url = f"{self.settings.APP_WEB_URL}/reset-password/{token}"
        self._notify(self.email_manager.recovery, user.email, url)
        logger.info("Password recovery requested: user_id=%s", user.id)
        return StatusResponse(status=True, message="A password recovery email was sent.")

    def change_password(self, user_id: int, password: str, password_verify: str) -> StatusResponse:
        """Replace the stored hash. A confirmation mismatch is a soft failure and writes nothing."""
        if password != password_verify:
            return StatusResponse(status=False, message="Passwords do not match.")
        user = self._get_or_raise(user_id)
        user.password_hash = hash_password(password)
        user.updated_at = self._now()
        self._commit(UpdateFailedError, "Could not update the password.")
        logger.info("Password changed: user_id=%s", user_id)
        return StatusResponse(status=True, message="Password changed successfully.")

    def reset_password(self, token: str, password: str, password_verify: str) -> StatusResponse:
        claims = decode_token(token, self.settings, scope="recovery")
        return self.change_password(int(claims["id"]), password, password_verify)

    # ---------------------------------------------------------------- directory
    def paginate_users(
        self,
        limit: int,
        page: int = 1,
        search: str | None = None,
        order_by: str | None = None,
        order_desc: bool = False,
    ) -> UserPage:
        """
        One page of non-deleted accounts.

        search matches name, username, email or phone case-insensitively as a
        substring. total_count counts the whole filtered set.
        """
        if limit < 1:
            raise AccountValidationError("limit must be at least 1.", {"limit": "must be >= 1"})
        if page < 1:
            raise AccountValidationError("page must be at least 1.", {"page": "must be >= 1"})

        query = self.db.query(User).filter(User.deleted.is_(False))
        if search:
            query = query.filter(
                User.name.icontains(search, autoescape=True)
                | User.username.icontains(search, autoescape=True)
                | User.email.icontains(search, autoescape=True)
                | User.phone.icontains(search, autoescape=True)
            )
        total = query.count()

        if order_by:
            column = SORTABLE_FIELDS.get(order_by)
            if column is None:
                raise AccountValidationError(
                    f"Cannot order by '{order_by}'.",
                    {"order_by": f"must be one of {sorted(SORTABLE_FIELDS)}"},
                )
            query = query.order_by(column.desc() if order_desc else column.asc(), User.id)
        else:
            query = query.order_by(User.id)

        rows = (
            query.options(joinedload(User.role), selectinload(User.groups))
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return UserPage(
            items=[UserOut.model_validate(u) for u in rows],
            total_count=total,
            page=page,
        )

    # ------------------------------------------------------------------ avatar
    def set_avatar(self, user: User, stream: BinaryIO, original_filename: str) -> AvatarResponse:
        """
        Store an uploaded avatar as <username><ext> and point the account at it.

        The row is only updated after storage confirms the write, so the URL
        never references a missing file.
        """
        ext = os.path.splitext(original_filename or "")[1]
        if ext.lower() not in AVATAR_EXTENSIONS:
            raise AccountValidationError(
                "Avatar must be an image file.",
                {"file": f"extension must be one of {sorted(AVATAR_EXTENSIONS)}"},
            )
        filename = f"{user.username}{ext}"
        self.storage.save(filename, stream)

        url = f"{self.settings.API_BASE_URL}/media/avatar/{quote(filename)}?{random_suffix()}"
        user.avatar = filename
        user.avatar_url = url
        user.updated_at = self._now()
        self._commit(UpdateFailedError, "Could not save the avatar in the database.")
        logger.info("Avatar updated: user_id=%s filename=%s", user.id, filename)
        return AvatarResponse(filename=filename, url=url)
