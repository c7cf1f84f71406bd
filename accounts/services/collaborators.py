"""Interfaces the account service depends on, plus their SQL-backed defaults."""

from __future__ import annotations

import logging
from typing import BinaryIO, Protocol

from sqlalchemy.orm import Session

from accounts.models import LoginFailure, Role, User, UserSession
from accounts.schemas.auth import RequestContext

logger = logging.getLogger(__name__)


class RoleLookup(Protocol):
    def find_role_by_name(self, name: str) -> Role | None: ...


class SessionRegistry(Protocol):
    def create_session(self, user: User, context: RequestContext) -> UserSession: ...


class LoginFailureRecorder(Protocol):
    def record_failure(self, username: str, context: RequestContext) -> None: ...


class AvatarStorage(Protocol):
    def save(self, filename: str, stream: BinaryIO) -> str: ...


class SqlRoleLookup:
    """Resolve roles from the roles table."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def find_role_by_name(self, name: str) -> Role | None:
        return self.db.query(Role).filter(Role.name == name).first()


class SqlSessionRegistry:
    """Persist one UserSession row per successful login."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def create_session(self, user: User, context: RequestContext) -> UserSession:
        row = UserSession(
            user_id=user.id,
            ip=(context.ip or "")[:64] or None,
            user_agent=(context.user_agent or "")[:512] or None,
        )
        self.db.add(row)
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        return row


class SqlLoginFailureRecorder:
    """Persist failed login attempts for abuse tracking."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def record_failure(self, username: str, context: RequestContext) -> None:
        self.db.add(
            LoginFailure(
                username=username[:255],
                ip=(context.ip or "")[:64] or None,
                user_agent=(context.user_agent or "")[:512] or None,
            )
        )
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        logger.info("Login failure recorded: username=%s ip=%s", username, context.ip)
