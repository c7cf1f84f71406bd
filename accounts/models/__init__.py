"""SQLAlchemy ORM models."""

from accounts.models.base import Base
from accounts.models.role import Group, Role
from accounts.models.session import LoginFailure, UserSession
from accounts.models.user import User, user_groups

__all__ = ["Base", "Group", "LoginFailure", "Role", "User", "UserSession", "user_groups"]
