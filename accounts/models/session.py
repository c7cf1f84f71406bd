"""ORM models for login sessions and failed login attempts."""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, func

from accounts.models.base import Base


class UserSession(Base):
    """One row per successful login; its id is embedded in the login token."""

    __tablename__ = "user_sessions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    ip = Column(String(64), nullable=True)
    user_agent = Column(String(512), nullable=True)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )


class LoginFailure(Base):
    """Failed login attempt, kept for abuse tracking."""

    __tablename__ = "login_failures"

    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String(255), nullable=False, index=True)
    ip = Column(String(64), nullable=True)
    user_agent = Column(String(512), nullable=True)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
