"""ORM model for user accounts (identity, credential, profile, lifecycle flags)."""

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, Integer, String, Table, text
from sqlalchemy.orm import relationship

from accounts.models.base import Base

user_groups = Table(
    "user_groups",
    Base.metadata,
    Column("user_id", Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
    Column("group_id", Integer, ForeignKey("groups.id", ondelete="CASCADE"), primary_key=True),
)


class User(Base):
    """
    User account for JWT authentication.

    Username and email are unique among non-deleted rows only (partial unique
    indexes), so a soft-deleted account does not block re-registration.
    """

    __tablename__ = "users"
    __table_args__ = (
        Index(
            "uq_users_username",
            "username",
            unique=True,
            postgresql_where=text("deleted = false"),
            sqlite_where=text("deleted = 0"),
        ),
        Index(
            "uq_users_email",
            "email",
            unique=True,
            postgresql_where=text("deleted = false"),
            sqlite_where=text("deleted = 0"),
        ),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False)
    password_hash = Column(String(255), nullable=False)
    name = Column(String(255), nullable=False, default="")
    phone = Column(String(64), nullable=True)
    avatar = Column(String(255), nullable=True)
    avatar_url = Column(String(1024), nullable=True)
    role_id = Column(Integer, ForeignKey("roles.id", ondelete="SET NULL"), nullable=True)
    active = Column(Boolean, nullable=False, default=True)
    deleted = Column(Boolean, nullable=False, default=False, index=True)
    deleted_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=True)

    role = relationship("Role")
    groups = relationship("Group", secondary=user_groups, order_by="Group.id")
