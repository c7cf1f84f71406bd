"""ORM models for role and group references attached to accounts."""

from sqlalchemy import Column, Integer, String

from accounts.models.base import Base


class Role(Base):
    """Named role; opaque to the account services beyond its name."""

    __tablename__ = "roles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(64), nullable=False, unique=True, index=True)


class Group(Base):
    __tablename__ = "groups"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(128), nullable=False, unique=True, index=True)
