"""Shared fixtures for the test modules: in-memory store, settings and fake collaborators."""

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from accounts.core.config import Settings
from accounts.models import Base, Role
from accounts.schemas.auth import RequestContext

TEST_SECRET = "test-secret-that-is-long-enough-for-hs256"


def make_settings(**overrides: object) -> Settings:
    """Settings isolated from the environment and any .env file."""
    values: dict[str, object] = {
        "APP_NAME": "Accounts",
        "DATABASE_URL": "sqlite://",
        "APP_WEB_URL": "http://web.test",
        "API_BASE_URL": "http://api.test",
        "JWT_SECRET": TEST_SECRET,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


def make_db(seed_roles: tuple[str, ...] = ("admin", "user")) -> Session:
    """Fresh in-memory SQLite session with all tables and the given roles."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    db = sessionmaker(bind=engine, autoflush=False)()
    for name in seed_roles:
        db.add(Role(name=name))
    db.commit()
    return db


def context(ip: str = "10.0.0.1", user_agent: str = "unittest") -> RequestContext:
    return RequestContext(ip=ip, user_agent=user_agent)


class RecordingEmailManager:
    """Stands in for UserEmailManager; remembers (to, url) per message kind."""

    def __init__(self) -> None:
        self.activations: list[tuple[str, str]] = []
        self.recoveries: list[tuple[str, str]] = []

    def activation(self, to: str, url: str) -> bool:
        self.activations.append((to, url))
        return True

    def recovery(self, to: str, url: str) -> bool:
        self.recoveries.append((to, url))
        return True
