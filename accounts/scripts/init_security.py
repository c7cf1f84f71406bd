"""
Seed the roles the service relies on. Run once after migrations:
  python -m accounts.scripts.init_security
Idempotent: existing roles are left untouched.
"""
import logging
import sys

from sqlalchemy.orm import Session

from accounts.core.config import get_settings
from accounts.core.database import SessionLocal
from accounts.models import Role

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%SZ",
)
logger = logging.getLogger(__name__)

ADMIN_ROLE_NAME = "admin"


def seed_roles(db: Session, names: list[str]) -> list[str]:
    """Create missing roles; returns the names that were created."""
    existing = {r.name for r in db.query(Role).filter(Role.name.in_(names)).all()}
    created = [name for name in names if name not in existing]
    for name in created:
        db.add(Role(name=name))
    db.commit()
    return created


def main() -> int:
    settings = get_settings()
    names = list(dict.fromkeys([ADMIN_ROLE_NAME, settings.DEFAULT_ROLE_NAME]))
    db = SessionLocal()
    try:
        created = seed_roles(db, names)
        logger.info("Roles seeded: created=%s", created or "none")
        return 0
    except Exception as e:
        logger.exception("Role seeding failed: %s", e)
        return 1
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
