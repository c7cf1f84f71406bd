"""Health check: database connectivity and avatar storage writability."""

import os

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from accounts.core.config import settings
from accounts.core.database import check_db_connected, get_db
from accounts.schemas.health import HealthResponse

router = APIRouter()


def check_media_writable(media_root: str) -> bool:
    """True when MEDIA_ROOT exists (or can be created) and accepts writes."""
    try:
        os.makedirs(media_root, exist_ok=True)
    except OSError:
        return False
    return os.access(media_root, os.W_OK)


@router.get("/", response_model=HealthResponse)
def get_health(db: Session = Depends(get_db)) -> HealthResponse:
    """Used by load balancers and monitoring; always 200, details in the body."""
    return HealthResponse(
        status="ok",
        environment=settings.APP_ENV,
        database="connected" if check_db_connected(db) else "disconnected",
        media="writable" if check_media_writable(settings.MEDIA_ROOT) else "unwritable",
    )
