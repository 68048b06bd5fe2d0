"""
Health router.

The database is required: if it cannot be reached the endpoint answers 503.
Redis only carries best-effort notifications, so losing it reports
``degraded`` with 200.
"""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from shared.config.settings import settings
from shared.config.logging import rest_api_logger as logger
from shared.infrastructure.db import get_db
from shared.infrastructure.events import check_redis_health


router = APIRouter(tags=["health"])


def check_database(db: Session) -> dict[str, str]:
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.error("Database health check failed", error=str(e))
        return {"status": "unhealthy", "error": str(e)}
    finally:
        db.rollback()
    return {"status": "healthy"}


@router.get("/api/health")
def health_check(db: Session = Depends(get_db)):
    """Report service status and its dependencies."""
    dependencies = {"database": check_database(db)}
    if settings.session_events_enabled:
        dependencies["redis"] = check_redis_health()
    else:
        dependencies["redis"] = {"status": "disabled"}

    if dependencies["database"]["status"] != "healthy":
        overall = "unhealthy"
    elif dependencies["redis"]["status"] == "unhealthy":
        overall = "degraded"
    else:
        overall = "healthy"

    body = {
        "status": overall,
        "service": "cuebill-api",
        "environment": settings.environment,
        "dependencies": dependencies,
    }
    if overall == "unhealthy":
        return JSONResponse(content=body, status_code=503)
    return body
