"""Health checks and monitoring endpoints"""
from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from slotbook.config.database import get_db
from slotbook.config.redis import check_redis_targets

health_router = APIRouter()


@health_router.get("")
async def health_check():
    """Basic health check"""
    return {"status": "healthy", "service": "slotbook-api"}


@health_router.get("/detailed")
async def detailed_health_check(db: Session = Depends(get_db)):
    """
    Database, cache and broker status.

    Bookings only need the database; Redis outages delay confirmations, so
    they degrade rather than fail the service.
    """
    checks = {"api": "healthy"}

    try:
        db.execute(text("SELECT 1"))
        checks["database"] = "healthy"
    except SQLAlchemyError as e:
        checks["database"] = f"unhealthy: {e}"

    checks.update(await check_redis_targets())

    if checks["database"] != "healthy":
        checks["overall"] = "unhealthy"
    elif any(value != "healthy" for value in checks.values()):
        checks["overall"] = "degraded"
    else:
        checks["overall"] = "healthy"

    return checks
