from fastapi import APIRouter
from app.utils.cache import redis_client
from app.database import engine
from sqlalchemy import text

router = APIRouter(prefix="/health", tags=["Health"])


@router.get(
    "/",
    summary="Health check",
    description="Basic health check endpoint."
)
def health_check():
    """Simple health check."""
    return {"status": "healthy"}


@router.get(
    "/ready",
    summary="Readiness check",
    description="Check if the database and Redis are reachable."
)
def readiness_check():
    """
    Readiness check for all dependencies.

    The database is required; Redis only backs the product cache, so the
    service is ready without it but reports it as degraded.
    """
    checks = {
        "database": False,
        "redis": False
    }

    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
            checks["database"] = True
    except Exception as e:
        checks["database_error"] = str(e)

    try:
        redis_client.ping()
        checks["redis"] = True
    except Exception as e:
        checks["redis_error"] = str(e)

    if not checks["database"]:
        status_value = "not_ready"
    elif not checks["redis"]:
        status_value = "degraded"
    else:
        status_value = "ready"

    return {
        "status": status_value,
        "checks": checks
    }
