"""Health check endpoint for the intake API."""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from src.api.dependencies import StorageDep
from src.api.models.health import DatabaseHealth, HealthResponse
from src.domain.ports import StoragePort
from src.infrastructure.settings import APP_VERSION

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["health"])


def _db_type(storage: StoragePort) -> str:
    name = type(storage).__name__.lower()
    if "duckdb" in name:
        return "duckdb"
    if "postgres" in name:
        return "postgresql"
    return "unknown"


def check_database_health(storage: StoragePort) -> DatabaseHealth:
    """Check database connectivity with a trivial query.

    Security Impact:
        - Only checks connectivity, no sensitive data exposed
    """
    result = storage.ping()
    if result.is_success():
        return DatabaseHealth(
            status="connected",
            type=_db_type(storage),
            response_time_ms=round(result.value, 2)
        )
    logger.warning(f"Database health check failed: {result.error}")
    return DatabaseHealth(status="disconnected", type=_db_type(storage), response_time_ms=None)


@router.get("/health", response_model=HealthResponse)
def health_check(storage: StorageDep):
    """Health check endpoint used by monitoring tools and load balancers.

    Returns 503 with the same body when the database is unreachable.
    """
    db_health = check_database_health(storage)
    healthy = db_health.status == "connected"
    response = HealthResponse(
        status="healthy" if healthy else "unhealthy",
        timestamp=datetime.now(timezone.utc),
        version=APP_VERSION,
        database=db_health,
    )
    if healthy:
        return response
    return JSONResponse(status_code=503, content=response.model_dump(mode="json"))
