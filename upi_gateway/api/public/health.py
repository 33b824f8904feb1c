"""
Liveness and readiness probes
"""

import logging
from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from upi_gateway.infrastructure.database import get_db
from upi_gateway.infrastructure.redis_client import ping_redis
from upi_gateway.schemas.common import HealthResponse, ReadyResponse
from upi_gateway.services.banks.registry import BankAdapterRegistry, get_bank_registry

router = APIRouter(tags=["health"])
logger = logging.getLogger(__name__)


def _database_state(db: Session) -> str:
    try:
        db.execute(text("SELECT 1"))
        return "connected"
    except SQLAlchemyError as e:
        logger.error(f"Readiness: database check failed: {type(e).__name__}")
        return "error"


@router.get("/health", response_model=HealthResponse)
async def health():
    return {"status": "ok"}


@router.get("/ready", response_model=ReadyResponse)
def ready(
    db: Session = Depends(get_db),
    registry: BankAdapterRegistry = Depends(get_bank_registry),
):
    """
    Readiness: 503 unless the database answers.

    Redis only backs rate limiting (fails open) and queued collect requests,
    so a Redis outage is reported but does not take the gateway out of rotation.
    """
    database = _database_state(db)
    redis_state = "connected" if ping_redis() else "disconnected"

    body = {
        "status": "ok" if database == "connected" else "not_ready",
        "database": database,
        "redis": redis_state,
        "default_bank_provider": registry.default_provider.value,
    }
    status_code = status.HTTP_200_OK if database == "connected" else status.HTTP_503_SERVICE_UNAVAILABLE
    return JSONResponse(status_code=status_code, content=body)
