"""
FastAPI application entry point
"""

import logging
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from upi_gateway import __version__
from upi_gateway.infrastructure.settings import get_settings
from upi_gateway.infrastructure.logging_config import setup_logging
from upi_gateway.api.exceptions import (
    http_exception_handler,
    payment_error_handler,
    validation_exception_handler,
    general_exception_handler,
)
from upi_gateway.api.public.health import router as health_router
from upi_gateway.api.public.metrics import router as metrics_router
from upi_gateway.api.v1 import router as api_v1_router
from upi_gateway.api.webhooks import router as webhooks_router
from upi_gateway.services.exceptions import PaymentError
from upi_gateway.utils.trace_id import TraceIDMiddleware
from upi_gateway.utils.request_logging import RequestLoggingMiddleware
from upi_gateway.utils.rate_limiter import RateLimitMiddleware
from upi_gateway.infrastructure.redis_client import get_redis

settings = get_settings()
setup_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="UPI Gateway API",
    description="UPI payment routing across bank settlement providers",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)

if settings.CORS_ENABLED:
    cors_origins = settings.cors_allow_origins_list
    if not cors_origins:
        logger.warning(
            "CORS_ENABLED=True but CORS_ALLOW_ORIGINS is empty or not set. "
            "No cross-origin requests will be allowed."
        )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

# Last added is outermost: trace id -> request logging -> rate limiting
if settings.RATE_LIMIT_ENABLED:
    app.add_middleware(RateLimitMiddleware, redis_client=get_redis())
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(TraceIDMiddleware)

app.add_exception_handler(PaymentError, payment_error_handler)
app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, general_exception_handler)

app.include_router(health_router)
app.include_router(metrics_router)
app.include_router(api_v1_router)
app.include_router(webhooks_router)


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "name": "UPI Gateway API",
        "version": __version__,
        "status": "running",
    }
