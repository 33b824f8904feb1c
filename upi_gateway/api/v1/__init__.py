"""
API v1 routes - Merchant-facing API
"""

from fastapi import APIRouter
from upi_gateway.infrastructure.settings import get_settings
from upi_gateway.api.v1.payments import router as payments_router
from upi_gateway.api.v1.fees import router as fees_router

settings = get_settings()
router = APIRouter(prefix=settings.API_V1_PREFIX, tags=["api-v1"])

# Register sub-routers
router.include_router(payments_router)
router.include_router(fees_router)
