"""
Webhook endpoints - INTERNAL / BANK ONLY
"""

from fastapi import APIRouter
from upi_gateway.infrastructure.settings import get_settings
from upi_gateway.api.webhooks.banks import router as banks_router

settings = get_settings()
router = APIRouter(prefix=settings.WEBHOOKS_V1_PREFIX, tags=["webhooks-v1"])

# Register webhook routers
router.include_router(banks_router)
