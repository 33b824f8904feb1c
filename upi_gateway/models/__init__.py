"""
Models registry for Alembic - Import all models here to ensure Base.metadata is complete

This module is used ONLY by Alembic and the test fixtures to discover all models.
"""

from upi_gateway.infrastructure.database import Base

from upi_gateway.core.payments.models import (
    Payment,
    PaymentStatus,
    PaymentMethod,
    BankProvider,
    ActorType,
    CancellationReason,
)

__all__ = [
    "Base",
    "Payment",
    "PaymentStatus",
    "PaymentMethod",
    "BankProvider",
    "ActorType",
    "CancellationReason",
]
