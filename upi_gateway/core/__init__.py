"""
Core domain models - Export all models for Alembic
"""

from upi_gateway.core.payments.models import Payment

__all__ = ["Payment"]
