"""
Services layer - Application business logic
"""

from upi_gateway.services.exceptions import (
    PaymentError,
    PaymentNotFoundError,
    InvalidStateTransitionError,
    RefundFailedError,
    PaymentValidationError,
    FeeEstimationError,
    WebhookSignatureError,
    UnknownProviderError,
    WebhookPayloadError,
)
from upi_gateway.services.fee_estimator import OperationMode, estimate_fees, default_fee_structure

__all__ = [
    # Exceptions
    "PaymentError",
    "PaymentNotFoundError",
    "InvalidStateTransitionError",
    "RefundFailedError",
    "PaymentValidationError",
    "FeeEstimationError",
    "WebhookSignatureError",
    "UnknownProviderError",
    "WebhookPayloadError",
    # Fee estimator
    "OperationMode",
    "estimate_fees",
    "default_fee_structure",
]
