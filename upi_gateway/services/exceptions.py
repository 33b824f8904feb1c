"""
Payment service exceptions

Each carries a stable error code; the API layer maps them onto HTTP statuses.
"""

from typing import Any, Dict, Optional


class PaymentError(Exception):
    """Base class for payment service errors"""

    code = "PAYMENT_ERROR"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class PaymentNotFoundError(PaymentError):
    """Raised when a payment does not exist"""
    code = "PAYMENT_NOT_FOUND"


class InvalidStateTransitionError(PaymentError):
    """Raised when a status change is not allowed from the current status"""
    code = "INVALID_STATE"


class RefundFailedError(PaymentError):
    """Raised when the bank did not confirm a refund"""
    code = "REFUND_FAILED"


class PaymentValidationError(PaymentError):
    """Raised when a request is rejected before any bank call"""
    code = "VALIDATION_ERROR"


class FeeEstimationError(PaymentError):
    """Raised for fee estimates with missing or zero volume inputs"""
    code = "VALIDATION_ERROR"


class WebhookSignatureError(PaymentError):
    """Raised when a bank webhook fails signature verification"""
    code = "INVALID_SIGNATURE"


class UnknownProviderError(PaymentError):
    """Raised when a webhook names a bank with no adapter"""
    code = "UNKNOWN_PROVIDER"


class WebhookPayloadError(PaymentError):
    """Raised when a verified webhook body cannot be interpreted"""
    code = "INVALID_PAYLOAD"
