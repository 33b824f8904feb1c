"""
Payment schemas
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, Field, field_validator

from upi_gateway.core.payments.models import (
    ActorType,
    BankProvider,
    CancellationReason,
    Payment,
    PaymentMethod,
    PaymentStatus,
)


class CreatePaymentRequest(BaseModel):
    """
    Create payment request

    upi_id is required for UPI_ID payments. provider is an optional bank hint;
    unknown names fall back to the merchant's preferred bank.
    """
    amount: Decimal = Field(..., gt=0, max_digits=20, decimal_places=2, description="Payment amount")
    currency: Optional[str] = Field(None, min_length=3, max_length=3, description="ISO currency code (default INR)")
    payment_method: PaymentMethod = Field(..., description="UPI_QR, UPI_ID or UPI_INTENT")
    upi_id: Optional[str] = Field(None, max_length=255, description="Payer UPI address (UPI_ID payments)")
    upi_provider: Optional[str] = Field(None, max_length=64, description="Payer UPI app hint (UPI_INTENT payments)")
    provider: Optional[str] = Field(None, description="Bank provider hint (HDFC, ICICI, KOTAK, AXIS)")
    callback_url: Optional[str] = Field(None, max_length=1024, description="Merchant callback URL")
    description: Optional[str] = Field(None, max_length=255, description="Payment note shown to the payer")

    @field_validator('currency')
    @classmethod
    def upper_currency(cls, v: Optional[str]) -> Optional[str]:
        return v.upper() if v else v

    class Config:
        json_schema_extra = {
            "example": {
                "amount": "499.00",
                "currency": "INR",
                "payment_method": "UPI_QR",
                "description": "Order 1042",
            }
        }


class PaymentResponse(BaseModel):
    """
    Payment view

    Carries qr_code_data for UPI_QR payments and payment_url for
    UPI_ID / UPI_INTENT payments, never both.
    """
    transaction_id: str
    merchant_id: str
    amount: Decimal
    currency: str
    status: PaymentStatus
    payment_method: PaymentMethod
    bank_provider: str
    bank_name: str = Field(..., description="Provider display name")
    bank_transaction_id: Optional[str] = None
    qr_code_data: Optional[str] = None
    payment_url: Optional[str] = None
    upi_id: Optional[str] = None
    description: Optional[str] = None
    refund_amount: Optional[Decimal] = None
    refunded_at: Optional[datetime] = None
    failure_reason: Optional[str] = None
    cancellation_reason: Optional[str] = None
    cancelled_by: Optional[str] = None
    created_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @classmethod
    def from_payment(cls, payment: Payment) -> "PaymentResponse":
        is_qr = payment.payment_method == PaymentMethod.UPI_QR
        return cls(
            transaction_id=payment.transaction_id,
            merchant_id=payment.merchant_id,
            amount=payment.amount,
            currency=payment.currency,
            status=payment.status,
            payment_method=payment.payment_method,
            bank_provider=payment.bank_provider,
            bank_name=BankProvider(payment.bank_provider).display_name,
            bank_transaction_id=payment.bank_transaction_id,
            qr_code_data=payment.qr_code_data if is_qr else None,
            payment_url=None if is_qr else payment.payment_url,
            upi_id=payment.upi_id,
            description=payment.description,
            refund_amount=payment.refund_amount,
            refunded_at=payment.refunded_at,
            failure_reason=payment.failure_reason,
            cancellation_reason=payment.cancellation_reason,
            cancelled_by=payment.cancelled_by,
            created_at=payment.created_at,
            completed_at=payment.completed_at,
        )


class RefundRequest(BaseModel):
    """Refund request"""
    amount: Decimal = Field(..., gt=0, max_digits=20, decimal_places=2, description="Amount to refund")


class CancelPaymentRequest(BaseModel):
    """Cancel request"""
    reason: CancellationReason = Field(CancellationReason.MERCHANT_CANCELLED, description="Cancellation reason code")
    cancelled_by: ActorType = Field(ActorType.MERCHANT, description="Who cancelled the payment")


class UpiCallbackRequest(BaseModel):
    """Trusted internal status callback"""
    transaction_id: str = Field(..., description="Merchant-facing transaction id")
    status: PaymentStatus = Field(..., description="New payment status; REFUNDED is set only by the refund endpoint")
    bank_reference: Optional[str] = Field(None, max_length=128, description="Bank reference (UTR)")
