"""
Payment model - one merchant payment intent routed to a bank provider
"""

import enum
from sqlalchemy import Column, String, Numeric, DateTime, Text, Enum as SQLEnum, CheckConstraint, Index
from upi_gateway.core.common.base_model import BaseModel


class PaymentStatus(str, enum.Enum):
    """Canonical payment status"""
    PENDING = "PENDING"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"
    EXPIRED = "EXPIRED"
    REFUNDED = "REFUNDED"  # Reachable only from SUCCESS


class PaymentMethod(str, enum.Enum):
    """How the payer is asked to pay"""
    UPI_QR = "UPI_QR"  # Scan a QR code
    UPI_ID = "UPI_ID"  # Collect request sent to the payer's UPI address
    UPI_INTENT = "UPI_INTENT"  # Deep link opening a UPI app


class BankProvider(str, enum.Enum):
    """Supported settlement banks"""
    HDFC = "HDFC"
    ICICI = "ICICI"
    KOTAK = "KOTAK"
    AXIS = "AXIS"

    @property
    def display_name(self) -> str:
        return _BANK_DISPLAY_NAMES[self]


_BANK_DISPLAY_NAMES = {
    BankProvider.HDFC: "HDFC Bank",
    BankProvider.ICICI: "ICICI Bank",
    BankProvider.KOTAK: "Kotak Mahindra Bank",
    BankProvider.AXIS: "Axis Bank",
}


class ActorType(str, enum.Enum):
    """Who caused a cancellation or failure"""
    USER = "USER"
    MERCHANT = "MERCHANT"
    SYSTEM = "SYSTEM"
    BANK = "BANK"


class CancellationReason(str, enum.Enum):
    """Reason codes for cancelled, expired and failed payments"""
    USER_CANCELLED = "USER_CANCELLED"
    MERCHANT_CANCELLED = "MERCHANT_CANCELLED"
    TIMEOUT_EXPIRED = "TIMEOUT_EXPIRED"
    INSUFFICIENT_FUNDS = "INSUFFICIENT_FUNDS"
    INVALID_UPI_ID = "INVALID_UPI_ID"
    BANK_DECLINED = "BANK_DECLINED"
    TECHNICAL_ERROR = "TECHNICAL_ERROR"
    FRAUD_DETECTION = "FRAUD_DETECTION"
    DUPLICATE_TRANSACTION = "DUPLICATE_TRANSACTION"
    AMOUNT_LIMIT_EXCEEDED = "AMOUNT_LIMIT_EXCEEDED"
    DAILY_LIMIT_EXCEEDED = "DAILY_LIMIT_EXCEEDED"
    ACCOUNT_BLOCKED = "ACCOUNT_BLOCKED"
    NETWORK_ERROR = "NETWORK_ERROR"
    UPI_APP_ERROR = "UPI_APP_ERROR"
    INVALID_CREDENTIALS = "INVALID_CREDENTIALS"

    @property
    def description(self) -> str:
        return _REASON_DESCRIPTIONS[self]


_REASON_DESCRIPTIONS = {
    CancellationReason.USER_CANCELLED: "User cancelled the payment",
    CancellationReason.MERCHANT_CANCELLED: "Merchant cancelled the payment",
    CancellationReason.TIMEOUT_EXPIRED: "Payment timeout expired",
    CancellationReason.INSUFFICIENT_FUNDS: "Insufficient funds in account",
    CancellationReason.INVALID_UPI_ID: "Invalid UPI ID provided",
    CancellationReason.BANK_DECLINED: "Bank declined the transaction",
    CancellationReason.TECHNICAL_ERROR: "Technical error occurred",
    CancellationReason.FRAUD_DETECTION: "Fraud detection triggered",
    CancellationReason.DUPLICATE_TRANSACTION: "Duplicate transaction detected",
    CancellationReason.AMOUNT_LIMIT_EXCEEDED: "Transaction amount limit exceeded",
    CancellationReason.DAILY_LIMIT_EXCEEDED: "Daily transaction limit exceeded",
    CancellationReason.ACCOUNT_BLOCKED: "Account is blocked or suspended",
    CancellationReason.NETWORK_ERROR: "Network connectivity issues",
    CancellationReason.UPI_APP_ERROR: "UPI app returned error",
    CancellationReason.INVALID_CREDENTIALS: "Invalid payment credentials",
}


class Payment(BaseModel):
    """
    Payment model - merchant-facing record of a payment intent

    Created PENDING by the payment service, then moved to a terminal status
    by status reconciliation, a verified bank webhook, an explicit refund or
    cancellation, or the expiry job. Rows are never deleted.

    transaction_id is the opaque id exposed to merchants and payers.
    bank_transaction_id is the bank's correlation id; once set it never changes.
    """

    __tablename__ = "payments"

    transaction_id = Column(String(64), nullable=False, unique=True, index=True)
    merchant_id = Column(String(64), nullable=False, index=True)

    amount = Column(Numeric(20, 2), nullable=False)
    currency = Column(String(3), nullable=False, default="INR")
    payment_method = Column(SQLEnum(PaymentMethod, name="payment_method", create_constraint=True), nullable=False)
    status = Column(SQLEnum(PaymentStatus, name="payment_status", create_constraint=True), nullable=False, default=PaymentStatus.PENDING, index=True)

    bank_provider = Column(String(16), nullable=False)
    bank_transaction_id = Column(String(64), nullable=True, index=True)
    bank_reference = Column(String(128), nullable=True)

    upi_id = Column(String(255), nullable=True)  # Payer address for UPI_ID payments
    upi_provider = Column(String(64), nullable=True)  # Payer app hint for UPI_INTENT payments
    qr_code_data = Column(Text, nullable=True)
    payment_url = Column(Text, nullable=True)
    callback_url = Column(String(1024), nullable=True)
    description = Column(String(255), nullable=True)

    completed_at = Column(DateTime(timezone=True), nullable=True)
    refund_amount = Column(Numeric(20, 2), nullable=True)
    refunded_at = Column(DateTime(timezone=True), nullable=True)

    failure_reason = Column(String(255), nullable=True)
    cancellation_reason = Column(String(255), nullable=True)
    cancelled_by = Column(String(16), nullable=True)  # ActorType value

    __table_args__ = (
        CheckConstraint('amount > 0', name='check_payments_amount_positive'),
        Index('ix_payments_status_created_at', 'status', 'created_at'),
    )
