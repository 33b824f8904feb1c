"""
Payment service - payment creation, reconciliation, refunds and cancellations

Every status change goes through payment_state.check_transition. Mutations
serialize per payment: refund, cancel and direct updates lock the row with
SELECT ... FOR UPDATE; polling reconciliation and expiry use a
compare-and-set UPDATE guarded on status = PENDING so they never overwrite
a concurrent webhook.
"""

import logging
import time
import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal, InvalidOperation
from typing import List, Optional, Tuple

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from upi_gateway.core.payments.models import (
    ActorType,
    BankProvider,
    CancellationReason,
    Payment,
    PaymentMethod,
    PaymentStatus,
)
from upi_gateway.infrastructure.settings import get_settings
from upi_gateway.services.banks.base import BankPaymentRequest
from upi_gateway.services.banks.registry import BankAdapterRegistry, parse_bank_provider
from upi_gateway.services.exceptions import (
    InvalidStateTransitionError,
    PaymentNotFoundError,
    PaymentValidationError,
    RefundFailedError,
)
from upi_gateway.services.merchant_directory import MerchantDirectory
from upi_gateway.services.payment_state import (
    COMPLETION_STATUSES,
    check_transition,
    normalize_bank_status,
)
from upi_gateway.services.upi import build_upi_uri, dispatch_collect_request, is_valid_upi_id
from upi_gateway.utils.metrics import record_payment_created, record_payment_transition

logger = logging.getLogger(__name__)


def generate_transaction_id() -> str:
    """TXN + epoch milliseconds + 6 random uppercase hex chars"""
    return f"TXN{int(time.time() * 1000)}{uuid.uuid4().hex[:6].upper()}"


def _parse_amount(amount) -> Decimal:
    try:
        value = Decimal(str(amount))
    except (InvalidOperation, ValueError, TypeError):
        raise PaymentValidationError("Amount must be a decimal number", details={"amount": str(amount)})
    if not value.is_finite() or value <= 0:
        raise PaymentValidationError("Amount must be greater than 0", details={"amount": str(amount)})
    if value.as_tuple().exponent < -2:
        raise PaymentValidationError("Amount must have at most 2 decimal places", details={"amount": str(amount)})
    return value


def get_payment(db: Session, transaction_id: str, for_update: bool = False) -> Payment:
    stmt = select(Payment).where(Payment.transaction_id == transaction_id)
    if for_update:
        stmt = stmt.with_for_update()
    payment = db.execute(stmt).scalar_one_or_none()
    if payment is None:
        raise PaymentNotFoundError(
            f"Payment {transaction_id} not found",
            details={"transaction_id": transaction_id},
        )
    return payment


def find_payment_by_bank_reference(
    db: Session,
    bank_transaction_id: Optional[str],
    transaction_id: Optional[str] = None,
    bank_provider: Optional[str] = None,
) -> Optional[Payment]:
    """
    Find a payment from webhook identifiers.

    The bank's correlation id is tried first, then the merchant-facing
    transaction id the bank echoes back. With bank_provider set, only
    payments routed through that bank match.
    """
    scope = []
    if bank_provider:
        scope.append(Payment.bank_provider == bank_provider)
    if bank_transaction_id:
        payment = db.execute(
            select(Payment).where(Payment.bank_transaction_id == bank_transaction_id, *scope)
        ).scalar_one_or_none()
        if payment is not None:
            return payment
    if transaction_id:
        return db.execute(
            select(Payment).where(Payment.transaction_id == transaction_id, *scope)
        ).scalar_one_or_none()
    return None


def create_payment(
    *,
    db: Session,
    merchant_id: str,
    amount,
    payment_method: PaymentMethod,
    registry: BankAdapterRegistry,
    merchant_directory: MerchantDirectory,
    currency: Optional[str] = None,
    upi_id: Optional[str] = None,
    upi_provider: Optional[str] = None,
    provider: Optional[str] = None,
    callback_url: Optional[str] = None,
    description: Optional[str] = None,
) -> Payment:
    """
    Create a payment and route it to a bank.

    Rules:
    1. Validate amount and, for UPI_ID, the payer address (before any bank call)
    2. Fetch the merchant routing profile (default profile on lookup failure)
    3. Resolve the adapter: a known provider hint wins, else the preferred bank
    4. Call the bank; transport failures come back as simulated PENDING
    5. Attach QR data (UPI_QR) or a payment URI (UPI_ID / UPI_INTENT),
       synthesized from the merchant UPI handle when the bank sent none
    6. Persist as PENDING with the bank correlation id

    Raises:
        PaymentValidationError: Invalid amount or payer UPI address
    """
    settings = get_settings()
    amount = _parse_amount(amount)
    payment_method = PaymentMethod(payment_method)
    currency = (currency or settings.DEFAULT_CURRENCY).upper()

    if payment_method == PaymentMethod.UPI_ID and not is_valid_upi_id(upi_id):
        raise PaymentValidationError(
            "A valid UPI ID is required for UPI_ID payments",
            details={"upi_id": upi_id},
        )

    profile = merchant_directory.get_profile(merchant_id)
    hinted = parse_bank_provider(provider)
    adapter = registry.resolve(hinted or profile.preferred_bank)
    bank_provider = BankProvider(adapter.identify())

    transaction_id = generate_transaction_id()
    bank_request = BankPaymentRequest(
        transaction_id=transaction_id,
        amount=amount,
        currency=currency,
        callback_url=callback_url or profile.webhook_url,
        description=description,
        upi_id=upi_id if payment_method == PaymentMethod.UPI_ID else None,
    )
    bank_response = adapter.create_payment(bank_request)

    payment = Payment(
        transaction_id=transaction_id,
        merchant_id=str(merchant_id),
        amount=amount,
        currency=currency,
        payment_method=payment_method,
        status=PaymentStatus.PENDING,
        bank_provider=bank_provider.value,
        bank_transaction_id=bank_response.bank_transaction_id,
        callback_url=bank_request.callback_url,
        description=description,
    )

    local_uri = build_upi_uri(
        payee_address=profile.payee_address,
        amount=amount,
        transaction_id=transaction_id,
        description=description,
        currency=currency,
    )

    if payment_method == PaymentMethod.UPI_QR:
        payment.qr_code_data = bank_response.qr_code_data or local_uri
    elif payment_method == PaymentMethod.UPI_ID:
        payment.upi_id = upi_id
        payment.payment_url = bank_response.payment_url or local_uri
    else:
        payment.upi_provider = upi_provider
        payment.payment_url = bank_response.payment_url or local_uri

    # Adapters answer FAILED only with BANK_SIMULATE_ON_FAILURE disabled
    if (bank_response.status or "").upper() == PaymentStatus.FAILED.value:
        payment.status = PaymentStatus.FAILED
        payment.completed_at = datetime.now(timezone.utc)
        payment.failure_reason = bank_response.error_message or CancellationReason.TECHNICAL_ERROR.description
        payment.cancelled_by = ActorType.BANK.value

    db.add(payment)
    db.commit()
    db.refresh(payment)

    record_payment_created(bank_provider.value, payment_method.value)
    logger.info(
        f"Payment created: transaction_id={transaction_id}, merchant_id={merchant_id}, "
        f"bank={bank_provider.value}, method={payment_method.value}, status={payment.status.value}, "
        f"simulated={bank_response.simulated}"
    )

    if payment_method == PaymentMethod.UPI_ID and payment.status == PaymentStatus.PENDING:
        try:
            dispatch_collect_request(upi_id, amount, transaction_id)
        except Exception as e:
            logger.warning(f"Collect request failed: transaction_id={transaction_id}, error={e}")

    return payment


def get_payment_status(
    *,
    db: Session,
    transaction_id: str,
    registry: BankAdapterRegistry,
) -> Payment:
    """
    Return a payment, reconciling it with the bank first when still PENDING.

    Reconciliation errors are logged, never raised: the caller always gets
    the best-known record.

    Raises:
        PaymentNotFoundError: Unknown transaction id
    """
    payment = get_payment(db, transaction_id)
    if payment.status != PaymentStatus.PENDING or not payment.bank_transaction_id:
        return payment

    try:
        adapter = registry.resolve(payment.bank_provider)
        bank_response = adapter.check_status(payment.bank_transaction_id)
        target = normalize_bank_status(bank_response.status)
        if target is None or target == PaymentStatus.PENDING:
            return payment

        values = {"status": target}
        if target in COMPLETION_STATUSES:
            values["completed_at"] = datetime.now(timezone.utc)
        if target == PaymentStatus.FAILED:
            values["failure_reason"] = bank_response.error_message or CancellationReason.BANK_DECLINED.description
            values["cancelled_by"] = ActorType.BANK.value
        elif target == PaymentStatus.EXPIRED:
            values["cancellation_reason"] = CancellationReason.TIMEOUT_EXPIRED.description
            values["cancelled_by"] = ActorType.BANK.value

        result = db.execute(
            update(Payment)
            .where(Payment.id == payment.id, Payment.status == PaymentStatus.PENDING)
            .values(**values)
        )
        db.commit()
        if result.rowcount:
            record_payment_transition("reconciliation", target.value)
            logger.info(f"Payment reconciled: transaction_id={transaction_id}, status={target.value}")
        else:
            logger.info(f"Payment changed concurrently, reconciliation skipped: transaction_id={transaction_id}")
    except Exception as e:
        db.rollback()
        logger.warning(f"Status reconciliation failed: transaction_id={transaction_id}, error={e}")

    db.refresh(payment)
    return payment


def refund_payment(
    *,
    db: Session,
    transaction_id: str,
    amount,
    registry: BankAdapterRegistry,
) -> Payment:
    """
    Refund a successful payment through its bank.

    Raises:
        PaymentNotFoundError: Unknown transaction id
        InvalidStateTransitionError: Payment is not SUCCESS
        PaymentValidationError: Amount is not in (0, paid amount]
        RefundFailedError: The bank did not confirm the refund; payment untouched
    """
    amount = _parse_amount(amount)
    payment = get_payment(db, transaction_id, for_update=True)

    try:
        # Refunding twice is an error, not a replay
        if payment.status != PaymentStatus.SUCCESS:
            raise InvalidStateTransitionError(
                f"Only SUCCESS payments can be refunded (current status: {payment.status.value})",
                details={"current_status": payment.status.value, "requested_status": PaymentStatus.REFUNDED.value},
            )
        if amount > payment.amount:
            raise PaymentValidationError(
                "Refund amount exceeds the payment amount",
                details={"amount": str(amount), "paid_amount": str(payment.amount)},
            )
        if not payment.bank_transaction_id:
            raise RefundFailedError(
                "Payment has no bank transaction id to refund against",
                details={"transaction_id": transaction_id},
            )

        adapter = registry.resolve(payment.bank_provider)
        bank_response = adapter.refund(payment.bank_transaction_id, amount)
        if not bank_response.is_success:
            raise RefundFailedError(
                bank_response.error_message or "Refund was not confirmed by the bank",
                details={
                    "transaction_id": transaction_id,
                    "bank": adapter.identify(),
                    "bank_error_code": bank_response.error_code,
                },
            )
    except Exception:
        db.rollback()
        raise

    payment.status = PaymentStatus.REFUNDED
    payment.refund_amount = amount
    payment.refunded_at = datetime.now(timezone.utc)
    db.commit()
    db.refresh(payment)

    record_payment_transition("refund", PaymentStatus.REFUNDED.value)
    logger.info(f"Payment refunded: transaction_id={transaction_id}, amount={amount}")
    return payment


def update_payment_status(
    *,
    db: Session,
    transaction_id: str,
    status: PaymentStatus,
    bank_reference: Optional[str] = None,
    source: str = "callback",
    payment: Optional[Payment] = None,
) -> Tuple[Payment, bool]:
    """
    Set a payment status directly (trusted callers: callbacks and webhooks).

    Returns:
        (payment, applied) - applied is False when the payment already had
        this status (replayed delivery)

    Raises:
        PaymentNotFoundError: Unknown transaction id
        InvalidStateTransitionError: Transition not allowed from the current status
            or REFUNDED requested (set only by refund_payment)
    """
    status = PaymentStatus(status)
    if status == PaymentStatus.REFUNDED:
        raise InvalidStateTransitionError(
            "REFUNDED is set only by a refund request",
            details={"transaction_id": transaction_id, "requested_status": status.value},
        )
    if payment is not None:
        db.refresh(payment, with_for_update=True)
    else:
        payment = get_payment(db, transaction_id, for_update=True)

    try:
        applied = check_transition(payment.status, status)
    except Exception:
        db.rollback()
        raise

    if not applied:
        db.rollback()
        logger.info(f"Duplicate status update ignored: transaction_id={payment.transaction_id}, status={status.value}")
        return payment, False

    payment.status = status
    if bank_reference:
        payment.bank_reference = bank_reference
    if status in COMPLETION_STATUSES:
        payment.completed_at = datetime.now(timezone.utc)
    if status == PaymentStatus.FAILED and not payment.failure_reason:
        payment.failure_reason = CancellationReason.BANK_DECLINED.description
        payment.cancelled_by = ActorType.BANK.value
    db.commit()
    db.refresh(payment)

    record_payment_transition(source, status.value)
    logger.info(f"Payment status updated: transaction_id={payment.transaction_id}, status={status.value}, source={source}")
    return payment, True


def cancel_payment(
    *,
    db: Session,
    transaction_id: str,
    reason: CancellationReason = CancellationReason.MERCHANT_CANCELLED,
    cancelled_by: ActorType = ActorType.MERCHANT,
) -> Payment:
    """
    Cancel a PENDING payment.

    Raises:
        PaymentNotFoundError: Unknown transaction id
        InvalidStateTransitionError: Payment is not PENDING
    """
    reason = CancellationReason(reason)
    cancelled_by = ActorType(cancelled_by)
    payment = get_payment(db, transaction_id, for_update=True)

    try:
        applied = check_transition(payment.status, PaymentStatus.CANCELLED)
    except Exception:
        db.rollback()
        raise
    if not applied:
        db.rollback()
        return payment

    payment.status = PaymentStatus.CANCELLED
    payment.cancellation_reason = reason.description
    payment.cancelled_by = cancelled_by.value
    db.commit()
    db.refresh(payment)

    record_payment_transition("cancel", PaymentStatus.CANCELLED.value)
    logger.info(
        f"Payment cancelled: transaction_id={transaction_id}, reason={reason.value}, by={cancelled_by.value}"
    )
    return payment


def expire_stale_payments(
    *,
    db: Session,
    now: Optional[datetime] = None,
    older_than: Optional[timedelta] = None,
    dry_run: bool = False,
) -> List[str]:
    """
    Move PENDING payments created before now - older_than to EXPIRED.

    older_than defaults to PAYMENT_EXPIRY_MINUTES. Returns the transaction ids
    expired (or that would be, with dry_run).
    """
    now = now or datetime.now(timezone.utc)
    if older_than is None:
        older_than = timedelta(minutes=get_settings().PAYMENT_EXPIRY_MINUTES)
    cutoff = now - older_than

    candidates = db.execute(
        select(Payment.id, Payment.transaction_id)
        .where(Payment.status == PaymentStatus.PENDING, Payment.created_at < cutoff)
        .order_by(Payment.created_at)
    ).all()

    if dry_run:
        return [row.transaction_id for row in candidates]

    expired = []
    for row in candidates:
        result = db.execute(
            update(Payment)
            .where(Payment.id == row.id, Payment.status == PaymentStatus.PENDING)
            .values(
                status=PaymentStatus.EXPIRED,
                cancellation_reason=CancellationReason.TIMEOUT_EXPIRED.description,
                cancelled_by=ActorType.SYSTEM.value,
            )
        )
        if result.rowcount:
            expired.append(row.transaction_id)
    db.commit()

    for transaction_id in expired:
        record_payment_transition("expiry", PaymentStatus.EXPIRED.value)
    if expired:
        logger.info(f"Expired {len(expired)} pending payments older than {cutoff.isoformat()}")
    return expired
