"""
Payments API endpoints - merchant-facing payment lifecycle
"""

import hmac
import logging
from fastapi import APIRouter, Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from upi_gateway.infrastructure.database import get_db
from upi_gateway.infrastructure.logging_config import trace_id_context
from upi_gateway.infrastructure.settings import get_settings
from upi_gateway.schemas.payments import (
    CancelPaymentRequest,
    CreatePaymentRequest,
    PaymentResponse,
    RefundRequest,
    UpiCallbackRequest,
)
from upi_gateway.services import payment_service
from upi_gateway.services.banks.registry import BankAdapterRegistry, get_bank_registry
from upi_gateway.services.merchant_directory import MerchantDirectory, get_merchant_directory

router = APIRouter(prefix="/payments", tags=["payments"])
logger = logging.getLogger(__name__)


def verify_internal_token(
    x_internal_token: str = Header(None, alias="X-Internal-Token", description="Shared internal callback token"),
) -> None:
    """Only trusted internal callers may set payment status directly"""
    expected = get_settings().INTERNAL_CALLBACK_TOKEN
    if not expected or not x_internal_token or not hmac.compare_digest(x_internal_token, expected):
        trace_id = trace_id_context.get()
        logger.warning(f"Internal callback rejected: trace_id={trace_id}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={
                "error": {
                    "code": "UNAUTHORIZED",
                    "message": "Missing or invalid X-Internal-Token",
                    "trace_id": trace_id,
                }
            },
        )


@router.post(
    "",
    response_model=PaymentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create payment",
    description="Create a UPI payment and route it to the merchant's bank.",
)
def create_payment(
    payload: CreatePaymentRequest,
    x_merchant_id: str = Header(..., alias="X-Merchant-Id", min_length=1, max_length=64),
    db: Session = Depends(get_db),
    registry: BankAdapterRegistry = Depends(get_bank_registry),
    merchant_directory: MerchantDirectory = Depends(get_merchant_directory),
) -> PaymentResponse:
    payment = payment_service.create_payment(
        db=db,
        merchant_id=x_merchant_id,
        amount=payload.amount,
        payment_method=payload.payment_method,
        currency=payload.currency,
        upi_id=payload.upi_id,
        upi_provider=payload.upi_provider,
        provider=payload.provider,
        callback_url=payload.callback_url,
        description=payload.description,
        registry=registry,
        merchant_directory=merchant_directory,
    )
    return PaymentResponse.from_payment(payment)


@router.post(
    "/callback/upi",
    response_model=PaymentResponse,
    summary="Internal UPI status callback",
    description="Trusted status update from an internal UPI switch. Requires X-Internal-Token.",
    dependencies=[Depends(verify_internal_token)],
)
def upi_callback(
    payload: UpiCallbackRequest,
    db: Session = Depends(get_db),
) -> PaymentResponse:
    payment, _ = payment_service.update_payment_status(
        db=db,
        transaction_id=payload.transaction_id,
        status=payload.status,
        bank_reference=payload.bank_reference,
        source="callback",
    )
    return PaymentResponse.from_payment(payment)


@router.get(
    "/{transaction_id}",
    response_model=PaymentResponse,
    summary="Get payment status",
    description="Return the payment, reconciling PENDING payments with the bank first.",
)
def get_payment_status(
    transaction_id: str,
    db: Session = Depends(get_db),
    registry: BankAdapterRegistry = Depends(get_bank_registry),
) -> PaymentResponse:
    payment = payment_service.get_payment_status(db=db, transaction_id=transaction_id, registry=registry)
    return PaymentResponse.from_payment(payment)


@router.post(
    "/{transaction_id}/refund",
    response_model=PaymentResponse,
    summary="Refund payment",
    description="Refund a SUCCESS payment. Bank refund failures surface as 502 REFUND_FAILED.",
)
def refund_payment(
    transaction_id: str,
    payload: RefundRequest,
    db: Session = Depends(get_db),
    registry: BankAdapterRegistry = Depends(get_bank_registry),
) -> PaymentResponse:
    payment = payment_service.refund_payment(
        db=db,
        transaction_id=transaction_id,
        amount=payload.amount,
        registry=registry,
    )
    return PaymentResponse.from_payment(payment)


@router.post(
    "/{transaction_id}/cancel",
    response_model=PaymentResponse,
    summary="Cancel payment",
    description="Cancel a PENDING payment.",
)
def cancel_payment(
    transaction_id: str,
    payload: CancelPaymentRequest,
    db: Session = Depends(get_db),
) -> PaymentResponse:
    payment = payment_service.cancel_payment(
        db=db,
        transaction_id=transaction_id,
        reason=payload.reason,
        cancelled_by=payload.cancelled_by,
    )
    return PaymentResponse.from_payment(payment)
