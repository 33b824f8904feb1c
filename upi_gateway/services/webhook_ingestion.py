"""
Webhook ingestion - verify, normalize and apply bank status notifications

Nothing is read from a payload before its signature has been verified
against the raw body bytes.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from upi_gateway.services.banks.base import BankAdapter
from upi_gateway.services.banks.registry import BankAdapterRegistry
from upi_gateway.services.exceptions import (
    PaymentNotFoundError,
    UnknownProviderError,
    WebhookPayloadError,
    WebhookSignatureError,
)
from upi_gateway.services.payment_service import find_payment_by_bank_reference, update_payment_status
from upi_gateway.services.payment_state import normalize_bank_status
from upi_gateway.utils.metrics import record_webhook_received, record_webhook_rejected

logger = logging.getLogger(__name__)

OUTCOME_ACCEPTED = "accepted"
OUTCOME_DUPLICATE = "duplicate"
OUTCOME_IGNORED = "ignored"


@dataclass
class WebhookOutcome:
    status: str  # accepted | duplicate | ignored
    bank: str
    transaction_id: Optional[str] = None
    payment_status: Optional[str] = None


def _parse_body(adapter: BankAdapter, payload: bytes) -> Dict[str, Any]:
    try:
        body = json.loads(payload.decode("utf-8"))
    except (UnicodeDecodeError, ValueError) as e:
        record_webhook_rejected(adapter.bank_code, "invalid_payload")
        raise WebhookPayloadError("Webhook body is not valid JSON", details={"error": str(e)})
    if not isinstance(body, dict):
        record_webhook_rejected(adapter.bank_code, "invalid_payload")
        raise WebhookPayloadError("Webhook body must be a JSON object")
    return body


def ingest_bank_webhook(
    *,
    db: Session,
    adapter: BankAdapter,
    payload: bytes,
    signature: Optional[str],
) -> WebhookOutcome:
    """
    Apply one bank webhook.

    1. Verify the signature over the raw bytes (no mutation on failure)
    2. Read the provider's bank id, merchant transaction id and status fields
    3. Map the status onto the canonical vocabulary; unmapped -> ignored
    4. Apply through update_payment_status; a replayed status -> duplicate

    Raises:
        WebhookSignatureError: Signature missing or wrong
        WebhookPayloadError: Body is not a JSON object or names no transaction
        PaymentNotFoundError: No payment matches the identifiers
        InvalidStateTransitionError: Status conflicts with the stored terminal status
    """
    bank = adapter.identify()

    if not adapter.verify_webhook_signature(payload, signature):
        record_webhook_rejected(bank, "signature_invalid")
        raise WebhookSignatureError(
            f"{adapter.display_name} webhook signature verification failed",
            details={"bank": bank, "header": adapter.webhook_signature_header},
        )

    body = _parse_body(adapter, payload)
    record_webhook_received(bank)

    bank_transaction_id = body.get(adapter.webhook_bank_id_field)
    merchant_transaction_id = body.get(adapter.webhook_order_id_field)
    raw_status = body.get(adapter.webhook_status_field)

    if not bank_transaction_id and not merchant_transaction_id:
        record_webhook_rejected(bank, "invalid_payload")
        raise WebhookPayloadError(
            "Webhook names no transaction",
            details={"expected_fields": [adapter.webhook_bank_id_field, adapter.webhook_order_id_field]},
        )

    payment = find_payment_by_bank_reference(
        db,
        bank_transaction_id=str(bank_transaction_id) if bank_transaction_id else None,
        transaction_id=str(merchant_transaction_id) if merchant_transaction_id else None,
        bank_provider=bank,
    )
    if payment is None:
        record_webhook_rejected(bank, "not_found")
        raise PaymentNotFoundError(
            "No payment matches webhook identifiers",
            details={"bank_transaction_id": bank_transaction_id, "transaction_id": merchant_transaction_id},
        )

    target = normalize_bank_status(raw_status)
    if target is None:
        logger.info(
            f"{bank} webhook status not applied: transaction_id={payment.transaction_id}, status={raw_status}"
        )
        return WebhookOutcome(
            status=OUTCOME_IGNORED,
            bank=bank,
            transaction_id=payment.transaction_id,
            payment_status=payment.status.value,
        )

    payment, applied = update_payment_status(
        db=db,
        transaction_id=payment.transaction_id,
        status=target,
        bank_reference=str(bank_transaction_id) if bank_transaction_id else None,
        source="webhook",
        payment=payment,
    )
    logger.info(
        f"{bank} webhook processed: transaction_id={payment.transaction_id}, "
        f"status={target.value}, applied={applied}"
    )
    return WebhookOutcome(
        status=OUTCOME_ACCEPTED if applied else OUTCOME_DUPLICATE,
        bank=bank,
        transaction_id=payment.transaction_id,
        payment_status=payment.status.value,
    )


def ingest_generic_webhook(
    *,
    db: Session,
    registry: BankAdapterRegistry,
    bank_name: Optional[str],
    payload: bytes,
    signature: Optional[str],
) -> WebhookOutcome:
    """
    Apply a webhook whose bank is named by a header.

    Unlike payment routing there is no default bank here: an unknown name is
    rejected before any verification.

    Raises:
        UnknownProviderError: bank_name is missing or not a supported bank
    """
    adapter = registry.lookup(bank_name)
    if adapter is None:
        record_webhook_rejected("UNKNOWN", "unknown_provider")
        raise UnknownProviderError(
            f"Unknown bank provider: {bank_name}",
            details={"bank": bank_name},
        )
    return ingest_bank_webhook(db=db, adapter=adapter, payload=payload, signature=signature)
