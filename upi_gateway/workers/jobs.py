"""
RQ Jobs - Background tasks
"""

import logging
from datetime import datetime, timezone

logger = logging.getLogger(__name__)


def send_collect_request(upi_id: str, amount: str, transaction_id: str) -> None:
    """
    Send a UPI collect request to the payer's address.

    No PSP integration exists yet; the request is logged and the payer's
    approval arrives later through the bank webhook or status polling.
    """
    logger.info(
        f"Sending UPI collect request: transaction_id={transaction_id}, upi_id={upi_id}, amount={amount}"
    )


def expire_pending_payments_job() -> int:
    """Expire PENDING payments past the configured timeout; returns the count"""
    from upi_gateway.infrastructure.database import SessionLocal
    from upi_gateway.services.payment_service import expire_stale_payments

    db = SessionLocal()
    try:
        expired = expire_stale_payments(db=db, now=datetime.now(timezone.utc))
        logger.info(f"Expired {len(expired)} pending payments")
        return len(expired)
    finally:
        db.close()
