"""
UPI helpers - payment URIs, address validation and collect requests
"""

import logging
import re
from decimal import Decimal
from typing import Optional

from redis import RedisError
from rq import Queue

from upi_gateway.infrastructure.redis_client import get_redis
from upi_gateway.infrastructure.settings import get_settings
from upi_gateway.services.banks.base import format_amount

logger = logging.getLogger(__name__)

UPI_ID_PATTERN = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+$")


def build_upi_uri(
    payee_address: str,
    amount: Decimal,
    transaction_id: str,
    description: Optional[str] = None,
    currency: str = "INR",
) -> str:
    """
    Build a UPI payment URI.

    Format is fixed because UPI apps parse it positionally:
    upi://pay?pa=<payee>&am=<amount, 2 decimals>&tr=<txn id>&tn=<note>&cu=<currency>
    """
    return (
        f"upi://pay?pa={payee_address}"
        f"&am={format_amount(amount)}"
        f"&tr={transaction_id}"
        f"&tn={description or 'Payment'}"
        f"&cu={currency}"
    )


def is_valid_upi_id(upi_id: Optional[str]) -> bool:
    return bool(upi_id) and UPI_ID_PATTERN.match(upi_id) is not None


def dispatch_collect_request(upi_id: str, amount: Decimal, transaction_id: str) -> bool:
    """
    Ask the payer's UPI address to approve a payment. Best effort.

    Returns False when the request could not be queued; payment creation
    does not depend on the outcome.
    """
    from upi_gateway.workers.jobs import send_collect_request

    settings = get_settings()
    if not settings.COLLECT_REQUESTS_ASYNC:
        send_collect_request(upi_id, str(amount), transaction_id)
        return True

    try:
        queue = Queue(settings.COLLECT_REQUESTS_QUEUE, connection=get_redis())
        queue.enqueue(send_collect_request, upi_id, str(amount), transaction_id)
        return True
    except RedisError as e:
        logger.warning(
            f"Collect request not queued: transaction_id={transaction_id}, upi_id={upi_id}, error={e}"
        )
        return False
