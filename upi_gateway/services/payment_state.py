"""
Payment Status Engine - allowed transitions and bank status normalization
"""

from typing import Optional

from upi_gateway.core.payments.models import PaymentStatus
from upi_gateway.services.exceptions import InvalidStateTransitionError


TERMINAL_STATUSES = frozenset({
    PaymentStatus.SUCCESS,
    PaymentStatus.FAILED,
    PaymentStatus.CANCELLED,
    PaymentStatus.EXPIRED,
    PaymentStatus.REFUNDED,
})

# Statuses that stamp completed_at when entered
COMPLETION_STATUSES = frozenset({PaymentStatus.SUCCESS, PaymentStatus.FAILED})

ALLOWED_TRANSITIONS = {
    PaymentStatus.PENDING: frozenset({
        PaymentStatus.SUCCESS,
        PaymentStatus.FAILED,
        PaymentStatus.CANCELLED,
        PaymentStatus.EXPIRED,
    }),
    PaymentStatus.SUCCESS: frozenset({PaymentStatus.REFUNDED}),
    PaymentStatus.FAILED: frozenset(),
    PaymentStatus.CANCELLED: frozenset(),
    PaymentStatus.EXPIRED: frozenset(),
    PaymentStatus.REFUNDED: frozenset(),
}

# Bank status vocabulary -> canonical status.
# Anything not listed leaves the payment where it is.
_BANK_STATUS_MAP = {
    "SUCCESS": PaymentStatus.SUCCESS,
    "COMPLETED": PaymentStatus.SUCCESS,
    "FAILED": PaymentStatus.FAILED,
    "CANCELLED": PaymentStatus.FAILED,
    "EXPIRED": PaymentStatus.EXPIRED,
}


def can_transition(current: PaymentStatus, target: PaymentStatus) -> bool:
    """True if moving from current to target is a defined transition"""
    return target in ALLOWED_TRANSITIONS[current]


def is_terminal(status: PaymentStatus) -> bool:
    return status in TERMINAL_STATUSES


def check_transition(current: PaymentStatus, target: PaymentStatus) -> bool:
    """
    Validate a requested status change.

    Returns:
        True if the change must be applied, False if it is a no-op
        (same status requested again, e.g. a replayed webhook).

    Raises:
        InvalidStateTransitionError: transition is not defined
    """
    if current == target:
        return False
    if not can_transition(current, target):
        raise InvalidStateTransitionError(
            f"Cannot move payment from {current.value} to {target.value}",
            details={"current_status": current.value, "requested_status": target.value},
        )
    return True


def normalize_bank_status(raw_status: Optional[str]) -> Optional[PaymentStatus]:
    """
    Map a bank-reported status string onto the canonical vocabulary.

    {SUCCESS, COMPLETED} -> SUCCESS, {FAILED, CANCELLED} -> FAILED,
    EXPIRED -> EXPIRED; anything else (PENDING, PROCESSING, unknown) -> None.
    """
    if not raw_status or not isinstance(raw_status, str):
        return None
    return _BANK_STATUS_MAP.get(raw_status.strip().upper())
