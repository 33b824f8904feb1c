"""
Payment state machine tests
"""

import pytest

from upi_gateway.core.payments.models import PaymentStatus
from upi_gateway.services.exceptions import InvalidStateTransitionError
from upi_gateway.services.payment_state import (
    TERMINAL_STATUSES,
    can_transition,
    check_transition,
    is_terminal,
    normalize_bank_status,
)

CLOSED_STATUSES = [
    PaymentStatus.CANCELLED,
    PaymentStatus.EXPIRED,
    PaymentStatus.FAILED,
    PaymentStatus.REFUNDED,
]


class TestTransitions:
    @pytest.mark.parametrize("target", [
        PaymentStatus.SUCCESS,
        PaymentStatus.FAILED,
        PaymentStatus.CANCELLED,
        PaymentStatus.EXPIRED,
    ])
    def test_pending_moves_to_any_terminal_status(self, target):
        assert check_transition(PaymentStatus.PENDING, target) is True

    def test_pending_cannot_be_refunded(self):
        with pytest.raises(InvalidStateTransitionError):
            check_transition(PaymentStatus.PENDING, PaymentStatus.REFUNDED)

    def test_success_only_moves_to_refunded(self):
        assert check_transition(PaymentStatus.SUCCESS, PaymentStatus.REFUNDED) is True
        for target in PaymentStatus:
            if target in (PaymentStatus.SUCCESS, PaymentStatus.REFUNDED):
                continue
            with pytest.raises(InvalidStateTransitionError):
                check_transition(PaymentStatus.SUCCESS, target)

    @pytest.mark.parametrize("current", CLOSED_STATUSES)
    def test_no_transition_out_of_closed_statuses(self, current):
        """Every other status is rejected from CANCELLED, EXPIRED, FAILED and REFUNDED"""
        for target in PaymentStatus:
            if target == current:
                continue
            assert can_transition(current, target) is False
            with pytest.raises(InvalidStateTransitionError) as exc_info:
                check_transition(current, target)
            assert exc_info.value.code == "INVALID_STATE"
            assert exc_info.value.details == {
                "current_status": current.value,
                "requested_status": target.value,
            }

    @pytest.mark.parametrize("status", list(PaymentStatus))
    def test_same_status_is_noop(self, status):
        assert check_transition(status, status) is False

    def test_terminal_statuses(self):
        assert not is_terminal(PaymentStatus.PENDING)
        assert all(is_terminal(s) for s in TERMINAL_STATUSES)
        assert PaymentStatus.PENDING not in TERMINAL_STATUSES


class TestNormalizeBankStatus:
    @pytest.mark.parametrize("raw,expected", [
        ("SUCCESS", PaymentStatus.SUCCESS),
        ("COMPLETED", PaymentStatus.SUCCESS),
        ("completed", PaymentStatus.SUCCESS),
        ("FAILED", PaymentStatus.FAILED),
        ("CANCELLED", PaymentStatus.FAILED),
        ("EXPIRED", PaymentStatus.EXPIRED),
    ])
    def test_known(self, raw, expected):
        assert normalize_bank_status(raw) == expected

    @pytest.mark.parametrize("raw", ["PENDING", "PROCESSING", "", None, "REFUNDED", 1])
    def test_unknown_leaves_status_unchanged(self, raw):
        assert normalize_bank_status(raw) is None
