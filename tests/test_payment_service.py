"""
Payment service tests - creation, reconciliation, refunds, cancellations and expiry
"""

import json
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from sqlalchemy import select
from sqlalchemy.orm import Session

from upi_gateway.core.payments.models import (
    ActorType,
    CancellationReason,
    Payment,
    PaymentMethod,
    PaymentStatus,
)
from upi_gateway.services import payment_service
from upi_gateway.services.exceptions import (
    InvalidStateTransitionError,
    PaymentNotFoundError,
    PaymentValidationError,
    RefundFailedError,
)
from upi_gateway.services.upi import build_upi_uri


def _snapshot(payment: Payment) -> dict:
    return {column.name: getattr(payment, column.key) for column in Payment.__table__.columns}


def _create(db_session, bank_registry, merchant_directory, **kwargs):
    params = {
        "merchant_id": "M-100",
        "amount": Decimal("499.00"),
        "payment_method": PaymentMethod.UPI_QR,
        "description": "Order 1042",
    }
    params.update(kwargs)
    return payment_service.create_payment(
        db=db_session,
        registry=bank_registry,
        merchant_directory=merchant_directory,
        **params,
    )


class TestTransactionId:
    def test_format(self):
        transaction_id = payment_service.generate_transaction_id()
        assert transaction_id.startswith("TXN")
        assert transaction_id[3:16].isdigit()
        suffix = transaction_id[16:]
        assert len(suffix) == 6
        assert suffix == suffix.upper()

    def test_unique_across_10000_generations(self):
        ids = {payment_service.generate_transaction_id() for _ in range(10000)}
        assert len(ids) == 10000


class TestBuildUpiUri:
    def test_exact_format(self):
        uri = build_upi_uri("shop@axisbank", Decimal("49.9"), "TXN1", "Coffee", "INR")
        assert uri == "upi://pay?pa=shop@axisbank&am=49.90&tr=TXN1&tn=Coffee&cu=INR"

    def test_default_note(self):
        uri = build_upi_uri("shop@hdfc", Decimal("10"), "TXN2")
        assert uri == "upi://pay?pa=shop@hdfc&am=10.00&tr=TXN2&tn=Payment&cu=INR"


class TestCreatePayment:
    def test_qr_payment_uses_bank_qr(self, db_session, bank_registry, merchant_directory, fake_bank, fake_merchants):
        fake_merchants.on("GET", "http://merchants.test/merchants/M-100/info", json={
            "id": "M-100",
            "businessName": "Chai Point",
            "upiId": "chaipoint@hdfcbank",
            "preferredBank": "hdfc",
        })
        fake_bank.on("POST", "http://hdfc.bank.test/api/v1/payments/create", json={
            "transaction_id": "HDFC_REMOTE42",
            "status": "PENDING",
            "qr_code": "bank-qr-payload",
        })

        payment = _create(db_session, bank_registry, merchant_directory)

        assert payment.status == PaymentStatus.PENDING
        assert payment.bank_provider == "HDFC"
        assert payment.bank_transaction_id == "HDFC_REMOTE42"
        assert payment.qr_code_data == "bank-qr-payload"
        assert payment.payment_url is None
        assert payment.currency == "INR"

    def test_qr_payment_falls_back_to_local_qr(self, db_session, bank_registry, merchant_directory, fake_merchants):
        """Bank down: QR data is synthesized from the merchant UPI handle"""
        fake_merchants.on("GET", "http://merchants.test/merchants/M-100/info", json={
            "upiId": "chaipoint@icici",
            "preferredBank": "ICICI",
        })

        payment = _create(db_session, bank_registry, merchant_directory)

        assert payment.bank_transaction_id.startswith("ICICI_")
        assert payment.qr_code_data == (
            f"upi://pay?pa=chaipoint@icici&am=499.00&tr={payment.transaction_id}&tn=Order 1042&cu=INR"
        )

    def test_merchant_service_down_routes_to_default_bank(self, db_session, bank_registry, merchant_directory):
        payment = _create(db_session, bank_registry, merchant_directory)

        assert payment.bank_provider == "AXIS"
        assert payment.bank_transaction_id.startswith("AXIS_")
        assert payment.qr_code_data.startswith("upi://pay?pa=merchant@axis&am=499.00")

    def test_provider_hint_overrides_preferred_bank(self, db_session, bank_registry, merchant_directory):
        payment = _create(db_session, bank_registry, merchant_directory, provider="kotak")
        assert payment.bank_provider == "KOTAK"

    def test_unknown_provider_hint_ignored(self, db_session, bank_registry, merchant_directory):
        payment = _create(db_session, bank_registry, merchant_directory, provider="SBI")
        assert payment.bank_provider == "AXIS"

    def test_upi_id_payment(self, db_session, bank_registry, merchant_directory, fake_bank):
        payment = _create(
            db_session, bank_registry, merchant_directory,
            payment_method=PaymentMethod.UPI_ID,
            upi_id="payer@okhdfcbank",
        )

        assert payment.upi_id == "payer@okhdfcbank"
        assert payment.payment_url is not None
        assert payment.qr_code_data is None
        sent = json.loads(fake_bank.requests[0].content)
        assert sent["vpa"] == "payer@okhdfcbank"

    def test_upi_id_payment_survives_collect_request_failure(
        self, db_session, bank_registry, merchant_directory, monkeypatch
    ):
        def broken_dispatch(*args, **kwargs):
            raise RuntimeError("queue down")

        monkeypatch.setattr(payment_service, "dispatch_collect_request", broken_dispatch)

        payment = _create(
            db_session, bank_registry, merchant_directory,
            payment_method=PaymentMethod.UPI_ID,
            upi_id="payer@ybl",
        )

        assert payment.status == PaymentStatus.PENDING

    @pytest.mark.parametrize("upi_id", [None, "", "not-an-address", "a b@bank"])
    def test_upi_id_payment_requires_valid_address(
        self, db_session, bank_registry, merchant_directory, fake_bank, upi_id
    ):
        with pytest.raises(PaymentValidationError):
            _create(
                db_session, bank_registry, merchant_directory,
                payment_method=PaymentMethod.UPI_ID,
                upi_id=upi_id,
            )
        assert fake_bank.requests == []

    def test_intent_payment_keeps_bank_url(self, db_session, bank_registry, merchant_directory, fake_bank):
        fake_bank.on("POST", "http://axis.bank.test/api/v2/payments/initiate", json={
            "transactionId": "AXIS_REMOTE7",
            "paymentUrl": "upi://pay?pa=remote@axisbank&am=499.00",
        })

        payment = _create(
            db_session, bank_registry, merchant_directory,
            payment_method=PaymentMethod.UPI_INTENT,
            upi_provider="PHONEPE",
        )

        assert payment.payment_url == "upi://pay?pa=remote@axisbank&am=499.00"
        assert payment.upi_provider == "PHONEPE"
        assert payment.qr_code_data is None

    @pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-1"), Decimal("1.001"), "abc"])
    def test_invalid_amount_rejected_before_bank_call(
        self, db_session, bank_registry, merchant_directory, fake_bank, fake_merchants, amount
    ):
        with pytest.raises(PaymentValidationError):
            _create(db_session, bank_registry, merchant_directory, amount=amount)
        assert fake_bank.requests == []
        assert fake_merchants.requests == []

    def test_bank_failure_without_simulation_persists_failed(
        self, db_session, bank_registry, merchant_directory, monkeypatch
    ):
        monkeypatch.setattr(bank_registry.resolve("AXIS"), "simulate_on_failure", False)

        payment = _create(db_session, bank_registry, merchant_directory)

        assert payment.status == PaymentStatus.FAILED
        assert payment.bank_transaction_id is None
        assert payment.completed_at is not None
        assert payment.cancelled_by == ActorType.BANK.value

    @pytest.mark.parametrize("bank_status", ["FAILED", "CANCELLED"])
    def test_bank_declining_create_falls_back_to_simulated_pending(
        self, db_session, bank_registry, merchant_directory, fake_bank, bank_status
    ):
        fake_bank.on("POST", "http://hdfc.bank.test/api/v1/payments/create", json={
            "transaction_id": "HDFC_declined",
            "status": bank_status,
        })

        payment = _create(db_session, bank_registry, merchant_directory, provider="hdfc")

        assert payment.status == PaymentStatus.PENDING
        assert payment.bank_provider == "HDFC"
        assert payment.bank_transaction_id != "HDFC_declined"
        assert payment.bank_transaction_id.startswith("HDFC_")
        assert payment.completed_at is None
        assert payment.failure_reason is None

    def test_bank_declining_create_without_simulation_persists_failed(
        self, db_session, bank_registry, merchant_directory, fake_bank, monkeypatch
    ):
        monkeypatch.setattr(bank_registry.resolve("HDFC"), "simulate_on_failure", False)
        fake_bank.on("POST", "http://hdfc.bank.test/api/v1/payments/create", json={
            "transaction_id": "HDFC_declined",
            "status": "FAILED",
        })

        payment = _create(db_session, bank_registry, merchant_directory, provider="hdfc")

        assert payment.status == PaymentStatus.FAILED
        assert payment.bank_transaction_id is None
        assert payment.completed_at is not None
        assert payment.cancelled_by == ActorType.BANK.value


class TestGetPaymentStatus:
    def test_not_found(self, db_session, bank_registry):
        with pytest.raises(PaymentNotFoundError):
            payment_service.get_payment_status(db=db_session, transaction_id="TXN404", registry=bank_registry)

    @pytest.mark.parametrize("bank_status,expected", [
        ("SUCCESS", PaymentStatus.SUCCESS),
        ("COMPLETED", PaymentStatus.SUCCESS),
        ("FAILED", PaymentStatus.FAILED),
        ("CANCELLED", PaymentStatus.FAILED),
        ("EXPIRED", PaymentStatus.EXPIRED),
    ])
    def test_reconciles_pending(self, db_session, bank_registry, fake_bank, make_payment, bank_status, expected):
        payment = make_payment(bank_provider="HDFC", bank_transaction_id="HDFC_aaaa1111")
        fake_bank.on("GET", "http://hdfc.bank.test/api/v1/payments/status/HDFC_aaaa1111", json={
            "transaction_id": "HDFC_aaaa1111",
            "status": bank_status,
        })

        result = payment_service.get_payment_status(
            db=db_session, transaction_id=payment.transaction_id, registry=bank_registry
        )

        assert result.status == expected
        if expected in (PaymentStatus.SUCCESS, PaymentStatus.FAILED):
            assert result.completed_at is not None

    def test_unknown_bank_status_leaves_pending(self, db_session, bank_registry, fake_bank, make_payment):
        payment = make_payment(bank_provider="KOTAK", bank_transaction_id="KOTAK_1")
        fake_bank.on("GET", "http://kotak.bank.test/payments/v2/status/KOTAK_1", json={
            "transactionId": "KOTAK_1",
            "status": "PROCESSING",
        })

        result = payment_service.get_payment_status(
            db=db_session, transaction_id=payment.transaction_id, registry=bank_registry
        )

        assert result.status == PaymentStatus.PENDING
        assert result.completed_at is None

    def test_bank_outage_returns_stored_record(self, db_session, bank_registry, make_payment):
        payment = make_payment(bank_provider="ICICI")

        result = payment_service.get_payment_status(
            db=db_session, transaction_id=payment.transaction_id, registry=bank_registry
        )

        assert result.status == PaymentStatus.PENDING

    def test_reconciliation_errors_are_swallowed(self, db_session, bank_registry, make_payment, monkeypatch):
        payment = make_payment(bank_provider="HDFC")

        def explode(bank_transaction_id):
            raise RuntimeError("unexpected")

        monkeypatch.setattr(bank_registry.resolve("HDFC"), "check_status", explode)

        result = payment_service.get_payment_status(
            db=db_session, transaction_id=payment.transaction_id, registry=bank_registry
        )

        assert result.status == PaymentStatus.PENDING

    def test_terminal_payment_not_polled(self, db_session, bank_registry, fake_bank, make_payment):
        payment = make_payment(status=PaymentStatus.SUCCESS)

        payment_service.get_payment_status(
            db=db_session, transaction_id=payment.transaction_id, registry=bank_registry
        )

        assert fake_bank.requests == []

    def test_compare_and_set_skips_concurrently_settled_payment(
        self, db_session, bank_registry, fake_bank, make_payment, monkeypatch
    ):
        """A webhook landing between the poll and the write wins"""
        payment = make_payment(bank_provider="HDFC", bank_transaction_id="HDFC_race")
        adapter = bank_registry.resolve("HDFC")
        original = adapter.check_status

        def check_status_with_concurrent_webhook(bank_transaction_id):
            response = original(bank_transaction_id)
            db_session.execute(
                Payment.__table__.update()
                .where(Payment.__table__.c.transaction_id == payment.transaction_id)
                .values(status=PaymentStatus.FAILED.name)
            )
            db_session.commit()
            return response

        fake_bank.on("GET", "http://hdfc.bank.test/api/v1/payments/status/HDFC_race", json={
            "transaction_id": "HDFC_race",
            "status": "SUCCESS",
        })
        monkeypatch.setattr(adapter, "check_status", check_status_with_concurrent_webhook)

        result = payment_service.get_payment_status(
            db=db_session, transaction_id=payment.transaction_id, registry=bank_registry
        )

        assert result.status == PaymentStatus.FAILED


class TestRefundPayment:
    def test_refund_success(self, db_session, bank_registry, fake_bank, make_payment):
        payment = make_payment(status=PaymentStatus.SUCCESS, bank_provider="AXIS", bank_transaction_id="AXIS_paid1")
        fake_bank.on("POST", "http://axis.bank.test/api/v2/payments/refund", json={
            "refundReference": "REF_AXIS_remote",
            "status": "SUCCESS",
        })

        result = payment_service.refund_payment(
            db=db_session, transaction_id=payment.transaction_id, amount=Decimal("200.00"), registry=bank_registry
        )

        assert result.status == PaymentStatus.REFUNDED
        assert result.refund_amount == Decimal("200.00")
        assert result.refunded_at is not None

    @pytest.mark.parametrize("status", [
        PaymentStatus.PENDING,
        PaymentStatus.FAILED,
        PaymentStatus.CANCELLED,
        PaymentStatus.EXPIRED,
        PaymentStatus.REFUNDED,
    ])
    def test_refund_non_success_rejected_and_record_unchanged(
        self, db_session, bank_registry, fake_bank, make_payment, status
    ):
        payment = make_payment(status=status)
        before = _snapshot(payment)

        with pytest.raises(InvalidStateTransitionError):
            payment_service.refund_payment(
                db=db_session, transaction_id=payment.transaction_id, amount=Decimal("1"), registry=bank_registry
            )

        db_session.expire_all()
        stored = db_session.execute(select(Payment).where(Payment.id == payment.id)).scalar_one()
        assert _snapshot(stored) == before
        assert fake_bank.requests == []

    def test_bank_refund_failure_surfaces_and_leaves_record(self, db_session, bank_registry, make_payment):
        payment = make_payment(status=PaymentStatus.SUCCESS, bank_provider="HDFC")
        before = _snapshot(payment)

        with pytest.raises(RefundFailedError):
            payment_service.refund_payment(
                db=db_session, transaction_id=payment.transaction_id, amount=Decimal("10"), registry=bank_registry
            )

        db_session.expire_all()
        stored = db_session.execute(select(Payment).where(Payment.id == payment.id)).scalar_one()
        assert _snapshot(stored) == before

    def test_bank_declined_refund(self, db_session, bank_registry, fake_bank, make_payment):
        payment = make_payment(status=PaymentStatus.SUCCESS, bank_provider="KOTAK", bank_transaction_id="KOTAK_p")
        fake_bank.on("POST", "http://kotak.bank.test/payments/v2/refund", json={
            "refundId": "REF_KOTAK_x",
            "status": "FAILED",
            "errorMessage": "Refund window closed",
        })

        with pytest.raises(RefundFailedError) as exc_info:
            payment_service.refund_payment(
                db=db_session, transaction_id=payment.transaction_id, amount=Decimal("10"), registry=bank_registry
            )

        assert exc_info.value.code == "REFUND_FAILED"
        db_session.expire_all()
        assert db_session.get(Payment, payment.id).status == PaymentStatus.SUCCESS

    def test_refund_above_paid_amount_rejected(self, db_session, bank_registry, make_payment):
        payment = make_payment(status=PaymentStatus.SUCCESS, amount=Decimal("100.00"))

        with pytest.raises(PaymentValidationError):
            payment_service.refund_payment(
                db=db_session, transaction_id=payment.transaction_id, amount=Decimal("100.01"), registry=bank_registry
            )

    def test_refund_unknown_payment(self, db_session, bank_registry):
        with pytest.raises(PaymentNotFoundError):
            payment_service.refund_payment(
                db=db_session, transaction_id="TXN_missing", amount=Decimal("1"), registry=bank_registry
            )


class TestUpdatePaymentStatus:
    def test_sets_status_and_completion_time(self, db_session, make_payment):
        payment = make_payment()

        result, applied = payment_service.update_payment_status(
            db=db_session,
            transaction_id=payment.transaction_id,
            status=PaymentStatus.SUCCESS,
            bank_reference="UTR123456",
        )

        assert applied is True
        assert result.status == PaymentStatus.SUCCESS
        assert result.bank_reference == "UTR123456"
        assert result.completed_at is not None

    def test_repeated_terminal_status_is_noop(self, db_session, make_payment):
        payment = make_payment()
        first, _ = payment_service.update_payment_status(
            db=db_session, transaction_id=payment.transaction_id, status=PaymentStatus.SUCCESS
        )
        completed_at = first.completed_at

        second, applied = payment_service.update_payment_status(
            db=db_session, transaction_id=payment.transaction_id, status=PaymentStatus.SUCCESS
        )

        assert applied is False
        assert second.completed_at == completed_at

    def test_transition_out_of_terminal_rejected(self, db_session, make_payment):
        payment = make_payment(status=PaymentStatus.FAILED)

        with pytest.raises(InvalidStateTransitionError):
            payment_service.update_payment_status(
                db=db_session, transaction_id=payment.transaction_id, status=PaymentStatus.SUCCESS
            )

    def test_refunded_not_settable_directly(self, db_session, make_payment):
        payment = make_payment(status=PaymentStatus.SUCCESS)

        with pytest.raises(InvalidStateTransitionError) as exc_info:
            payment_service.update_payment_status(
                db=db_session, transaction_id=payment.transaction_id, status=PaymentStatus.REFUNDED
            )

        assert exc_info.value.details["requested_status"] == "REFUNDED"
        db_session.expire_all()
        stored = db_session.get(Payment, payment.id)
        assert stored.status == PaymentStatus.SUCCESS
        assert stored.refund_amount is None

    def test_bank_transaction_id_never_changes(self, db_session, make_payment):
        payment = make_payment(bank_transaction_id="HDFC_orig0001")

        result, _ = payment_service.update_payment_status(
            db=db_session,
            transaction_id=payment.transaction_id,
            status=PaymentStatus.SUCCESS,
            bank_reference="HDFC_other",
        )

        assert result.bank_transaction_id == "HDFC_orig0001"


class TestCancelPayment:
    def test_cancel_pending(self, db_session, make_payment):
        payment = make_payment()

        result = payment_service.cancel_payment(
            db=db_session,
            transaction_id=payment.transaction_id,
            reason=CancellationReason.USER_CANCELLED,
            cancelled_by=ActorType.USER,
        )

        assert result.status == PaymentStatus.CANCELLED
        assert result.cancellation_reason == "User cancelled the payment"
        assert result.cancelled_by == "USER"

    def test_cancel_success_rejected(self, db_session, make_payment):
        payment = make_payment(status=PaymentStatus.SUCCESS)

        with pytest.raises(InvalidStateTransitionError):
            payment_service.cancel_payment(db=db_session, transaction_id=payment.transaction_id)


class TestExpireStalePayments:
    def test_expires_only_old_pending(self, db_session: Session, make_payment):
        now = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)
        stale = make_payment(created_at=now - timedelta(minutes=30))
        fresh = make_payment(created_at=now - timedelta(minutes=5))
        settled = make_payment(status=PaymentStatus.SUCCESS, created_at=now - timedelta(hours=2))

        expired = payment_service.expire_stale_payments(db=db_session, now=now)

        assert expired == [stale.transaction_id]
        db_session.expire_all()
        assert db_session.get(Payment, stale.id).status == PaymentStatus.EXPIRED
        assert db_session.get(Payment, stale.id).cancelled_by == "SYSTEM"
        assert db_session.get(Payment, fresh.id).status == PaymentStatus.PENDING
        assert db_session.get(Payment, settled.id).status == PaymentStatus.SUCCESS

    def test_dry_run_changes_nothing(self, db_session: Session, make_payment):
        now = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)
        stale = make_payment(created_at=now - timedelta(minutes=30))

        expired = payment_service.expire_stale_payments(db=db_session, now=now, dry_run=True)

        assert expired == [stale.transaction_id]
        db_session.expire_all()
        assert db_session.get(Payment, stale.id).status == PaymentStatus.PENDING
