"""
Payments API tests
"""

from decimal import Decimal

from fastapi import status

from upi_gateway.models import Payment, PaymentMethod, PaymentStatus

MERCHANT_HEADERS = {"X-Merchant-Id": "M-100"}
INTERNAL_HEADERS = {"X-Internal-Token": "test-internal-token"}


class TestCreatePayment:
    def test_create_qr_payment(self, client, db_session):
        response = client.post(
            "/api/v1/payments",
            json={"amount": "250.50", "payment_method": "UPI_QR", "description": "Order 7"},
            headers=MERCHANT_HEADERS,
        )

        assert response.status_code == status.HTTP_201_CREATED
        data = response.json()
        assert data["transaction_id"].startswith("TXN")
        assert data["merchant_id"] == "M-100"
        assert Decimal(data["amount"]) == Decimal("250.50")
        assert data["currency"] == "INR"
        assert data["status"] == "PENDING"
        assert data["bank_provider"] == "AXIS"
        assert data["bank_name"] == "Axis Bank"
        assert data["bank_transaction_id"].startswith("AXIS_")
        assert data["qr_code_data"].startswith("upi://pay?pa=merchant@axis&am=250.50")
        assert data["payment_url"] is None

        stored = db_session.query(Payment).filter_by(transaction_id=data["transaction_id"]).one()
        assert stored.status == PaymentStatus.PENDING

    def test_create_intent_payment_returns_url_only(self, client):
        response = client.post(
            "/api/v1/payments",
            json={"amount": "10", "payment_method": "UPI_INTENT", "provider": "ICICI"},
            headers=MERCHANT_HEADERS,
        )

        assert response.status_code == status.HTTP_201_CREATED
        data = response.json()
        assert data["bank_provider"] == "ICICI"
        assert data["payment_url"].startswith("upi://pay?")
        assert data["qr_code_data"] is None

    def test_missing_merchant_header(self, client):
        response = client.post("/api/v1/payments", json={"amount": "10", "payment_method": "UPI_QR"})

        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    def test_non_positive_amount(self, client, fake_bank):
        response = client.post(
            "/api/v1/payments",
            json={"amount": "0", "payment_method": "UPI_QR"},
            headers=MERCHANT_HEADERS,
        )

        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
        assert fake_bank.requests == []

    def test_upi_id_payment_without_address(self, client, fake_bank):
        response = client.post(
            "/api/v1/payments",
            json={"amount": "10", "payment_method": "UPI_ID"},
            headers=MERCHANT_HEADERS,
        )

        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"
        assert fake_bank.requests == []

    def test_unknown_payment_method(self, client):
        response = client.post(
            "/api/v1/payments",
            json={"amount": "10", "payment_method": "CARD"},
            headers=MERCHANT_HEADERS,
        )

        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


class TestGetPayment:
    def test_get_settled_payment(self, client, make_payment):
        payment = make_payment(status=PaymentStatus.SUCCESS, bank_provider="KOTAK")

        response = client.get(f"/api/v1/payments/{payment.transaction_id}")

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["status"] == "SUCCESS"
        assert data["bank_name"] == "Kotak Mahindra Bank"
        assert data["completed_at"] is not None

    def test_get_reconciles_with_bank(self, client, fake_bank, make_payment):
        payment = make_payment(bank_provider="AXIS", bank_transaction_id="AXIS_poll0001")
        fake_bank.on("GET", "http://axis.bank.test/api/v2/payments/status/AXIS_poll0001", json={
            "transactionId": "AXIS_poll0001",
            "status": "SUCCESS",
        })

        response = client.get(f"/api/v1/payments/{payment.transaction_id}")

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["status"] == "SUCCESS"

    def test_get_unknown_payment(self, client):
        response = client.get("/api/v1/payments/TXN_unknown")

        assert response.status_code == status.HTTP_404_NOT_FOUND
        error = response.json()["error"]
        assert error["code"] == "PAYMENT_NOT_FOUND"
        assert error["details"] == {"transaction_id": "TXN_unknown"}


class TestRefund:
    def test_refund(self, client, fake_bank, make_payment):
        payment = make_payment(status=PaymentStatus.SUCCESS, bank_provider="HDFC", bank_transaction_id="HDFC_r1")
        fake_bank.on("POST", "http://hdfc.bank.test/api/v1/payments/refund", json={
            "refund_id": "REF_remote",
            "status": "SUCCESS",
        })

        response = client.post(f"/api/v1/payments/{payment.transaction_id}/refund", json={"amount": "500.00"})

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["status"] == "REFUNDED"
        assert Decimal(data["refund_amount"]) == Decimal("500.00")

    def test_refund_pending_conflicts(self, client, make_payment):
        payment = make_payment()

        response = client.post(f"/api/v1/payments/{payment.transaction_id}/refund", json={"amount": "1.00"})

        assert response.status_code == status.HTTP_409_CONFLICT
        error = response.json()["error"]
        assert error["code"] == "INVALID_STATE"
        assert error["details"]["current_status"] == "PENDING"

    def test_refund_bank_unavailable(self, client, db_session, make_payment):
        payment = make_payment(status=PaymentStatus.SUCCESS, bank_provider="ICICI")

        response = client.post(f"/api/v1/payments/{payment.transaction_id}/refund", json={"amount": "1.00"})

        assert response.status_code == status.HTTP_502_BAD_GATEWAY
        assert response.json()["error"]["code"] == "REFUND_FAILED"
        db_session.expire_all()
        assert db_session.get(Payment, payment.id).status == PaymentStatus.SUCCESS


class TestCancel:
    def test_cancel_defaults_to_merchant(self, client, make_payment):
        payment = make_payment(payment_method=PaymentMethod.UPI_INTENT)

        response = client.post(f"/api/v1/payments/{payment.transaction_id}/cancel", json={})

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["status"] == "CANCELLED"
        assert data["cancelled_by"] == "MERCHANT"
        assert data["cancellation_reason"] == "Merchant cancelled the payment"

    def test_cancel_expired_conflicts(self, client, make_payment):
        payment = make_payment(status=PaymentStatus.EXPIRED)

        response = client.post(
            f"/api/v1/payments/{payment.transaction_id}/cancel",
            json={"reason": "USER_CANCELLED", "cancelled_by": "USER"},
        )

        assert response.status_code == status.HTTP_409_CONFLICT


class TestUpiCallback:
    def test_callback_requires_internal_token(self, client, db_session, make_payment):
        payment = make_payment()

        response = client.post(
            "/api/v1/payments/callback/upi",
            json={"transaction_id": payment.transaction_id, "status": "SUCCESS"},
        )

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.json()["error"]["code"] == "UNAUTHORIZED"
        db_session.expire_all()
        assert db_session.get(Payment, payment.id).status == PaymentStatus.PENDING

    def test_callback_wrong_token(self, client, make_payment):
        payment = make_payment()

        response = client.post(
            "/api/v1/payments/callback/upi",
            json={"transaction_id": payment.transaction_id, "status": "SUCCESS"},
            headers={"X-Internal-Token": "guess"},
        )

        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_callback_updates_status(self, client, make_payment):
        payment = make_payment()

        response = client.post(
            "/api/v1/payments/callback/upi",
            json={"transaction_id": payment.transaction_id, "status": "SUCCESS", "bank_reference": "UTR99"},
            headers=INTERNAL_HEADERS,
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["status"] == "SUCCESS"
        assert response.json()["completed_at"] is not None

    def test_callback_unknown_payment(self, client):
        response = client.post(
            "/api/v1/payments/callback/upi",
            json={"transaction_id": "TXN_none", "status": "SUCCESS"},
            headers=INTERNAL_HEADERS,
        )

        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_callback_cannot_mark_refunded(self, client, db_session, make_payment):
        payment = make_payment(status=PaymentStatus.SUCCESS)

        response = client.post(
            "/api/v1/payments/callback/upi",
            json={"transaction_id": payment.transaction_id, "status": "REFUNDED"},
            headers=INTERNAL_HEADERS,
        )

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.json()["error"]["code"] == "INVALID_STATE"
        db_session.expire_all()
        stored = db_session.get(Payment, payment.id)
        assert stored.status == PaymentStatus.SUCCESS
        assert stored.refunded_at is None
