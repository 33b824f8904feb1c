"""
HDFC Bank adapter

Signs merchant_id + order_id + amount + timestamp (no delimiter) into the
`signature` field. Responses use snake_case field names.
"""

import uuid
from decimal import Decimal
from typing import Any, Dict, Optional

from upi_gateway.services.banks.base import BankAdapter, BankPaymentRequest, BankPaymentResponse, format_amount


class HdfcBankAdapter(BankAdapter):
    bank_code = "HDFC"
    display_name = "HDFC Bank"
    webhook_signature_header = "X-HDFC-Signature"
    simulated_payee = "merchant@hdfc"

    webhook_bank_id_field = "transaction_id"
    webhook_order_id_field = "order_id"

    create_path = "/api/v1/payments/create"
    status_path = "/api/v1/payments/status/{bank_transaction_id}"
    refund_path = "/api/v1/payments/refund"

    def canonical_string(self, transaction_id: str, amount: str, timestamp: str) -> str:
        return f"{self.merchant_id}{transaction_id}{amount}{timestamp}"

    def auth_headers(self, timestamp: Optional[str] = None) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "X-Merchant-ID": self.merchant_id,
        }

    def build_create_payload(self, request: BankPaymentRequest, timestamp: str) -> Dict[str, Any]:
        amount = format_amount(request.amount)
        payload = {
            "merchant_id": self.merchant_id,
            "order_id": request.transaction_id,
            "amount": amount,
            "currency": request.currency,
            "payment_method": "UPI",
            "callback_url": request.callback_url,
            "description": request.description,
            "timestamp": timestamp,
            "signature": self.sign(request.transaction_id, amount, timestamp),
        }
        if request.upi_id:
            payload["upi_id"] = request.upi_id
        return payload

    def build_refund_payload(self, bank_transaction_id: str, amount: str) -> Dict[str, Any]:
        return {
            "transaction_id": bank_transaction_id,
            "refund_amount": amount,
            "refund_id": f"REF_{uuid.uuid4().hex[:8]}",
        }

    def map_create_response(self, body: Dict[str, Any], request: BankPaymentRequest) -> BankPaymentResponse:
        return BankPaymentResponse(
            bank_transaction_id=body["transaction_id"],
            merchant_transaction_id=request.transaction_id,
            status=body.get("status") or "PENDING",
            amount=request.amount,
            currency=request.currency,
            payment_url=body.get("payment_url"),
            qr_code_data=body.get("qr_code"),
            raw=body,
        )

    def map_status_response(self, body: Dict[str, Any]) -> BankPaymentResponse:
        return BankPaymentResponse(
            bank_transaction_id=body["transaction_id"],
            status=body.get("status") or "PENDING",
            amount=Decimal(str(body["amount"])) if body.get("amount") is not None else None,
            raw=body,
        )

    def map_refund_response(self, body: Dict[str, Any]) -> BankPaymentResponse:
        return BankPaymentResponse(
            bank_transaction_id=body.get("refund_id"),
            status=body.get("status") or "FAILED",
            error_code=body.get("error_code"),
            error_message=body.get("error_message"),
            raw=body,
        )
