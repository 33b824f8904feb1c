"""
Axis Bank adapter (API v2)

Signs orderId|amount|merchantId|timestamp into `checksum` and sends a fresh
X-Request-ID with every call.
"""

import uuid
from decimal import Decimal
from typing import Any, Dict, Optional

from upi_gateway.services.banks.base import BankAdapter, BankPaymentRequest, BankPaymentResponse, format_amount


class AxisBankAdapter(BankAdapter):
    bank_code = "AXIS"
    display_name = "Axis Bank"
    webhook_signature_header = "X-AXIS-Signature"
    simulated_payee = "merchant@axisbank"

    webhook_bank_id_field = "transactionId"
    webhook_order_id_field = "orderId"

    create_path = "/api/v2/payments/initiate"
    status_path = "/api/v2/payments/status/{bank_transaction_id}"
    refund_path = "/api/v2/payments/refund"

    def canonical_string(self, transaction_id: str, amount: str, timestamp: str) -> str:
        return "|".join((transaction_id, amount, self.merchant_id, timestamp))

    def auth_headers(self, timestamp: Optional[str] = None) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "X-Merchant-ID": self.merchant_id,
            "X-Request-ID": str(uuid.uuid4()),
        }

    def build_create_payload(self, request: BankPaymentRequest, timestamp: str) -> Dict[str, Any]:
        amount = format_amount(request.amount)
        payload = {
            "merchantId": self.merchant_id,
            "orderId": request.transaction_id,
            "amount": amount,
            "currency": request.currency,
            "paymentMode": "UPI",
            "returnUrl": request.callback_url,
            "description": request.description,
            "timestamp": timestamp,
            "checksum": self.sign(request.transaction_id, amount, timestamp),
        }
        if request.upi_id:
            payload["vpa"] = request.upi_id
        return payload

    def build_refund_payload(self, bank_transaction_id: str, amount: str) -> Dict[str, Any]:
        return {
            "transactionId": bank_transaction_id,
            "refundAmount": amount,
            "refundReference": f"REF_AXIS_{uuid.uuid4().hex[:8]}",
        }

    def map_create_response(self, body: Dict[str, Any], request: BankPaymentRequest) -> BankPaymentResponse:
        return BankPaymentResponse(
            bank_transaction_id=body["transactionId"],
            merchant_transaction_id=request.transaction_id,
            status=body.get("status") or "PENDING",
            amount=request.amount,
            currency=request.currency,
            payment_url=body.get("paymentUrl"),
            qr_code_data=body.get("qrCode"),
            raw=body,
        )

    def map_status_response(self, body: Dict[str, Any]) -> BankPaymentResponse:
        return BankPaymentResponse(
            bank_transaction_id=body["transactionId"],
            status=body.get("status") or "PENDING",
            amount=Decimal(str(body["amount"])) if body.get("amount") is not None else None,
            raw=body,
        )

    def map_refund_response(self, body: Dict[str, Any]) -> BankPaymentResponse:
        return BankPaymentResponse(
            bank_transaction_id=body.get("refundReference"),
            status=body.get("status") or "FAILED",
            error_code=body.get("errorCode"),
            error_message=body.get("errorMessage"),
            raw=body,
        )
