"""
Kotak Mahindra Bank adapter (API v2)

Signs merchantId|transactionId|amount|timestamp into `signature`.
Responses use camelCase field names.
"""

import uuid
from decimal import Decimal
from typing import Any, Dict, Optional

from upi_gateway.services.banks.base import BankAdapter, BankPaymentRequest, BankPaymentResponse, format_amount


class KotakBankAdapter(BankAdapter):
    bank_code = "KOTAK"
    display_name = "Kotak Mahindra Bank"
    webhook_signature_header = "X-KOTAK-Signature"
    simulated_payee = "merchant@kotak"

    webhook_bank_id_field = "transactionId"
    webhook_order_id_field = "merchantTransactionId"

    create_path = "/payments/v2/create"
    status_path = "/payments/v2/status/{bank_transaction_id}"
    refund_path = "/payments/v2/refund"

    api_version = "2.0"

    def canonical_string(self, transaction_id: str, amount: str, timestamp: str) -> str:
        return "|".join((self.merchant_id, transaction_id, amount, timestamp))

    def auth_headers(self, timestamp: Optional[str] = None) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "X-Merchant-ID": self.merchant_id,
            "X-API-Version": self.api_version,
        }

    def build_create_payload(self, request: BankPaymentRequest, timestamp: str) -> Dict[str, Any]:
        amount = format_amount(request.amount)
        payload = {
            "merchantId": self.merchant_id,
            "transactionId": request.transaction_id,
            "amount": amount,
            "currency": request.currency,
            "paymentMethod": "UPI",
            "successUrl": request.callback_url,
            "failureUrl": request.callback_url,
            "description": request.description,
            "timestamp": timestamp,
            "signature": self.sign(request.transaction_id, amount, timestamp),
        }
        if request.upi_id:
            payload["upiHandle"] = request.upi_id
        return payload

    def build_refund_payload(self, bank_transaction_id: str, amount: str) -> Dict[str, Any]:
        return {
            "originalTransactionId": bank_transaction_id,
            "refundAmount": amount,
            "refundId": f"REF_KOTAK_{uuid.uuid4().hex[:8]}",
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
            bank_transaction_id=body.get("refundId"),
            status=body.get("status") or "FAILED",
            error_code=body.get("errorCode"),
            error_message=body.get("errorMessage"),
            raw=body,
        )
