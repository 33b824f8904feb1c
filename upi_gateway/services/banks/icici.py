"""
ICICI Bank adapter

Signs request_time + merchant_code + reference_no + amount (no delimiter)
into `secure_hash`, and authenticates with HTTP Basic over key:secret.
"""

import base64
import uuid
from decimal import Decimal
from typing import Any, Dict, Optional

from upi_gateway.services.banks.base import (
    BankAdapter,
    BankPaymentRequest,
    BankPaymentResponse,
    epoch_millis,
    format_amount,
)


class IciciBankAdapter(BankAdapter):
    bank_code = "ICICI"
    display_name = "ICICI Bank"
    webhook_signature_header = "X-ICICI-Signature"
    simulated_payee = "merchant@icici"

    webhook_bank_id_field = "reference_no"
    webhook_order_id_field = "merchant_reference"

    create_path = "/api/v1/payment/initiate"
    status_path = "/api/v1/payment/inquiry/{bank_transaction_id}"
    refund_path = "/api/v1/payment/refund"

    def canonical_string(self, transaction_id: str, amount: str, timestamp: str) -> str:
        return f"{timestamp}{self.merchant_id}{transaction_id}{amount}"

    def auth_headers(self, timestamp: Optional[str] = None) -> Dict[str, str]:
        credentials = base64.b64encode(f"{self.api_key}:{self.api_secret}".encode("utf-8")).decode("ascii")
        return {
            "Authorization": f"Basic {credentials}",
            "X-Merchant-Code": self.merchant_id,
            "X-Request-Time": timestamp or epoch_millis(),
        }

    def build_create_payload(self, request: BankPaymentRequest, timestamp: str) -> Dict[str, Any]:
        amount = format_amount(request.amount)
        payload = {
            "merchant_code": self.merchant_id,
            "reference_no": request.transaction_id,
            "amount": amount,
            "currency_code": request.currency,
            "payment_type": "UPI",
            "return_url": request.callback_url,
            "description": request.description,
            "request_time": timestamp,
            "secure_hash": self.sign(request.transaction_id, amount, timestamp),
        }
        if request.upi_id:
            payload["upi_vpa"] = request.upi_id
        return payload

    def build_refund_payload(self, bank_transaction_id: str, amount: str) -> Dict[str, Any]:
        return {
            "original_reference": bank_transaction_id,
            "refund_amount": amount,
            "refund_reference": f"REF_ICICI_{uuid.uuid4().hex[:8]}",
        }

    def map_create_response(self, body: Dict[str, Any], request: BankPaymentRequest) -> BankPaymentResponse:
        return BankPaymentResponse(
            bank_transaction_id=body["reference_no"],
            merchant_transaction_id=request.transaction_id,
            status=body.get("status") or "PENDING",
            amount=request.amount,
            currency=request.currency,
            payment_url=body.get("payment_url"),
            qr_code_data=body.get("qr_string"),
            raw=body,
        )

    def map_status_response(self, body: Dict[str, Any]) -> BankPaymentResponse:
        return BankPaymentResponse(
            bank_transaction_id=body["reference_no"],
            status=body.get("status") or "PENDING",
            amount=Decimal(str(body["amount"])) if body.get("amount") is not None else None,
            raw=body,
        )

    def map_refund_response(self, body: Dict[str, Any]) -> BankPaymentResponse:
        return BankPaymentResponse(
            bank_transaction_id=body.get("refund_reference"),
            status=body.get("status") or "FAILED",
            error_code=body.get("error_code"),
            error_message=body.get("error_message"),
            raw=body,
        )
