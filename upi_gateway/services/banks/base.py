"""
Bank adapter contract and the shared request/fallback flow

Every provider adapter shapes its own payloads, headers, canonical signing
string and response field names, but all of them follow the same rules:

- create_payment never raises: transport failures, non-200 responses,
  FAILED/CANCELLED answers and unmappable bodies produce a locally
  simulated PENDING response carrying a fresh bank id, so the payment
  always has a correlation id to track. With simulation disabled they
  produce a FAILED response instead.
- check_status never raises: failures report PENDING for the queried id.
- refund never simulates: failures report FAILED with REFUND_FAILED.
- verify_webhook_signature never raises: any error is a failed check.
"""

import logging
import time
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Optional

import httpx

from upi_gateway.utils.metrics import record_bank_fallback, record_bank_refund_failure
from upi_gateway.utils.webhook_security import compute_hmac_signature, verify_hmac_signature

logger = logging.getLogger(__name__)

SIMULATED_PAYMENT_TTL = timedelta(minutes=15)

# A create answered 200 with one of these statuses is a non-success response
REJECTED_CREATE_STATUSES = frozenset({"FAILED", "CANCELLED"})


@dataclass
class BankPaymentRequest:
    """Payment request handed to a bank adapter"""

    transaction_id: str
    amount: Decimal
    currency: str
    callback_url: Optional[str] = None
    description: Optional[str] = None
    upi_id: Optional[str] = None


@dataclass
class BankPaymentResponse:
    """Normalized bank response. Never persisted verbatim."""

    status: str
    bank_transaction_id: Optional[str] = None
    merchant_transaction_id: Optional[str] = None
    amount: Optional[Decimal] = None
    currency: Optional[str] = None
    payment_url: Optional[str] = None
    qr_code_data: Optional[str] = None
    error_code: Optional[str] = None
    error_message: Optional[str] = None
    created_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    simulated: bool = False
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)

    @property
    def is_success(self) -> bool:
        return (self.status or "").upper() in ("SUCCESS", "COMPLETED")


def format_amount(amount: Decimal) -> str:
    """Render an amount with exactly two decimals"""
    return str(Decimal(amount).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def epoch_millis() -> str:
    return str(int(time.time() * 1000))


class BankAdapter(ABC):
    """
    Base class for bank adapters.

    Subclasses define the provider's endpoint paths, auth headers, payload
    field names and canonical signing string; this class owns the HTTP call,
    timeout handling and fallback policy.
    """

    #: Canonical provider code (HDFC, ICICI, ...)
    bank_code: str = ""
    #: Human-readable provider name
    display_name: str = ""
    #: Header carrying the webhook signature
    webhook_signature_header: str = ""
    #: Payee address used in simulated payment URIs
    simulated_payee: str = ""
    #: Webhook body fields carrying the bank id, the merchant transaction id and the status
    webhook_bank_id_field: str = ""
    webhook_order_id_field: str = ""
    webhook_status_field: str = "status"

    create_path: str = ""
    status_path: str = ""  # Formatted with bank_transaction_id
    refund_path: str = ""

    def __init__(
        self,
        *,
        api_url: str,
        api_key: str,
        api_secret: str,
        merchant_id: str,
        timeout: float = 10.0,
        simulate_on_failure: bool = True,
        client: Optional[httpx.Client] = None,
    ):
        self.api_url = api_url.rstrip("/")
        self.api_key = api_key
        self.api_secret = api_secret
        self.merchant_id = merchant_id
        self.simulate_on_failure = simulate_on_failure
        self._client = client or httpx.Client(timeout=timeout)

    # ------------------------------------------------------------------
    # Provider hooks
    # ------------------------------------------------------------------

    @abstractmethod
    def canonical_string(self, transaction_id: str, amount: str, timestamp: str) -> str:
        """String signed for create requests; layout is provider-specific"""

    @abstractmethod
    def build_create_payload(self, request: BankPaymentRequest, timestamp: str) -> Dict[str, Any]:
        """Provider create-payment body, including the signature field"""

    @abstractmethod
    def build_refund_payload(self, bank_transaction_id: str, amount: str) -> Dict[str, Any]:
        """Provider refund body"""

    @abstractmethod
    def auth_headers(self, timestamp: Optional[str] = None) -> Dict[str, str]:
        """Provider authentication headers"""

    @abstractmethod
    def map_create_response(self, body: Dict[str, Any], request: BankPaymentRequest) -> BankPaymentResponse:
        """Map a create-payment response body"""

    @abstractmethod
    def map_status_response(self, body: Dict[str, Any]) -> BankPaymentResponse:
        """Map a status response body"""

    @abstractmethod
    def map_refund_response(self, body: Dict[str, Any]) -> BankPaymentResponse:
        """Map a refund response body"""

    # ------------------------------------------------------------------
    # Contract
    # ------------------------------------------------------------------

    def identify(self) -> str:
        """Canonical provider name, for logging and record keeping"""
        return self.bank_code

    def sign(self, transaction_id: str, amount: str, timestamp: str) -> str:
        return compute_hmac_signature(
            self.api_secret,
            self.canonical_string(transaction_id, amount, timestamp),
        )

    def create_payment(self, request: BankPaymentRequest) -> BankPaymentResponse:
        timestamp = epoch_millis()
        payload = self.build_create_payload(request, timestamp)
        headers = {"Content-Type": "application/json", **self.auth_headers(timestamp)}

        rejected: Optional[BankPaymentResponse] = None
        try:
            response = self._client.post(self.api_url + self.create_path, json=payload, headers=headers)
            if response.status_code == 200:
                mapped = self.map_create_response(response.json(), request)
                if (mapped.status or "").upper() not in REJECTED_CREATE_STATUSES:
                    return mapped
                rejected = mapped
                logger.warning(
                    f"{self.bank_code} create_payment rejected with status {mapped.status}: "
                    f"transaction_id={request.transaction_id}"
                )
            else:
                logger.warning(
                    f"{self.bank_code} create_payment returned HTTP {response.status_code}: "
                    f"transaction_id={request.transaction_id}"
                )
        except (httpx.HTTPError, ValueError, KeyError, TypeError) as e:
            logger.warning(
                f"{self.bank_code} create_payment failed: transaction_id={request.transaction_id}, error={e}"
            )

        if not self.simulate_on_failure:
            return self.error_response(
                request.transaction_id,
                (rejected and rejected.error_code) or f"{self.bank_code}_API_ERROR",
                (rejected and rejected.error_message) or f"Failed to create payment with {self.display_name}",
            )
        record_bank_fallback(self.bank_code, "create")
        return self.simulated_response(request)

    def check_status(self, bank_transaction_id: str) -> BankPaymentResponse:
        try:
            response = self._client.get(
                self.api_url + self.status_path.format(bank_transaction_id=bank_transaction_id),
                headers=self.auth_headers(epoch_millis()),
            )
            if response.status_code == 200:
                return self.map_status_response(response.json())
            logger.warning(
                f"{self.bank_code} check_status returned HTTP {response.status_code}: "
                f"bank_transaction_id={bank_transaction_id}"
            )
        except (httpx.HTTPError, ValueError, KeyError, TypeError) as e:
            logger.warning(
                f"{self.bank_code} check_status failed: bank_transaction_id={bank_transaction_id}, error={e}"
            )

        # No information is not evidence of failure
        record_bank_fallback(self.bank_code, "status")
        return BankPaymentResponse(status="PENDING", bank_transaction_id=bank_transaction_id)

    def refund(self, bank_transaction_id: str, amount: Decimal) -> BankPaymentResponse:
        payload = self.build_refund_payload(bank_transaction_id, format_amount(amount))
        headers = {"Content-Type": "application/json", **self.auth_headers(epoch_millis())}

        try:
            response = self._client.post(self.api_url + self.refund_path, json=payload, headers=headers)
            if response.status_code == 200:
                return self.map_refund_response(response.json())
            logger.error(
                f"{self.bank_code} refund returned HTTP {response.status_code}: "
                f"bank_transaction_id={bank_transaction_id}"
            )
            record_bank_refund_failure(self.bank_code, "http_error")
        except (httpx.HTTPError, ValueError, KeyError, TypeError) as e:
            logger.error(
                f"{self.bank_code} refund failed: bank_transaction_id={bank_transaction_id}, error={e}"
            )
            record_bank_refund_failure(self.bank_code, "transport_error")

        return self.error_response(bank_transaction_id, "REFUND_FAILED", "Failed to process refund")

    def verify_webhook_signature(self, payload: bytes, signature: Optional[str]) -> bool:
        try:
            if isinstance(payload, str):
                payload = payload.encode("utf-8")
            is_valid, error_code, error_details = verify_hmac_signature(
                payload_body=payload,
                signature_header=signature,
                secret=self.api_secret,
                header_name=self.webhook_signature_header,
            )
        except (TypeError, ValueError, UnicodeError) as e:
            logger.warning(f"{self.bank_code} webhook signature check errored: {e}")
            return False
        if not is_valid:
            logger.warning(
                f"{self.bank_code} webhook signature rejected: code={error_code}",
                extra={"details": error_details},
            )
        return is_valid

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def new_bank_transaction_id(self) -> str:
        return f"{self.bank_code}_{uuid.uuid4().hex[:8]}"

    def simulated_response(self, request: BankPaymentRequest) -> BankPaymentResponse:
        now = datetime.now(timezone.utc)
        return BankPaymentResponse(
            status="PENDING",
            bank_transaction_id=self.new_bank_transaction_id(),
            merchant_transaction_id=request.transaction_id,
            amount=request.amount,
            currency=request.currency,
            payment_url=(
                f"upi://pay?pa={self.simulated_payee}"
                f"&am={format_amount(request.amount)}&tr={request.transaction_id}"
            ),
            created_at=now,
            expires_at=now + SIMULATED_PAYMENT_TTL,
            simulated=True,
        )

    def error_response(self, transaction_id: str, error_code: str, error_message: str) -> BankPaymentResponse:
        return BankPaymentResponse(
            status="FAILED",
            merchant_transaction_id=transaction_id,
            error_code=error_code,
            error_message=error_message,
        )

    def close(self) -> None:
        self._client.close()
