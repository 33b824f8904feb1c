"""
Merchant directory client - read-only merchant routing profiles

Profiles are owned by the merchant service. A failed lookup never blocks
payment creation: the default profile routes to DEFAULT_BANK_PROVIDER.
"""

import logging
from dataclasses import dataclass
from typing import Optional

import httpx

from upi_gateway.core.payments.models import BankProvider
from upi_gateway.infrastructure.settings import Settings, get_settings
from upi_gateway.services.banks.registry import parse_bank_provider
from upi_gateway.services.fee_estimator import OperationMode

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MerchantRoutingProfile:
    merchant_id: str
    preferred_bank: BankProvider
    upi_id: Optional[str] = None
    webhook_url: Optional[str] = None
    business_name: Optional[str] = None
    operation_mode: OperationMode = OperationMode.FULL_PROCESSOR
    is_default: bool = False

    @property
    def payee_address(self) -> str:
        """Merchant UPI handle, or merchant@<bank> when the profile has none"""
        return self.upi_id or f"merchant@{self.preferred_bank.value.lower()}"


class MerchantDirectory:
    """HTTP client for GET {MERCHANT_SERVICE_URL}/merchants/{id}/info"""

    def __init__(self, settings: Optional[Settings] = None, client: Optional[httpx.Client] = None):
        self.settings = settings or get_settings()
        self._client = client or httpx.Client(timeout=self.settings.MERCHANT_SERVICE_TIMEOUT_SECONDS)

    def default_profile(self, merchant_id: str) -> MerchantRoutingProfile:
        bank = parse_bank_provider(self.settings.DEFAULT_BANK_PROVIDER) or BankProvider.AXIS
        return MerchantRoutingProfile(
            merchant_id=str(merchant_id),
            preferred_bank=bank,
            upi_id=f"merchant@{bank.value.lower()}",
            business_name="Default Merchant",
            is_default=True,
        )

    def get_profile(self, merchant_id: str) -> MerchantRoutingProfile:
        url = f"{self.settings.MERCHANT_SERVICE_URL.rstrip('/')}/merchants/{merchant_id}/info"
        try:
            response = self._client.get(url)
            if response.is_success:
                return self._map_profile(merchant_id, response.json())
            logger.warning(f"Merchant lookup returned HTTP {response.status_code}: merchant_id={merchant_id}")
        except (httpx.HTTPError, ValueError, TypeError, AttributeError) as e:
            logger.warning(f"Merchant lookup failed: merchant_id={merchant_id}, error={e}")

        return self.default_profile(merchant_id)

    def _map_profile(self, merchant_id: str, data: dict) -> MerchantRoutingProfile:
        preferred = parse_bank_provider(data.get("preferredBank"))
        if preferred is None:
            preferred = parse_bank_provider(self.settings.DEFAULT_BANK_PROVIDER) or BankProvider.AXIS

        try:
            mode = OperationMode(str(data.get("operationMode") or OperationMode.FULL_PROCESSOR.value).upper())
        except ValueError:
            mode = OperationMode.FULL_PROCESSOR

        return MerchantRoutingProfile(
            merchant_id=str(data.get("id") or merchant_id),
            preferred_bank=preferred,
            upi_id=data.get("upiId") or None,
            webhook_url=data.get("webhookUrl") or None,
            business_name=data.get("businessName"),
            operation_mode=mode,
        )


_directory: Optional[MerchantDirectory] = None


def get_merchant_directory() -> MerchantDirectory:
    """Process-wide merchant directory client (FastAPI dependency)"""
    global _directory
    if _directory is None:
        _directory = MerchantDirectory()
    return _directory
