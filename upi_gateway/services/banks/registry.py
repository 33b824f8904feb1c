"""
Bank adapter registry - static provider table with a fixed default
"""

import logging
from typing import Dict, Optional, Type, Union

import httpx

from upi_gateway.core.payments.models import BankProvider
from upi_gateway.infrastructure.settings import Settings, get_settings
from upi_gateway.services.banks.base import BankAdapter
from upi_gateway.services.banks.hdfc import HdfcBankAdapter
from upi_gateway.services.banks.icici import IciciBankAdapter
from upi_gateway.services.banks.kotak import KotakBankAdapter
from upi_gateway.services.banks.axis import AxisBankAdapter

logger = logging.getLogger(__name__)

ADAPTER_CLASSES: Dict[BankProvider, Type[BankAdapter]] = {
    BankProvider.HDFC: HdfcBankAdapter,
    BankProvider.ICICI: IciciBankAdapter,
    BankProvider.KOTAK: KotakBankAdapter,
    BankProvider.AXIS: AxisBankAdapter,
}


def parse_bank_provider(value: Union[BankProvider, str, None]) -> Optional[BankProvider]:
    """
    Parse a provider enum or free-text name (case-insensitive).

    Returns None for unknown, empty or None input.
    """
    if isinstance(value, BankProvider):
        return value
    if not value or not isinstance(value, str):
        return None
    try:
        return BankProvider(value.strip().upper())
    except ValueError:
        return None


class BankAdapterRegistry:
    """
    Maps provider identifiers to adapter instances.

    Unknown, empty and None identifiers resolve to the configured default
    provider (DEFAULT_BANK_PROVIDER), never to None.
    """

    def __init__(self, adapters: Dict[BankProvider, BankAdapter], default_provider: BankProvider):
        if default_provider not in adapters:
            raise ValueError(f"Default bank provider {default_provider.value} has no adapter")
        self._adapters = dict(adapters)
        self.default_provider = default_provider

    @classmethod
    def from_settings(
        cls,
        settings: Optional[Settings] = None,
        client: Optional[httpx.Client] = None,
    ) -> "BankAdapterRegistry":
        settings = settings or get_settings()
        default_provider = parse_bank_provider(settings.DEFAULT_BANK_PROVIDER)
        if default_provider is None:
            raise ValueError(f"DEFAULT_BANK_PROVIDER={settings.DEFAULT_BANK_PROVIDER!r} is not a supported bank")

        client = client or httpx.Client(timeout=settings.BANK_API_TIMEOUT_SECONDS)
        adapters = {
            provider: adapter_cls(
                **settings.bank_credentials(provider.value),
                timeout=settings.BANK_API_TIMEOUT_SECONDS,
                simulate_on_failure=settings.BANK_SIMULATE_ON_FAILURE,
                client=client,
            )
            for provider, adapter_cls in ADAPTER_CLASSES.items()
        }
        return cls(adapters, default_provider)

    def resolve(self, provider: Union[BankProvider, str, None]) -> BankAdapter:
        """Resolve a provider to its adapter, falling back to the default provider"""
        parsed = parse_bank_provider(provider)
        if parsed is None:
            if provider:
                logger.info(f"Unknown bank provider {provider!r}, routing to {self.default_provider.value}")
            parsed = self.default_provider
        return self._adapters[parsed]

    def lookup(self, provider: Union[BankProvider, str, None]) -> Optional[BankAdapter]:
        """Strict lookup: None when the provider is not recognized"""
        parsed = parse_bank_provider(provider)
        return self._adapters.get(parsed) if parsed is not None else None

    def providers(self) -> list[BankProvider]:
        return list(self._adapters)


_registry: Optional[BankAdapterRegistry] = None


def get_bank_registry() -> BankAdapterRegistry:
    """Process-wide registry built from settings (FastAPI dependency)"""
    global _registry
    if _registry is None:
        _registry = BankAdapterRegistry.from_settings()
    return _registry
