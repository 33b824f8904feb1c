"""
Bank adapters - one per settlement provider, resolved through the registry
"""

from upi_gateway.services.banks.base import BankAdapter, BankPaymentRequest, BankPaymentResponse
from upi_gateway.services.banks.hdfc import HdfcBankAdapter
from upi_gateway.services.banks.icici import IciciBankAdapter
from upi_gateway.services.banks.kotak import KotakBankAdapter
from upi_gateway.services.banks.axis import AxisBankAdapter
from upi_gateway.services.banks.registry import BankAdapterRegistry, get_bank_registry, parse_bank_provider

__all__ = [
    "BankAdapter",
    "BankPaymentRequest",
    "BankPaymentResponse",
    "HdfcBankAdapter",
    "IciciBankAdapter",
    "KotakBankAdapter",
    "AxisBankAdapter",
    "BankAdapterRegistry",
    "get_bank_registry",
    "parse_bank_provider",
]
