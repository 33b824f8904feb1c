"""
Fee estimator - monthly cost breakdown for a merchant operating mode
"""

import enum
from dataclasses import dataclass
from decimal import Decimal, ROUND_CEILING, ROUND_HALF_UP
from typing import Optional

from upi_gateway.services.exceptions import FeeEstimationError


class OperationMode(str, enum.Enum):
    """Merchant cost/settlement model"""
    GATEWAY_ONLY = "GATEWAY_ONLY"
    FULL_PROCESSOR = "FULL_PROCESSOR"
    HYBRID = "HYBRID"


TRANSACTION_FEE = Decimal("2.00")


@dataclass(frozen=True)
class FeeStructure:
    """
    Published fees for one mode.

    processor_rate is charged on the processor_share of volume only, so the
    blended percentage_fee is processor_rate * processor_share. HYBRID sends
    30% of volume through the processor at 1.5%, i.e. 0.45% of all volume.
    """
    setup_fee: Decimal
    monthly_fee: Decimal
    transaction_fee: Decimal
    processor_rate: Decimal  # Percent, e.g. 1.5 means 1.5%
    processor_share: Decimal  # Fraction of volume, 0..1

    @property
    def percentage_fee(self) -> Decimal:
        """Blended percent of total volume"""
        return self.processor_rate * self.processor_share

    def percentage_fees(self, monthly_volume: Decimal) -> Decimal:
        return monthly_volume * self.processor_share * self.processor_rate / 100


_DEFAULT_FEE_STRUCTURES = {
    OperationMode.GATEWAY_ONLY: FeeStructure(
        Decimal("0"), Decimal("2000"), TRANSACTION_FEE, Decimal("0"), Decimal("0")
    ),
    OperationMode.FULL_PROCESSOR: FeeStructure(
        Decimal("5000"), Decimal("1000"), TRANSACTION_FEE, Decimal("1.5"), Decimal("1")
    ),
    OperationMode.HYBRID: FeeStructure(
        Decimal("2500"), Decimal("1500"), TRANSACTION_FEE, Decimal("1.5"), Decimal("0.3")
    ),
}


@dataclass(frozen=True)
class FeeEstimate:
    mode: OperationMode
    transactions: int
    setup_fee: Decimal
    monthly_fee: Decimal
    transaction_fees: Decimal
    percentage_fees: Decimal
    total_monthly_fee: Decimal
    effective_rate: Decimal  # Percent of monthly volume, 4 decimals


def default_fee_structure(mode: OperationMode) -> FeeStructure:
    """Published fee structure for a mode"""
    return _DEFAULT_FEE_STRUCTURES[OperationMode(mode)]


def estimate_fees(
    mode: OperationMode,
    monthly_volume: Optional[Decimal],
    avg_transaction_size: Optional[Decimal],
) -> FeeEstimate:
    """
    Estimate the monthly cost of an operating mode.

    transactions = ceil(monthly_volume / avg_transaction_size)
    total = monthly fee + per-transaction fees + percentage fees; the setup
    fee is one-time and stays out of the recurring total.
    effective_rate = total / monthly_volume * 100, 4 decimals, half-up.

    Raises:
        FeeEstimationError: volume or average size missing, zero or negative
    """
    if monthly_volume is None or avg_transaction_size is None:
        raise FeeEstimationError("monthly_volume and avg_transaction_size are required")

    monthly_volume = Decimal(monthly_volume)
    avg_transaction_size = Decimal(avg_transaction_size)
    if monthly_volume <= 0:
        raise FeeEstimationError("monthly_volume must be greater than 0")
    if avg_transaction_size <= 0:
        raise FeeEstimationError("avg_transaction_size must be greater than 0")

    mode = OperationMode(mode)
    structure = default_fee_structure(mode)
    transactions = int((monthly_volume / avg_transaction_size).to_integral_value(rounding=ROUND_CEILING))
    transaction_fees = structure.transaction_fee * transactions
    percentage_fees = structure.percentage_fees(monthly_volume)

    total = structure.monthly_fee + transaction_fees + percentage_fees
    effective_rate = (total / monthly_volume * 100).quantize(Decimal("0.0001"), rounding=ROUND_HALF_UP)

    return FeeEstimate(
        mode=mode,
        transactions=transactions,
        setup_fee=structure.setup_fee,
        monthly_fee=structure.monthly_fee,
        transaction_fees=transaction_fees,
        percentage_fees=percentage_fees,
        total_monthly_fee=total,
        effective_rate=effective_rate,
    )
