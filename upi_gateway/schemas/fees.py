"""
Fee estimate schemas
"""

from decimal import Decimal
from pydantic import BaseModel, Field

from upi_gateway.services.fee_estimator import FeeEstimate, FeeStructure, OperationMode


class FeeStructureResponse(BaseModel):
    """Published fee structure for an operating mode"""
    setup_fee: Decimal
    monthly_fee: Decimal
    transaction_fee: Decimal
    percentage_fee: Decimal = Field(..., description="Blended percent of total volume, e.g. 0.45 = 0.45%")
    processor_rate: Decimal = Field(..., description="Percent charged on the processed share of volume")
    processor_share: Decimal = Field(..., description="Fraction of volume sent through the processor")

    @classmethod
    def from_structure(cls, structure: FeeStructure) -> "FeeStructureResponse":
        return cls(
            setup_fee=structure.setup_fee,
            monthly_fee=structure.monthly_fee,
            transaction_fee=structure.transaction_fee,
            percentage_fee=structure.percentage_fee,
            processor_rate=structure.processor_rate,
            processor_share=structure.processor_share,
        )


class FeeEstimateResponse(BaseModel):
    """Monthly cost breakdown"""
    mode: OperationMode
    monthly_volume: Decimal
    avg_transaction_size: Decimal
    transactions: int = Field(..., description="ceil(monthly_volume / avg_transaction_size)")
    setup_fee: Decimal = Field(..., description="One-time, excluded from the monthly total")
    monthly_fee: Decimal
    transaction_fees: Decimal
    percentage_fees: Decimal
    total_monthly_fee: Decimal
    effective_rate: Decimal = Field(..., description="Total as percent of monthly volume, 4 decimals")
    fee_structure: FeeStructureResponse

    @classmethod
    def from_estimate(
        cls,
        estimate: FeeEstimate,
        monthly_volume: Decimal,
        avg_transaction_size: Decimal,
        structure: FeeStructure,
    ) -> "FeeEstimateResponse":
        return cls(
            mode=estimate.mode,
            monthly_volume=monthly_volume,
            avg_transaction_size=avg_transaction_size,
            transactions=estimate.transactions,
            setup_fee=estimate.setup_fee,
            monthly_fee=estimate.monthly_fee,
            transaction_fees=estimate.transaction_fees,
            percentage_fees=estimate.percentage_fees,
            total_monthly_fee=estimate.total_monthly_fee,
            effective_rate=estimate.effective_rate,
            fee_structure=FeeStructureResponse.from_structure(structure),
        )


class BankProviderResponse(BaseModel):
    code: str
    display_name: str
    is_default: bool = False
