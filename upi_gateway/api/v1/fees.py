"""
Fee estimate and bank listing endpoints - READ-ONLY
"""

from decimal import Decimal
from typing import List
from fastapi import APIRouter, Depends, Query

from upi_gateway.schemas.fees import BankProviderResponse, FeeEstimateResponse
from upi_gateway.services.banks.registry import BankAdapterRegistry, get_bank_registry
from upi_gateway.services.fee_estimator import OperationMode, default_fee_structure, estimate_fees

router = APIRouter()


@router.get(
    "/fees/estimate",
    response_model=FeeEstimateResponse,
    tags=["fees"],
    summary="Estimate monthly fees",
)
def estimate(
    mode: OperationMode = Query(..., description="GATEWAY_ONLY, FULL_PROCESSOR or HYBRID"),
    monthly_volume: Decimal = Query(..., description="Expected monthly volume"),
    avg_transaction_size: Decimal = Query(..., description="Expected average transaction size"),
) -> FeeEstimateResponse:
    """
    Monthly cost breakdown for an operating mode.

    Zero or negative inputs are rejected with 422 VALIDATION_ERROR.
    """
    result = estimate_fees(mode, monthly_volume, avg_transaction_size)
    return FeeEstimateResponse.from_estimate(
        result,
        monthly_volume=monthly_volume,
        avg_transaction_size=avg_transaction_size,
        structure=default_fee_structure(mode),
    )


@router.get(
    "/banks",
    response_model=List[BankProviderResponse],
    tags=["banks"],
    summary="List supported banks",
)
def list_banks(registry: BankAdapterRegistry = Depends(get_bank_registry)) -> List[BankProviderResponse]:
    return [
        BankProviderResponse(
            code=provider.value,
            display_name=provider.display_name,
            is_default=provider == registry.default_provider,
        )
        for provider in registry.providers()
    ]
