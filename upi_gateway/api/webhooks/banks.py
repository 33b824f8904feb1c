"""
Bank webhook endpoints

One endpoint per bank, each verifying its own signature header, plus a
generic endpoint selecting the bank from X-Bank-Name.
"""

import logging
from dataclasses import asdict
from typing import Optional
from fastapi import APIRouter, Depends, Header, HTTPException, Request, status
from sqlalchemy.orm import Session

from upi_gateway.core.payments.models import BankProvider
from upi_gateway.infrastructure.database import get_db
from upi_gateway.infrastructure.logging_config import trace_id_context
from upi_gateway.schemas.webhooks import BankWebhookResponse
from upi_gateway.services.banks.registry import BankAdapterRegistry, get_bank_registry
from upi_gateway.services.webhook_ingestion import ingest_bank_webhook, ingest_generic_webhook

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/banks")


async def _read_body(request: Request) -> bytes:
    trace_id = trace_id_context.get()
    try:
        return await request.body()
    except Exception as e:
        logger.error(f"Error reading webhook body: trace_id={trace_id}, error={str(e)}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "error": {
                    "code": "INVALID_REQUEST",
                    "message": "Failed to read request body",
                    "trace_id": trace_id,
                }
            },
        )


async def _handle(
    request: Request,
    db: Session,
    registry: BankAdapterRegistry,
    provider: BankProvider,
    signature: Optional[str],
) -> BankWebhookResponse:
    body = await _read_body(request)
    outcome = ingest_bank_webhook(
        db=db,
        adapter=registry.resolve(provider),
        payload=body,
        signature=signature,
    )
    return BankWebhookResponse(**asdict(outcome))


@router.post(
    "/hdfc",
    response_model=BankWebhookResponse,
    summary="HDFC Bank payment webhook",
    description="Payment status notifications from HDFC Bank. Requires X-HDFC-Signature.",
)
async def hdfc_webhook(
    request: Request,
    db: Session = Depends(get_db),
    registry: BankAdapterRegistry = Depends(get_bank_registry),
    x_hdfc_signature: str = Header(None, alias="X-HDFC-Signature"),
) -> BankWebhookResponse:
    return await _handle(request, db, registry, BankProvider.HDFC, x_hdfc_signature)


@router.post(
    "/icici",
    response_model=BankWebhookResponse,
    summary="ICICI Bank payment webhook",
    description="Payment status notifications from ICICI Bank. Requires X-ICICI-Signature.",
)
async def icici_webhook(
    request: Request,
    db: Session = Depends(get_db),
    registry: BankAdapterRegistry = Depends(get_bank_registry),
    x_icici_signature: str = Header(None, alias="X-ICICI-Signature"),
) -> BankWebhookResponse:
    return await _handle(request, db, registry, BankProvider.ICICI, x_icici_signature)


@router.post(
    "/kotak",
    response_model=BankWebhookResponse,
    summary="Kotak Mahindra Bank payment webhook",
    description="Payment status notifications from Kotak Mahindra Bank. Requires X-KOTAK-Signature.",
)
async def kotak_webhook(
    request: Request,
    db: Session = Depends(get_db),
    registry: BankAdapterRegistry = Depends(get_bank_registry),
    x_kotak_signature: str = Header(None, alias="X-KOTAK-Signature"),
) -> BankWebhookResponse:
    return await _handle(request, db, registry, BankProvider.KOTAK, x_kotak_signature)


@router.post(
    "/axis",
    response_model=BankWebhookResponse,
    summary="Axis Bank payment webhook",
    description="Payment status notifications from Axis Bank. Requires X-AXIS-Signature.",
)
async def axis_webhook(
    request: Request,
    db: Session = Depends(get_db),
    registry: BankAdapterRegistry = Depends(get_bank_registry),
    x_axis_signature: str = Header(None, alias="X-AXIS-Signature"),
) -> BankWebhookResponse:
    return await _handle(request, db, registry, BankProvider.AXIS, x_axis_signature)


@router.post(
    "/generic",
    response_model=BankWebhookResponse,
    summary="Generic bank payment webhook",
    description="Bank selected by X-Bank-Name, signature in X-Signature. Unknown banks are rejected with 401.",
)
async def generic_webhook(
    request: Request,
    db: Session = Depends(get_db),
    registry: BankAdapterRegistry = Depends(get_bank_registry),
    x_bank_name: str = Header(None, alias="X-Bank-Name"),
    x_signature: str = Header(None, alias="X-Signature"),
) -> BankWebhookResponse:
    body = await _read_body(request)
    outcome = ingest_generic_webhook(
        db=db,
        registry=registry,
        bank_name=x_bank_name,
        payload=body,
        signature=x_signature,
    )
    return BankWebhookResponse(**asdict(outcome))
