"""
Webhook schemas

Bank webhook bodies are free-form JSON read after signature verification;
only the responses are modelled here.
"""

from typing import Optional
from pydantic import BaseModel, Field


class BankWebhookResponse(BaseModel):
    """Webhook response schema"""
    status: str = Field(..., description="Processing status (accepted, duplicate, ignored)")
    bank: str = Field(..., description="Bank code the webhook was verified against")
    transaction_id: Optional[str] = Field(None, description="Merchant-facing transaction id")
    payment_status: Optional[str] = Field(None, description="Payment status after processing")

    class Config:
        json_schema_extra = {
            "example": {
                "status": "accepted",
                "bank": "HDFC",
                "transaction_id": "TXN1718000000000A1B2C3",
                "payment_status": "SUCCESS",
            }
        }
