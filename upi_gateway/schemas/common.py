"""
Common Pydantic schemas
"""

from typing import Any, Optional
from pydantic import BaseModel


class HealthResponse(BaseModel):
    """Health check response"""
    status: str


class ReadyResponse(BaseModel):
    """Readiness check response"""
    status: str
    database: str
    redis: str
    default_bank_provider: str


class ErrorBody(BaseModel):
    code: str
    message: str
    details: Optional[Any] = None
    trace_id: Optional[str] = None


class ErrorResponse(BaseModel):
    """Error envelope returned by every failing endpoint"""
    error: ErrorBody
