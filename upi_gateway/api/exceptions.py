"""
Global exception handlers
"""

import logging
from typing import Any, Dict
from fastapi import Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from upi_gateway.services.exceptions import PaymentError
from upi_gateway.utils.trace_id import get_trace_id

logger = logging.getLogger(__name__)

# Payment error code -> HTTP status
PAYMENT_ERROR_STATUS = {
    "PAYMENT_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "INVALID_STATE": status.HTTP_409_CONFLICT,
    "REFUND_FAILED": status.HTTP_502_BAD_GATEWAY,
    "VALIDATION_ERROR": status.HTTP_422_UNPROCESSABLE_ENTITY,
    "INVALID_SIGNATURE": status.HTTP_401_UNAUTHORIZED,
    "UNKNOWN_PROVIDER": status.HTTP_401_UNAUTHORIZED,
    "INVALID_PAYLOAD": status.HTTP_400_BAD_REQUEST,
}


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Handle HTTP exceptions"""
    trace_id = get_trace_id(request)

    # If detail is already a dict with "error" key, use it directly (preserving custom codes)
    if isinstance(exc.detail, dict) and "error" in exc.detail:
        error_response: Dict[str, Any] = exc.detail.copy()
        if isinstance(error_response["error"], dict) and "trace_id" not in error_response["error"]:
            error_response["error"]["trace_id"] = trace_id
    else:
        error_response = {
            "error": {
                "code": f"HTTP_{exc.status_code}",
                "message": exc.detail if isinstance(exc.detail, str) else str(exc.detail),
                "trace_id": trace_id,
            }
        }

    return JSONResponse(
        status_code=exc.status_code,
        content=error_response,
        headers=getattr(exc, "headers", None),
    )


async def payment_error_handler(request: Request, exc: PaymentError) -> JSONResponse:
    """Handle payment service errors"""
    trace_id = get_trace_id(request)
    status_code = PAYMENT_ERROR_STATUS.get(exc.code, status.HTTP_400_BAD_REQUEST)

    error: Dict[str, Any] = {
        "code": exc.code,
        "message": exc.message,
        "trace_id": trace_id,
    }
    if exc.details:
        error["details"] = exc.details

    log = logger.error if status_code >= 500 else logger.warning
    log(f"Payment error: code={exc.code}, path={request.url.path}, trace_id={trace_id}, message={exc.message}")

    return JSONResponse(status_code=status_code, content={"error": error})


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handle validation exceptions"""
    trace_id = get_trace_id(request)

    # Convert non-JSON-serializable objects in error details to strings
    def convert_non_serializable(obj):
        from decimal import Decimal
        if isinstance(obj, (Decimal, Exception)):
            return str(obj)
        elif isinstance(obj, dict):
            return {key: convert_non_serializable(value) for key, value in obj.items()}
        elif isinstance(obj, (list, tuple)):
            return [convert_non_serializable(item) for item in obj]
        elif isinstance(obj, type):
            return str(obj)
        return obj

    error_response: Dict[str, Any] = {
        "error": {
            "code": "VALIDATION_ERROR",
            "message": "Request validation failed",
            "details": convert_non_serializable(exc.errors()),
            "trace_id": trace_id,
        }
    }

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=error_response,
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle general exceptions"""
    trace_id = get_trace_id(request)

    error_response: Dict[str, Any] = {
        "error": {
            "code": "INTERNAL_ERROR",
            "message": "An internal error occurred",
            "trace_id": trace_id,
        }
    }

    # Log the actual exception (never exposed to the caller)
    logger.exception("Unhandled exception", exc_info=exc, extra={"trace_id": trace_id})

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_response,
    )
