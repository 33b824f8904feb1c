"""
Request logging middleware for structured logs with metrics
"""

import time
import logging
from typing import Callable
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from upi_gateway.infrastructure.logging_config import trace_id_context
from upi_gateway.utils.metrics import record_http_request

logger = logging.getLogger(__name__)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Middleware to log HTTP requests with structured JSON logs.

    Logs include:
    - timestamp, level, message
    - trace_id (from TraceIDMiddleware)
    - path, method, status_code, duration_ms
    - merchant_id (X-Merchant-Id header) and bank (X-Bank-Name header), when sent
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.time()

        # Set by TraceIDMiddleware
        trace_id = trace_id_context.get()
        merchant_id = request.headers.get("X-Merchant-Id")
        bank_name = request.headers.get("X-Bank-Name")

        try:
            response = await call_next(request)
            status_code = response.status_code
            error = None
        except Exception as e:
            status_code = 500
            error = str(e)
            raise
        finally:
            duration_ms = (time.time() - start_time) * 1000

            log_data = {
                "trace_id": trace_id,
                "path": request.url.path,
                "method": request.method,
                "status_code": status_code,
                "duration_ms": round(duration_ms, 2),
            }

            if merchant_id:
                log_data["merchant_id"] = merchant_id
            if bank_name:
                log_data["bank"] = bank_name

            if error:
                log_data["error"] = error
                logger.error("Request failed", extra=log_data)
            elif status_code >= 500:
                logger.error("Request failed", extra=log_data)
            elif status_code >= 400:
                logger.warning("Request client error", extra=log_data)
            else:
                logger.info("Request completed", extra=log_data)

            record_http_request(
                path=request.url.path,
                method=request.method,
                status_code=status_code,
                duration_seconds=duration_ms / 1000,
            )

        return response
