"""
Trace ID middleware

Merchants and banks correlate calls with their own request ids; an incoming
id is reused when it is sane, otherwise a fresh one is generated. The id is
echoed as X-Trace-ID and X-Request-ID and stamped on every log line.
"""

import re
import uuid
from typing import Optional
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from upi_gateway.infrastructure.logging_config import trace_id_context

INCOMING_TRACE_HEADERS = ("X-Trace-ID", "X-Request-ID", "X-Correlation-Id")

# Printable token, no whitespace; anything else is replaced
_TRACE_ID_PATTERN = re.compile(r"^[A-Za-z0-9._:-]{1,128}$")


def generate_trace_id() -> str:
    return str(uuid.uuid4())


def resolve_trace_id(request: Request) -> str:
    for header in INCOMING_TRACE_HEADERS:
        value = request.headers.get(header)
        if value and _TRACE_ID_PATTERN.match(value.strip()):
            return value.strip()
    return generate_trace_id()


class TraceIDMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        trace_id = resolve_trace_id(request)
        request.state.trace_id = trace_id
        token = trace_id_context.set(trace_id)
        try:
            response = await call_next(request)
        finally:
            trace_id_context.reset(token)

        response.headers["X-Trace-ID"] = trace_id
        response.headers["X-Request-ID"] = trace_id
        return response


def get_trace_id(request: Request) -> Optional[str]:
    """trace_id of the current request (None outside TraceIDMiddleware)"""
    return getattr(request.state, "trace_id", None) or trace_id_context.get()
