"""
Webhook security utilities - HMAC-SHA256 signing and constant-time verification
"""

import base64
import hmac
import hashlib
import logging
from typing import Optional, Tuple, Dict, Any, Union

logger = logging.getLogger(__name__)


def compute_hmac_signature(secret: str, message: Union[str, bytes]) -> str:
    """
    Compute a base64-encoded HMAC-SHA256 signature.

    Banks sign both outbound request canonical strings and inbound webhook
    bodies this way, keyed with the bank API secret.
    """
    if isinstance(message, str):
        message = message.encode("utf-8")
    digest = hmac.new(secret.encode("utf-8"), message, hashlib.sha256).digest()
    return base64.b64encode(digest).decode("ascii")


def verify_hmac_signature(
    payload_body: bytes,
    signature_header: Optional[str],
    secret: str,
    header_name: str = "X-Signature",
) -> Tuple[bool, Optional[str], Optional[Dict[str, Any]]]:
    """
    Verify a base64 HMAC-SHA256 signature using constant-time comparison.

    The signature is computed over the EXACT raw request body bytes.

    Args:
        payload_body: Raw request body (bytes) as received
        signature_header: Signature from the bank's signature header
        secret: Shared secret key
        header_name: Header the signature was read from (for error details)

    Returns:
        Tuple of (is_valid, error_code, error_details)
    """
    if not secret:
        return False, "WEBHOOK_INVALID_SIGNATURE", {
            "reason": "webhook secret not configured",
        }

    if not signature_header:
        return False, "WEBHOOK_MISSING_HEADER", {
            "missing_header": header_name,
            "hint": f"Include {header_name} header with base64 HMAC-SHA256 signature of request body",
        }

    expected_signature = compute_hmac_signature(secret, payload_body)

    if not hmac.compare_digest(
        expected_signature.encode("ascii"),
        signature_header.strip().encode("utf-8"),
    ):
        return False, "WEBHOOK_INVALID_SIGNATURE", {
            "expected_length": len(expected_signature),
            "received_length": len(signature_header),
            "body_length_bytes": len(payload_body),
            "hint": "Signature mismatch. Ensure signature is computed over exact raw body bytes (HMAC-SHA256, base64)",
        }

    return True, None, None
