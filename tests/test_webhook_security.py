"""
Unit tests for webhook security verification
"""

import base64
import hashlib
import hmac

import pytest
from upi_gateway.utils.webhook_security import compute_hmac_signature, verify_hmac_signature


@pytest.fixture
def test_secret():
    """Test webhook secret"""
    return "test-webhook-secret-for-testing-only"


@pytest.fixture
def test_payload():
    """Test payload bytes"""
    return b'{"transaction_id":"HDFC_1a2b3c4d","status":"SUCCESS"}'


@pytest.fixture
def valid_signature(test_payload, test_secret):
    """Generate valid base64 HMAC signature for test payload"""
    return base64.b64encode(
        hmac.new(test_secret.encode('utf-8'), test_payload, hashlib.sha256).digest()
    ).decode('ascii')


class TestComputeSignature:
    """Tests for signature computation"""

    def test_matches_reference_hmac(self, test_payload, test_secret, valid_signature):
        assert compute_hmac_signature(test_secret, test_payload) == valid_signature

    def test_str_and_bytes_sign_identically(self, test_secret):
        assert compute_hmac_signature(test_secret, "abc") == compute_hmac_signature(test_secret, b"abc")


class TestHMACSignatureVerification:
    """Tests for HMAC signature verification"""

    def test_valid_signature_passes(self, test_payload, test_secret, valid_signature):
        """Valid signature should pass verification"""
        is_valid, error_code, error_details = verify_hmac_signature(
            payload_body=test_payload,
            signature_header=valid_signature,
            secret=test_secret,
        )
        assert is_valid is True
        assert error_code is None
        assert error_details is None

    def test_invalid_signature_fails(self, test_payload, test_secret):
        """Invalid signature should fail with WEBHOOK_INVALID_SIGNATURE"""
        is_valid, error_code, error_details = verify_hmac_signature(
            payload_body=test_payload,
            signature_header="bm90LWEtcmVhbC1zaWduYXR1cmU=",
            secret=test_secret,
        )
        assert is_valid is False
        assert error_code == "WEBHOOK_INVALID_SIGNATURE"
        assert "hint" in error_details

    def test_missing_signature_fails(self, test_payload, test_secret):
        """Missing signature should fail with WEBHOOK_MISSING_HEADER"""
        is_valid, error_code, error_details = verify_hmac_signature(
            payload_body=test_payload,
            signature_header=None,
            secret=test_secret,
            header_name="X-HDFC-Signature",
        )
        assert is_valid is False
        assert error_code == "WEBHOOK_MISSING_HEADER"
        assert error_details["missing_header"] == "X-HDFC-Signature"

    def test_missing_secret_fails(self, test_payload, valid_signature):
        is_valid, error_code, _ = verify_hmac_signature(
            payload_body=test_payload,
            signature_header=valid_signature,
            secret="",
        )
        assert is_valid is False
        assert error_code == "WEBHOOK_INVALID_SIGNATURE"

    def test_single_byte_payload_change_fails(self, test_payload, test_secret, valid_signature):
        """Signature covers the exact raw bytes"""
        tampered = test_payload.replace(b"SUCCESS", b"SUCCESs")
        is_valid, _, _ = verify_hmac_signature(
            payload_body=tampered,
            signature_header=valid_signature,
            secret=test_secret,
        )
        assert is_valid is False

    def test_single_char_signature_change_fails(self, test_payload, test_secret, valid_signature):
        flipped = ("A" if valid_signature[0] != "A" else "B") + valid_signature[1:]
        is_valid, _, _ = verify_hmac_signature(
            payload_body=test_payload,
            signature_header=flipped,
            secret=test_secret,
        )
        assert is_valid is False
