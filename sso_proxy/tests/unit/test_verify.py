"""
Unit tests for signed request verification.
"""
from datetime import datetime, timedelta, timezone

import pytest

from sso_proxy.core.signing.envelope import (
    HEADER_KEY_ID,
    HEADER_NONCE,
    HEADER_SIGNATURE,
    HEADER_TIMESTAMP,
    sign_manual_request,
)
from sso_proxy.core.signing.keys import generate_keypair
from sso_proxy.core.signing.verify import (
    TIMESTAMP_TOLERANCE_SECONDS,
    VerificationError,
    verify_signed_request,
)

URL = "https://sso.example.com/api/public/me/refresh-token"
BODY = {"refreshToken": "rt-123"}
NOW = datetime(2024, 6, 1, 9, 30, 0, tzinfo=timezone.utc)


@pytest.fixture
def signed_headers(credentials):
    envelope = sign_manual_request("POST", URL, BODY, credentials, now=NOW)
    return envelope.to_headers(credentials.key_id)


def _verify(public_key, headers, **kwargs):
    kwargs.setdefault("now", NOW)
    return verify_signed_request(
        public_key,
        kwargs.pop("method", "POST"),
        kwargs.pop("url", URL),
        kwargs.pop("body", BODY),
        headers,
        **kwargs,
    )


class TestVerifySignedRequest:
    def test_valid(self, public_key, signed_headers):
        result = _verify(public_key, signed_headers, expected_key_id="client-key-1")
        assert result.success
        assert result.key_id == "client-key-1"
        assert result.nonce == signed_headers[HEADER_NONCE]

    def test_body_key_order_irrelevant(self, public_key, credentials):
        envelope = sign_manual_request("POST", URL, {"b": 1, "a": 2}, credentials, now=NOW)
        result = _verify(public_key, envelope.to_headers("client-key-1"), body={"a": 2, "b": 1})
        assert result.success

    def test_missing_headers(self, public_key, signed_headers):
        headers = dict(signed_headers)
        del headers[HEADER_SIGNATURE]
        result = _verify(public_key, headers)
        assert result.error is VerificationError.MISSING_HEADERS
        assert HEADER_SIGNATURE in result.error_message

    def test_tampered_body(self, public_key, signed_headers):
        result = _verify(public_key, signed_headers, body={"refreshToken": "rt-999"})
        assert result.error is VerificationError.SIGNATURE_VERIFICATION_FAILED

    def test_tampered_method(self, public_key, signed_headers):
        result = _verify(public_key, signed_headers, method="PUT")
        assert result.error is VerificationError.SIGNATURE_VERIFICATION_FAILED

    def test_different_key(self, signed_headers):
        _, other_public = generate_keypair(2048)
        result = _verify(other_public, signed_headers)
        assert result.error is VerificationError.SIGNATURE_VERIFICATION_FAILED

    def test_timestamp_too_old(self, public_key, signed_headers):
        later = NOW + timedelta(seconds=TIMESTAMP_TOLERANCE_SECONDS + 1)
        result = _verify(public_key, signed_headers, now=later)
        assert result.error is VerificationError.TIMESTAMP_TOO_OLD

    def test_timestamp_too_new(self, public_key, signed_headers):
        earlier = NOW - timedelta(seconds=TIMESTAMP_TOLERANCE_SECONDS + 1)
        result = _verify(public_key, signed_headers, now=earlier)
        assert result.error is VerificationError.TIMESTAMP_TOO_NEW

    def test_invalid_timestamp_format(self, public_key, signed_headers):
        headers = dict(signed_headers, **{HEADER_TIMESTAMP: "yesterday"})
        result = _verify(public_key, headers)
        assert result.error is VerificationError.INVALID_TIMESTAMP_FORMAT

    def test_invalid_nonce(self, public_key, signed_headers):
        headers = dict(signed_headers, **{HEADER_NONCE: "12345"})
        result = _verify(public_key, headers)
        assert result.error is VerificationError.INVALID_NONCE_FORMAT

    def test_nonce_reuse(self, public_key, signed_headers):
        seen = set()

        def check(nonce):
            reused = nonce in seen
            seen.add(nonce)
            return reused

        assert _verify(public_key, signed_headers, check_nonce_reuse=check).success
        result = _verify(public_key, signed_headers, check_nonce_reuse=check)
        assert result.error is VerificationError.NONCE_REUSED

    def test_unexpected_key_id(self, public_key, signed_headers):
        result = _verify(public_key, signed_headers, expected_key_id="other-key")
        assert result.error is VerificationError.UNKNOWN_KEY

    def test_url_outside_prefix(self, public_key, signed_headers):
        result = _verify(public_key, signed_headers, url="https://sso.example.com/public/me/refresh-token")
        assert result.error is VerificationError.INVALID_REQUEST

    def test_garbage_signature(self, public_key, signed_headers):
        headers = dict(signed_headers, **{HEADER_SIGNATURE: "%%%not-base64%%%"})
        result = _verify(public_key, headers)
        assert result.error is VerificationError.SIGNATURE_VERIFICATION_FAILED

    def test_key_id_header_swapped(self, public_key, signed_headers):
        headers = dict(signed_headers, **{HEADER_KEY_ID: "client-key-2"})
        result = _verify(public_key, headers)
        assert result.error is VerificationError.SIGNATURE_VERIFICATION_FAILED
