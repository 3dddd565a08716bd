"""
Unit tests for canonical request signing.
"""

import base64
from datetime import datetime, timezone, timedelta

import pytest

from service_wallet.app.signing.signer import (
    build_signed_request,
    canonical_json,
    parse_signature_header,
    request_time,
    sign,
    sign_content,
    signature_header,
    verify,
)
from shared.test_helpers import KeyFactory


@pytest.fixture(scope="module")
def private_key():
    return KeyFactory.private_key()


@pytest.fixture(scope="module")
def other_key():
    return KeyFactory.private_key()


BASE_INPUTS = {
    "method": "POST",
    "path": "/v1/payments/pay",
    "client_id": "2020000000000000",
    "timestamp": "2024-05-01T10:00:00+00:00",
    "body_json": '{"paymentRequestId":"PAY-1","paymentAmount":{"currency":"IQD","value":"1000"}}',
}


class TestSignContent:
    """Test cases for the canonical string."""

    def test_layout(self):
        content = sign_content("POST", "/v1/x", "cid", "2024-05-01T10:00:00+00:00", "{}")
        assert content == "POST /v1/x\ncid.2024-05-01T10:00:00+00:00.{}"

    def test_request_time_uses_explicit_offset(self):
        now = datetime(2024, 5, 1, 10, 0, 0, 123456, tzinfo=timezone.utc)
        assert request_time(now) == "2024-05-01T10:00:00+00:00"

    def test_request_time_normalizes_to_utc(self):
        now = datetime(2024, 5, 1, 13, 0, 0, tzinfo=timezone(timedelta(hours=3)))
        assert request_time(now) == "2024-05-01T10:00:00+00:00"

    def test_request_time_never_uses_z_suffix(self):
        assert request_time().endswith("+00:00")

    def test_canonical_json_is_compact_and_ordered(self):
        params = {"b": 1, "a": {"y": "ü", "x": 2}}
        assert canonical_json(params) == '{"b":1,"a":{"y":"ü","x":2}}'


class TestSign:
    """Test cases for RSA signatures."""

    def test_deterministic(self, private_key):
        first = sign(*BASE_INPUTS.values(), private_key)
        second = sign(*BASE_INPUTS.values(), private_key)
        assert first == second
        base64.b64decode(first, validate=True)

    @pytest.mark.parametrize("field,value", [
        ("method", "GET"),
        ("path", "/v1/payments/refund"),
        ("client_id", "2020000000000001"),
        ("timestamp", "2024-05-01T10:00:01+00:00"),
        ("body_json", '{"paymentRequestId":"PAY-2"}'),
    ])
    def test_any_input_change_changes_signature(self, private_key, field, value):
        original = sign(*BASE_INPUTS.values(), private_key)
        changed = dict(BASE_INPUTS, **{field: value})
        assert sign(*changed.values(), private_key) != original

    def test_different_key_changes_signature(self, private_key, other_key):
        assert sign(*BASE_INPUTS.values(), private_key) != sign(*BASE_INPUTS.values(), other_key)

    def test_verify_roundtrip(self, private_key):
        signature = sign(*BASE_INPUTS.values(), private_key)
        assert verify(signature, *BASE_INPUTS.values(), private_key.public_key())

    def test_verify_rejects_tampered_body(self, private_key):
        signature = sign(*BASE_INPUTS.values(), private_key)
        tampered = dict(BASE_INPUTS, body_json='{"paymentRequestId":"PAY-9"}')
        assert not verify(signature, *tampered.values(), private_key.public_key())

    def test_verify_rejects_garbage(self, private_key):
        assert not verify("not-base64!", *BASE_INPUTS.values(), private_key.public_key())


class TestSignatureHeader:
    """Test cases for the Signature header."""

    def test_format(self):
        assert signature_header("abc==") == "algorithm=RSA256, keyVersion=1, signature=abc=="

    def test_parse_keeps_padding(self):
        assert parse_signature_header(signature_header("abc+/==")) == "abc+/=="

    def test_parse_missing(self):
        assert parse_signature_header("algorithm=RSA256, keyVersion=1") is None


class TestBuildSignedRequest:
    """Test cases for the per-call signed request."""

    def test_signs_exactly_the_serialized_body(self, private_key):
        now = datetime(2024, 5, 1, 10, 0, 0, tzinfo=timezone.utc)
        params = {"grantType": "AUTHORIZATION_CODE", "authCode": "abc"}
        signed = build_signed_request("POST", "/v1/authorizations/applyToken", "cid", params, private_key, now=now)

        assert signed.body_json == '{"grantType":"AUTHORIZATION_CODE","authCode":"abc"}'
        assert signed.request_time == "2024-05-01T10:00:00+00:00"
        assert verify(
            signed.signature, "POST", "/v1/authorizations/applyToken", "cid",
            signed.request_time, signed.body_json, private_key.public_key(),
        )
