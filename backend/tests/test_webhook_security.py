from __future__ import annotations

import base64

import pytest

from app.webhook_security import MAX_WEBHOOK_AGE_SECONDS, WebhookSignatureError, sign_payload, verify_webhook

SECRET = "whsec_" + base64.b64encode(b"clerk-webhook-test-secret").decode("ascii")
NOW = 1_760_000_000
BODY = b'{"type":"user.created","data":{"id":"user_123"}}'


def signed_headers(body: bytes = BODY, timestamp: int = NOW, msg_id: str = "msg_1") -> dict[str, str]:
    signature = sign_payload(SECRET, msg_id, str(timestamp), body)
    return {
        "svix-id": msg_id,
        "svix-timestamp": str(timestamp),
        "svix-signature": f"v1,{signature}",
    }


def assert_rejected(headers: dict[str, str], body: bytes = BODY) -> None:
    with pytest.raises(WebhookSignatureError):
        verify_webhook(SECRET, headers, body, now=NOW)


def test_valid_signature_is_accepted() -> None:
    verify_webhook(SECRET, signed_headers(), BODY, now=NOW)


def test_any_matching_signature_in_header_is_accepted() -> None:
    headers = signed_headers()
    headers["svix-signature"] = f"v1,bm90LWEtc2lnbmF0dXJl {headers['svix-signature']}"
    verify_webhook(SECRET, headers, BODY, now=NOW)


def test_tampered_body_is_rejected() -> None:
    assert_rejected(signed_headers(), body=BODY.replace(b"user_123", b"user_999"))


def test_stale_timestamp_is_rejected() -> None:
    assert_rejected(signed_headers(timestamp=NOW - MAX_WEBHOOK_AGE_SECONDS - 1))


def test_missing_headers_are_rejected() -> None:
    headers = signed_headers()
    del headers["svix-signature"]
    assert_rejected(headers)


def test_non_numeric_timestamp_is_rejected() -> None:
    headers = signed_headers()
    headers["svix-timestamp"] = "yesterday"
    assert_rejected(headers)


def test_wrong_signature_version_is_rejected() -> None:
    headers = signed_headers()
    headers["svix-signature"] = headers["svix-signature"].replace("v1,", "v2,")
    assert_rejected(headers)
