"""Svix signature verification for Clerk webhooks.

Signed content is ``{svix-id}.{svix-timestamp}.{raw body}``, HMAC-SHA256 with the
base64-decoded part of the ``whsec_`` secret, base64 encoded. The signature
header may carry several space separated ``v1,<sig>`` entries.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import logging
import time
from collections.abc import Mapping

LOGGER = logging.getLogger(__name__)

MAX_WEBHOOK_AGE_SECONDS = 300
SECRET_PREFIX = "whsec_"


class WebhookSignatureError(Exception):
    pass


def decode_signing_secret(secret: str) -> bytes:
    raw = secret[len(SECRET_PREFIX):] if secret.startswith(SECRET_PREFIX) else secret
    try:
        return base64.b64decode(raw, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise WebhookSignatureError("Webhook secret is not valid base64") from exc


def sign_payload(secret: str, msg_id: str, timestamp: str, body: bytes) -> str:
    key = decode_signing_secret(secret)
    signed = b".".join([msg_id.encode("utf-8"), timestamp.encode("utf-8"), body])
    return base64.b64encode(hmac.new(key, signed, hashlib.sha256).digest()).decode("utf-8")


def verify_webhook(
    secret: str,
    headers: Mapping[str, str],
    body: bytes,
    now: float | None = None,
) -> None:
    msg_id = headers.get("svix-id", "")
    timestamp = headers.get("svix-timestamp", "")
    signature_header = headers.get("svix-signature", "")
    if not msg_id or not timestamp or not signature_header:
        raise WebhookSignatureError("Missing svix headers")

    try:
        sent_at = int(timestamp)
    except ValueError as exc:
        raise WebhookSignatureError("Invalid svix-timestamp header") from exc

    current = time.time() if now is None else now
    if abs(current - sent_at) > MAX_WEBHOOK_AGE_SECONDS:
        raise WebhookSignatureError("Webhook timestamp outside tolerance")

    expected = sign_payload(secret, msg_id, timestamp, body)
    for candidate in signature_header.split():
        version, _, signature = candidate.partition(",")
        if version == "v1" and hmac.compare_digest(expected, signature):
            return

    LOGGER.warning("Webhook signature mismatch for %s", msg_id)
    raise WebhookSignatureError("Invalid webhook signature")
