from __future__ import annotations

import json
import logging
from dataclasses import asdict

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from app.models import message_response
from app.user_sync import UserLifecycleSync
from app.webhook_security import WebhookSignatureError, verify_webhook

LOGGER = logging.getLogger(__name__)

router = APIRouter(prefix="/api/webhooks", tags=["webhooks"])


@router.post("/clerk")
async def clerk_webhook(request: Request) -> JSONResponse:
    secret: str = request.app.state.settings.clerk_webhook_secret
    if not secret:
        return message_response(503, "Clerk webhook secret not configured")

    body = await request.body()
    try:
        verify_webhook(secret, request.headers, body)
    except WebhookSignatureError as exc:
        LOGGER.warning("Rejected Clerk webhook: %s", exc)
        return message_response(401, "Invalid webhook signature")

    try:
        event = json.loads(body)
    except ValueError:
        return message_response(400, "Invalid webhook payload")
    if not isinstance(event, dict):
        return message_response(400, "Invalid webhook payload")

    event_type = str(event.get("type", ""))
    data = event.get("data")
    if not isinstance(data, dict):
        data = {}

    sync: UserLifecycleSync = request.app.state.user_sync
    try:
        if event_type == "user.created":
            result = await sync.handle_user_created(data)
        elif event_type == "user.updated":
            result = await sync.handle_user_updated(data)
        elif event_type == "user.deleted":
            result = await sync.handle_user_deleted(data)
        else:
            LOGGER.info("Ignoring Clerk webhook event %s", event_type or "<missing>")
            return JSONResponse(status_code=200, content={"status": "ignored", "type": event_type})
    except ValidationError as exc:
        LOGGER.warning("Malformed Clerk %s payload: %s", event_type, exc)
        return message_response(400, "Invalid webhook payload")

    return JSONResponse(status_code=200, content={"status": "processed", "type": event_type, **asdict(result)})
