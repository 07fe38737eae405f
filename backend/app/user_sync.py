from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any

from app.models import ClerkUserData, UserProfile
from app.stream_client import StreamService
from app.user_store import UserStore

LOGGER = logging.getLogger(__name__)


def build_user_profile(data: dict[str, Any]) -> UserProfile:
    """Map a Clerk user payload onto the profile mirrored into chat and the database."""
    user = ClerkUserData.model_validate(data)

    email = ""
    if user.email_addresses:
        primary = next(
            (item for item in user.email_addresses if item.id and item.id == user.primary_email_address_id),
            user.email_addresses[0],
        )
        email = primary.email_address.strip()

    name = " ".join(part.strip() for part in (user.first_name or "", user.last_name or "") if part.strip())
    if not name:
        name = (user.username or "").strip() or email.split("@", 1)[0] or user.id

    return UserProfile(
        clerk_id=user.id,
        email=email,
        name=name,
        profile_image=user.image_url or "",
    )


@dataclass
class SyncResult:
    user_id: str
    chat_synced: bool = False
    stored: bool = False
    channels_joined: int = 0


class UserLifecycleSync:
    def __init__(self, stream: StreamService, store: UserStore | None = None) -> None:
        self.stream = stream
        self.store = store

    async def handle_user_created(self, data: dict[str, Any]) -> SyncResult:
        profile = build_user_profile(data)
        result = await self.handle_user_updated(data, profile=profile)
        result.channels_joined = await self.stream.add_user_to_public_channels(profile.clerk_id)
        return result

    async def handle_user_updated(self, data: dict[str, Any], profile: UserProfile | None = None) -> SyncResult:
        profile = profile or build_user_profile(data)
        result = SyncResult(user_id=profile.clerk_id)
        result.chat_synced = await self.stream.upsert_user(profile.to_chat_user()) is not None

        if self.store is not None:
            try:
                await asyncio.to_thread(self.store.upsert_user, profile)
                result.stored = True
            except Exception:
                LOGGER.exception("Error storing user %s", profile.clerk_id)
        return result

    async def handle_user_deleted(self, data: dict[str, Any]) -> SyncResult:
        user_id = str(data.get("id") or "")
        if not user_id:
            LOGGER.warning("Ignoring user deletion event without an id")
            return SyncResult(user_id="")

        result = SyncResult(user_id=user_id)
        result.chat_synced = await self.stream.delete_user(user_id)

        if self.store is not None:
            try:
                result.stored = await asyncio.to_thread(self.store.delete_user, user_id)
            except Exception:
                LOGGER.exception("Error removing stored user %s", user_id)
        return result
