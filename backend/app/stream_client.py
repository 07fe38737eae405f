from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import Any

from stream_chat import StreamChatAsync

LOGGER = logging.getLogger(__name__)

PUBLIC_CHANNEL_FILTER: dict[str, Any] = {"discoverable": True}
CHANNEL_PAGE_SIZE = 30


@dataclass
class StreamConfig:
    api_key: str
    api_secret: str
    timeout_seconds: float = 6.0


class StreamService:
    """Process-wide gateway to Stream Chat.

    The underlying client owns an aiohttp session, so it is built on first use
    inside the running event loop and then reused for every call.
    """

    def __init__(self, config: StreamConfig, client: Any | None = None) -> None:
        self.config = config
        self._client = client

    @property
    def client(self) -> Any:
        if self._client is None:
            self._client = StreamChatAsync(
                api_key=self.config.api_key,
                api_secret=self.config.api_secret,
                timeout=self.config.timeout_seconds,
            )
        return self._client

    async def close(self) -> None:
        if self._client is None:
            return
        await self._client.close()
        self._client = None

    async def upsert_user(self, user_data: dict[str, Any]) -> dict[str, Any] | None:
        try:
            await self.client.upsert_user(user_data)
        except Exception:
            LOGGER.exception("Error upserting Stream user %s", user_data.get("id"))
            return None
        LOGGER.info("Stream user upserted: %s", user_data.get("name"))
        return user_data

    async def delete_user(self, user_id: str) -> bool:
        try:
            await self.client.delete_user(user_id)
        except Exception:
            LOGGER.exception("Error deleting Stream user %s", user_id)
            return False
        LOGGER.info("Stream user deleted: %s", user_id)
        return True

    def generate_token(self, user_id: Any) -> str | None:
        try:
            return self.client.create_token(str(user_id))
        except Exception:
            LOGGER.exception("Error generating Stream token")
            return None

    async def add_user_to_public_channels(self, user_id: str) -> int:
        joined = 0
        async for channel_data in self._iter_public_channels():
            channel = self.client.channel(channel_data["type"], channel_data["id"])
            await channel.add_members([user_id])
            joined += 1
        LOGGER.info("Added %s to %d public channel(s)", user_id, joined)
        return joined

    async def _iter_public_channels(self) -> AsyncIterator[dict[str, Any]]:
        offset = 0
        while True:
            response = await self.client.query_channels(
                PUBLIC_CHANNEL_FILTER,
                limit=CHANNEL_PAGE_SIZE,
                offset=offset,
            )
            items = response.get("channels", [])
            if not isinstance(items, list):
                return
            for item in items:
                if not isinstance(item, dict):
                    continue
                channel_data = item.get("channel", item)
                if isinstance(channel_data, dict) and channel_data.get("id"):
                    yield channel_data
            if len(items) < CHANNEL_PAGE_SIZE:
                return
            offset += CHANNEL_PAGE_SIZE
