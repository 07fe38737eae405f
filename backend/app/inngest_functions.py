from __future__ import annotations

import logging
from dataclasses import asdict
from typing import Any

import inngest

from app.config import Settings
from app.user_sync import UserLifecycleSync

LOGGER = logging.getLogger(__name__)

USER_CREATED_EVENT = "clerk/user.created"
USER_DELETED_EVENT = "clerk/user.deleted"


def build_inngest_client(settings: Settings) -> inngest.Inngest:
    return inngest.Inngest(
        app_id=settings.inngest_app_id,
        is_production=settings.is_production,
        logger=logging.getLogger("app.inngest"),
    )


async def run_sync_user(sync: UserLifecycleSync, ctx: inngest.Context) -> dict[str, Any]:
    result = await sync.handle_user_created(dict(ctx.event.data))
    LOGGER.info("Synced new user %s (run %s)", result.user_id, ctx.run_id)
    return asdict(result)


async def run_delete_user(sync: UserLifecycleSync, ctx: inngest.Context) -> dict[str, Any]:
    result = await sync.handle_user_deleted(dict(ctx.event.data))
    LOGGER.info("Removed user %s (run %s)", result.user_id, ctx.run_id)
    return asdict(result)


def build_functions(client: inngest.Inngest, sync: UserLifecycleSync) -> list[inngest.Function[Any]]:
    @client.create_function(
        fn_id="sync-user",
        trigger=inngest.TriggerEvent(event=USER_CREATED_EVENT),
    )
    async def sync_user(ctx: inngest.Context) -> dict[str, Any]:
        return await run_sync_user(sync, ctx)

    @client.create_function(
        fn_id="delete-user-from-db",
        trigger=inngest.TriggerEvent(event=USER_DELETED_EVENT),
    )
    async def delete_user_from_db(ctx: inngest.Context) -> dict[str, Any]:
        return await run_delete_user(sync, ctx)

    return [sync_user, delete_user_from_db]
