from __future__ import annotations

import asyncio
import logging

import inngest.fast_api
import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse

from app.auth import ClerkAuthenticator, UnauthorizedError
from app.config import ConfigError, Settings, configure_logging, load_settings
from app.inngest_functions import build_functions, build_inngest_client
from app.models import message_response
from app.routes.chat import router as chat_router
from app.routes.webhooks import router as webhooks_router
from app.stream_client import StreamConfig, StreamService
from app.user_store import UserStore
from app.user_sync import UserLifecycleSync

LOGGER = logging.getLogger(__name__)


def create_app(
    settings: Settings | None = None,
    stream: StreamService | None = None,
    user_store: UserStore | None = None,
) -> FastAPI:
    settings = settings or load_settings()

    if stream is None:
        stream = StreamService(StreamConfig(api_key=settings.stream_api_key, api_secret=settings.stream_api_secret))
    if user_store is None and settings.database_url:
        user_store = UserStore(settings.database_url)

    app = FastAPI(title="Interview Scheduler Chat Backend", version="1.0.0")
    app.state.settings = settings
    app.state.stream = stream
    app.state.user_store = user_store
    app.state.user_sync = UserLifecycleSync(stream, user_store)
    app.state.authenticator = ClerkAuthenticator.from_settings(
        jwks_url=settings.clerk_jwks_url,
        publishable_key=settings.clerk_publishable_key,
        secret_key=settings.clerk_secret_key,
        authorized_parties=settings.clerk_authorized_parties,
    )
    if app.state.authenticator is None:
        LOGGER.warning("Clerk is not configured; protected routes will reject every request")

    @app.exception_handler(UnauthorizedError)
    async def unauthorized_handler(_request: Request, exc: UnauthorizedError) -> JSONResponse:
        return message_response(401, exc.message)

    @app.on_event("startup")
    async def startup() -> None:
        try:
            settings.require_stream_credentials()
        except ConfigError:
            if settings.is_production:
                raise
            LOGGER.warning("Stream credentials are not set; chat calls will fail")

        store: UserStore | None = app.state.user_store
        if store is not None and not settings.is_production:
            await asyncio.to_thread(store.init_schema)

    @app.on_event("shutdown")
    async def shutdown() -> None:
        await app.state.stream.close()

    @app.get("/", response_class=PlainTextResponse)
    def index() -> str:
        return "Hello World!"

    @app.get("/health")
    def health() -> dict[str, str | bool | int | None]:
        store: UserStore | None = app.state.user_store
        return {
            "status": "ok",
            "environment": settings.app_env,
            "database": store is not None,
            "user_count": store.count_users() if store is not None else None,
        }

    app.include_router(chat_router)
    app.include_router(webhooks_router)

    inngest_client = build_inngest_client(settings)
    inngest.fast_api.serve(app, inngest_client, build_functions(inngest_client, app.state.user_sync))

    return app


SETTINGS = load_settings()
configure_logging(SETTINGS.log_level)
app = create_app(SETTINGS)


def run() -> None:
    LOGGER.info("Server is running on port http://localhost:%d", SETTINGS.port)
    uvicorn.run(app, host="0.0.0.0", port=SETTINGS.port, log_level=SETTINGS.log_level.lower())


if __name__ == "__main__":
    run()
