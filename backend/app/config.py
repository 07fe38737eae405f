from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


class ConfigError(RuntimeError):
    pass


@dataclass
class Settings:
    app_env: str = "development"
    port: int = 3000
    log_level: str = "INFO"
    stream_api_key: str = ""
    stream_api_secret: str = ""
    clerk_publishable_key: str = ""
    clerk_secret_key: str = ""
    clerk_jwks_url: str = ""
    clerk_authorized_parties: list[str] = field(default_factory=list)
    clerk_webhook_secret: str = ""
    inngest_app_id: str = "interview-scheduler"
    database_url: str = ""

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"

    def require_stream_credentials(self) -> tuple[str, str]:
        if not self.stream_api_key or not self.stream_api_secret:
            raise ConfigError("STREAM_API_KEY and STREAM_API_SECRET must be set")
        return self.stream_api_key, self.stream_api_secret


def load_settings() -> Settings:
    parties = os.getenv("CLERK_AUTHORIZED_PARTIES", "")
    return Settings(
        app_env=os.getenv("APP_ENV", "development").strip().lower(),
        port=int(os.getenv("PORT", "3000")),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        stream_api_key=os.getenv("STREAM_API_KEY", ""),
        stream_api_secret=os.getenv("STREAM_API_SECRET", ""),
        clerk_publishable_key=os.getenv("CLERK_PUBLISHABLE_KEY", ""),
        clerk_secret_key=os.getenv("CLERK_SECRET_KEY", ""),
        clerk_jwks_url=os.getenv("CLERK_JWKS_URL", ""),
        clerk_authorized_parties=[item.strip() for item in parties.split(",") if item.strip()],
        clerk_webhook_secret=os.getenv("CLERK_WEBHOOK_SECRET", ""),
        inngest_app_id=os.getenv("INNGEST_APP_ID", "interview-scheduler"),
        database_url=os.getenv("DATABASE_URL", ""),
    )


def configure_logging(level: str) -> None:
    logging.basicConfig(level=getattr(logging, level, logging.INFO), format=LOG_FORMAT)
