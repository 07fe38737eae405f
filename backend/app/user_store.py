from __future__ import annotations

import logging

import psycopg

from app.models import UserProfile

LOGGER = logging.getLogger(__name__)


class UserStore:
    def __init__(self, dsn: str) -> None:
        self.dsn = dsn

    def init_schema(self) -> None:
        with psycopg.connect(self.dsn) as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    CREATE TABLE IF NOT EXISTS users (
                        clerk_id TEXT PRIMARY KEY,
                        email TEXT NOT NULL DEFAULT '',
                        name TEXT NOT NULL,
                        profile_image TEXT NOT NULL DEFAULT '',
                        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
                        updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
                    );
                    """
                )
        LOGGER.info("Connected to database and ensured users table")

    def upsert_user(self, profile: UserProfile) -> None:
        with psycopg.connect(self.dsn) as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    INSERT INTO users (clerk_id, email, name, profile_image)
                    VALUES (%s, %s, %s, %s)
                    ON CONFLICT (clerk_id)
                    DO UPDATE SET email = EXCLUDED.email,
                                  name = EXCLUDED.name,
                                  profile_image = EXCLUDED.profile_image,
                                  updated_at = NOW();
                    """,
                    (profile.clerk_id, profile.email, profile.name, profile.profile_image),
                )

    def delete_user(self, clerk_id: str) -> bool:
        with psycopg.connect(self.dsn) as conn:
            with conn.cursor() as cur:
                cur.execute("DELETE FROM users WHERE clerk_id = %s;", (clerk_id,))
                return cur.rowcount > 0

    def count_users(self) -> int:
        with psycopg.connect(self.dsn) as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT COUNT(*) FROM users;")
                row = cur.fetchone()
        return int(row[0]) if row else 0
