"""Clerk session authentication.

Mirrors what Clerk's framework middleware does for the Node SDK: every request
gets an auth state derived from the session JWT (``Authorization: Bearer`` or
the ``__session`` cookie), and protected routes reject anonymous callers.
"""

from __future__ import annotations

import base64
import logging
import time
from dataclasses import dataclass, field
from typing import Any

import httpx
import jwt
from fastapi import Depends, Request

LOGGER = logging.getLogger(__name__)

CLERK_API_JWKS_URL = "https://api.clerk.com/v1/jwks"
SESSION_COOKIE = "__session"
JWKS_CACHE_SECONDS = 3600
CLOCK_SKEW_SECONDS = 5


class AuthError(Exception):
    pass


class UnauthorizedError(Exception):
    def __init__(self, message: str = "Unauthorized - you must be logged in") -> None:
        super().__init__(message)
        self.message = message


@dataclass
class AuthState:
    user_id: str | None = None
    session_id: str | None = None
    claims: dict[str, Any] = field(default_factory=dict)

    @property
    def is_authenticated(self) -> bool:
        return bool(self.user_id)


def jwks_url_from_publishable_key(publishable_key: str) -> str:
    """Derive the Frontend API JWKS endpoint encoded in a ``pk_test_``/``pk_live_`` key."""
    for prefix in ("pk_test_", "pk_live_"):
        if publishable_key.startswith(prefix):
            encoded = publishable_key[len(prefix):]
            break
    else:
        raise ValueError("Unrecognised Clerk publishable key format")

    encoded += "=" * (-len(encoded) % 4)
    try:
        host = base64.b64decode(encoded).decode("utf-8")
    except (ValueError, UnicodeDecodeError) as exc:
        raise ValueError("Clerk publishable key does not contain a valid host") from exc

    host = host.rstrip("$").strip()
    if not host:
        raise ValueError("Clerk publishable key does not contain a valid host")
    return f"https://{host}/.well-known/jwks.json"


class ClerkAuthenticator:
    def __init__(
        self,
        jwks_url: str,
        secret_key: str = "",
        authorized_parties: list[str] | None = None,
        timeout_seconds: float = 10.0,
    ) -> None:
        self.jwks_url = jwks_url
        self.secret_key = secret_key
        self.authorized_parties = authorized_parties or []
        self.timeout_seconds = timeout_seconds
        self._jwks: dict[str, Any] = {}
        self._jwks_expiry = 0.0

    @classmethod
    def from_settings(
        cls,
        jwks_url: str,
        publishable_key: str,
        secret_key: str,
        authorized_parties: list[str],
    ) -> ClerkAuthenticator | None:
        if jwks_url:
            return cls(jwks_url, secret_key="", authorized_parties=authorized_parties)
        if secret_key:
            return cls(CLERK_API_JWKS_URL, secret_key=secret_key, authorized_parties=authorized_parties)
        if publishable_key:
            return cls(jwks_url_from_publishable_key(publishable_key), authorized_parties=authorized_parties)
        return None

    async def authenticate(self, token: str) -> dict[str, Any]:
        try:
            header = jwt.get_unverified_header(token)
        except jwt.PyJWTError as exc:
            raise AuthError(f"Malformed session token: {exc}") from exc

        kid = header.get("kid")
        if not kid:
            raise AuthError("Session token header has no kid")

        jwk = await self._get_signing_key(kid)
        try:
            signing_key = jwt.algorithms.RSAAlgorithm.from_jwk(jwk)
            claims = jwt.decode(
                token,
                signing_key,
                algorithms=["RS256"],
                leeway=CLOCK_SKEW_SECONDS,
                options={"verify_aud": False},
            )
        except jwt.PyJWTError as exc:
            raise AuthError(f"Invalid session token: {exc}") from exc

        if not claims.get("sub"):
            raise AuthError("Session token has no subject")

        azp = claims.get("azp")
        if self.authorized_parties and azp and azp not in self.authorized_parties:
            raise AuthError(f"Session token issued for unauthorized party {azp}")

        return claims

    async def _get_signing_key(self, kid: str) -> dict[str, Any]:
        jwks = await self._fetch_jwks()
        key = _find_key(jwks, kid)
        if key is None:
            # Keys may have rotated since the last fetch.
            jwks = await self._fetch_jwks(force=True)
            key = _find_key(jwks, kid)
        if key is None:
            raise AuthError(f"No signing key found for kid {kid}")
        return key

    async def _fetch_jwks(self, force: bool = False) -> dict[str, Any]:
        now = time.time()
        if self._jwks and not force and now < self._jwks_expiry:
            return self._jwks

        headers = {"Authorization": f"Bearer {self.secret_key}"} if self.secret_key else {}
        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
                response = await client.get(self.jwks_url, headers=headers)
                response.raise_for_status()
                payload = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            if self._jwks:
                LOGGER.warning("JWKS refresh from %s failed (%s); using cached keys", self.jwks_url, exc)
                return self._jwks
            raise AuthError(f"Unable to fetch JWKS from {self.jwks_url}: {exc}") from exc

        if not isinstance(payload, dict):
            payload = {"keys": []}
        self._jwks = payload
        self._jwks_expiry = now + JWKS_CACHE_SECONDS
        LOGGER.info("Loaded %d signing key(s) from %s", len(payload.get("keys", [])), self.jwks_url)
        return payload


def _find_key(jwks: dict[str, Any], kid: str) -> dict[str, Any] | None:
    keys = jwks.get("keys", [])
    if not isinstance(keys, list):
        return None
    for key in keys:
        if isinstance(key, dict) and key.get("kid") == kid:
            return key
    return None


def extract_session_token(request: Request) -> str | None:
    authorization = request.headers.get("authorization", "")
    scheme, _, credentials = authorization.partition(" ")
    if scheme.lower() == "bearer" and credentials.strip():
        return credentials.strip()
    cookie = request.cookies.get(SESSION_COOKIE)
    return cookie or None


async def get_auth(request: Request) -> AuthState:
    authenticator: ClerkAuthenticator | None = getattr(request.app.state, "authenticator", None)
    token = extract_session_token(request)
    if authenticator is None or token is None:
        return AuthState()

    try:
        claims = await authenticator.authenticate(token)
    except AuthError as exc:
        LOGGER.info("Rejected session token: %s", exc)
        return AuthState()

    return AuthState(user_id=str(claims["sub"]), session_id=claims.get("sid"), claims=claims)


async def require_auth(auth: AuthState = Depends(get_auth)) -> str:
    if not auth.is_authenticated:
        raise UnauthorizedError()
    return str(auth.user_id)
