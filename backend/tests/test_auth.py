from __future__ import annotations

import asyncio
import base64
import json
import time
from typing import Any

import jwt
import pytest
from cryptography.hazmat.primitives.asymmetric import rsa
from fastapi import Depends, FastAPI, Request
from fastapi.testclient import TestClient

from app.auth import (
    CLERK_API_JWKS_URL,
    AuthError,
    AuthState,
    ClerkAuthenticator,
    extract_session_token,
    get_auth,
    jwks_url_from_publishable_key,
)

PRIVATE_KEY = rsa.generate_private_key(public_exponent=65537, key_size=2048)


def public_jwk(kid: str = "ins_test") -> dict[str, Any]:
    jwk = json.loads(jwt.algorithms.RSAAlgorithm.to_jwk(PRIVATE_KEY.public_key()))
    jwk.update({"kid": kid, "alg": "RS256", "use": "sig"})
    return jwk


def session_token(kid: str = "ins_test", **claims: Any) -> str:
    now = int(time.time())
    payload: dict[str, Any] = {
        "sub": "user_123",
        "sid": "sess_1",
        "iss": "https://clerk.example.com",
        "iat": now,
        "nbf": now,
        "exp": now + 60,
    }
    payload.update(claims)
    return jwt.encode(payload, PRIVATE_KEY, algorithm="RS256", headers={"kid": kid})


def build_authenticator(authorized_parties: list[str] | None = None) -> ClerkAuthenticator:
    authenticator = ClerkAuthenticator("https://clerk.example.com/.well-known/jwks.json", authorized_parties=authorized_parties)
    authenticator._jwks = {"keys": [public_jwk()]}
    authenticator._jwks_expiry = time.time() + 3600
    return authenticator


def assert_auth_error(authenticator: ClerkAuthenticator, token: str) -> None:
    with pytest.raises(AuthError):
        asyncio.run(authenticator.authenticate(token))


def test_jwks_url_from_publishable_key() -> None:
    encoded = base64.b64encode(b"clever-cat-12.clerk.accounts.dev$").decode("ascii").rstrip("=")
    assert jwks_url_from_publishable_key(f"pk_test_{encoded}") == (
        "https://clever-cat-12.clerk.accounts.dev/.well-known/jwks.json"
    )


def test_jwks_url_rejects_unknown_key_format() -> None:
    with pytest.raises(ValueError):
        jwks_url_from_publishable_key("sk_test_abc")


def test_from_settings_prefers_explicit_url_then_secret_key() -> None:
    explicit = ClerkAuthenticator.from_settings("https://keys.example.com/jwks", "", "sk_test_x", [])
    assert explicit is not None and explicit.jwks_url == "https://keys.example.com/jwks"

    backend = ClerkAuthenticator.from_settings("", "", "sk_test_x", ["http://localhost:5173"])
    assert backend is not None
    assert backend.jwks_url == CLERK_API_JWKS_URL
    assert backend.authorized_parties == ["http://localhost:5173"]

    assert ClerkAuthenticator.from_settings("", "", "", []) is None


def test_valid_session_token_yields_claims() -> None:
    claims = asyncio.run(build_authenticator().authenticate(session_token()))
    assert claims["sub"] == "user_123"
    assert claims["sid"] == "sess_1"


def test_expired_token_is_rejected() -> None:
    past = int(time.time()) - 3600
    assert_auth_error(build_authenticator(), session_token(iat=past, nbf=past, exp=past + 60))


def test_token_signed_by_other_key_is_rejected() -> None:
    other = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    token = jwt.encode({"sub": "user_123", "exp": int(time.time()) + 60}, other, algorithm="RS256", headers={"kid": "ins_test"})
    assert_auth_error(build_authenticator(), token)


def test_unauthorized_party_is_rejected() -> None:
    authenticator = build_authenticator(authorized_parties=["https://app.example.com"])
    assert_auth_error(authenticator, session_token(azp="https://evil.example.com"))
    claims = asyncio.run(authenticator.authenticate(session_token(azp="https://app.example.com")))
    assert claims["sub"] == "user_123"


def test_unknown_kid_forces_jwks_refresh() -> None:
    authenticator = build_authenticator()
    refreshed: list[bool] = []

    async def fake_fetch_jwks(force: bool = False) -> dict[str, Any]:
        refreshed.append(force)
        if force:
            return {"keys": [public_jwk("ins_rotated")]}
        return {"keys": [public_jwk()]}

    authenticator._fetch_jwks = fake_fetch_jwks  # type: ignore[method-assign]

    claims = asyncio.run(authenticator.authenticate(session_token(kid="ins_rotated")))
    assert claims["sub"] == "user_123"
    assert refreshed == [False, True]


def test_malformed_token_is_rejected() -> None:
    assert_auth_error(build_authenticator(), "not-a-jwt")


def build_protected_app(authenticator: ClerkAuthenticator | None) -> FastAPI:
    app = FastAPI()
    app.state.authenticator = authenticator

    @app.get("/whoami")
    async def whoami(request_auth: AuthState = Depends(get_auth)) -> dict[str, Any]:
        return {"user_id": request_auth.user_id, "authenticated": request_auth.is_authenticated}

    return app


def test_session_token_read_from_header_or_cookie() -> None:
    client = TestClient(build_protected_app(build_authenticator()))
    token = session_token()

    by_header = client.get("/whoami", headers={"Authorization": f"Bearer {token}"})
    assert by_header.json() == {"user_id": "user_123", "authenticated": True}

    by_cookie = client.get("/whoami", headers={"Cookie": f"__session={token}"})
    assert by_cookie.json() == {"user_id": "user_123", "authenticated": True}


def test_invalid_token_leaves_request_anonymous() -> None:
    client = TestClient(build_protected_app(build_authenticator()))
    response = client.get("/whoami", headers={"Authorization": "Bearer garbage"})
    assert response.json() == {"user_id": None, "authenticated": False}


def test_extract_session_token_ignores_other_schemes() -> None:
    app = FastAPI()

    @app.get("/token")
    async def token(request: Request) -> dict[str, str | None]:
        return {"token": extract_session_token(request)}

    client = TestClient(app)
    assert client.get("/token", headers={"Authorization": "Basic abc"}).json() == {"token": None}
    assert client.get("/token", headers={"Authorization": "Bearer abc"}).json() == {"token": "abc"}
