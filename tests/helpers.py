"""Shared test helpers for authcallback.

A fake identity provider served through :class:`httpx.MockTransport`,
provider configuration factories for both provider types, token builders
and a recorder for anti-forgery check values. Fixtures wrapping these live
in ``conftest.py``.
"""

from __future__ import annotations

import time
from typing import Any, Optional

import httpx
import jwt

from authcallback.checks import COOKIE_NAMES, MemoryCheckStore
from authcallback.models import CallbackRequest, OAuthProviderConfig, OIDCProviderConfig


ISSUER = "https://idp.example.com"
TOKEN_URL = f"{ISSUER}/oauth/token"
USERINFO_URL = f"{ISSUER}/oauth/userinfo"
CALLBACK_URL = "https://app.example.com/auth/callback/example"
CLIENT_ID = "client-123"
CLIENT_SECRET = "s3cret"

# HS256 needs a key; signatures are never verified by the pipeline.
_SIGNING_KEY = "test-signing-key-that-is-long-enough-for-hs256"


# ---------------------------------------------------------------------------
# Token helpers
# ---------------------------------------------------------------------------


def make_id_token(**claims: Any) -> str:
    """Build an ID token with valid defaults overridden by *claims*.

    Pass a claim with value ``None`` to drop it.
    """
    now = int(time.time())
    payload: dict[str, Any] = {
        "iss": ISSUER,
        "sub": "user-42",
        "aud": CLIENT_ID,
        "exp": now + 300,
        "iat": now,
        "email": "Jane.Doe@Example.COM",
        "name": "Jane Doe",
    }
    payload.update(claims)
    payload = {k: v for k, v in payload.items() if v is not None}
    return jwt.encode(payload, _SIGNING_KEY, algorithm="HS256")


def make_token_response(**overrides: Any) -> dict[str, Any]:
    """Build a token endpoint JSON body."""
    data: dict[str, Any] = {
        "access_token": "access-abc",
        "token_type": "Bearer",
        "expires_in": 3600,
        "refresh_token": "refresh-xyz",
    }
    data.update(overrides)
    return {k: v for k, v in data.items() if v is not None}


# ---------------------------------------------------------------------------
# Fake identity provider
# ---------------------------------------------------------------------------


class FakeIdentityProvider:
    """Serves discovery, token and userinfo endpoints and records requests.

    Tests change :attr:`token_response`, :attr:`userinfo_response` or
    :attr:`discovery_response` to shape what the provider answers.
    """

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.discovery_response: httpx.Response = httpx.Response(
            200,
            json={
                "issuer": ISSUER,
                "authorization_endpoint": f"{ISSUER}/oauth/authorize",
                "token_endpoint": TOKEN_URL,
                "userinfo_endpoint": USERINFO_URL,
            },
        )
        self.token_response: httpx.Response = httpx.Response(
            200, json=make_token_response()
        )
        self.userinfo_response: httpx.Response = httpx.Response(
            200,
            json={"id": 1001, "name": "Octo Cat", "email": "Octo@Example.com"},
        )

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path == "/.well-known/openid-configuration":
            return self.discovery_response
        if path == "/oauth/token":
            return self.token_response
        if path == "/oauth/userinfo":
            return self.userinfo_response
        return httpx.Response(404, json={"error": "not_found"})

    def requests_to(self, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path == path]

    @property
    def token_requests(self) -> list[httpx.Request]:
        return self.requests_to("/oauth/token")

    @property
    def discovery_requests(self) -> list[httpx.Request]:
        return self.requests_to("/.well-known/openid-configuration")


# ---------------------------------------------------------------------------
# Providers
# ---------------------------------------------------------------------------


def make_oidc_provider(**overrides: Any) -> OIDCProviderConfig:
    """OIDC provider using discovery, with all three checks enabled."""
    fields: dict[str, Any] = {
        "id": "example",
        "issuer": ISSUER,
        "client_id": CLIENT_ID,
        "client_secret": CLIENT_SECRET,
        "callback_url": CALLBACK_URL,
        "checks": ["state", "pkce", "nonce"],
    }
    fields.update(overrides)
    return OIDCProviderConfig(**fields)


def make_oauth_provider(**overrides: Any) -> OAuthProviderConfig:
    """OAuth 2.0 provider with static endpoints and state + PKCE."""
    fields: dict[str, Any] = {
        "id": "octo",
        "client_id": CLIENT_ID,
        "client_secret": CLIENT_SECRET,
        "token_url": TOKEN_URL,
        "userinfo_url": USERINFO_URL,
        "callback_url": CALLBACK_URL,
        "checks": ["state", "pkce"],
    }
    fields.update(overrides)
    return OAuthProviderConfig(**fields)


# ---------------------------------------------------------------------------
# Recorded checks
# ---------------------------------------------------------------------------


class RecordedFlow:
    """Check values recorded for one flow and the cookies the browser holds."""

    def __init__(self, store: MemoryCheckStore) -> None:
        self.store = store
        self.values: dict[str, str] = {}
        self.cookies: dict[str, str] = {}

    def record(self, name: str, value: str) -> None:
        cookie = self.store.issue(name, value)  # type: ignore[arg-type]
        self.values[name] = value
        self.cookies[cookie.name] = cookie.value

    def request(
        self,
        query: Optional[dict[str, str]] = None,
        **kwargs: Any,
    ) -> CallbackRequest:
        """Build a callback request carrying this flow's cookies."""
        if query is None:
            query = {"code": "auth-code-1", "state": self.values.get("state", "")}
        return CallbackRequest(query=query, cookies=dict(self.cookies), **kwargs)


def cookie_name(check: str) -> str:
    return COOKIE_NAMES[check]
