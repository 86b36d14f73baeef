"""Tests for authorization-server endpoint resolution."""

from __future__ import annotations

import httpx
import pytest

from authcallback.exceptions import ConfigurationError
from authcallback.hooks import ProviderHooks, UserinfoContext
from authcallback.resolver import AuthorizationServerResolver, discovery_url

from helpers import ISSUER, TOKEN_URL, USERINFO_URL, make_oauth_provider, make_oidc_provider


class _CustomUserinfo(ProviderHooks):
    async def request_userinfo(self, ctx: UserinfoContext) -> dict:
        return {"id": "custom"}


def test_discovery_url_strips_trailing_slash() -> None:
    assert discovery_url("https://idp.example.com/") == (
        "https://idp.example.com/.well-known/openid-configuration"
    )
    assert discovery_url("https://idp.example.com/tenant") == (
        "https://idp.example.com/tenant/.well-known/openid-configuration"
    )


class TestStaticEndpoints:
    async def test_both_endpoints_configured_skips_discovery(self, idp, http_client) -> None:
        provider = make_oauth_provider(issuer=ISSUER)

        metadata = await AuthorizationServerResolver(http_client).resolve(provider)

        assert metadata.issuer == ISSUER
        assert metadata.token_endpoint == TOKEN_URL
        assert metadata.userinfo_endpoint == USERINFO_URL
        assert idp.requests == []

    async def test_static_without_issuer(self, idp, http_client) -> None:
        provider = make_oauth_provider()

        metadata = await AuthorizationServerResolver(http_client).resolve(provider)

        assert metadata.issuer is None
        assert idp.requests == []


class TestDiscovery:
    async def test_issuer_only_uses_discovery_document(self, idp, http_client) -> None:
        provider = make_oidc_provider()

        metadata = await AuthorizationServerResolver(http_client).resolve(provider)

        assert len(idp.discovery_requests) == 1
        assert metadata.issuer == ISSUER
        assert metadata.token_endpoint == TOKEN_URL
        assert metadata.userinfo_endpoint == USERINFO_URL
        # Unknown keys from the document are preserved.
        assert metadata.model_extra["authorization_endpoint"] == f"{ISSUER}/oauth/authorize"

    async def test_single_explicit_endpoint_still_discovers_and_wins(
        self, idp, http_client
    ) -> None:
        provider = make_oidc_provider(token_url="https://other.example.com/token")

        metadata = await AuthorizationServerResolver(http_client).resolve(provider)

        assert len(idp.discovery_requests) == 1
        assert metadata.token_endpoint == "https://other.example.com/token"
        assert metadata.userinfo_endpoint == USERINFO_URL

    async def test_no_issuer_and_no_endpoints(self, http_client) -> None:
        provider = make_oauth_provider(token_url=None, userinfo_url=None)

        with pytest.raises(ConfigurationError, match="missing token endpoint"):
            await AuthorizationServerResolver(http_client).resolve(provider)

    async def test_discovery_http_failure(self, idp, http_client) -> None:
        idp.discovery_response = httpx.Response(500, text="boom")

        with pytest.raises(ConfigurationError, match="missing token endpoint") as exc_info:
            await AuthorizationServerResolver(http_client).resolve(make_oidc_provider())
        assert exc_info.value.provider_id == "example"

    async def test_discovery_not_json(self, idp, http_client) -> None:
        idp.discovery_response = httpx.Response(200, text="<html>")

        with pytest.raises(ConfigurationError, match="missing token endpoint"):
            await AuthorizationServerResolver(http_client).resolve(make_oidc_provider())

    async def test_discovery_issuer_mismatch(self, idp, http_client) -> None:
        idp.discovery_response = httpx.Response(
            200, json={"issuer": "https://evil.example.com", "token_endpoint": TOKEN_URL}
        )

        with pytest.raises(ConfigurationError, match="does not match"):
            await AuthorizationServerResolver(http_client).resolve(make_oidc_provider())

    async def test_discovery_without_token_endpoint(self, idp, http_client) -> None:
        idp.discovery_response = httpx.Response(
            200, json={"issuer": ISSUER, "userinfo_endpoint": USERINFO_URL}
        )

        with pytest.raises(ConfigurationError, match="missing token endpoint"):
            await AuthorizationServerResolver(http_client).resolve(make_oidc_provider())

    async def test_missing_userinfo_is_fine_for_oidc(self, idp, http_client) -> None:
        idp.discovery_response = httpx.Response(
            200, json={"issuer": ISSUER, "token_endpoint": TOKEN_URL}
        )

        metadata = await AuthorizationServerResolver(http_client).resolve(make_oidc_provider())

        assert metadata.userinfo_endpoint is None

    async def test_missing_userinfo_fails_for_oauth(self, idp, http_client) -> None:
        idp.discovery_response = httpx.Response(
            200, json={"issuer": ISSUER, "token_endpoint": TOKEN_URL}
        )
        provider = make_oauth_provider(issuer=ISSUER, token_url=None, userinfo_url=None)

        with pytest.raises(ConfigurationError, match="missing userinfo endpoint"):
            await AuthorizationServerResolver(http_client).resolve(provider)

    async def test_missing_userinfo_allowed_with_custom_fetcher(self, idp, http_client) -> None:
        idp.discovery_response = httpx.Response(
            200, json={"issuer": ISSUER, "token_endpoint": TOKEN_URL}
        )
        provider = make_oauth_provider(
            issuer=ISSUER, token_url=None, userinfo_url=None, hooks=_CustomUserinfo()
        )

        metadata = await AuthorizationServerResolver(http_client).resolve(provider)

        assert metadata.token_endpoint == TOKEN_URL
        assert metadata.userinfo_endpoint is None
