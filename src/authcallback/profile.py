"""End-user profile resolution.

OpenID Connect providers get their profile from the ID token claims that
:class:`~authcallback.exchange.TokenExchanger` already validated. OAuth 2.0
providers get it from the provider's ``request_userinfo`` hook, which by
default issues a userinfo request with the access token.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Union

import httpx

from authcallback.exceptions import ProfileResolutionError
from authcallback.hooks import UserinfoContext
from authcallback.models import (
    AuthorizationServerMetadata,
    OAuthProviderConfig,
    OIDCProviderConfig,
    TokenSet,
)

logger = logging.getLogger(__name__)


class ProfileResolver:
    """Produce the raw profile for a completed token exchange.

    Args:
        http_client: Client used for the userinfo request.
    """

    def __init__(self, http_client: httpx.AsyncClient) -> None:
        self._http = http_client

    async def resolve(
        self,
        provider: Union[OAuthProviderConfig, OIDCProviderConfig],
        metadata: AuthorizationServerMetadata,
        tokens: TokenSet,
    ) -> dict[str, Any]:
        """Return the raw profile as a plain dict.

        Raises:
            ProfileResolutionError: If there is no way to obtain the profile or
                the userinfo request fails.
        """
        if provider.type == "oidc":
            if tokens.claims is None:
                raise ProfileResolutionError(
                    "ID token claims are not available", provider_id=provider.id
                )
            return dict(tokens.claims)

        async def standard() -> Any:
            return await self.userinfo_request(provider, metadata, tokens)

        ctx = UserinfoContext(
            tokens=tokens,
            provider=provider,
            metadata=metadata,
            http_client=self._http,
            standard=standard,
        )
        result = await provider.hooks.request_userinfo(ctx)
        if not isinstance(result, Mapping):
            logger.debug(
                "Userinfo for provider '%s' is not an object, using empty profile",
                provider.id,
            )
            return {}
        return dict(result)

    async def userinfo_request(
        self,
        provider: Union[OAuthProviderConfig, OIDCProviderConfig],
        metadata: AuthorizationServerMetadata,
        tokens: TokenSet,
    ) -> dict[str, Any]:
        """Fetch the userinfo endpoint with the access token and return its JSON object."""
        if not metadata.userinfo_endpoint:
            raise ProfileResolutionError(
                "no userinfo endpoint configured", provider_id=provider.id
            )

        logger.debug(
            "Requesting userinfo for provider '%s' from %s",
            provider.id,
            metadata.userinfo_endpoint,
        )
        try:
            response = await self._http.get(
                metadata.userinfo_endpoint,
                headers={
                    "Accept": "application/json",
                    "Authorization": f"Bearer {tokens.access_token}",
                },
            )
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as exc:
            raise ProfileResolutionError(
                f"Userinfo request failed with status {exc.response.status_code}: "
                f"{exc.response.text}",
                provider_id=provider.id,
            ) from exc
        except httpx.HTTPError as exc:
            raise ProfileResolutionError(
                f"Userinfo request failed: {exc}", provider_id=provider.id
            ) from exc
        except ValueError as exc:
            raise ProfileResolutionError(
                f"Userinfo response is not JSON: {exc}", provider_id=provider.id
            ) from exc

        if not isinstance(data, dict):
            raise ProfileResolutionError(
                "Userinfo response is not a JSON object", provider_id=provider.id
            )
        return data
