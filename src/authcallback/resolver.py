"""Authorization-server endpoint resolution.

:class:`AuthorizationServerResolver` turns a provider configuration into
:class:`~authcallback.models.AuthorizationServerMetadata`. When the provider
sets both ``token_url`` and ``userinfo_url`` the metadata is built from them
directly. Otherwise the provider's discovery document is fetched from
``<issuer>/.well-known/openid-configuration``; endpoints set explicitly on
the provider still take precedence over discovered ones.
"""

from __future__ import annotations

import logging
from typing import Any, Union

import httpx

from authcallback.exceptions import ConfigurationError
from authcallback.models import (
    AuthorizationServerMetadata,
    OAuthProviderConfig,
    OIDCProviderConfig,
)

logger = logging.getLogger(__name__)

DISCOVERY_PATH = "/.well-known/openid-configuration"


def discovery_url(issuer: str) -> str:
    """Return the well-known discovery URL for *issuer*."""
    return issuer.rstrip("/") + DISCOVERY_PATH


class AuthorizationServerResolver:
    """Resolve token and userinfo endpoints for a provider.

    Args:
        http_client: Client used for the discovery request.
    """

    def __init__(self, http_client: httpx.AsyncClient) -> None:
        self._http = http_client

    async def resolve(
        self, provider: Union[OAuthProviderConfig, OIDCProviderConfig]
    ) -> AuthorizationServerMetadata:
        """Return the authorization-server metadata for *provider*.

        Raises:
            ConfigurationError: If discovery fails, the provider has nothing
                to discover from, or a required endpoint is missing.
        """
        if provider.endpoints_configured:
            logger.debug("Using configured endpoints for provider '%s'", provider.id)
            return AuthorizationServerMetadata(
                issuer=provider.issuer,
                token_endpoint=provider.token_url,
                userinfo_endpoint=provider.userinfo_url,
            )

        if not provider.issuer:
            raise ConfigurationError(
                f"missing token endpoint: provider '{provider.id}' has no issuer "
                "to discover endpoints from",
                provider_id=provider.id,
            )

        doc = await self.discover(provider.id, provider.issuer)
        fields = {
            **doc,
            "token_endpoint": provider.token_url or doc.get("token_endpoint"),
            "userinfo_endpoint": provider.userinfo_url or doc.get("userinfo_endpoint"),
        }
        try:
            metadata = AuthorizationServerMetadata.model_validate(fields)
        except ValueError as exc:
            raise ConfigurationError(
                f"missing token endpoint: invalid discovery document for "
                f"'{provider.issuer}': {exc}",
                provider_id=provider.id,
            ) from exc

        if not metadata.token_endpoint:
            raise ConfigurationError(
                "missing token endpoint", provider_id=provider.id
            )
        if (
            not metadata.userinfo_endpoint
            and provider.type == "oauth"
            and not provider.hooks.overrides("request_userinfo")
        ):
            raise ConfigurationError(
                "missing userinfo endpoint", provider_id=provider.id
            )
        return metadata

    async def discover(self, provider_id: str, issuer: str) -> dict[str, Any]:
        """Fetch and return the discovery document for *issuer*.

        The document's ``issuer`` must match the configured one (ignoring a
        trailing slash).

        Raises:
            ConfigurationError: If the document cannot be fetched, is not a
                JSON object, or names a different issuer.
        """
        url = discovery_url(issuer)
        logger.debug("Discovering authorization server for '%s' at %s", provider_id, url)
        try:
            response = await self._http.get(url, headers={"Accept": "application/json"})
            response.raise_for_status()
            doc = response.json()
        except httpx.HTTPStatusError as exc:
            raise ConfigurationError(
                f"missing token endpoint: discovery failed with status "
                f"{exc.response.status_code}: {exc.response.text}",
                provider_id=provider_id,
            ) from exc
        except httpx.HTTPError as exc:
            raise ConfigurationError(
                f"missing token endpoint: discovery failed: {exc}",
                provider_id=provider_id,
            ) from exc
        except ValueError as exc:
            raise ConfigurationError(
                f"missing token endpoint: discovery response is not JSON: {exc}",
                provider_id=provider_id,
            ) from exc

        if not isinstance(doc, dict):
            raise ConfigurationError(
                "missing token endpoint: discovery document is not a JSON object",
                provider_id=provider_id,
            )
        discovered_issuer = doc.get("issuer")
        if not isinstance(discovered_issuer, str) or (
            discovered_issuer.rstrip("/") != issuer.rstrip("/")
        ):
            raise ConfigurationError(
                f"missing token endpoint: discovery document issuer "
                f"{discovered_issuer!r} does not match '{issuer}'",
                provider_id=provider_id,
            )
        return doc
