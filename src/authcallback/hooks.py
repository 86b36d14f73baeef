"""Per-provider strategy object for providers that deviate from the protocol.

Every provider configuration carries a :class:`ProviderHooks` instance. Each
hook method has a default implementation that performs the standard
behaviour, so a provider only overrides the steps it needs to change:

* :meth:`ProviderHooks.request_token` -- obtain the token set. The default
  performs the standard authorization-code grant.
* :meth:`ProviderHooks.conform_token_response` -- rewrite a non-compliant
  token response before it is parsed. The default leaves it untouched.
* :meth:`ProviderHooks.request_userinfo` -- fetch the OAuth 2.0 profile. The
  default issues a standard userinfo request.
* :meth:`ProviderHooks.profile` -- map the raw profile to the application's
  user shape. The default reads the common OpenID Connect claim names.

Example:
    A provider whose token endpoint answers with a form-encoded body::

        class LegacyHooks(ProviderHooks):
            async def conform_token_response(self, response):
                data = dict(parse_qsl(response.text))
                return httpx.Response(
                    response.status_code, json=data, request=response.request
                )

        provider = OAuthProviderConfig(..., hooks=LegacyHooks())
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Optional, Union

import httpx

if TYPE_CHECKING:
    from authcallback.models import (
        AuthorizationServerMetadata,
        OAuthProviderConfig,
        OIDCProviderConfig,
        TokenSet,
    )


@dataclass
class TokenRequestContext:
    """Everything a token request hook may need.

    Attributes:
        provider: The provider the flow belongs to.
        metadata: Resolved authorization-server metadata.
        params: The recorded ``state``, the effective ``redirect_uri`` and the
            raw callback query, merged in that order.
        code: The validated authorization code.
        redirect_uri: The redirect URI to present to the token endpoint.
        code_verifier: The recorded PKCE verifier, or ``None`` when PKCE is off.
        http_client: Client for outbound requests.
        standard: Performs the standard authorization-code grant.
    """

    provider: Union[OAuthProviderConfig, OIDCProviderConfig]
    metadata: AuthorizationServerMetadata
    params: dict[str, str]
    code: str
    redirect_uri: str
    code_verifier: Optional[str]
    http_client: httpx.AsyncClient
    standard: Callable[[], Awaitable[TokenSet]]


@dataclass
class UserinfoContext:
    """Everything a userinfo hook may need.

    Attributes:
        tokens: The token set obtained from the exchange.
        provider: The provider the flow belongs to.
        metadata: Resolved authorization-server metadata.
        http_client: Client for outbound requests.
        standard: Performs the standard userinfo request.
    """

    tokens: TokenSet
    provider: Union[OAuthProviderConfig, OIDCProviderConfig]
    metadata: AuthorizationServerMetadata
    http_client: httpx.AsyncClient
    standard: Callable[[], Awaitable[Any]]


class ProviderHooks:
    """Base strategy object; every hook defaults to the standard behaviour.

    Subclass and override the hooks a provider needs. :meth:`overrides`
    tells the pipeline whether a hook was replaced, which matters where the
    standard behaviour has prerequisites (a userinfo endpoint, for example).
    """

    async def request_token(
        self, ctx: TokenRequestContext
    ) -> Union[TokenSet, dict[str, Any], None]:
        """Return the token set for the flow.

        A custom implementation may return a :class:`~authcallback.models.TokenSet`
        or a plain mapping. Returning ``None`` or an empty mapping aborts the
        flow with :class:`~authcallback.exceptions.TokenRequestError`.
        """
        return await ctx.standard()

    async def conform_token_response(
        self, response: httpx.Response
    ) -> Optional[httpx.Response]:
        """Return a replacement for *response*, or ``None`` to keep it.

        *response* is a copy of the token endpoint's response, so it is safe
        to read or modify.
        """
        return None

    async def request_userinfo(self, ctx: UserinfoContext) -> Any:
        """Return the raw OAuth 2.0 profile.

        Values that are not mappings are replaced with an empty profile by
        the caller.
        """
        return await ctx.standard()

    async def profile(self, profile: dict[str, Any], tokens: TokenSet) -> dict[str, Any]:
        """Map the raw *profile* to the application's user shape.

        The returned mapping should carry ``id`` (the provider-scoped account
        id) and may carry ``name``, ``email``, ``image`` or any other user
        field. Exceptions raised here are logged and never abort the flow.
        """
        return {
            "id": str(profile.get("sub") or profile["id"]),
            "name": profile.get("name")
            or profile.get("nickname")
            or profile.get("preferred_username"),
            "email": profile.get("email"),
            "image": profile.get("picture"),
        }

    def overrides(self, hook: str) -> bool:
        """Return True if this instance replaces the default *hook*."""
        return getattr(type(self), hook) is not getattr(ProviderHooks, hook)
