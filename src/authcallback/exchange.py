"""Authorization-code grant (:rfc:`6749#section-4.1.3`) and token validation.

:class:`TokenExchanger` consumes the PKCE verifier, asks the provider's
hooks for the token set (by default the standard grant request), and for
OpenID Connect providers consumes the nonce and validates the ID token
claims. It finally stamps ``expires_at`` on the token set.

ID token signatures are not verified here; the token arrives directly from
the token endpoint over TLS and signature work belongs to the crypto
collaborator. The claims are still checked (issuer, audience, expiry, nonce).
"""

from __future__ import annotations

import base64
import logging
import time
from typing import Any, Callable, Optional, Union
from urllib.parse import quote

import httpx
import jwt
from pydantic import ValidationError

from authcallback.checks import CheckStore
from authcallback.config import client_secret_for
from authcallback.exceptions import (
    InvalidCheckError,
    TokenExchangeError,
    TokenRequestError,
)
from authcallback.hooks import TokenRequestContext
from authcallback.models import (
    AuthorizationServerMetadata,
    CallbackRequest,
    CheckName,
    Cookie,
    OAuthProviderConfig,
    OIDCProviderConfig,
    TokenSet,
)
from authcallback.validator import ValidatedCallback

logger = logging.getLogger(__name__)

PKCE_SENTINEL = "auth"
"""Verifier used when PKCE is off; it is stripped before the request is sent."""

ID_TOKEN_LEEWAY = 60
"""Clock skew tolerated when checking ``exp`` and ``iat``, in seconds."""

_REQUIRED_ID_TOKEN_CLAIMS = ["iss", "sub", "aud", "exp", "iat"]

Provider = Union[OAuthProviderConfig, OIDCProviderConfig]


def effective_redirect_uri(provider: Provider, request: CallbackRequest) -> str:
    """Return the redirect URI the authorization request was made with.

    When a redirect proxy is configured and this request did not arrive on
    the proxy itself, the proxy URL is the one the provider knows about.
    """
    if provider.redirect_proxy_url and not request.is_on_redirect_proxy:
        return provider.redirect_proxy_url
    return provider.callback_url


class TokenExchanger:
    """Exchange an authorization code for a validated token set.

    Args:
        check_store: Store holding the recorded PKCE verifier and nonce.
        http_client: Client used for the token request.
        clock: Wall clock used to compute ``expires_at``.
        leeway: Clock skew tolerated when validating ID token times.
    """

    def __init__(
        self,
        check_store: CheckStore,
        http_client: httpx.AsyncClient,
        clock: Callable[[], float] = time.time,
        leeway: int = ID_TOKEN_LEEWAY,
    ) -> None:
        self._checks = check_store
        self._http = http_client
        self._clock = clock
        self._leeway = leeway

    async def exchange(
        self,
        provider: Provider,
        metadata: AuthorizationServerMetadata,
        callback: ValidatedCallback,
        request: CallbackRequest,
        res_cookies: list[Cookie],
    ) -> TokenSet:
        """Obtain, validate and normalise the token set.

        Raises:
            InvalidCheckError: If PKCE or nonce is enabled but nothing was recorded.
            TokenRequestError: If a custom token request hook returned nothing usable.
            TokenExchangeError: If the grant request or its response is invalid.
        """
        code_verifier = await self._use_check(provider, "pkce", request, res_cookies)
        redirect_uri = effective_redirect_uri(provider, request)

        async def standard() -> TokenSet:
            return await self.authorization_code_grant(
                provider,
                metadata,
                callback.code,
                redirect_uri,
                code_verifier or PKCE_SENTINEL,
            )

        params: dict[str, str] = {"redirect_uri": redirect_uri}
        if callback.state is not None:
            params = {"state": callback.state, **params}
        ctx = TokenRequestContext(
            provider=provider,
            metadata=metadata,
            params={**params, **request.query},
            code=callback.code,
            redirect_uri=redirect_uri,
            code_verifier=code_verifier,
            http_client=self._http,
            standard=standard,
        )
        tokens = self._coerce_token_result(
            provider, await provider.hooks.request_token(ctx)
        )

        if provider.type == "oidc":
            nonce = await self._use_check(provider, "nonce", request, res_cookies)
            claims = self.validate_id_token(provider, metadata, tokens, nonce)
            tokens = tokens.model_copy(update={"claims": claims})

        return self.normalize_expiry(tokens)

    async def authorization_code_grant(
        self,
        provider: Provider,
        metadata: AuthorizationServerMetadata,
        code: str,
        redirect_uri: str,
        code_verifier: str,
    ) -> TokenSet:
        """Send the token request and parse the response.

        The ``code_verifier`` parameter is removed from the request body when
        the provider does not enable PKCE.
        """
        kind = provider.type
        if not metadata.token_endpoint:
            raise TokenExchangeError(
                "No token endpoint to exchange the code at",
                provider_id=provider.id,
                kind=kind,
            )

        body: dict[str, str] = {
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": redirect_uri,
            "code_verifier": code_verifier,
        }
        if not provider.has_check("pkce"):
            body.pop("code_verifier")
        headers = {"Accept": "application/json"}
        self._authenticate_client(provider, body, headers)

        logger.debug(
            "Exchanging authorization code for provider '%s' at %s",
            provider.id,
            metadata.token_endpoint,
        )
        try:
            response = await self._http.post(
                metadata.token_endpoint, data=body, headers=headers
            )
        except httpx.HTTPError as exc:
            raise TokenExchangeError(
                f"Token request failed: {exc}", provider_id=provider.id, kind=kind
            ) from exc

        conformed = await provider.hooks.conform_token_response(_copy_response(response))
        if conformed is not None:
            response = conformed

        challenge = response.headers.get("www-authenticate")
        if challenge:
            logger.debug(
                "WWW-Authenticate challenge from provider '%s': %s", provider.id, challenge
            )
            raise TokenExchangeError(
                f"Unhandled WWW-Authenticate challenge from token endpoint: {challenge}",
                provider_id=provider.id,
                kind=kind,
                status_code=response.status_code,
            )

        return self._parse_token_response(provider, response)

    def validate_id_token(
        self,
        provider: Provider,
        metadata: AuthorizationServerMetadata,
        tokens: TokenSet,
        expected_nonce: Optional[str],
    ) -> dict[str, Any]:
        """Validate the ID token claims and return them.

        Args:
            expected_nonce: The recorded nonce, or ``None`` when no nonce was
                sent (the token must then carry none).

        Raises:
            TokenExchangeError: With ``kind="oidc"`` on any claim failure.
        """
        if not tokens.id_token:
            raise TokenExchangeError(
                "Token response missing 'id_token'", provider_id=provider.id, kind="oidc"
            )
        try:
            claims: dict[str, Any] = jwt.decode(
                tokens.id_token,
                options={
                    "verify_signature": False,
                    "verify_exp": True,
                    "verify_iat": True,
                    "verify_aud": True,
                    "verify_iss": True,
                    "require": _REQUIRED_ID_TOKEN_CLAIMS,
                },
                audience=provider.client_id,
                issuer=metadata.issuer,
                leeway=self._leeway,
            )
        except jwt.PyJWTError as exc:
            raise TokenExchangeError(
                f"Invalid ID token: {exc}", provider_id=provider.id, kind="oidc"
            ) from exc

        audience = claims["aud"]
        if isinstance(audience, list) and len(audience) > 1 and "azp" not in claims:
            raise TokenExchangeError(
                "ID token has multiple audiences but no 'azp' claim",
                provider_id=provider.id,
                kind="oidc",
            )
        if "azp" in claims and claims["azp"] != provider.client_id:
            raise TokenExchangeError(
                "ID token 'azp' claim does not match the client id",
                provider_id=provider.id,
                kind="oidc",
            )

        if expected_nonce is None:
            if "nonce" in claims:
                raise TokenExchangeError(
                    "ID token carries an unexpected 'nonce' claim",
                    provider_id=provider.id,
                    kind="oidc",
                )
        elif claims.get("nonce") != expected_nonce:
            raise TokenExchangeError(
                "ID token 'nonce' claim does not match the recorded nonce",
                provider_id=provider.id,
                kind="oidc",
            )
        return claims

    def normalize_expiry(self, tokens: TokenSet) -> TokenSet:
        """Set ``expires_at`` from ``expires_in`` using the current wall clock."""
        if not tokens.expires_in:
            return tokens
        expires_at = int(self._clock()) + int(tokens.expires_in)
        return tokens.model_copy(update={"expires_at": expires_at})

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    async def _use_check(
        self,
        provider: Provider,
        name: CheckName,
        request: CallbackRequest,
        res_cookies: list[Cookie],
    ) -> Optional[str]:
        """Consume a recorded check value if the provider enables *name*."""
        if not provider.has_check(name):
            return None
        value = await self._checks.use(name, request.cookies, res_cookies)
        if value is None:
            raise InvalidCheckError(
                f"{name} check value was missing or already used",
                provider_id=provider.id,
            )
        return value

    def _authenticate_client(
        self, provider: Provider, body: dict[str, str], headers: dict[str, str]
    ) -> None:
        """Add client authentication to the token request."""
        secret = client_secret_for(provider)
        method = provider.token_endpoint_auth_method
        if method == "client_secret_basic" and secret is not None:
            # RFC 6749 section 2.3.1: credentials are form-encoded before base64
            credentials = f"{quote(provider.client_id, safe='')}:{quote(secret, safe='')}"
            encoded = base64.b64encode(credentials.encode("utf-8")).decode("ascii")
            headers["Authorization"] = f"Basic {encoded}"
            return
        body["client_id"] = provider.client_id
        if method == "client_secret_post" and secret is not None:
            body["client_secret"] = secret

    def _coerce_token_result(self, provider: Provider, result: Any) -> TokenSet:
        """Turn a token hook result into a :class:`TokenSet`."""
        if isinstance(result, TokenSet):
            return result
        if not result:
            raise TokenRequestError(
                "Custom token request did not return a valid token set",
                provider_id=provider.id,
            )
        try:
            return TokenSet.model_validate(result)
        except ValidationError as exc:
            raise TokenRequestError(
                f"Custom token request returned an invalid token set: {exc}",
                provider_id=provider.id,
            ) from exc

    def _parse_token_response(self, provider: Provider, response: httpx.Response) -> TokenSet:
        """Parse a token endpoint response into a :class:`TokenSet`."""
        kind = provider.type
        try:
            data = response.json()
        except ValueError:
            data = None

        if isinstance(data, dict) and "error" in data:
            logger.debug("Token endpoint error from provider '%s': %s", provider.id, data)
            raise TokenExchangeError(
                f"Token endpoint returned an error: {data['error']}",
                provider_id=provider.id,
                kind=kind,
                payload=data,
                status_code=response.status_code,
            )
        if not response.is_success:
            raise TokenExchangeError(
                f"Token exchange failed with status {response.status_code}: {response.text}",
                provider_id=provider.id,
                kind=kind,
                payload=data if isinstance(data, dict) else None,
                status_code=response.status_code,
            )
        if not isinstance(data, dict):
            raise TokenExchangeError(
                "Token response body is not a JSON object",
                provider_id=provider.id,
                kind=kind,
                status_code=response.status_code,
            )

        try:
            tokens = TokenSet.model_validate(data)
        except ValidationError as exc:
            raise TokenExchangeError(
                f"Malformed token response: {exc}",
                provider_id=provider.id,
                kind=kind,
                payload=data,
                status_code=response.status_code,
            ) from exc
        if not tokens.token_type:
            raise TokenExchangeError(
                "Token response missing 'token_type' field",
                provider_id=provider.id,
                kind=kind,
                payload=data,
                status_code=response.status_code,
            )
        if kind == "oidc" and not tokens.id_token:
            raise TokenExchangeError(
                "Token response missing 'id_token' field",
                provider_id=provider.id,
                kind=kind,
                payload=data,
                status_code=response.status_code,
            )
        return tokens


def _copy_response(response: httpx.Response) -> httpx.Response:
    """Return an independent copy of a fully read *response*.

    The body is already decoded, so encoding and length headers are dropped.
    """
    headers = [
        (key, value)
        for key, value in response.headers.multi_items()
        if key.lower() not in ("content-encoding", "content-length")
    ]
    return httpx.Response(
        status_code=response.status_code,
        headers=headers,
        content=response.content,
        request=response.request,
    )
