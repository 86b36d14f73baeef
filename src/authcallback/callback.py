"""The authorization-code callback pipeline.

Handles the following steps of the flow:

* :rfc:`6749#section-4.1.2` -- validate the authorization response
* :rfc:`6749#section-4.1.3` -- exchange the code for tokens
* `OpenID Connect Core, section 5.3
  <https://openid.net/specs/openid-connect-core-1_0.html#UserInfo>`_ --
  fetch the user profile

Stages run strictly in order and each one either returns its output or
raises, aborting the rest::

    AuthorizationServerResolver -> CallbackValidator (state)
        -> TokenExchanger (PKCE verifier, nonce) -> ProfileResolver
        -> IdentityAssembler

A userinfo request is made for OAuth 2.0 providers even though the protocol
does not require it, because the application always needs a profile.
"""

from __future__ import annotations

import time
from typing import Callable, Optional, Union

import httpx

from authcallback.checks import CheckStore
from authcallback.exchange import TokenExchanger
from authcallback.identity import IdentityAssembler, random_id
from authcallback.models import (
    CallbackRequest,
    CallbackResult,
    Cookie,
    OAuthProviderConfig,
    OIDCProviderConfig,
)
from authcallback.profile import ProfileResolver
from authcallback.resolver import AuthorizationServerResolver
from authcallback.validator import CallbackValidator

DEFAULT_TIMEOUT = 30.0
"""Timeout for the client created when none is injected, in seconds."""


class CallbackHandler:
    """Run the callback pipeline for one provider redirect at a time.

    The handler holds no per-flow state and can serve concurrent callbacks.

    Args:
        check_store: Store holding the recorded state, PKCE verifier and nonce.
        http_client: Client for discovery, token and userinfo requests. When
            omitted, a client is created (and closed) for each callback.
        id_factory: Produces user ids and fallback account ids.
        clock: Wall clock used to compute ``expires_at``.

    Example::

        handler = CallbackHandler(check_store=store)
        result = await handler.handle(provider, CallbackRequest(query=q, cookies=c))
        if result.user is None:
            ...  # redirect to a recoverable error page
    """

    def __init__(
        self,
        check_store: CheckStore,
        http_client: Optional[httpx.AsyncClient] = None,
        id_factory: Callable[[], str] = random_id,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._check_store = check_store
        self._http_client = http_client
        self._id_factory = id_factory
        self._clock = clock

    async def handle(
        self,
        provider: Union[OAuthProviderConfig, OIDCProviderConfig],
        request: CallbackRequest,
    ) -> CallbackResult:
        """Process *request* for *provider* and return the result.

        Raises:
            AuthCallbackError: Any fatal error from a pipeline stage. Profile
                mapping failures are not raised; they yield a result without
                ``user`` and ``account``.
        """
        if self._http_client is not None:
            return await self._run(provider, request, self._http_client)
        async with httpx.AsyncClient(timeout=DEFAULT_TIMEOUT) as client:
            return await self._run(provider, request, client)

    async def _run(
        self,
        provider: Union[OAuthProviderConfig, OIDCProviderConfig],
        request: CallbackRequest,
        client: httpx.AsyncClient,
    ) -> CallbackResult:
        res_cookies: list[Cookie] = []

        metadata = await AuthorizationServerResolver(client).resolve(provider)
        callback = await CallbackValidator(self._check_store).validate(
            request, provider, metadata, res_cookies
        )
        tokens = await TokenExchanger(
            self._check_store, client, clock=self._clock
        ).exchange(provider, metadata, callback, request, res_cookies)
        profile = await ProfileResolver(client).resolve(provider, metadata, tokens)
        user, account = await IdentityAssembler(self._id_factory).assemble(
            provider, profile, tokens
        )

        return CallbackResult(user=user, account=account, profile=profile, cookies=res_cookies)


async def handle_oauth_callback(
    provider: Union[OAuthProviderConfig, OIDCProviderConfig],
    request: CallbackRequest,
    check_store: CheckStore,
    http_client: Optional[httpx.AsyncClient] = None,
) -> CallbackResult:
    """Process one callback with default identifiers and clock.

    Shorthand for ``CallbackHandler(check_store, http_client).handle(...)``.
    """
    return await CallbackHandler(check_store, http_client).handle(provider, request)
