"""Validation of the redirect parameters (:rfc:`6749#section-4.1.2`).

:class:`CallbackValidator` consumes the recorded ``state``, checks the
redirect against it and the authorization server's issuer, and turns an
``error`` redirect into :class:`~authcallback.exceptions.OAuthCallbackError`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional, Union

from authcallback.checks import CheckStore
from authcallback.exceptions import (
    CallbackValidationError,
    InvalidCheckError,
    OAuthCallbackError,
)
from authcallback.models import (
    AuthorizationServerMetadata,
    CallbackRequest,
    Cookie,
    OAuthProviderConfig,
    OIDCProviderConfig,
)

logger = logging.getLogger(__name__)

_ERROR_PARAMS = ("error", "error_description", "error_uri")


@dataclass(frozen=True)
class ValidatedCallback:
    """Result of a successful validation.

    Attributes:
        code: The authorization code to exchange.
        state: The recorded state value, or ``None`` when the check is off.
        params: All redirect parameters, for hooks that need them.
    """

    code: str
    state: Optional[str] = None
    params: dict[str, str] = field(default_factory=dict)


class CallbackValidator:
    """Validate the redirect against the recorded state and issuer.

    Args:
        check_store: Store holding the recorded ``state`` value.
    """

    def __init__(self, check_store: CheckStore) -> None:
        self._checks = check_store

    async def validate(
        self,
        request: CallbackRequest,
        provider: Union[OAuthProviderConfig, OIDCProviderConfig],
        metadata: AuthorizationServerMetadata,
        res_cookies: list[Cookie],
    ) -> ValidatedCallback:
        """Validate *request* and return the authorization code.

        Raises:
            InvalidCheckError: If the state check is enabled but no state was
                recorded (or it was already used).
            CallbackValidationError: If ``state`` or ``iss`` do not match, or
                the redirect carries no ``code``.
            OAuthCallbackError: If the provider redirected with an ``error``.
        """
        recorded_state: Optional[str] = None
        if provider.has_check("state"):
            recorded_state = await self._checks.use("state", request.cookies, res_cookies)
            if recorded_state is None:
                raise InvalidCheckError(
                    "State cookie was missing or already used", provider_id=provider.id
                )

        params = request.query
        self._check_issuer(params, provider.id, metadata)

        if provider.has_check("state"):
            returned_state = params.get("state")
            if returned_state is None:
                raise CallbackValidationError(
                    "Response parameter 'state' missing", provider_id=provider.id
                )
            if returned_state != recorded_state:
                raise CallbackValidationError(
                    "Response parameter 'state' does not match the recorded value",
                    provider_id=provider.id,
                )
        else:
            logger.debug("State check skipped for provider '%s'", provider.id)

        if "error" in params:
            payload = {key: params[key] for key in _ERROR_PARAMS if key in params}
            logger.debug(
                "OAuthCallbackError from provider '%s': %s", provider.id, payload
            )
            raise OAuthCallbackError(
                f"OAuth provider returned an error: {params['error']}",
                provider_id=provider.id,
                payload=payload,
            )

        code = params.get("code")
        if not code:
            raise CallbackValidationError(
                "Response parameter 'code' missing", provider_id=provider.id
            )

        return ValidatedCallback(code=code, state=recorded_state, params=dict(params))

    @staticmethod
    def _check_issuer(
        params: dict[str, str],
        provider_id: str,
        metadata: AuthorizationServerMetadata,
    ) -> None:
        """Reject an ``iss`` parameter from another server (:rfc:`9207`)."""
        iss = params.get("iss")
        if iss is None:
            if metadata.authorization_response_iss_parameter_supported:
                raise CallbackValidationError(
                    "Response parameter 'iss' missing", provider_id=provider_id
                )
            return
        if metadata.issuer and iss != metadata.issuer:
            raise CallbackValidationError(
                f"Response parameter 'iss' ({iss}) does not match the issuer "
                f"'{metadata.issuer}'",
                provider_id=provider_id,
            )
