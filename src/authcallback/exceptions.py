"""Exception hierarchy for authcallback.

All exceptions inherit from :class:`AuthCallbackError`, which carries an
``exit_code`` attribute mapped to a constant from
:mod:`authcallback.exit_codes` and the id of the provider whose flow failed.
Errors raised from inside the callback pipeline are fatal to that flow and
propagate to the caller, with one exception: :class:`OAuthProfileParseError`
is logged by :mod:`authcallback.identity` and turned into a result without a
user or account.

Subclass hierarchy::

    AuthCallbackError (exit 1)
    +-- ConfigError                 (exit 1)
    +-- ConfigurationError          (exit 4)
    |   +-- ProfileResolutionError  (exit 6)
    +-- CallbackValidationError     (exit 3)
    |   +-- InvalidCheckError       (exit 3)
    +-- OAuthCallbackError          (exit 3)
    +-- TokenExchangeError          (exit 5)
    +-- TokenRequestError           (exit 5)
    +-- OAuthProfileParseError      (exit 6)
"""

from __future__ import annotations

from typing import Any, Optional

from authcallback.exit_codes import (
    EXIT_CALLBACK_FAILURE,
    EXIT_CONFIGURATION_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_PROFILE_FAILURE,
    EXIT_TOKEN_FAILURE,
)


class AuthCallbackError(Exception):
    """Base exception for all authcallback errors.

    Args:
        message: Human-readable error description.
        provider_id: Id of the provider the failing flow belongs to, if known.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(
        self,
        message: str,
        provider_id: Optional[str] = None,
        exit_code: Optional[int] = None,
    ):
        super().__init__(message)
        self.provider_id = provider_id
        if exit_code is not None:
            self.exit_code = exit_code


class ConfigError(AuthCallbackError):
    """Raised for local configuration problems (invalid provider files, bad credential sources)."""

    exit_code = EXIT_GENERIC_FAILURE


class ConfigurationError(AuthCallbackError):
    """Raised when authorization-server metadata lacks an endpoint the flow needs."""

    exit_code = EXIT_CONFIGURATION_ERROR


class CallbackValidationError(AuthCallbackError):
    """Raised when the redirect parameters do not have the expected shape.

    Covers a missing ``code``, a ``state`` that does not match the recorded
    one, and an ``iss`` parameter naming another authorization server.
    """

    exit_code = EXIT_CALLBACK_FAILURE


class InvalidCheckError(CallbackValidationError):
    """Raised when an enabled anti-forgery check has no recorded value.

    Either the cookie never existed or the value was already consumed by an
    earlier callback replaying the same cookies.
    """


class OAuthCallbackError(AuthCallbackError):
    """Raised when the provider itself returned an error in the redirect.

    This is how a user declining consent (``error=access_denied``) surfaces.

    Attributes:
        payload: The raw error parameters (``error``, ``error_description``,
            ``error_uri``) as returned by the provider.
    """

    exit_code = EXIT_CALLBACK_FAILURE

    def __init__(
        self,
        message: str,
        provider_id: Optional[str] = None,
        payload: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message, provider_id=provider_id)
        self.payload = payload or {}


class TokenExchangeError(AuthCallbackError):
    """Raised when the authorization-code grant fails.

    Attributes:
        kind: Provider type the exchange was parsed as (``"oauth"`` or ``"oidc"``).
        payload: Provider error body, when one was returned.
        status_code: HTTP status of the token response, when one was received.
    """

    exit_code = EXIT_TOKEN_FAILURE

    def __init__(
        self,
        message: str,
        provider_id: Optional[str] = None,
        kind: Optional[str] = None,
        payload: Optional[dict[str, Any]] = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(message, provider_id=provider_id)
        self.kind = kind
        self.payload = payload or {}
        self.status_code = status_code


class TokenRequestError(AuthCallbackError):
    """Raised when a custom token request hook returns no usable token set."""

    exit_code = EXIT_TOKEN_FAILURE


class ProfileResolutionError(ConfigurationError):
    """Raised when there is no usable way to obtain the user profile.

    A subclass of :class:`ConfigurationError` because the usual cause is an
    OAuth 2.0 provider with neither a userinfo endpoint nor a custom fetcher.
    """

    exit_code = EXIT_PROFILE_FAILURE


class OAuthProfileParseError(AuthCallbackError):
    """Wraps a failure of the application's profile mapping function.

    Never propagated out of the callback pipeline; see
    :class:`~authcallback.identity.IdentityAssembler`.
    """

    exit_code = EXIT_PROFILE_FAILURE

    def __init__(self, cause: BaseException, provider_id: Optional[str] = None):
        super().__init__(
            f"Failed to map profile for provider '{provider_id}': {cause}",
            provider_id=provider_id,
        )
        self.__cause__ = cause
