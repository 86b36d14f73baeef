"""Canonical Pydantic models shared across all authcallback modules.

The models fall into three groups:

**Provider configuration** -- owned by the application, immutable for the
duration of a flow:
    :class:`OAuthProviderConfig` and :class:`OIDCProviderConfig`, combined
    into the :data:`ProviderConfig` tagged union (discriminated on ``type``).

**Flow state** -- created and discarded within one callback invocation:
    :class:`AuthorizationServerMetadata`, :class:`CallbackRequest`,
    :class:`TokenSet` and :class:`Cookie`.

**Flow output** -- returned to the caller for persistence:
    :class:`User`, :class:`Account` and :class:`CallbackResult`.

Models that mirror provider payloads (token responses, discovery documents,
user records) use ``extra="allow"`` so provider-specific keys are preserved
in ``model_extra``.
"""

from __future__ import annotations

import math
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator

from authcallback.hooks import ProviderHooks

CheckName = Literal["state", "pkce", "nonce"]
"""Anti-forgery checks a provider can enable."""

TokenEndpointAuthMethod = Literal["client_secret_basic", "client_secret_post", "none"]


# --- Provider configuration ---


class _ProviderConfigBase(BaseModel):
    """Fields shared by OAuth 2.0 and OpenID Connect providers.

    ``token_url`` and ``userinfo_url`` select the metadata mode: when both are
    set the authorization server is described statically and no discovery
    request is made. ``hooks`` carries the provider's strategy object and is
    never serialised.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    id: str = Field(description="Provider id, e.g. 'github'")
    name: Optional[str] = Field(default=None, description="Display name")
    issuer: Optional[str] = Field(
        default=None, description="Issuer URL used for metadata discovery"
    )
    client_id: str
    client_secret: Optional[str] = Field(default=None, repr=False)
    client_secret_source: Optional[str] = Field(
        default=None,
        description="Credential source for the client secret: env:VAR or file:/path",
    )
    token_endpoint_auth_method: TokenEndpointAuthMethod = "client_secret_basic"
    token_url: Optional[str] = None
    userinfo_url: Optional[str] = None
    callback_url: str = Field(description="Redirect URI registered with the provider")
    redirect_proxy_url: Optional[str] = Field(
        default=None,
        description="Shared redirect endpoint forwarding to this deployment",
    )
    checks: list[CheckName] = Field(default_factory=lambda: ["pkce"])
    hooks: ProviderHooks = Field(default_factory=ProviderHooks, exclude=True)

    @property
    def display_name(self) -> str:
        return self.name or self.id

    @property
    def endpoints_configured(self) -> bool:
        """Whether both token and userinfo endpoints were set explicitly."""
        return bool(self.token_url) and bool(self.userinfo_url)

    def has_check(self, name: CheckName) -> bool:
        return name in self.checks

    def validate_config(self) -> list[str]:
        """Validate the provider configuration before use.

        Returns:
            A list of human-readable error strings. Empty if valid.
        """
        errors: list[str] = []
        if not self.endpoints_configured and not self.issuer:
            errors.append(
                f"Provider '{self.id}' needs an 'issuer' or both 'token_url' "
                "and 'userinfo_url'"
            )
        if (
            self.token_endpoint_auth_method != "none"
            and not self.client_secret
            and not self.client_secret_source
        ):
            errors.append(
                f"Provider '{self.id}' uses '{self.token_endpoint_auth_method}' "
                "but has no 'client_secret' or 'client_secret_source'"
            )
        return errors


class OAuthProviderConfig(_ProviderConfigBase):
    """A plain OAuth 2.0 provider. The profile comes from a userinfo request."""

    type: Literal["oauth"] = "oauth"

    def validate_config(self) -> list[str]:
        errors = super().validate_config()
        if self.has_check("nonce"):
            errors.append(
                f"Provider '{self.id}' enables the 'nonce' check, which only "
                "applies to OpenID Connect providers"
            )
        return errors


class OIDCProviderConfig(_ProviderConfigBase):
    """An OpenID Connect provider. The profile comes from validated ID token claims."""

    type: Literal["oidc"] = "oidc"
    issuer: str = Field(description="Issuer URL; ID tokens must carry it as 'iss'")


ProviderConfig = Annotated[
    Union[OAuthProviderConfig, OIDCProviderConfig], Field(discriminator="type")
]

provider_adapter: TypeAdapter[Union[OAuthProviderConfig, OIDCProviderConfig]] = (
    TypeAdapter(ProviderConfig)
)
"""Validates a raw mapping into the matching provider variant."""


# --- Flow state ---


class AuthorizationServerMetadata(BaseModel):
    """Resolved endpoints of the provider's authorization server.

    Produced by :class:`~authcallback.resolver.AuthorizationServerResolver`,
    either from static configuration or from a discovery document. Unknown
    discovery keys are kept in ``model_extra``.
    """

    model_config = ConfigDict(frozen=True, extra="allow")

    issuer: Optional[str] = None
    token_endpoint: Optional[str] = None
    userinfo_endpoint: Optional[str] = None
    authorization_response_iss_parameter_supported: bool = False


class CallbackRequest(BaseModel):
    """The incoming redirect: query parameters and request cookies."""

    model_config = ConfigDict(frozen=True)

    query: dict[str, str] = Field(default_factory=dict)
    cookies: dict[str, str] = Field(default_factory=dict)
    is_on_redirect_proxy: bool = Field(
        default=False,
        description="True when this deployment is itself the redirect proxy target",
    )


class Cookie(BaseModel):
    """A cookie to set on the outgoing HTTP response."""

    name: str
    value: str
    max_age: Optional[int] = None
    path: str = "/"
    http_only: bool = True
    secure: bool = True
    same_site: Literal["lax", "strict", "none"] = "lax"


class TokenSet(BaseModel):
    """Tokens returned by the authorization-code grant.

    ``claims`` holds the validated ID token claims for OpenID Connect flows.
    It is excluded from serialisation so it never leaks into the account.
    """

    model_config = ConfigDict(extra="allow")

    access_token: str
    token_type: Optional[str] = None
    refresh_token: Optional[str] = None
    id_token: Optional[str] = None
    scope: Optional[str] = None
    expires_in: Optional[int] = None
    expires_at: Optional[int] = None
    claims: Optional[dict[str, Any]] = Field(default=None, exclude=True)

    @field_validator("expires_in", mode="before")
    @classmethod
    def _whole_seconds(cls, value: Any) -> Any:
        """Floor numeric lifetimes such as ``3599.5`` or ``"120"`` to whole seconds."""
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            try:
                value = float(value)
            except ValueError:
                return value
        if isinstance(value, float) and math.isfinite(value):
            return math.floor(value)
        return value


# --- Flow output ---


class User(BaseModel):
    """Normalised identity built from the mapped profile."""

    model_config = ConfigDict(extra="allow")

    id: str
    name: Optional[str] = None
    email: Optional[str] = None
    image: Optional[str] = None


class Account(BaseModel):
    """Link between a :class:`User` and the provider, embedding the token set."""

    model_config = ConfigDict(extra="allow")

    provider: str
    type: Literal["oauth", "oidc"]
    provider_account_id: str
    access_token: Optional[str] = None
    token_type: Optional[str] = None
    refresh_token: Optional[str] = None
    id_token: Optional[str] = None
    scope: Optional[str] = None
    expires_in: Optional[int] = None
    expires_at: Optional[int] = None


class CallbackResult(BaseModel):
    """Outcome of one callback invocation.

    ``user`` and ``account`` are ``None`` when the profile mapping failed;
    callers should redirect to a recoverable error page in that case.
    """

    user: Optional[User] = None
    account: Optional[Account] = None
    profile: dict[str, Any] = Field(default_factory=dict)
    cookies: list[Cookie] = Field(default_factory=list)
