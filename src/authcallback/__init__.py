"""authcallback -- OAuth 2.0 / OpenID Connect authorization-code callback handling.

This package processes the redirect a browser receives after signing in at a
third-party identity provider. It verifies the anti-forgery checks recorded
before the redirect (state, PKCE verifier, nonce), exchanges the
authorization code for tokens, resolves the user profile and hands back a
normalised user/account pair for the application to persist.

Typical use::

    handler = CallbackHandler(check_store=store)
    result = await handler.handle(provider, CallbackRequest(query=..., cookies=...))

Modules:
    callback: Orchestration of the full callback pipeline.
    models: Pydantic models shared across the package.
    hooks: Per-provider strategy object for non-standard providers.
    checks: Single-use anti-forgery value store.
    resolver, validator, exchange, profile, identity: Pipeline stages.
    exceptions: Exception hierarchy with exit-code mapping.
    config: Provider configuration files and credential sources.
    app: Typer CLI for inspecting provider configuration.
"""

__version__ = "0.1.0"

from authcallback.callback import CallbackHandler, handle_oauth_callback  # noqa: E402

__all__ = ["CallbackHandler", "handle_oauth_callback", "__version__"]
