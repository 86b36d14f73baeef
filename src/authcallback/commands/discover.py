"""Discover command -- resolve a provider's authorization-server metadata.

Runs :class:`~authcallback.resolver.AuthorizationServerResolver` exactly as
the callback pipeline would, which is the quickest way to see whether a
provider's issuer is reachable and advertises the endpoints the flow needs.
"""

from __future__ import annotations

import asyncio

import httpx
import typer

from authcallback.output import debug, error, format_response


def discover_command(
    provider_id: str = typer.Argument(help="Provider id."),
    timeout: float = typer.Option(30.0, "--timeout", help="HTTP timeout in seconds."),
) -> None:
    """Resolve and print the token and userinfo endpoints of a provider.

    Example::

        authcallback discover google
        authcallback discover google --json
    """
    from authcallback.config import load_provider
    from authcallback.exceptions import AuthCallbackError
    from authcallback.resolver import AuthorizationServerResolver

    async def _resolve() -> dict:
        provider = load_provider(provider_id)
        mode = "configured endpoints" if provider.endpoints_configured else "discovery"
        debug(f"Resolving '{provider.id}' via {mode}")
        async with httpx.AsyncClient(timeout=timeout) as client:
            metadata = await AuthorizationServerResolver(client).resolve(provider)
        return {
            "issuer": metadata.issuer,
            "token_endpoint": metadata.token_endpoint,
            "userinfo_endpoint": metadata.userinfo_endpoint,
            "authorization_response_iss_parameter_supported": (
                metadata.authorization_response_iss_parameter_supported
            ),
        }

    try:
        result = asyncio.run(_resolve())
    except AuthCallbackError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None

    format_response(result)
