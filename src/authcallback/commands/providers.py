"""Provider commands -- list, show, and check configured providers.

Provides the ``authcallback providers`` sub-command group. Providers are
read from JSON files in the providers directory (see
:func:`~authcallback.config.get_providers_dir`).
"""

from __future__ import annotations

import typer

from authcallback.exit_codes import EXIT_INVALID_USAGE
from authcallback.output import error, format_response, info, print_table, success, warning


providers_app = typer.Typer(no_args_is_help=True)


@providers_app.command("list")
def providers_list() -> None:
    """List configured providers.

    Example::

        authcallback providers list
        authcallback providers list --json
    """
    from authcallback.config import get_providers_dir, list_providers, load_provider
    from authcallback.exceptions import ConfigError

    ids = list_providers()
    if not ids:
        info(f"No providers configured in {get_providers_dir()}")
        return

    rows: list[list[str]] = []
    for provider_id in ids:
        try:
            provider = load_provider(provider_id)
        except ConfigError as exc:
            warning(str(exc))
            continue
        mode = "static" if provider.endpoints_configured else "discovery"
        rows.append(
            [
                provider.id,
                provider.display_name,
                provider.type,
                provider.issuer or "",
                mode,
                ",".join(provider.checks),
            ]
        )
    print_table(
        ["id", "name", "type", "issuer", "endpoints", "checks"], rows, title="Providers"
    )


@providers_app.command("show")
def providers_show(
    provider_id: str = typer.Argument(help="Provider id."),
) -> None:
    """Show a provider's configuration. Secrets are never printed.

    Example::

        authcallback providers show google
    """
    from authcallback.config import load_provider
    from authcallback.exceptions import ConfigError

    try:
        provider = load_provider(provider_id)
    except ConfigError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None

    data = provider.model_dump(mode="json", exclude={"client_secret"})
    if provider.client_secret:
        data["client_secret"] = "***"
    format_response(data)


@providers_app.command("check")
def providers_check(
    provider_id: str = typer.Argument(help="Provider id."),
) -> None:
    """Validate a provider's configuration without any network access.

    Exits with code 2 if problems were found.

    Example::

        authcallback providers check github
    """
    from authcallback.config import load_provider
    from authcallback.exceptions import ConfigError

    try:
        provider = load_provider(provider_id)
    except ConfigError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None

    problems = provider.validate_config()
    if problems:
        for problem in problems:
            error(problem)
        raise typer.Exit(code=EXIT_INVALID_USAGE)
    success(f"Provider '{provider.id}' is valid")
