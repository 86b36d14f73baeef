"""Provider configuration files and credential source resolution.

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.authcallback/`` on macOS and Windows. See :func:`get_config_dir`,
  :func:`get_data_dir` and :func:`get_providers_dir`.
* **Providers** -- One JSON file per provider, each validated into the
  matching :data:`~authcallback.models.ProviderConfig` variant. Managed via
  :func:`load_provider`, :func:`save_provider`, :func:`list_providers`.
* **Credential resolution** -- :func:`resolve_credential` reads secrets from
  environment variables or files so that provider files never need to hold
  a client secret.

All file writes use an atomic temp-file-then-rename strategy
(:func:`_atomic_write`).
"""

from __future__ import annotations

import json
import os
import platform
import tempfile
from pathlib import Path
from typing import Optional, Union

from authcallback.exceptions import ConfigError
from authcallback.models import OAuthProviderConfig, OIDCProviderConfig, provider_adapter

_APP_NAME = "authcallback"


# --- XDG path resolution ---


def _is_xdg_platform() -> bool:
    """Return True if the platform supports XDG Base Directory spec (Linux/FreeBSD)."""
    return platform.system() == "Linux" or platform.system().endswith("BSD")


def _fallback_base_dir() -> Path:
    """Fallback base directory for non-XDG platforms (macOS, Windows)."""
    return Path.home() / f".{_APP_NAME}"


def _xdg_base(env_var: str, default_segments: tuple[str, ...]) -> Path:
    """Resolve an XDG base directory from an env var with fallback segments under $HOME."""
    env_value = os.environ.get(env_var, "")
    if env_value:
        return Path(env_value)
    base = Path.home()
    for seg in default_segments:
        base = base / seg
    return base


def get_config_dir() -> Path:
    """Return the configuration directory, creating it if necessary.

    On Linux/BSD: ``$XDG_CONFIG_HOME/authcallback/`` (default
    ``~/.config/authcallback/``). On macOS/Windows: ``~/.authcallback/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_CONFIG_HOME", (".config",)) / _APP_NAME
    else:
        path = _fallback_base_dir()
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_data_dir() -> Path:
    """Return the data directory (crash logs), creating it if necessary.

    On Linux/BSD: ``$XDG_DATA_HOME/authcallback/`` (default
    ``~/.local/share/authcallback/``). On macOS/Windows: ``~/.authcallback/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_DATA_HOME", (".local", "share")) / _APP_NAME
    else:
        path = _fallback_base_dir()
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_providers_dir() -> Path:
    """Return the providers directory (``<config_dir>/providers/``), creating it if necessary."""
    path = get_config_dir() / "providers"
    path.mkdir(parents=True, exist_ok=True)
    return path


# --- Atomic file writes ---


def _atomic_write(path: Path, data: str) -> None:
    """Write data to file atomically using temp file + rename.

    The temporary file is created in the same directory as *path* so that
    ``os.replace`` is an atomic rename on POSIX systems. On any failure the
    temp file is removed.
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    fd = None
    tmp_path: Optional[str] = None
    try:
        fd = tempfile.NamedTemporaryFile(
            mode="w",
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
            encoding="utf-8",
        )
        tmp_path = fd.name
        fd.write(data)
        fd.flush()
        os.fsync(fd.fileno())
        fd.close()
        fd = None  # prevent double-close below
        os.replace(tmp_path, path)
    except BaseException:
        if fd is not None:
            fd.close()
        if tmp_path is not None:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
        raise


# --- Providers ---


def _provider_path(provider_id: str) -> Path:
    """Path to a provider's JSON file."""
    return get_providers_dir() / f"{provider_id}.json"


def list_providers() -> list[str]:
    """Return all provider ids found in the providers directory, sorted alphabetically."""
    return sorted(p.stem for p in get_providers_dir().glob("*.json") if p.is_file())


def load_provider(provider_id: str) -> Union[OAuthProviderConfig, OIDCProviderConfig]:
    """Load and validate a provider from disk.

    Args:
        provider_id: Provider id (corresponds to ``<id>.json`` in the
            providers directory).

    Raises:
        ConfigError: If the file does not exist, contains invalid JSON, or
            fails validation.
    """
    path = _provider_path(provider_id)
    if not path.is_file():
        raise ConfigError(f"Provider '{provider_id}' not found at {path}")
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        return provider_adapter.validate_python(data)
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigError(
            f"Invalid provider '{provider_id}' at {path}: {exc}"
        ) from exc


def save_provider(provider: Union[OAuthProviderConfig, OIDCProviderConfig]) -> None:
    """Persist a provider atomically; the file name is derived from ``provider.id``.

    A literal ``client_secret`` is never written; use ``client_secret_source``.
    """
    data = provider.model_dump(mode="json", exclude={"client_secret"})
    _atomic_write(_provider_path(provider.id), json.dumps(data, indent=2) + "\n")


# --- Credential source resolution ---


def resolve_credential(source: str) -> str:
    """Resolve a credential from its source descriptor.

    Supported formats:
        - ``"env:VAR_NAME"`` -- reads ``os.environ["VAR_NAME"]``
        - ``"file:/path/to/file"`` -- reads file content, stripped of whitespace

    Raises:
        ConfigError: If the source can't be resolved.
    """
    if source.startswith("env:"):
        var_name = source[4:]
        value = os.environ.get(var_name)
        if value is None:
            raise ConfigError(
                f"Environment variable '{var_name}' is not set (source: {source})"
            )
        return value

    if source.startswith("file:"):
        path = Path(source[5:]).expanduser()
        if not path.is_file():
            raise ConfigError(f"Credential file not found: {path} (source: {source})")
        try:
            return path.read_text(encoding="utf-8").strip()
        except OSError as exc:
            raise ConfigError(f"Cannot read credential file {path}: {exc}") from exc

    raise ConfigError(f"Unknown credential source format: {source}")


def client_secret_for(
    provider: Union[OAuthProviderConfig, OIDCProviderConfig],
) -> Optional[str]:
    """Return the provider's client secret, resolving ``client_secret_source`` if needed."""
    if provider.client_secret:
        return provider.client_secret
    if provider.client_secret_source:
        return resolve_credential(provider.client_secret_source)
    return None
