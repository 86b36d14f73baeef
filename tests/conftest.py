"""Shared test fixtures for authcallback.

Wraps the helpers in ``helpers.py``: a fake identity provider behind an
:class:`httpx.AsyncClient`, a check store pre-loaded with recorded values,
a deterministic id factory, and config/output isolation for CLI tests.
Nothing here touches the network.
"""

from __future__ import annotations

from pathlib import Path
from typing import Callable

import httpx
import pytest

from authcallback.checks import MemoryCheckStore
from authcallback.output import OutputFormat, OutputManager, reset_output, set_output

from helpers import FakeIdentityProvider, RecordedFlow


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    yield
    reset_output()


# ---------------------------------------------------------------------------
# Identity provider and checks
# ---------------------------------------------------------------------------


@pytest.fixture
def idp() -> FakeIdentityProvider:
    return FakeIdentityProvider()


@pytest.fixture
async def http_client(idp: FakeIdentityProvider) -> httpx.AsyncClient:
    """Async client routed to the fake identity provider."""
    async with httpx.AsyncClient(transport=httpx.MockTransport(idp.handler)) as client:
        yield client


@pytest.fixture
def check_store() -> MemoryCheckStore:
    return MemoryCheckStore()


@pytest.fixture
def flow(check_store: MemoryCheckStore) -> RecordedFlow:
    """A flow with state, PKCE verifier and nonce recorded."""
    recorded = RecordedFlow(check_store)
    recorded.record("state", "state-value-1")
    recorded.record("pkce", "verifier-value-1")
    recorded.record("nonce", "nonce-value-1")
    return recorded


@pytest.fixture
def counter_ids() -> Callable[[], str]:
    """Deterministic id factory: id-1, id-2, ..."""
    counter = iter(range(1, 1_000_000))
    return lambda: f"id-{next(counter)}"


# ---------------------------------------------------------------------------
# Config and output isolation
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point XDG config/data directories at *tmp_path*."""
    monkeypatch.setattr("authcallback.config._is_xdg_platform", lambda: True)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.fixture
def json_output() -> OutputManager:
    output = OutputManager(format=OutputFormat.JSON)
    set_output(output)
    yield output
    reset_output()
