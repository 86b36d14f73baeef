"""Tests for single-use check storage."""

from __future__ import annotations

import asyncio

import pytest

from authcallback.checks import COOKIE_NAMES, DEFAULT_MAX_AGE, MemoryCheckStore
from authcallback.models import Cookie


class FakeClock:
    def __init__(self) -> None:
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(clock: FakeClock) -> MemoryCheckStore:
    return MemoryCheckStore(max_age=60, clock=clock)


class TestIssue:
    def test_cookie_holds_handle_not_value(self, store: MemoryCheckStore) -> None:
        cookie = store.issue("state", "secret-state")

        assert cookie.name == COOKIE_NAMES["state"]
        assert cookie.value != "secret-state"
        assert cookie.max_age == 60
        assert cookie.http_only is True

    def test_generates_value_when_omitted(self) -> None:
        tokens = iter(["handle-1", "value-1"])
        store = MemoryCheckStore(token_factory=lambda: next(tokens))

        cookie = store.issue("nonce")

        assert cookie.value == "handle-1"
        assert cookie.max_age == DEFAULT_MAX_AGE


class TestUse:
    async def test_returns_value_and_clears_cookie(self, store: MemoryCheckStore) -> None:
        cookie = store.issue("pkce", "verifier")
        res_cookies: list[Cookie] = []

        value = await store.use("pkce", {cookie.name: cookie.value}, res_cookies)

        assert value == "verifier"
        assert res_cookies == [Cookie(name=COOKIE_NAMES["pkce"], value="", max_age=0)]

    async def test_single_use(self, store: MemoryCheckStore) -> None:
        cookie = store.issue("state", "s")
        cookies = {cookie.name: cookie.value}

        assert await store.use("state", cookies, []) == "s"
        assert await store.use("state", cookies, []) is None

    async def test_no_cookie(self, store: MemoryCheckStore) -> None:
        res_cookies: list[Cookie] = []

        assert await store.use("state", {}, res_cookies) is None
        assert res_cookies == []

    async def test_unknown_handle(self, store: MemoryCheckStore) -> None:
        assert await store.use("state", {COOKIE_NAMES["state"]: "forged"}, []) is None

    async def test_handle_bound_to_check_name(self, store: MemoryCheckStore) -> None:
        cookie = store.issue("state", "s")

        assert await store.use("nonce", {COOKIE_NAMES["nonce"]: cookie.value}, []) is None
        assert await store.use("state", {cookie.name: cookie.value}, []) == "s"

    async def test_expired(self, store: MemoryCheckStore, clock: FakeClock) -> None:
        cookie = store.issue("nonce", "n")
        clock.now += 61

        assert await store.use("nonce", {cookie.name: cookie.value}, []) is None

    async def test_concurrent_use_returns_value_once(self, store: MemoryCheckStore) -> None:
        cookie = store.issue("state", "s")
        cookies = {cookie.name: cookie.value}

        results = await asyncio.gather(*(store.use("state", cookies, []) for _ in range(10)))

        assert results.count("s") == 1
        assert results.count(None) == 9


class TestPurge:
    def test_purge_expired(self, store: MemoryCheckStore, clock: FakeClock) -> None:
        store.issue("state", "old")
        clock.now += 30
        store.issue("state", "new")
        clock.now += 31

        assert store.purge_expired() == 1
        assert store.purge_expired() == 0

    def test_issue_sweeps_abandoned_values(self, store: MemoryCheckStore, clock: FakeClock) -> None:
        for i in range(1000):
            store.issue("state", f"abandoned-{i}")
        clock.now = 10_000.0

        for i in range(1000):
            store.issue("state", f"live-{i}")

        assert len(store) == 1000

    async def test_sweep_keeps_unexpired_values(self, store: MemoryCheckStore, clock: FakeClock) -> None:
        early = store.issue("state", "early")
        clock.now += 40
        recent = store.issue("state", "recent")
        clock.now += 30
        store.issue("nonce", "trigger")

        assert len(store) == 2
        assert await store.use("state", {recent.name: recent.value}, []) == "recent"
        assert await store.use("state", {early.name: early.value}, []) is None
