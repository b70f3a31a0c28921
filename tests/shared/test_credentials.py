"""
Tests for credentials providers.
"""

import anyio
import pytest

from boss_client.shared.cancellation import CancellationTokenSource, OperationCancelled
from boss_client.shared.credentials import CachedCredentialsProvider, CredentialsManager, StaticCredentialsProvider
from boss_client.types import CREDENTIALS_KEY, CredentialsWithGeneration

pytestmark = pytest.mark.anyio


class MockCachedCredentialsProvider(CachedCredentialsProvider):
    def __init__(self):
        super().__init__()
        self.fetches = 0
        self.gate: anyio.Event | None = None

    async def fetch_credentials(self) -> str:
        self.fetches += 1
        if self.gate is not None:
            await self.gate.wait()
        return f"token-{self.fetches}"


async def test_static_provider_returns_same_credentials():
    provider = StaticCredentialsProvider("public")

    first = await provider.get()
    second = await provider.get(first)

    assert first == second == CredentialsWithGeneration(credentials="public", generation=0)


async def test_static_provider_honours_cancelled_token():
    source = CancellationTokenSource()
    source.cancel()

    with pytest.raises(OperationCancelled):
        await StaticCredentialsProvider("public").get(None, source)


class TestCachedCredentialsProvider:
    async def test_first_get_fetches(self):
        provider = MockCachedCredentialsProvider()
        assert provider.credentials is None

        credentials = await provider.get()

        assert credentials == CredentialsWithGeneration(credentials="token-1", generation=1)
        assert provider.credentials == credentials

    async def test_cached_until_current_generation_rejected(self):
        provider = MockCachedCredentialsProvider()
        first = await provider.get()

        assert await provider.get() is first
        # A stale rejection must not trigger another fetch
        assert await provider.get(CredentialsWithGeneration(credentials="old", generation=0)) is first
        assert provider.fetches == 1

        second = await provider.get(first)
        assert second == CredentialsWithGeneration(credentials="token-2", generation=2)
        assert provider.fetches == 2

    async def test_concurrent_rejections_share_one_fetch(self):
        provider = MockCachedCredentialsProvider()
        first = await provider.get()
        provider.gate = anyio.Event()
        results = []

        async def refresh():
            results.append(await provider.get(first))

        async with anyio.create_task_group() as tg:
            tg.start_soon(refresh)
            tg.start_soon(refresh)
            await anyio.wait_all_tasks_blocked()
            provider.gate.set()

        assert provider.fetches == 2
        assert [c.generation for c in results] == [2, 2]

    async def test_cancel_during_fetch_keeps_cache(self):
        provider = MockCachedCredentialsProvider()
        first = await provider.get()
        provider.gate = anyio.Event()
        source = CancellationTokenSource()
        outcomes = []

        async def refresh():
            with pytest.raises(OperationCancelled):
                await provider.get(first, source)
            outcomes.append("cancelled")

        async with anyio.create_task_group() as tg:
            tg.start_soon(refresh)
            await anyio.wait_all_tasks_blocked()
            source.cancel()

        assert outcomes == ["cancelled"]
        assert provider.credentials is first

        # The lock was released, so a later refresh proceeds
        provider.gate.set()
        assert (await provider.get(first)).generation == 2


async def test_credentials_manager():
    provider = StaticCredentialsProvider("public")
    manager = CredentialsManager()
    manager.register(CREDENTIALS_KEY, provider)

    assert manager.get_credentials_provider("boss") is provider
    with pytest.raises(KeyError, match="other"):
        manager.get_credentials_provider("other")
