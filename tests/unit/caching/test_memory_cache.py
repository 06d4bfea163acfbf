"""Tests for MemoryCache and NullCache."""

from pydantic import BaseModel
import pytest

from proxim8.core.caching import CacheKey, MemoryCache, NullCache


class SampleArtifact(BaseModel):
    value: str


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def key() -> CacheKey:
    return CacheKey(subject_id="nft-001", prompt_fingerprint="walk")


class TestMemoryCache:
    """TTL and tombstone semantics."""

    async def test_store_and_load(self, key: CacheKey):
        cache = MemoryCache()
        await cache.store(key, SampleArtifact(value="a"))

        assert await cache.exists(key)
        assert await cache.load(key, SampleArtifact) == SampleArtifact(value="a")

    async def test_loaded_value_is_a_copy(self, key: CacheKey):
        cache = MemoryCache()
        artifact = SampleArtifact(value="a")
        await cache.store(key, artifact)

        assert await cache.load(key, SampleArtifact) is not artifact

    async def test_entry_expires(self, key: CacheKey, clock: FakeClock):
        cache = MemoryCache(ttl_seconds=10, clock=clock)
        await cache.store(key, SampleArtifact(value="a"))

        clock.now += 9
        assert await cache.exists(key)

        clock.now += 1
        assert not await cache.exists(key)
        assert await cache.load(key, SampleArtifact) is None

    async def test_per_entry_ttl_overrides_default(self, key: CacheKey, clock: FakeClock):
        cache = MemoryCache(ttl_seconds=1000, clock=clock)
        await cache.store(key, SampleArtifact(value="a"), ttl_seconds=1)

        clock.now += 1
        assert await cache.load(key, SampleArtifact) is None

    async def test_tombstone_reads_as_miss_until_expiry(self, key: CacheKey, clock: FakeClock):
        cache = MemoryCache(clock=clock)
        await cache.store(key, SampleArtifact(value="a"))
        await cache.store(key, None, ttl_seconds=1)

        assert not await cache.exists(key)
        assert await cache.load(key, SampleArtifact) is None

        clock.now += 2
        await cache.store(key, SampleArtifact(value="b"))
        assert await cache.load(key, SampleArtifact) == SampleArtifact(value="b")

    async def test_validation_failure_is_miss(self, key: CacheKey):
        class Other(BaseModel):
            count: int

        cache = MemoryCache()
        await cache.store(key, SampleArtifact(value="a"))

        assert await cache.load(key, Other) is None

    async def test_invalidate(self, key: CacheKey):
        cache = MemoryCache()
        await cache.store(key, SampleArtifact(value="a"))
        await cache.invalidate(key)
        await cache.invalidate(key)

        assert not await cache.exists(key)


class TestNullCache:
    async def test_always_misses(self, key: CacheKey):
        cache = NullCache()
        await cache.store(key, SampleArtifact(value="a"))

        assert not await cache.exists(key)
        assert await cache.load(key, SampleArtifact) is None
