"""Shared pytest fixtures for proxim8 tests.

Every external service (storage, NFT lookup, AI models, HTTP) is replaced by
the in-memory fakes in tests.fixtures.generation; pollers sleep for zero time.
"""

from __future__ import annotations

import pytest

from proxim8.core.caching import MemoryCache
from proxim8.core.jobs.poller import PollSettings, VideoPollSupervisor
from proxim8.core.jobs.service import GenerationService
from proxim8.core.jobs.store import MemoryJobStore
from proxim8.core.pipeline.configs import PipelineConfigRegistry
from proxim8.core.pipeline.context import GenerationContext
from proxim8.core.pipeline.factory import PipelineFactory, PipelineServices, PipelineSettings
from proxim8.core.providers.nft import StaticNftSource
from proxim8.core.url_manager import UrlManager
from tests.fixtures.generation import (
    NFT_ID,
    WALLET,
    FakeStorage,
    StubFetcher,
    StubImageModel,
    StubPromptModel,
    StubVideoModel,
    no_sleep,
    sample_nft,
)

# ============================================================================
# Service Fakes
# ============================================================================


@pytest.fixture
def storage() -> FakeStorage:
    return FakeStorage()


@pytest.fixture
def nft_source() -> StaticNftSource:
    """Wallet holding the sample NFT."""
    return StaticNftSource({WALLET: [sample_nft()]})


@pytest.fixture
def prompt_model() -> StubPromptModel:
    return StubPromptModel()


@pytest.fixture
def image_model() -> StubImageModel:
    return StubImageModel()


@pytest.fixture
def video_model() -> StubVideoModel:
    return StubVideoModel()


@pytest.fixture
def fetcher() -> StubFetcher:
    return StubFetcher()


@pytest.fixture
def cache() -> MemoryCache:
    return MemoryCache()


@pytest.fixture
def job_store() -> MemoryJobStore:
    return MemoryJobStore()


# ============================================================================
# Wiring
# ============================================================================


@pytest.fixture
def poll_settings() -> PollSettings:
    return PollSettings(max_retries=3, initial_delay_seconds=0.01, backoff_multiplier=2.0)


@pytest.fixture
def poll_sleep():
    """Sleep used by video pollers; zero-length unless a test overrides it."""
    return no_sleep


@pytest.fixture
async def supervisor(
    video_model: StubVideoModel,
    storage: FakeStorage,
    job_store: MemoryJobStore,
    poll_settings: PollSettings,
    poll_sleep,
):
    """Poll supervisor; cancels leftover pollers on teardown."""
    sup = VideoPollSupervisor(video_model, storage, job_store, poll_settings, sleep=poll_sleep)
    yield sup
    await sup.shutdown()


@pytest.fixture
def services(
    cache: MemoryCache,
    storage: FakeStorage,
    nft_source: StaticNftSource,
    prompt_model: StubPromptModel,
    image_model: StubImageModel,
    video_model: StubVideoModel,
    fetcher: StubFetcher,
    supervisor: VideoPollSupervisor,
) -> PipelineServices:
    return PipelineServices(
        cache=cache,
        storage=storage,
        nft_source=nft_source,
        prompt_model=prompt_model,
        image_model=image_model,
        video_model=video_model,
        fetcher=fetcher,
        supervisor=supervisor,
        settings=PipelineSettings(),
    )


@pytest.fixture
def factory(services: PipelineServices) -> PipelineFactory:
    return PipelineFactory(services)


@pytest.fixture
def url_manager(storage: FakeStorage, job_store: MemoryJobStore) -> UrlManager:
    return UrlManager(storage, job_store)


@pytest.fixture
async def service(
    factory: PipelineFactory,
    job_store: MemoryJobStore,
    url_manager: UrlManager,
    supervisor: VideoPollSupervisor,
):
    svc = GenerationService(
        factory, job_store, url_manager, supervisor, configs=PipelineConfigRegistry()
    )
    yield svc
    await svc.shutdown()


# ============================================================================
# Contexts
# ============================================================================


@pytest.fixture
def context() -> GenerationContext:
    """Fresh context for a standard run of the sample NFT."""
    return GenerationContext.create(
        job_id="job-1",
        nft_id=NFT_ID,
        user_prompt="infiltrate the tower at dawn",
        wallet_address=WALLET,
        options={},
    )
