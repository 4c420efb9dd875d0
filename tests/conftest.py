"""
Pytest configuration and fixtures for the translation gateway.

This module provides:
- A fake clock for time-dependent components (cache TTL, sliding window)
- A scripted translation provider that records its calls
- A deterministic language detector
- Test settings and a FastAPI test client wired to a fake-backed service
"""

import asyncio
import re
from typing import Dict, List, Optional, Tuple

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient

from translation_gateway.core.config import Settings
from translation_gateway.services.translation.cache import TranslationCache
from translation_gateway.services.translation.config_store import TranslationConfig
from translation_gateway.services.translation.deduplicator import Deduplicator
from translation_gateway.services.translation.rate_limiter import (
    RateLimitConfig,
    SlidingWindowRateLimiter,
)
from translation_gateway.services.translation.scheduler import TranslationScheduler
from translation_gateway.services.translation.translation_service import (
    TranslationService,
)

HAN_PATTERN = re.compile(r"[\u4e00-\u9fff]")


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeProvider:
    """Translate capability that records calls and returns scripted results.

    Unscripted texts translate to ``"[<target>] <text>"``.
    """

    def __init__(
        self,
        translations: Optional[Dict[str, str]] = None,
        failures: Optional[Dict[str, Exception]] = None,
        error: Optional[Exception] = None,
    ):
        self.translations = translations or {}
        self.failures = failures or {}
        self.error = error
        self.calls: List[Tuple[str, str]] = []
        self.gate: Optional[asyncio.Event] = None
        self.closed = False

    async def translate(self, text: str, target_language: str) -> str:
        self.calls.append((text, target_language))
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        if text in self.failures:
            raise self.failures[text]
        if text in self.translations:
            return self.translations[text]
        return f"[{target_language}] {text}"

    async def close(self) -> None:
        self.closed = True


class ScriptDetector:
    """Detect "zh" for any Han character, "en" otherwise."""

    def __init__(self, error: Optional[Exception] = None):
        self.error = error
        self.calls: List[str] = []

    async def detect(self, text: str) -> str:
        self.calls.append(text)
        if self.error is not None:
            raise self.error
        return "zh" if HAN_PATTERN.search(text or "") else "en"


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fake_provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def detector() -> ScriptDetector:
    return ScriptDetector()


@pytest.fixture
def cache(clock: FakeClock) -> TranslationCache:
    return TranslationCache(max_size=100, ttl_seconds=3600, clock=clock)


@pytest.fixture
def make_scheduler(clock: FakeClock, cache: TranslationCache, fake_provider: FakeProvider):
    """Factory for schedulers sharing the fake clock, cache and provider."""

    def _factory(**limits) -> TranslationScheduler:
        limiter = SlidingWindowRateLimiter(config=RateLimitConfig(**limits), clock=clock)
        scheduler = TranslationScheduler(
            limiter=limiter,
            deduplicator=Deduplicator(cache=cache, provider=fake_provider),
            cache=cache,
            tick_interval_seconds=0.01,
        )
        return scheduler

    return _factory


@pytest.fixture
def make_service(clock: FakeClock, fake_provider: FakeProvider, detector: ScriptDetector):
    """Factory for services backed by the fake provider and detector."""

    def _factory(**kwargs) -> TranslationService:
        kwargs.setdefault("provider", fake_provider)
        kwargs.setdefault("language_detector", detector)
        kwargs.setdefault("config", TranslationConfig())
        kwargs.setdefault("clock", clock)
        kwargs.setdefault("tick_interval_seconds", 0.01)
        return TranslationService(**kwargs)

    return _factory


@pytest_asyncio.fixture
async def service(make_service):
    """Started translation service, stopped after the test."""
    translation_service = make_service()
    await translation_service.start()
    yield translation_service
    await translation_service.stop()


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    """Settings for an isolated test environment."""
    return Settings(
        DEBUG=True,
        TRANSLATION_API_KEY="test-api-key",
        TRANSLATION_CONFIG_PATH="",
    )


@pytest.fixture
def test_client(test_settings: Settings, fake_provider: FakeProvider, detector: ScriptDetector):
    """FastAPI test client with a fake-backed translation service.

    The lifespan is replaced so that no real provider is contacted.
    """
    from contextlib import asynccontextmanager

    from translation_gateway.main import create_app

    app = create_app()

    @asynccontextmanager
    async def test_lifespan(application):
        translation_service = TranslationService(
            provider=fake_provider,
            language_detector=detector,
            config=TranslationConfig.from_settings(test_settings),
            tick_interval_seconds=0.01,
        )
        await translation_service.start()
        application.state.translation_service = translation_service
        yield
        await translation_service.stop()

    app.router.lifespan_context = test_lifespan
    with TestClient(app) as client:
        yield client
