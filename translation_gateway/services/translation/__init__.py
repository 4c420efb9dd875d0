"""Translation package for transparent user <-> upstream translation.

This package provides:
- ContentClassifier: Control command and dense-script content detection
- LanguageDetector: Local language detection with a heuristic fallback
- TranslationCache: TTL cache with FIFO eviction
- SlidingWindowRateLimiter: 60-second RPM/TPM admission control
- TranslationScheduler: Priority batching over the rate limiter
- TranslationService: Main orchestrator for outbound/inbound translation
"""

from translation_gateway.services.translation.cache import TranslationCache
from translation_gateway.services.translation.config_store import (
    JsonFileConfigStore,
    SettingsConfigStore,
    TranslationConfig,
)
from translation_gateway.services.translation.content_classifier import (
    ContentClassifier,
)
from translation_gateway.services.translation.language_detector import (
    SUPPORTED_LANGUAGES,
    LanguageDetector,
)
from translation_gateway.services.translation.provider import (
    OpenAICompatibleProvider,
    TranslationProvider,
)
from translation_gateway.services.translation.rate_limiter import (
    RateLimitConfig,
    SlidingWindowRateLimiter,
)
from translation_gateway.services.translation.scheduler import TranslationScheduler
from translation_gateway.services.translation.translation_service import (
    TranslationResult,
    TranslationService,
)

__all__ = [
    "ContentClassifier",
    "JsonFileConfigStore",
    "LanguageDetector",
    "OpenAICompatibleProvider",
    "RateLimitConfig",
    "SUPPORTED_LANGUAGES",
    "SettingsConfigStore",
    "SlidingWindowRateLimiter",
    "TranslationCache",
    "TranslationConfig",
    "TranslationProvider",
    "TranslationResult",
    "TranslationScheduler",
    "TranslationService",
]
