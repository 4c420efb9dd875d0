"""Translation Service: transparent translation between user and upstream.

Outbound text (user -> upstream) is translated when it is written in the
user language; inbound text (upstream -> user) is translated when it is
written in the upstream language. Work that misses the cache is queued on the
rate-limited scheduler. No public operation raises: every failure degrades to
returning the original text.
"""

import asyncio
import logging
import time
from dataclasses import asdict, dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence

from translation_gateway.core.config import Settings
from translation_gateway.core.exceptions import ConfigurationError
from translation_gateway.metrics.translation_metrics import (
    translation_errors_total,
    translation_operation_duration_seconds,
    translation_requests_total,
)
from translation_gateway.services.translation.cache import (
    TranslationCache,
    make_fingerprint,
)
from translation_gateway.services.translation.config_store import (
    ConfigStore,
    TranslationConfig,
    build_config_store,
)
from translation_gateway.services.translation.content_classifier import (
    ContentClassifier,
)
from translation_gateway.services.translation.deduplicator import Deduplicator
from translation_gateway.services.translation.language_detector import (
    LanguageDetector,
)
from translation_gateway.services.translation.provider import (
    OpenAICompatibleProvider,
    TranslationProvider,
)
from translation_gateway.services.translation.queued_request import (
    PRIORITY_HIGH,
    PRIORITY_MEDIUM,
    PRIORITY_STANDARD,
)
from translation_gateway.services.translation.rate_limiter import (
    RateLimitConfig,
    SlidingWindowRateLimiter,
)
from translation_gateway.services.translation.scheduler import TranslationScheduler

logger = logging.getLogger(__name__)

PREVIEW_CHARS = 50


def _preview(text: str) -> str:
    text = text or ""
    return text[:PREVIEW_CHARS] + ("..." if len(text) > PREVIEW_CHARS else "")


@dataclass
class TranslationResult:
    translated_text: str
    original_text: str
    was_translated: bool
    detected_language: str

    @classmethod
    def passthrough(cls, text: str, detected_language: str) -> "TranslationResult":
        return cls(
            translated_text=text,
            original_text=text,
            was_translated=False,
            detected_language=detected_language,
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class TranslationService:
    """Main orchestrator for transparent translation.

    Flow:
    1. Skip control commands and (inbound) empty or very short text
    2. Detect the language and decide whether translation is needed
    3. Return cached results directly
    4. Otherwise enqueue on the scheduler and await the shared result

    Features:
    - Sliding-window RPM/TPM admission control
    - Priority batching with request deduplication
    - TTL cache with FIFO eviction
    - Graceful degradation on failures
    """

    # Inbound text shorter than this is never translated
    MIN_INBOUND_CHARS = 3

    def __init__(
        self,
        provider: Optional[TranslationProvider] = None,
        config: Optional[TranslationConfig] = None,
        config_store: Optional[ConfigStore] = None,
        rate_limits: Optional[RateLimitConfig] = None,
        language_detector: Optional[Any] = None,
        classifier: Optional[ContentClassifier] = None,
        user_language: str = "zh",
        upstream_language: str = "en",
        max_cache_size: int = 1000,
        tick_interval_seconds: float = 1.0,
        sweep_interval_seconds: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize the TranslationService.

        Args:
            provider: Translate capability. Defaults to an OpenAI-compatible
                HTTP provider built from the config.
            config: Initial config; loaded from ``config_store`` when omitted.
            config_store: Store used to load and persist config updates.
            rate_limits: Initial scheduler limits.
            language_detector: Object with ``async detect(text) -> str``.
            classifier: Content classifier (control commands, CJK heuristic).
            user_language: Language of the user (dense script).
            upstream_language: Language expected by the upstream consumer.
            max_cache_size: Maximum number of cached translations.
            tick_interval_seconds: Scheduler tick interval.
            sweep_interval_seconds: Cache sweep interval.
            clock: Time source shared by the cache and the rate limiter.
        """
        self.user_language = user_language
        self.upstream_language = upstream_language
        self.config_store = config_store
        self.config = config or self._load_config(config_store)

        self.classifier = classifier or ContentClassifier(user_language=user_language)
        self.detector = language_detector or LanguageDetector(
            classifier=self.classifier,
            user_language=user_language,
            upstream_language=upstream_language,
        )
        self.cache = TranslationCache(
            max_size=max_cache_size,
            ttl_seconds=self.config.cache_ttl_seconds,
            clock=clock,
        )
        self.limiter = SlidingWindowRateLimiter(
            config=rate_limits or RateLimitConfig(), clock=clock
        )

        self._owns_provider = provider is None
        self.provider = provider or self._build_provider(self.config)
        self.deduplicator = Deduplicator(cache=self.cache, provider=self.provider)
        self.scheduler = TranslationScheduler(
            limiter=self.limiter,
            deduplicator=self.deduplicator,
            cache=self.cache,
            tick_interval_seconds=tick_interval_seconds,
            sweep_interval_seconds=sweep_interval_seconds,
        )

        # Statistics
        self.stats = {
            "outbound_processed": 0,
            "inbound_processed": 0,
            "batches_processed": 0,
            "translations_performed": 0,
            "translation_errors": 0,
            "passthrough": 0,
        }

    @classmethod
    def from_settings(
        cls, settings: Settings, provider: Optional[TranslationProvider] = None
    ) -> "TranslationService":
        """Build a service from application settings."""
        rate_limits = RateLimitConfig(
            rpm=settings.TRANSLATION_RPM,
            tpm=settings.TRANSLATION_TPM,
            max_concurrent=settings.TRANSLATION_MAX_CONCURRENT,
            batch_size=settings.TRANSLATION_BATCH_SIZE,
        )
        return cls(
            provider=provider,
            config_store=build_config_store(settings),
            rate_limits=rate_limits,
            user_language=settings.USER_LANGUAGE,
            upstream_language=settings.UPSTREAM_LANGUAGE,
            max_cache_size=settings.TRANSLATION_MAX_CACHE_SIZE,
            tick_interval_seconds=settings.SCHEDULER_TICK_INTERVAL_SECONDS,
            sweep_interval_seconds=settings.CACHE_SWEEP_INTERVAL_SECONDS,
        )

    @staticmethod
    def _load_config(config_store: Optional[ConfigStore]) -> TranslationConfig:
        if config_store is None:
            return TranslationConfig()
        try:
            config = config_store.load()
            logger.info(f"Initialized with saved config: {config.redacted()}")
            return config
        except ConfigurationError as e:
            logger.warning(f"Failed to load saved config, using defaults: {e}")
            return TranslationConfig()

    @staticmethod
    def _build_provider(config: TranslationConfig) -> OpenAICompatibleProvider:
        return OpenAICompatibleProvider(
            api_base_url=config.api_base_url,
            api_key=config.api_key,
            model=config.model,
            timeout_seconds=config.timeout_seconds,
        )

    # -- lifecycle ---------------------------------------------------------

    async def start(self) -> None:
        await self.scheduler.start()

    async def stop(self) -> None:
        await self.scheduler.stop()
        if self._owns_provider and hasattr(self.provider, "close"):
            await self.provider.close()

    async def __aenter__(self) -> "TranslationService":
        await self.start()
        return self

    async def __aexit__(self, *args) -> None:
        await self.stop()

    # -- internals ---------------------------------------------------------

    async def _detect(self, text: str) -> str:
        try:
            return await self.detector.detect(text)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning(f"Language detection failed, using heuristic: {e}")
            return self._fallback_language(text)

    async def _queue_translation(
        self, text: str, target_language: str, priority: int
    ) -> str:
        cached = self.cache.get(make_fingerprint(text, target_language))
        if cached is not None:
            return cached
        result = await self.scheduler.enqueue(text, target_language, priority)
        self.stats["translations_performed"] += 1
        return result

    def _record(self, direction: str, decision: str) -> None:
        translation_requests_total.labels(direction=direction, decision=decision).inc()
        if decision != "translated":
            self.stats["passthrough"] += 1

    def _record_error(self, direction: str, error: BaseException) -> None:
        logger.error(f"Translation failed ({direction}): {error}")
        self.stats["translation_errors"] += 1
        translation_errors_total.labels(direction=direction).inc()

    # -- public entry points -----------------------------------------------

    async def translate_outbound(self, text: str) -> TranslationResult:
        """Translate user input to the upstream language.

        Control commands and text that does not need translating pass
        through unchanged. A translation is only used if it is non-empty and
        differs from the input.

        Args:
            text: User's original input text.

        Returns:
            TranslationResult (never raises).
        """
        start_time = time.perf_counter()
        self.stats["outbound_processed"] += 1
        try:
            if self.classifier.is_control_command(text):
                logger.info(
                    f"Control command detected, skipping translation: "
                    f"{_preview(text.strip().splitlines()[0])}"
                )
                detected = await self._detect(text)
                self._record("outbound", "control_command")
                return TranslationResult.passthrough(text, detected)

            detected = await self._detect(text)
            if not self.config.enabled:
                self._record("outbound", "disabled")
                return TranslationResult.passthrough(text, detected)

            if not self.classifier.needs_translation(text, detected):
                self._record("outbound", "not_needed")
                return TranslationResult.passthrough(text, detected)

            try:
                translated = await self._queue_translation(
                    text, self.upstream_language, PRIORITY_HIGH
                )
            except Exception as e:
                self._record_error("outbound", e)
                self._record("outbound", "error")
                return TranslationResult.passthrough(text, detected)

            if translated and translated.strip() != text.strip():
                logger.info(
                    f"Outbound translation successful: {_preview(text)!r} -> "
                    f"{_preview(translated)!r}"
                )
                self._record("outbound", "translated")
                return TranslationResult(
                    translated_text=translated,
                    original_text=text,
                    was_translated=True,
                    detected_language=detected,
                )

            logger.warning(
                "Translation returned empty or unchanged result, using original text"
            )
            self._record("outbound", "unchanged")
            return TranslationResult.passthrough(text, detected)
        except Exception as e:
            self._record_error("outbound", e)
            return TranslationResult.passthrough(
                text, self._fallback_language(text)
            )
        finally:
            translation_operation_duration_seconds.labels(direction="outbound").observe(
                max(0.0, time.perf_counter() - start_time)
            )

    async def translate_inbound(self, text: str) -> TranslationResult:
        """Translate upstream text back to the user language.

        Only text detected as exactly the upstream language is translated;
        empty and very short text is never translated.

        Args:
            text: Text produced by the upstream consumer.

        Returns:
            TranslationResult (never raises).
        """
        start_time = time.perf_counter()
        self.stats["inbound_processed"] += 1
        try:
            if not text or not text.strip():
                self._record("inbound", "empty")
                return TranslationResult.passthrough(text, "unknown")

            if len(text.strip()) < self.MIN_INBOUND_CHARS:
                self._record("inbound", "too_short")
                return TranslationResult.passthrough(text, "short")

            detected = await self._detect(text)
            if not self.config.enabled:
                self._record("inbound", "disabled")
                return TranslationResult.passthrough(text, detected)

            if detected != self.upstream_language:
                logger.debug(f"Inbound text is '{detected}', returning original text")
                self._record("inbound", "not_needed")
                return TranslationResult.passthrough(text, detected)

            try:
                translated = await self._queue_translation(
                    text, self.user_language, PRIORITY_MEDIUM
                )
            except Exception as e:
                self._record_error("inbound", e)
                self._record("inbound", "error")
                return TranslationResult.passthrough(text, detected)

            if not translated:
                self._record("inbound", "unchanged")
                return TranslationResult.passthrough(text, detected)

            self._record("inbound", "translated")
            return TranslationResult(
                translated_text=translated,
                original_text=text,
                was_translated=True,
                detected_language=detected,
            )
        except Exception as e:
            self._record_error("inbound", e)
            return TranslationResult.passthrough(
                text, self._fallback_language(text)
            )
        finally:
            translation_operation_duration_seconds.labels(direction="inbound").observe(
                max(0.0, time.perf_counter() - start_time)
            )

    async def translate_batch(
        self, texts: Sequence[str], target_language: Optional[str] = None
    ) -> List[str]:
        """Translate several texts, preserving positions.

        Empty strings pass through untouched; the rest are queued
        concurrently and share the scheduler's deduplication. Any failure
        returns the input unchanged.

        Args:
            texts: Texts to translate.
            target_language: Target language (default: the user language).

        Returns:
            List of the same length as ``texts``.
        """
        originals = list(texts)
        if not self.config.enabled:
            return originals

        target = target_language or self.user_language
        start_time = time.perf_counter()
        self.stats["batches_processed"] += 1
        try:
            valid = [text for text in originals if text and text.strip()]
            if not valid:
                return originals

            logger.info(f"Processing batch translation for {len(valid)} texts")
            results = await asyncio.gather(
                *(
                    self._queue_translation(text, target, PRIORITY_STANDARD)
                    for text in valid
                ),
                return_exceptions=True,
            )
            for result in results:
                if isinstance(result, BaseException):
                    raise result

            translated = iter(results)
            reassembled = [
                next(translated) if text and text.strip() else text
                for text in originals
            ]
            self._record("batch", "translated")
            logger.info(
                f"Batch translation completed (queue={self.scheduler.queue_length}, "
                f"cache_hit_rate={self.cache.stats()['hit_rate']:.2f})"
            )
            return reassembled
        except Exception as e:
            self._record_error("batch", e)
            self._record("batch", "error")
            return originals
        finally:
            translation_operation_duration_seconds.labels(direction="batch").observe(
                max(0.0, time.perf_counter() - start_time)
            )

    async def translate_error_message(self, message: str) -> str:
        """Translate an upstream-language status or error message for the user.

        Returns:
            Translated message, or the original message on any failure.
        """
        if not self.config.enabled or not message or not message.strip():
            return message
        try:
            detected = await self._detect(message)
            if detected != self.upstream_language:
                return message
            result = await self._queue_translation(
                message, self.user_language, PRIORITY_MEDIUM
            )
            return result or message
        except Exception as e:
            self._record_error("error_message", e)
            return message

    async def translate_error_messages(self, messages: Sequence[str]) -> List[str]:
        if not self.config.enabled:
            return list(messages)
        return list(
            await asyncio.gather(
                *(self.translate_error_message(message) for message in messages)
            )
        )

    def _fallback_language(self, text: str) -> str:
        if self.classifier.contains_dense_content(text or ""):
            return self.user_language
        return self.upstream_language

    # -- configuration and stats -------------------------------------------

    def configure_rate_limits(self, **overrides: Any) -> RateLimitConfig:
        """Replace the scheduler limits, keeping unspecified fields.

        Raises:
            ConfigurationError: On unknown fields or non-positive values.
        """
        config = self.limiter.config.merged(**overrides)
        # Queued requests above a lowered tpm are rejected, not left waiting
        self.scheduler.reconfigure(config)
        return config

    def is_enabled(self) -> bool:
        return self.config.enabled

    def get_config(self) -> TranslationConfig:
        return self.config.model_copy()

    async def update_config(self, config: TranslationConfig) -> None:
        """Validate, persist and apply a new translation config.

        A replacement provider is built before anything is saved, so a
        config the service cannot use is neither persisted nor applied.

        Raises:
            ConfigurationError: If no provider can be built from the config.
            Exception: Whatever the config store raises.
            In both cases the running config and provider are left untouched.
        """
        previous = self.config
        connection_changed = (
            previous.api_base_url,
            previous.api_key,
            previous.model,
            previous.timeout_seconds,
        ) != (config.api_base_url, config.api_key, config.model, config.timeout_seconds)

        new_provider: Optional[OpenAICompatibleProvider] = None
        if self._owns_provider and connection_changed:
            new_provider = self._build_provider(config)

        if self.config_store is not None:
            try:
                self.config_store.save(config)
            except Exception:
                logger.exception("Failed to update translation configuration")
                if new_provider is not None:
                    await new_provider.close()
                raise

        self.config = config.model_copy()
        self.cache.ttl_seconds = config.cache_ttl_seconds

        if new_provider is not None:
            old_provider = self.provider
            self.provider = new_provider
            self.deduplicator.provider = new_provider
            await old_provider.close()

        logger.info(f"Configuration updated: {config.redacted()}")

    async def set_enabled(self, enabled: bool) -> None:
        await self.update_config(self.config.model_copy(update={"enabled": enabled}))

    def clear_cache(self) -> None:
        self.cache.clear()
        logger.info("Translation cache cleared")

    def cache_stats(self) -> Dict[str, int]:
        return self.cache.entry_stats()

    def get_stats(self) -> Dict[str, Any]:
        """Get performance statistics.

        Returns:
            Dict with queue, limiter and cache figures plus service counters.
        """
        cache_stats = self.cache.stats()
        return {
            "queue_length": self.scheduler.queue_length,
            "active_requests": self.limiter.active_requests,
            "cache_size": cache_stats["size"],
            "cache_hit_rate": round(cache_stats["hit_rate"], 2),
            "requests_last_minute": self.limiter.requests_last_minute(),
            "token_usage_last_minute": self.limiter.tokens_last_minute(),
            "rate_limits": self.limiter.config.as_dict(),
            "service": dict(self.stats),
        }
