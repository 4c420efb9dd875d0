"""Language detector: local langdetect model first, classifier heuristic as fallback."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, Optional

from langdetect import DetectorFactory
from langdetect import detect as langdetect_detect

from translation_gateway.metrics.translation_metrics import (
    translation_language_detection_total,
)
from translation_gateway.services.translation.content_classifier import (
    ContentClassifier,
)

logger = logging.getLogger(__name__)

SUPPORTED_LANGUAGES = {
    "en": "English",
    "zh": "Chinese",
    "ja": "Japanese",
    "ko": "Korean",
    "de": "German",
    "es": "Spanish",
    "fr": "French",
    "it": "Italian",
    "pt": "Portuguese",
    "ru": "Russian",
    "ar": "Arabic",
    "vi": "Vietnamese",
    "th": "Thai",
}


def language_name(code: str) -> str:
    """Human readable name for a language code, falling back to the code."""
    normalized = (code or "").strip().lower()
    return SUPPORTED_LANGUAGES.get(normalized.split("-", 1)[0], code)


@dataclass
class LanguageDetectionDetails:
    """Language detection result with the backend that produced it."""

    language_code: str
    backend: str


class LanguageDetector:
    """Detect the language of a text.

    The local model can fail on input without linguistic features (numbers,
    punctuation, code); in that case the content classifier decides between
    the user language and the upstream language.
    """

    MAX_MODEL_INPUT_CHARS = 2000

    def __init__(
        self,
        classifier: Optional[ContentClassifier] = None,
        user_language: str = "zh",
        upstream_language: str = "en",
        detect_fn: Optional[Callable[[str], str]] = None,
    ):
        """Initialize the detector.

        Args:
            classifier: Classifier used for the heuristic fallback.
            user_language: Code returned when the heuristic sees CJK content.
            upstream_language: Code returned otherwise.
            detect_fn: Synchronous detection function; defaults to langdetect.
        """
        self.user_language = user_language
        self.upstream_language = upstream_language
        self.classifier = classifier or ContentClassifier(user_language=user_language)
        if detect_fn is None:
            # langdetect is non-deterministic unless seeded
            DetectorFactory.seed = 0
            detect_fn = langdetect_detect
        self._detect_fn = detect_fn

    @staticmethod
    def normalize_code(code: str) -> Optional[str]:
        normalized = (code or "").strip().lower()
        if not normalized:
            return None
        # zh-cn / zh-tw -> zh
        return normalized.split("-", 1)[0]

    def heuristic_language(self, text: str) -> str:
        if self.classifier.contains_dense_content(text):
            return self.user_language
        return self.upstream_language

    async def detect_with_metadata(self, text: str) -> LanguageDetectionDetails:
        stripped = (text or "").strip()
        code: Optional[str] = None
        if stripped:
            try:
                raw = await asyncio.to_thread(
                    self._detect_fn, stripped[: self.MAX_MODEL_INPUT_CHARS]
                )
                code = self.normalize_code(raw)
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.debug("Local language detection failed", exc_info=True)

        if code is None:
            details = LanguageDetectionDetails(
                language_code=self.heuristic_language(stripped),
                backend="heuristic",
            )
        else:
            details = LanguageDetectionDetails(language_code=code, backend="local_model")

        translation_language_detection_total.labels(backend=details.backend).inc()
        return details

    async def detect(self, text: str) -> str:
        details = await self.detect_with_metadata(text)
        return details.language_code
