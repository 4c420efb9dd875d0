"""Tests for LanguageDetector and language name lookup."""

import pytest

from translation_gateway.services.translation.language_detector import (
    LanguageDetector,
    language_name,
)


def failing_detect(text):
    raise ValueError("No features in text.")


class TestLanguageName:
    def test_known_codes(self):
        assert language_name("en") == "English"
        assert language_name("zh-CN") == "Chinese"

    def test_unknown_code_falls_back_to_code(self):
        assert language_name("xx") == "xx"


class TestLanguageDetector:
    def test_normalize_code(self):
        assert LanguageDetector.normalize_code("zh-cn") == "zh"
        assert LanguageDetector.normalize_code(" EN ") == "en"
        assert LanguageDetector.normalize_code("") is None

    @pytest.mark.asyncio
    async def test_uses_local_model(self):
        detector = LanguageDetector(detect_fn=lambda text: "zh-cn")

        details = await detector.detect_with_metadata("你好世界")

        assert details.language_code == "zh"
        assert details.backend == "local_model"

    @pytest.mark.asyncio
    async def test_model_input_is_truncated(self):
        seen = []

        def detect_fn(text):
            seen.append(text)
            return "en"

        detector = LanguageDetector(detect_fn=detect_fn)
        await detector.detect("word " * 1000)

        assert len(seen[0]) == LanguageDetector.MAX_MODEL_INPUT_CHARS

    @pytest.mark.asyncio
    async def test_falls_back_to_heuristic_for_cjk(self):
        detector = LanguageDetector(detect_fn=failing_detect)

        details = await detector.detect_with_metadata("你好")

        assert details.language_code == "zh"
        assert details.backend == "heuristic"

    @pytest.mark.asyncio
    async def test_falls_back_to_upstream_language(self):
        detector = LanguageDetector(detect_fn=failing_detect, upstream_language="en")
        assert await detector.detect("12345 !!!") == "en"

    @pytest.mark.asyncio
    async def test_empty_text_uses_heuristic(self):
        calls = []
        detector = LanguageDetector(detect_fn=lambda text: calls.append(text) or "de")

        assert await detector.detect("   ") == "en"
        assert calls == []

    @pytest.mark.asyncio
    async def test_langdetect_backend(self):
        detector = LanguageDetector()
        text = "This is a fairly long English sentence about translation queues."
        assert await detector.detect(text) == "en"
