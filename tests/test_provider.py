"""Tests for the OpenAI-compatible translation provider."""

import json

import httpx
import pytest

from translation_gateway.core.exceptions import (
    ConfigurationError,
    ProviderError,
    QuotaExceededError,
)
from translation_gateway.services.translation.provider import (
    OpenAICompatibleProvider,
    TranslationProvider,
)


def make_provider(handler, **kwargs):
    kwargs.setdefault("api_base_url", "https://api.example.com/v1/")
    kwargs.setdefault("api_key", "secret")
    kwargs.setdefault("model", "test-model")
    return OpenAICompatibleProvider(transport=httpx.MockTransport(handler), **kwargs)


def completion(content):
    return httpx.Response(200, json={"choices": [{"message": {"content": content}}]})


class TestOpenAICompatibleProvider:
    def test_satisfies_protocol(self):
        provider = make_provider(lambda request: completion("x"))
        assert isinstance(provider, TranslationProvider)

    def test_requires_base_url_and_model(self):
        with pytest.raises(ConfigurationError):
            OpenAICompatibleProvider(api_base_url="", api_key="k", model="m")
        with pytest.raises(ConfigurationError):
            OpenAICompatibleProvider(api_base_url="https://x", api_key="k", model="")

    @pytest.mark.asyncio
    async def test_translate_builds_chat_request(self):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["auth"] = request.headers.get("Authorization")
            seen["body"] = json.loads(request.content)
            return completion("  Hello world \n")

        provider = make_provider(handler)
        try:
            result = await provider.translate("你好世界", "en")
        finally:
            await provider.close()

        assert result == "Hello world"
        assert seen["url"] == "https://api.example.com/v1/chat/completions"
        assert seen["auth"] == "Bearer secret"
        assert seen["body"]["model"] == "test-model"
        messages = seen["body"]["messages"]
        assert "English" in messages[0]["content"]
        assert messages[1] == {"role": "user", "content": "你好世界"}

    @pytest.mark.asyncio
    async def test_no_auth_header_without_key(self):
        seen = {}

        def handler(request):
            seen["auth"] = request.headers.get("Authorization")
            return completion("ok")

        provider = make_provider(handler, api_key="")
        await provider.translate("hi", "zh")
        await provider.close()

        assert seen["auth"] is None

    @pytest.mark.asyncio
    async def test_quota_exceeded(self):
        provider = make_provider(lambda request: httpx.Response(429, text="slow down"))
        with pytest.raises(QuotaExceededError):
            await provider.translate("hi", "zh")

    @pytest.mark.asyncio
    async def test_http_error_status(self):
        provider = make_provider(lambda request: httpx.Response(500, text="oops"))
        with pytest.raises(ProviderError, match="HTTP 500"):
            await provider.translate("hi", "zh")

    @pytest.mark.asyncio
    async def test_malformed_payload(self):
        provider = make_provider(lambda request: httpx.Response(200, json={"foo": 1}))
        with pytest.raises(ProviderError, match="Malformed"):
            await provider.translate("hi", "zh")

    @pytest.mark.asyncio
    async def test_transport_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        provider = make_provider(handler)
        with pytest.raises(ProviderError, match="failed"):
            await provider.translate("hi", "zh")

    @pytest.mark.asyncio
    async def test_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        provider = make_provider(handler)
        with pytest.raises(ProviderError, match="timed out"):
            await provider.translate("hi", "zh")

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self):
        provider = make_provider(lambda request: completion("ok"))
        await provider.translate("hi", "zh")
        await provider.close()
        await provider.close()
