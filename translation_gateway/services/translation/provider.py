"""Translate capability: protocol and an OpenAI-compatible HTTP backend."""

import logging
from typing import Optional, Protocol, runtime_checkable

import httpx

from translation_gateway.core.exceptions import (
    ConfigurationError,
    ProviderError,
    QuotaExceededError,
)
from translation_gateway.services.translation.language_detector import language_name

logger = logging.getLogger(__name__)


@runtime_checkable
class TranslationProvider(Protocol):
    """Protocol for the external translate capability."""

    async def translate(self, text: str, target_language: str) -> str:
        """Translate ``text`` into ``target_language``.

        Raises:
            ProviderError: On transport or quota failures.
        """
        ...


class OpenAICompatibleProvider:
    """Translate through an OpenAI-style ``/chat/completions`` endpoint.

    Works with any provider exposing that API (SiliconFlow, OpenAI, vLLM, ...).
    The HTTP client is created lazily and shared for connection pooling.
    """

    SYSTEM_PROMPT = (
        "You are a professional translator. Translate the user's text into "
        "{target_language}. Keep code blocks, inline code, URLs, file paths and "
        "Markdown formatting unchanged. Output only the translation."
    )

    def __init__(
        self,
        api_base_url: str,
        api_key: str,
        model: str,
        timeout_seconds: float = 30.0,
        temperature: float = 0.1,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the provider.

        Args:
            api_base_url: Base URL, e.g. ``https://api.siliconflow.cn/v1``.
            api_key: Bearer token for the API.
            model: Model identifier.
            timeout_seconds: Per-call timeout.
            temperature: Sampling temperature.
            transport: Optional httpx transport (used by tests).
        """
        if not api_base_url:
            raise ConfigurationError("Translation API base URL is required")
        if not model:
            raise ConfigurationError("Translation model is required")
        self.api_base_url = api_base_url.rstrip("/")
        self.api_key = api_key
        self.model = model
        self.timeout_seconds = timeout_seconds
        self.temperature = temperature
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the shared HTTP client."""
        if self._client is None or self._client.is_closed:
            headers = {"Content-Type": "application/json"}
            if self.api_key:
                headers["Authorization"] = f"Bearer {self.api_key}"
            self._client = httpx.AsyncClient(
                base_url=self.api_base_url,
                timeout=self.timeout_seconds,
                headers=headers,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the shared HTTP client and release resources."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
        self._client = None

    def _build_payload(self, text: str, target_language: str) -> dict:
        return {
            "model": self.model,
            "temperature": self.temperature,
            "messages": [
                {
                    "role": "system",
                    "content": self.SYSTEM_PROMPT.format(
                        target_language=language_name(target_language)
                    ),
                },
                {"role": "user", "content": text},
            ],
        }

    async def translate(self, text: str, target_language: str) -> str:
        """Translate a single text.

        Args:
            text: Text to translate.
            target_language: Target language code ("en", "zh").

        Returns:
            Translated text, stripped.

        Raises:
            QuotaExceededError: On HTTP 429.
            ProviderError: On any other transport or payload failure.
        """
        client = await self._get_client()
        try:
            response = await client.post(
                "/chat/completions", json=self._build_payload(text, target_language)
            )
        except httpx.TimeoutException as e:
            raise ProviderError(
                f"Translation request timed out after {self.timeout_seconds}s"
            ) from e
        except httpx.HTTPError as e:
            raise ProviderError(f"Translation request failed: {e}") from e

        if response.status_code == 429:
            raise QuotaExceededError("Translation provider rate limit exceeded")
        if response.status_code >= 400:
            raise ProviderError(
                f"Translation provider returned HTTP {response.status_code}: "
                f"{response.text[:200]}"
            )

        try:
            data = response.json()
            content = data["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise ProviderError("Malformed translation provider response") from e

        return str(content or "").strip()
