"""
Exception hierarchy for the translation gateway.

Domain errors are raised inside the scheduler and the provider and are never
surfaced to callers of the public translation operations. HTTP errors are
raised by the API layer only.
"""

from typing import Any, Dict, Optional

from fastapi import HTTPException, status

# Domain Exceptions


class TranslationGatewayError(Exception):
    """Base exception for translation scheduling and dispatch."""

    pass


class ProviderError(TranslationGatewayError):
    """The translate capability failed (transport error, bad payload, etc.).

    Only the waiters of the affected fingerprint group observe this error.
    """

    pass


class QuotaExceededError(ProviderError):
    """The provider rejected the call because a quota was exhausted."""

    pass


class EmptyTranslationError(TranslationGatewayError):
    """The provider answered with an empty translation."""

    pass


class SchedulerStoppedError(TranslationGatewayError):
    """The scheduler was stopped while the request was still queued."""

    pass


class RequestTooLargeError(TranslationGatewayError):
    """The request can never be admitted under the current token budget."""

    def __init__(self, estimated_tokens: int, tpm: int):
        super().__init__(
            f"Request needs ~{estimated_tokens} tokens but the budget is {tpm} tokens/minute"
        )
        self.estimated_tokens = estimated_tokens
        self.tpm = tpm


class ConfigurationError(TranslationGatewayError):
    """Invalid translation or rate limit configuration."""

    pass


# HTTP Exceptions


class BaseAppException(HTTPException):
    """Base exception for all API errors."""

    def __init__(
        self,
        detail: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        headers: Optional[Dict[str, Any]] = None,
        error_code: Optional[str] = None,
    ):
        super().__init__(status_code=status_code, detail=detail, headers=headers)
        self.error_code = error_code or self.__class__.__name__


class InvalidRateLimitConfigError(BaseAppException):
    """Raised when a rate limit update is rejected."""

    def __init__(self, detail: str):
        super().__init__(
            detail,
            status.HTTP_422_UNPROCESSABLE_ENTITY,
            error_code="INVALID_RATE_LIMIT_CONFIG",
        )


class ConfigStoreError(BaseAppException):
    """Raised when the translation config cannot be persisted."""

    def __init__(self, detail: str = "Failed to persist translation config"):
        super().__init__(
            detail,
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            error_code="CONFIG_STORE_ERROR",
        )


class ServiceUnavailableError(BaseAppException):
    """Raised when the translation service has not been initialized."""

    def __init__(self, service_name: str = "Translation service"):
        super().__init__(
            f"{service_name} is not available",
            status.HTTP_503_SERVICE_UNAVAILABLE,
            error_code="SERVICE_UNAVAILABLE",
        )
