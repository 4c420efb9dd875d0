"""Sliding-window admission control for the translation provider.

Three resources are tracked: requests per minute, tokens per minute and
admitted batches still in flight. Checking and recording are separate
operations so that a batch can be assembled by probing ``try_admit``
repeatedly before anything is committed.
"""

from __future__ import annotations

import logging
import time
from collections import deque
from dataclasses import asdict, dataclass, replace
from typing import Any, Callable

from translation_gateway.core.exceptions import ConfigurationError
from translation_gateway.metrics.translation_metrics import (
    translation_active_requests,
    translation_admission_rejections_total,
)

logger = logging.getLogger(__name__)

WINDOW_SECONDS = 60.0


@dataclass(frozen=True)
class RateLimitConfig:
    """Scheduler limits; replaced wholesale, never mutated."""

    rpm: int = 950  # Requests per minute
    tpm: int = 75000  # Tokens per minute
    max_concurrent: int = 5
    batch_size: int = 10

    def __post_init__(self) -> None:
        for name, value in asdict(self).items():
            if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
                raise ConfigurationError(f"{name} must be a positive integer, got {value!r}")

    def merged(self, **overrides: Any) -> RateLimitConfig:
        """Return a new config with the given fields replaced.

        Raises:
            ConfigurationError: On unknown fields or non-positive values.
        """
        unknown = set(overrides) - set(asdict(self))
        if unknown:
            raise ConfigurationError(f"Unknown rate limit fields: {sorted(unknown)}")
        return replace(self, **overrides)

    def as_dict(self) -> dict[str, int]:
        return asdict(self)


@dataclass
class TokenUsageEvent:
    timestamp: float
    tokens: int


class SlidingWindowRateLimiter:
    """Admission control over a trailing 60-second window."""

    def __init__(
        self,
        config: RateLimitConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
        window_seconds: float = WINDOW_SECONDS,
    ) -> None:
        self.config = config or RateLimitConfig()
        self.window_seconds = window_seconds
        self._clock = clock
        self._request_timestamps: deque[float] = deque()
        self._token_usage: deque[TokenUsageEvent] = deque()
        self._active_requests = 0

    @property
    def active_requests(self) -> int:
        return self._active_requests

    def _prune(self, now: float) -> None:
        # Both deques are ordered by arrival time
        window_start = now - self.window_seconds
        while self._request_timestamps and self._request_timestamps[0] <= window_start:
            self._request_timestamps.popleft()
        while self._token_usage and self._token_usage[0].timestamp <= window_start:
            self._token_usage.popleft()

    def try_admit(self, candidate_tokens: int) -> bool:
        """Return True if a request costing ``candidate_tokens`` may proceed.

        Nothing is reserved; call ``record_admission`` once the work is
        actually dispatched.
        """
        self._prune(self._clock())

        if len(self._request_timestamps) >= self.config.rpm:
            translation_admission_rejections_total.labels(reason="rpm").inc()
            return False

        used_tokens = sum(event.tokens for event in self._token_usage)
        if used_tokens + candidate_tokens > self.config.tpm:
            translation_admission_rejections_total.labels(reason="tpm").inc()
            return False

        if self._active_requests >= self.config.max_concurrent:
            translation_admission_rejections_total.labels(reason="concurrency").inc()
            return False

        return True

    def record_admission(self, tokens: int) -> None:
        now = self._clock()
        self._request_timestamps.append(now)
        self._token_usage.append(TokenUsageEvent(timestamp=now, tokens=tokens))
        self._active_requests += 1
        translation_active_requests.set(self._active_requests)

    def record_completion(self) -> None:
        self._active_requests = max(0, self._active_requests - 1)
        translation_active_requests.set(self._active_requests)

    def requests_last_minute(self) -> int:
        self._prune(self._clock())
        return len(self._request_timestamps)

    def tokens_last_minute(self) -> int:
        self._prune(self._clock())
        return sum(event.tokens for event in self._token_usage)

    def reconfigure(self, config: RateLimitConfig) -> None:
        """Replace the limits; recorded usage is kept."""
        self.config = config
        logger.info(f"Rate limits updated: {config.as_dict()}")
