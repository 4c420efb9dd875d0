"""Batch dispatch with request deduplication.

Queued requests that share a fingerprint are served by a single call to the
translate capability and every waiter observes the same outcome.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Sequence

from translation_gateway.core.exceptions import EmptyTranslationError
from translation_gateway.metrics.translation_metrics import (
    translation_outbound_calls_total,
)
from translation_gateway.services.translation.cache import TranslationCache
from translation_gateway.services.translation.provider import TranslationProvider
from translation_gateway.services.translation.queued_request import QueuedRequest

logger = logging.getLogger(__name__)


@dataclass
class DispatchReport:
    """Outcome counts for one dispatched batch."""

    groups: int = 0
    outbound_calls: int = 0
    cache_hits: int = 0
    failures: int = 0
    errors: List[str] = field(default_factory=list)


def group_by_fingerprint(batch: Sequence[QueuedRequest]) -> Dict[str, List[QueuedRequest]]:
    """Group requests by fingerprint, keeping first-seen order."""
    groups: Dict[str, List[QueuedRequest]] = {}
    for request in batch:
        groups.setdefault(request.fingerprint, []).append(request)
    return groups


class Deduplicator:
    """Serve each fingerprint group of a batch with at most one outbound call."""

    def __init__(self, cache: TranslationCache, provider: TranslationProvider):
        self.cache = cache
        self.provider = provider

    async def dispatch(self, batch: Sequence[QueuedRequest]) -> DispatchReport:
        """Resolve or reject every request of ``batch``.

        Groups run concurrently; a failing group does not affect the others.
        """
        groups = group_by_fingerprint(batch)
        report = DispatchReport(groups=len(groups))
        if len(groups) < len(batch):
            logger.debug(
                f"Deduplicated batch of {len(batch)} requests into {len(groups)} calls"
            )

        await asyncio.gather(
            *(self._serve_group(members, report) for members in groups.values())
        )
        return report

    async def _serve_group(
        self, members: List[QueuedRequest], report: DispatchReport
    ) -> None:
        representative = members[0]

        # A concurrent put may have landed since the request was queued
        cached = self.cache.get(representative.fingerprint)
        if cached is not None:
            report.cache_hits += 1
            for request in members:
                request.resolve(cached)
            return

        report.outbound_calls += 1
        try:
            result = await self.provider.translate(
                representative.text, representative.target_language
            )
            if not result:
                raise EmptyTranslationError("Translation provider returned empty text")
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning(
                f"Translation failed for {len(members)} waiter(s) "
                f"(target={representative.target_language}): {e}"
            )
            translation_outbound_calls_total.labels(outcome="failure").inc()
            report.failures += 1
            report.errors.append(str(e))
            for request in members:
                request.reject(e)
            return

        translation_outbound_calls_total.labels(outcome="success").inc()
        self.cache.put(
            representative.fingerprint, result, representative.estimated_tokens
        )
        for request in members:
            request.resolve(result)
