"""Pending translation request owned by the scheduler."""

from __future__ import annotations

import asyncio
import itertools
import time
import uuid
from dataclasses import dataclass, field

from translation_gateway.services.translation.cache import make_fingerprint

# Priorities used by the entry points
PRIORITY_HIGH = 3  # Outbound user input
PRIORITY_MEDIUM = 2  # Inbound responses and status messages
PRIORITY_STANDARD = 1  # Batch translation

_sequence = itertools.count()


@dataclass(eq=False)
class QueuedRequest:
    """A translation request waiting for dispatch.

    ``completion`` is settled exactly once, either by the deduplicator or by
    the scheduler when a tick fails or the scheduler stops.
    """

    text: str
    target_language: str
    priority: int
    estimated_tokens: int
    completion: asyncio.Future
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    enqueued_at: float = field(default_factory=time.monotonic)
    sequence: int = field(default_factory=lambda: next(_sequence))

    @property
    def fingerprint(self) -> str:
        return make_fingerprint(self.text, self.target_language)

    @property
    def sort_key(self) -> tuple:
        # Priority descending, FIFO within a priority tier
        return (-self.priority, self.sequence)

    def resolve(self, result: str) -> None:
        if not self.completion.done():
            self.completion.set_result(result)

    def reject(self, error: BaseException) -> None:
        if not self.completion.done():
            self.completion.set_exception(error)
