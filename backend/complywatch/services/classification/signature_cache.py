"""
ComplyWatch Signature Cache

Content-addressed memo of earlier LLM-enhanced results, bounded by age and
by entry count.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Dict, Optional

from complywatch.models.classification import ClassificationResult
from complywatch.models.message import Message
from complywatch.utils.constants import (
    SIGNATURE_BODY_PREFIX,
    SIGNATURE_CACHE_MAX_ENTRIES,
    SIGNATURE_LENGTH,
)
from complywatch.utils.helpers import calculate_md5, utc_now

logger = logging.getLogger(__name__)


def compute_signature(message: Message) -> str:
    """md5 of subject plus the first 200 body characters, first 16 hex chars."""
    text = f"{message.subject or ''} {(message.body or '')[:SIGNATURE_BODY_PREFIX]}"
    return calculate_md5(text)[:SIGNATURE_LENGTH]


@dataclass
class CacheEntry:
    signature: str
    result: ClassificationResult
    created_at: datetime


class SignatureCache:
    """
    In-process signature cache.

    Entries older than the validity window are never returned. They are
    removed when looked up and, oldest first, whenever a new entry is stored.
    Past max_entries the oldest entries are evicted.
    """

    def __init__(
        self,
        ttl_hours: float = 24,
        max_entries: int = SIGNATURE_CACHE_MAX_ENTRIES,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.ttl = timedelta(hours=ttl_hours)
        self.max_entries = max_entries
        self._clock = clock
        # Insertion order is creation order.
        self._entries: Dict[str, CacheEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def _expired(self, entry: CacheEntry, now: datetime) -> bool:
        return now - entry.created_at >= self.ttl

    def get(self, signature: str) -> Optional[ClassificationResult]:
        entry = self._entries.get(signature)
        if entry is None:
            return None
        if self._expired(entry, self._clock()):
            del self._entries[signature]
            logger.debug(f"Evicted expired cache entry {signature}")
            return None
        return entry.result

    def put(self, signature: str, result: ClassificationResult) -> None:
        now = self._clock()
        self._drop_expired_head(now)

        self._entries.pop(signature, None)
        self._entries[signature] = CacheEntry(signature, result, now)

        while len(self._entries) > self.max_entries:
            oldest = next(iter(self._entries))
            del self._entries[oldest]
            logger.debug(f"Cache full, evicted {oldest}")

    def _drop_expired_head(self, now: datetime) -> None:
        while self._entries:
            oldest = next(iter(self._entries.values()))
            if not self._expired(oldest, now):
                break
            del self._entries[oldest.signature]

    def purge_expired(self) -> int:
        """Drop every expired entry, returning how many were removed."""
        now = self._clock()
        expired = [s for s, e in self._entries.items() if self._expired(e, now)]
        for signature in expired:
            del self._entries[signature]
        return len(expired)

    def clear(self) -> None:
        self._entries.clear()
