"""
In-memory extraction cache.

Maps (image fingerprint, target language) -> ListingRecord for the lifetime
of the process. Entries are never evicted: the tool serves one operator
session, so unbounded growth is accepted.

The fingerprint is a SHA-256 digest of the full image bytes. Keying on a
prefix of the encoded image would be cheaper but lets two flyers that share
their first bytes (same header, same JPEG tables) collide.
"""

import hashlib
import logging
import threading
from typing import Dict, Optional, Tuple

from ..models import ListingRecord, TargetLanguage

logger = logging.getLogger(__name__)

CacheKey = Tuple[str, TargetLanguage]


def image_fingerprint(image_bytes: bytes) -> str:
    """Stable content identity for an image payload."""
    return hashlib.sha256(image_bytes).hexdigest()


class ExtractionCache:
    """
    Thread-safe key -> record map owned by an ExtractionClient.

    Writes are insert-on-miss: once a key holds a record it is never
    overwritten, so concurrent extractions for different keys cannot
    disturb each other's entries.
    """

    def __init__(self):
        self._entries: Dict[CacheKey, ListingRecord] = {}
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    @staticmethod
    def make_key(image_bytes: bytes, target_language: TargetLanguage) -> CacheKey:
        return (image_fingerprint(image_bytes), target_language)

    def get(self, key: CacheKey) -> Optional[ListingRecord]:
        with self._lock:
            record = self._entries.get(key)
            if record is None:
                self.misses += 1
            else:
                self.hits += 1
            return record

    def put_if_absent(self, key: CacheKey, record: ListingRecord) -> ListingRecord:
        """
        Store record under key unless an entry already exists.

        Returns:
            The record held by the cache after the call
        """
        with self._lock:
            existing = self._entries.get(key)
            if existing is not None:
                logger.debug(f"Cache entry already present for {key[0][:12]}/{key[1].code}")
                return existing
            self._entries[key] = record
            logger.debug(f"Cached record for {key[0][:12]}/{key[1].code} ({len(self._entries)} entries)")
            return record

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self.hits = 0
            self.misses = 0

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
