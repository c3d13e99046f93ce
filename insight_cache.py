import logging
from typing import Optional, Protocol

from config import get_settings
from schemas import InsightRecord

logger = logging.getLogger(__name__)

CacheKey = tuple[str, str]


class InsightStore(Protocol):
    """Persistent side of the insight cache, keyed by ``(user_id, cycle_id)``."""

    def load(self, key: CacheKey) -> Optional[InsightRecord]: ...

    def save(self, key: CacheKey, record: InsightRecord) -> None: ...

    def prune(self, keep: int) -> int: ...


class InsightCache:
    """In-memory insight records with an optional backing store.

    One instance is built per process and handed to whoever generates
    insights. Writes are last-write-wins per key; after every write only the
    ``max_entries`` most recently generated records are kept, across all users.
    """

    def __init__(
        self,
        store: Optional[InsightStore] = None,
        max_entries: Optional[int] = None,
    ) -> None:
        self.store = store
        self.max_entries = (
            max_entries
            if max_entries is not None
            else get_settings().insight_cache_max_entries
        )
        self._entries: dict[CacheKey, InsightRecord] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: CacheKey) -> Optional[InsightRecord]:
        record = self._entries.get(key)
        if record is not None or self.store is None:
            return record
        record = self.store.load(key)
        if record is not None:
            self._entries[key] = record
        return record

    def set(self, key: CacheKey, record: InsightRecord) -> None:
        self._entries[key] = record
        if self.store is not None:
            self.store.save(key, record)
        self.prune()

    def prune(self) -> int:
        removed = 0
        if len(self._entries) > self.max_entries:
            ordered = sorted(
                self._entries.items(),
                key=lambda item: item[1].generated_at,
                reverse=True,
            )
            for key, _ in ordered[self.max_entries :]:
                del self._entries[key]
                removed += 1
        if self.store is not None:
            removed += self.store.prune(self.max_entries)
        if removed:
            logger.info(f"insight_cache_pruned: removed={removed} keep={self.max_entries}")
        return removed

    def clear(self) -> None:
        self._entries.clear()
