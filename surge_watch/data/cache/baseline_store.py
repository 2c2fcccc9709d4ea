"""
SURGE WATCH — Baseline Store
In-memory last-known-good price per symbol, evicted by recency.
"""
from typing import Optional, Dict, Any, Iterator
from datetime import datetime, timedelta

from surge_watch.data.models import BaselineEntry, SymbolSnapshot
from surge_watch.utils.logger import get_logger

logger = get_logger("baseline_store")


class BaselineStore:
    """
    Maps symbol -> BaselineEntry. Owned by a single DetectionEngine,
    which is the only writer. Eviction is purely time based: an entry
    older than the retention horizon is dropped on the next prune, there
    is no size cap.
    """

    def __init__(self, retention: timedelta = timedelta(hours=1)):
        self.retention = retention
        self._entries: Dict[str, BaselineEntry] = {}
        self._total_pruned = 0

    def get(self, symbol: str) -> Optional[BaselineEntry]:
        return self._entries.get(symbol)

    def upsert(self, snapshot: SymbolSnapshot) -> BaselineEntry:
        """Record the snapshot's price and timestamp as the new baseline."""
        entry = BaselineEntry(price=snapshot.price, timestamp=snapshot.timestamp)
        self._entries[snapshot.symbol] = entry
        return entry

    def prune(self, now: datetime) -> int:
        """Delete entries whose timestamp is older than now - retention."""
        cutoff = now - self.retention
        stale = [symbol for symbol, entry in self._entries.items() if entry.timestamp < cutoff]
        for symbol in stale:
            del self._entries[symbol]
        if stale:
            self._total_pruned += len(stale)
            logger.debug("baseline_pruned", removed=len(stale), remaining=len(self._entries))
        return len(stale)

    def clear(self) -> None:
        self._entries.clear()
        logger.info("baseline_cleared")

    def __contains__(self, symbol: str) -> bool:
        return symbol in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    @property
    def stats(self) -> Dict[str, Any]:
        return {
            "entries": len(self._entries),
            "retention_seconds": int(self.retention.total_seconds()),
            "total_pruned": self._total_pruned,
        }
