"""
SURGE WATCH — Detection Engine
Runs one poll cycle end to end: fetch, validate, classify, alert,
refresh baselines, prune. At most one cycle runs at a time.
"""
import asyncio
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence
from datetime import datetime, timedelta

from surge_watch.data.models import (
    SymbolSnapshot, DetectionOutcome, PollResult, PollStatus,
)
from surge_watch.data.cache.baseline_store import BaselineStore
from surge_watch.config.settings import MonitorSettings, get_settings
from surge_watch.utils.logger import get_logger, poll_context
from surge_watch.utils.helpers import utc_now, pct_change

logger = get_logger("detection_engine")

SnapshotProvider = Callable[[], Awaitable[Sequence[Any]]]
AlertSink = Callable[[str, str, str, str, str], Awaitable[Optional[bool]]]


class BaselineSeedError(Exception):
    """The startup baseline could not be fetched."""


class DetectionEngine:
    """
    Volume/price surge detector.

    A symbol alerts when, in the same poll, its volume ratio and quote
    volume clear their floors and its price has risen by at least
    ``min_price_change`` percent since the previous valid observation.
    The baseline is refreshed for every valid snapshot whether or not it
    alerted, so each comparison is against the immediately preceding poll.
    """

    def __init__(
        self,
        provider: SnapshotProvider,
        alert_sink: AlertSink,
        store: Optional[BaselineStore] = None,
        settings: Optional[MonitorSettings] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.settings = settings or get_settings().monitor
        # an empty store is falsy (it has __len__), so test for None explicitly
        self.store = store if store is not None else BaselineStore(
            retention=timedelta(seconds=self.settings.baseline_retention_seconds)
        )
        self._provider = provider
        self._alert_sink = alert_sink
        self._clock = clock
        self._lock = asyncio.Lock()
        self.recent_symbols: List[SymbolSnapshot] = []

        self._polls_completed = 0
        self._polls_skipped = 0
        self._polls_failed = 0
        self._alerts_sent = 0
        self._last_poll_at: Optional[datetime] = None

        logger.info(
            "detection_engine_configured",
            volume_threshold=self.settings.volume_threshold,
            min_price_change_pct=self.settings.min_price_change,
            min_quote_volume=self.settings.min_quote_volume,
        )

    @property
    def is_polling(self) -> bool:
        return self._lock.locked()

    # ─── Validation & Classification ────────────────────────────

    @staticmethod
    def validate(raw_entries: Sequence[Any], default_timestamp: datetime) -> List[SymbolSnapshot]:
        """Keep only well-formed entries, in provider order."""
        snapshots = []
        for raw in raw_entries:
            snapshot = SymbolSnapshot.from_raw(raw, default_timestamp)
            if snapshot is not None:
                snapshots.append(snapshot)
        return snapshots

    def classify(self, snapshot: SymbolSnapshot) -> Optional[DetectionOutcome]:
        """Compare a snapshot against its baseline. Reads the store, never writes it."""
        volume_ratio = snapshot.volume_ratio
        if volume_ratio < self.settings.volume_threshold:
            return None
        if snapshot.quote_volume < self.settings.min_quote_volume:
            return None

        baseline = self.store.get(snapshot.symbol)
        if baseline is None:
            # first sighting, nothing to compare against
            return None

        price_change = pct_change(baseline.price, snapshot.price)
        if price_change < self.settings.min_price_change:
            return None

        return DetectionOutcome(
            symbol=snapshot.symbol,
            price=snapshot.price,
            price_change_pct=price_change,
            volume_ratio=volume_ratio,
            quote_volume=snapshot.quote_volume,
            timestamp=snapshot.timestamp,
        )

    # ─── Poll Cycle ─────────────────────────────────────────────

    async def poll(self) -> PollResult:
        """
        Run one detection cycle. Returns immediately with a SKIPPED result
        when another cycle is still running.
        """
        started_at = self._clock()
        if self._lock.locked():
            self._polls_skipped += 1
            logger.warning("poll_skipped", reason="previous poll still running")
            return PollResult(status=PollStatus.SKIPPED, started_at=started_at)

        async with self._lock:
            with poll_context():
                return await self._run_cycle(started_at)

    async def _run_cycle(self, started_at: datetime) -> PollResult:
        logger.info("poll_started")
        self._last_poll_at = started_at

        try:
            raw_entries = list(await self._provider())
        except Exception as e:
            self._polls_failed += 1
            logger.error("poll_fetch_failed", error=str(e), error_type=type(e).__name__)
            return PollResult(status=PollStatus.FAILED, started_at=started_at, error=str(e))

        snapshots = self.validate(raw_entries, started_at)
        logger.info("poll_fetched", total=len(raw_entries), valid=len(snapshots))
        self.recent_symbols = snapshots[:self.settings.sample_size]

        result = PollResult(
            status=PollStatus.COMPLETED,
            started_at=started_at,
            total=len(raw_entries),
            valid=len(snapshots),
        )

        for snapshot in snapshots:
            outcome = self.classify(snapshot)
            if outcome is not None:
                result.outcomes.append(outcome)
                if await self._dispatch(outcome):
                    result.alerts_sent += 1
                else:
                    result.alerts_failed += 1
            self.store.upsert(snapshot)

        result.pruned = self.store.prune(self._clock())

        self._polls_completed += 1
        self._alerts_sent += result.alerts_sent
        logger.info(
            "poll_completed",
            alerts_sent=result.alerts_sent,
            alerts_failed=result.alerts_failed,
            pruned=result.pruned,
            baseline_size=len(self.store),
        )
        self.display_recent_symbols()
        return result

    async def _dispatch(self, outcome: DetectionOutcome) -> bool:
        """Hand one outcome to the alert sink. Sink failures are logged, never raised."""
        fields = outcome.alert_fields()
        logger.info("surge_detected", **fields)
        try:
            delivered = await self._alert_sink(
                fields["symbol"],
                fields["price"],
                fields["price_change"],
                fields["volume_ratio"],
                fields["quote_volume"],
            )
        except Exception as e:
            logger.error("alert_dispatch_failed", symbol=outcome.symbol,
                         error=str(e), error_type=type(e).__name__)
            return False
        return delivered is not False

    # ─── Startup ────────────────────────────────────────────────

    async def initialize_baseline(self) -> int:
        """
        Seed the store from one fetch, without classifying anything.
        Raises BaselineSeedError when the fetch fails.
        """
        async with self._lock:
            now = self._clock()
            try:
                raw_entries = list(await self._provider())
            except Exception as e:
                logger.error("baseline_seed_failed", error=str(e), error_type=type(e).__name__)
                raise BaselineSeedError(str(e)) from e

            snapshots = self.validate(raw_entries, now)
            for snapshot in snapshots:
                self.store.upsert(snapshot)

        logger.info("baseline_initialized", symbols=len(snapshots), total=len(raw_entries))
        return len(snapshots)

    # ─── Observability ──────────────────────────────────────────

    def display_recent_symbols(self) -> None:
        for index, snapshot in enumerate(self.recent_symbols, start=1):
            logger.info(
                "recent_symbol",
                rank=index,
                symbol=snapshot.symbol,
                volume=round(snapshot.volume, 2),
                avg_volume=round(snapshot.avg_volume, 2),
                volume_ratio=round(snapshot.volume_ratio, 2),
                price=snapshot.price,
                quote_volume=round(snapshot.quote_volume, 2),
            )

    @property
    def stats(self) -> Dict[str, Any]:
        return {
            "is_polling": self.is_polling,
            "polls_completed": self._polls_completed,
            "polls_skipped": self._polls_skipped,
            "polls_failed": self._polls_failed,
            "alerts_sent": self._alerts_sent,
            "last_poll_at": self._last_poll_at.isoformat() if self._last_poll_at else None,
            "baseline": self.store.stats,
        }
