"""
SURGE WATCH — Tests for Data Models, Baseline Store and Helpers
"""
import pytest
from datetime import datetime, timezone, timedelta

from surge_watch.data.models import SymbolSnapshot, DetectionOutcome, PollResult, PollStatus
from surge_watch.data.cache.baseline_store import BaselineStore
from surge_watch.utils.helpers import is_positive_number, pct_change, to_utc_datetime


NOW = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


# ─── Snapshot Parsing ───────────────────────────────────────────

class TestSymbolSnapshot:
    def test_from_raw_valid(self):
        snap = SymbolSnapshot.from_raw({
            "symbol": "BTCUSDT", "price": 42000, "volume": 30.0,
            "avg_volume": 10.0, "quote_volume": 1_260_000.0,
            "timestamp": 1704110400000,
        }, NOW)
        assert snap is not None
        assert snap.price == 42000.0
        assert snap.volume_ratio == 3.0
        assert snap.timestamp == datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

    def test_missing_timestamp_uses_default(self):
        snap = SymbolSnapshot.from_raw({
            "symbol": "X", "price": 1.0, "volume": 1.0, "avg_volume": 1.0, "quote_volume": 1.0,
        }, NOW)
        assert snap.timestamp == NOW

    def test_from_existing_snapshot(self):
        original = SymbolSnapshot(symbol="X", price=1.0, volume=2.0, avg_volume=1.0,
                                  quote_volume=5.0, timestamp=NOW)
        assert SymbolSnapshot.from_raw(original, NOW) == original

    @pytest.mark.parametrize("raw", [None, [], "BTCUSDT", {"symbol": "X"}])
    def test_from_raw_rejects_junk(self, raw):
        assert SymbolSnapshot.from_raw(raw, NOW) is None


class TestDetectionOutcome:
    def test_alert_fields_are_display_strings(self):
        outcome = DetectionOutcome(symbol="AAA", price=106.0, price_change_pct=6.000000000000001,
                                   volume_ratio=2.5, quote_volume=150000.0, timestamp=NOW)
        assert outcome.alert_fields() == {
            "symbol": "AAA",
            "price": "106.0000",
            "price_change": "6.00",
            "volume_ratio": "2.50",
            "quote_volume": "150000.00",
        }

    def test_poll_result_to_dict(self):
        result = PollResult(status=PollStatus.SKIPPED, started_at=NOW)
        d = result.to_dict()
        assert d["status"] == "skipped"
        assert d["outcomes"] == []
        assert d["started_at"].startswith("2024-01-01T12:00:00")


# ─── Baseline Store ─────────────────────────────────────────────

def _snap(symbol, price, timestamp):
    return SymbolSnapshot(symbol=symbol, price=price, volume=1.0, avg_volume=1.0,
                          quote_volume=1.0, timestamp=timestamp)


class TestBaselineStore:
    def test_upsert_and_get(self):
        store = BaselineStore()
        store.upsert(_snap("AAA", 100.0, NOW))
        store.upsert(_snap("AAA", 101.0, NOW + timedelta(minutes=5)))
        entry = store.get("AAA")
        assert entry.price == 101.0
        assert entry.timestamp == NOW + timedelta(minutes=5)
        assert len(store) == 1
        assert store.get("ZZZ") is None

    def test_prune_removes_only_stale(self):
        store = BaselineStore(retention=timedelta(hours=1))
        store.upsert(_snap("STALE", 1.0, NOW - timedelta(hours=1, seconds=1)))
        store.upsert(_snap("EDGE", 1.0, NOW - timedelta(hours=1)))
        store.upsert(_snap("FRESH", 1.0, NOW))

        removed = store.prune(NOW)

        assert removed == 1
        assert "STALE" not in store
        assert "EDGE" in store
        assert "FRESH" in store
        assert store.stats["total_pruned"] == 1

    def test_no_size_cap(self):
        store = BaselineStore()
        for i in range(5000):
            store.upsert(_snap(f"S{i}", 1.0, NOW))
        assert store.prune(NOW) == 0
        assert len(store) == 5000

    def test_clear(self):
        store = BaselineStore()
        store.upsert(_snap("AAA", 1.0, NOW))
        store.clear()
        assert len(store) == 0


# ─── Utility Tests ──────────────────────────────────────────────

class TestHelpers:
    def test_is_positive_number(self):
        assert is_positive_number(1) is True
        assert is_positive_number(0.5) is True
        assert is_positive_number(0) is False
        assert is_positive_number(-3) is False
        assert is_positive_number("5") is False
        assert is_positive_number(True) is False
        assert is_positive_number(float("nan")) is False
        assert is_positive_number(float("inf")) is False

    def test_pct_change(self):
        assert pct_change(50.0, 75.0) == 50.0
        assert pct_change(100.0, 90.0) == pytest.approx(-10.0)

    def test_to_utc_datetime(self):
        naive = datetime(2024, 1, 1, 12, 0)
        assert to_utc_datetime(naive, NOW).tzinfo == timezone.utc
        assert to_utc_datetime(0, NOW) == datetime(1970, 1, 1, tzinfo=timezone.utc)
        assert to_utc_datetime("yesterday", NOW) == NOW
