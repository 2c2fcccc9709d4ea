"""
SURGE WATCH — Test Configuration & Fixtures
Shared fixtures for all test modules.
"""
import pytest
from datetime import datetime, timezone, timedelta
from unittest.mock import AsyncMock

from surge_watch.config.settings import MonitorSettings
from surge_watch.data.cache.baseline_store import BaselineStore
from surge_watch.engines.detection_engine import DetectionEngine


T0 = datetime(2024, 1, 1, 12, 0, 3, tzinfo=timezone.utc)


class FakeClock:
    """Settable clock so tests control 'now'."""

    def __init__(self, now: datetime = T0):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


class FakeProvider:
    """Snapshot provider returning queued batches; an Exception in the queue is raised."""

    def __init__(self, *batches):
        self.batches = list(batches)
        self.calls = 0
        self.gate = None  # asyncio.Event to hold a fetch open

    async def __call__(self):
        self.calls += 1
        if self.gate is not None:
            await self.gate.wait()
        batch = self.batches.pop(0) if self.batches else []
        if isinstance(batch, Exception):
            raise batch
        return batch


def _make_entry(symbol="AAA", price=100.0, volume=25.0, avg_volume=10.0,
               quote_volume=150000.0, timestamp=None):
    """Raw provider entry; defaults give a volume ratio of 2.5."""
    return {
        "symbol": symbol,
        "price": price,
        "volume": volume,
        "avg_volume": avg_volume,
        "quote_volume": quote_volume,
        "timestamp": timestamp if timestamp is not None else T0,
    }


@pytest.fixture
def monitor_settings():
    return MonitorSettings(
        volume_threshold=2.0,
        min_price_change=5.0,
        min_quote_volume=100000.0,
        baseline_retention_seconds=3600,
        poll_interval_minutes=5,
        poll_offset_seconds=3,
        sample_size=3,
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return BaselineStore(retention=timedelta(hours=1))


@pytest.fixture
def alert_sink():
    return AsyncMock(return_value=True)


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def engine(provider, alert_sink, store, monitor_settings, clock):
    engine = DetectionEngine(provider, alert_sink, store=store, settings=monitor_settings, clock=clock)
    assert engine.store is store
    return engine


@pytest.fixture
def make_entry():
    return _make_entry


@pytest.fixture
def fake_provider_cls():
    return FakeProvider
