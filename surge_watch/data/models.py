"""
SURGE WATCH — Data Models for Market Data
Canonical data structures shared by the provider, the engine and the API.
"""
from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any, Mapping, Union
from datetime import datetime
from enum import Enum

from surge_watch.utils.helpers import is_positive_number, to_utc_datetime, format_number

NUMERIC_FIELDS = ("price", "volume", "avg_volume", "quote_volume")


class SymbolSnapshot(BaseModel):
    """One symbol's validated measurements for a single poll."""
    symbol: str
    price: float
    volume: float  # current window, base asset units
    avg_volume: float  # rolling average over the prior window
    quote_volume: float
    timestamp: datetime

    @property
    def volume_ratio(self) -> float:
        return self.volume / self.avg_volume

    @classmethod
    def from_raw(
        cls, raw: Union["SymbolSnapshot", Mapping[str, Any], None], default_timestamp: datetime
    ) -> Optional["SymbolSnapshot"]:
        """
        Build a snapshot from a provider entry, or return None when the
        entry is malformed: missing symbol, or any numeric field missing,
        non-numeric, non-finite or not strictly positive.
        """
        if raw is None:
            return None
        if isinstance(raw, SymbolSnapshot):
            raw = raw.model_dump()
        if not isinstance(raw, Mapping):
            return None

        symbol = raw.get("symbol")
        if not isinstance(symbol, str) or not symbol:
            return None
        if not all(is_positive_number(raw.get(name)) for name in NUMERIC_FIELDS):
            return None

        return cls(
            symbol=symbol,
            price=float(raw["price"]),
            volume=float(raw["volume"]),
            avg_volume=float(raw["avg_volume"]),
            quote_volume=float(raw["quote_volume"]),
            timestamp=to_utc_datetime(raw.get("timestamp"), default_timestamp),
        )


class BaselineEntry(BaseModel):
    """Last validated price for a symbol and when it was observed."""
    price: float
    timestamp: datetime


class DetectionOutcome(BaseModel):
    """A volume-and-price surge detected for one symbol in one poll."""
    symbol: str
    price: float
    price_change_pct: float
    volume_ratio: float
    quote_volume: float
    timestamp: datetime

    def alert_fields(self) -> Dict[str, str]:
        """Display-ready strings handed to the alert sink."""
        return {
            "symbol": self.symbol,
            "price": format_number(self.price, 4),
            "price_change": format_number(self.price_change_pct, 2),
            "volume_ratio": format_number(self.volume_ratio, 2),
            "quote_volume": format_number(self.quote_volume, 2),
        }


class PollStatus(str, Enum):
    COMPLETED = "completed"
    SKIPPED = "skipped"
    FAILED = "failed"


class PollResult(BaseModel):
    """Summary of one poll cycle."""
    status: PollStatus
    started_at: datetime
    total: int = 0
    valid: int = 0
    alerts_sent: int = 0
    alerts_failed: int = 0
    pruned: int = 0
    outcomes: List[DetectionOutcome] = Field(default_factory=list)
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")
