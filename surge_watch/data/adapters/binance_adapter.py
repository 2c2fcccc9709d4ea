"""
SURGE WATCH — Binance USDⓈ-M Futures Adapter
Builds per-symbol volume snapshots from 5-minute klines.
"""
import asyncio
import aiohttp
from typing import Optional, List, Dict, Any
from datetime import datetime, timezone
from cachetools import TTLCache

from surge_watch.data.adapters.base import (
    BaseSnapshotProvider, SnapshotFetchError, UnexpectedStatusError,
)
from surge_watch.config.settings import DataSourceSettings, get_settings
from surge_watch.utils.logger import get_logger

logger = get_logger("binance_adapter")

# Kline array layout returned by /fapi/v1/klines
K_CLOSE = 4
K_VOLUME = 5
K_CLOSE_TIME = 6
K_QUOTE_VOLUME = 7


def _is_tradable(info: Dict[str, Any], quote_asset: str) -> bool:
    return (
        info.get("contractType") == "PERPETUAL"
        and info.get("quoteAsset") == quote_asset
        and info.get("status") == "TRADING"
    )


def klines_to_snapshot(symbol: str, klines: Any, now_ms: int, history: int) -> Dict[str, Any]:
    """
    Reduce a kline list to a raw snapshot entry.

    The last closed candle is the current window; the ``history`` closed
    candles before it give the average volume. A candle still open at
    ``now_ms`` is ignored. Unusable payloads produce an entry whose
    numeric fields are None so validation drops it.
    """
    entry: Dict[str, Any] = {
        "symbol": symbol,
        "price": None,
        "volume": None,
        "avg_volume": None,
        "quote_volume": None,
        "timestamp": None,
    }
    try:
        closed = [k for k in klines if int(k[K_CLOSE_TIME]) < now_ms]
        if len(closed) < history + 1:
            return entry
        current = closed[-1]
        previous = closed[-(history + 1):-1]
        entry.update(
            price=float(current[K_CLOSE]),
            volume=float(current[K_VOLUME]),
            avg_volume=sum(float(k[K_VOLUME]) for k in previous) / len(previous),
            quote_volume=float(current[K_QUOTE_VOLUME]),
            timestamp=int(current[K_CLOSE_TIME]),
        )
    except (TypeError, ValueError, IndexError):
        logger.debug("binance_kline_malformed", symbol=symbol)
    return entry


class BinanceFuturesAdapter(BaseSnapshotProvider):
    """Binance USDⓈ-M perpetual futures snapshot provider."""

    def __init__(self, settings: Optional[DataSourceSettings] = None):
        super().__init__(name="binance_futures")
        self.settings = settings or get_settings().data
        self.base_url = self.settings.binance_futures_url.rstrip("/")
        self._symbols_cache: TTLCache = TTLCache(maxsize=1, ttl=self.settings.exchange_info_ttl_seconds)
        self._semaphore = asyncio.Semaphore(self.settings.max_concurrent_requests)

    async def connect(self) -> None:
        timeout = aiohttp.ClientTimeout(total=self.settings.request_timeout_seconds)
        self._session = aiohttp.ClientSession(timeout=timeout)
        logger.info("binance_adapter_connected", base_url=self.base_url)

    async def disconnect(self) -> None:
        if self._session:
            await self._session.close()
            self._session = None
        logger.info("binance_adapter_disconnected")

    async def _get_json(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        url = f"{self.base_url}{path}"
        try:
            async with self._session.get(url, params=params) as resp:
                if resp.status != 200:
                    body = await resp.text()
                    raise UnexpectedStatusError(
                        f"GET {path} returned {resp.status}: {body[:200]}", resp.status
                    )
                return await resp.json()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise SnapshotFetchError(f"GET {path} failed: {e!r}") from e

    async def get_symbols(self) -> List[str]:
        """Trading USDT perpetual symbols, cached for exchange_info_ttl_seconds."""
        cached = self._symbols_cache.get("symbols")
        if cached is not None:
            return cached

        data = await self._get_json("/fapi/v1/exchangeInfo")
        symbols = [
            info["symbol"]
            for info in data.get("symbols", [])
            if _is_tradable(info, self.settings.quote_asset)
        ]
        if not symbols:
            raise SnapshotFetchError("exchangeInfo returned no tradable symbols")

        self._symbols_cache["symbols"] = symbols
        logger.info("binance_symbols_loaded", count=len(symbols))
        return symbols

    async def _get_klines(self, symbol: str) -> Any:
        """
        Klines for one symbol, or None when Binance rejects the symbol
        (e.g. delisted since the symbol list was cached). A rejected
        symbol drops the cached list so the next poll reloads it.
        """
        params = {
            "symbol": symbol,
            "interval": self.settings.kline_interval,
            # history + current + the candle that is still open
            "limit": self.settings.history_candles + 2,
        }
        async with self._semaphore:
            try:
                return await self._get_json("/fapi/v1/klines", params=params)
            except UnexpectedStatusError as e:
                logger.warning("binance_symbol_skipped", symbol=symbol, status=e.status, error=str(e))
                self._symbols_cache.pop("symbols", None)
                return None

    async def fetch_snapshots(self) -> List[Dict[str, Any]]:
        """Fetch one raw snapshot per tradable symbol."""
        if not self._session:
            await self.connect()

        symbols = await self.get_symbols()
        results = await asyncio.gather(*(self._get_klines(s) for s in symbols))

        now_ms = int(datetime.now(timezone.utc).timestamp() * 1000)
        return [
            klines_to_snapshot(symbol, klines, now_ms, self.settings.history_candles)
            for symbol, klines in zip(symbols, results)
        ]
