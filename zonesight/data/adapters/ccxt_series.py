"""
ccxt OHLCV capture adapter (series mode).

Fetches candles through a ccxt exchange and returns them as a pandas
DataFrame with columns: timestamp, open, high, low, close, volume.
"""

import asyncio
from typing import Any, Dict, Optional

import ccxt
import pandas as pd
from loguru import logger

from zonesight.contracts.capture_contract import CaptureProvider
from zonesight.shared.models.analysis import CaptureResult, TimeframeSpec
from zonesight.shared.utils.error_policy import CaptureFailure


TIMEFRAME_MAP: Dict[str, str] = {
    "1D": "1d",
    "D": "1d",
    "1W": "1w",
    "4H": "4h",
    "1H": "1h",
    "60": "1h",
    "30": "30m",
    "15": "15m",
    "5": "5m",
    "1": "1m",
}

_QUOTES = ("USDT", "USDC", "BUSD", "USD", "EUR", "GBP", "JPY", "CHF", "AUD", "CAD", "BTC", "ETH")


def to_ccxt_timeframe(identifier: str) -> str:
    key = str(identifier).strip().upper()
    if key in TIMEFRAME_MAP:
        return TIMEFRAME_MAP[key]
    if key.isdigit():
        return f"{key}m"
    return key.lower()


def to_ccxt_symbol(instrument: str) -> str:
    """'EURUSD' -> 'EUR/USD', 'BTCUSDT' -> 'BTC/USDT'; symbols with '/' pass through."""
    symbol = instrument.strip().upper().replace("_", "/")
    if "/" in symbol:
        return symbol
    for quote in _QUOTES:
        if symbol.endswith(quote) and len(symbol) > len(quote):
            return f"{symbol[:-len(quote)]}/{quote}"
    return symbol


def ohlcv_to_frame(rows) -> pd.DataFrame:
    df = pd.DataFrame(rows, columns=['timestamp', 'open', 'high', 'low', 'close', 'volume'])
    df['timestamp'] = pd.to_datetime(df['timestamp'], unit='ms')
    for column in ('open', 'high', 'low', 'close', 'volume'):
        df[column] = df[column].astype(float)
    return df


class CcxtSeriesCapture(CaptureProvider):
    """CaptureProvider that returns OHLCV series from a ccxt exchange."""

    def __init__(self, exchange_id: str = "binance", exchange: Optional[Any] = None,
                 symbol_map: Optional[Dict[str, str]] = None):
        self.exchange_id = exchange_id
        self.symbol_map = {k.upper(): v for k, v in (symbol_map or {}).items()}
        self._exchange = exchange
        # Only exchanges built here are closed and discarded on close()
        self._owns_exchange = exchange is None

    async def initialize(self) -> Any:
        if self._exchange is None:
            try:
                exchange_cls = getattr(ccxt, self.exchange_id)
            except AttributeError as e:
                raise CaptureFailure(f"Unknown ccxt exchange: {self.exchange_id}") from e
            self._exchange = exchange_cls({'enableRateLimit': True})
        logger.info(f"ccxt capture initialized ({self.exchange_id})")
        return self._exchange

    def symbol_for(self, instrument: str) -> str:
        return self.symbol_map.get(instrument.upper(), to_ccxt_symbol(instrument))

    async def capture(self, instrument: str, timeframe: TimeframeSpec) -> CaptureResult:
        if self._exchange is None:
            raise CaptureFailure("Capture provider is not initialized", timeframe=timeframe.identifier)

        symbol = self.symbol_for(instrument)
        ccxt_tf = to_ccxt_timeframe(timeframe.identifier)
        logger.debug(f"Fetching {timeframe.bars} {ccxt_tf} candles for {symbol}")
        try:
            rows = await asyncio.to_thread(
                self._exchange.fetch_ohlcv, symbol, timeframe=ccxt_tf, limit=timeframe.bars
            )
        except ccxt.BaseError as e:
            raise CaptureFailure(f"ccxt fetch failed for {symbol} {ccxt_tf}: {e}",
                                 timeframe=timeframe.identifier) from e

        if not rows:
            raise CaptureFailure(f"No candles returned for {symbol} {ccxt_tf}", timeframe=timeframe.identifier)

        frame = ohlcv_to_frame(rows)
        logger.info(f"📈 {instrument} {timeframe.identifier}: {len(frame)} candles")
        return CaptureResult(
            instrument=instrument,
            timeframe=timeframe.identifier,
            series=frame,
            metadata={"symbol": symbol, "exchange": self.exchange_id, "ccxt_timeframe": ccxt_tf},
        )

    async def close(self, handle: Any) -> None:
        if not self._owns_exchange:
            return
        closer = getattr(handle, "close", None)
        if callable(closer):
            result = closer()
            if asyncio.iscoroutine(result):
                await result
        self._exchange = None
