"""
OHLCV and chart image fixtures.

Series are deterministic (no random noise) so swing points and trend reads
are stable across runs.
"""

from pathlib import Path
from typing import List, Sequence, Tuple

import pandas as pd
from PIL import Image, ImageDraw


Candle = Tuple[float, float, float, float]


def frame_from_candles(candles: Sequence[Candle], start: str = "2024-01-01", freq: str = "30min") -> pd.DataFrame:
    """Build an OHLCV frame from (open, high, low, close) tuples."""
    rows = [
        {"open": o, "high": h, "low": l, "close": c, "volume": 1000.0}
        for o, h, l, c in candles
    ]
    df = pd.DataFrame(rows)
    df.insert(0, "timestamp", pd.date_range(start, periods=len(df), freq=freq))
    return df


def zigzag_closes(start: float, legs: Sequence[Tuple[int, float]]) -> List[float]:
    """Closes that move `step` per bar for `bars` bars, leg after leg."""
    closes = [start]
    for bars, step in legs:
        for _ in range(bars):
            closes.append(round(closes[-1] + step, 5))
    return closes


def candles_from_closes(closes: Sequence[float], wick: float = 0.0003) -> List[Candle]:
    """
    Candles opening at the previous close.

    The wick beyond the close is twice the wick beyond the open, so the
    candle that ends a leg always makes the strict extreme.
    """
    candles = []
    for prev, close in zip(closes, closes[1:]):
        if close >= prev:
            high, low = close + wick, prev - wick / 2
        else:
            high, low = prev + wick / 2, close - wick
        candles.append((prev, high, low, close))
    return candles


def uptrend_frame() -> pd.DataFrame:
    """Higher highs and higher lows around EURUSD 1.10."""
    closes = zigzag_closes(1.1000, [(5, 0.0010), (3, -0.0006), (5, 0.0010), (3, -0.0006),
                                    (5, 0.0010), (3, -0.0006), (4, 0.0010)])
    return frame_from_candles(candles_from_closes(closes))


def downtrend_frame() -> pd.DataFrame:
    """Lower highs and lower lows around EURUSD 1.10."""
    closes = zigzag_closes(1.1200, [(5, -0.0010), (3, 0.0006), (5, -0.0010), (3, 0.0006),
                                    (5, -0.0010), (3, 0.0006), (4, -0.0010)])
    return frame_from_candles(candles_from_closes(closes))


def bullish_engulfing_tail(frame: pd.DataFrame) -> pd.DataFrame:
    """Append a bearish candle followed by a bullish candle that engulfs it."""
    last = float(frame["close"].iloc[-1])
    extra = frame_from_candles(
        [
            (last, last + 0.0002, last - 0.0012, last - 0.0010),
            (last - 0.0012, last + 0.0008, last - 0.0014, last + 0.0006),
        ],
        start=str(frame["timestamp"].iloc[-1] + pd.Timedelta(minutes=30)),
    )
    return pd.concat([frame, extra], ignore_index=True)


def write_chart_png(path: Path, size: Tuple[int, int] = (800, 500), rising: bool = True) -> Path:
    """Dark chart background with a straight white price line."""
    width, height = size
    image = Image.new("RGB", size, (19, 23, 34))
    draw = ImageDraw.Draw(image)
    start, end = (height * 0.8, height * 0.2) if rising else (height * 0.2, height * 0.8)
    draw.line([(0, start), (width - 1, end)], fill=(255, 255, 255), width=5)
    path.parent.mkdir(parents=True, exist_ok=True)
    image.save(path, format="PNG")
    return path
