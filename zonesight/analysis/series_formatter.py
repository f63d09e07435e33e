"""
OHLCV digest for text-mode AI analysis.

Turns an OHLCV DataFrame (columns: timestamp, open, high, low, close,
volume) into a compact text summary: headline statistics, the most recent
candles, swing-level support/resistance and a coarse trend read.
"""

from typing import Dict, List, Optional, Tuple

import pandas as pd

from zonesight.shared.utils.pips import format_price


REQUIRED_COLUMNS = ("open", "high", "low", "close")


def _check_frame(frame: pd.DataFrame) -> None:
    if frame is None or frame.empty:
        raise ValueError("No OHLCV data provided")
    missing = [col for col in REQUIRED_COLUMNS if col not in frame.columns]
    if missing:
        raise ValueError(f"OHLCV frame missing columns: {missing}")


def visible_range(frame: pd.DataFrame) -> Tuple[float, float]:
    """(highest high, lowest low) of the frame; the explicit calibration range for series charts."""
    _check_frame(frame)
    return float(frame["high"].max()), float(frame["low"].min())


def find_swing_points(frame: pd.DataFrame, window: int = 2) -> Tuple[List[Tuple[int, float]], List[Tuple[int, float]]]:
    """
    Locate swing highs and lows.

    A swing high is strictly higher than the `window` bars on each side;
    swing lows mirror that.

    Returns:
        (swing_highs, swing_lows) as lists of (position, price)
    """
    highs = frame["high"].to_numpy(dtype=float)
    lows = frame["low"].to_numpy(dtype=float)
    swing_highs: List[Tuple[int, float]] = []
    swing_lows: List[Tuple[int, float]] = []

    for i in range(window, len(frame) - window):
        neighbours = list(range(i - window, i)) + list(range(i + 1, i + window + 1))
        if all(highs[i] > highs[j] for j in neighbours):
            swing_highs.append((i, float(highs[i])))
        if all(lows[i] < lows[j] for j in neighbours):
            swing_lows.append((i, float(lows[i])))
    return swing_highs, swing_lows


def group_levels(prices: List[float], tolerance: float = 0.001) -> List[Dict[str, float]]:
    """
    Group prices lying within `tolerance` (relative) of a group's first price.

    Returns:
        [{"price": ..., "touches": n}, ...] sorted by touches, most first
    """
    groups: List[Dict[str, float]] = []
    for price in sorted(prices, reverse=True):
        for group in groups:
            if group["price"] and abs(price - group["price"]) / abs(group["price"]) < tolerance:
                group["touches"] += 1
                break
        else:
            groups.append({"price": price, "touches": 1})
    return sorted(groups, key=lambda g: g["touches"], reverse=True)


def key_levels(frame: pd.DataFrame, limit: int = 5) -> Dict[str, List[Dict[str, float]]]:
    swing_highs, swing_lows = find_swing_points(frame)
    return {
        "resistance": group_levels([p for _, p in swing_highs])[:limit],
        "support": group_levels([p for _, p in swing_lows])[:limit],
    }


def structure_trend(frame: pd.DataFrame) -> str:
    """
    Trend from the last two swing highs and lows.

    uptrend for higher highs and higher lows, downtrend for lower highs and
    lower lows, sideways otherwise (including too few swings).
    """
    swing_highs, swing_lows = find_swing_points(frame)
    if len(swing_highs) < 2 or len(swing_lows) < 2:
        return "sideways"
    (_, h1), (_, h2) = swing_highs[-2:]
    (_, l1), (_, l2) = swing_lows[-2:]
    if h2 > h1 and l2 > l1:
        return "uptrend"
    if h2 < h1 and l2 < l1:
        return "downtrend"
    return "sideways"


def _trend_description(frame: pd.DataFrame) -> str:
    trend = structure_trend(frame)
    closes = frame["close"].astype(float)
    half = len(closes) // 2
    if half:
        older, recent = closes.iloc[:half].mean(), closes.iloc[half:].mean()
        drift = (recent - older) / older * 100 if older else 0.0
        return f"{trend.upper()} by swing structure, average close drift {drift:+.2f}%"
    return f"{trend.upper()} by swing structure"


def format_series_for_ai(
    frame: pd.DataFrame,
    instrument: str,
    timeframe: str,
    recent_count: int = 30,
) -> str:
    """
    Build the text digest sent to the AI in series mode.

    Raises:
        ValueError: Empty frame or missing OHLC columns
    """
    _check_frame(frame)

    first_close = float(frame["close"].iloc[0])
    last_close = float(frame["close"].iloc[-1])
    period_high, period_low = visible_range(frame)
    change = (last_close - first_close) / first_close * 100 if first_close else 0.0

    fmt = lambda price: format_price(instrument, price)

    lines = [
        f"SUMMARY ({instrument} {timeframe}, {len(frame)} bars)",
        f"- Current price: {fmt(last_close)}",
        f"- Change over period: {change:+.2f}%",
        f"- Period high: {fmt(period_high)}",
        f"- Period low: {fmt(period_low)}",
        f"- Range: {fmt(period_high - period_low)}",
        "",
        f"RECENT CANDLES (last {min(recent_count, len(frame))}, oldest first)",
    ]

    recent = frame.tail(recent_count)
    has_time = "timestamp" in recent.columns
    for n, (_, row) in enumerate(recent.iterrows(), start=1):
        o, h, l, c = (float(row[k]) for k in REQUIRED_COLUMNS)
        kind = "BULL" if c > o else "BEAR"
        stamp = f" {row['timestamp']}" if has_time else ""
        lines.append(
            f"{n:>2}.{stamp} {kind} O={fmt(o)} H={fmt(h)} L={fmt(l)} C={fmt(c)} "
            f"body={fmt(abs(c - o))} upper={fmt(h - max(o, c))} lower={fmt(min(o, c) - l)}"
        )

    levels = key_levels(frame)
    lines.append("")
    lines.append("KEY LEVELS (swing points grouped within 0.1%, most touched first)")
    for side in ("resistance", "support"):
        entries = ", ".join(f"{fmt(g['price'])} x{int(g['touches'])}" for g in levels[side]) or "none"
        lines.append(f"- {side.capitalize()}: {entries}")

    lines.append("")
    lines.append(f"TREND: {_trend_description(frame)}")
    return "\n".join(lines)


def last_close(frame: pd.DataFrame) -> Optional[float]:
    if frame is None or frame.empty:
        return None
    return float(frame["close"].iloc[-1])
