"""
Local heuristic analyzer used when the AI provider is unavailable.

Offline and deterministic: the same capture always yields the same
analysis. Results are labeled `source="fallback"`, carry a capped
confidence and say so in their reasoning.

- Screenshot mode reads the ink distribution of the chart image (Pillow +
  numpy) to get a direction; it cannot read prices, so zone prices stay
  empty.
- Series mode reads swing structure, the nearest swing level and the last
  two candles from the OHLCV frame (pandas).
"""

from typing import Optional, Tuple

import numpy as np
import pandas as pd
from loguru import logger
from PIL import Image

from zonesight.analysis.series_formatter import find_swing_points, structure_trend, visible_range
from zonesight.shared.config.defaults import AnalysisConfig, ZoneConfig
from zonesight.shared.models.analysis import CaptureResult, TimeframeAnalysis
from zonesight.shared.utils.pips import pips_to_price


REASONING_PREFIX = "Local heuristic fallback"

_MICRO = {"uptrend": "bullish", "downtrend": "bearish", "sideways": "ranging"}
_SIGNAL = {"uptrend": "buy", "downtrend": "sell", "sideways": "wait"}


def engulfing_pattern(frame: pd.DataFrame) -> Optional[str]:
    """Engulfing pattern formed by the last two candles, if any."""
    if len(frame) < 2:
        return None
    prev, curr = frame.iloc[-2], frame.iloc[-1]
    prev_bear = prev["close"] < prev["open"]
    prev_bull = prev["close"] > prev["open"]
    curr_bull = curr["close"] > curr["open"]
    curr_bear = curr["close"] < curr["open"]
    if prev_bear and curr_bull and curr["open"] <= prev["close"] and curr["close"] >= prev["open"]:
        return "bullish_engulfing"
    if prev_bull and curr_bear and curr["open"] >= prev["close"] and curr["close"] <= prev["open"]:
        return "bearish_engulfing"
    return None


def ink_trend(image: Image.Image, threshold: int = 40, slope_pct: float = 0.02) -> Tuple[str, Optional[float]]:
    """
    Direction of the plotted price from where the chart's ink sits.

    Compares the mean ink row in the left and right thirds of the image;
    ink higher on the right (smaller y) reads as an uptrend.

    Returns:
        (trend, mean ink row of the right third or None)
    """
    gray = np.asarray(image.convert("L"), dtype=np.int16)
    background = int(np.median(gray))
    ink = np.abs(gray - background) > threshold

    height, width = ink.shape
    third = max(1, width // 3)

    def mean_row(mask: np.ndarray) -> Optional[float]:
        rows = np.nonzero(mask)[0]
        return float(rows.mean()) if rows.size else None

    left = mean_row(ink[:, :third])
    right = mean_row(ink[:, width - third:])
    if left is None or right is None:
        return "sideways", right

    delta = left - right
    if delta > height * slope_pct:
        return "uptrend", right
    if delta < -height * slope_pct:
        return "downtrend", right
    return "sideways", right


class LocalFallbackAnalyzer:
    """Rule-based stand-in for the AI provider."""

    def __init__(self, analysis: Optional[AnalysisConfig] = None, zones: Optional[ZoneConfig] = None):
        self.analysis = analysis or AnalysisConfig()
        self.zones = zones or ZoneConfig()

    @property
    def confidence(self) -> float:
        return max(0.0, min(1.0, self.analysis.fallback_confidence))

    def analyze(
        self,
        capture: CaptureResult,
        strategy: str,
        index: int,
        parent: Optional[TimeframeAnalysis] = None,
    ) -> TimeframeAnalysis:
        """
        Produce a heuristic analysis for one timeframe.

        Args:
            capture: Image or series capture
            strategy: 'swing' or 'scalping'
            index: 0 for the primary timeframe, 1 for the entry timeframe
            parent: Primary analysis (entry timeframe only)
        """
        if capture.mode == "series":
            result = self._analyze_series(capture, strategy, index, parent)
        else:
            result = self._analyze_image(capture, strategy, index, parent)
        logger.info(
            f"Fallback analysis {capture.instrument} {capture.timeframe}: "
            f"trend={result.trend or result.micro_trend} signal={result.signal} pattern={result.pattern}"
        )
        return result

    # ------------------------------------------------------------------
    # Screenshot mode
    # ------------------------------------------------------------------

    def _analyze_image(self, capture: CaptureResult, strategy: str, index: int,
                       parent: Optional[TimeframeAnalysis]) -> TimeframeAnalysis:
        with Image.open(capture.image_path) as image:
            width, height = image.size
            trend, right_row = ink_trend(image)

        band = max(20, int(height * 0.08))
        center = int(right_row) if right_row is not None else height // 2
        y1 = max(0, center - band // 2)
        coordinates = {"x1": int(width * 0.8), "y1": y1, "x2": width - 1, "y2": min(height - 1, y1 + band)}
        reasoning = f"{REASONING_PREFIX} (no AI): {trend} read from chart ink distribution; prices unavailable"

        if index == 0:
            return self._primary(capture, strategy, trend, None, None, coordinates, reasoning)
        return self._entry(capture, strategy, parent, None, None, True, coordinates, reasoning)

    # ------------------------------------------------------------------
    # Series mode
    # ------------------------------------------------------------------

    def _analyze_series(self, capture: CaptureResult, strategy: str, index: int,
                        parent: Optional[TimeframeAnalysis]) -> TimeframeAnalysis:
        frame = capture.series
        chart_high, chart_low = visible_range(frame)

        if index == 0:
            trend = structure_trend(frame)
            low, high = self._nearest_level_zone(frame, capture.instrument, trend)
            reasoning = f"{REASONING_PREFIX} (no AI): {trend} from swing structure, zone at nearest swing level"
            return self._primary(capture, strategy, trend, high, low, None, reasoning,
                                 chart_high=chart_high, chart_low=chart_low, frame=frame)

        tail = frame.tail(2)
        high, low = float(tail["high"].max()), float(tail["low"].min())
        inside = self._overlaps(parent, high, low)
        reasoning = (
            f"{REASONING_PREFIX} (no AI): last two candles "
            f"{'overlap' if inside else 'do not overlap'} the parent zone"
        )
        return self._entry(capture, strategy, parent, high, low, inside, None, reasoning,
                           chart_high=chart_high, chart_low=chart_low, frame=frame)

    def _nearest_level_zone(self, frame: pd.DataFrame, instrument: str, trend: str) -> Tuple[float, float]:
        """(low, high) of a band centred on the swing level nearest to the last close."""
        close = float(frame["close"].iloc[-1])
        swing_highs, swing_lows = find_swing_points(frame)
        supports = [p for _, p in swing_lows if p <= close]
        resistances = [p for _, p in swing_highs if p >= close]

        if trend == "uptrend" and supports:
            level = max(supports)
        elif trend == "downtrend" and resistances:
            level = min(resistances)
        else:
            candidates = supports + resistances
            level = min(candidates, key=lambda p: abs(p - close)) if candidates else close

        width = pips_to_price(instrument, (self.zones.min_pips + self.zones.max_pips) / 2,
                              self.zones.pip_overrides)
        return level - width / 2, level + width / 2

    @staticmethod
    def _overlaps(parent: Optional[TimeframeAnalysis], high: float, low: float) -> bool:
        if parent is None or not parent.has_zone:
            return False
        return max(low, parent.zone_price_low) <= min(high, parent.zone_price_high)

    # ------------------------------------------------------------------
    # Result builders
    # ------------------------------------------------------------------

    def _primary(self, capture, strategy, trend, high, low, coordinates, reasoning,
                 chart_high=None, chart_low=None, frame=None) -> TimeframeAnalysis:
        signal = _SIGNAL[trend]
        pattern = engulfing_pattern(frame) if frame is not None else None
        if pattern is None and signal != "wait" and frame is None:
            pattern = "bullish_engulfing" if signal == "buy" else "bearish_engulfing"
        zone_type = {"buy": "support", "sell": "resistance"}.get(signal, "none")
        scalping = strategy == "scalping"

        return TimeframeAnalysis(
            instrument=capture.instrument,
            timeframe=capture.timeframe,
            trend=None if scalping else trend,
            micro_trend=_MICRO[trend] if scalping else None,
            signal=signal,
            pattern=pattern or "none",
            zone_type=zone_type,
            zone_price_high=high,
            zone_price_low=low,
            confidence=self.confidence,
            reasoning=reasoning,
            momentum="moderate" if scalping else None,
            zone_coordinates=coordinates,
            chart_price_high=chart_high,
            chart_price_low=chart_low,
            source="fallback",
        )

    def _entry(self, capture, strategy, parent, high, low, inside, coordinates, reasoning,
               chart_high=None, chart_low=None, frame=None) -> TimeframeAnalysis:
        if frame is not None:
            pattern = engulfing_pattern(frame)
        else:
            signal = parent.signal if parent is not None else None
            pattern = {"buy": "bullish_engulfing", "sell": "bearish_engulfing"}.get(signal or "")

        return TimeframeAnalysis(
            instrument=capture.instrument,
            timeframe=capture.timeframe,
            pattern=pattern or "none",
            zone_price_high=high,
            zone_price_low=low,
            confidence=self.confidence,
            reasoning=reasoning,
            entry_timing="immediate" if strategy == "scalping" else None,
            inside_parent_zone=inside,
            zone_coordinates=coordinates,
            chart_price_high=chart_high,
            chart_price_low=chart_low,
            source="fallback",
        )
