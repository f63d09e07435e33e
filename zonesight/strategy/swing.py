"""
Swing strategy: Daily bias, 30 minute entry.

Daily:  trend from swing structure, one support/resistance zone, an
        engulfing pattern at that zone, and a signal aligned with all three.
Entry:  an engulfing pattern in the signal's direction that overlaps the
        Daily zone (containment rule).
"""
import logging
from typing import List, Optional

from zonesight.contracts.strategy_contract import PromptContext
from zonesight.shared.config.defaults import SwingConfig, ZoneConfig
from zonesight.shared.models.analysis import SIGNALS, TRENDS, TimeframeAnalysis, TimeframeSpec
from zonesight.strategy.common import TwoTimeframePolicy, has_pattern, pattern_direction

logger = logging.getLogger(__name__)


class SwingPolicy(TwoTimeframePolicy):
    """Daily + 30 minute engulfing strategy."""

    name = "swing"
    display_name = "Swing Signal"

    def __init__(self, config: Optional[SwingConfig] = None, zones: Optional[ZoneConfig] = None):
        self.config = config or SwingConfig()
        super().__init__(
            primary=TimeframeSpec(self.config.daily_timeframe, self.config.daily_bars),
            entry=TimeframeSpec(self.config.entry_timeframe, self.config.entry_bars),
            confidence_threshold=self.config.confidence_threshold,
            zones=zones,
        )

    # ------------------------------------------------------------------
    # Prompts
    # ------------------------------------------------------------------

    def _primary_prompt(self, context: PromptContext) -> str:
        return f"""You are an expert Forex/Gold swing trader. Analyze {self._source_phrase(context, self.primary_label)}.

Follow these steps exactly:

1. TREND
   - Read the dominant direction over the last 30-50 candles; ignore minor pullbacks.
   - UPTREND: each swing high is higher than the previous one AND each swing low is higher (HH/HL).
   - DOWNTREND: each swing high is lower than the previous one AND each swing low is lower (LH/LL).
   - SIDEWAYS: price oscillates in a range without a clear HH/HL or LH/LL sequence.
   - Compare the first major high/low on the left with the latest high/low on the right.
     A small bounce after a long decline is still a downtrend.

2. SUPPORT / RESISTANCE
   - Support is a potential BUY zone, resistance a potential SELL zone.
   - Choose ONE zone. When several qualify, prefer in this order:
     a) the most touched zone (3+ touches ideal)
     b) the most recently tested zone
     c) the cleanest rejection (sharp bounce, not a slow grind)
     d) the zone closest to current price
   - The zone must be relevant to current price; do not pick levels far from it.

3. CANDLESTICK PATTERN
   - Pick the highest quality engulfing pattern at the chosen zone.
   - A bullish pattern only counts at SUPPORT; a bearish pattern only counts at RESISTANCE.
   - If no pattern qualifies, use "none".

4. SIGNAL
   - UPTREND + bullish pattern at support = buy
   - DOWNTREND + bearish pattern at resistance = sell
   - SIDEWAYS or no aligned pattern = wait
   - Never give a buy signal in a downtrend or a sell signal in an uptrend.

5. ZONE PRICES
   - Mark the pattern's candles shadow to shadow.
   - Keep the zone width within {self._zone_band_text()} for {context.instrument}; if wider,
     narrow it to the core area nearest current price.
   - Also report the highest and lowest prices visible on the chart's price axis.

Return ONLY valid JSON in this exact format:
{{
  "pair": "{context.instrument}",
  "timeframe": "{self.primary_spec.identifier}",
  "trend": "uptrend|downtrend|sideways",
  "signal": "buy|sell|wait",
  "pattern": "bullish_engulfing|bearish_engulfing|none",
  "zone_type": "support|resistance|none",
  "zone_price_high": 0.0,
  "zone_price_low": 0.0,
  "chart_price_high": 0.0,
  "chart_price_low": 0.0,
  "zone_coordinates": {{"x1": 0, "y1": 0, "x2": 0, "y2": 0}},
  "confidence": 0.0,
  "reasoning": "Brief explanation"
}}"""

    def _entry_prompt(self, context: PromptContext) -> str:
        primary = context.primary
        if primary is None:
            raise ValueError("Entry prompt requires the completed primary analysis")

        zone = self._parent_zone_text(primary)
        expected = {"buy": "BULLISH", "sell": "BEARISH"}.get(primary.signal or "", "ENGULFING")

        return f"""You are analyzing {self._source_phrase(context, self.entry_label)} for swing entry confirmation.

CONTEXT FROM {self.primary_label.upper()} ANALYSIS:
- Signal: {(primary.signal or 'unknown').upper()}
- Pattern: {(primary.pattern or 'unknown').replace('_', ' ').upper()}
- Zone: {zone} ({primary.zone_type or 'n/a'})
- Expected {self.entry_label} pattern: {expected} ENGULFING

Follow these steps:

1. Find a {expected.lower()} engulfing pattern located AT or OVERLAPPING the {self.primary_label} zone ({zone}).
   A strong momentum candle sequence in the same direction is acceptable when no textbook pattern exists.
   The pattern does not need to be the most recent one, but it must be in the zone.

2. Set inside_daily_zone to true only if the pattern's price range overlaps {zone}; otherwise false.

3. Mark the entry zone shadow to shadow, within {self._zone_band_text()}, narrowed to the core overlap
   with the {self.primary_label} zone if needed. Also report the highest and lowest prices visible on the
   chart's price axis.

Return ONLY valid JSON:
{{
  "pair": "{context.instrument}",
  "timeframe": "{self.entry_spec.identifier}",
  "pattern": "bullish_engulfing|bearish_engulfing|none",
  "zone_price_high": 0.0,
  "zone_price_low": 0.0,
  "chart_price_high": 0.0,
  "chart_price_low": 0.0,
  "zone_coordinates": {{"x1": 0, "y1": 0, "x2": 0, "y2": 0}},
  "inside_daily_zone": true,
  "confidence": 0.0,
  "reasoning": "Brief explanation"
}}"""

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def _validate_primary_fields(self, result: TimeframeAnalysis,
                                 errors: List[str], warnings: List[str]) -> None:
        self._require(result, ("trend", "signal", "pattern", "confidence"), errors)
        self._check_enum("trend", result.trend, TRENDS, errors)
        self._check_enum("signal", result.signal, SIGNALS, errors)

        if result.trend == "uptrend" and result.signal == "sell":
            errors.append("TREND MISMATCH: Uptrend should produce buy signals, not sell signals")
        if result.trend == "downtrend" and result.signal == "buy":
            errors.append("TREND MISMATCH: Downtrend should produce sell signals, not buy signals")

        if result.signal in ("buy", "sell") and not result.zone_type:
            warnings.append("Missing zone type for an actionable signal")

        if not has_pattern(result.pattern):
            return
        direction = pattern_direction(result.pattern)
        if result.trend == "uptrend" and direction == "bearish":
            warnings.append("PATTERN MISMATCH: Uptrend should have a bullish pattern, not bearish")
        if result.trend == "downtrend" and direction == "bullish":
            warnings.append("PATTERN MISMATCH: Downtrend should have a bearish pattern, not bullish")
        if result.signal == "buy" and direction == "bearish":
            warnings.append("SIGNAL-PATTERN MISMATCH: Buy signal requires a bullish pattern")
        if result.signal == "sell" and direction == "bullish":
            warnings.append("SIGNAL-PATTERN MISMATCH: Sell signal requires a bearish pattern")
        if direction == "bullish" and result.zone_type == "resistance":
            warnings.append("ZONE MISMATCH: Bullish pattern at resistance")
        if direction == "bearish" and result.zone_type == "support":
            warnings.append("ZONE MISMATCH: Bearish pattern at support")
