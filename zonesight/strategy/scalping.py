"""
Scalping strategy: 15 minute bias, 5 minute entry.
"""
import logging
from typing import List, Optional

from zonesight.contracts.strategy_contract import PromptContext
from zonesight.shared.config.defaults import ScalpingConfig, ZoneConfig
from zonesight.shared.models.analysis import MICRO_TRENDS, MOMENTUM_LEVELS, SIGNALS, TimeframeAnalysis, TimeframeSpec
from zonesight.strategy.common import TwoTimeframePolicy, has_pattern

logger = logging.getLogger(__name__)


class ScalpingPolicy(TwoTimeframePolicy):
    """15 minute micro-trend + 5 minute confirmation strategy."""

    name = "scalping"
    display_name = "Scalping Signal"

    def __init__(self, config: Optional[ScalpingConfig] = None, zones: Optional[ZoneConfig] = None):
        self.config = config or ScalpingConfig()
        super().__init__(
            primary=TimeframeSpec(self.config.primary_timeframe, self.config.primary_bars),
            entry=TimeframeSpec(self.config.entry_timeframe, self.config.entry_bars),
            confidence_threshold=self.config.confidence_threshold,
            zones=zones,
        )

    @property
    def _zone_style_text(self) -> str:
        if self.config.zone_style == "body_to_body":
            return "body to body"
        return "shadow (wick) to shadow (wick)"

    def _filters_text(self) -> str:
        if self.config.sessions:
            session = f"Only consider setups that align with these sessions: {', '.join(self.config.sessions)}."
        else:
            session = "Consider market session context (Asia/London/New York)."
        if self.config.news_blackout_min > 0:
            news = f"Avoid entries within {self.config.news_blackout_min} minutes of high-impact news."
        else:
            news = "No news blackout filter."
        return f"SESSION FILTER: {session}\nNEWS FILTER: {news}"

    # ------------------------------------------------------------------
    # Prompts
    # ------------------------------------------------------------------

    def _primary_prompt(self, context: PromptContext) -> str:
        patterns = ", ".join(self.config.patterns)
        return f"""You are an expert scalper. Analyze {self._source_phrase(context, self.primary_label)} for quick scalping opportunities.

Follow these steps:

1. MICRO TREND
   - Read the last 20-30 candles: BULLISH (higher highs and higher lows), BEARISH (lower highs and
     lower lows) or RANGING (no clear sequence).

2. IMMEDIATE SUPPORT / RESISTANCE
   - Choose ONE nearby zone from recent price action (last 50-100 candles). When several qualify, prefer
     the most touched, then the most recent, then the cleanest rejection, then the closest to current price.
   - Mark it {self._zone_style_text}, within {self._zone_band_text()} for {context.instrument}.

3. PATTERN
   - BUY: bullish reversal at support or breakout above resistance.
   - SELL: bearish reversal at resistance or breakdown below support.
   - Only use these patterns: {patterns}. A bullish pattern only counts at support, a bearish one only at resistance.

4. MOMENTUM
   - strong, moderate or weak. Avoid choppy, indecisive price action.

5. SIGNAL
   - BULLISH micro trend + bullish pattern = buy; BEARISH + bearish = sell; otherwise wait.
   - Never buy against a bearish micro trend or sell against a bullish one.

{self._filters_text()}

Also report the highest and lowest prices visible on the chart's price axis.

Return ONLY valid JSON:
{{
  "pair": "{context.instrument}",
  "timeframe": "{self.primary_spec.identifier}",
  "micro_trend": "bullish|bearish|ranging",
  "signal": "buy|sell|wait",
  "pattern": "{'|'.join(self.config.patterns)}|none",
  "zone_type": "support|resistance|breakout|none",
  "zone_price_high": 0.0,
  "zone_price_low": 0.0,
  "chart_price_high": 0.0,
  "chart_price_low": 0.0,
  "zone_coordinates": {{"x1": 0, "y1": 0, "x2": 0, "y2": 0}},
  "momentum": "strong|moderate|weak",
  "confidence": 0.0,
  "reasoning": "Brief explanation"
}}"""

    def _entry_prompt(self, context: PromptContext) -> str:
        primary = context.primary
        if primary is None:
            raise ValueError("Entry prompt requires the completed primary analysis")

        zone = self._parent_zone_text(primary)
        expected = {"buy": "BULLISH", "sell": "BEARISH"}.get(primary.signal or "", "CONFIRMATION")

        return f"""You are analyzing {self._source_phrase(context, self.entry_label)} for scalping entry confirmation.

CONTEXT FROM {self.primary_label} ANALYSIS:
- Signal: {(primary.signal or 'unknown').upper()}
- Pattern: {(primary.pattern or 'unknown').replace('_', ' ').upper()}
- Zone: {zone}
- Expected {self.entry_label} pattern: {expected} ({', '.join(self.config.patterns)})

Follow these steps:

1. Find a {expected.lower()} pattern AT or OVERLAPPING the {self.primary_label} zone ({zone}).
   Prefer the last 10-20 candles, but an older pattern inside the zone is acceptable.

2. Set inside_15min_zone to true only if the pattern's price range overlaps {zone}; otherwise false.

3. TIMING: entry_timing is "immediate" if the pattern is within the last 5-10 candles, "wait" if it is
   still forming, "expired" if it is older than 20 candles.

4. Mark a tight entry zone {self._zone_style_text}, within {self._zone_band_text()}, narrowed to the core
   overlap with the {self.primary_label} zone if needed. Also report the highest and lowest prices visible
   on the chart's price axis.

Return ONLY valid JSON:
{{
  "pair": "{context.instrument}",
  "timeframe": "{self.entry_spec.identifier}",
  "pattern": "{'|'.join(self.config.patterns)}|none",
  "zone_price_high": 0.0,
  "zone_price_low": 0.0,
  "chart_price_high": 0.0,
  "chart_price_low": 0.0,
  "zone_coordinates": {{"x1": 0, "y1": 0, "x2": 0, "y2": 0}},
  "inside_15min_zone": true,
  "entry_timing": "immediate|wait|expired",
  "confidence": 0.0,
  "reasoning": "Brief explanation"
}}"""

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def _validate_primary_fields(self, result: TimeframeAnalysis,
                                 errors: List[str], warnings: List[str]) -> None:
        self._require(result, ("micro_trend", "signal", "pattern", "momentum", "confidence"), errors)
        self._check_enum("micro_trend", result.micro_trend, MICRO_TRENDS, errors)
        self._check_enum("signal", result.signal, SIGNALS, errors)
        self._check_enum("momentum", result.momentum, MOMENTUM_LEVELS, errors)

        if result.micro_trend == "bullish" and result.signal == "sell":
            errors.append("TREND MISMATCH: Bullish micro trend should not produce sell signals")
        if result.micro_trend == "bearish" and result.signal == "buy":
            errors.append("TREND MISMATCH: Bearish micro trend should not produce buy signals")

        if result.momentum == "weak":
            warnings.append("Weak momentum detected - scalping may be risky")

        if has_pattern(result.pattern) and result.pattern not in self.config.patterns:
            warnings.append(f"Pattern {result.pattern} is not in the allowed scalping patterns")

    def _validate_entry_fields(self, result: TimeframeAnalysis, parent: Optional[TimeframeAnalysis],
                               errors: List[str], warnings: List[str]) -> None:
        if result.entry_timing == "expired":
            warnings.append("Entry opportunity may have expired")

    # ------------------------------------------------------------------
    # Combination
    # ------------------------------------------------------------------

    def _trend_of(self, primary: TimeframeAnalysis) -> Optional[str]:
        return primary.trend or primary.micro_trend

    def _is_ranging(self, primary: TimeframeAnalysis) -> bool:
        return primary.micro_trend == "ranging" or primary.trend == "sideways"
