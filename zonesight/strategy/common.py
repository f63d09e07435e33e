"""
Shared machinery for two-timeframe strategy policies.

Both strategies analyze a primary (bias) timeframe and an entry
(confirmation) timeframe, validate each answer, and combine them. The
parts that do not depend on the strategy live here: confidence and zone
width checks, the containment rule, status derivation, zone descriptors
and drawing instructions.
"""
import logging
from typing import List, Optional, Tuple

from zonesight.contracts.strategy_contract import PromptContext, StrategyPolicy
from zonesight.shared.config.defaults import ZoneConfig
from zonesight.shared.models.analysis import ZONE_TYPES, TimeframeAnalysis, TimeframeSpec, ValidationResult
from zonesight.shared.models.combined import (
    STATUS_CONFIRMED,
    STATUS_FORMING,
    STATUS_REJECTED,
    STATUS_WAIT_BREAKOUT,
    CombinedAnalysis,
    DrawingInstruction,
    ZoneDescriptor,
)
from zonesight.shared.utils.pips import format_price, validate_zone_size

logger = logging.getLogger(__name__)


CONTAINMENT_ERROR = "Entry pattern is not inside the {parent} zone (containment rule)"

_BULLISH_MARKERS = ("bullish", "breakout", "hammer")
_BEARISH_MARKERS = ("bearish", "breakdown", "shooting_star")


def pattern_direction(pattern: Optional[str]) -> Optional[str]:
    """Classify a pattern name as 'bullish', 'bearish' or None (neutral/unknown)."""
    name = (pattern or "").lower()
    if any(marker in name for marker in _BULLISH_MARKERS):
        return "bullish"
    if any(marker in name for marker in _BEARISH_MARKERS):
        return "bearish"
    return None


def has_pattern(pattern: Optional[str]) -> bool:
    return bool(pattern) and pattern.strip().lower() not in ("none", "null", "")


def timeframe_label(identifier: str) -> str:
    """Human label for a timeframe identifier: '1D' -> 'Daily', '30' -> '30M'."""
    ident = str(identifier).strip()
    if ident.upper() in ("1D", "D", "DAILY"):
        return "Daily"
    if ident.isdigit():
        return f"{ident}M"
    return ident.upper()


def pretty_pattern(pattern: Optional[str]) -> str:
    return (pattern or "none").replace("_", " ").upper()


def _missing(value) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


class TwoTimeframePolicy(StrategyPolicy):
    """
    Base class for Swing and Scalping.

    Subclasses supply the timeframe specs, the prompts and the
    strategy-specific parts of validation through `_validate_primary_fields`
    and `_validate_entry_fields`.
    """

    name = ""
    display_name = ""

    def __init__(
        self,
        primary: TimeframeSpec,
        entry: TimeframeSpec,
        confidence_threshold: float,
        zones: Optional[ZoneConfig] = None,
    ):
        self.primary_spec = primary
        self.entry_spec = entry
        self.confidence_threshold = confidence_threshold
        self.zones = zones or ZoneConfig()

    # ------------------------------------------------------------------
    # Timeframes
    # ------------------------------------------------------------------

    def get_timeframes(self) -> List[TimeframeSpec]:
        return [self.primary_spec, self.entry_spec]

    @property
    def primary_label(self) -> str:
        return timeframe_label(self.primary_spec.identifier)

    @property
    def entry_label(self) -> str:
        return timeframe_label(self.entry_spec.identifier)

    # ------------------------------------------------------------------
    # Prompts
    # ------------------------------------------------------------------

    def build_prompt(self, index: int, context: PromptContext) -> str:
        if index == 0:
            prompt = self._primary_prompt(context)
        elif index == 1:
            prompt = self._entry_prompt(context)
        else:
            raise ValueError(f"Timeframe index must be 0 or 1, got {index}")
        if context.mode == "series" and context.series_digest:
            prompt = f"{prompt}\n\nCHART DATA:\n{context.series_digest}"
        return prompt

    def _primary_prompt(self, context: PromptContext) -> str:
        raise NotImplementedError

    def _entry_prompt(self, context: PromptContext) -> str:
        raise NotImplementedError

    def _source_phrase(self, context: PromptContext, label: str) -> str:
        if context.mode == "series":
            return f"{context.instrument} {label} OHLCV data (digest below)"
        return f"a {context.instrument} {label} chart screenshot"

    def _zone_band_text(self) -> str:
        return f"{self.zones.min_pips:g}-{self.zones.max_pips:g} pips"

    def _parent_zone_text(self, primary: Optional[TimeframeAnalysis]) -> str:
        if primary is None or primary.zone_price_low is None or primary.zone_price_high is None:
            return "N/A"
        return (
            f"{format_price(primary.instrument, primary.zone_price_low, self.zones.pip_overrides)} - "
            f"{format_price(primary.instrument, primary.zone_price_high, self.zones.pip_overrides)}"
        )

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validate(
        self,
        index: int,
        result: TimeframeAnalysis,
        parent: Optional[TimeframeAnalysis] = None,
    ) -> ValidationResult:
        errors: List[str] = []
        warnings: List[str] = []

        if index == 0:
            self._validate_primary_fields(result, errors, warnings)
            self._check_zone_type(result, warnings)
        elif index == 1:
            self._validate_entry_common(result, parent, errors, warnings)
            self._validate_entry_fields(result, parent, errors, warnings)
        else:
            raise ValueError(f"Timeframe index must be 0 or 1, got {index}")

        self._check_confidence(result, index, errors, warnings)
        self._check_zone_width(result, warnings)

        validation = ValidationResult.from_lists(errors, warnings)
        logger.debug(
            "%s %s validation: valid=%s errors=%d warnings=%d",
            self.name, result.timeframe, validation.valid, len(errors), len(warnings),
        )
        return validation

    def _validate_primary_fields(self, result: TimeframeAnalysis,
                                 errors: List[str], warnings: List[str]) -> None:
        raise NotImplementedError

    def _validate_entry_fields(self, result: TimeframeAnalysis, parent: Optional[TimeframeAnalysis],
                               errors: List[str], warnings: List[str]) -> None:
        """Hook for strategy-specific entry checks."""

    def _require(self, result: TimeframeAnalysis, fields: Tuple[str, ...], errors: List[str]) -> None:
        for name in fields:
            if _missing(getattr(result, name)):
                errors.append(f"Missing required field: {name}")

    def _check_enum(self, label: str, value: Optional[str], allowed: Tuple[str, ...],
                    errors: List[str]) -> None:
        if value is not None and value not in allowed:
            errors.append(f"Invalid {label}: {value}")

    def _check_zone_type(self, result: TimeframeAnalysis, warnings: List[str]) -> None:
        # "none" is the reply template's placeholder for a wait signal
        if result.zone_type not in (None, "none") and result.zone_type not in ZONE_TYPES:
            warnings.append(f"Invalid zone type: {result.zone_type}")

    def _check_confidence(self, result: TimeframeAnalysis, index: int,
                          errors: List[str], warnings: List[str]) -> None:
        confidence = result.confidence
        if confidence is None:
            return
        if confidence < 0 or confidence > 1:
            errors.append(f"Invalid confidence: {confidence}")
            return
        if confidence < self.confidence_threshold:
            label = self.primary_label if index == 0 else self.entry_label
            warnings.append(
                f"{label} confidence {confidence:.2f} below threshold {self.confidence_threshold:.2f}"
            )

    def _check_zone_width(self, result: TimeframeAnalysis, warnings: List[str]) -> None:
        if result.zone_price_high is None or result.zone_price_low is None:
            return
        check = validate_zone_size(
            result.instrument,
            result.zone_price_high,
            result.zone_price_low,
            self.zones.min_pips,
            self.zones.max_pips,
            self.zones.pip_overrides,
        )
        if not check.valid:
            warnings.append(check.error)

    def _validate_entry_common(self, result: TimeframeAnalysis, parent: Optional[TimeframeAnalysis],
                               errors: List[str], warnings: List[str]) -> None:
        if not has_pattern(result.pattern):
            errors.append("Missing entry pattern")

        if result.inside_parent_zone is not True:
            errors.append(CONTAINMENT_ERROR.format(parent=self.primary_label))

        if parent is not None and has_pattern(result.pattern):
            direction = pattern_direction(result.pattern)
            if parent.signal == "buy" and direction != "bullish":
                warnings.append(
                    f"{self.entry_label} pattern {result.pattern} does not match {self.primary_label} buy signal"
                )
            elif parent.signal == "sell" and direction != "bearish":
                warnings.append(
                    f"{self.entry_label} pattern {result.pattern} does not match {self.primary_label} sell signal"
                )

    # ------------------------------------------------------------------
    # Combination
    # ------------------------------------------------------------------

    def combine(self, primary: TimeframeAnalysis, entry: TimeframeAnalysis) -> CombinedAnalysis:
        primary_validation = self.validate(0, primary)
        entry_validation = self.validate(1, entry, parent=primary)
        valid = primary_validation.valid and entry_validation.valid

        confidence = (float(primary.confidence or 0.0) + float(entry.confidence or 0.0)) / 2

        combined = CombinedAnalysis(
            strategy=self.name,
            instrument=primary.instrument,
            valid=valid,
            status=self._status(primary, primary_validation, entry_validation),
            signal=primary.signal,
            trend=self._trend_of(primary),
            pattern=primary.pattern,
            momentum=primary.momentum,
            confidence=confidence,
            primary_zone=self._zone_descriptor(primary, primary.signal, primary=True),
            entry_zone=self._zone_descriptor(entry, primary.signal, primary=False),
            primary=primary,
            entry=entry,
            primary_validation=primary_validation,
            entry_validation=entry_validation,
        )
        logger.info(
            "%s %s combined: valid=%s status=%s signal=%s confidence=%.3f",
            self.name, combined.instrument, combined.valid, combined.status,
            combined.signal, combined.confidence,
        )
        return combined

    def _trend_of(self, primary: TimeframeAnalysis) -> Optional[str]:
        return primary.trend

    def _is_ranging(self, primary: TimeframeAnalysis) -> bool:
        return primary.trend == "sideways"

    def _status(self, primary: TimeframeAnalysis, primary_validation: ValidationResult,
                entry_validation: ValidationResult) -> str:
        if not primary_validation.valid:
            return STATUS_REJECTED
        if primary.signal == "wait" or self._is_ranging(primary):
            return STATUS_WAIT_BREAKOUT
        if not entry_validation.valid:
            return STATUS_FORMING
        return STATUS_CONFIRMED

    def _color_for(self, signal: Optional[str]) -> str:
        return self.zones.buy_color if signal == "buy" else self.zones.sell_color

    def _zone_descriptor(self, analysis: TimeframeAnalysis, signal: Optional[str],
                         primary: bool) -> ZoneDescriptor:
        return ZoneDescriptor(
            price_high=analysis.zone_price_high,
            price_low=analysis.zone_price_low,
            color_hint=self._color_for(signal),
            label=self._zone_label(analysis, signal, primary),
            zone_type=analysis.zone_type,
            chart_price_high=analysis.chart_price_high,
            chart_price_low=analysis.chart_price_low,
        )

    def _zone_label(self, analysis: TimeframeAnalysis, signal: Optional[str], primary: bool) -> str:
        side = "BUY" if signal == "buy" else "SELL" if signal == "sell" else "WAIT"
        if primary:
            return f"{self.primary_label} {side} ZONE - {pretty_pattern(analysis.pattern)}"
        return f"{self.entry_label} Entry - {pretty_pattern(analysis.pattern)}"

    def drawing_instructions(self, combined: CombinedAnalysis) -> List[DrawingInstruction]:
        instructions = []
        for spec, zone in ((self.primary_spec, combined.primary_zone),
                           (self.entry_spec, combined.entry_zone)):
            instructions.append(DrawingInstruction(
                timeframe=spec.identifier,
                zone=zone,
                color=zone.color_hint,
                label=zone.label,
                watermark=f"{combined.instrument} | {self.name.upper()} | {timeframe_label(spec.identifier)}",
            ))
        return instructions
