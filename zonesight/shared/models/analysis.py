"""
Per-timeframe data models.

A run captures one chart (image or OHLCV series) per timeframe, asks the AI
provider to interpret it, and validates the interpretation. These are the
records passed between those stages.
"""

from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

import pandas as pd


SIGNALS = ("buy", "sell", "wait")
TRENDS = ("uptrend", "downtrend", "sideways")
MICRO_TRENDS = ("bullish", "bearish", "ranging")
MOMENTUM_LEVELS = ("strong", "moderate", "weak")
ZONE_TYPES = ("support", "resistance")


@dataclass(frozen=True)
class TimeframeSpec:
    """
    A timeframe a strategy analyzes.

    Attributes:
        identifier: Chart interval identifier ('1D', '30', '15', '5')
        bars: Number of bars to capture / fetch
    """
    identifier: str
    bars: int


@dataclass
class CaptureResult:
    """
    Raw capture for one timeframe.

    Exactly one of `image_path` (screenshot mode) or `series` (OHLCV mode)
    is set.
    """
    instrument: str
    timeframe: str
    image_path: Optional[str] = None
    series: Optional[pd.DataFrame] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    captured_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self):
        if (self.image_path is None) == (self.series is None):
            raise ValueError("CaptureResult needs exactly one of image_path or series")

    @property
    def mode(self) -> str:
        return "image" if self.image_path is not None else "series"

    def describe(self) -> Dict[str, Any]:
        """JSON-friendly summary used in reports and progress payloads."""
        info: Dict[str, Any] = {"timeframe": self.timeframe, "mode": self.mode}
        if self.image_path is not None:
            info["path"] = self.image_path
        else:
            info["bars"] = len(self.series)
        return info


@dataclass(frozen=True)
class TimeframeAnalysis:
    """
    Structured interpretation of one timeframe's chart.

    Created once per timeframe per run and never mutated.
    """
    instrument: str
    timeframe: str
    trend: Optional[str] = None
    micro_trend: Optional[str] = None
    signal: Optional[str] = None
    pattern: Optional[str] = None
    zone_type: Optional[str] = None
    zone_price_high: Optional[float] = None
    zone_price_low: Optional[float] = None
    confidence: Optional[float] = None
    reasoning: str = ""
    momentum: Optional[str] = None
    entry_timing: Optional[str] = None
    inside_parent_zone: Optional[bool] = None
    zone_coordinates: Optional[Dict[str, Any]] = None
    chart_price_high: Optional[float] = None
    chart_price_low: Optional[float] = None
    source: str = "ai"
    raw: Dict[str, Any] = field(default_factory=dict)

    @property
    def has_zone(self) -> bool:
        return (
            self.zone_price_high is not None
            and self.zone_price_low is not None
            and self.zone_price_high > self.zone_price_low
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ValidationResult:
    """
    Outcome of a strategy validation pass.

    Validation problems are data, never exceptions. `valid` holds exactly
    when there are no errors; warnings never affect it.
    """
    errors: Tuple[str, ...] = ()
    warnings: Tuple[str, ...] = ()

    @property
    def valid(self) -> bool:
        return not self.errors

    @classmethod
    def from_lists(cls, errors: List[str], warnings: List[str]) -> "ValidationResult":
        return cls(errors=tuple(errors), warnings=tuple(warnings))

    def to_dict(self) -> Dict[str, Any]:
        return {"valid": self.valid, "errors": list(self.errors), "warnings": list(self.warnings)}
