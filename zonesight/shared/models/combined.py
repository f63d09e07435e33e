"""
Cross-timeframe result models.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from zonesight.shared.models.analysis import TimeframeAnalysis, ValidationResult


STATUS_CONFIRMED = "confirmed"
STATUS_WAIT_BREAKOUT = "wait_breakout"
STATUS_REJECTED = "rejected"
STATUS_FORMING = "forming"


@dataclass(frozen=True)
class ZoneDescriptor:
    """
    A price zone to be drawn on one timeframe's chart.

    `is_renderable` holds only when both prices are present and
    price_high > price_low.
    """
    price_high: Optional[float]
    price_low: Optional[float]
    color_hint: str
    label: str
    zone_type: Optional[str] = None
    chart_price_high: Optional[float] = None
    chart_price_low: Optional[float] = None

    @property
    def is_renderable(self) -> bool:
        return (
            self.price_high is not None
            and self.price_low is not None
            and self.price_high > self.price_low
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "price_high": self.price_high,
            "price_low": self.price_low,
            "color_hint": self.color_hint,
            "label": self.label,
            "zone_type": self.zone_type,
            "chart_price_high": self.chart_price_high,
            "chart_price_low": self.chart_price_low,
        }


@dataclass(frozen=True)
class DrawingInstruction:
    """What to draw on one timeframe's chart."""
    timeframe: str
    zone: ZoneDescriptor
    color: str
    label: str
    watermark: Optional[str] = None


# Artifact fields that may be attached once after combination
_ATTACHABLE = ("raw_captures", "output_images", "report_location")


@dataclass
class CombinedAnalysis:
    """
    The combined verdict of one run.

    `valid` is True only if both validations are error-free (which includes
    the entry timeframe's containment flag). `status` is informational.

    Artifacts (raw captures, rendered images, report location) are attached
    after combination; attaching is additive only.
    """
    strategy: str
    instrument: str
    valid: bool
    status: str
    signal: Optional[str]
    trend: Optional[str]
    pattern: Optional[str]
    momentum: Optional[str]
    confidence: float
    primary_zone: ZoneDescriptor
    entry_zone: ZoneDescriptor
    primary: TimeframeAnalysis
    entry: TimeframeAnalysis
    primary_validation: ValidationResult
    entry_validation: ValidationResult
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    raw_captures: Optional[Dict[str, Dict[str, Any]]] = None
    output_images: Optional[Dict[str, str]] = None
    report_location: Optional[str] = None
    rendering_errors: List[str] = field(default_factory=list)

    def attach(self, name: str, value: Any) -> None:
        """
        Attach an artifact field.

        Raises:
            ValueError: Unknown field, or the field is already attached
        """
        if name not in _ATTACHABLE:
            raise ValueError(f"Cannot attach unknown field: {name}")
        if getattr(self, name) is not None:
            raise ValueError(f"Field already attached: {name}")
        setattr(self, name, value)

    def record_rendering_error(self, message: str) -> None:
        self.rendering_errors.append(message)

    @property
    def errors(self) -> List[str]:
        return list(self.primary_validation.errors) + list(self.entry_validation.errors)

    @property
    def warnings(self) -> List[str]:
        return list(self.primary_validation.warnings) + list(self.entry_validation.warnings)

    def to_dict(self) -> Dict[str, Any]:
        """JSON-serializable snapshot used by report sinks."""
        return {
            "strategy": self.strategy,
            "instrument": self.instrument,
            "valid": self.valid,
            "status": self.status,
            "signal": self.signal,
            "trend": self.trend,
            "pattern": self.pattern,
            "momentum": self.momentum,
            "confidence": self.confidence,
            "primary_zone": self.primary_zone.to_dict(),
            "entry_zone": self.entry_zone.to_dict(),
            "primary": self.primary.to_dict(),
            "entry": self.entry.to_dict(),
            "primary_validation": self.primary_validation.to_dict(),
            "entry_validation": self.entry_validation.to_dict(),
            "timestamp": self.timestamp.isoformat(),
            "raw_captures": self.raw_captures,
            "output_images": self.output_images,
            "rendering_errors": list(self.rendering_errors),
        }
