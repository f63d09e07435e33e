"""Data models passed between pipeline stages."""

from zonesight.shared.models.analysis import (
    CaptureResult,
    TimeframeAnalysis,
    TimeframeSpec,
    ValidationResult,
)
from zonesight.shared.models.combined import (
    CombinedAnalysis,
    DrawingInstruction,
    ZoneDescriptor,
)
from zonesight.shared.models.geometry import (
    BandPlacement,
    Calibration,
    PriceTick,
    Rect,
    TextNode,
)

__all__ = [
    # Per-timeframe
    "CaptureResult",
    "TimeframeAnalysis",
    "TimeframeSpec",
    "ValidationResult",
    # Combined
    "CombinedAnalysis",
    "DrawingInstruction",
    "ZoneDescriptor",
    # Geometry
    "BandPlacement",
    "Calibration",
    "PriceTick",
    "Rect",
    "TextNode",
]
