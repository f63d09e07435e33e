"""
Geometry data models for mapping prices onto chart pixels.
"""

from dataclasses import dataclass
from typing import Optional, Tuple


@dataclass(frozen=True)
class Rect:
    """Axis-aligned rectangle in pixel space (origin top-left, y grows down)."""
    left: float
    top: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.left + self.width

    @property
    def bottom(self) -> float:
        return self.top + self.height


@dataclass(frozen=True)
class TextNode:
    """A rendered text element found on a chart surface."""
    text: str
    left: float
    top: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.left + self.width

    @property
    def bottom(self) -> float:
        return self.top + self.height

    @property
    def center_y(self) -> float:
        return self.top + self.height / 2


@dataclass(frozen=True)
class PriceTick:
    """A numeric price-axis label and the pixel row of its centre."""
    price: float
    y: float


@dataclass(frozen=True)
class Calibration:
    """
    How prices map to pixel rows on one chart.

    Explicit range wins over ticks; with neither, the fallback band is used.
    """
    visible_high: Optional[float] = None
    visible_low: Optional[float] = None
    ticks: Tuple[PriceTick, ...] = ()

    @property
    def has_explicit_range(self) -> bool:
        return (
            self.visible_high is not None
            and self.visible_low is not None
            and self.visible_high > self.visible_low
        )


@dataclass(frozen=True)
class BandPlacement:
    """Pixel placement of a zone band on a chart."""
    y_top: float
    y_bottom: float
    height: float
    mode: str  # explicit | ticks | fallback
    fallback: bool = False
