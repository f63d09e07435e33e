"""
Price-axis tick discovery.

Reads numeric price labels off a rendered chart (text nodes with their
bounding boxes) and turns the two extreme labels into a linear
price -> pixel row mapping.
"""

import re
from typing import Callable, Iterable, List, Optional, Sequence, Tuple

from loguru import logger

from zonesight.shared.config.defaults import GeometryConfig
from zonesight.shared.models.geometry import PriceTick, Rect, TextNode
from zonesight.shared.utils.error_policy import DegenerateTicksError


_NUMERIC = re.compile(r"^[-+]?\d*\.?\d+$")


def magnitude_band(reference_price: Optional[float], factor: float = 5.0) -> Tuple[float, float]:
    """Plausible (exclusive) price band for an instrument."""
    if reference_price is not None and reference_price > 0:
        return reference_price / factor, reference_price * factor
    return 0.0, 1e6


def parse_tick_text(text: str) -> Optional[float]:
    """Return the price if `text` is exactly a number, else None. Time labels are rejected."""
    candidate = (text or "").strip()
    if not candidate or ":" in candidate or not _NUMERIC.match(candidate):
        return None
    return float(candidate)


def discover_ticks(
    nodes: Iterable[TextNode],
    chart_rect: Rect,
    viewport_width: float,
    reference_price: Optional[float] = None,
    config: Optional[GeometryConfig] = None,
) -> List[PriceTick]:
    """
    Find price-axis labels among rendered text nodes.

    A node qualifies when it sits near the viewport's right edge, has a
    label-sized box, overlaps the chart vertically, is exactly numeric and
    falls in the instrument's magnitude band. Near-identical prices are
    collapsed.

    Args:
        nodes: Text nodes with bounding boxes
        chart_rect: Main chart rectangle
        viewport_width: Width of the rendering viewport
        reference_price: Known approximate price of the instrument, if any
        config: Geometry constants

    Returns:
        Ticks sorted by ascending price (may hold fewer than two)
    """
    cfg = config or GeometryConfig()
    low, high = magnitude_band(reference_price, cfg.tick_magnitude_factor)

    candidates: List[PriceTick] = []
    for node in nodes:
        if not (cfg.tick_min_width < node.width < cfg.tick_max_width):
            continue
        if not (cfg.tick_min_height < node.height < cfg.tick_max_height):
            continue
        if viewport_width - node.right > cfg.tick_edge_distance:
            continue
        if not (node.bottom > chart_rect.top and node.top < chart_rect.bottom):
            continue
        price = parse_tick_text(node.text)
        if price is None or not (low < price < high):
            continue
        candidates.append(PriceTick(price=price, y=node.center_y))

    return dedupe_ticks(candidates, cfg.tick_dedupe_tolerance)


def dedupe_ticks(ticks: Sequence[PriceTick], tolerance: float = 0.001) -> List[PriceTick]:
    """Sort by price and drop ticks within `tolerance` (relative) of the previous kept one."""
    unique: List[PriceTick] = []
    for tick in sorted(ticks, key=lambda t: t.price):
        if not unique:
            unique.append(tick)
            continue
        last = unique[-1]
        scale = max(abs(tick.price), 1e-12)
        if abs(tick.price - last.price) / scale > tolerance:
            unique.append(tick)
    return unique


def tick_mapping(ticks: Sequence[PriceTick]) -> Callable[[float], float]:
    """
    Build price -> y from the lowest and highest priced ticks.

    Raises:
        ValueError: Fewer than two ticks
        DegenerateTicksError: The reference ticks share a price
    """
    if len(ticks) < 2:
        raise ValueError("At least two ticks are required")
    ordered = sorted(ticks, key=lambda t: t.price)
    t0, t1 = ordered[0], ordered[-1]
    if abs(t1.price - t0.price) < 1e-9:
        raise DegenerateTicksError(f"Reference ticks share price {t0.price}")

    slope = (t1.y - t0.y) / (t1.price - t0.price)
    logger.debug(
        f"Tick mapping from {t0.price}@y{t0.y:.0f} to {t1.price}@y{t1.y:.0f} ({len(ticks)} ticks)"
    )

    def price_to_y(price: float) -> float:
        return t0.y + (price - t0.price) * slope

    return price_to_y
