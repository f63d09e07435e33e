"""
Zone geometry: price range -> pixel rows on a chart.

Calibration modes, in priority order:

1. Explicit visible range: the chart's visible high/low are known. The
   rendering surface pads that range by an auto-scale margin and reserves
   a top toolbar and a bottom time axis, so
   y(p) = rect.top + top_inset + (adj_high - p) / adj_range * plot_height.
2. Tick labels: a linear map between the lowest and highest price labels
   read off the axis.
3. Fallback band: a fixed band in the middle of the chart, flagged as
   approximate.

All modes are normalized the same way: higher price on top, clamped to
the chart, at least `min_band_height` tall.
"""

from typing import Optional

from loguru import logger

from zonesight.geometry.tick_reader import tick_mapping
from zonesight.shared.config.defaults import GeometryConfig
from zonesight.shared.models.combined import ZoneDescriptor
from zonesight.shared.models.geometry import BandPlacement, Calibration, Rect
from zonesight.shared.utils.error_policy import InvalidZoneError


MODE_EXPLICIT = "explicit"
MODE_TICKS = "ticks"
MODE_FALLBACK = "fallback"


def explicit_price_to_y(price: float, rect: Rect, visible_high: float, visible_low: float,
                        config: Optional[GeometryConfig] = None) -> float:
    cfg = config or GeometryConfig()
    raw_range = visible_high - visible_low
    margin = raw_range * cfg.auto_scale_margin_pct
    adj_high = visible_high + margin
    adj_range = raw_range + 2 * margin
    plot_height = max(1.0, rect.height - cfg.top_inset - cfg.bottom_inset)
    return rect.top + cfg.top_inset + (adj_high - price) / adj_range * plot_height


def fallback_band(rect: Rect, config: Optional[GeometryConfig] = None):
    """(y_top, y_bottom) of the generic band used when nothing calibrates the chart."""
    cfg = config or GeometryConfig()
    height = min(cfg.fallback_max_height,
                 max(cfg.fallback_min_height, rect.height * cfg.fallback_height_fraction))
    y_top = rect.top + rect.height * cfg.fallback_top_fraction
    return y_top, y_top + height


def normalize_band(y_a: float, y_b: float, rect: Rect, min_height: float):
    """
    Order, clamp and pad a band to the chart rectangle.

    Returns:
        (y_top, y_bottom) with y_top < y_bottom whenever rect.height > 0
    """
    y_top, y_bottom = min(y_a, y_b), max(y_a, y_b)
    y_top = max(rect.top, min(y_top, rect.bottom))
    y_bottom = max(rect.top, min(y_bottom, rect.bottom))

    min_h = min(min_height, rect.height)
    if y_bottom - y_top < min_h:
        center = (y_top + y_bottom) / 2
        y_top = center - min_h / 2
        y_bottom = center + min_h / 2
        if y_top < rect.top:
            y_bottom += rect.top - y_top
            y_top = rect.top
        if y_bottom > rect.bottom:
            y_top -= y_bottom - rect.bottom
            y_bottom = rect.bottom
    return y_top, y_bottom


def map_price_range_to_pixels(
    rect: Rect,
    price_high: float,
    price_low: float,
    calibration: Optional[Calibration] = None,
    config: Optional[GeometryConfig] = None,
) -> BandPlacement:
    """
    Place a price range on a chart.

    Args:
        rect: Chart rectangle in pixels
        price_high: Upper zone price (order of the two prices is not relied on)
        price_low: Lower zone price
        calibration: Explicit visible range and/or price ticks
        config: Geometry constants

    Returns:
        BandPlacement; `fallback=True` when the placement is approximate

    Raises:
        DegenerateTicksError: Tick mode with equal-priced reference ticks
    """
    cfg = config or GeometryConfig()
    calibration = calibration or Calibration()
    top_price, bottom_price = max(price_high, price_low), min(price_high, price_low)

    if calibration.has_explicit_range:
        mode = MODE_EXPLICIT
        y_a = explicit_price_to_y(top_price, rect, calibration.visible_high, calibration.visible_low, cfg)
        y_b = explicit_price_to_y(bottom_price, rect, calibration.visible_high, calibration.visible_low, cfg)
    elif len(calibration.ticks) >= 2:
        mode = MODE_TICKS
        price_to_y = tick_mapping(calibration.ticks)
        y_a, y_b = price_to_y(top_price), price_to_y(bottom_price)
    else:
        mode = MODE_FALLBACK
        y_a, y_b = fallback_band(rect, cfg)

    y_top, y_bottom = normalize_band(y_a, y_b, rect, cfg.min_band_height)
    placement = BandPlacement(
        y_top=y_top,
        y_bottom=y_bottom,
        height=y_bottom - y_top,
        mode=mode,
        fallback=mode == MODE_FALLBACK,
    )
    logger.debug(
        f"Zone {bottom_price}-{top_price} -> y {placement.y_top:.1f}-{placement.y_bottom:.1f} ({mode})"
    )
    return placement


def map_zone(
    rect: Rect,
    zone: ZoneDescriptor,
    calibration: Optional[Calibration] = None,
    config: Optional[GeometryConfig] = None,
) -> BandPlacement:
    """
    Place a zone descriptor on a chart.

    When no calibration is given, the descriptor's own visible chart range
    (if any) is used.

    Raises:
        InvalidZoneError: The descriptor is not renderable
    """
    if not zone.is_renderable:
        raise InvalidZoneError(
            f"Zone '{zone.label}' is not renderable (high={zone.price_high}, low={zone.price_low})"
        )
    if calibration is None:
        calibration = Calibration(visible_high=zone.chart_price_high, visible_low=zone.chart_price_low)
    return map_price_range_to_pixels(rect, zone.price_high, zone.price_low, calibration, config)
