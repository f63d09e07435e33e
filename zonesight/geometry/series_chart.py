"""
Candlestick chart drawing for series-mode captures.

Series captures have no screenshot, so a chart is drawn from the OHLCV
frame. It uses the same explicit-range calibration as the zone mapper, so
zone bands drawn on it line up with the plotted candles.
"""

from pathlib import Path
from typing import Optional, Tuple

import numpy as np
import pandas as pd
from loguru import logger
from PIL import Image, ImageDraw

from zonesight.analysis.series_formatter import visible_range
from zonesight.geometry.renderer import _load_font
from zonesight.geometry.zone_mapper import explicit_price_to_y
from zonesight.shared.config.defaults import GeometryConfig, RenderConfig
from zonesight.shared.models.geometry import Calibration, Rect
from zonesight.shared.utils.error_policy import RenderingFailure
from zonesight.shared.utils.pips import format_price


BACKGROUND = (19, 23, 34)
GRID = (42, 46, 57)
UP = (38, 166, 154)
DOWN = (239, 83, 80)
AXIS_TEXT = (178, 181, 190)

AXIS_WIDTH = 80
AXIS_LABELS = 8


def render_series_chart(
    frame: pd.DataFrame,
    output_path: str,
    instrument: Optional[str] = None,
    title: Optional[str] = None,
    max_candles: int = 150,
    geometry: Optional[GeometryConfig] = None,
    render: Optional[RenderConfig] = None,
) -> Tuple[str, Calibration]:
    """
    Draw a candlestick chart of the last `max_candles` bars.

    Returns:
        (output_path, calibration) where calibration carries the explicit
        visible range used for the drawing

    Raises:
        RenderingFailure: Empty or flat frame, or the image could not be saved
    """
    geo = geometry or GeometryConfig()
    cfg = render or RenderConfig()

    data = frame.tail(max_candles)
    if data.empty:
        raise RenderingFailure("Cannot draw a chart from an empty series")

    high, low = visible_range(data)
    if not high > low:
        raise RenderingFailure(f"Flat series, cannot scale chart (high={high}, low={low})")

    width, height = cfg.chart_width, cfg.chart_height
    rect = Rect(0, 0, width, height)
    image = Image.new("RGB", (width, height), BACKGROUND)
    draw = ImageDraw.Draw(image)
    font = _load_font(max(10, cfg.font_size - 4))

    def y_of(price: float) -> float:
        return explicit_price_to_y(price, rect, high, low, geo)

    plot_right = width - AXIS_WIDTH
    for price in np.linspace(low, high, AXIS_LABELS):
        y = y_of(float(price))
        draw.line([(0, y), (plot_right, y)], fill=GRID, width=1)
        draw.text((plot_right + 6, y - 7), format_price(instrument, float(price)), fill=AXIS_TEXT, font=font)

    slot = plot_right / len(data)
    body = max(1.0, slot * 0.6)
    for i, (o, h, l, c) in enumerate(data[["open", "high", "low", "close"]].itertuples(index=False, name=None)):
        color = UP if c >= o else DOWN
        cx = slot * i + slot / 2
        draw.line([(cx, y_of(h)), (cx, y_of(l))], fill=color, width=1)
        top, bottom = sorted((y_of(o), y_of(c)))
        draw.rectangle([cx - body / 2, top, cx + body / 2, max(top + 1, bottom)], fill=color)

    if title:
        draw.text((10, 10), title, fill=AXIS_TEXT, font=_load_font(cfg.font_size))

    try:
        Path(output_path).parent.mkdir(parents=True, exist_ok=True)
        image.save(output_path, format="PNG")
    except OSError as e:
        raise RenderingFailure(f"Failed to save series chart: {e}") from e

    logger.debug(f"Series chart drawn ({len(data)} candles) -> {output_path}")
    return output_path, Calibration(visible_high=high, visible_low=low)
