"""
Zone geometry package.

Provides:
- Price to pixel mapping (explicit range, price-axis ticks, fallback band)
- Price-axis label discovery
- Zone overlay rendering and series chart drawing (Pillow)
"""

from zonesight.geometry.renderer import ZoneRenderer
from zonesight.geometry.series_chart import render_series_chart
from zonesight.geometry.tick_reader import discover_ticks, tick_mapping
from zonesight.geometry.zone_mapper import map_price_range_to_pixels, map_zone

__all__ = [
    "ZoneRenderer",
    "render_series_chart",
    "discover_ticks",
    "tick_mapping",
    "map_price_range_to_pixels",
    "map_zone",
]
