"""
Test suite for price -> pixel zone mapping and tick discovery.
"""

import pytest

from zonesight.geometry.tick_reader import (
    dedupe_ticks,
    discover_ticks,
    parse_tick_text,
    tick_mapping,
)
from zonesight.geometry.zone_mapper import (
    MODE_EXPLICIT,
    MODE_FALLBACK,
    MODE_TICKS,
    map_price_range_to_pixels,
    map_zone,
)
from zonesight.shared.config.defaults import GeometryConfig
from zonesight.shared.models.combined import ZoneDescriptor
from zonesight.shared.models.geometry import Calibration, PriceTick, Rect, TextNode
from zonesight.shared.utils.error_policy import DegenerateTicksError, InvalidZoneError


RECT = Rect(0, 0, 1000, 500)
EXPLICIT = Calibration(visible_high=1.1000, visible_low=1.0900)


def test_explicit_range_mapping():
    """Visible 1.1000-1.0900 padded by 3%: adj_high 1.1003, adj_range 0.0106, plot height 385."""
    band = map_price_range_to_pixels(RECT, 1.0980, 1.0960, EXPLICIT)

    assert band.mode == MODE_EXPLICIT
    assert not band.fallback
    assert band.y_top == pytest.approx(153.54, abs=0.01)
    assert band.y_bottom == pytest.approx(226.18, abs=0.01)
    assert band.height == pytest.approx(band.y_bottom - band.y_top)


def test_price_order_does_not_matter():
    a = map_price_range_to_pixels(RECT, 1.0980, 1.0960, EXPLICIT)
    b = map_price_range_to_pixels(RECT, 1.0960, 1.0980, EXPLICIT)
    assert (a.y_top, a.y_bottom) == (b.y_top, b.y_bottom)


def test_higher_price_maps_higher_on_chart():
    upper = map_price_range_to_pixels(RECT, 1.0990, 1.0985, EXPLICIT)
    lower = map_price_range_to_pixels(RECT, 1.0920, 1.0915, EXPLICIT)
    assert upper.y_top < lower.y_top


def test_thin_zone_is_expanded_to_minimum_height():
    band = map_price_range_to_pixels(RECT, 1.09501, 1.09500, EXPLICIT)
    assert band.height == pytest.approx(18)


def test_zone_outside_visible_range_is_clamped_to_rect():
    band = map_price_range_to_pixels(RECT, 1.2000, 1.1900, EXPLICIT)
    assert band.y_top >= RECT.top
    assert band.y_bottom <= RECT.bottom
    assert band.height >= 18


def test_fallback_band_without_calibration():
    band = map_price_range_to_pixels(RECT, 1.0980, 1.0960)
    assert band.mode == MODE_FALLBACK
    assert band.fallback
    assert band.y_top == pytest.approx(187.5)
    assert band.height == pytest.approx(125)


def test_fallback_band_height_is_clamped():
    band = map_price_range_to_pixels(Rect(0, 0, 1000, 2000), 1.0980, 1.0960)
    assert band.height == pytest.approx(200)


def test_custom_geometry_config():
    config = GeometryConfig(top_inset=0, bottom_inset=0, auto_scale_margin_pct=0)
    band = map_price_range_to_pixels(RECT, 1.0950, 1.0900, EXPLICIT, config)
    assert band.y_top == pytest.approx(250)
    assert band.y_bottom == pytest.approx(500)


def test_tick_mapping_is_linear_between_extremes():
    ticks = [PriceTick(1.1000, 100), PriceTick(1.0950, 200), PriceTick(1.0900, 300)]
    band = map_price_range_to_pixels(RECT, 1.0975, 1.0925, Calibration(ticks=tuple(ticks)))
    assert band.mode == MODE_TICKS
    assert band.y_top == pytest.approx(150)
    assert band.y_bottom == pytest.approx(250)


def test_explicit_range_preferred_over_ticks():
    ticks = (PriceTick(1.1000, 100), PriceTick(1.0900, 300))
    calibration = Calibration(visible_high=1.1000, visible_low=1.0900, ticks=ticks)
    assert map_price_range_to_pixels(RECT, 1.0980, 1.0960, calibration).mode == MODE_EXPLICIT


def test_degenerate_ticks_rejected():
    with pytest.raises(DegenerateTicksError):
        tick_mapping([PriceTick(1.1, 100), PriceTick(1.1, 300)])
    with pytest.raises(ValueError):
        tick_mapping([PriceTick(1.1, 100)])


def test_non_renderable_zone_rejected_before_mapping():
    zone = ZoneDescriptor(price_high=1.0900, price_low=1.1000, color_hint="#0066FF", label="bad")
    with pytest.raises(InvalidZoneError):
        map_zone(RECT, zone)

    missing = ZoneDescriptor(price_high=None, price_low=1.1000, color_hint="#0066FF", label="missing")
    with pytest.raises(InvalidZoneError):
        map_zone(RECT, missing)


def test_map_zone_uses_descriptor_chart_range():
    zone = ZoneDescriptor(
        price_high=1.0980, price_low=1.0960, color_hint="#0066FF", label="Daily BUY ZONE",
        chart_price_high=1.1000, chart_price_low=1.0900,
    )
    band = map_zone(RECT, zone)
    assert band.mode == MODE_EXPLICIT
    assert band.y_top == pytest.approx(153.54, abs=0.01)


@pytest.mark.parametrize("text,expected", [
    ("1.1050", 1.105),
    ("2350.5", 2350.5),
    ("-0.5", -0.5),
    ("12:30", None),
    ("1.10 ", 1.10),
    ("EURUSD", None),
    ("", None),
])
def test_parse_tick_text(text, expected):
    assert parse_tick_text(text) == expected


def _axis_label(text, top, left=1860, width=50, height=16):
    return TextNode(text=text, left=left, top=top, width=width, height=height)


def test_discover_ticks_filters_and_sorts():
    chart = Rect(0, 50, 1800, 800)
    nodes = [
        _axis_label("1.1000", 100),
        _axis_label("1.0950", 400),
        _axis_label("1.0900", 700),
        _axis_label("12:00", 830),                     # time label
        _axis_label("1.0975", 250, left=500),          # far from right edge
        _axis_label("1.0925", 550, width=300),         # too wide
        _axis_label("1.0990", 900),                    # below the chart
        _axis_label("109.50", 300),                    # wrong magnitude
        _axis_label("1.09501", 402),                   # duplicate of 1.0950
    ]

    ticks = discover_ticks(nodes, chart, viewport_width=1920, reference_price=1.095)

    assert [t.price for t in ticks] == [1.09, 1.095, 1.1]
    assert ticks[0].y == pytest.approx(708)
    # Price rises as y falls
    assert ticks[0].y > ticks[1].y > ticks[2].y


def test_dedupe_ticks_keeps_first_of_close_prices():
    ticks = dedupe_ticks([PriceTick(100.05, 10), PriceTick(100.0, 12), PriceTick(101.0, 0)])
    assert [t.price for t in ticks] == [100.0, 101.0]


RECTS = [Rect(0, 0, 1000, 500), Rect(40, 30, 800, 160), Rect(0, 100, 1600, 900), Rect(10, 0, 300, 120)]
PRICE_RANGES = [
    (1.1000, 1.0900),   # EURUSD
    (152.40, 149.80),   # USDJPY
    (2415.0, 2330.0),   # XAUUSD
    (0.6550, 0.6549),   # nearly flat
]
ZONE_FRACTIONS = [(0.9, 0.8), (0.55, 0.5), (0.501, 0.5), (1.4, 1.2), (-0.1, -0.3)]


@pytest.mark.parametrize("rect", RECTS)
@pytest.mark.parametrize("visible_high,visible_low", PRICE_RANGES)
@pytest.mark.parametrize("upper,lower", ZONE_FRACTIONS)
def test_every_band_is_ordered_inside_rect_and_tall_enough(rect, visible_high, visible_low, upper, lower):
    span = visible_high - visible_low
    high, low = visible_low + span * upper, visible_low + span * lower
    config = GeometryConfig()

    for calibration in (
        Calibration(visible_high=visible_high, visible_low=visible_low),
        Calibration(ticks=(PriceTick(visible_high, rect.top + 10), PriceTick(visible_low, rect.bottom - 10))),
        None,
    ):
        band = map_price_range_to_pixels(rect, high, low, calibration, config)
        assert band.y_top < band.y_bottom
        assert band.height >= min(config.min_band_height, rect.height) - 1e-9
        assert rect.top - 1e-9 <= band.y_top
        assert band.y_bottom <= rect.bottom + 1e-9


TICK_SETS = [
    [PriceTick(1.1000, 100), PriceTick(1.0900, 300)],
    [PriceTick(1.0900, 700), PriceTick(1.0950, 400), PriceTick(1.1000, 100)],
    [PriceTick(2400.0, 50), PriceTick(2350.0, 250), PriceTick(2300.0, 450), PriceTick(2250.0, 650)],
    [PriceTick(150.0, 820), PriceTick(152.5, 20)],
]


@pytest.mark.parametrize("ticks", TICK_SETS)
def test_tick_mapping_is_strictly_decreasing_in_price(ticks):
    price_to_y = tick_mapping(ticks)
    low = min(t.price for t in ticks)
    high = max(t.price for t in ticks)
    prices = [low + (high - low) * k / 10 for k in range(-2, 13)]
    rows = [price_to_y(p) for p in prices]
    assert all(a > b for a, b in zip(rows, rows[1:]))


@pytest.mark.parametrize("ticks", TICK_SETS)
def test_tick_mapping_passes_through_extreme_ticks(ticks):
    price_to_y = tick_mapping(ticks)
    lowest = min(ticks, key=lambda t: t.price)
    highest = max(ticks, key=lambda t: t.price)
    assert price_to_y(lowest.price) == pytest.approx(lowest.y)
    assert price_to_y(highest.price) == pytest.approx(highest.y)
