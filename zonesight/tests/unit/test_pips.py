"""
Test suite for pip sizing and zone width validation.
"""

import pytest

from zonesight.shared.utils.pips import (
    format_price,
    pip_size,
    pips_to_price,
    price_width_to_pips,
    validate_zone_size,
)


def test_pip_size_by_instrument():
    assert pip_size("EURUSD") == 0.0001
    assert pip_size("USDJPY") == 0.01
    assert pip_size("USD/JPY") == 0.01
    assert pip_size("XAUUSD") == 0.1
    assert pip_size("XAGUSD") == 0.01
    assert pip_size(None) == 0.0001


def test_pip_size_overrides_take_precedence():
    assert pip_size("XAUUSD", {"XAUUSD": 0.01}) == 0.01
    assert pip_size("EURUSD", {"XAUUSD": 0.01}) == 0.0001


def test_pip_conversions():
    assert pips_to_price("EURUSD", 25) == pytest.approx(0.0025)
    assert price_width_to_pips("XAUUSD", 2.5) == pytest.approx(25)
    assert price_width_to_pips("USDJPY", 0.25) == pytest.approx(25)


def test_format_price_uses_one_extra_decimal():
    assert format_price("EURUSD", 1.1) == "1.10000"
    assert format_price("USDJPY", 150.1) == "150.100"
    assert format_price("XAUUSD", 2000) == "2000.00"


def test_thirty_pip_zone_is_inside_band():
    """1.1050 - 1.1020 is exactly 30 pips despite float noise."""
    check = validate_zone_size("EURUSD", 1.1050, 1.1020)
    assert check.valid
    assert check.actual_pips == pytest.approx(30)
    assert check.error is None


def test_zone_too_narrow():
    check = validate_zone_size("EURUSD", 1.1010, 1.1000)
    assert not check.valid
    assert check.error.startswith("Zone too narrow: 10.0 pips")


def test_zone_too_wide():
    check = validate_zone_size("XAUUSD", 2010.0, 2000.0)
    assert not check.valid
    assert check.actual_pips == pytest.approx(100)
    assert check.error.startswith("Zone too wide: 100.0 pips")


@pytest.mark.parametrize("high,low", [(None, 1.1), (1.1, None), (1.1, 1.1), (1.1, 1.2)])
def test_invalid_zone_prices(high, low):
    check = validate_zone_size("EURUSD", high, low)
    assert not check.valid
    assert check.error == "Invalid zone prices"
