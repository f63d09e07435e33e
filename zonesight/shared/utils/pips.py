"""
Pip utilities.

Converts price widths to pips per instrument class and checks a zone's
width against the configured [min, max] band.
"""

from dataclasses import dataclass
from typing import Mapping, Optional

DEFAULT_PIP_SIZE = 0.0001

# Substring -> pip size. Checked in order, first match wins.
_PIP_RULES = (
    ("JPY", 0.01),
    ("XAU", 0.1),   # Gold: 1.0 move = 10 pips
    ("GOLD", 0.1),
    ("XAG", 0.01),
)


@dataclass(frozen=True)
class ZoneWidthCheck:
    """Outcome of a zone width check."""
    valid: bool
    actual_pips: float
    error: Optional[str] = None


def _normalize(instrument: Optional[str]) -> str:
    return str(instrument or "").upper().replace("/", "").replace("_", "")


def pip_size(instrument: Optional[str], overrides: Optional[Mapping[str, float]] = None) -> float:
    """
    Return the pip size for an instrument.

    Args:
        instrument: Instrument symbol (e.g. 'EURUSD', 'USD/JPY', 'XAUUSD')
        overrides: Optional explicit symbol -> pip size mapping

    Returns:
        Price increment of one pip
    """
    symbol = _normalize(instrument)
    if overrides:
        for key, size in overrides.items():
            if _normalize(key) == symbol:
                return float(size)
    if not symbol:
        return DEFAULT_PIP_SIZE
    for marker, size in _PIP_RULES:
        if marker in symbol:
            return size
    return DEFAULT_PIP_SIZE


def pips_to_price(instrument: Optional[str], pips: float,
                  overrides: Optional[Mapping[str, float]] = None) -> float:
    return pip_size(instrument, overrides) * pips


def price_width_to_pips(instrument: Optional[str], price_width: float,
                        overrides: Optional[Mapping[str, float]] = None) -> float:
    size = pip_size(instrument, overrides)
    if not size:
        return 0.0
    return price_width / size


def format_price(instrument: Optional[str], price: float,
                 overrides: Optional[Mapping[str, float]] = None) -> str:
    """Format a price with one more decimal than the pip precision."""
    size = pip_size(instrument, overrides)
    decimals = max(0, len(f"{size:.10f}".rstrip("0").split(".")[1]) + 1) if size < 1 else 2
    return f"{price:.{decimals}f}"


def validate_zone_size(
    instrument: Optional[str],
    zone_price_high: Optional[float],
    zone_price_low: Optional[float],
    min_pips: float = 20,
    max_pips: float = 30,
    overrides: Optional[Mapping[str, float]] = None,
) -> ZoneWidthCheck:
    """
    Check that a zone's width in pips lies inside [min_pips, max_pips].

    Returns:
        ZoneWidthCheck with the measured width and an error message when
        the zone is malformed, too narrow or too wide.
    """
    if not zone_price_high or not zone_price_low or zone_price_high <= zone_price_low:
        return ZoneWidthCheck(valid=False, actual_pips=0.0, error="Invalid zone prices")

    # Rounded so that float noise (1.1050 - 1.1020) does not push 30 pips over a 30 pip limit
    actual_pips = round(price_width_to_pips(instrument, zone_price_high - zone_price_low, overrides), 6)

    if actual_pips < min_pips:
        return ZoneWidthCheck(
            valid=False,
            actual_pips=actual_pips,
            error=f"Zone too narrow: {actual_pips:.1f} pips (minimum: {min_pips:g} pips)",
        )
    if actual_pips > max_pips:
        return ZoneWidthCheck(
            valid=False,
            actual_pips=actual_pips,
            error=f"Zone too wide: {actual_pips:.1f} pips (maximum: {max_pips:g} pips)",
        )
    return ZoneWidthCheck(valid=True, actual_pips=actual_pips)
