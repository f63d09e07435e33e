"""
Boundary schema for AI replies.

Every provider reply is validated here before anything downstream sees
it; unknown shapes and wrongly typed fields become AnalysisFailure.
"""

from typing import Any, Dict, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator

from zonesight.shared.models.analysis import TimeframeAnalysis
from zonesight.shared.utils.error_policy import AnalysisFailure


_LOWERCASE_FIELDS = ("trend", "micro_trend", "signal", "pattern", "zone_type", "momentum", "entry_timing")
_PRICE_FIELDS = ("zone_price_high", "zone_price_low", "chart_price_high", "chart_price_low")


class TimeframePayload(BaseModel):
    """Shape of one timeframe's JSON reply."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    trend: Optional[str] = None
    micro_trend: Optional[str] = None
    signal: Optional[str] = None
    pattern: Optional[str] = None
    zone_type: Optional[str] = None
    zone_price_high: Optional[float] = None
    zone_price_low: Optional[float] = None
    chart_price_high: Optional[float] = None
    chart_price_low: Optional[float] = None
    confidence: Optional[float] = None
    reasoning: str = ""
    momentum: Optional[str] = None
    entry_timing: Optional[str] = None
    inside_parent_zone: Optional[bool] = Field(
        default=None,
        validation_alias=AliasChoices("inside_parent_zone", "inside_daily_zone", "inside_15min_zone"),
    )
    zone_coordinates: Optional[Dict[str, Any]] = None

    @field_validator(*_LOWERCASE_FIELDS)
    @classmethod
    def _normalize_label(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        cleaned = value.strip().lower().replace(" ", "_")
        return cleaned or None

    @field_validator(*_PRICE_FIELDS)
    @classmethod
    def _zero_price_is_unknown(cls, value: Optional[float]) -> Optional[float]:
        # Reply templates use 0.0 as the "not found" placeholder
        if value is None or value == 0:
            return None
        return value

    @field_validator("reasoning", mode="before")
    @classmethod
    def _reasoning_text(cls, value: Any) -> str:
        return "" if value is None else str(value)


def parse_timeframe_payload(
    payload: Any,
    instrument: str,
    timeframe: str,
    source: str = "ai",
) -> TimeframeAnalysis:
    """
    Validate a provider reply and build the TimeframeAnalysis.

    Raises:
        AnalysisFailure: payload is not an object or a field has the wrong type
    """
    if not isinstance(payload, dict):
        raise AnalysisFailure(
            f"AI reply for {timeframe} is not a JSON object (got {type(payload).__name__})",
            timeframe=timeframe,
        )
    try:
        parsed = TimeframePayload.model_validate(payload)
    except ValidationError as e:
        fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in e.errors())
        raise AnalysisFailure(f"AI reply for {timeframe} has invalid fields: {fields}", timeframe=timeframe) from e

    return TimeframeAnalysis(
        instrument=instrument,
        timeframe=timeframe,
        trend=parsed.trend,
        micro_trend=parsed.micro_trend,
        signal=parsed.signal,
        pattern=parsed.pattern,
        zone_type=parsed.zone_type,
        zone_price_high=parsed.zone_price_high,
        zone_price_low=parsed.zone_price_low,
        confidence=parsed.confidence,
        reasoning=parsed.reasoning,
        momentum=parsed.momentum,
        entry_timing=parsed.entry_timing,
        inside_parent_zone=parsed.inside_parent_zone,
        zone_coordinates=parsed.zone_coordinates,
        chart_price_high=parsed.chart_price_high,
        chart_price_low=parsed.chart_price_low,
        source=source,
        raw=dict(payload),
    )
