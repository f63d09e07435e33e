"""
Error policy - typed failures for the analysis pipeline.

Pipeline-fatal failures (unknown strategy, no capture resource, missing
timeframe data, too few analyses) propagate out of the orchestrator.
Per-timeframe and best-effort failures (single capture, rendering,
persistence) are recorded on the run context and never abort the run.

Validation problems are NOT exceptions: they are carried as data on
ValidationResult so callers can explain why a setup is invalid.
"""

from typing import Optional, Sequence


class ZoneSightError(Exception):
    """Base class for all pipeline errors."""


class UnknownStrategyError(ZoneSightError):
    """Raised when a strategy name does not resolve to a registered policy."""

    def __init__(self, name: str, available: Sequence[str] = ()):
        self.name = name
        self.available = tuple(available)
        hint = f" (available: {', '.join(self.available)})" if self.available else ""
        super().__init__(f"Unknown strategy: {name}{hint}")


class CaptureFailure(ZoneSightError):
    """Raised when a chart image or series cannot be produced."""

    def __init__(self, message: str, timeframe: Optional[str] = None):
        self.timeframe = timeframe
        super().__init__(message)


class InsufficientTimeframeDataError(ZoneSightError):
    """Raised when a required timeframe produced no capture at all."""

    def __init__(self, missing: Sequence[str], captured: Sequence[str] = ()):
        self.missing = tuple(missing)
        self.captured = tuple(captured)
        super().__init__(
            f"Insufficient timeframe data: missing {', '.join(self.missing)}"
        )


class AnalysisFailure(ZoneSightError):
    """Raised when the AI (or fallback) cannot produce a usable analysis."""

    def __init__(self, message: str, timeframe: Optional[str] = None):
        self.timeframe = timeframe
        super().__init__(message)


class RenderingFailure(ZoneSightError):
    """Raised when a zone overlay cannot be drawn. Non-fatal for a run."""


class PersistenceFailure(ZoneSightError):
    """Raised when a report snapshot cannot be saved. Non-fatal for a run."""


class InvalidZoneError(ZoneSightError):
    """Raised when a zone descriptor is rejected before geometry mapping."""


class DegenerateTicksError(ZoneSightError):
    """Raised when the two reference price ticks carry the same price."""


class InvalidTransitionError(ZoneSightError):
    """Raised when a session is moved to a step it cannot reach."""
