"""
Capture contracts.

A capture provider owns one exclusive resource (a browser page, an exchange
client, a directory handle) for the duration of a run and produces either a
chart image or an OHLCV series per timeframe.
"""
from abc import ABC, abstractmethod
from typing import Any

from zonesight.shared.models.analysis import CaptureResult, TimeframeSpec


class CaptureProvider(ABC):
    """Abstract interface for chart / series capture."""

    @abstractmethod
    async def initialize(self) -> Any:
        """
        Acquire the capture resource.

        Returns:
            Opaque handle passed back to close()
        """
        pass

    @abstractmethod
    async def capture(self, instrument: str, timeframe: TimeframeSpec) -> CaptureResult:
        """
        Capture one timeframe for an instrument.

        Raises:
            CaptureFailure: The chart or series could not be produced
        """
        pass

    @abstractmethod
    async def close(self, handle: Any) -> None:
        """Release the resource acquired by initialize()."""
        pass
