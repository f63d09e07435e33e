"""
Strategy policy contract.

A policy decides which two timeframes to analyze, what to ask the AI about
each, how to validate each answer and how to combine them into one verdict.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional

from zonesight.shared.models.analysis import TimeframeAnalysis, TimeframeSpec, ValidationResult
from zonesight.shared.models.combined import CombinedAnalysis, DrawingInstruction


@dataclass(frozen=True)
class PromptContext:
    """
    Inputs for building one timeframe's instructions.

    Attributes:
        instrument: Instrument symbol
        mode: 'image' (screenshot) or 'series' (OHLCV digest)
        primary: Completed primary analysis (entry prompt only)
        series_digest: Formatted OHLCV digest (series mode only)
    """
    instrument: str
    mode: str = "image"
    primary: Optional[TimeframeAnalysis] = None
    series_digest: Optional[str] = None


class StrategyPolicy(ABC):
    """Abstract interface for a two-timeframe trading strategy."""

    name: str = ""

    @abstractmethod
    def get_timeframes(self) -> List[TimeframeSpec]:
        """Return exactly two specs: [primary, entry]."""
        pass

    @abstractmethod
    def build_prompt(self, index: int, context: PromptContext) -> str:
        """
        Build the AI instructions for timeframe `index`.

        The entry prompt (index 1) requires context.primary.
        """
        pass

    @abstractmethod
    def validate(
        self,
        index: int,
        result: TimeframeAnalysis,
        parent: Optional[TimeframeAnalysis] = None,
    ) -> ValidationResult:
        """Validate one timeframe's analysis. Never raises for bad data."""
        pass

    @abstractmethod
    def combine(self, primary: TimeframeAnalysis, entry: TimeframeAnalysis) -> CombinedAnalysis:
        """Combine both analyses into one verdict."""
        pass

    @abstractmethod
    def drawing_instructions(self, combined: CombinedAnalysis) -> List[DrawingInstruction]:
        """Return one drawing instruction per timeframe, primary first."""
        pass
