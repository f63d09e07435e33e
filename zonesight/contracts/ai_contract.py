"""
AI analysis contract.
"""
from abc import ABC, abstractmethod
from typing import Any, Dict

from zonesight.shared.models.analysis import CaptureResult


class AnalysisProvider(ABC):
    """Abstract interface for the vision / text model."""

    @abstractmethod
    async def analyze(self, capture: CaptureResult, instructions: str) -> Dict[str, Any]:
        """
        Interpret one capture following the strategy's instructions.

        Returns:
            The model's JSON reply as a dict

        Raises:
            AnalysisFailure: The call failed or the reply was not JSON
        """
        pass
