"""
Report persistence contract.
"""
from abc import ABC, abstractmethod

from zonesight.shared.models.combined import CombinedAnalysis


class ReportSink(ABC):
    """Abstract interface for saving run reports."""

    @abstractmethod
    async def save(self, report_id: str, combined: CombinedAnalysis) -> str:
        """
        Persist a JSON snapshot of a combined analysis.

        Returns:
            Location of the saved report

        Raises:
            PersistenceFailure: The report could not be written
        """
        pass
