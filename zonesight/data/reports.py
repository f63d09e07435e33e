"""
JSON report sink.
"""

import asyncio
import json
from pathlib import Path

from loguru import logger

from zonesight.contracts.report_contract import ReportSink
from zonesight.shared.models.combined import CombinedAnalysis
from zonesight.shared.utils.error_policy import PersistenceFailure


class JsonReportSink(ReportSink):
    """Writes `{report_id}.json` snapshots into a directory."""

    def __init__(self, directory: str):
        self.directory = Path(directory)

    def _write(self, path: Path, text: str) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")

    async def save(self, report_id: str, combined: CombinedAnalysis) -> str:
        path = self.directory / f"{report_id}.json"
        try:
            text = json.dumps(combined.to_dict(), indent=2, default=str)
            await asyncio.to_thread(self._write, path, text)
        except (OSError, TypeError, ValueError) as e:
            raise PersistenceFailure(f"Failed to save report {report_id}: {e}") from e
        logger.info(f"💾 Report saved: {path}")
        return str(path)
