"""
Directory capture adapter (screenshot mode).

Serves pre-captured chart screenshots named `{INSTRUMENT}_{timeframe}.png`.
An optional sidecar `{INSTRUMENT}_{timeframe}.json` may describe the chart
area and the price-axis labels seen when the screenshot was taken:

    {"chart_rect": [left, top, width, height],
     "viewport_width": 1920,
     "text_nodes": [{"text": "1.1050", "left": .., "top": .., "width": .., "height": ..}]}
"""

import json
from pathlib import Path
from typing import Any, Dict

from loguru import logger

from zonesight.contracts.capture_contract import CaptureProvider
from zonesight.shared.models.analysis import CaptureResult, TimeframeSpec
from zonesight.shared.utils.error_policy import CaptureFailure


def screenshot_name(instrument: str, timeframe: str) -> str:
    symbol = instrument.upper().replace("/", "").replace("_", "")
    return f"{symbol}_{timeframe}.png"


class DirectoryChartCapture(CaptureProvider):
    """CaptureProvider over a directory of chart screenshots."""

    def __init__(self, directory: str):
        self.directory = Path(directory)

    async def initialize(self) -> Any:
        if not self.directory.is_dir():
            raise CaptureFailure(f"Screenshot directory not found: {self.directory}")
        logger.info(f"Screenshot capture using {self.directory}")
        return self.directory

    async def capture(self, instrument: str, timeframe: TimeframeSpec) -> CaptureResult:
        path = self.directory / screenshot_name(instrument, timeframe.identifier)
        if not path.is_file():
            raise CaptureFailure(f"No screenshot for {instrument} {timeframe.identifier} at {path}",
                                 timeframe=timeframe.identifier)
        return CaptureResult(
            instrument=instrument,
            timeframe=timeframe.identifier,
            image_path=str(path),
            metadata=self._sidecar(path),
        )

    def _sidecar(self, image_path: Path) -> Dict[str, Any]:
        sidecar = image_path.with_suffix(".json")
        if not sidecar.is_file():
            return {}
        try:
            data = json.loads(sidecar.read_text())
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Ignoring unreadable sidecar {sidecar}: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    async def close(self, handle: Any) -> None:
        logger.debug(f"Screenshot capture released ({handle})")
