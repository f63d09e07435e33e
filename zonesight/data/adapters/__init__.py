"""Capture provider adapters."""

from zonesight.data.adapters.ccxt_series import CcxtSeriesCapture
from zonesight.data.adapters.file_capture import DirectoryChartCapture

__all__ = ["CcxtSeriesCapture", "DirectoryChartCapture"]
