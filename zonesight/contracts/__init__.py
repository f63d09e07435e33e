"""Interfaces between the pipeline and its providers."""

from zonesight.contracts.ai_contract import AnalysisProvider
from zonesight.contracts.capture_contract import CaptureProvider
from zonesight.contracts.report_contract import ReportSink
from zonesight.contracts.strategy_contract import PromptContext, StrategyPolicy

__all__ = [
    "AnalysisProvider",
    "CaptureProvider",
    "ReportSink",
    "PromptContext",
    "StrategyPolicy",
]
