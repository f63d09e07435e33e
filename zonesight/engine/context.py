"""
AnalysisRunContext - per-run state of the analysis pipeline.

Passed through every stage of one run and accumulates its outputs. Failed
per-timeframe stages are recorded here instead of aborting the run.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from zonesight.shared.models.analysis import CaptureResult, TimeframeAnalysis, TimeframeSpec
from zonesight.shared.models.combined import CombinedAnalysis


@dataclass
class AnalysisRunContext:
    """
    State of one instrument/strategy run.

    Pipeline flow:
    1. Capture populates captures (or capture_errors)
    2. Analysis populates analyses (or analysis_errors)
    3. Combination populates combined
    4. Rendering and persistence attach artifacts to combined
    """
    instrument: str
    strategy: str
    run_id: str
    timestamp: datetime
    timeframes: List[TimeframeSpec] = field(default_factory=list)

    captures: Dict[str, CaptureResult] = field(default_factory=dict)
    capture_errors: Dict[str, str] = field(default_factory=dict)
    analyses: Dict[str, TimeframeAnalysis] = field(default_factory=dict)
    analysis_errors: Dict[str, str] = field(default_factory=dict)
    combined: Optional[CombinedAnalysis] = None

    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def identifiers(self) -> List[str]:
        return [spec.identifier for spec in self.timeframes]

    def missing_captures(self) -> List[str]:
        return [tf for tf in self.identifiers if tf not in self.captures]

    def ordered_analyses(self) -> List[TimeframeAnalysis]:
        return [self.analyses[tf] for tf in self.identifiers if tf in self.analyses]

    @property
    def report_id(self) -> str:
        symbol = self.instrument.upper().replace("/", "")
        return f"{symbol}_{self.strategy}_{self.timestamp:%Y%m%d_%H%M%S}_{self.run_id[:8]}"
