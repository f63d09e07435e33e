"""Pipeline engine: orchestrator, run context and session store."""

from zonesight.engine.context import AnalysisRunContext
from zonesight.engine.orchestrator import BatchResult, Orchestrator
from zonesight.engine.session_store import AnalysisSession, SessionStep, SessionStore

__all__ = [
    "AnalysisRunContext",
    "BatchResult",
    "Orchestrator",
    "AnalysisSession",
    "SessionStep",
    "SessionStore",
]
