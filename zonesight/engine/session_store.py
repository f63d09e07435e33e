"""
Interactive session state.

A front end (chat bot, TUI) walks a user through market, instrument and
strategy selection before a run is started. Each session's position in that
flow is a SessionStep; moves outside the allowed transitions raise
InvalidTransitionError.
"""
import logging
import threading
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, FrozenSet, Optional

from zonesight.shared.utils.error_policy import InvalidTransitionError

logger = logging.getLogger(__name__)


class SessionStep(str, Enum):
    SELECT_MARKET = "select_market"
    SELECT_INSTRUMENT = "select_instrument"
    SELECT_STRATEGY = "select_strategy"
    PROCESSING = "processing"


# Gold skips instrument selection; back buttons return to market selection
TRANSITIONS: Dict[SessionStep, FrozenSet[SessionStep]] = {
    SessionStep.SELECT_MARKET: frozenset({SessionStep.SELECT_INSTRUMENT, SessionStep.SELECT_STRATEGY}),
    SessionStep.SELECT_INSTRUMENT: frozenset({SessionStep.SELECT_STRATEGY, SessionStep.SELECT_MARKET}),
    SessionStep.SELECT_STRATEGY: frozenset({SessionStep.PROCESSING, SessionStep.SELECT_MARKET}),
    SessionStep.PROCESSING: frozenset({SessionStep.SELECT_MARKET}),
}

_FIELDS = ("market", "instrument", "strategy")


@dataclass(frozen=True)
class AnalysisSession:
    session_id: str
    step: SessionStep = SessionStep.SELECT_MARKET
    market: Optional[str] = None
    instrument: Optional[str] = None
    strategy: Optional[str] = None
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def processing(self) -> bool:
        return self.step is SessionStep.PROCESSING


class SessionStore:
    """In-memory session store, safe to share between threads."""

    def __init__(self):
        self._sessions: Dict[str, AnalysisSession] = {}
        self._lock = threading.Lock()

    def create(self, session_id: str) -> AnalysisSession:
        """Start (or restart) a session at market selection."""
        session = AnalysisSession(session_id=session_id)
        with self._lock:
            self._sessions[session_id] = session
        return session

    def get(self, session_id: str) -> Optional[AnalysisSession]:
        with self._lock:
            return self._sessions.get(session_id)

    def reset(self, session_id: str) -> AnalysisSession:
        logger.debug("Session %s reset", session_id)
        return self.create(session_id)

    def remove(self, session_id: str) -> None:
        with self._lock:
            self._sessions.pop(session_id, None)

    def advance(self, session_id: str, step: SessionStep, **updates: Optional[str]) -> AnalysisSession:
        """
        Move a session to `step`, updating market/instrument/strategy.

        Returning to SELECT_MARKET clears the selections.

        Raises:
            KeyError: Unknown session
            InvalidTransitionError: `step` is not reachable from the current step,
                or a strategy is selected before an instrument
            ValueError: Unknown update field
        """
        unknown = set(updates) - set(_FIELDS)
        if unknown:
            raise ValueError(f"Unknown session fields: {sorted(unknown)}")

        with self._lock:
            current = self._sessions.get(session_id)
            if current is None:
                raise KeyError(session_id)

            if step not in TRANSITIONS[current.step]:
                raise InvalidTransitionError(
                    f"Session {session_id}: cannot move from {current.step.value} to {step.value}"
                )

            if step is SessionStep.SELECT_MARKET:
                updated = AnalysisSession(session_id=session_id)
            else:
                updated = replace(current, step=step, updated_at=datetime.now(timezone.utc), **updates)

            if step is SessionStep.PROCESSING and not (updated.instrument and updated.strategy):
                raise InvalidTransitionError(
                    f"Session {session_id}: instrument and strategy are required before processing"
                )

            self._sessions[session_id] = updated

        logger.debug("Session %s: %s -> %s", session_id, current.step.value, step.value)
        return updated

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
