"""Runtime state for one monitoring session."""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from tracking.models import AnalysisResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ActivityToken:
    """
    Snapshot of the session generation a loop was started for.

    Loops carry the token through every await and compare it against the
    live session before acting; a stop or restart makes older tokens stale.
    """
    generation: int


class MonitoringSession:
    """
    Process-wide state for one "class": activity flag, sample history,
    latest sample and the last user-visible diagnostic.

    History is append-only and time-ordered for the lifetime of the session;
    it is the sole input to end-of-session aggregation.
    """

    def __init__(self):
        self.is_active: bool = False
        self.history: List[AnalysisResult] = []
        self.latest: Optional[AnalysisResult] = None
        self.last_error: Optional[str] = None
        self.generation: int = 0
        self.started_at: Optional[datetime] = None

    def activate(self) -> ActivityToken:
        """
        Mark the session active and open a new generation.

        Returns:
            Token identifying this activation.
        """
        self.generation += 1
        self.is_active = True
        self.last_error = None
        if self.started_at is None:
            self.started_at = datetime.now()
        logger.info(f"Monitoring activated (generation {self.generation})")
        return ActivityToken(self.generation)

    def deactivate(self) -> None:
        """Mark inactive. Outstanding tokens become stale immediately."""
        if self.is_active:
            logger.info(f"Monitoring deactivated (generation {self.generation})")
        self.is_active = False

    def token(self) -> ActivityToken:
        return ActivityToken(self.generation)

    def is_current(self, token: ActivityToken) -> bool:
        """True while the session is active and no newer activation exists."""
        return self.is_active and token.generation == self.generation

    def record(self, result: AnalysisResult) -> None:
        """Append a sample, make it the latest and clear any diagnostic."""
        if self.history and result.timestamp < self.history[-1].timestamp:
            # Never reorder; keep the capture order and note the clock skew
            logger.warning(
                f"Sample timestamp {result.timestamp.isoformat()} precedes previous "
                f"{self.history[-1].timestamp.isoformat()}"
            )
        self.history.append(result)
        self.latest = result
        self.last_error = None

    def set_error(self, message: str) -> None:
        self.last_error = message

    def reset(self) -> None:
        """Start over with an empty history. The generation keeps counting."""
        self.history = []
        self.latest = None
        self.last_error = None
        self.started_at = None

    def drop_reported(self, count: int) -> None:
        """
        Remove the first `count` samples after they were summarized.
        Samples recorded since (a restart during summarizing) are kept.
        """
        remaining = self.history[count:]
        if not remaining:
            self.reset()
            return
        self.history = remaining
        self.started_at = remaining[0].timestamp

    @property
    def sample_count(self) -> int:
        return len(self.history)
