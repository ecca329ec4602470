"""Closes a session: aggregates the history, pays the reward and persists it."""

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional, Sequence

import config
from tracking.analytics import compute_reward, compute_summary_stats
from tracking.economy import Economy
from tracking.models import AnalysisResult, SessionSummary, StoredSession

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CloseResult:
    """Outcome of closing a session. `summary` is None when there was nothing to summarize."""
    summary: Optional[SessionSummary]
    earned_coins: int = 0
    stored_session: Optional[StoredSession] = None

    @classmethod
    def nothing(cls) -> "CloseResult":
        return cls(summary=None)

    @property
    def has_report(self) -> bool:
        return self.summary is not None


def new_session_id(now: float) -> str:
    """Millisecond timestamp plus a short random suffix."""
    return f"{int(now * 1000)}-{uuid.uuid4().hex[:6]}"


class SessionSummarizer:
    """
    Turns a finished history into a SessionSummary and a coin reward.

    Must be called after monitoring has been deactivated.
    """

    def __init__(self, narration, economy: Economy, clock: Callable[[], float] = time.time):
        """
        Args:
            narration: Object with summarize(history, interval_seconds) -> str
            economy: Economy to credit and log the session in
            clock: Returns the current time in seconds
        """
        self.narration = narration
        self.economy = economy
        self.clock = clock

    async def close_session(
        self, history: Sequence[AnalysisResult], interval_seconds: float
    ) -> CloseResult:
        """
        Summarize, reward and persist a finished session.

        An empty history produces no report, no coins and no store write.
        A failing summary call is replaced by a fixed apology; it never
        fails the close.
        """
        if not history:
            logger.info("No samples recorded, nothing to summarize")
            return CloseResult.nothing()

        # Snapshot so a later clear_history() cannot change what we aggregate
        samples = list(history)
        stats = compute_summary_stats(samples, interval_seconds)

        ai_comment = await self._generate_comment(samples, interval_seconds)

        summary = SessionSummary(
            average_score=stats["average_score"],
            total_duration_seconds=stats["total_duration_seconds"],
            distraction_count=stats["distraction_count"],
            posture_stats=stats["posture_stats"],
            ai_comment=ai_comment,
        )
        earned = compute_reward(summary.average_score, summary.total_duration_seconds)

        now = self.clock()
        stored = StoredSession(
            id=new_session_id(now),
            created_at=datetime.fromtimestamp(now),
            summary=summary,
            earned_coins=earned,
        )
        self.economy.record_session(stored, earned)

        logger.info(
            f"Session closed: avg {summary.average_score}, "
            f"{summary.total_duration_seconds:.0f}s, {earned} coins"
        )
        return CloseResult(summary=summary, earned_coins=earned, stored_session=stored)

    async def _generate_comment(self, samples, interval_seconds: float) -> str:
        if self.narration is None:
            return config.SUMMARY_APOLOGY_TEXT
        try:
            comment = await asyncio.to_thread(self.narration.summarize, samples, interval_seconds)
        except Exception as e:
            logger.warning(f"Session summary unavailable, using fallback text: {e}")
            return config.SUMMARY_APOLOGY_TEXT
        if not comment or not str(comment).strip():
            logger.warning("Session summary came back empty, using fallback text")
            return config.SUMMARY_APOLOGY_TEXT
        return str(comment).strip()
