"""Data model for monitoring samples, session summaries and stored sessions."""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Tuple

logger = logging.getLogger(__name__)


class Posture(str, Enum):
    """Sitting posture as judged by the perception service."""
    GOOD = "GOOD"
    SLOUCHING = "SLOUCHING"
    TOO_CLOSE = "TOO_CLOSE"
    TOO_FAR = "TOO_FAR"
    UNKNOWN = "UNKNOWN"


POSTURE_LABELS: Dict[Posture, str] = {
    Posture.GOOD: "Upright",
    Posture.SLOUCHING: "Slouching",
    Posture.TOO_CLOSE: "Too close",
    Posture.TOO_FAR: "Too far",
    Posture.UNKNOWN: "Unknown",
}


def empty_posture_stats() -> Dict[Posture, int]:
    """Histogram with every posture present at zero."""
    return {posture: 0 for posture in Posture}


@dataclass(frozen=True)
class AnalysisResult:
    """
    One perception sample.

    Immutable once produced; the session history owns it for the
    lifetime of the session.
    """
    timestamp: datetime
    concentration_score: int
    is_looking_at_screen: bool
    posture: Posture
    has_electronic_device: bool
    detected_distractions: Tuple[str, ...] = ()
    feedback: str = ""

    @classmethod
    def from_analysis(cls, data: Dict[str, Any], timestamp: Optional[datetime] = None) -> "AnalysisResult":
        """
        Stamp a normalized perception payload with a capture time.

        Args:
            data: Dict as returned by PerceptionClient.analyze()
            timestamp: Capture time (defaults to now)
        """
        return cls(
            timestamp=timestamp or datetime.now(),
            concentration_score=int(data["concentration_score"]),
            is_looking_at_screen=bool(data["is_looking_at_screen"]),
            posture=Posture(data["posture"]),
            has_electronic_device=bool(data["has_electronic_device"]),
            detected_distractions=tuple(data.get("detected_distractions", ())),
            feedback=str(data.get("feedback", "")),
        )

    @property
    def has_distraction(self) -> bool:
        """True if any distraction label or a device was reported."""
        return bool(self.detected_distractions) or self.has_electronic_device

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "concentration_score": self.concentration_score,
            "is_looking_at_screen": self.is_looking_at_screen,
            "posture": self.posture.value,
            "has_electronic_device": self.has_electronic_device,
            "detected_distractions": list(self.detected_distractions),
            "feedback": self.feedback,
        }


@dataclass
class AlertState:
    consecutive_bad_count: int = 0
    last_alert_at: Optional[float] = None  # Epoch seconds, None = never


@dataclass
class PomodoroState:
    work_seconds: int
    break_seconds: int
    elapsed_seconds: int = 0
    is_on_break: bool = False


@dataclass(frozen=True)
class SessionSummary:
    """End-of-session report derived from the full history."""
    average_score: int
    total_duration_seconds: float
    distraction_count: int
    posture_stats: Dict[Posture, int] = field(default_factory=empty_posture_stats)
    ai_comment: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "average_score": self.average_score,
            "total_duration_seconds": self.total_duration_seconds,
            "distraction_count": self.distraction_count,
            "posture_stats": {p.value: count for p, count in self.posture_stats.items()},
            "ai_comment": self.ai_comment,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SessionSummary":
        """
        Rebuild a summary from its stored form.

        Raises:
            ValueError: If the stored shape is malformed
        """
        if not isinstance(data, dict):
            raise ValueError(f"Summary must be an object, got {type(data).__name__}")

        try:
            average_score = int(data["average_score"])
            total_duration = float(data["total_duration_seconds"])
            distraction_count = int(data["distraction_count"])
            raw_stats = data.get("posture_stats") or {}
            ai_comment = str(data.get("ai_comment", ""))
        except (KeyError, TypeError, ValueError) as e:
            raise ValueError(f"Malformed session summary: {e}") from e

        if not isinstance(raw_stats, dict):
            raise ValueError("posture_stats must be an object")

        # Absent entries are implicitly zero; unknown postures are dropped
        posture_stats = empty_posture_stats()
        for key, count in raw_stats.items():
            try:
                posture_stats[Posture(key)] = int(count)
            except (ValueError, TypeError):
                logger.warning(f"Ignoring unknown posture entry in stored summary: {key!r}")

        return cls(
            average_score=average_score,
            total_duration_seconds=total_duration,
            distraction_count=distraction_count,
            posture_stats=posture_stats,
            ai_comment=ai_comment,
        )


@dataclass(frozen=True)
class StoredSession:
    """A SessionSummary as kept in the recent-sessions log."""
    id: str
    created_at: datetime
    summary: SessionSummary
    earned_coins: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "created_at": self.created_at.isoformat(),
            "summary": self.summary.to_dict(),
            "earned_coins": self.earned_coins,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StoredSession":
        """
        Rebuild a stored session, validating its shape.

        Raises:
            ValueError: If the entry is malformed
        """
        if not isinstance(data, dict):
            raise ValueError(f"Stored session must be an object, got {type(data).__name__}")

        session_id = data.get("id")
        if not isinstance(session_id, str) or not session_id:
            raise ValueError("Stored session is missing an id")

        try:
            created_at = datetime.fromisoformat(data["created_at"])
        except (KeyError, TypeError, ValueError) as e:
            raise ValueError(f"Malformed created_at in stored session: {e}") from e

        try:
            earned_coins = int(data.get("earned_coins", 0) or 0)
        except (TypeError, ValueError) as e:
            raise ValueError(f"Malformed earned_coins in stored session: {e}") from e
        if earned_coins < 0:
            raise ValueError("earned_coins cannot be negative")

        return cls(
            id=session_id,
            created_at=created_at,
            summary=SessionSummary.from_dict(data.get("summary")),
            earned_coins=earned_coins,
        )
