"""Analytics for computing session statistics from analysis samples."""

import math
from typing import Any, Dict, Sequence

from tracking.models import POSTURE_LABELS, AnalysisResult, Posture, empty_posture_stats


def round_half_up(value: float) -> int:
    """
    Round to the nearest integer, with .5 going up.

    Python's round() uses banker's rounding (round(2.5) == 2), which
    would pay 1 coin less on exact halves.
    """
    return int(math.floor(value + 0.5))


def format_duration(seconds: float, full_precision: bool = False) -> str:
    """
    Format duration in seconds to human-readable string.

    Args:
        seconds: Duration in seconds (truncated to int for display)
        full_precision: If True, always show all non-zero time components
                       including seconds even when hours > 0.

    Returns:
        Formatted string like "1 min 30 secs", "45 secs", "2 hrs 15 mins"

    Examples:
        >>> format_duration(90)
        "1 min 30 secs"
        >>> format_duration(3725)
        "1 hr 2 mins"
        >>> format_duration(0)
        "0 sec"
    """
    total_seconds = int(seconds) if seconds >= 0 else 0

    hours = total_seconds // 3600
    remaining_seconds = total_seconds % 3600
    mins = remaining_seconds // 60
    secs = remaining_seconds % 60

    parts = []

    if hours > 0:
        hr_unit = "hr" if hours == 1 else "hrs"
        parts.append(f"{hours} {hr_unit}")

    if mins > 0 or (full_precision and hours > 0):
        min_unit = "min" if mins == 1 else "mins"
        parts.append(f"{mins} {min_unit}")

    if secs > 0 or full_precision:
        if hours == 0 or full_precision:
            sec_unit = "sec" if secs == 1 else "secs"
            parts.append(f"{secs} {sec_unit}")

    return " ".join(parts) if parts else "0 sec"


def compute_summary_stats(
    history: Sequence[AnalysisResult], interval_seconds: float
) -> Dict[str, Any]:
    """
    Aggregate a session's samples.

    Duration comes from sample count times the sampling interval, not wall
    clock, so backoff delays between samples do not inflate it.

    Args:
        history: Samples in arrival order (must be non-empty)
        interval_seconds: Sampling interval the session ran with

    Returns:
        Dictionary with average_score, total_duration_seconds,
        distraction_count and posture_stats (all five postures present).

    Raises:
        ValueError: If history is empty
    """
    if not history:
        raise ValueError("Cannot compute statistics for an empty history")

    total_score = sum(r.concentration_score for r in history)
    average_score = round_half_up(total_score / len(history))

    distraction_count = sum(1 for r in history if r.has_distraction)

    posture_stats = empty_posture_stats()
    for r in history:
        posture_stats[r.posture] += 1

    return {
        "average_score": average_score,
        "total_duration_seconds": len(history) * interval_seconds,
        "distraction_count": distraction_count,
        "posture_stats": posture_stats,
    }


def compute_reward(average_score: int, total_duration_seconds: float) -> int:
    """
    Coins for a closed session.

    Duration is counted in whole minutes with a floor of one, so very short
    sessions still pay for their quality.

    Examples:
        >>> compute_reward(80, 1500)
        200
        >>> compute_reward(50, 10)
        5
    """
    duration_minutes = max(1, round_half_up(total_duration_seconds / 60))
    return max(0, round_half_up((average_score / 10) * duration_minutes))


def generate_summary_text(summary) -> str:
    """
    Plain-text report of a SessionSummary for terminal output.

    Args:
        summary: SessionSummary from a closed session
    """
    lines = [
        f"Average concentration: {summary.average_score}/100",
        f"Study time: {format_duration(summary.total_duration_seconds)}",
        f"Distractions: {summary.distraction_count}",
        "Posture:",
    ]
    for posture in Posture:
        count = summary.posture_stats.get(posture, 0)
        if count:
            lines.append(f"  {POSTURE_LABELS[posture]}: {count}")
    lines.append("")
    lines.append(summary.ai_comment)
    return "\n".join(lines)
