"""Decides when a run of bad samples deserves a spoken intervention."""

import logging
from typing import Callable, Optional

import config
from tracking.models import AlertState, AnalysisResult, Posture

logger = logging.getLogger(__name__)


def is_bad_state(result: AnalysisResult) -> bool:
    """
    A sample is bad if concentration is low, posture is not upright,
    or an electronic device is in use.
    """
    return (
        result.concentration_score < config.LOW_CONCENTRATION_SCORE
        or result.posture != Posture.GOOD
        or result.has_electronic_device
    )


def validate_threshold(threshold: int) -> int:
    low, high = config.ALERT_THRESHOLD_RANGE
    if not isinstance(threshold, int) or not low <= threshold <= high:
        raise ValueError(f"Alert threshold must be between {low} and {high}, got {threshold!r}")
    return threshold


class AlertDebouncer:
    """
    Turns a stream of samples into sparse voice alerts.

    A single bad frame (motion blur, a brief glance away) never speaks.
    Once `threshold` consecutive bad samples are seen the sample's own
    feedback line is spoken, then nothing more until the cooldown has
    passed, however long the bad state lasts.

    One instance per engine; the counters are never module-level state.
    """

    def __init__(
        self,
        speech,
        voice_id_getter: Callable[[], str],
        clock: Callable[[], float],
        threshold: int = config.DEFAULT_ALERT_THRESHOLD,
        cooldown_seconds: float = config.VOICE_COOLDOWN_SECONDS,
    ):
        """
        Args:
            speech: SpeechOutput (non-blocking say())
            voice_id_getter: Returns the currently active voice style id
            clock: Returns the current time in seconds
            threshold: Consecutive bad samples needed to speak (1-3)
            cooldown_seconds: Minimum gap between two alerts
        """
        self.speech = speech
        self.voice_id_getter = voice_id_getter
        self.clock = clock
        self.threshold = validate_threshold(threshold)
        self.cooldown_seconds = cooldown_seconds
        self.state = AlertState()
        self.on_alert: Optional[Callable[[str], None]] = None

    @property
    def consecutive_bad_count(self) -> int:
        return self.state.consecutive_bad_count

    @property
    def last_alert_at(self) -> Optional[float]:
        return self.state.last_alert_at

    def set_threshold(self, threshold: int) -> None:
        self.threshold = validate_threshold(threshold)
        logger.info(f"Voice alert threshold set to {threshold}")

    def observe(self, result: AnalysisResult) -> bool:
        """
        Feed one sample.

        Returns:
            True if an alert fired for this sample.
        """
        if is_bad_state(result):
            self.state.consecutive_bad_count += 1
        else:
            self.state.consecutive_bad_count = 0

        if self.state.consecutive_bad_count < self.threshold:
            return False

        now = self.clock()
        last = self.state.last_alert_at
        if last is not None and now - last <= self.cooldown_seconds:
            logger.debug(f"Alert suppressed by cooldown ({now - last:.1f}s since last)")
            return False

        self.speech.say(result.feedback, self.voice_id_getter())
        self.state.last_alert_at = now
        self.state.consecutive_bad_count = 0
        logger.info(f"Voice alert fired: {result.feedback!r}")

        if self.on_alert:
            try:
                self.on_alert(result.feedback)
            except Exception as e:
                logger.debug(f"on_alert callback error: {e}")
        return True

    def preview(self, text: str, voice_id: Optional[str] = None):
        """
        Play text regardless of threshold, cooldown or session activity.
        Alert state is left untouched.
        """
        return self.speech.say(text, voice_id or self.voice_id_getter())

    def reset(self) -> None:
        """Forget the current bad streak. The cooldown clock is kept."""
        self.state.consecutive_bad_count = 0
