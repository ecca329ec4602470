"""Work/break timer that ticks once a second while a session is active."""

import logging
from typing import TYPE_CHECKING, Any, Callable, Dict, Optional, Tuple

import config
from storage.catalog import DEFAULT_VOICE_ID
from tracking.models import PomodoroState

if TYPE_CHECKING:
    from core.timers import Scheduler, TimerHandle
    from tracking.session import ActivityToken

logger = logging.getLogger(__name__)

PHASE_BREAK = "break"
PHASE_WORK = "work"

# voice style -> (start-break phrase, resume-work phrase)
POMODORO_PHRASES: Dict[str, Tuple[str, str]] = {
    "gentle": (
        "Great job, you've been focused for a whole round! Get up, stretch a little "
        "and rest your eyes, you deserve a short break.",
        "Break's over, welcome back to class. Let's keep focusing together.",
    ),
    "strict": (
        "Your focus block is complete. Take your break now: stand up, do your eye "
        "exercises and stretch.",
        "Break time is over. Return to your seat and concentrate on the lesson.",
    ),
    "energetic": (
        "Awesome! A full focus round done! Jump up, move around, stretch it out and "
        "give those eyes a rest!",
        "Break's over! Back to your seat and let's crush this next round with full energy!",
    ),
    "calm": (
        "You have stayed focused for a full round. Slowly stand up, do some gentle "
        "stretches and let your body and eyes relax.",
        "Your break has ended. Calmly return to your seat and continue your learning journey.",
    ),
    "motivational": (
        "Excellent! You powered through a full focus round. Stand up, stretch and "
        "recharge for the next one!",
        "Break's over. Back to your seat, stay focused, your journey to success continues!",
    ),
}


def start_break_phrase(voice_id: str) -> str:
    return POMODORO_PHRASES.get(voice_id, POMODORO_PHRASES[DEFAULT_VOICE_ID])[0]


def resume_work_phrase(voice_id: str) -> str:
    return POMODORO_PHRASES.get(voice_id, POMODORO_PHRASES[DEFAULT_VOICE_ID])[1]


class PomodoroTimer:
    """
    Alternates Work and Break phases on a one-second cadence, independent
    of the capture cadence.

    Work -> Break when elapsed_seconds reaches work_seconds (elapsed keeps
    counting). Break -> Work when it reaches work_seconds + break_seconds,
    and elapsed_seconds resets to 0. Each transition speaks a canned phrase
    in the active voice style.
    """

    def __init__(
        self,
        speech,
        voice_id_getter: Callable[[], str],
        scheduler: "Scheduler",
        work_seconds: int = config.DEFAULT_POMODORO_WORK_MINUTES * 60,
        break_seconds: int = config.DEFAULT_POMODORO_BREAK_MINUTES * 60,
    ):
        self.speech = speech
        self.voice_id_getter = voice_id_getter
        self.scheduler = scheduler
        self.state = PomodoroState(work_seconds=work_seconds, break_seconds=break_seconds)
        self.on_phase_change: Optional[Callable[[bool], None]] = None

        self._handle: Optional["TimerHandle"] = None
        self._token: Optional["ActivityToken"] = None
        self._is_current: Optional[Callable[["ActivityToken"], bool]] = None

    @property
    def elapsed_seconds(self) -> int:
        return self.state.elapsed_seconds

    @property
    def is_on_break(self) -> bool:
        return self.state.is_on_break

    @property
    def is_running(self) -> bool:
        return self._handle is not None

    def set_durations(self, work_minutes: int, break_minutes: int) -> None:
        """
        Change phase lengths. Takes effect from the next tick.

        Raises:
            ValueError: If a duration is not a whole number of minutes within
                config.POMODORO_WORK_RANGE / POMODORO_BREAK_RANGE
        """
        for name, minutes, (low, high) in (
            ("work", work_minutes, config.POMODORO_WORK_RANGE),
            ("break", break_minutes, config.POMODORO_BREAK_RANGE),
        ):
            if isinstance(minutes, bool) or not isinstance(minutes, int):
                raise ValueError(f"Pomodoro {name} minutes must be a whole number, got {minutes!r}")
            if not low <= minutes <= high:
                raise ValueError(f"Pomodoro {name} minutes must be between {low} and {high}, got {minutes}")

        self.state.work_seconds = work_minutes * 60
        self.state.break_seconds = break_minutes * 60
        logger.info(f"Pomodoro set to {work_minutes} min work / {break_minutes} min break")

    def start(self, token: "ActivityToken", is_current: Callable[["ActivityToken"], bool]) -> None:
        """
        Begin ticking for a session activation.

        Args:
            token: Activation the ticks belong to
            is_current: Checks whether the token is still the live activation
        """
        self._cancel_handle()
        self._token = token
        self._is_current = is_current
        self._schedule()

    def _schedule(self) -> None:
        self._handle = self.scheduler.call_later(1.0, self._on_timer)

    def _on_timer(self) -> None:
        self._handle = None
        if self._token is None or self._is_current is None or not self._is_current(self._token):
            return
        self.tick()
        # A phase announcement callback may have stopped the session
        if self._token is not None and self._is_current(self._token):
            self._schedule()

    def tick(self) -> Optional[str]:
        """
        Advance one second.

        Returns:
            PHASE_BREAK or PHASE_WORK when a transition happened, else None.
        """
        state = self.state
        state.elapsed_seconds += 1

        if not state.is_on_break and state.elapsed_seconds >= state.work_seconds:
            state.is_on_break = True
            logger.info(f"Pomodoro: work phase done after {state.elapsed_seconds}s, starting break")
            self._announce(start_break_phrase(self.voice_id_getter()))
            return PHASE_BREAK

        if state.is_on_break and state.elapsed_seconds >= state.work_seconds + state.break_seconds:
            state.is_on_break = False
            state.elapsed_seconds = 0
            logger.info("Pomodoro: break over, resuming work")
            self._announce(resume_work_phrase(self.voice_id_getter()))
            return PHASE_WORK

        return None

    def _announce(self, phrase: str) -> None:
        self.speech.say(phrase, self.voice_id_getter())
        if self.on_phase_change:
            try:
                self.on_phase_change(self.state.is_on_break)
            except Exception as e:
                logger.debug(f"on_phase_change callback error: {e}")

    def _cancel_handle(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def stop(self) -> None:
        """Cancel ticking and zero the phase state."""
        self._cancel_handle()
        self._token = None
        self._is_current = None
        self.reset()

    def reset(self) -> None:
        """Back to the start of a Work phase. Ticking, if any, continues."""
        self.state.elapsed_seconds = 0
        self.state.is_on_break = False

    def snapshot(self) -> Dict[str, Any]:
        return {
            "elapsed_seconds": self.state.elapsed_seconds,
            "is_on_break": self.state.is_on_break,
            "work_seconds": self.state.work_seconds,
            "break_seconds": self.state.break_seconds,
        }
