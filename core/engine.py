"""
MonitoringEngine: core orchestration for a FocusClass monitoring session.

Wires the capture loop, alert debouncer, pomodoro timer, summarizer and
coin economy together. Has ZERO UI dependencies: a front end supplies the
frame source, calls engine methods and receives updates via callbacks.

Callbacks:
    on_status_change(status: str, text: str)
    on_result(result: AnalysisResult)
    on_error(error_type: str, message: str)
    on_alert(text: str)
    on_pomodoro_phase(is_on_break: bool)
    on_session_ended(close_result: CloseResult)
"""

import logging
from typing import Any, Callable, Dict, Optional

import config
from ai.errors import ErrorKind
from ai.speech import SpeechOutput
from core.capture_scheduler import CaptureScheduler
from core.timers import LoopScheduler, Scheduler
from storage.catalog import VOICES
from storage.store import JsonFileStore, SessionStore
from tracking.alerts import AlertDebouncer
from tracking.economy import Economy, PurchaseResult
from tracking.models import AnalysisResult
from tracking.pomodoro import PomodoroTimer
from tracking.session import MonitoringSession
from tracking.summarizer import CloseResult, SessionSummarizer

logger = logging.getLogger(__name__)

VOICE_PREVIEW_TEXT = "Hi! This is how I'll sound when I remind you to stay focused in class."


class MonitoringEngine:
    """
    Core session management engine.

    Handles:
    - Session lifecycle (start, pause, stop with report)
    - Capture loop and pomodoro timer on one event loop
    - Voice alerts through the debouncer
    - Coin rewards, purchases and preferences

    All methods must be called from the event loop thread.
    """

    # ------------------------------------------------------------------
    # Initialisation
    # ------------------------------------------------------------------

    def __init__(
        self,
        frame_source: Callable[[], Any],
        perception,
        narration=None,
        store: Optional[SessionStore] = None,
        scheduler: Optional[Scheduler] = None,
        interval_seconds: float = config.DEFAULT_MONITOR_INTERVAL_SECONDS,
        alert_threshold: int = config.DEFAULT_ALERT_THRESHOLD,
    ) -> None:
        """
        Args:
            frame_source: Returns a camera frame or None while not ready
            perception: Object with analyze(image_bytes) -> dict
            narration: Object with speak() and summarize(); None for local speech only
            store: Persistence backend (defaults to the JSON file in the user data dir)
            scheduler: Timer facility (defaults to the running asyncio loop)
            interval_seconds: Sampling interval, one of MONITOR_INTERVAL_CHOICES
            alert_threshold: Consecutive bad samples before a voice alert
        """
        self.scheduler = scheduler or LoopScheduler()
        self.store = store if store is not None else JsonFileStore(config.STORE_FILE)
        self.economy = Economy(self.store)
        self.economy.load()

        self.session = MonitoringSession()
        self.current_status: str = "idle"
        self.perception = perception
        self._closing = False

        self.speech = SpeechOutput(narration, self.scheduler)
        self.debouncer = AlertDebouncer(
            self.speech, self._active_voice, self.scheduler.now, threshold=alert_threshold
        )
        self.pomodoro = PomodoroTimer(self.speech, self._active_voice, self.scheduler)
        self.capture = CaptureScheduler(
            self.session, frame_source, perception, self.debouncer, self.scheduler,
            interval_seconds=interval_seconds,
        )
        self.summarizer = SessionSummarizer(narration, self.economy, self.scheduler.now)

        # ---- Callbacks (set by the front end) ----
        self.on_status_change: Optional[Callable[[str, str], None]] = None
        self.on_result: Optional[Callable[[AnalysisResult], None]] = None
        self.on_error: Optional[Callable[[str, str], None]] = None
        self.on_alert: Optional[Callable[[str], None]] = None
        self.on_pomodoro_phase: Optional[Callable[[bool], None]] = None
        self.on_session_ended: Optional[Callable[[CloseResult], None]] = None

        self.capture.on_result = self._handle_result
        self.capture.on_error = self._handle_capture_error
        self.capture.on_fatal = self._handle_fatal
        self.debouncer.on_alert = self._handle_alert
        self.pomodoro.on_phase_change = self._handle_phase_change

    def _active_voice(self) -> str:
        return self.economy.active_voice_id

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------

    def start_monitoring(self) -> Dict:
        """
        Start (or resume) monitoring.

        Returns:
            {"success": bool, "error": str | None, "error_type": str | None}
            error_type values: "already_running", "no_api_key"
        """
        if self.session.is_active:
            return {"success": False, "error": "Monitoring already running", "error_type": "already_running"}

        if not getattr(self.perception, "api_key", True):
            provider = config.VISION_PROVIDER.upper()
            return {
                "success": False,
                "error": f"{provider} API key not found. Set {provider}_API_KEY in your .env file.",
                "error_type": "no_api_key",
            }

        token = self.session.activate()
        self.debouncer.reset()
        self.capture.start()
        self.pomodoro.start(token, self.session.is_current)

        self._notify_status_change("monitoring", "Monitoring")
        logger.info(f"Monitoring started (interval {self.capture.interval_seconds:g}s)")
        return {"success": True, "error": None, "error_type": None}

    def pause_monitoring(self) -> None:
        """
        Stop sampling but keep the history, so monitoring can be resumed
        and the session reported later.
        """
        if not self.session.is_active:
            return
        self._halt()
        self._notify_status_change("paused", "Paused")
        logger.info("Monitoring paused")

    async def stop_and_report(self) -> CloseResult:
        """
        Stop monitoring and close the session.

        Only one close runs at a time: a call made while another is still
        summarizing returns an empty result instead of paying the same
        samples again.

        Returns:
            CloseResult; `summary` is None when no samples were recorded,
            a close is already running, or the report could not be saved.
        """
        if self._closing:
            logger.info("Session close already in progress, ignoring stop")
            return CloseResult.nothing()

        self._closing = True
        try:
            self._halt()
            self._notify_status_change("summarizing", "Generating report...")

            reported = list(self.session.history)
            try:
                result = await self.summarizer.close_session(reported, self.capture.interval_seconds)
            except OSError as e:
                # Nothing was credited; keep the samples so the user can retry
                logger.error(f"Failed to save session report: {e}")
                self.session.set_error(config.DIAGNOSTIC_STORE_FAILED)
                self._notify_error("store", config.DIAGNOSTIC_STORE_FAILED)
                self._notify_status_change("idle", "Ready to Start")
                return CloseResult.nothing()

            if result.has_report:
                # Paid samples must never be reported twice
                self.session.drop_reported(len(reported))
        finally:
            self._closing = False

        self._notify_status_change("idle", "Ready to Start")
        if self.on_session_ended:
            try:
                self.on_session_ended(result)
            except Exception as e:
                logger.debug(f"on_session_ended callback error: {e}")
        return result

    def clear_history(self) -> bool:
        """
        Discard recorded samples. Only allowed while monitoring is stopped.

        Returns:
            True if cleared.
        """
        if self.session.is_active:
            logger.warning("Cannot clear history while monitoring is active")
            return False
        self.session.reset()
        self.debouncer.reset()
        logger.info("Session history cleared")
        return True

    def _halt(self) -> None:
        self.session.deactivate()
        self.capture.stop()
        self.pomodoro.stop()
        self.debouncer.reset()

    async def shutdown(self) -> None:
        """Stop everything and wait for background speech to finish or cancel."""
        self._halt()
        if isinstance(self.scheduler, LoopScheduler):
            await self.scheduler.shutdown()
        logger.info("Engine shutdown complete")

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    def set_interval(self, interval_seconds: float) -> None:
        self.capture.set_interval(interval_seconds)

    def set_alert_threshold(self, threshold: int) -> None:
        self.debouncer.set_threshold(threshold)

    def set_pomodoro_durations(self, work_minutes: int, break_minutes: int) -> None:
        self.pomodoro.set_durations(work_minutes, break_minutes)

    def reset_pomodoro(self) -> None:
        self.pomodoro.reset()
        self._notify_pomodoro_phase(False)

    # ------------------------------------------------------------------
    # Economy
    # ------------------------------------------------------------------

    def purchase(self, item_id: str) -> PurchaseResult:
        return self.economy.purchase(item_id)

    def apply_theme(self, theme_id: str) -> bool:
        return self.economy.apply_theme(theme_id)

    def apply_voice(self, voice_id: str) -> bool:
        return self.economy.apply_voice(voice_id)

    def preview_voice(self, voice_id: Optional[str] = None):
        """
        Play a sample line in a voice style, locked or not, so it can be
        heard before buying. Alert state is not touched.

        Raises:
            ValueError: If the voice id is unknown
        """
        if voice_id is not None and voice_id not in VOICES:
            raise ValueError(f"Unknown voice style: {voice_id}")
        return self.debouncer.preview(VOICE_PREVIEW_TEXT, voice_id)

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    def get_status(self) -> Dict:
        """
        Snapshot for polling front ends.

        Returns:
            dict with keys: is_active, status, sample_count, latest,
            last_error, interval_seconds, alert_threshold, pomodoro,
            total_coins, active_theme_id, active_voice_id.
        """
        latest = self.session.latest
        return {
            "is_active": self.session.is_active,
            "status": self.current_status,
            "sample_count": self.session.sample_count,
            "latest": latest.to_dict() if latest else None,
            "last_error": self.session.last_error,
            "interval_seconds": self.capture.interval_seconds,
            "alert_threshold": self.debouncer.threshold,
            "pomodoro": self.pomodoro.snapshot(),
            "total_coins": self.economy.total_coins,
            "active_theme_id": self.economy.active_theme_id,
            "active_voice_id": self.economy.active_voice_id,
        }

    # ------------------------------------------------------------------
    # Component events
    # ------------------------------------------------------------------

    def _handle_result(self, result: AnalysisResult) -> None:
        if self.on_result:
            try:
                self.on_result(result)
            except Exception as e:
                logger.debug(f"on_result callback error: {e}")

    def _handle_capture_error(self, kind: ErrorKind, message: str) -> None:
        self._notify_error(kind.value, message)

    def _handle_fatal(self, kind: ErrorKind, message: str) -> None:
        # The capture loop already deactivated the session
        self.pomodoro.stop()
        self.debouncer.reset()
        self._notify_status_change("idle", "Ready to Start")

    def _handle_alert(self, text: str) -> None:
        if self.on_alert:
            try:
                self.on_alert(text)
            except Exception as e:
                logger.debug(f"on_alert callback error: {e}")

    def _handle_phase_change(self, is_on_break: bool) -> None:
        if is_on_break:
            self._notify_status_change("break", "On Break")
        else:
            self._notify_status_change("monitoring", "Monitoring")
        self._notify_pomodoro_phase(is_on_break)

    # ------------------------------------------------------------------
    # Callback helpers
    # ------------------------------------------------------------------

    def _notify_status_change(self, status: str, text: str) -> None:
        self.current_status = status
        if self.on_status_change:
            try:
                self.on_status_change(status, text)
            except Exception as e:
                logger.debug(f"on_status_change callback error: {e}")

    def _notify_error(self, error_type: str, message: str) -> None:
        if self.on_error:
            try:
                self.on_error(error_type, message)
            except Exception as e:
                logger.debug(f"on_error callback error: {e}")

    def _notify_pomodoro_phase(self, is_on_break: bool) -> None:
        if self.on_pomodoro_phase:
            try:
                self.on_pomodoro_phase(is_on_break)
            except Exception as e:
                logger.debug(f"on_pomodoro_phase callback error: {e}")
