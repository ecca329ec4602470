"""
Capture loop: sample a frame, analyze it, react, schedule the next sample.

The loop is a chain of one-shot timers on the event loop. A new timer is
only armed after the previous analyze call has settled, so at most one
request is ever in flight and a slow or failing service can never pile up
concurrent calls.
"""

import asyncio
import logging
from datetime import datetime
from typing import Any, Callable, Optional

import config
from ai.errors import AnalysisError, ErrorKind, classify_error, diagnostic_for, retry_delay
from camera.capture import compress_frame
from core.timers import Scheduler, TimerHandle
from tracking.alerts import AlertDebouncer
from tracking.models import AnalysisResult
from tracking.session import ActivityToken, MonitoringSession

logger = logging.getLogger(__name__)


def validate_interval(interval_seconds: float) -> float:
    """
    Raises:
        ValueError: If the interval is not one of MONITOR_INTERVAL_CHOICES
    """
    if float(interval_seconds) not in config.MONITOR_INTERVAL_CHOICES:
        choices = ", ".join(f"{c:g}" for c in config.MONITOR_INTERVAL_CHOICES)
        raise ValueError(f"Monitoring interval must be one of {choices} seconds, got {interval_seconds!r}")
    return float(interval_seconds)


class CaptureScheduler:
    """
    Drives sample -> analyze -> react while the session is active.

    Callbacks:
        on_result(result: AnalysisResult)
        on_error(kind: ErrorKind, message: str)   recoverable and fatal
        on_fatal(kind: ErrorKind, message: str)   session was deactivated
    """

    def __init__(
        self,
        session: MonitoringSession,
        frame_source: Callable[[], Any],
        perception,
        debouncer: AlertDebouncer,
        scheduler: Scheduler,
        interval_seconds: float = config.DEFAULT_MONITOR_INTERVAL_SECONDS,
    ):
        """
        Args:
            session: Shared session state
            frame_source: Returns a BGR frame, or None while the camera is not ready
            perception: Object with analyze(image_bytes) -> dict
            debouncer: Receives every successful sample
            scheduler: Timer and task facility
            interval_seconds: Pause between samples
        """
        self.session = session
        self.frame_source = frame_source
        self.perception = perception
        self.debouncer = debouncer
        self.scheduler = scheduler
        self.interval_seconds = validate_interval(interval_seconds)

        self.on_result: Optional[Callable[[AnalysisResult], None]] = None
        self.on_error: Optional[Callable[[ErrorKind, str], None]] = None
        self.on_fatal: Optional[Callable[[ErrorKind, str], None]] = None

        self._handle: Optional[TimerHandle] = None
        self._loop_token: Optional[ActivityToken] = None
        self._in_flight: bool = False

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def is_running(self) -> bool:
        return self._loop_token is not None and self.session.is_current(self._loop_token)

    def set_interval(self, interval_seconds: float) -> None:
        """Change the cadence. The next scheduled sample uses the new value."""
        self.interval_seconds = validate_interval(interval_seconds)
        logger.info(f"Monitoring interval set to {self.interval_seconds:g}s")

    def start(self) -> bool:
        """
        Begin sampling for the session's current activation.

        Returns:
            True if a loop was started, False if the session is inactive or
            a loop for this activation is already running.
        """
        if not self.session.is_active:
            logger.debug("Capture start ignored: session inactive")
            return False

        token = self.session.token()
        if self._loop_token == token:
            logger.debug("Capture loop already running for this activation")
            return False

        self._loop_token = token
        self._schedule(0.0, token)
        logger.info(f"Capture loop started (every {self.interval_seconds:g}s)")
        return True

    def stop(self) -> None:
        """Cancel the pending tick. An in-flight result is dropped by its token check."""
        self._cancel_handle()
        self._loop_token = None

    async def tick(self, token: ActivityToken) -> None:
        """Run one sample step for `token`'s activation."""
        if not self.session.is_current(token):
            return

        if self._in_flight:
            # A previous activation's call has not settled yet; try again shortly
            self._schedule(config.CAMERA_NOT_READY_RETRY_SECONDS, token)
            return

        self._in_flight = True
        try:
            await self._step(token)
        finally:
            self._in_flight = False

    # ------------------------------------------------------------------
    # Loop internals
    # ------------------------------------------------------------------

    def _schedule(self, delay: float, token: ActivityToken) -> None:
        self._cancel_handle()
        self._handle = self.scheduler.call_later(delay, self._fire, token)

    def _fire(self, token: ActivityToken) -> None:
        self._handle = None
        if not self.session.is_current(token):
            return
        self.scheduler.spawn(self.tick(token))

    def _cancel_handle(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    async def _step(self, token: ActivityToken) -> None:
        image = await self._capture()
        if not self.session.is_current(token):
            return

        if image is None:
            logger.debug("Camera not ready, retrying shortly")
            self._schedule(config.CAMERA_NOT_READY_RETRY_SECONDS, token)
            return

        try:
            data = await asyncio.to_thread(self.perception.analyze, image)
            captured_at = datetime.now()
            result = AnalysisResult.from_analysis(data, captured_at)
        except (KeyError, TypeError) as e:
            self._fail(AnalysisError(f"Malformed analysis payload: {e}"), token)
            return
        except Exception as e:
            self._fail(e, token)
            return

        if not self.session.is_current(token):
            logger.debug("Discarding analysis result that arrived after stop")
            return

        self.session.record(result)
        self.debouncer.observe(result)
        self._notify_result(result)

        if self.session.is_current(token):
            self._schedule(self.interval_seconds, token)

    async def _capture(self) -> Optional[bytes]:
        """Read and compress one frame off the loop. None means not ready."""
        try:
            frame = await asyncio.to_thread(self.frame_source)
        except Exception as e:
            logger.warning(f"Frame source failed: {e}")
            return None
        if frame is None:
            return None
        try:
            return await asyncio.to_thread(compress_frame, frame)
        except ValueError as e:
            logger.warning(f"Could not encode frame: {e}")
            return None

    def _fail(self, error: BaseException, token: ActivityToken) -> None:
        if not self.session.is_current(token):
            logger.debug(f"Ignoring analysis failure after stop: {error}")
            return

        kind = classify_error(error)
        message = diagnostic_for(kind)
        self.session.set_error(message)
        self._notify_error(kind, message)

        delay = retry_delay(kind, self.interval_seconds)
        if delay is None:
            logger.error(f"Analysis failed fatally ({kind.value}): {error}")
            self.session.deactivate()
            self._loop_token = None
            self._cancel_handle()
            self._notify_fatal(kind, message)
            return

        logger.warning(f"Analysis failed ({kind.value}), retrying in {delay:g}s: {error}")
        self._schedule(delay, token)

    # ------------------------------------------------------------------
    # Callback helpers
    # ------------------------------------------------------------------

    def _notify_result(self, result: AnalysisResult) -> None:
        if self.on_result:
            try:
                self.on_result(result)
            except Exception as e:
                logger.debug(f"on_result callback error: {e}")

    def _notify_error(self, kind: ErrorKind, message: str) -> None:
        if self.on_error:
            try:
                self.on_error(kind, message)
            except Exception as e:
                logger.debug(f"on_error callback error: {e}")

    def _notify_fatal(self, kind: ErrorKind, message: str) -> None:
        if self.on_fatal:
            try:
                self.on_fatal(kind, message)
            except Exception as e:
                logger.debug(f"on_fatal callback error: {e}")
