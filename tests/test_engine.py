"""
Tests for core/engine.py - verifies the MonitoringEngine works
independently of any UI framework, on a virtual clock.
"""

import asyncio
import sys
import unittest
import logging
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

import config
from ai.errors import AnalysisError, ErrorKind
from core.engine import VOICE_PREVIEW_TEXT, MonitoringEngine
from fakes import FakeNarration, FakePerception, ManualScheduler, analysis, bad_analysis, blank_frame
from storage.store import KEY_TOTAL_COINS, InMemoryStore

logger = logging.getLogger(__name__)


class FailingStore(InMemoryStore):
    """Store whose multi-key writes fail like a full disk."""

    def __init__(self):
        super().__init__()
        self.failing = True

    def set_many(self, values):
        if self.failing:
            raise OSError(28, "No space left on device")
        super().set_many(values)


class EngineTestCase(unittest.IsolatedAsyncioTestCase):

    def build(self, *outcomes, store=None, **kwargs):
        self.scheduler = ManualScheduler()
        self.perception = FakePerception(*outcomes)
        self.narration = FakeNarration("Focused and tidy session.")
        self.store = store if store is not None else InMemoryStore()
        self.engine = MonitoringEngine(
            frame_source=blank_frame,
            perception=self.perception,
            narration=self.narration,
            store=self.store,
            scheduler=self.scheduler,
            **kwargs,
        )
        self.statuses = []
        self.errors = []
        self.engine.on_status_change = lambda status, text: self.statuses.append(status)
        self.engine.on_error = lambda error_type, message: self.errors.append(error_type)
        return self.engine


class TestEngineInit(EngineTestCase):

    async def test_init_defaults(self):
        engine = self.build(analysis())
        status = engine.get_status()
        self.assertFalse(status["is_active"])
        self.assertEqual(status["status"], "idle")
        self.assertEqual(status["sample_count"], 0)
        self.assertEqual(status["interval_seconds"], config.DEFAULT_MONITOR_INTERVAL_SECONDS)
        self.assertEqual(status["alert_threshold"], config.DEFAULT_ALERT_THRESHOLD)
        self.assertEqual(status["active_voice_id"], "gentle")
        self.assertFalse(status["pomodoro"]["is_on_break"])

    async def test_loads_economy_from_store(self):
        engine = self.build(analysis(), store=InMemoryStore({KEY_TOTAL_COINS: "75"}))
        self.assertEqual(engine.get_status()["total_coins"], 75)

    async def test_invalid_interval_rejected(self):
        with self.assertRaises(ValueError):
            self.build(analysis(), interval_seconds=4)


class TestEngineLifecycle(EngineTestCase):

    async def test_start_runs_capture_and_pomodoro(self):
        engine = self.build(analysis(score=85))
        result = engine.start_monitoring()
        self.assertTrue(result["success"])
        self.assertEqual(self.statuses, ["monitoring"])

        await self.scheduler.advance(10)
        status = engine.get_status()
        self.assertEqual(status["sample_count"], 3)
        self.assertEqual(status["pomodoro"]["elapsed_seconds"], 10)
        self.assertEqual(status["latest"]["concentration_score"], 85)

    async def test_double_start_returns_error(self):
        engine = self.build(analysis())
        engine.start_monitoring()
        result = engine.start_monitoring()
        self.assertFalse(result["success"])
        self.assertEqual(result["error_type"], "already_running")
        await self.scheduler.advance(0)
        self.assertEqual(len(self.perception.calls), 1)

    async def test_missing_api_key(self):
        engine = self.build(analysis())
        self.perception.api_key = None
        result = engine.start_monitoring()
        self.assertFalse(result["success"])
        self.assertEqual(result["error_type"], "no_api_key")
        self.assertFalse(engine.session.is_active)

    async def test_pause_keeps_history_and_zeroes_pomodoro(self):
        engine = self.build(analysis())
        engine.start_monitoring()
        await self.scheduler.advance(5)
        engine.pause_monitoring()

        status = engine.get_status()
        self.assertFalse(status["is_active"])
        self.assertEqual(status["status"], "paused")
        self.assertEqual(status["sample_count"], 2)
        self.assertEqual(status["pomodoro"]["elapsed_seconds"], 0)
        self.assertEqual(self.scheduler.pending_timers, [])

        engine.start_monitoring()
        await self.scheduler.advance(0)
        self.assertEqual(engine.get_status()["sample_count"], 3)

    async def test_stop_and_report_pays_coins(self):
        engine = self.build(analysis(score=80))
        ended = []
        engine.on_session_ended = ended.append
        engine.start_monitoring()
        await self.scheduler.advance(55)  # 12 samples = 60 s of class

        result = await engine.stop_and_report()
        self.assertEqual(result.summary.average_score, 80)
        self.assertEqual(result.summary.total_duration_seconds, 60.0)
        self.assertEqual(result.earned_coins, 8)
        self.assertEqual(result.summary.ai_comment, "Focused and tidy session.")
        self.assertEqual(engine.economy.total_coins, 8)
        self.assertEqual(self.store.get(KEY_TOTAL_COINS), "8")
        self.assertEqual(ended, [result])
        self.assertEqual(self.statuses[-1], "idle")

        # Already paid: a second report has nothing to summarize
        again = await engine.stop_and_report()
        self.assertFalse(again.has_report)
        self.assertEqual(engine.economy.total_coins, 8)

    async def test_concurrent_stops_pay_once(self):
        engine = self.build(analysis(score=80))
        ended = []
        engine.on_session_ended = ended.append
        engine.start_monitoring()
        await self.scheduler.advance(15)  # 4 samples

        first, second = await asyncio.gather(engine.stop_and_report(), engine.stop_and_report())
        self.assertEqual(first.earned_coins, 8)
        self.assertFalse(second.has_report)
        self.assertEqual(second.earned_coins, 0)
        self.assertEqual(engine.economy.total_coins, 8)
        self.assertEqual(len(engine.economy.recent_sessions), 1)
        self.assertEqual(ended, [first])
        self.assertEqual(engine.get_status()["sample_count"], 0)

    async def test_store_failure_keeps_samples_unpaid(self):
        store = FailingStore()
        engine = self.build(analysis(score=80), store=store)
        ended = []
        engine.on_session_ended = ended.append
        engine.start_monitoring()
        await self.scheduler.advance(15)

        result = await engine.stop_and_report()
        self.assertFalse(result.has_report)
        self.assertEqual(self.errors, ["store"])
        self.assertEqual(self.statuses[-1], "idle")
        self.assertEqual(ended, [])

        status = engine.get_status()
        self.assertEqual(status["sample_count"], 4)
        self.assertEqual(status["total_coins"], 0)
        self.assertEqual(status["last_error"], config.DIAGNOSTIC_STORE_FAILED)
        self.assertEqual(engine.economy.recent_sessions, [])

        # Once the disk is writable again the same samples are paid once
        store.failing = False
        retry = await engine.stop_and_report()
        self.assertEqual(retry.earned_coins, 8)
        self.assertEqual(engine.economy.total_coins, 8)
        self.assertEqual(ended, [retry])

    async def test_stop_without_samples(self):
        engine = self.build(analysis())
        result = await engine.stop_and_report()
        self.assertFalse(result.has_report)
        self.assertIsNone(self.store.get(KEY_TOTAL_COINS))

    async def test_clear_history_only_when_stopped(self):
        engine = self.build(analysis())
        engine.start_monitoring()
        await self.scheduler.advance(0)
        self.assertFalse(engine.clear_history())

        engine.pause_monitoring()
        self.assertTrue(engine.clear_history())
        self.assertEqual(engine.get_status()["sample_count"], 0)
        self.assertIsNone(engine.get_status()["latest"])

    async def test_fatal_error_stops_everything(self):
        engine = self.build(AnalysisError("bad key", ErrorKind.UNAUTHORIZED))
        engine.start_monitoring()
        await self.scheduler.advance(3)

        status = engine.get_status()
        self.assertFalse(status["is_active"])
        self.assertEqual(status["status"], "idle")
        self.assertEqual(status["last_error"], config.DIAGNOSTIC_UNAUTHORIZED)
        self.assertEqual(status["pomodoro"]["elapsed_seconds"], 0)
        self.assertEqual(self.errors, ["unauthorized"])
        self.assertEqual(self.scheduler.pending_timers, [])

    async def test_recoverable_error_keeps_running(self):
        engine = self.build(ConnectionError("flaky wifi"), analysis())
        engine.start_monitoring()
        await self.scheduler.advance(5)
        self.assertTrue(engine.session.is_active)
        self.assertEqual(self.errors, ["transient_network"])
        self.assertEqual(engine.get_status()["sample_count"], 1)
        self.assertIsNone(engine.get_status()["last_error"])


class TestEngineAlertsAndPomodoro(EngineTestCase):

    async def test_alert_spoken_in_active_voice(self):
        engine = self.build(bad_analysis("Eyes on the board, please."), store=InMemoryStore({
            KEY_TOTAL_COINS: "500",
        }))
        engine.purchase("calm")
        engine.apply_voice("calm")
        alerts = []
        engine.on_alert = alerts.append

        engine.start_monitoring()
        await self.scheduler.advance(5)
        self.assertEqual(alerts, ["Eyes on the board, please."])
        self.assertEqual(self.narration.spoken, [("Eyes on the board, please.", "calm")])

    async def test_pomodoro_break_announced(self):
        engine = self.build(analysis())
        engine.set_pomodoro_durations(10, 3)
        phases = []
        engine.on_pomodoro_phase = phases.append

        engine.start_monitoring()
        await self.scheduler.advance(600)
        self.assertEqual(phases, [True])
        self.assertEqual(engine.get_status()["status"], "break")
        self.assertEqual(len(self.narration.spoken), 1)

        await self.scheduler.advance(180)
        self.assertEqual(phases, [True, False])
        self.assertEqual(engine.get_status()["status"], "monitoring")

    async def test_reset_pomodoro(self):
        engine = self.build(analysis())
        engine.start_monitoring()
        await self.scheduler.advance(30)
        engine.reset_pomodoro()
        self.assertEqual(engine.get_status()["pomodoro"]["elapsed_seconds"], 0)
        await self.scheduler.advance(2)
        self.assertEqual(engine.get_status()["pomodoro"]["elapsed_seconds"], 2)

    async def test_preview_voice(self):
        engine = self.build(analysis())
        task = engine.preview_voice("motivational")
        await task
        self.assertEqual(self.narration.spoken, [(VOICE_PREVIEW_TEXT, "motivational")])
        self.assertEqual(engine.debouncer.consecutive_bad_count, 0)
        self.assertIsNone(engine.debouncer.last_alert_at)

    async def test_preview_unknown_voice(self):
        engine = self.build(analysis())
        with self.assertRaises(ValueError):
            engine.preview_voice("robot")

    async def test_settings(self):
        engine = self.build(analysis())
        engine.set_interval(10)
        engine.set_alert_threshold(3)
        status = engine.get_status()
        self.assertEqual(status["interval_seconds"], 10.0)
        self.assertEqual(status["alert_threshold"], 3)
        with self.assertRaises(ValueError):
            engine.set_alert_threshold(9)


if __name__ == "__main__":
    unittest.main()
