#!/usr/bin/env python3
"""
FocusClass - Main Entry Point

A webcam study companion: samples your camera every few seconds, asks a
vision model how focused you look, speaks up when you drift, runs a
pomodoro and pays coins for finished sessions.

Usage:
    python main.py                      # Start a monitoring session
    python main.py --interval 10        # Sample every 10 seconds
    python main.py --shop               # List themes and voices
    python main.py --buy dark           # Unlock an item with coins
    python main.py --voice calm         # Switch the active voice style
    python main.py --history            # Show recent sessions
"""

import argparse
import asyncio
import logging
import sys
from typing import Optional

import config
from ai.narration import NarrationClient
from camera import create_perception_client
from camera.capture import CameraCapture, describe_failure
from core import MonitoringEngine
from storage import JsonFileStore
from storage.catalog import THEMES, VOICES
from tracking.analytics import format_duration, generate_summary_text
from tracking.economy import Economy

# Configure logging
logging.basicConfig(
    level=getattr(logging, config.LOG_LEVEL),
    format=config.LOG_FORMAT
)
logger = logging.getLogger(__name__)

# Suppress noisy third-party library logs (HTTP requests, etc.)
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)
logging.getLogger("openai").setLevel(logging.WARNING)
logging.getLogger("urllib3").setLevel(logging.WARNING)


def check_requirements(provider: str) -> bool:
    """
    Check that the API key for the vision provider is configured.

    Returns:
        True if all requirements met, False otherwise
    """
    print("\n🔍 Checking requirements...")

    if provider == "gemini":
        if not config.GEMINI_API_KEY:
            print("\n❌ ERROR: Gemini API key is REQUIRED!")
            print("   Please set GEMINI_API_KEY in your .env file.")
            print("\n   Get your API key from: https://aistudio.google.com/app/apikey")
            return False
        print("✓ Gemini API key found")
        print(f"✓ Using vision model: {config.GEMINI_VISION_MODEL}")
    else:
        if not config.OPENAI_API_KEY:
            print("\n❌ ERROR: OpenAI API key is REQUIRED!")
            print("   Please set OPENAI_API_KEY in your .env file.")
            print("\n   Get your API key from: https://platform.openai.com/api-keys")
            return False
        print("✓ OpenAI API key found")
        print(f"✓ Using vision model: {config.OPENAI_VISION_MODEL}")

    if not config.OPENAI_API_KEY:
        print("⚠️  No OpenAI key: voice alerts use the local synthesizer, no AI summary")

    return True


class ConsoleApp:
    """Drives a MonitoringEngine from the terminal."""

    def __init__(self, engine: MonitoringEngine):
        self.engine = engine
        engine.on_status_change = self._on_status_change
        engine.on_result = self._on_result
        engine.on_error = self._on_error
        engine.on_alert = self._on_alert

    def _on_status_change(self, status: str, text: str) -> None:
        print(f"[{text}]")

    def _on_result(self, result) -> None:
        flags = []
        if result.has_electronic_device:
            flags.append("device")
        if not result.is_looking_at_screen:
            flags.append("looking away")
        extra = f" ({', '.join(flags)})" if flags else ""
        print(f"  focus {result.concentration_score:3d}  posture {result.posture.value:<10}{extra}")

    def _on_error(self, error_type: str, message: str) -> None:
        print(f"  ⚠️  {message}")

    def _on_alert(self, text: str) -> None:
        print(f"  🔔 {text}")

    async def run(self) -> int:
        outcome = self.engine.start_monitoring()
        if not outcome["success"]:
            print(f"\n❌ {outcome['error']}")
            return 1

        print("\n💡 Monitoring your class...")
        print("   Enter = stop and report, p = pause/resume, s = status\n")

        while True:
            try:
                command = await asyncio.to_thread(input)
            except EOFError:
                break
            command = command.strip().lower()

            if command == "p":
                if self.engine.session.is_active:
                    self.engine.pause_monitoring()
                else:
                    self.engine.start_monitoring()
            elif command == "s":
                self._print_status()
            elif command in ("", "q"):
                break

        print("\n📊 Finalizing session...")
        result = await self.engine.stop_and_report()
        if not result.has_report:
            if self.engine.session.sample_count:
                print(f"❌ {self.engine.session.last_error or 'Report not generated.'}")
            else:
                print("Nothing recorded, no report this time.")
        else:
            print("\n" + "=" * 60)
            print("📈 Session Summary")
            print("=" * 60)
            print(generate_summary_text(result.summary))
            print(f"\n🪙 Earned {result.earned_coins} coins (total {self.engine.economy.total_coins})")
        await self.engine.shutdown()
        return 0

    def _print_status(self) -> None:
        status = self.engine.get_status()
        pomodoro = status["pomodoro"]
        phase = "break" if pomodoro["is_on_break"] else "work"
        print(
            f"  {status['status']}: {status['sample_count']} samples, "
            f"pomodoro {phase} {format_duration(pomodoro['elapsed_seconds'])}, "
            f"{status['total_coins']} coins"
        )
        if status["last_error"]:
            print(f"  last error: {status['last_error']}")


async def run_session(args: argparse.Namespace) -> int:
    """Open the camera and run one interactive session."""
    perception = create_perception_client(args.provider)
    narration = NarrationClient()

    with CameraCapture() as camera:
        if not camera.is_opened:
            print(f"❌ {describe_failure(camera.failure_type)}")
            return 1

        engine = MonitoringEngine(
            frame_source=camera,
            perception=perception,
            narration=narration,
            interval_seconds=args.interval,
            alert_threshold=args.threshold,
        )
        if args.work or args.rest:
            try:
                engine.set_pomodoro_durations(
                    args.work or config.DEFAULT_POMODORO_WORK_MINUTES,
                    args.rest or config.DEFAULT_POMODORO_BREAK_MINUTES,
                )
            except ValueError as e:
                print(f"❌ {e}")
                return 1
        return await ConsoleApp(engine).run()


def show_shop(economy: Economy) -> None:
    print(f"\n🪙 {economy.total_coins} coins\n")
    for title, items, active in (
        ("Themes", THEMES, economy.active_theme_id),
        ("Voices", VOICES, economy.active_voice_id),
    ):
        print(title)
        for item in items.values():
            if item.id == active:
                state = "active"
            elif item.id in economy.unlocked_item_ids:
                state = "owned"
            else:
                state = f"{item.price} coins"
            print(f"  {item.id:<14} {item.name:<22} {state}")
        print()


def show_history(economy: Economy) -> None:
    if not economy.recent_sessions:
        print("No sessions yet.")
        return
    for stored in economy.recent_sessions:
        summary = stored.summary
        print(
            f"{stored.created_at:%Y-%m-%d %H:%M}  avg {summary.average_score:3d}  "
            f"{format_duration(summary.total_duration_seconds):<16} +{stored.earned_coins} coins"
        )


def run_economy_command(args: argparse.Namespace) -> int:
    """Handle the non-session flags. Returns an exit code."""
    economy = Economy(JsonFileStore(config.STORE_FILE))
    economy.load()

    if args.buy:
        result = economy.purchase(args.buy)
        print(result.message)
        return 0 if result.success else 1
    if args.theme:
        if not economy.apply_theme(args.theme):
            print(f"Theme '{args.theme}' is unknown or still locked.")
            return 1
        print(f"Theme set to {args.theme}")
        return 0
    if args.voice:
        if not economy.apply_voice(args.voice):
            print(f"Voice '{args.voice}' is unknown or still locked.")
            return 1
        print(f"Voice set to {args.voice}")
        return 0
    if args.history:
        show_history(economy)
        return 0
    show_shop(economy)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="FocusClass - AI study companion for online classes",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py                  Start monitoring (Enter to stop)
  python main.py --interval 3     Sample every 3 seconds
  python main.py --buy energetic  Unlock the Energetic Coach voice
        """
    )
    parser.add_argument(
        "--interval", type=float, default=config.DEFAULT_MONITOR_INTERVAL_SECONDS,
        choices=config.MONITOR_INTERVAL_CHOICES,
        help="Seconds between camera samples",
    )
    parser.add_argument(
        "--threshold", type=int, default=config.DEFAULT_ALERT_THRESHOLD,
        choices=range(config.ALERT_THRESHOLD_RANGE[0], config.ALERT_THRESHOLD_RANGE[1] + 1),
        help="Consecutive bad samples before a voice alert",
    )
    parser.add_argument("--provider", choices=("gemini", "openai"), help="Vision provider override")
    parser.add_argument("--work", type=int, help="Pomodoro work minutes (10-60)")
    parser.add_argument("--rest", type=int, help="Pomodoro break minutes (3-20)")
    parser.add_argument("--shop", action="store_true", help="List themes and voices")
    parser.add_argument("--buy", metavar="ITEM", help="Unlock a theme or voice with coins")
    parser.add_argument("--theme", metavar="ID", help="Switch the active theme")
    parser.add_argument("--voice", metavar="ID", help="Switch the active voice style")
    parser.add_argument("--history", action="store_true", help="Show recent sessions")
    return parser


def main(argv: Optional[list] = None) -> None:
    """Main entry point: parses arguments and launches the requested mode."""
    args = build_parser().parse_args(argv)

    if args.shop or args.buy or args.theme or args.voice or args.history:
        sys.exit(run_economy_command(args))

    provider = (args.provider or config.VISION_PROVIDER).lower()
    if not check_requirements(provider):
        print("\n❌ Requirements not met. Exiting.")
        sys.exit(1)

    try:
        sys.exit(asyncio.run(run_session(args)))
    except KeyboardInterrupt:
        print("\n\nGoodbye!")
        sys.exit(0)
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        print(f"\nFatal error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
