"""Non-blocking voice output with a local text-to-speech fallback."""

import asyncio
import logging
import shutil
import subprocess
import sys
from typing import Any, Coroutine, Optional, Protocol

logger = logging.getLogger(__name__)

LOCAL_SPEECH_TIMEOUT_SECONDS = 30


class SpeakingClient(Protocol):
    def speak(self, text: str, voice_id: str) -> None:
        ...


class TaskSpawner(Protocol):
    def spawn(self, coro: Coroutine[Any, Any, Any]) -> "asyncio.Task[Any]":
        ...


def speak_locally(text: str) -> bool:
    """
    Speak text with the operating system's built-in synthesizer.

    Cross-platform: macOS (say), Windows (System.Speech via PowerShell),
    Linux (espeak / spd-say).

    Returns:
        True if a synthesizer ran to completion.
    """
    if sys.platform == "darwin":
        command = ["say", text]
    elif sys.platform == "win32":
        # Single quotes are escaped by doubling inside a PowerShell literal
        escaped = text.replace("'", "''")
        command = [
            "powershell", "-c",
            "Add-Type -AssemblyName System.Speech; "
            f"(New-Object System.Speech.Synthesis.SpeechSynthesizer).Speak('{escaped}')",
        ]
    else:
        engine = shutil.which("espeak") or shutil.which("spd-say")
        if engine is None:
            logger.warning("No local speech synthesizer found (install espeak)")
            return False
        command = [engine, text]

    kwargs: dict = {"stdout": subprocess.DEVNULL, "stderr": subprocess.DEVNULL}
    if sys.platform == "win32":
        kwargs["creationflags"] = subprocess.CREATE_NO_WINDOW

    # Called from a worker thread; waits for the synthesizer to exit
    try:
        subprocess.run(command, timeout=LOCAL_SPEECH_TIMEOUT_SECONDS, check=False, **kwargs)
        return True
    except subprocess.TimeoutExpired:
        logger.warning("Local speech playback timed out")
        return False
    except OSError as e:
        logger.warning(f"Local speech playback failed: {e}")
        return False


class SpeechOutput:
    """
    Best-effort speech for alerts and pomodoro announcements.

    say() never blocks the caller and never raises: the narration call runs
    as a background task on a worker thread, and any failure is logged and
    replaced by local text-to-speech.
    """

    def __init__(self, client: Optional[SpeakingClient], scheduler: TaskSpawner,
                 local_fallback=speak_locally):
        self.client = client
        self.scheduler = scheduler
        self.local_fallback = local_fallback

    def say(self, text: str, voice_id: str) -> Optional["asyncio.Task[Any]"]:
        """
        Queue text for playback in the given voice style.

        Returns:
            The background task (useful for tests), or None for empty text.
        """
        if not text or not text.strip():
            logger.debug("Skipping empty speech text")
            return None
        return self.scheduler.spawn(self.speak(text, voice_id))

    async def speak(self, text: str, voice_id: str) -> bool:
        """
        Speak text, falling back to local synthesis on any narration failure.

        Returns:
            True if the narration service handled it, False if the fallback ran.
        """
        if self.client is not None:
            try:
                await asyncio.to_thread(self.client.speak, text, voice_id)
                return True
            except Exception as e:
                logger.warning(f"Narration failed, falling back to local speech: {e}")

        try:
            await asyncio.to_thread(self.local_fallback, text)
        except Exception as e:
            logger.warning(f"Local speech fallback failed: {e}")
        return False
