"""OpenAI integration for spoken alerts and end-of-session comments."""

import json
import logging
import os
import shutil
import subprocess
import sys
import tempfile
import time
from collections import Counter
from typing import Dict, List, Optional, Sequence, Tuple

from openai import OpenAI

import config
from ai.errors import NarrationError
from tracking.analytics import round_half_up
from tracking.models import AnalysisResult, POSTURE_LABELS, Posture

logger = logging.getLogger(__name__)


# Voice style id -> (OpenAI voice, delivery instructions)
VOICE_STYLES: Dict[str, Tuple[str, str]] = {
    "gentle": ("shimmer", "Speak like a kind older schoolmate: warm, soft and encouraging."),
    "strict": ("onyx", "Speak like a strict teacher: firm, clear and serious, without shouting."),
    "energetic": ("nova", "Speak like an upbeat sports coach: lively, fast and enthusiastic."),
    "calm": ("sage", "Speak like a calm mentor: slow, soothing and reassuring."),
    "motivational": ("ash", "Speak like a motivational speaker: confident, inspiring and bold."),
}
DEFAULT_VOICE_STYLE = "gentle"


def _player_command(audio_path: str) -> List[str]:
    """
    Pick a command-line audio player for an mp3 file.

    Cross-platform: macOS (afplay), Windows (PowerShell MediaPlayer),
    Linux (mpg123, falling back to ffplay).

    Raises:
        NarrationError: If no player is available
    """
    if sys.platform == "darwin":
        return ["afplay", audio_path]
    if sys.platform == "win32":
        return [
            "powershell", "-c",
            "Add-Type -AssemblyName presentationCore; "
            "$p = New-Object System.Windows.Media.MediaPlayer; "
            f"$p.Open('{audio_path}'); $p.Play(); "
            "Start-Sleep -Milliseconds 300; "
            "while ($p.NaturalDuration.HasTimeSpan -eq $false) { Start-Sleep -Milliseconds 100 }; "
            "Start-Sleep -Seconds $p.NaturalDuration.TimeSpan.TotalSeconds",
        ]
    if shutil.which("mpg123"):
        return ["mpg123", "-q", audio_path]
    if shutil.which("ffplay"):
        return ["ffplay", "-nodisp", "-autoexit", "-loglevel", "quiet", audio_path]
    raise NarrationError("No audio player found (install mpg123 or ffplay)")


class NarrationClient:
    """
    Uses OpenAI to turn text into speech in one of the voice styles and
    to write a friendly comment on a finished session.

    Both calls are blocking; the engine runs them on worker threads.
    """

    def __init__(self, api_key: Optional[str] = None, model: Optional[str] = None,
                 tts_model: Optional[str] = None):
        """
        Initialize the narration client.

        Args:
            api_key: OpenAI API key (defaults to config.OPENAI_API_KEY)
            model: Chat model for summaries (defaults to config.OPENAI_MODEL)
            tts_model: Speech model (defaults to config.OPENAI_TTS_MODEL)
        """
        self.api_key = api_key or config.OPENAI_API_KEY
        self.model = model or config.OPENAI_MODEL
        self.tts_model = tts_model or config.OPENAI_TTS_MODEL

        if not self.api_key:
            logger.warning("OpenAI API key not found. Speech will use the local synthesizer.")
            self.client = None
        else:
            self.client = OpenAI(api_key=self.api_key, timeout=30.0)

    def _require_client(self) -> OpenAI:
        if self.client is None:
            raise NarrationError("OpenAI API key not configured")
        return self.client

    # ------------------------------------------------------------------
    # Speech
    # ------------------------------------------------------------------

    def speak(self, text: str, voice_id: str) -> None:
        """
        Synthesize text in a voice style and play it to completion.

        Args:
            text: What to say
            voice_id: Voice style id from the catalog (unknown ids use gentle)

        Raises:
            NarrationError: If synthesis or playback fails
        """
        client = self._require_client()
        voice, instructions = VOICE_STYLES.get(voice_id, VOICE_STYLES[DEFAULT_VOICE_STYLE])

        try:
            response = client.audio.speech.create(
                model=self.tts_model,
                voice=voice,
                input=text,
                instructions=instructions,
                response_format="mp3",
            )
            audio = response.content
        except Exception as e:
            raise NarrationError(f"Speech synthesis failed: {e}") from e

        if not audio:
            raise NarrationError("No audio data returned from speech API")

        temp_fd, temp_path = tempfile.mkstemp(suffix='.mp3', prefix='focusclass_voice_')
        try:
            with os.fdopen(temp_fd, 'wb') as f:
                f.write(audio)

            command = _player_command(temp_path)
            kwargs: dict = {"stdout": subprocess.DEVNULL, "stderr": subprocess.PIPE}
            if sys.platform == "win32":
                kwargs["creationflags"] = subprocess.CREATE_NO_WINDOW
            try:
                subprocess.run(command, check=True, timeout=60, **kwargs)
            except (OSError, subprocess.SubprocessError) as e:
                raise NarrationError(f"Audio playback failed: {e}") from e

            logger.debug(f"Spoke {len(text)} chars in '{voice_id}' style")
        finally:
            try:
                os.unlink(temp_path)
            except OSError:
                pass

    # ------------------------------------------------------------------
    # Session comment
    # ------------------------------------------------------------------

    def summarize(self, history: Sequence[AnalysisResult],
                  interval_seconds: float = config.DEFAULT_MONITOR_INTERVAL_SECONDS,
                  max_retries: Optional[int] = None) -> str:
        """
        Write a short coaching comment for a finished session.

        Args:
            history: Every sample of the session, in capture order
            interval_seconds: Sampling interval used for the session
            max_retries: Maximum attempts (defaults to config.OPENAI_MAX_RETRIES)

        Returns:
            Comment text

        Raises:
            NarrationError: If the history is empty or every attempt failed
        """
        if not history:
            raise NarrationError("Session too short to summarize")

        client = self._require_client()
        max_retries = max_retries or config.OPENAI_MAX_RETRIES
        prompt = self._create_prompt(history, interval_seconds)

        last_error: Optional[Exception] = None
        for attempt in range(max_retries):
            try:
                response = client.chat.completions.create(
                    model=self.model,
                    messages=[
                        {
                            "role": "system",
                            "content": "You are a caring, professional teaching assistant who "
                                       "reviews a student's online-class focus data."
                        },
                        {"role": "user", "content": prompt},
                    ],
                    temperature=0.7,
                    max_tokens=400,
                )
                content = response.choices[0].message.content if response.choices else None
                if content and content.strip():
                    logger.info("Successfully generated session comment from OpenAI")
                    return content.strip()
                last_error = NarrationError("Empty summary response")
            except Exception as e:
                last_error = e
                logger.warning(f"OpenAI summary attempt {attempt + 1} failed: {e}")

            if attempt < max_retries - 1:
                # Exponential backoff
                wait_time = config.OPENAI_RETRY_DELAY * (2 ** attempt)
                logger.info(f"Retrying in {wait_time} seconds...")
                time.sleep(wait_time)

        raise NarrationError(f"All summary attempts failed: {last_error}")

    def _create_prompt(self, history: Sequence[AnalysisResult], interval_seconds: float) -> str:
        """
        Create a prompt from the session samples.

        Args:
            history: Session samples
            interval_seconds: Sampling interval

        Returns:
            Formatted prompt string
        """
        total_score = sum(item.concentration_score for item in history)
        average_score = round_half_up(total_score / len(history))
        posture_counts = Counter(item.posture for item in history)
        most_common_posture = posture_counts.most_common(1)[0][0]

        # Unique distraction labels in first-seen order
        distractions: List[str] = []
        for item in history:
            for label in item.detected_distractions:
                if label not in distractions:
                    distractions.append(label)

        posture_json = json.dumps({p.value: posture_counts.get(p, 0) for p in Posture})

        return f"""Here is a summary of a student's study session, measured by an attention-monitoring assistant:
- Study time: about {int(len(history) * interval_seconds)} seconds
- Average concentration score: {average_score}/100
- Most frequent posture: {POSTURE_LABELS[most_common_posture]}
- Distractions detected: {", ".join(distractions) if distractions else "none"}
- Posture distribution: {posture_json}

Write a short study report for the student that:
1. Encourages or comments on their overall performance.
2. Points out the main posture problem, if any.
3. Suggests how to reduce the distractions detected.
Keep a warm, professional tone, like a responsible teaching assistant. Stay under 150 words."""
