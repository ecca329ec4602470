"""Configuration settings for FocusClass."""

import os
import sys
from pathlib import Path
from dotenv import load_dotenv


def get_user_data_dir() -> Path:
    """
    Get the directory for user-writable data (sessions, coins, preferences).

    FOCUSCLASS_DATA_DIR overrides the per-platform default.

    Returns:
        Path to the user data directory.
    """
    override = os.getenv("FOCUSCLASS_DATA_DIR")
    if override:
        return Path(override)

    if sys.platform == 'darwin':
        # macOS: ~/Library/Application Support/FocusClass
        return Path.home() / "Library" / "Application Support" / "FocusClass"
    elif sys.platform == 'win32':
        appdata = os.environ.get('APPDATA')
        if appdata:
            return Path(appdata) / "FocusClass"
        return Path.home() / "AppData" / "Roaming" / "FocusClass"
    else:
        # Linux: ~/.local/share/FocusClass
        return Path.home() / ".local" / "share" / "FocusClass"


# Explicitly load from the project root (where config.py lives)
# This ensures .env is found regardless of current working directory
_env_path = Path(__file__).parent / ".env"
load_dotenv(_env_path)

# User data directory (for writable data like sessions, coins)
USER_DATA_DIR = get_user_data_dir()

# Vision Provider Selection
# Options: "gemini" or "openai"
VISION_PROVIDER = os.getenv("VISION_PROVIDER", "gemini")


def _validate_api_key_format(key: str, key_type: str) -> bool:
    """
    Validate API key format to catch configuration errors early.

    Args:
        key: The API key to validate.
        key_type: Type of key ("openai", "gemini")

    Returns:
        True if key format is valid, False otherwise.
    """
    if not key or len(key) < 10:
        return False

    expected_prefixes = {
        "openai": "sk-",
        "gemini": "AI",  # Gemini keys typically start with AI
    }

    prefix = expected_prefixes.get(key_type)
    if prefix is None:
        return True  # Unknown key type - accept any format
    return key.startswith(prefix)


def _get_api_key(env_var: str, key_type: str = "") -> str:
    """
    Read an API key from the environment.

    Args:
        env_var: Environment variable name.
        key_type: Optional key type for format validation logging.

    Returns:
        API key string, or empty string if not found.
    """
    key = os.getenv(env_var, "")
    if key and key_type and not _validate_api_key_format(key, key_type):
        # Log warning if format looks wrong (doesn't prevent usage)
        import logging
        logging.getLogger(__name__).warning(
            f"{env_var} may have invalid format for {key_type} key"
        )
    return key


# Gemini Configuration
GEMINI_API_KEY = _get_api_key("GEMINI_API_KEY", "gemini")
GEMINI_VISION_MODEL = os.getenv("GEMINI_VISION_MODEL", "gemini-2.0-flash")

# OpenAI Configuration (vision alternative, speech and session summaries)
OPENAI_API_KEY = _get_api_key("OPENAI_API_KEY", "openai")
OPENAI_VISION_MODEL = "gpt-4o-mini"
OPENAI_MODEL = "gpt-4o-mini"  # Session summaries
OPENAI_TTS_MODEL = "gpt-4o-mini-tts"
OPENAI_MAX_RETRIES = 3
OPENAI_RETRY_DELAY = 1  # Seconds, doubled per attempt

# Camera Configuration
CAMERA_INDEX = int(os.getenv("CAMERA_INDEX", "0"))
FRAME_WIDTH = 1280
FRAME_HEIGHT = 720

# Frame compression before upload (smaller = cheaper)
MAX_FRAME_WIDTH = 640
JPEG_QUALITY = 60

# Capture cadence (seconds)
DEFAULT_MONITOR_INTERVAL_SECONDS = 5.0
MONITOR_INTERVAL_CHOICES = (3.0, 5.0, 10.0)
CAMERA_NOT_READY_RETRY_SECONDS = 1.0  # Camera warming up - not a failure
BACKOFF_SECONDS = 60.0  # Rate limit / unavailable model

# Voice alerts
DEFAULT_ALERT_THRESHOLD = 2  # Consecutive bad samples before speaking
ALERT_THRESHOLD_RANGE = (1, 3)
VOICE_COOLDOWN_SECONDS = 30.0
LOW_CONCENTRATION_SCORE = 60  # Scores below this count as a bad sample

# Pomodoro timer
DEFAULT_POMODORO_WORK_MINUTES = 25
DEFAULT_POMODORO_BREAK_MINUTES = 5
POMODORO_WORK_RANGE = (10, 60)  # Minutes, inclusive
POMODORO_BREAK_RANGE = (3, 20)

# Session history / economy persistence
MAX_STORED_SESSIONS = 50
STORE_FILE = USER_DATA_DIR / "focusclass_store.json"

# Shown in place of the AI comment when the summary call fails
SUMMARY_APOLOGY_TEXT = "Sorry, the session summary could not be generated this time."

# User-visible diagnostics for analysis failures
DIAGNOSTIC_RATE_LIMITED = "Too many requests, pausing analysis for 60 seconds..."
DIAGNOSTIC_SERVICE_UNAVAILABLE = "The configured model is unavailable. Contact your administrator."
DIAGNOSTIC_UNAUTHORIZED = "No valid API key configured. Check your environment settings."
DIAGNOSTIC_TRANSIENT = "Network connection unstable, retrying..."
DIAGNOSTIC_STORE_FAILED = "Could not save the session report. Your samples are kept, stop again to retry."

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")  # Can override in .env: DEBUG, INFO, WARNING, ERROR
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
