"""Base protocol and shared utilities for perception clients."""

import json
import logging
from typing import Protocol, Dict, Any, List

from tracking.models import Posture

logger = logging.getLogger(__name__)


# Prompt shared by every provider so judgments stay consistent
ANALYSIS_PROMPT = """You are an attention-monitoring assistant for an online class, analysing a student's webcam frame. Respond with ONLY valid JSON.

RESPONSE FORMAT (no other text):
{"concentration_score": 0-100, "is_looking_at_screen": true/false, "posture": "GOOD"/"SLOUCHING"/"TOO_CLOSE"/"TOO_FAR"/"UNKNOWN", "has_electronic_device": true/false, "detected_distractions": ["..."], "feedback": "..."}

FIELDS:
- concentration_score: integer from 0 to 100 indicating how focused the student appears.
- is_looking_at_screen: true if the student's eyes are directed at the screen.
- posture: assessment of the student's sitting posture.
- has_electronic_device: true if a phone, tablet or gaming device (other than the main computer) is visible AND being used.
- detected_distractions: distracting elements or behaviours (e.g. "Playing with phone", "Eating", "Talking to others"). Empty array if none.
- feedback: a short, encouraging, corrective message for the student (max 30 words).

RULES:
- If no student is in the frame, set concentration_score=0 and posture="UNKNOWN".
- When in doubt about a device, set has_electronic_device=false."""


def extract_json_from_response(content: str) -> str:
    """
    Extract JSON from API response that may contain markdown or extra text.

    Handles common response formats:
    - Pure JSON
    - JSON wrapped in ```json ... ``` code blocks
    - JSON wrapped in ``` ... ``` code blocks
    - JSON embedded in surrounding text

    Args:
        content: Raw response content from API

    Returns:
        Extracted JSON string (may still need json.loads)

    Raises:
        ValueError: If no JSON-like content found
    """
    if not content or not content.strip():
        raise ValueError("Empty response content")

    content = content.strip()

    if '```json' in content:
        try:
            return content.split('```json')[1].split('```')[0].strip()
        except IndexError:
            pass

    if '```' in content:
        try:
            return content.split('```')[1].split('```')[0].strip()
        except IndexError:
            pass

    # Find the outermost object by counting nesting
    if '{' in content and '}' in content:
        start = content.index('{')
        depth = 0
        for i, char in enumerate(content[start:], start):
            if char == '{':
                depth += 1
            elif char == '}':
                depth -= 1
                if depth == 0:
                    return content[start:i + 1]

    return content


def _coerce_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "yes", "1")
    return bool(value)


def parse_analysis_response(content: str) -> Dict[str, Any]:
    """
    Parse and validate a perception response.

    Extracts JSON, parses it, and normalizes it to the analysis schema:
    scores are clamped to 0-100, unknown postures become UNKNOWN and
    distraction labels are coerced to a list of short strings.

    Args:
        content: Raw API response content

    Returns:
        Normalized analysis dictionary (no timestamp)

    Raises:
        ValueError: If content is empty or not a JSON object
        json.JSONDecodeError: If JSON parsing fails
    """
    result = json.loads(extract_json_from_response(content))
    if not isinstance(result, dict):
        raise ValueError(f"Expected a JSON object, got {type(result).__name__}")

    # Accept both snake_case and the camelCase some models echo back
    def pick(snake: str, camel: str, default: Any) -> Any:
        if snake in result:
            return result[snake]
        return result.get(camel, default)

    raw_score = pick("concentration_score", "concentrationScore", 0)
    try:
        score = int(round(float(raw_score)))
    except (TypeError, ValueError):
        logger.warning(f"Invalid concentration_score value: {raw_score!r}, defaulting to 0")
        score = 0
    score = min(100, max(0, score))

    raw_posture = str(pick("posture", "posture", Posture.UNKNOWN.value)).upper()
    try:
        posture = Posture(raw_posture)
    except ValueError:
        logger.warning(f"Unknown posture value: {raw_posture!r}, using UNKNOWN")
        posture = Posture.UNKNOWN

    raw_distractions = pick("detected_distractions", "detectedDistractions", [])
    if isinstance(raw_distractions, str):
        raw_distractions = [raw_distractions] if raw_distractions.strip() else []
    elif not isinstance(raw_distractions, list):
        raw_distractions = []
    distractions: List[str] = [str(d).strip() for d in raw_distractions if str(d).strip()]

    return {
        "concentration_score": score,
        "is_looking_at_screen": _coerce_bool(pick("is_looking_at_screen", "isLookingAtScreen", False)),
        "posture": posture.value,
        "has_electronic_device": _coerce_bool(pick("has_electronic_device", "hasElectronicDevice", False)),
        "detected_distractions": distractions,
        "feedback": str(pick("feedback", "feedback", "") or ""),
    }


class PerceptionClientProtocol(Protocol):
    """
    Interface every perception provider implements.

    Calls are blocking; the capture loop runs them on a worker thread.
    """

    def analyze(self, image: bytes) -> Dict[str, Any]:
        """
        Judge one compressed JPEG frame.

        Args:
            image: JPEG-encoded frame bytes

        Returns:
            Normalized analysis dictionary (see parse_analysis_response)

        Raises:
            AnalysisError: With the ErrorKind of the failure. Raw SDK
                exceptions may also escape; callers classify them.
        """
        ...
