"""Attention analysis using Google Gemini API."""

import io
import logging
from typing import Dict, Optional, Any

import google.generativeai as genai
from PIL import Image

import config
from ai.errors import AnalysisError, ErrorKind
from camera.base_analyzer import ANALYSIS_PROMPT, parse_analysis_response

logger = logging.getLogger(__name__)


class GeminiPerceptionClient:
    """
    Uses Google Gemini Vision API to judge a student's webcam frame:
    - Concentration score (0-100)
    - Gaze towards the screen
    - Sitting posture
    - Electronic devices in use and other distractions
    - A short corrective feedback line (spoken by voice alerts)

    The model is configured lazily on the first call so a missing key
    surfaces as an UNAUTHORIZED analysis failure, which stops monitoring,
    instead of an import-time crash.
    """

    def __init__(self, api_key: Optional[str] = None, vision_model: Optional[str] = None):
        """
        Initialize Gemini perception client.

        Args:
            api_key: Gemini API key (defaults to config.GEMINI_API_KEY)
            vision_model: Vision model to use (defaults to config.GEMINI_VISION_MODEL)
        """
        self.api_key = api_key or config.GEMINI_API_KEY
        self.vision_model = vision_model or config.GEMINI_VISION_MODEL
        self.model: Optional[genai.GenerativeModel] = None

        # Request timeout in seconds (prevents indefinite hangs on network issues)
        self.request_timeout = 30.0

    def _get_model(self) -> genai.GenerativeModel:
        """Configure the SDK on first use."""
        if self.model is not None:
            return self.model

        if not self.api_key:
            raise AnalysisError(
                "Gemini API key not found. Set GEMINI_API_KEY in your .env file.",
                ErrorKind.UNAUTHORIZED,
            )

        genai.configure(api_key=self.api_key)
        self.model = genai.GenerativeModel(
            model_name=self.vision_model,
            generation_config=genai.GenerationConfig(
                temperature=0.3,  # Lower temp for more consistent scoring
                max_output_tokens=300,
                response_mime_type="application/json",
            )
        )
        logger.info(f"Gemini perception client initialized with {self.vision_model}")
        return self.model

    def analyze(self, image: bytes) -> Dict[str, Any]:
        """
        Analyse a compressed frame using Gemini Vision API.

        Args:
            image: JPEG bytes (already downscaled by camera.capture.compress_frame)

        Returns:
            Normalized analysis dictionary

        Raises:
            AnalysisError: On blocked/empty/unparseable responses or missing key.
                SDK exceptions (quota, auth, network) propagate unchanged.
        """
        model = self._get_model()
        pil_image = Image.open(io.BytesIO(image))

        response = model.generate_content(
            [ANALYSIS_PROMPT, pil_image],
            request_options={"timeout": self.request_timeout}
        )

        # Gemini may block responses due to safety filters
        feedback = getattr(response, 'prompt_feedback', None)
        if feedback is not None and getattr(feedback, 'block_reason', None):
            raise AnalysisError(f"Gemini response blocked by safety filter: {feedback.block_reason}")

        try:
            content = response.text
        except ValueError as e:
            # response.text raises ValueError if no valid candidates
            raise AnalysisError(f"Gemini response has no valid text: {e}") from e

        logger.debug(f"Gemini API raw response: {content[:200] if content else 'EMPTY'}")

        if not content or not content.strip():
            raise AnalysisError("Empty response from Gemini Vision API")

        try:
            result = parse_analysis_response(content)
        except ValueError as e:
            # json.JSONDecodeError is a ValueError subclass
            raise AnalysisError(f"Could not parse Gemini response: {e}") from e

        if result["has_electronic_device"]:
            logger.info(f"Device detected by Gemini (score {result['concentration_score']})")

        return result
