"""Attention analysis using OpenAI Vision API."""

import base64
import logging
from typing import Dict, Optional, Any

from openai import OpenAI

import config
from ai.errors import AnalysisError, ErrorKind
from camera.base_analyzer import ANALYSIS_PROMPT, parse_analysis_response

logger = logging.getLogger(__name__)


class OpenAIPerceptionClient:
    """
    Uses OpenAI Vision API (GPT-4o-mini with vision) to judge a student's
    webcam frame. Same output schema as the Gemini client.
    """

    def __init__(self, api_key: Optional[str] = None, vision_model: Optional[str] = None):
        """
        Initialize OpenAI perception client.

        Args:
            api_key: OpenAI API key (defaults to config.OPENAI_API_KEY)
            vision_model: Vision model to use (defaults to config.OPENAI_VISION_MODEL)
        """
        self.api_key = api_key or config.OPENAI_API_KEY
        self.vision_model = vision_model or config.OPENAI_VISION_MODEL
        self.client: Optional[OpenAI] = None

    def _get_client(self) -> OpenAI:
        if self.client is not None:
            return self.client
        if not self.api_key:
            raise AnalysisError(
                "OpenAI API key not found. Set OPENAI_API_KEY in your .env file.",
                ErrorKind.UNAUTHORIZED,
            )
        self.client = OpenAI(api_key=self.api_key, timeout=30.0)
        logger.info(f"OpenAI perception client initialized with {self.vision_model}")
        return self.client

    def analyze(self, image: bytes) -> Dict[str, Any]:
        """
        Analyse a compressed frame using OpenAI Vision API.

        Args:
            image: JPEG bytes

        Returns:
            Normalized analysis dictionary

        Raises:
            AnalysisError: On empty/unparseable responses or missing key.
        """
        client = self._get_client()
        base64_image = base64.b64encode(image).decode('utf-8')

        response = client.chat.completions.create(
            model=self.vision_model,
            messages=[
                {"role": "system", "content": ANALYSIS_PROMPT},
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": "Analyse this frame:"},
                        {
                            "type": "image_url",
                            "image_url": {
                                "url": f"data:image/jpeg;base64,{base64_image}",
                                "detail": "low",  # Cheaper, enough for posture/gaze
                            },
                        },
                    ],
                },
            ],
            response_format={"type": "json_object"},
            max_tokens=300,
            temperature=0.3,
        )

        content = response.choices[0].message.content if response.choices else None
        logger.debug(f"OpenAI API raw response: {content[:200] if content else 'EMPTY'}")

        if not content or not content.strip():
            raise AnalysisError("Empty response from OpenAI Vision API")

        try:
            return parse_analysis_response(content)
        except ValueError as e:
            raise AnalysisError(f"Could not parse OpenAI response: {e}") from e
