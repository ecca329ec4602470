"""
Camera capture and provider-agnostic perception clients.

Supports multiple vision providers (Gemini, OpenAI) via factory pattern.
"""

import logging
from typing import TYPE_CHECKING, Optional

import config

if TYPE_CHECKING:
    from camera.base_analyzer import PerceptionClientProtocol

logger = logging.getLogger(__name__)


def create_perception_client(provider: Optional[str] = None) -> "PerceptionClientProtocol":
    """
    Create a perception client based on the configured provider.

    Uses VISION_PROVIDER from config to determine which client to instantiate.
    Supported providers: "gemini" (default), "openai"

    Args:
        provider: Override for config.VISION_PROVIDER

    Returns:
        PerceptionClientProtocol: The appropriate perception client instance
    """
    provider = (provider or config.VISION_PROVIDER).lower()

    if provider == "gemini":
        from camera.gemini_analyzer import GeminiPerceptionClient
        logger.info("Using Gemini vision provider")
        return GeminiPerceptionClient()
    elif provider == "openai":
        from camera.openai_analyzer import OpenAIPerceptionClient
        logger.info("Using OpenAI vision provider")
        return OpenAIPerceptionClient()
    else:
        from camera.gemini_analyzer import GeminiPerceptionClient
        logger.warning(f"Unknown vision provider '{provider}', defaulting to Gemini. "
                      f"Supported providers: 'gemini', 'openai'")
        return GeminiPerceptionClient()
