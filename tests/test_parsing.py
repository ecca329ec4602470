"""
Tests for perception response parsing and the provider clients.
"""

import io
import json
import sys
import unittest
from pathlib import Path
from unittest.mock import MagicMock, patch

sys.path.insert(0, str(Path(__file__).parent.parent))

from PIL import Image

from ai.errors import AnalysisError, ErrorKind
from camera import create_perception_client
from camera.base_analyzer import extract_json_from_response, parse_analysis_response
from camera.gemini_analyzer import GeminiPerceptionClient
from camera.openai_analyzer import OpenAIPerceptionClient


def jpeg_bytes() -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (64, 48)).save(buffer, format="JPEG")
    return buffer.getvalue()


VALID = {
    "concentration_score": 72,
    "is_looking_at_screen": True,
    "posture": "GOOD",
    "has_electronic_device": False,
    "detected_distractions": [],
    "feedback": "Nice and steady.",
}


class TestExtractJson(unittest.TestCase):

    def test_pure_json(self):
        self.assertEqual(extract_json_from_response('{"a": 1}'), '{"a": 1}')

    def test_markdown_block(self):
        content = 'Here you go:\n```json\n{"a": 1}\n```'
        self.assertEqual(extract_json_from_response(content), '{"a": 1}')

    def test_embedded_object(self):
        content = 'Result: {"a": {"b": 2}} done'
        self.assertEqual(extract_json_from_response(content), '{"a": {"b": 2}}')

    def test_empty(self):
        with self.assertRaises(ValueError):
            extract_json_from_response("   ")


class TestParseAnalysis(unittest.TestCase):

    def test_valid_payload(self):
        self.assertEqual(parse_analysis_response(json.dumps(VALID)), VALID)

    def test_camel_case_keys(self):
        content = json.dumps({
            "concentrationScore": 40,
            "isLookingAtScreen": False,
            "posture": "slouching",
            "hasElectronicDevice": True,
            "detectedDistractions": ["Playing with phone"],
            "feedback": "Put the phone away.",
        })
        result = parse_analysis_response(content)
        self.assertEqual(result["concentration_score"], 40)
        self.assertEqual(result["posture"], "SLOUCHING")
        self.assertTrue(result["has_electronic_device"])
        self.assertEqual(result["detected_distractions"], ["Playing with phone"])

    def test_score_clamped(self):
        self.assertEqual(parse_analysis_response('{"concentration_score": 140}')["concentration_score"], 100)
        self.assertEqual(parse_analysis_response('{"concentration_score": -3}')["concentration_score"], 0)
        self.assertEqual(parse_analysis_response('{"concentration_score": "high"}')["concentration_score"], 0)

    def test_unknown_posture(self):
        self.assertEqual(parse_analysis_response('{"posture": "LYING_DOWN"}')["posture"], "UNKNOWN")

    def test_distractions_normalized(self):
        result = parse_analysis_response('{"detected_distractions": "Eating"}')
        self.assertEqual(result["detected_distractions"], ["Eating"])
        result = parse_analysis_response('{"detected_distractions": ["", "  Talking "]}')
        self.assertEqual(result["detected_distractions"], ["Talking"])

    def test_string_booleans(self):
        result = parse_analysis_response('{"has_electronic_device": "false", "is_looking_at_screen": "yes"}')
        self.assertFalse(result["has_electronic_device"])
        self.assertTrue(result["is_looking_at_screen"])

    def test_non_object_rejected(self):
        with self.assertRaises(ValueError):
            parse_analysis_response("[1, 2]")


class TestGeminiClient(unittest.TestCase):

    def test_missing_key_is_unauthorized(self):
        client = GeminiPerceptionClient(api_key="")
        client.api_key = ""
        with self.assertRaises(AnalysisError) as ctx:
            client.analyze(jpeg_bytes())
        self.assertEqual(ctx.exception.kind, ErrorKind.UNAUTHORIZED)

    @patch("camera.gemini_analyzer.genai")
    def test_analyze(self, mock_genai):
        response = MagicMock()
        response.prompt_feedback = None
        response.text = json.dumps(VALID)
        mock_genai.GenerativeModel.return_value.generate_content.return_value = response

        client = GeminiPerceptionClient(api_key="test-key")
        self.assertEqual(client.analyze(jpeg_bytes()), VALID)
        mock_genai.configure.assert_called_once_with(api_key="test-key")

    @patch("camera.gemini_analyzer.genai")
    def test_unparseable_response(self, mock_genai):
        response = MagicMock()
        response.prompt_feedback = None
        response.text = "I cannot help with that"
        mock_genai.GenerativeModel.return_value.generate_content.return_value = response

        with self.assertRaises(AnalysisError):
            GeminiPerceptionClient(api_key="test-key").analyze(jpeg_bytes())


class TestOpenAIClient(unittest.TestCase):

    @patch("camera.openai_analyzer.OpenAI")
    def test_analyze(self, mock_openai):
        message = MagicMock()
        message.content = "```json\n" + json.dumps(VALID) + "\n```"
        completion = MagicMock()
        completion.choices = [MagicMock(message=message)]
        mock_openai.return_value.chat.completions.create.return_value = completion

        client = OpenAIPerceptionClient(api_key="test-key")
        self.assertEqual(client.analyze(jpeg_bytes()), VALID)

        kwargs = mock_openai.return_value.chat.completions.create.call_args.kwargs
        image_part = kwargs["messages"][1]["content"][1]
        self.assertTrue(image_part["image_url"]["url"].startswith("data:image/jpeg;base64,"))


class TestFactory(unittest.TestCase):

    @patch("camera.openai_analyzer.OpenAI")
    def test_openai_provider(self, _mock_openai):
        self.assertIsInstance(create_perception_client("openai"), OpenAIPerceptionClient)

    def test_unknown_provider_defaults_to_gemini(self):
        self.assertIsInstance(create_perception_client("claude"), GeminiPerceptionClient)


if __name__ == "__main__":
    unittest.main()
