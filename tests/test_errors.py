"""
Tests for ai/errors.py - mapping analysis failures onto retry reactions.
"""

import socket
import sys
import unittest
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from google.api_core import exceptions as google_exceptions

import config
from ai.errors import (
    AnalysisError,
    ErrorKind,
    classify_error,
    diagnostic_for,
    is_fatal,
    retry_delay,
)


class TestClassifyError(unittest.TestCase):

    def test_explicit_kind_wins(self):
        error = AnalysisError("429 quota", ErrorKind.UNAUTHORIZED)
        self.assertEqual(classify_error(error), ErrorKind.UNAUTHORIZED)

    def test_google_rate_limit(self):
        self.assertEqual(classify_error(google_exceptions.ResourceExhausted("slow down")), ErrorKind.RATE_LIMITED)
        self.assertEqual(classify_error(google_exceptions.TooManyRequests("slow down")), ErrorKind.RATE_LIMITED)

    def test_google_unavailable(self):
        self.assertEqual(classify_error(google_exceptions.NotFound("no model")), ErrorKind.SERVICE_UNAVAILABLE)
        self.assertEqual(classify_error(google_exceptions.ServiceUnavailable("down")), ErrorKind.SERVICE_UNAVAILABLE)

    def test_google_unauthorized(self):
        self.assertEqual(classify_error(google_exceptions.Unauthenticated("who?")), ErrorKind.UNAUTHORIZED)
        self.assertEqual(classify_error(google_exceptions.PermissionDenied("no")), ErrorKind.UNAUTHORIZED)

    def test_message_markers(self):
        self.assertEqual(classify_error(Exception("HTTP 429 Too Many Requests")), ErrorKind.RATE_LIMITED)
        self.assertEqual(classify_error(Exception("Quota exceeded for project")), ErrorKind.RATE_LIMITED)
        self.assertEqual(classify_error(Exception("RESOURCE_EXHAUSTED")), ErrorKind.RATE_LIMITED)
        self.assertEqual(classify_error(Exception("404 model missing")), ErrorKind.SERVICE_UNAVAILABLE)
        self.assertEqual(classify_error(Exception("API key not valid")), ErrorKind.UNAUTHORIZED)
        self.assertEqual(classify_error(Exception("API_KEY_INVALID")), ErrorKind.UNAUTHORIZED)

    def test_transient_network(self):
        self.assertEqual(classify_error(ConnectionResetError("reset")), ErrorKind.TRANSIENT_NETWORK)
        self.assertEqual(classify_error(TimeoutError("slow")), ErrorKind.TRANSIENT_NETWORK)
        self.assertEqual(classify_error(socket.gaierror("dns")), ErrorKind.TRANSIENT_NETWORK)
        self.assertEqual(classify_error(google_exceptions.DeadlineExceeded("late")), ErrorKind.TRANSIENT_NETWORK)

    def test_everything_else_unknown(self):
        self.assertEqual(classify_error(ValueError("bad json")), ErrorKind.UNKNOWN)


class TestReactions(unittest.TestCase):

    def test_only_unauthorized_is_fatal(self):
        self.assertTrue(is_fatal(ErrorKind.UNAUTHORIZED))
        for kind in ErrorKind:
            if kind != ErrorKind.UNAUTHORIZED:
                self.assertFalse(is_fatal(kind))

    def test_retry_delays(self):
        self.assertIsNone(retry_delay(ErrorKind.UNAUTHORIZED, 5.0))
        self.assertEqual(retry_delay(ErrorKind.RATE_LIMITED, 5.0), config.BACKOFF_SECONDS)
        self.assertEqual(retry_delay(ErrorKind.SERVICE_UNAVAILABLE, 3.0), config.BACKOFF_SECONDS)
        self.assertEqual(retry_delay(ErrorKind.TRANSIENT_NETWORK, 10.0), 10.0)
        self.assertEqual(retry_delay(ErrorKind.UNKNOWN, 3.0), 3.0)

    def test_diagnostics(self):
        self.assertEqual(diagnostic_for(ErrorKind.RATE_LIMITED), config.DIAGNOSTIC_RATE_LIMITED)
        self.assertEqual(diagnostic_for(ErrorKind.SERVICE_UNAVAILABLE), config.DIAGNOSTIC_SERVICE_UNAVAILABLE)
        self.assertEqual(diagnostic_for(ErrorKind.UNAUTHORIZED), config.DIAGNOSTIC_UNAUTHORIZED)
        self.assertEqual(diagnostic_for(ErrorKind.UNKNOWN), config.DIAGNOSTIC_TRANSIENT)
        self.assertEqual(diagnostic_for(ErrorKind.TRANSIENT_NETWORK), config.DIAGNOSTIC_TRANSIENT)


if __name__ == "__main__":
    unittest.main()
