"""
Unit tests for resilience/errors.py classification.
"""

import unittest
from unittest.mock import Mock

import requests
from pydantic import ValidationError
from resend.exceptions import ResendError

from models import RuleCreate
from resilience.errors import (
    AuthenticationError,
    CircuitOpenError,
    ErrorKind,
    RateLimitError,
    RepositoryAccessError,
    StorageError,
    UpstreamError,
    classify_error,
    describe_error,
)


def _resend_error(code):
    error = ResendError.__new__(ResendError)
    Exception.__init__(error, "resend failure")
    error.code = code
    return error


class TestClassifyError(unittest.TestCase):
    """Tests for classify_error()"""

    def test_typed_errors(self):
        cases = [
            (AuthenticationError("x"), ErrorKind.AUTHENTICATION, False),
            (RepositoryAccessError("x"), ErrorKind.ACCESS_DENIED, False),
            (UpstreamError("x"), ErrorKind.UPSTREAM, True),
            (StorageError("x"), ErrorKind.STORAGE, True),
            (CircuitOpenError("github"), ErrorKind.UPSTREAM, False),
        ]
        for error, kind, retryable in cases:
            info = classify_error(error)
            self.assertEqual(info.kind, kind, error)
            self.assertEqual(info.retryable, retryable, error)

    def test_rate_limit_carries_retry_after(self):
        info = classify_error(RateLimitError("slow", retry_after=42))

        self.assertEqual(info.kind, ErrorKind.RATE_LIMIT)
        self.assertTrue(info.retryable)
        self.assertEqual(info.retry_after, 42)

    def test_requests_connection_error_is_network(self):
        info = classify_error(requests.ConnectionError("refused"))
        self.assertEqual(info.kind, ErrorKind.NETWORK)
        self.assertTrue(info.retryable)

    def test_requests_timeout_is_network(self):
        self.assertEqual(classify_error(requests.Timeout()).kind, ErrorKind.NETWORK)

    def test_http_error_by_status(self):
        for status, kind in ((500, ErrorKind.UPSTREAM), (404, ErrorKind.ACCESS_DENIED)):
            response = Mock(status_code=status)
            info = classify_error(requests.HTTPError(response=response))
            self.assertEqual(info.kind, kind)

    def test_pydantic_validation_error(self):
        with self.assertRaises(ValidationError) as ctx:
            RuleCreate(
                repository_id="r", user_id="u", inactivity_days=0, issue_states=["open"]
            )

        info = classify_error(ctx.exception)
        self.assertEqual(info.kind, ErrorKind.VALIDATION)
        self.assertFalse(info.retryable)

    def test_resend_errors_by_code(self):
        self.assertEqual(classify_error(_resend_error(429)).kind, ErrorKind.RATE_LIMIT)
        self.assertEqual(classify_error(_resend_error(500)).kind, ErrorKind.UPSTREAM)
        self.assertEqual(
            classify_error(_resend_error(403)).kind, ErrorKind.AUTHENTICATION
        )
        info = classify_error(_resend_error(422))
        self.assertEqual(info.kind, ErrorKind.VALIDATION)
        self.assertFalse(info.retryable)

    def test_unknown_error(self):
        info = classify_error(KeyError("surprise"))
        self.assertEqual(info.kind, ErrorKind.UNKNOWN)
        self.assertTrue(info.retryable)


class TestDescribeError(unittest.TestCase):
    """Tests for describe_error() user-facing reasons"""

    def test_access_revoked_message(self):
        self.assertEqual(
            describe_error(RepositoryAccessError("404")),
            "Access revoked - please reconnect",
        )

    def test_rate_limit_message(self):
        self.assertIn("rate limit", describe_error(RateLimitError("x")))


if __name__ == "__main__":
    unittest.main()
