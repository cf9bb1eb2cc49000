"""
Unit tests for shared/error_logger.py
"""

import os
import tempfile
import unittest

from shared.error_logger import log_error


class TestLogError(unittest.TestCase):
    """Tests for log_error() function."""

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmp.cleanup)

    def read(self, path):
        with open(path, encoding="utf-8") as f:
            return f.read()

    def test_writes_report_with_context(self):
        path = log_error(
            "sync",
            "GitHub API error: 502",
            context={"repository_id": "repo-1"},
            log_dir=self.tmp.name,
        )

        self.assertTrue(os.path.basename(path).startswith("sync_error_"))
        content = self.read(path)
        self.assertIn("Error Type: sync", content)
        self.assertIn("Error Message: GitHub API error: 502", content)
        self.assertIn("repository_id: repo-1", content)
        self.assertNotIn("Traceback", content)

    def test_includes_traceback(self):
        try:
            raise ValueError("bad row")
        except ValueError as e:
            path = log_error("dispatch", str(e), exc=e, log_dir=self.tmp.name)

        content = self.read(path)
        self.assertIn("Traceback:", content)
        self.assertIn("ValueError: bad row", content)

    def test_separate_files_per_error(self):
        first = log_error("sending", "one", log_dir=self.tmp.name)
        second = log_error("sending", "two", log_dir=self.tmp.name)

        self.assertNotEqual(first, second)


if __name__ == "__main__":
    unittest.main()
