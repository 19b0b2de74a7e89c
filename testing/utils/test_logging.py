"""Tests for logging configuration."""

import logging
import os
import unittest
from unittest.mock import patch

from src.utils.logging import configure_logging


class TestConfigureLogging(unittest.TestCase):
    """Tests for configure_logging."""

    def setUp(self) -> None:
        """Keep the root logger state so it can be restored."""
        root = logging.getLogger()
        self._handlers = list(root.handlers)
        self._level = root.level
        self.addCleanup(self._restore)

    def _restore(self) -> None:
        root = logging.getLogger()
        root.handlers[:] = self._handlers
        root.setLevel(self._level)
        logging.getLogger("sqlalchemy.engine").setLevel(logging.NOTSET)
        logging.getLogger("uvicorn.access").setLevel(logging.NOTSET)

    @patch.dict(os.environ, {"LOG_LEVEL": "debug"}, clear=True)
    def test_single_stdout_handler(self) -> None:
        """Test that exactly one handler is installed at the configured level."""
        configure_logging()

        root = logging.getLogger()
        self.assertEqual(len(root.handlers), 1)
        self.assertEqual(root.level, logging.DEBUG)
        self.assertEqual(logging.getLogger("uvicorn.access").level, logging.WARNING)
        self.assertEqual(logging.getLogger("sqlalchemy.engine").level, logging.INFO)

    @patch.dict(os.environ, {"LOG_LEVEL": "WARNING", "LOG_SQL": "true"}, clear=True)
    def test_sql_logging_flag(self) -> None:
        """Test that LOG_SQL turns on statement logging."""
        configure_logging()

        self.assertEqual(logging.getLogger("sqlalchemy.engine").level, logging.INFO)
        self.assertEqual(logging.getLogger("urllib3").level, logging.WARNING)

    @patch.dict(os.environ, {"LOG_LEVEL": "LOUD"}, clear=True)
    def test_invalid_level(self) -> None:
        """Test that an unknown level is rejected."""
        with self.assertRaises(ValueError):
            configure_logging()


if __name__ == "__main__":
    unittest.main()
