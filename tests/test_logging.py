"""Tests for perfcompare.logging."""

from __future__ import annotations

import logging
import tempfile
import unittest
from pathlib import Path

from perfcompare.logging import get_logger, setup_logging


class TestSetupLogging(unittest.TestCase):
    def tearDown(self) -> None:
        for handler in logging.getLogger("perfcompare").handlers:
            handler.close()
        logging.getLogger("perfcompare").handlers.clear()

    def _console(self, logger: logging.Logger) -> logging.Handler:
        return next(h for h in logger.handlers if not isinstance(h, logging.FileHandler))

    def test_default_level(self) -> None:
        logger = setup_logging()
        self.assertEqual(logger.name, "perfcompare")
        self.assertEqual(self._console(logger).level, logging.INFO)

    def test_verbose_wins_over_quiet(self) -> None:
        logger = setup_logging(verbose=True, quiet=True)
        self.assertEqual(self._console(logger).level, logging.DEBUG)

    def test_quiet(self) -> None:
        logger = setup_logging(quiet=True)
        self.assertEqual(self._console(logger).level, logging.WARNING)

    def test_reconfigure_replaces_handlers(self) -> None:
        setup_logging()
        logger = setup_logging()
        self.assertEqual(len(logger.handlers), 1)

    def test_log_file_gets_debug(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "perfcompare.log"
            setup_logging(quiet=True, log_file=path)
            get_logger("orchestrator").debug("building control")
            for handler in logging.getLogger("perfcompare").handlers:
                handler.flush()
            self.assertIn("perfcompare.orchestrator: building control", path.read_text())

    def test_verbose_console_is_timestamped(self) -> None:
        logger = setup_logging(verbose=True)
        record = logging.LogRecord(
            "perfcompare.reachability", logging.DEBUG, __file__, 1,
            "Checking reachable %s attempt %d", ("http://localhost:4200", 3), None,
        )
        line = self._console(logger).format(record)
        self.assertRegex(line, r"^\d\d:\d\d:\d\d\.\d{3} DEBUG ")
        self.assertTrue(line.endswith("attempt 3"))

    def test_plain_console_has_no_timestamp(self) -> None:
        logger = setup_logging()
        record = logging.LogRecord(
            "perfcompare.orchestrator", logging.INFO, __file__, 1, "== comparing", (), None
        )
        self.assertEqual(self._console(logger).format(record), "INFO     == comparing")

    def test_log_file_parent_created(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "logs" / "nightly" / "run.log"
            setup_logging(quiet=True, log_file=path)
            self.assertTrue(path.parent.is_dir())

    def test_reconfigure_closes_previous_log_file(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            setup_logging(quiet=True, log_file=Path(tmpdir) / "first.log")
            first = next(
                h for h in logging.getLogger("perfcompare").handlers
                if isinstance(h, logging.FileHandler)
            )
            setup_logging(quiet=True)
            self.assertIsNone(first.stream)

    def test_child_logger_name(self) -> None:
        self.assertEqual(get_logger("server").name, "perfcompare.server")


if __name__ == "__main__":
    unittest.main()
