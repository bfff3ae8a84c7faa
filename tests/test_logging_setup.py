import logging
import tempfile
import unittest
from pathlib import Path

from payroll.logging import QUIET_LOGGERS, setup_logging


class TestSetupLogging(unittest.TestCase):
    def setUp(self):
        root = logging.getLogger()
        self._handlers = list(root.handlers)
        self._level = root.level
        self._quiet = {name: logging.getLogger(name).level for name in QUIET_LOGGERS}
        self._tmp = tempfile.TemporaryDirectory()

    def tearDown(self):
        root = logging.getLogger()
        for h in list(root.handlers):
            root.removeHandler(h)
            h.close()
        for h in self._handlers:
            root.addHandler(h)
        root.setLevel(self._level)
        for name, level in self._quiet.items():
            logging.getLogger(name).setLevel(level)
        self._tmp.cleanup()

    def test_writes_service_tagged_lines_to_own_directory(self):
        path = setup_logging("worker", self._tmp.name, level="info")

        self.assertEqual(path, Path(self._tmp.name) / "worker" / "worker.log")
        logging.getLogger("payroll.services.payouts").info("PAYOUT_CREATED user_id=%s", 7)
        for h in logging.getLogger().handlers:
            h.flush()

        text = path.read_text(encoding="utf-8")
        self.assertIn("LOGGING_INITIALIZED service=worker", text)
        self.assertIn("INFO [worker] payroll.services.payouts PAYOUT_CREATED user_id=7", text)
        self.assertEqual(logging.getLogger("sqlalchemy.engine").level, logging.WARNING)

    def test_repeated_setup_does_not_duplicate_handlers(self):
        setup_logging("web", self._tmp.name)
        setup_logging("web", self._tmp.name)

        self.assertEqual(len(logging.getLogger().handlers), 2)

    def test_debug_keeps_sql_logging(self):
        logging.getLogger("sqlalchemy.engine").setLevel(logging.NOTSET)
        setup_logging("web", self._tmp.name, level="DEBUG")

        self.assertEqual(logging.getLogger("sqlalchemy.engine").level, logging.NOTSET)


if __name__ == "__main__":
    unittest.main()
