import json
import logging
import sys
import unittest
from pathlib import Path

ROOT = Path(__file__).resolve().parents[2]
sys.path.insert(0, str(ROOT / "packages" / "core"))

from procwatch_core.logging_setup import JsonFormatter


class JsonFormatterTests(unittest.TestCase):
    def test_payload_carries_event(self):
        record = logging.LogRecord("procwatch.telemetry", logging.INFO, __file__, 1, "disk tracked: %s", ("sda",), None)
        record.event = "entity_added"
        payload = json.loads(JsonFormatter().format(record))
        self.assertEqual(payload["level"], "INFO")
        self.assertEqual(payload["logger"], "procwatch.telemetry")
        self.assertEqual(payload["msg"], "disk tracked: sda")
        self.assertEqual(payload["event"], "entity_added")
        self.assertIn("ts_utc", payload)

    def test_crash_and_shutdown_context_is_kept(self):
        record = logging.LogRecord("procwatch", logging.CRITICAL, __file__, 1, "uncaught exception", (), None)
        record.event = "uncaught_exception"
        record.crash_id = "3f1c"
        record.exit_code = 0
        payload = json.loads(JsonFormatter().format(record))
        self.assertEqual(payload["crash_id"], "3f1c")
        self.assertEqual(payload["exit_code"], 0)

    def test_exception_is_formatted(self):
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            record = logging.LogRecord("procwatch", logging.ERROR, __file__, 1, "failed", (), sys.exc_info())
        payload = json.loads(JsonFormatter().format(record))
        self.assertIn("RuntimeError: boom", payload["exc"])
        self.assertNotIn("event", payload)


if __name__ == "__main__":
    unittest.main()
