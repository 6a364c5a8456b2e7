import io
import json
import logging
import os
import time
import unittest
import uuid
from datetime import timedelta, timezone
from unittest import mock

import structlog

from rlock.config import Settings
from rlock.identity import generate_owner_id
from rlock.logging import setup_logging
from rlock.utils import parse_utc, poll_until, to_seconds


class _Busy(Exception):
    pass


class PollUntilTests(unittest.TestCase):
    def test_returns_after_retries(self):
        calls = []

        def attempt():
            calls.append(1)
            if len(calls) < 3:
                raise _Busy()
            return "ok"

        result = poll_until(attempt, interval=0.01, deadline=time.monotonic() + 5, retry_on=(_Busy,))
        self.assertEqual(result, "ok")
        self.assertEqual(len(calls), 3)

    def test_deadline(self):
        def attempt():
            raise _Busy()

        started = time.monotonic()
        with self.assertRaises(TimeoutError):
            poll_until(attempt, interval=0.02, deadline=started + 0.1, retry_on=(_Busy,))
        self.assertLess(time.monotonic() - started, 0.1 + 0.02 + 1.0)

    def test_expired_deadline_never_calls(self):
        fn = mock.Mock()
        with self.assertRaises(TimeoutError):
            poll_until(fn, interval=0.01, deadline=time.monotonic() - 1)
        fn.assert_not_called()

    def test_other_errors_propagate(self):
        fn = mock.Mock(side_effect=KeyError("x"))
        with self.assertRaises(KeyError):
            poll_until(fn, interval=0.01, deadline=time.monotonic() + 5, retry_on=(_Busy,))
        self.assertEqual(fn.call_count, 1)


class ConversionTests(unittest.TestCase):
    def test_parse_utc(self):
        self.assertIsNone(parse_utc(None))
        self.assertIsNone(parse_utc(""))
        self.assertIsNone(parse_utc("not a date"))
        dt = parse_utc("2026-01-02T03:04:05")
        self.assertEqual(dt.tzinfo, timezone.utc)
        offset = parse_utc("2026-01-02T03:04:05+02:00")
        self.assertEqual(offset.utcoffset(), timedelta(hours=2))

    def test_to_seconds(self):
        self.assertEqual(to_seconds(timedelta(minutes=2)), 120.0)
        self.assertEqual(to_seconds(5), 5.0)


class IdentityTests(unittest.TestCase):
    def test_ids_are_unique(self):
        self.assertEqual(len({generate_owner_id() for _ in range(100)}), 100)

    def test_falls_back_to_random(self):
        with mock.patch("uuid.uuid1", side_effect=ValueError("no clock")):
            owner = generate_owner_id()
        self.assertEqual(uuid.UUID(owner).version, 4)

    def test_falls_back_to_name_based(self):
        with mock.patch("uuid.uuid1", side_effect=OSError("no node")), mock.patch(
            "uuid.uuid4", side_effect=NotImplementedError("no urandom")
        ):
            owner = generate_owner_id()
        self.assertEqual(uuid.UUID(owner).version, 5)


class SettingsTests(unittest.TestCase):
    def test_defaults(self):
        with mock.patch.dict(os.environ, {}, clear=True):
            s = Settings()
        self.assertEqual(s.poll_interval_seconds, 1.0)
        self.assertEqual(s.max_age_seconds, 3600.0)
        self.assertEqual(s.table_name, "rlock")

    def test_env_override(self):
        env = {"RLOCK_POLL_INTERVAL_SECONDS": "0.25", "RLOCK_TABLE": "job_locks"}
        with mock.patch.dict(os.environ, env, clear=True):
            s = Settings()
        self.assertEqual(s.poll_interval_seconds, 0.25)
        self.assertEqual(s.table_name, "job_locks")


class SetupLoggingTests(unittest.TestCase):
    def setUp(self):
        root = logging.getLogger()
        self._saved = (root.level, list(root.handlers))

    def tearDown(self):
        root = logging.getLogger()
        root.handlers[:] = self._saved[1]
        root.setLevel(self._saved[0])
        structlog.reset_defaults()

    def test_json_lines_on_stdout(self):
        buf = io.StringIO()
        with mock.patch.dict(os.environ, {"LOG_ERROR_FILE": ""}), mock.patch("sys.stdout", buf):
            setup_logging("INFO", "json")
            structlog.get_logger().info("lock_unlocked", name="job-17")
            structlog.get_logger().debug("lock_contended", name="job-17")
        lines = [json.loads(line) for line in buf.getvalue().splitlines()]
        self.assertEqual(len(lines), 1)
        self.assertEqual(lines[0]["event"], "lock_unlocked")
        self.assertEqual(lines[0]["name"], "job-17")
        self.assertEqual(lines[0]["level"], "info")


if __name__ == "__main__":
    unittest.main()
