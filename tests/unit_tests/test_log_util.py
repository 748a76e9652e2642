import logging
import unittest

from monodep.utils import log_util


class TestLogUtil(unittest.TestCase):
    def test_log_levels(self):
        with self.assertLogs(log_util.logger, level=logging.DEBUG) as context:
            log_util.log_d("debug %s", "message")
            log_util.log_i("info")
            log_util.log_w("warning")
            log_util.log_e("error")
        self.assertEqual(
            ["DEBUG:monodep:debug message", "INFO:monodep:info", "WARNING:monodep:warning", "ERROR:monodep:error"],
            context.output,
        )

    def test_log_inout_returns_result(self):
        @log_util.log_inout
        def add(a, b):
            return a + b

        self.assertEqual(3, add(1, 2))
        self.assertEqual("add", add.__name__)
