import logging
import logging.handlers
import sys
import tempfile
import unittest
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from livedoc.core.logging_config import LOG_FILE_NAME, NOISY_LOGGERS, livedoc_handlers, setup_logging


class TestSetupLogging(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmp.cleanup)
        self.log_dir = Path(self.tmp.name) / 'logs'
        self.root = logging.getLogger()

        level = self.root.level
        self.addCleanup(self.root.setLevel, level)
        self.addCleanup(self.remove_livedoc_handlers)

    def remove_livedoc_handlers(self):
        for handler in livedoc_handlers(self.root):
            self.root.removeHandler(handler)
            handler.close()

    def test_creates_log_file(self):
        log_file = setup_logging(self.log_dir)
        logging.getLogger('livedoc.test').info('hello from the test')
        for handler in livedoc_handlers(self.root):
            handler.flush()

        self.assertEqual(log_file, self.log_dir / LOG_FILE_NAME)
        self.assertIn('hello from the test', log_file.read_text(encoding='utf-8'))
        self.assertEqual(self.root.level, logging.INFO)

    def test_repeat_setup_replaces_own_handlers_only(self):
        foreign = logging.NullHandler()
        self.root.addHandler(foreign)
        self.addCleanup(self.root.removeHandler, foreign)

        setup_logging(self.log_dir)
        setup_logging(self.log_dir, debug_mode=True)

        ours = livedoc_handlers(self.root)
        self.assertEqual(len(ours), 2)
        self.assertEqual(
            sum(isinstance(h, logging.handlers.RotatingFileHandler) for h in ours), 1
        )
        self.assertIn(foreign, self.root.handlers)
        self.assertEqual(self.root.level, logging.DEBUG)

    def test_noisy_libraries_quieted(self):
        setup_logging(self.log_dir, debug_mode=True)
        for name in NOISY_LOGGERS:
            self.assertEqual(logging.getLogger(name).level, logging.WARNING)


if __name__ == '__main__':
    unittest.main()
