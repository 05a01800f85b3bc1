"""Unit tests for credential_render.config."""

import logging
import os
import sys
import tempfile
import unittest
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from credential_render.config import (
    HANDLER_NAME_PREFIX,
    SYSTEM_FONT_SUBSTITUTES,
    RenderConfig,
    configure_logging,
    default_scratch_dir,
)


class TestRenderConfig(unittest.TestCase):
    """Tests for RenderConfig defaults."""

    def test_defaults(self):
        config = RenderConfig()

        self.assertEqual(config.css_api_url, 'https://fonts.googleapis.com/css2')
        self.assertEqual(config.fetch_timeout, 5.0)
        self.assertEqual(config.output_format, 'PNG')
        self.assertEqual(config.output_mime, 'image/png')
        self.assertEqual(config.scratch_dir, default_scratch_dir())

    def test_scratch_dir_string_becomes_path(self):
        config = RenderConfig(scratch_dir='/tmp/fonts')
        self.assertIsInstance(config.scratch_dir, Path)

    def test_scratch_dir_can_be_disabled(self):
        self.assertIsNone(RenderConfig(scratch_dir=None).scratch_dir)

    def test_substitution_keys_are_lowercase(self):
        for name in SYSTEM_FONT_SUBSTITUTES:
            self.assertEqual(name, name.lower())


class TestConfigureLogging(unittest.TestCase):
    """Tests for configure_logging function."""

    def setUp(self):
        """Save original logging state."""
        self.root_logger = logging.getLogger()
        self.original_handlers = self.root_logger.handlers.copy()
        self.original_level = self.root_logger.level

    def tearDown(self):
        """Restore original logging state."""
        for handler in self.root_logger.handlers:
            if handler not in self.original_handlers:
                handler.close()
        self.root_logger.handlers = self.original_handlers
        self.root_logger.setLevel(self.original_level)

    def test_sets_level(self):
        configure_logging(level='DEBUG')
        self.assertEqual(self.root_logger.level, logging.DEBUG)

    def test_unknown_level_defaults_to_info(self):
        configure_logging(level='CHATTY')
        self.assertEqual(self.root_logger.level, logging.INFO)

    def test_with_file(self):
        with tempfile.NamedTemporaryFile(mode='w', suffix='.log', delete=False) as f:
            log_file = f.name

        file_handlers = []
        try:
            configure_logging(level='INFO', log_file=log_file)

            file_handlers = [
                h for h in self.root_logger.handlers
                if isinstance(h, logging.FileHandler)
            ]
            self.assertEqual(len(file_handlers), 1)
        finally:
            for handler in file_handlers:
                handler.close()
            os.unlink(log_file)

    def test_quiets_pil(self):
        configure_logging(level='DEBUG')
        self.assertEqual(logging.getLogger('PIL').level, logging.WARNING)

    def test_keeps_host_handlers(self):
        host_handler = logging.NullHandler()
        self.root_logger.addHandler(host_handler)

        configure_logging(level='INFO')

        self.assertIn(host_handler, self.root_logger.handlers)

    def test_repeat_call_does_not_duplicate_console(self):
        configure_logging(level='INFO')
        configure_logging(level='DEBUG')

        names = [h.get_name() for h in self.root_logger.handlers]
        self.assertEqual(names.count(HANDLER_NAME_PREFIX + 'console'), 1)

    def test_replace_handlers_removes_host_handlers(self):
        host_handler = logging.NullHandler()
        self.root_logger.addHandler(host_handler)

        configure_logging(level='INFO', replace_handlers=True)

        self.assertNotIn(host_handler, self.root_logger.handlers)
        self.assertEqual([h.get_name() for h in self.root_logger.handlers],
                         [HANDLER_NAME_PREFIX + 'console'])
