import json
import sys
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from livedoc.config import CONFIG_ENV_VAR, PreviewConfig, default_config_path, load_config, save_config


class TestConfig(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmp.cleanup)
        self.path = Path(self.tmp.name) / 'config.json'

    def test_missing_file_gives_defaults(self):
        config = load_config(self.path)
        self.assertEqual(config, PreviewConfig())
        config.validate()

    def test_load_overrides(self):
        self.path.write_text(json.dumps({'http_port_min': 9000, 'http_port_max': 9010,
                                         'auto_open_browser': False}), encoding='utf-8')
        config = load_config(self.path)
        self.assertEqual(config.http_port_range, (9000, 9010))
        self.assertFalse(config.auto_open_browser)
        self.assertEqual(config.ws_port_min, PreviewConfig().ws_port_min)

    def test_unknown_keys_ignored(self):
        self.path.write_text(json.dumps({'colour': 'blue', 'ws_port_max': 8900}), encoding='utf-8')
        with self.assertLogs('livedoc.config', level='WARNING'):
            config = load_config(self.path)
        self.assertEqual(config.ws_port_max, 8900)

    def test_malformed_file_gives_defaults(self):
        self.path.write_text('{not json', encoding='utf-8')
        with self.assertLogs('livedoc.config', level='ERROR'):
            config = load_config(self.path)
        self.assertEqual(config, PreviewConfig())

    def test_save_then_load(self):
        config = PreviewConfig(http_port_min=9100, http_port_max=9120, stylesheet='~/my.css')
        save_config(config, self.path)
        self.assertEqual(load_config(self.path), config)

    def test_validate_rejects_bad_ranges(self):
        with self.assertRaises(ValueError):
            PreviewConfig(http_port_min=9000, http_port_max=8000).validate()
        with self.assertRaises(ValueError):
            PreviewConfig(ws_port_min=0).validate()
        with self.assertRaises(ValueError):
            PreviewConfig(fallback_ws_port=70000).validate()

    def test_validate_warns_on_overlap(self):
        config = PreviewConfig(http_port_min=8000, http_port_max=8100, ws_port_min=8050, ws_port_max=8150)
        with self.assertLogs('livedoc.config', level='WARNING'):
            config.validate()

    def test_env_var_config_path(self):
        with patch.dict('os.environ', {CONFIG_ENV_VAR: str(self.path)}):
            self.assertEqual(default_config_path(), self.path)


if __name__ == '__main__':
    unittest.main()
