"""Unit tests for client configuration loading."""

import json
import os
import shutil
import tempfile
import unittest
from unittest.mock import patch

from stoz.config import ClientConfig, load_config
from stoz.errors import ConfigError


def _without_stoz_env():
    return {key: value for key, value in os.environ.items() if not key.startswith("STOZ_")}


class TestClientConfig(unittest.TestCase):
    """Test cases for load_config."""

    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()
        self.env = patch.dict(os.environ, _without_stoz_env(), clear=True)
        self.env.start()

    def tearDown(self):
        self.env.stop()
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def write(self, name, text):
        path = os.path.join(self.temp_dir, name)
        with open(path, "w") as f:
            f.write(text)
        return path

    def test_defaults(self):
        config = load_config()

        self.assertEqual(config, ClientConfig())
        self.assertEqual(config.wizard_poll_interval, 1.0)
        self.assertEqual(config.detail_poll_interval, 2.0)
        self.assertEqual(config.scan_cache_ttl, 300.0)
        self.assertEqual(config.api_base, "http://localhost:8080/api/v1")

    def test_api_base_normalises_slashes(self):
        config = ClientConfig(base_url="http://nas:9000/", api_prefix="api/v1/")
        self.assertEqual(config.api_base, "http://nas:9000/api/v1")
        self.assertEqual(ClientConfig(api_prefix="").api_base, "http://localhost:8080")

    def test_load_from_environment(self):
        with patch.dict(os.environ, {
            "STOZ_BASE_URL": "http://nas.local:8080",
            "STOZ_WIZARD_POLL_INTERVAL": "0.5",
            "STOZ_JSON_LOGS": "false",
            "STOZ_LOG_LEVEL": "DEBUG",
        }):
            config = load_config()

        self.assertEqual(config.base_url, "http://nas.local:8080")
        self.assertEqual(config.wizard_poll_interval, 0.5)
        self.assertFalse(config.json_logs)
        self.assertEqual(config.log_level, "DEBUG")

    def test_invalid_env_number_keeps_current_value(self):
        with patch.dict(os.environ, {"STOZ_REQUEST_TIMEOUT": "soon"}):
            config = load_config()
        self.assertEqual(config.request_timeout, 30.0)

    def test_json_file_then_environment(self):
        path = self.write("client.json", json.dumps({"base_url": "http://file:1", "request_timeout": 5}))
        with patch.dict(os.environ, {"STOZ_REQUEST_TIMEOUT": "7"}):
            config = load_config(path)

        self.assertEqual(config.base_url, "http://file:1")
        self.assertEqual(config.request_timeout, 7.0)

    def test_yaml_file_from_env_variable(self):
        path = self.write("client.yaml", "detail_poll_interval: 4\nsession_file: /tmp/stoz-session.json\n")
        with patch.dict(os.environ, {"STOZ_CONFIG_FILE": path}):
            config = load_config()

        self.assertEqual(config.detail_poll_interval, 4)
        self.assertEqual(config.session_file, "/tmp/stoz-session.json")

    def test_unknown_keys_are_ignored_with_warning(self):
        path = self.write("client.json", json.dumps({"colour": "blue"}))
        with self.assertLogs("stoz.config", level="WARNING") as logs:
            config = load_config(path)
        self.assertEqual(config, ClientConfig())
        self.assertIn("colour", logs.output[0])

    def test_missing_file_uses_defaults(self):
        with self.assertLogs("stoz.config", level="WARNING"):
            config = load_config(os.path.join(self.temp_dir, "absent.json"))
        self.assertEqual(config, ClientConfig())

    def test_unreadable_file_raises(self):
        path = self.write("client.json", "{not json")
        with self.assertRaises(ConfigError):
            load_config(path)

    def test_non_mapping_file_raises(self):
        path = self.write("client.yaml", "- a\n- b\n")
        with self.assertRaises(ConfigError):
            load_config(path)

    def test_validation(self):
        with patch.dict(os.environ, {"STOZ_WIZARD_POLL_INTERVAL": "0"}):
            with self.assertRaises(ConfigError):
                load_config()
        with patch.dict(os.environ, {"STOZ_BASE_URL": "ftp://nas"}):
            with self.assertRaises(ConfigError):
                load_config()


if __name__ == "__main__":
    unittest.main()
