import os
import unittest
from unittest.mock import patch

from controlplane_mcp.transport import Credentials
from controlplane_mcp.utils.config import env_choice, env_flag, env_float, env_int, env_str


class TestConfig(unittest.TestCase):

    def test_int_falls_back_on_bad_values(self):
        with patch.dict(os.environ, {"CONTROLPLANE_X": "ten"}):
            with self.assertLogs(level="WARNING") as logs:
                self.assertEqual(env_int("X", 7), 7)
        self.assertIn("[Config]", logs.output[0])
        with patch.dict(os.environ, {"CONTROLPLANE_X": "0"}):
            self.assertEqual(env_int("X", 7), 7)
        with patch.dict(os.environ, {"CONTROLPLANE_X": " 12 "}):
            self.assertEqual(env_int("X", 7), 12)

    def test_float_and_choice(self):
        with patch.dict(os.environ, {"CONTROLPLANE_F": "2.5", "CONTROLPLANE_C": "other"}):
            self.assertEqual(env_float("F", 1.0), 2.5)
            self.assertEqual(env_choice("C", "a", ("a", "b")), "a")

    def test_flag(self):
        with patch.dict(os.environ, {"CONTROLPLANE_ON": "off", "CONTROLPLANE_ODD": "maybe"}):
            self.assertFalse(env_flag("ON"))
            self.assertTrue(env_flag("ODD"))
            self.assertTrue(env_flag("UNSET_FLAG"))

    def test_str(self):
        with patch.dict(os.environ, {"CONTROLPLANE_S": "  "}):
            self.assertIsNone(env_str("S"))


class TestCredentials(unittest.TestCase):

    def test_documentation_mode_without_token(self):
        with patch.dict(os.environ, {"CONTROLPLANE_API_URL": "https://tenant.example.com"}, clear=True):
            credentials = Credentials.from_env()
        self.assertFalse(credentials.configured)
        self.assertEqual(credentials.auth_mode, "none")

    def test_configured(self):
        env = {
            "CONTROLPLANE_API_URL": "https://tenant.example.com/api/",
            "CONTROLPLANE_API_TOKEN": "secret",
            "CONTROLPLANE_REQUEST_TIMEOUT": "5",
        }
        with patch.dict(os.environ, env, clear=True):
            credentials = Credentials.from_env()
        self.assertTrue(credentials.configured)
        self.assertEqual(credentials.auth_mode, "token")
        self.assertEqual(credentials.base_url, "https://tenant.example.com/api")
        self.assertEqual(credentials.timeout, 5.0)
        self.assertEqual(Credentials(api_url="https://t.example.com", api_token="x").base_url, "https://t.example.com/api")


if __name__ == '__main__':
    unittest.main()
