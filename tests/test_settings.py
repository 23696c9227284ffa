import os
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch


class TestSettings(unittest.TestCase):
    def setUp(self) -> None:
        self._td = tempfile.TemporaryDirectory()
        self.addCleanup(self._td.cleanup)
        self.home = Path(self._td.name) / "home"
        env = patch.dict(os.environ, {"TURN_MCP_HOME": str(self.home)})
        env.start()
        self.addCleanup(env.stop)
        os.environ.pop("TURN_MCP_DIR", None)

    def _write(self, text: str) -> None:
        self.home.mkdir(parents=True, exist_ok=True)
        (self.home / "settings.yaml").write_text(text, encoding="utf-8")

    def test_defaults_without_file(self) -> None:
        from turn_mcp.kernel.settings import load_settings
        from turn_mcp.paths import MAILBOX_NAMESPACE

        s = load_settings()
        self.assertEqual(s.mailbox_dir.name, MAILBOX_NAMESPACE)
        self.assertEqual(s.poll_interval_seconds, 0.5)
        self.assertEqual(s.heartbeat_every_ticks, 20)
        self.assertEqual(s.log_level, "INFO")
        self.assertIsNone(s.integration)
        self.assertTrue(str(s.targets.mcp_config_path).endswith("mcp_config.json"))

    def test_values_from_yaml(self) -> None:
        from turn_mcp.kernel.settings import load_settings

        self._write(
            "mailbox_dir: /tmp/custom-mailbox\n"
            "poll_interval_seconds: '0.25'\n"
            "heartbeat_every_ticks: 4\n"
            "log_level: debug\n"
            "integration:\n"
            "  rules_path: /tmp/rules.md\n"
        )
        s = load_settings()
        self.assertEqual(s.mailbox_dir, Path("/tmp/custom-mailbox"))
        self.assertEqual(s.poll_interval_seconds, 0.25)
        self.assertEqual(s.heartbeat_every_ticks, 4)
        self.assertEqual(s.log_level, "DEBUG")
        self.assertEqual(s.targets.rules_path, Path("/tmp/rules.md"))
        self.assertTrue(str(s.targets.mcp_config_path).endswith("mcp_config.json"))

    def test_bad_values_fall_back(self) -> None:
        from turn_mcp.kernel.settings import MIN_POLL_INTERVAL_SECONDS, load_settings

        self._write("poll_interval_seconds: 0\nheartbeat_every_ticks: soon\n")
        s = load_settings()
        self.assertEqual(s.poll_interval_seconds, MIN_POLL_INTERVAL_SECONDS)
        self.assertEqual(s.heartbeat_every_ticks, 20)

    def test_malformed_file_is_ignored(self) -> None:
        from turn_mcp.kernel.settings import load_settings, load_settings_doc

        self._write("mailbox_dir: [unclosed\n")
        self.assertEqual(load_settings_doc(), {})
        self.assertEqual(load_settings().poll_interval_seconds, 0.5)

    def test_env_dir_outranks_file(self) -> None:
        from turn_mcp.kernel.settings import load_settings

        self._write("mailbox_dir: /tmp/from-file\n")
        with patch.dict(os.environ, {"TURN_MCP_DIR": "/tmp/from-env"}):
            self.assertEqual(load_settings().mailbox_dir, Path("/tmp/from-env"))

    def test_save_round_trip(self) -> None:
        from turn_mcp.kernel.settings import IntegrationTargets, Settings, load_settings, save_settings

        s = Settings(
            mailbox_dir=Path("/tmp/mb"),
            poll_interval_seconds=1.0,
            heartbeat_every_ticks=10,
            log_level="WARNING",
            integration=IntegrationTargets(mcp_config_path=Path("/tmp/a.json"), rules_path=Path("/tmp/b.md")),
        )
        save_settings(s)
        self.assertTrue((self.home / "settings.yaml").exists())
        self.assertEqual(load_settings(), s)


class TestConv(unittest.TestCase):
    def test_coerce_numbers(self) -> None:
        from turn_mcp.util.conv import coerce_float, coerce_int

        self.assertEqual(coerce_float("1.5", default=0.5, minimum=0.05), 1.5)
        self.assertEqual(coerce_float(None, default=0.5, minimum=0.05), 0.5)
        self.assertEqual(coerce_int(True, default=20, minimum=1), 20)

    def test_preview(self) -> None:
        from turn_mcp.util.conv import preview

        self.assertEqual(preview("a\nb   c"), "a b c")
        self.assertEqual(preview("x" * 60, 10), "x" * 10 + "...")


if __name__ == "__main__":
    unittest.main()
