import json
import os
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from xchat.kernel.errors import ConfigError, NoSessionsError
from xchat.kernel.sessions import discover_sessions, list_chat_sessions
from xchat.kernel.settings import RelaySettings, load_settings, save_settings


class TestSettings(unittest.TestCase):
    def setUp(self) -> None:
        self._td = tempfile.TemporaryDirectory()
        self.root = Path(self._td.name)

    def tearDown(self) -> None:
        self._td.cleanup()

    def test_missing_file_yields_defaults(self) -> None:
        s = load_settings(self.root / "nope.yaml")
        self.assertEqual(s.cooldown_ms, 8_000)
        self.assertEqual(s.max_triggers_per_minute, 6)
        self.assertEqual(s.backend("a").name, "deepseek")
        self.assertEqual(s.backend("b").label, "GLM")
        self.assertEqual(s.backend("c").label, "Jarvis")
        self.assertEqual(s.reply_to("-100"), "telegram:group:-100")

    def test_values_are_coerced(self) -> None:
        p = self.root / "settings.yaml"
        p.write_text(
            "cooldown_ms: '3000'\n"
            "rounds: 9\n"
            "max_triggers_per_minute: 0\n"
            "backends:\n"
            "  a:\n"
            "    label: Coder\n"
            "    port: '19000'\n",
            encoding="utf-8",
        )
        s = load_settings(p)
        self.assertEqual(s.cooldown_ms, 3_000)
        self.assertEqual(s.rounds, 3)
        self.assertEqual(s.max_triggers_per_minute, 1)
        self.assertEqual(s.backend("a").label, "Coder")
        self.assertEqual(s.backend("a").name, "deepseek")
        self.assertEqual(s.backend("a").port, 19000)

    def test_broken_yaml_is_config_error(self) -> None:
        p = self.root / "settings.yaml"
        p.write_text("cooldown_ms: [unclosed\n", encoding="utf-8")
        with self.assertRaises(ConfigError):
            load_settings(p)
        p.write_text("- just\n- a list\n", encoding="utf-8")
        with self.assertRaises(ConfigError):
            load_settings(p)

    def test_reply_template_needs_chat_id(self) -> None:
        with self.assertRaises(ConfigError):
            RelaySettings.from_dict({"reply_to_template": "telegram:group:fixed"})

    def test_save_then_load(self) -> None:
        p = self.root / "out" / "settings.yaml"
        s = RelaySettings(cooldown_ms=1234, state_path=self.root / "state.json")
        save_settings(s, p)
        again = load_settings(p)
        self.assertEqual(again.cooldown_ms, 1234)
        self.assertEqual(again.state_path, self.root / "state.json")

    def test_endpoint_from_backend_config_file(self) -> None:
        cfg = self.root / "clawdbot.json"
        cfg.write_text(json.dumps({"gateway": {"port": 18800, "auth": {"mode": "token", "token": "sek"}}}))
        s = RelaySettings.from_dict({"backends": {"b": {"config_path": str(cfg)}}})
        self.assertEqual(s.backend("b").resolve_endpoint(), ("ws://127.0.0.1:18800", "sek"))

    def test_token_mode_without_token_is_config_error(self) -> None:
        cfg = self.root / "clawdbot.json"
        cfg.write_text(json.dumps({"gateway": {"port": 18800, "auth": {"mode": "token"}}}))
        s = RelaySettings.from_dict({"backends": {"b": {"config_path": str(cfg)}}})
        with self.assertRaises(ConfigError):
            s.backend("b").resolve_endpoint()

    def test_token_from_environment(self) -> None:
        s = RelaySettings.from_dict({"backends": {"c": {"url": "ws://gw:1", "token_env": "XCHAT_TEST_TOKEN"}}})
        with patch.dict(os.environ, {"XCHAT_TEST_TOKEN": "from-env"}):
            self.assertEqual(s.backend("c").resolve_endpoint(), ("ws://gw:1", "from-env"))


class TestSessionDiscovery(unittest.TestCase):
    def setUp(self) -> None:
        self._td = tempfile.TemporaryDirectory()
        self.store = Path(self._td.name) / "sessions.json"

    def tearDown(self) -> None:
        self._td.cleanup()

    def test_group_sessions_are_listed_once(self) -> None:
        self.store.write_text(
            json.dumps(
                {
                    "agent:main:telegram:group:-100": {"sessionFile": "/data/a.jsonl"},
                    "agent:other:telegram:group:-100": {"sessionFile": "/data/b.jsonl"},
                    "agent:main:telegram:group:-200": {"sessionFile": "rel/c.jsonl"},
                    "agent:main:telegram:dm:42": {"sessionFile": "/data/dm.jsonl"},
                    "agent:main:telegram:group:-300": {"sessionFile": ""},
                    "agent:main:telegram:group:-400": "broken",
                }
            )
        )
        sessions = list_chat_sessions(self.store, key_filter=":telegram:group:")
        by_id = {s.chat_id: s for s in sessions}
        self.assertEqual(sorted(by_id), ["-100", "-200"])
        self.assertEqual(by_id["-100"].transcript_path, "/data/a.jsonl")
        self.assertEqual(by_id["-100"].session_key, "agent:main:telegram:group:-100")
        self.assertEqual(by_id["-200"].transcript_path, str(self.store.parent / "rel" / "c.jsonl"))

    def test_empty_index_is_fatal(self) -> None:
        self.store.write_text(json.dumps({"agent:main:telegram:dm:1": {"sessionFile": "/x"}}))
        with self.assertRaises(NoSessionsError):
            discover_sessions(self.store, key_filter=":telegram:group:")

    def test_unreadable_index_is_config_error(self) -> None:
        with self.assertRaises(ConfigError):
            list_chat_sessions(self.store, key_filter=":telegram:group:")


if __name__ == "__main__":
    unittest.main()
