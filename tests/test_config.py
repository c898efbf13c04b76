"""
Test 6: Config System (config.py)

Tests ConfigLoader layering, env parsing, session config and engine wiring.
"""

import json

import pytest

from tessera.config import ConfigError, ConfigLoader
from tessera.sessions import MemoryStore, SessionEngine, SessionPolicy


# ============================================================================
# ConfigLoader
# ============================================================================

class TestConfigLoader:

    def test_init_defaults(self):
        loader = ConfigLoader()
        assert loader.env_prefix == "TESSERA_"
        assert loader.config_data == {}

    def test_get_dotted(self):
        loader = ConfigLoader()
        loader.config_data = {"sessions": {"cookie": {"max_age": 60}}}
        assert loader.get("sessions.cookie.max_age") == 60
        assert loader.get("sessions.missing", "fallback") == "fallback"
        assert loader.get("sessions.cookie.max_age.deeper") is None

    @pytest.mark.parametrize("raw, expected", [
        ("true", True),
        ("no", False),
        ("42", 42),
        ("0", 0),
        ("1.5", 1.5),
        ('["a", "b"]', ["a", "b"]),
        ('{"k": 1}', {"k": 1}),
        ("plain", "plain"),
        ("{broken", "{broken"),
    ])
    def test_parse_value(self, raw, expected):
        assert ConfigLoader()._parse_value(raw) == expected

    def test_merge_dict_deep(self):
        loader = ConfigLoader()
        target = {"a": {"x": 1, "y": 2}, "b": 1}
        loader._merge_dict(target, {"a": {"y": 3}, "c": 4})
        assert target == {"a": {"x": 1, "y": 3}, "b": 1, "c": 4}

    def test_json_files(self, tmp_path):
        (tmp_path / "base.json").write_text(json.dumps({"sessions": {"secret": "a", "rolling": False}}))
        loader = ConfigLoader.load(paths=[str(tmp_path / "*.json")])
        assert loader.get("sessions.secret") == "a"

    def test_invalid_json_file(self, tmp_path):
        (tmp_path / "bad.json").write_text("{nope")
        with pytest.raises(ConfigError):
            ConfigLoader.load(paths=[str(tmp_path / "bad.json")])

    def test_env_vars_nested(self, monkeypatch):
        monkeypatch.setenv("TESSERA_SESSIONS__ROLLING", "true")
        monkeypatch.setenv("TESSERA_SESSIONS__COOKIE__MAX_AGE", "3600")
        loader = ConfigLoader.load()
        assert loader.get("sessions.rolling") is True
        assert loader.get("sessions.cookie.max_age") == 3600

    def test_env_file(self, tmp_path, monkeypatch):
        env_file = tmp_path / ".env"
        env_file.write_text(
            "# session settings\n"
            "TESSERA_SESSIONS__SECRET=\"from-dotenv\"\n"
            "OTHER_VAR=ignored\n"
        )
        loader = ConfigLoader.load(env_file=str(env_file))
        assert loader.get("sessions.secret") == "from-dotenv"
        assert "other_var" not in loader.config_data

    def test_missing_env_file_is_ignored(self, tmp_path):
        loader = ConfigLoader.load(env_file=str(tmp_path / "missing.env"))
        assert loader.get("sessions") is None

    def test_precedence(self, tmp_path, monkeypatch):
        (tmp_path / "app.json").write_text(json.dumps({"sessions": {"name": "from-file"}}))
        env_file = tmp_path / ".env"
        env_file.write_text("TESSERA_SESSIONS__NAME=from-dotenv\n")
        monkeypatch.setenv("TESSERA_SESSIONS__NAME", "from-env")

        loader = ConfigLoader.load(paths=[str(tmp_path / "app.json")], env_file=str(env_file))
        assert loader.get("sessions.name") == "from-env"

        loader = ConfigLoader.load(
            paths=[str(tmp_path / "app.json")],
            env_file=str(env_file),
            overrides={"sessions": {"name": "from-override"}},
        )
        assert loader.get("sessions.name") == "from-override"

    def test_runtime_mode(self, monkeypatch):
        monkeypatch.delenv("TESSERA_ENV", raising=False)
        assert ConfigLoader.load().runtime_mode() == "dev"
        assert ConfigLoader.load(overrides={"runtime": {"mode": "PROD"}}).runtime_mode() == "prod"

        monkeypatch.setenv("TESSERA_ENV", "production")
        assert ConfigLoader.load().runtime_mode() == "production"


# ============================================================================
# Session config
# ============================================================================

class TestSessionConfig:

    def test_defaults(self):
        config = ConfigLoader().get_session_config()
        assert config["cookie_name"] == "connect.sid"
        assert config["unset"] == "keep"
        assert config["cookie"]["path"] == "/"
        assert config["store"] == {"type": "memory", "max_sessions": None}

    def test_defaults_not_shared(self):
        first = ConfigLoader().get_session_config()
        first["cookie"]["path"] = "/changed"
        assert ConfigLoader().get_session_config()["cookie"]["path"] == "/"

    def test_user_values_merged(self):
        loader = ConfigLoader.load(overrides={"sessions": {"secret": "s", "cookie": {"max_age": 60}}})
        config = loader.get_session_config()
        assert config["secret"] == "s"
        assert config["cookie"]["max_age"] == 60
        assert config["cookie"]["httponly"] is True

    def test_store_string(self):
        loader = ConfigLoader.load(overrides={"sessions": {"store": "memory"}})
        assert loader.get_session_config()["store"]["type"] == "memory"

    def test_policy_from_config(self):
        loader = ConfigLoader.load(overrides={"sessions": {
            "secrets": ["new", "old"],
            "resave": False,
            "save_uninitialized": False,
            "unset": "destroy",
        }})
        policy = SessionPolicy.from_config(loader)
        assert policy.secrets == ("new", "old")
        assert policy.unset_destroy

    def test_engine_from_config(self, monkeypatch):
        monkeypatch.delenv("TESSERA_ENV", raising=False)
        loader = ConfigLoader.load(overrides={"sessions": {
            "secret": "s",
            "resave": False,
            "save_uninitialized": False,
            "store": {"type": "memory", "max_sessions": 7},
        }})
        engine = SessionEngine.from_config(loader)
        assert isinstance(engine.store, MemoryStore)
        assert engine.store.max_sessions == 7
        assert engine.mode == "dev"

    def test_engine_from_config_explicit_store(self):
        store = MemoryStore()
        loader = ConfigLoader.load(overrides={"sessions": {
            "secret": "s", "resave": False, "save_uninitialized": False,
        }})
        assert SessionEngine.from_config(loader, store=store).store is store
