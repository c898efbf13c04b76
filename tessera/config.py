"""
Config system - Layered configuration with merge precedence.
"""

from typing import Any, Dict, Optional
from pathlib import Path
import os
import json

from dotenv import dotenv_values


class ConfigError(Exception):
    """Raised when configuration cannot be loaded."""
    pass


class ConfigLoader:
    """
    Loads and merges configuration from multiple sources with precedence:
    overrides > Environment variables > .env files > config files
    """

    def __init__(self, env_prefix: str = "TESSERA_"):
        self.env_prefix = env_prefix
        self.config_data: Dict[str, Any] = {}

    @classmethod
    def load(
        cls,
        paths: Optional[list[str]] = None,
        env_prefix: str = "TESSERA_",
        env_file: Optional[str] = None,
        overrides: Optional[Dict[str, Any]] = None,
    ) -> "ConfigLoader":
        """
        Load configuration from multiple sources with proper merge strategy.

        Merge order (later overrides earlier):
        1. JSON config files (glob patterns supported)
        2. .env file (only keys carrying the prefix)
        3. Environment variables (TESSERA_* prefix)
        4. Manual overrides

        Args:
            paths: List of config file paths
            env_prefix: Prefix for environment variables
            env_file: Path to .env file
            overrides: Manual overrides (highest precedence)

        Returns:
            Configured ConfigLoader instance
        """
        loader = cls(env_prefix=env_prefix)

        for pattern in paths or ():
            loader._load_from_files(pattern)

        if env_file:
            loader._load_env_file(env_file)

        loader._load_from_env()

        if overrides:
            loader._merge_dict(loader.config_data, overrides)

        return loader

    def _load_from_files(self, pattern: str):
        """Load config from JSON files."""
        from glob import glob

        for path_str in sorted(glob(pattern)):
            path = Path(path_str)
            if path.suffix == ".json":
                self._load_json_file(path)

    def _load_json_file(self, path: Path):
        try:
            with open(path) as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigError(f"Invalid JSON in config file '{path}': {e}") from e

        if not isinstance(data, dict):
            raise ConfigError(f"Config file '{path}' must contain a JSON object")
        self._merge_dict(self.config_data, data)

    def _load_env_file(self, path: str):
        """Load config from .env file."""
        env_path = Path(path)
        if not env_path.exists():
            return

        for key, value in dotenv_values(env_path).items():
            if value is not None and key.startswith(self.env_prefix):
                self._set_nested(key, value)

    def _load_from_env(self):
        """Load config from environment variables."""
        for key, value in os.environ.items():
            if key.startswith(self.env_prefix):
                self._set_nested(key, value)

    def _set_nested(self, key: str, value: str):
        """Convert TESSERA_SESSIONS__COOKIE__MAX_AGE to nested dict."""
        key = key[len(self.env_prefix):]

        # Double underscore separates nesting levels
        parts = key.lower().split("__")

        current = self.config_data
        for part in parts[:-1]:
            if not isinstance(current.get(part), dict):
                current[part] = {}
            current = current[part]

        current[parts[-1]] = self._parse_value(value)

    def _parse_value(self, value: str) -> Any:
        """Parse string value to appropriate type."""
        if value.lower() in ("true", "yes"):
            return True
        if value.lower() in ("false", "no"):
            return False

        try:
            if "." in value:
                return float(value)
            return int(value)
        except ValueError:
            pass

        if value.startswith(("{", "[")):
            try:
                return json.loads(value)
            except json.JSONDecodeError:
                pass

        return value

    def _merge_dict(self, target: dict, source: dict):
        """Deep merge source into target."""
        for key, value in source.items():
            if key in target and isinstance(target[key], dict) and isinstance(value, dict):
                self._merge_dict(target[key], value)
            else:
                target[key] = value

    def get(self, path: str, default: Any = None) -> Any:
        """Get config value by dot-separated path."""
        parts = path.split(".")
        current = self.config_data

        for part in parts:
            if isinstance(current, dict) and part in current:
                current = current[part]
            else:
                return default

        return current

    def to_dict(self) -> dict:
        """Export all config as dictionary."""
        return self.config_data.copy()

    def runtime_mode(self) -> str:
        """
        Current runtime mode ("dev", "prod", ...).

        ``runtime.mode`` wins; otherwise the ``TESSERA_ENV`` variable;
        otherwise "dev".
        """
        mode = self.get("runtime.mode")
        if not mode:
            mode = self.get("env") or os.environ.get(f"{self.env_prefix}ENV") or "dev"
        return str(mode).lower()

    def get_session_config(self) -> dict:
        """
        Get session configuration with defaults.

        Returns:
            Session configuration dictionary
        """
        default_session_config = {
            "cookie_name": "connect.sid",
            "resave": None,
            "rolling": False,
            "save_uninitialized": None,
            "unset": "keep",
            "trust_proxy": None,
            "cookie": {
                "path": "/",
                "domain": None,
                "max_age": None,
                "secure": None,
                "httponly": True,
                "samesite": None,
            },
            "store": {
                "type": "memory",
                "max_sessions": None,
            },
        }

        user_config = self.get("sessions", {})

        merged = json.loads(json.dumps(default_session_config))
        if user_config:
            self._merge_dict(merged, user_config)

            # A store given as a plain string ("memory") is normalized to dict form
            if isinstance(merged.get("store"), str):
                merged["store"] = {"type": merged["store"], "max_sessions": None}

        return merged
