"""
Config system - Layered configuration with validation.

Sources merge with precedence:
overrides > environment variables > .env file > config files > defaults
"""

from __future__ import annotations

import copy
import json
import logging
import os
from dataclasses import dataclass, field
from glob import glob
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import dotenv_values


logger = logging.getLogger("kestrel.config")


class ConfigError(Exception):
    """Raised when configuration validation fails."""
    pass


DEFAULT_SESSION_CONFIG: Dict[str, Any] = {
    "name": None,
    "id_expiration_interval": None,
    "options": {},
    "backend": {
        "type": "memory",  # "memory", "file"
        "directory": None,
    },
    "transport": {
        "adapter": "cookie",  # "cookie", "header"
        "cookie_name": None,
        "cookie_path": "/",
        "cookie_domain": None,
        "cookie_secure": True,
        "cookie_httponly": True,
        "cookie_samesite": "lax",
        "cookie_max_age": None,
        "header_name": "X-Session-ID",
    },
}


class ConfigLoader:
    """
    Loads and merges configuration from multiple sources.

    Nested keys in environment variables are separated by double
    underscores: ``KESTREL_SESSIONS__NAME=app`` becomes
    ``{"sessions": {"name": "app"}}``.
    """

    def __init__(self, env_prefix: str = "KESTREL_"):
        self.env_prefix = env_prefix
        self.config_data: Dict[str, Any] = {}

    @classmethod
    def load(
        cls,
        paths: Optional[list[str]] = None,
        env_prefix: str = "KESTREL_",
        env_file: Optional[str] = None,
        overrides: Optional[Dict[str, Any]] = None,
    ) -> "ConfigLoader":
        """
        Load configuration from multiple sources with proper merge strategy.

        Merge order (later overrides earlier):
        1. Config files (YAML or JSON, glob patterns supported)
        2. .env file (only keys with the prefix)
        3. Environment variables (prefixed)
        4. Manual overrides

        Args:
            paths: List of config file paths (glob patterns supported)
            env_prefix: Prefix for environment variables
            env_file: Path to .env file
            overrides: Manual overrides (highest precedence)

        Returns:
            Configured ConfigLoader instance
        """
        loader = cls(env_prefix=env_prefix)

        for pattern in paths or []:
            loader._load_from_files(pattern)

        if env_file:
            loader._load_env_file(env_file)

        loader._load_from_env()

        if overrides:
            loader._merge_dict(loader.config_data, overrides)

        return loader

    def _load_from_files(self, pattern: str):
        """Load config from JSON or YAML files."""
        matches = sorted(glob(pattern))
        if not matches:
            logger.debug(f"No config files match {pattern!r}")

        for path_str in matches:
            path = Path(path_str)

            if path.suffix == ".json":
                self._load_json_file(path)
            elif path.suffix in (".yaml", ".yml"):
                self._load_yaml_file(path)
            else:
                raise ConfigError(f"Unsupported config file type: {path}")

    def _load_json_file(self, path: Path):
        """Load config from JSON file."""
        try:
            with open(path) as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigError(f"Invalid JSON in {path}: {e}") from e
        self._merge_mapping(path, data)

    def _load_yaml_file(self, path: Path):
        """Load config from YAML file."""
        try:
            with open(path) as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path}: {e}") from e
        self._merge_mapping(path, data)

    def _merge_mapping(self, path: Path, data: Any):
        if data is None:
            return
        if not isinstance(data, dict):
            raise ConfigError(f"Config file {path} must contain a mapping")
        self._merge_dict(self.config_data, data)

    def _load_env_file(self, path: str):
        """Load config from .env file."""
        env_path = Path(path)
        if not env_path.exists():
            logger.debug(f"Env file {path} not found, skipping")
            return

        for key, value in dotenv_values(env_path).items():
            if key.startswith(self.env_prefix) and value is not None:
                self._set_nested(key, value)

    def _load_from_env(self):
        """Load config from environment variables."""
        for key, value in os.environ.items():
            if key.startswith(self.env_prefix):
                self._set_nested(key, value)

    def _set_nested(self, key: str, value: str):
        """Convert KESTREL_SESSIONS__BACKEND__TYPE to nested dict."""
        key = key[len(self.env_prefix):]

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
        if value.lower() in ("none", "null"):
            return None

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

    def get_session_config(self) -> dict:
        """
        Get session configuration with defaults.

        Returns:
            Session configuration dictionary
        """
        merged = copy.deepcopy(DEFAULT_SESSION_CONFIG)

        user_config = self.get("sessions", {})
        if user_config:
            if not isinstance(user_config, dict):
                raise ConfigError("'sessions' config must be a mapping")
            self._merge_dict(merged, user_config)

        # YAML may give the backend as a plain string ("memory")
        if isinstance(merged.get("backend"), str):
            merged["backend"] = {"type": merged["backend"], "directory": None}

        return merged


@dataclass
class SessionConfig:
    """
    Typed session configuration.

    Attributes:
        name: Session name (None = backend default)
        options: Backend configuration directives
        id_expiration_interval: Seconds between id rotations (None = never)
        backend: Backend settings (``type``, ``directory``)
        transport: Transport settings (see TransportPolicy)
    """

    name: Optional[str] = None
    options: Dict[str, Any] = field(default_factory=dict)
    id_expiration_interval: Optional[int] = None
    backend: Dict[str, Any] = field(default_factory=lambda: dict(DEFAULT_SESSION_CONFIG["backend"]))
    transport: Dict[str, Any] = field(default_factory=lambda: dict(DEFAULT_SESSION_CONFIG["transport"]))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SessionConfig":
        """
        Build from a (merged) session config dictionary.

        Raises:
            ConfigError: A field has the wrong type
        """
        interval = data.get("id_expiration_interval")
        if interval is not None and (isinstance(interval, bool) or not isinstance(interval, int)):
            raise ConfigError(
                f"Config field 'id_expiration_interval' expected int, got {type(interval).__name__}"
            )

        name = data.get("name")
        if name is not None and not isinstance(name, str):
            raise ConfigError(f"Config field 'name' expected str, got {type(name).__name__}")

        for key in ("options", "backend", "transport"):
            if not isinstance(data.get(key, {}), dict):
                raise ConfigError(f"Config field '{key}' expected mapping")

        return cls(
            name=name,
            options=dict(data.get("options") or {}),
            id_expiration_interval=interval,
            backend={**DEFAULT_SESSION_CONFIG["backend"], **(data.get("backend") or {})},
            transport={**DEFAULT_SESSION_CONFIG["transport"], **(data.get("transport") or {})},
        )

    @classmethod
    def from_loader(cls, loader: ConfigLoader) -> "SessionConfig":
        return cls.from_dict(loader.get_session_config())
