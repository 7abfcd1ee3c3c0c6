"""
FormRules Configuration
=======================

Layered configuration for the validation engine.

Configuration Loading Priority (highest to lowest):
1. Runtime overrides (config.set)
2. Environment variables (FORMRULES_*)
3. JSON configuration file
4. Built-in defaults

Example:
    config = Config.from_defaults()
    config.load_file("formrules.json")

    config.get("validation.default_file_size_mb")   # 4
    config.get_bool("validation.debug")             # False

    # FORMRULES_VALIDATION_DEBUG=true overrides validation.debug
"""

from __future__ import annotations

import copy
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, TypeVar, Union

import orjson

T = TypeVar("T")

ENV_PREFIX = "FORMRULES_"

DEFAULTS: Dict[str, Any] = {
    "validation": {
        "debug": False,
        "selector": "name",
        "default_file_size_mb": 4,
        "currency_max_length": 16,
    },
    "logging": {
        "level": "INFO",
        "format": "text",
        "file": None,
    },
}


@dataclass
class ConfigSource:
    """Represents a configuration source with priority."""
    name: str
    data: Dict[str, Any]
    priority: int = 0


class Config:
    """
    Configuration container.

    Provides hierarchical access with dot notation, typed getters
    and default values.

    Example:
        config = Config()
        config.set("validation.debug", True)

        config.get("validation.debug")              # True
        config.get("validation.missing", "default") # "default"
    """

    def __init__(self) -> None:
        self._sources: List[ConfigSource] = []
        self._cache: Dict[str, Any] = {}
        self._merged: Dict[str, Any] = {}
        self._dirty = True

    @classmethod
    def from_defaults(cls, env: bool = True) -> "Config":
        """
        Build a configuration seeded with built-in defaults.

        Args:
            env: Also apply FORMRULES_* environment overrides
        """
        config = cls()
        config.add_source("defaults", copy.deepcopy(DEFAULTS), priority=0)
        if env:
            config.load_env()
        return config

    def load_file(self, path: Union[str, Path]) -> None:
        """
        Load a JSON configuration file.

        Raises:
            FileNotFoundError: File does not exist
            orjson.JSONDecodeError: File is not valid JSON
        """
        path = Path(path)
        data = orjson.loads(path.read_bytes())
        if not isinstance(data, dict):
            raise ValueError(f"Configuration file must contain an object: {path}")
        self.add_source(f"file:{path.name}", data, priority=10)

    def load_env(self, environ: Optional[Dict[str, str]] = None) -> None:
        """Load overrides from FORMRULES_* environment variables."""
        environ = os.environ if environ is None else environ
        overrides: Dict[str, Any] = {}

        for key, value in environ.items():
            if key.startswith(ENV_PREFIX):
                # FORMRULES_VALIDATION_DEBUG -> validation.debug
                section, _, name = key[len(ENV_PREFIX):].lower().partition("_")
                if not name:
                    continue
                overrides[f"{section}.{name}"] = self._parse_env_value(value)

        if overrides:
            self.add_source("env_vars", self._unflatten(overrides), priority=100)

    def _parse_env_value(self, value: str) -> Any:
        """Parse environment variable value to appropriate type."""
        if value.lower() in ("true", "yes"):
            return True
        if value.lower() in ("false", "no"):
            return False

        try:
            return int(value)
        except ValueError:
            pass

        try:
            return float(value)
        except ValueError:
            pass

        if value.startswith(("{", "[")):
            try:
                return orjson.loads(value)
            except orjson.JSONDecodeError:
                pass

        return value

    def _unflatten(self, flat: Dict[str, Any]) -> Dict[str, Any]:
        """Convert flat dot-notation keys to nested dict."""
        result: Dict[str, Any] = {}

        for key, value in flat.items():
            parts = key.split(".")
            current = result

            for part in parts[:-1]:
                current = current.setdefault(part, {})

            current[parts[-1]] = value

        return result

    def add_source(
        self,
        name: str,
        data: Dict[str, Any],
        priority: int = 0,
    ) -> None:
        """Add a configuration source."""
        self._sources.append(ConfigSource(name=name, data=data, priority=priority))
        self._dirty = True

    def _merge(self) -> None:
        """Merge all sources into single configuration."""
        if not self._dirty:
            return

        # Lower priority first, so higher overrides
        self._merged = {}
        for source in sorted(self._sources, key=lambda s: s.priority):
            self._deep_merge(self._merged, copy.deepcopy(source.data))

        self._dirty = False
        self._cache.clear()

    def _deep_merge(self, base: Dict, override: Dict) -> None:
        """Deep merge override into base."""
        for key, value in override.items():
            if key in base and isinstance(base[key], dict) and isinstance(value, dict):
                self._deep_merge(base[key], value)
            else:
                base[key] = value

    def get(self, key: str, default: T = None) -> Union[Any, T]:
        """
        Get configuration value using dot notation.

        Args:
            key: Configuration key (e.g., "validation.debug")
            default: Default value if key not found
        """
        self._merge()

        if key in self._cache:
            return self._cache[key]

        current: Any = self._merged
        for part in key.split("."):
            if not isinstance(current, dict) or part not in current:
                return default
            current = current[part]

        self._cache[key] = current
        return current

    def get_int(self, key: str, default: int = 0) -> int:
        """Get configuration value as integer."""
        value = self.get(key, default)
        try:
            return int(value)
        except (TypeError, ValueError):
            return default

    def get_float(self, key: str, default: float = 0.0) -> float:
        """Get configuration value as float."""
        value = self.get(key, default)
        try:
            return float(value)
        except (TypeError, ValueError):
            return default

    def get_bool(self, key: str, default: bool = False) -> bool:
        """Get configuration value as boolean."""
        value = self.get(key, default)
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            return value.lower() in ("true", "yes", "1")
        return bool(value)

    def set(self, key: str, value: Any) -> None:
        """
        Set a runtime configuration value.

        Runtime values have the highest priority.
        """
        runtime = next((s for s in self._sources if s.name == "runtime"), None)
        if runtime is None:
            runtime = ConfigSource(name="runtime", data={}, priority=1000)
            self._sources.append(runtime)

        parts = key.split(".")
        current = runtime.data
        for part in parts[:-1]:
            current = current.setdefault(part, {})
        current[parts[-1]] = value

        self._dirty = True

    def has(self, key: str) -> bool:
        """Check if configuration key exists."""
        return self.get(key) is not None

    def all(self) -> Dict[str, Any]:
        """Get all configuration as dict."""
        self._merge()
        return copy.deepcopy(self._merged)

    def section(self, prefix: str) -> Dict[str, Any]:
        """Get all values under a prefix."""
        value = self.get(prefix)
        if isinstance(value, dict):
            return dict(value)
        return {}

    def __getitem__(self, key: str) -> Any:
        value = self.get(key)
        if value is None:
            raise KeyError(key)
        return value

    def __setitem__(self, key: str, value: Any) -> None:
        self.set(key, value)

    def __contains__(self, key: str) -> bool:
        return self.has(key)


# Process-wide default configuration
_config: Optional[Config] = None


def get_config() -> Config:
    """Get the default configuration instance."""
    global _config
    if _config is None:
        _config = Config.from_defaults()
    return _config


def reset_config() -> None:
    """Drop the default configuration so it is rebuilt on next access."""
    global _config
    _config = None
