"""Configuration management.

Loads and merges configuration from multiple sources with proper precedence.
"""

import json
import os
from contextvars import ContextVar, Token
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from .config_loader import deep_merge, load_json_file
from .config_schema import (
    AutomationConfig,
    CacheConfig,
    Config,
    LoggingConfig,
    MonitorConfig,
    RetryConfig,
)
from .global_paths import GlobalPath
from ..util.log import Log

log = Log.create({"service": "config"})

__all__ = [
    "AutomationConfig",
    "CacheConfig",
    "Config",
    "ConfigError",
    "ConfigManager",
    "LoggingConfig",
    "MonitorConfig",
    "RetryConfig",
]

CONFIG_FILENAMES = ("omnirelay.json", "omnirelay.jsonc")

# env var -> (section, key as written in config files, parser)
ENV_OVERRIDES = {
    "OMNIRELAY_APP_NAME": ("automation", "appName", str),
    "OMNIRELAY_INTERPRETER": ("automation", "interpreter", str),
    "OMNIRELAY_TIMEOUT": ("automation", "timeout", float),
    "OMNIRELAY_SCRIPTS_DIR": ("automation", "scriptsDir", str),
    "OMNIRELAY_MAX_ATTEMPTS": ("retry", "maxAttempts", int),
    "OMNIRELAY_BASE_DELAY": ("retry", "baseDelay", float),
    "OMNIRELAY_MONITOR_INTERVAL": ("monitor", "interval", float),
    "OMNIRELAY_CACHE_TTL": ("cache", "defaultTTL", float),
    "OMNIRELAY_LOG_LEVEL": (None, "logLevel", str),
}


class ConfigError(Exception):
    """Configuration error."""

    def __init__(self, path: str, message: str):
        self.path = path
        super().__init__(f"Config error in {path}: {message}")


def _env_overrides() -> Dict[str, Any]:
    result: Dict[str, Any] = {}
    for name, (section, key, parse) in ENV_OVERRIDES.items():
        raw = os.environ.get(name, "").strip()
        if not raw:
            continue
        try:
            value = parse(raw)
        except ValueError as e:
            raise ConfigError(name, f"invalid value {raw!r}") from e
        if section is None:
            result[key] = value
        else:
            result.setdefault(section, {})[key] = value
    return result


_config_var: ContextVar['ConfigManager'] = ContextVar('_config_var')


class ConfigManager:
    """Configuration management.

    Instance-based with ContextVar for scoping. Class methods delegate
    to the current instance.

    Sources, lowest precedence first:
    1. Global config (``omnirelay.json`` in the user config directory)
    2. Project configs found walking up from the working directory
    3. ``OMNIRELAY_CONFIG_CONTENT`` (inline JSON)
    4. ``OMNIRELAY_*`` variables for individual settings
    """

    def __init__(self) -> None:
        self._cache: Optional[Config] = None
        self._sources: List[str] = []

    # -- ContextVar plumbing --

    @classmethod
    def current(cls) -> 'ConfigManager':
        try:
            return _config_var.get()
        except LookupError:
            instance = cls()
            _config_var.set(instance)
            return instance

    @classmethod
    def provide(cls, instance: 'ConfigManager') -> Token['ConfigManager']:
        return _config_var.set(instance)

    @classmethod
    def restore(cls, token: Token['ConfigManager']) -> None:
        _config_var.reset(token)

    # -- Public API (class methods delegate to current instance) --

    @classmethod
    def reset(cls) -> None:
        """Drop the cached configuration."""
        inst = cls.current()
        inst._cache = None
        inst._sources = []

    @classmethod
    async def load(cls, directory: str = ".") -> Config:
        return cls.current()._load(directory)

    @classmethod
    async def get(cls) -> Config:
        inst = cls.current()
        if inst._cache is None:
            return inst._load()
        return inst._cache

    @classmethod
    def sources(cls) -> List[str]:
        """Files and variables that contributed to the loaded config."""
        return cls.current()._sources.copy()

    # -- Instance methods --

    def _load(self, directory: str = ".") -> Config:
        if self._cache is not None:
            return self._cache

        result: Dict[str, Any] = {}
        sources: List[str] = []

        # 1. Global config
        for filename in CONFIG_FILENAMES:
            filepath = os.path.join(GlobalPath.config(), filename)
            data = load_json_file(filepath)
            if data:
                result = deep_merge(result, data)
                sources.append(filepath)
                log.info("loaded global config", {"path": filepath})

        # 2. Project configs, applied root first
        project_configs: List[Path] = []
        current = Path(directory).resolve()
        while True:
            for filename in CONFIG_FILENAMES:
                candidate = current / filename
                if candidate.is_file():
                    project_configs.append(candidate)
            if current == current.parent:
                break
            current = current.parent

        for filepath in reversed(project_configs):
            data = load_json_file(filepath)
            if data:
                result = deep_merge(result, data)
                sources.append(str(filepath))
                log.info("loaded project config", {"path": str(filepath)})

        # 3. Inline JSON
        env_config = os.environ.get("OMNIRELAY_CONFIG_CONTENT")
        if env_config:
            try:
                data = json.loads(env_config)
            except json.JSONDecodeError as e:
                raise ConfigError("OMNIRELAY_CONFIG_CONTENT", str(e)) from e
            result = deep_merge(result, data)
            sources.append("OMNIRELAY_CONFIG_CONTENT")
            log.info("loaded config from OMNIRELAY_CONFIG_CONTENT")

        # 4. Individual overrides
        overrides = _env_overrides()
        if overrides:
            result = deep_merge(result, overrides)
            sources.append("environment")

        try:
            config = Config.model_validate(result)
        except ValidationError as e:
            raise ConfigError(", ".join(sources) or "<defaults>", str(e)) from e

        self._sources = sources
        self._cache = config
        return config
