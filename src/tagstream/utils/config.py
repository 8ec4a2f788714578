"""
Configuration for tagstream.

Settings are pydantic models. They can come from:
- JSON, YAML, TOML or .env files
- plain mappings
- TAGSTREAM_<SECTION>_<FIELD> environment variables (typed by the models)

Sources are merged by priority and validated once.
"""

import os
import json
from pathlib import Path
from typing import Optional, Dict, Any, List, Union, Callable, Mapping

import yaml
import toml
from pydantic import BaseModel, Field, field_validator, ValidationError, ConfigDict

from .logging import get_logger
from .errors import ConfigurationError


logger = get_logger("tagstream.config")

ENV_PREFIX = "TAGSTREAM_"

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class ConfigSource(BaseModel):
    """One registered source; either a file path or inline data."""
    path: Optional[Path] = None
    data: Dict[str, Any] = Field(default_factory=dict)
    priority: int = 0
    source_type: str = "dict"

    model_config = ConfigDict(arbitrary_types_allowed=True)


class StreamConfig(BaseModel):
    """Event stream connection configuration."""
    base_url: str = "https://vera-assignment-api.vercel.app/api/stream"
    query_param: str = "prompt"
    headers: Dict[str, str] = Field(default_factory=dict)
    connect_timeout: float = 10.0
    read_timeout: Optional[float] = None
    chunk_size: int = 8192
    coalesce_updates: bool = True
    frame_interval: float = 1 / 60

    @field_validator('frame_interval')
    @classmethod
    def validate_frame_interval(cls, v):
        """Frame interval must not be negative."""
        if v < 0:
            raise ValueError("frame_interval must be >= 0")
        return v

    @field_validator('chunk_size')
    @classmethod
    def validate_chunk_size(cls, v):
        if v <= 0:
            raise ValueError("chunk_size must be positive")
        return v


class SectionsConfig(BaseModel):
    """Section assembly configuration."""
    titles: Dict[str, str] = Field(default_factory=dict)

    @field_validator('titles')
    @classmethod
    def lowercase_keys(cls, v):
        """Tag names are matched lower-cased."""
        return {key.lower(): title for key, title in v.items()}


class LoggingConfig(BaseModel):
    """Console, file and Sentry logging settings."""
    level: str = "WARNING"
    format: str = "console"
    directory: Optional[Path] = None
    enable_file: bool = False
    enable_sentry: bool = False
    sentry_dsn: Optional[str] = None

    @field_validator('level')
    @classmethod
    def validate_level(cls, v):
        level = v.upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"must be one of {', '.join(LOG_LEVELS)}")
        return level

    @field_validator('format')
    @classmethod
    def validate_format(cls, v):
        if v not in ("json", "console"):
            raise ValueError(f"Invalid log format: {v}")
        return v


class TagStreamConfig(BaseModel):
    """Top-level tagstream settings."""
    app_name: str = "tagstream"
    debug: bool = False

    stream: StreamConfig = Field(default_factory=StreamConfig)
    sections: SectionsConfig = Field(default_factory=SectionsConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = ConfigDict(
        arbitrary_types_allowed=True,
        validate_assignment=True
    )


def _parse_env_lines(content: str) -> Dict[str, str]:
    """Read KEY=VALUE lines, ignoring blanks and comments."""
    values = {}
    for raw in content.splitlines():
        line = raw.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, _, value = line.partition("=")
        values[key.strip()] = value.strip().strip("'\"")
    return values


def _merge(base: Dict[str, Any], update: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively overlay update onto a copy of base."""
    merged = dict(base)
    for key, value in update.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = _merge(current, value)
        else:
            merged[key] = value
    return merged


def env_overrides(environ: Mapping[str, str]) -> Dict[str, Any]:
    """
    Map TAGSTREAM_<SECTION>_<FIELD> variables onto nested config keys.

    The first segment after the prefix selects a section when it names one,
    so TAGSTREAM_STREAM_BASE_URL sets stream.base_url while TAGSTREAM_DEBUG
    sets the top-level debug flag. Values stay strings; the models convert
    them to each field's type.
    """
    overrides: Dict[str, Any] = {}
    for key, value in environ.items():
        if not key.startswith(ENV_PREFIX):
            continue
        name = key[len(ENV_PREFIX):].lower()
        section, _, field_name = name.partition("_")
        if field_name and section in _SECTIONS:
            overrides.setdefault(section, {})[field_name] = value
        else:
            overrides[name] = value
    return overrides


_FILE_PARSERS: Dict[str, Callable[[str], Dict[str, Any]]] = {
    "json": json.loads,
    "yaml": lambda text: yaml.safe_load(text) or {},
    "toml": toml.loads,
    "env": lambda text: env_overrides(_parse_env_lines(text)),
}

_SUFFIX_TYPES = {
    ".json": "json",
    ".yaml": "yaml",
    ".yml": "yaml",
    ".toml": "toml",
    ".env": "env",
}

_SECTIONS = frozenset(("stream", "sections", "logging"))


def _user_config_paths() -> List[Path]:
    home = Path.home() / ".tagstream"
    return [home / "config.yaml", home / "config.toml", Path("tagstream.yaml"), Path("tagstream.toml")]


class ConfigLoader:
    """Merges configuration sources by priority and validates the result."""

    def __init__(self):
        self._sources: List[ConfigSource] = []
        self._config: Optional[TagStreamConfig] = None

    def add_source(
        self,
        source: Union[str, Path, Dict[str, Any]],
        priority: int = 0,
        source_type: Optional[str] = None
    ) -> None:
        """
        Register a file path or a mapping.

        Args:
            source: File path or already-parsed mapping
            priority: Higher priorities are merged later and win
            source_type: json, yaml, toml or env (taken from the suffix if None)

        Raises:
            ConfigurationError: If the file type cannot be determined
        """
        if isinstance(source, dict):
            entry = ConfigSource(data=source, priority=priority)
        else:
            path = Path(source)
            kind = source_type or _SUFFIX_TYPES.get(path.suffix.lower())
            if kind not in _FILE_PARSERS:
                raise ConfigurationError(f"Unsupported config file: {path}")
            entry = ConfigSource(path=path, priority=priority, source_type=kind)

        self._sources.append(entry)
        self._sources.sort(key=lambda s: s.priority)

    def load(self, use_env: bool = True) -> TagStreamConfig:
        """
        Merge every source, then TAGSTREAM_* variables, and validate.

        Raises:
            ConfigurationError: If a file cannot be parsed or a value is invalid
        """
        data: Dict[str, Any] = {}
        for source in self._sources:
            data = _merge(data, self._read(source))
        if use_env:
            data = _merge(data, env_overrides(os.environ))

        try:
            self._config = TagStreamConfig(**data)
        except ValidationError as e:
            problems = "; ".join(
                f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
                for error in e.errors()
            )
            raise ConfigurationError(f"Invalid configuration: {problems}", cause=e) from e

        logger.debug("configuration_loaded", sources=[str(s.path or "dict") for s in self._sources])
        return self._config

    def _read(self, source: ConfigSource) -> Dict[str, Any]:
        if source.path is None:
            return source.data
        if not source.path.exists():
            logger.warning("config_file_not_found", path=str(source.path))
            return {}

        text = source.path.read_text(encoding="utf-8")
        try:
            data = _FILE_PARSERS[source.source_type](text)
        except (ValueError, yaml.YAMLError, toml.TomlDecodeError) as e:
            raise ConfigurationError(f"Cannot parse {source.path}: {e}", cause=e) from e

        if not isinstance(data, dict):
            raise ConfigurationError(f"{source.path} must contain a mapping at the top level")
        return data

    def get_config(self) -> TagStreamConfig:
        """Return the last loaded configuration."""
        if self._config is None:
            raise ConfigurationError("Configuration not loaded")
        return self._config


def load_config(
    config_paths: Optional[List[Union[str, Path]]] = None,
    extra_config: Optional[Dict[str, Any]] = None,
    use_env: bool = True,
) -> TagStreamConfig:
    """
    Load configuration the way the command line does.

    Order, lowest to highest: ~/.tagstream/config.{yaml,toml},
    ./tagstream.{yaml,toml}, explicit paths in the given order, extra_config,
    then TAGSTREAM_* environment variables.
    """
    loader = ConfigLoader()

    for path in _user_config_paths():
        if path.exists():
            loader.add_source(path, priority=10)

    for i, path in enumerate(config_paths or []):
        loader.add_source(path, priority=20 + i)

    if extra_config:
        loader.add_source(extra_config, priority=100)

    return loader.load(use_env=use_env)


__all__ = [
    'TagStreamConfig',
    'StreamConfig',
    'SectionsConfig',
    'LoggingConfig',
    'ConfigLoader',
    'load_config',
    'env_overrides',
    'ENV_PREFIX',
]
