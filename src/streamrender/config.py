"""
Configuration for streamrender.

All tunable parameters in one place. Loaded from:
1. Defaults (this file)
2. Config file (~/.config/streamrender/config.toml) if exists
3. Environment variables (STREAMRENDER_*) override file
4. CLI flags override everything
"""

from __future__ import annotations

import contextlib
import logging
import os
import tomllib  # stdlib in 3.11+
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)


@dataclass
class StoreConfig:
    """Node store defaults."""
    default_label: str = "div"  # used when a create instruction has no usable label
    id_prefix: str = "node"


@dataclass
class TextFeedConfig:
    """Fenced-block feed settings."""
    languages: tuple[str, ...] = ("render", "json", "javascript", "js")


@dataclass
class DriverConfig:
    """Stream driver settings."""
    feed: str = "text"
    batch_size: int = 1


@dataclass
class LoggingConfig:
    level: str = "WARNING"


@dataclass
class Config:
    """Root config with all settings."""
    store: StoreConfig = field(default_factory=StoreConfig)
    text: TextFeedConfig = field(default_factory=TextFeedConfig)
    driver: DriverConfig = field(default_factory=DriverConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def get_config_path() -> Path:
    """Get config file path, respecting XDG."""
    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        return Path(xdg) / "streamrender" / "config.toml"
    return Path.home() / ".config" / "streamrender" / "config.toml"


def load_config() -> Config:
    """Load config from file if exists, else return defaults."""
    config = Config()
    path = get_config_path()

    if path.exists():
        try:
            with open(path, "rb") as f:
                data = tomllib.load(f)
            config = _apply_toml(config, data)
        except (OSError, tomllib.TOMLDecodeError, ValueError, TypeError) as e:
            logger.warning("Ignoring unreadable config file %s: %s", path, e)

    # env var overrides
    config = _apply_env(config)

    return config


def _split_languages(value: str | list[str] | tuple[str, ...]) -> tuple[str, ...]:
    items = value.split(",") if isinstance(value, str) else value
    return tuple(str(item).strip().lower() for item in items if str(item).strip())


def _apply_toml(config: Config, data: dict) -> Config:
    """Apply toml data to config."""
    if "store" in data:
        s = data["store"]
        if "default_label" in s:
            config.store.default_label = str(s["default_label"])
        if "id_prefix" in s:
            config.store.id_prefix = str(s["id_prefix"])

    if "text" in data:
        t = data["text"]
        if "languages" in t:
            config.text.languages = _split_languages(t["languages"])

    if "driver" in data:
        d = data["driver"]
        if "feed" in d:
            config.driver.feed = str(d["feed"])
        if "batch_size" in d:
            config.driver.batch_size = int(d["batch_size"])

    if "logging" in data:
        lg = data["logging"]
        if "level" in lg:
            config.logging.level = str(lg["level"]).upper()

    return config


def _apply_env(config: Config) -> Config:
    """Apply environment variable overrides."""
    env_map: dict[str, tuple[str, str, type]] = {
        "STREAMRENDER_DEFAULT_LABEL": ("store", "default_label", str),
        "STREAMRENDER_ID_PREFIX": ("store", "id_prefix", str),
        "STREAMRENDER_FENCE_LANGUAGES": ("text", "languages", tuple),
        "STREAMRENDER_FEED": ("driver", "feed", str),
        "STREAMRENDER_BATCH_SIZE": ("driver", "batch_size", int),
        "STREAMRENDER_LOG_LEVEL": ("logging", "level", str),
    }

    for env_key, (section, attr, conv) in env_map.items():
        val = os.environ.get(env_key)
        if val is not None:
            with contextlib.suppress(ValueError, AttributeError):
                # Comma list for the fence allow-list
                converted = _split_languages(val) if conv is tuple else conv(val)
                setattr(getattr(config, section), attr, converted)

    config.logging.level = config.logging.level.upper()
    return config


# Module-level config instance, loaded once on first use
_config: Config | None = None


def get_config() -> Config:
    """Get the global config instance."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reset_config() -> None:
    """Drop the cached instance so the next get_config() reloads."""
    global _config
    _config = None
