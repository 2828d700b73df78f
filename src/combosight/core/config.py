"""
Configuration Management for ComboSight

Settings come from, highest precedence first:
1. Command line options (applied by the CLI on top of the loaded config)
2. Environment variables (COMBOSIGHT_*)
3. The first config file found (YAML, TOML or JSON)
4. Dataclass defaults
"""

import json
import logging
import os
import tomllib
from dataclasses import dataclass, field
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

import yaml

from combosight.core.constants import Timers

logger = logging.getLogger(__name__)


# ============================================================================
# Configuration Dataclasses
# ============================================================================


@dataclass
class ComboConfig:
    """Configuration for combo detection."""

    # Consecutive non-vulnerable frames after which a combo string ends
    combo_string_reset_frames: int = int(Timers.COMBO_STRING_RESET_FRAMES)


@dataclass
class OutputConfig:
    """Configuration for CLI output."""

    default_format: str = "table"  # "table" or "json"
    json_indent: int = 2


@dataclass
class LoggingConfig:
    """Configuration for logging."""

    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    file: str | None = None
    file_max_bytes: int = 10 * 1024 * 1024  # 10MB
    file_backup_count: int = 5


@dataclass
class ComboSightConfig:
    """Main configuration container."""

    combos: ComboConfig = field(default_factory=ComboConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


# ============================================================================
# Sources
# ============================================================================


_SECTIONS = ("combos", "output", "logging")

_ENV_VARS = {
    "COMBOSIGHT_RESET_FRAMES": ("combos", "combo_string_reset_frames"),
    "COMBOSIGHT_LOG_LEVEL": ("logging", "level"),
    "COMBOSIGHT_LOG_FILE": ("logging", "file"),
    "COMBOSIGHT_OUTPUT_FORMAT": ("output", "default_format"),
}


def _read_yaml(path: Path) -> dict[str, Any]:
    with open(path) as f:
        return yaml.safe_load(f) or {}


def _read_toml(path: Path) -> dict[str, Any]:
    with open(path, "rb") as f:
        return tomllib.load(f)


def _read_json(path: Path) -> dict[str, Any]:
    with open(path) as f:
        return json.load(f)


_READERS = {
    ".yaml": _read_yaml,
    ".yml": _read_yaml,
    ".toml": _read_toml,
    ".json": _read_json,
}


def find_config_file() -> Path | None:
    """First existing config file in ./combosight.* or $XDG_CONFIG_HOME/combosight/config.*."""
    xdg_config = Path(os.environ.get("XDG_CONFIG_HOME", str(Path.home() / ".config")))
    candidates = [Path.cwd() / f"combosight{suffix}" for suffix in (".yaml", ".toml", ".json")]
    candidates += [xdg_config / "combosight" / f"config{suffix}" for suffix in (".yaml", ".toml")]
    return next((path for path in candidates if path.exists()), None)


def read_config_file(path: Path) -> dict[str, Any]:
    """Raw section dict from a config file; format is picked by extension."""
    reader = _READERS.get(path.suffix.lower())
    if reader is None:
        logger.warning(f"Unknown config file format: {path.suffix}")
        return {}
    return reader(path)


def read_env() -> dict[str, dict[str, str]]:
    """Raw string values of the COMBOSIGHT_* variables that are set, by section."""
    sections: dict[str, dict[str, str]] = {}
    for env_var, (section, key) in _ENV_VARS.items():
        value = os.environ.get(env_var)
        if value is not None:
            sections.setdefault(section, {})[key] = value
    return sections


def _apply(config: ComboSightConfig, data: dict[str, Any], source: str) -> None:
    """Overlay one source onto ``config``. Integer fields accept numeric strings."""
    for section in _SECTIONS:
        target = getattr(config, section)
        for key, value in (data.get(section) or {}).items():
            if not hasattr(target, key):
                continue
            if isinstance(getattr(target, key), int):
                try:
                    value = int(value)
                except (TypeError, ValueError):
                    raise ValueError(
                        f"{section}.{key} from {source} must be an integer, got {value!r}"
                    ) from None
            setattr(target, key, value)


def dict_to_config(data: dict[str, Any], source: str = "config") -> ComboSightConfig:
    """Build a validated config from defaults plus one section dict. Unknown keys are ignored."""
    config = ComboSightConfig()
    _apply(config, data, source)
    _validate(config)
    return config


def _validate(config: ComboSightConfig) -> None:
    if config.combos.combo_string_reset_frames < 0:
        raise ValueError("combos.combo_string_reset_frames must be >= 0")


def load_config(config_file: Path | None = None, include_env: bool = True) -> ComboSightConfig:
    """
    Load configuration from all sources.

    Args:
        config_file: Explicit path to a config file, otherwise the default
            locations are searched
        include_env: Whether COMBOSIGHT_* variables override the file

    Raises:
        ValueError: A value has the wrong type or is out of range
    """
    config = ComboSightConfig()

    path = config_file or find_config_file()
    if path is not None:
        _apply(config, read_config_file(path), str(path))
        logger.info(f"Loaded config from: {path}")

    if include_env:
        _apply(config, read_env(), "environment")

    _validate(config)
    return config


# ============================================================================
# Logging Setup
# ============================================================================


_HANDLER_MARKER = "_combosight_handler"


def configure_logging(config: LoggingConfig) -> None:
    """
    Install handlers on the root logger according to the logging config.

    Calling it again replaces the handlers it installed before and leaves
    any other handlers alone.
    """
    root = logging.getLogger()
    root.setLevel(config.level.upper())
    formatter = logging.Formatter(config.format)

    for handler in list(root.handlers):
        if getattr(handler, _HANDLER_MARKER, False):
            root.removeHandler(handler)
            handler.close()

    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if config.file:
        handlers.append(
            RotatingFileHandler(
                config.file,
                maxBytes=config.file_max_bytes,
                backupCount=config.file_backup_count,
            )
        )

    for handler in handlers:
        handler.setFormatter(formatter)
        setattr(handler, _HANDLER_MARKER, True)
        root.addHandler(handler)
