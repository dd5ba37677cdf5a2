"""
Configuration loading for skpass.

The config lives at <home>/config.yaml. A missing or broken file
never stops the engine: it falls back to defaults and says so.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import yaml
from pydantic import ValidationError

from . import SKPASS_HOME
from .models import SkpassConfig

logger = logging.getLogger("skpass.config")

CONFIG_FILE = "config.yaml"


def resolve_home(home: Optional[Path] = None) -> Path:
    """Return the skpass home directory, expanded."""
    return Path(home or SKPASS_HOME).expanduser()


def config_path(home: Optional[Path] = None) -> Path:
    return resolve_home(home) / CONFIG_FILE


def load_config(home: Optional[Path] = None) -> SkpassConfig:
    """Load configuration from disk.

    Args:
        home: skpass home directory. Defaults to $SKPASS_HOME.

    Returns:
        The parsed config, or defaults if the file is missing or invalid.
    """
    path = config_path(home)
    if not path.exists():
        logger.debug("No config at %s, using defaults", path)
        return SkpassConfig()

    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        return SkpassConfig(**data)
    except (yaml.YAMLError, ValidationError, TypeError) as exc:
        logger.warning("Failed to load config %s: %s", path, exc)
        return SkpassConfig()


def save_config(config: SkpassConfig, home: Optional[Path] = None) -> Path:
    """Persist configuration to disk.

    Returns:
        Path of the written config file.
    """
    path = config_path(home)
    path.parent.mkdir(parents=True, exist_ok=True)
    data = config.model_dump(mode="json")
    path.write_text(yaml.dump(data, default_flow_style=False), encoding="utf-8")
    logger.info("Config written to %s", path)
    return path
