"""Configuration loading utilities."""

import json
import re
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from nanocontext.config.schema import Config
from nanocontext.logging import get_logger

logger = get_logger(__name__)

CONFIG_FILE = "config.json"


def camel_to_snake(name: str) -> str:
    """Convert camelCase to snake_case."""
    return re.sub(r"(?<!^)(?=[A-Z])", "_", name).lower()


def convert_keys(data: Any) -> Any:
    """Recursively convert dict keys from camelCase to snake_case."""
    if isinstance(data, dict):
        return {camel_to_snake(k): convert_keys(v) for k, v in data.items()}
    if isinstance(data, list):
        return [convert_keys(item) for item in data]
    return data


def get_config_path(path: Path | None = None) -> Path:
    return path if path is not None else Path.cwd() / CONFIG_FILE


def load_config(path: Path | None = None) -> Config:
    """
    Load configuration from ``config.json`` (or *path*), then apply environment overrides.

    With no explicit *path*, a missing or broken file is logged and defaults are used.
    An explicit *path* that is not a JSON object raises ``ValueError``; one that fails
    validation raises ``pydantic.ValidationError``.
    """
    config_path = get_config_path(path)
    if not config_path.exists():
        return Config()

    try:
        data = json.loads(config_path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        if path is not None:
            raise
        logger.warning("config_load_failed", path=str(config_path), error=str(e))
        return Config()

    if not isinstance(data, dict):
        if path is not None:
            raise ValueError(f"{config_path}: top level must be a JSON object, got {type(data).__name__}")
        logger.warning("config_load_failed", path=str(config_path), error="top level is not an object")
        return Config()

    try:
        return Config(**convert_keys(data))
    except ValidationError as e:
        if path is not None:
            raise
        logger.warning("config_invalid", path=str(config_path), errors=e.error_count())
        return Config()
