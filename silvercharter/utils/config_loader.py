"""
Application configuration.

Reads config/config.yaml and the optional .env file. Pricing settings
(formulas, rounding, currency) are kept by the settings store instead.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

DATA_DIR_ENV = "SILVERCHARTER_DATA_DIR"
FRANKFURTER_LATEST_URL = "https://api.frankfurter.app/latest"
DEFAULT_LOG_FILE = "data/logs/silvercharter.log"


@dataclass
class PathsConfig:
    """Where settings, caches and logs are kept."""

    data_dir: str = "data"


@dataclass
class CurrencyConfig:
    """Exchange-rate source and cache."""

    api_url: str = FRANKFURTER_LATEST_URL
    timeout_seconds: int = 10
    cache_file: str = "currency.json"


@dataclass
class LoggingConfig:
    level: str = "INFO"
    format: str = "text"
    file: str | None = DEFAULT_LOG_FILE


@dataclass
class AppConfig:
    """Top-level configuration, one attribute per YAML section."""

    paths: PathsConfig = field(default_factory=PathsConfig)
    currency: CurrencyConfig = field(default_factory=CurrencyConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def load_env(env_file: Path = Path(".env")) -> None:
    """Export variables from ``env_file`` if it exists."""
    if not env_file.exists():
        logger.debug(f"No .env file at {env_file}")
        return
    load_dotenv(env_file)
    logger.debug(f"Environment loaded from {env_file}")


def load_config(config_file: Path = Path("config/config.yaml")) -> AppConfig:
    """
    Build the application configuration.

    A missing file gives the defaults. ``SILVERCHARTER_DATA_DIR`` overrides
    ``paths.data_dir`` either way.

    Args:
        config_file: YAML configuration file.

    Returns:
        AppConfig: Parsed configuration.

    Raises:
        yaml.YAMLError: If the file is not valid YAML.
    """
    if config_file.exists():
        with open(config_file, encoding="utf-8") as f:
            config = _parse_config(yaml.safe_load(f) or {})
        logger.info(f"Configuration loaded from {config_file}")
    else:
        logger.warning(f"Config file {config_file} not found, using defaults")
        config = AppConfig()

    data_dir = get_env_var(DATA_DIR_ENV)
    if data_dir:
        config.paths.data_dir = data_dir
    return config


def _parse_config(raw: dict[str, Any]) -> AppConfig:
    """Map the YAML sections onto the config dataclasses, keeping defaults for missing keys."""
    paths_raw = raw.get("paths") or {}
    currency_raw = raw.get("currency") or {}
    logging_raw = raw.get("logging") or {}

    return AppConfig(
        paths=PathsConfig(data_dir=paths_raw.get("data_dir", "data")),
        currency=CurrencyConfig(
            api_url=currency_raw.get("api_url", FRANKFURTER_LATEST_URL),
            timeout_seconds=currency_raw.get("timeout_seconds", 10),
            cache_file=currency_raw.get("cache_file", "currency.json"),
        ),
        logging=LoggingConfig(
            level=logging_raw.get("level", "INFO"),
            format=logging_raw.get("format", "text"),
            file=logging_raw.get("file", DEFAULT_LOG_FILE),
        ),
    )


def get_env_var(key: str, default: str | None = None) -> str | None:
    """Read an environment variable, returning ``default`` when unset."""
    return os.environ.get(key, default)
