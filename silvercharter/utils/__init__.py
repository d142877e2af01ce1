"""
Utility modules.

Common helpers for logging and configuration loading.
"""

from silvercharter.utils.config_loader import AppConfig, load_config, load_env
from silvercharter.utils.logging_setup import setup_logging

__all__ = [
    "load_config",
    "load_env",
    "AppConfig",
    "setup_logging",
]
