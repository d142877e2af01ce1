"""
Storage modules for data persistence.
"""

from silvercharter.storage.settings_store import DEFAULT_SETTINGS, PricingSettingsStore

__all__ = [
    "DEFAULT_SETTINGS",
    "PricingSettingsStore",
]
