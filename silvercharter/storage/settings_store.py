"""
Settings storage module.

Manages persistent storage of the pricing settings:
- defaults.json: factory defaults, seeded on first run
- settings.json: the operator's settings

Every load runs the schema normalizer and writes the result back, so files
written by older releases are upgraded in place.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

from silvercharter.exceptions import SettingsStoreError
from silvercharter.pricing.models import PricingConfig, replace_config
from silvercharter.pricing.schema import normalize

logger = logging.getLogger(__name__)

DEFAULT_DATA_DIR = "data"

DEFAULT_SETTINGS: Dict[str, Any] = {
    "currency": "GBP",
    "formula": {
        "Damaged": {"multiplier": "*0.8", "rounding": {"mode": "down", "targets": [0.99]}},
        "Ungraded": {"multiplier": "*1", "rounding": {"mode": "up", "targets": [0.99]}},
        "Grade 7": {"multiplier": "*1", "rounding": {"mode": "nearest", "targets": [0.99]}},
        "Grade 8": {"multiplier": "*1", "rounding": {"mode": "nearest", "targets": [0.99]}},
        "Grade 9": {"multiplier": "*1", "rounding": {"mode": "nearest", "targets": [0.99]}},
        "Grade 9.5": {"multiplier": "*1", "rounding": {"mode": "nearest", "targets": [0.99]}},
        "Grade 10": {"multiplier": "*1", "rounding": {"mode": "nearest", "targets": [0.99]}},
    },
    "sessionID": 0,
}


class PricingSettingsStore:
    """Manages persistent storage of pricing settings."""

    def __init__(self, data_dir: Optional[str] = None) -> None:
        """Initialize the settings store."""
        self.config_dir = Path(data_dir or DEFAULT_DATA_DIR) / "config"
        self.defaults_path = self.config_dir / "defaults.json"
        self.settings_path = self.config_dir / "settings.json"
        self._settings: Optional[PricingConfig] = None

    def _read_json(self, path: Path) -> Dict[str, Any]:
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise SettingsStoreError(f"Settings file is not valid JSON: {e}", path=str(path)) from e
        except OSError as e:
            raise SettingsStoreError(f"Could not read settings file: {e}", path=str(path)) from e
        if not isinstance(data, dict):
            raise SettingsStoreError(
                f"Settings file must contain a JSON object, got {type(data).__name__}",
                path=str(path),
            )
        return data

    def _write_json(self, path: Path, data: Dict[str, Any]) -> None:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
        except OSError as e:
            raise SettingsStoreError(f"Could not write settings file: {e}", path=str(path)) from e

    def load_defaults(self) -> PricingConfig:
        """Load factory defaults, creating and upgrading defaults.json as needed."""
        if not self.defaults_path.exists():
            self._write_json(self.defaults_path, DEFAULT_SETTINGS)
            logger.info(f"Created default settings file: {self.defaults_path}")

        defaults = normalize(self._read_json(self.defaults_path))
        self._write_json(self.defaults_path, defaults.to_dict())
        return defaults

    def load(self) -> PricingConfig:
        """
        Load the operator's settings.

        Falls back to the defaults on first run. The normalized result is
        written back so the file is always in the current schema.

        Raises:
            SettingsStoreError: If the settings file cannot be read or parsed.
        """
        if not self.settings_path.exists():
            self._write_json(self.settings_path, self.load_defaults().to_dict())
            logger.info(f"Created settings file from defaults: {self.settings_path}")

        settings = normalize(self._read_json(self.settings_path))
        self._write_json(self.settings_path, settings.to_dict())
        self._settings = settings
        return settings

    def save(self, settings: PricingConfig) -> PricingConfig:
        """Normalize and save settings. Returns the saved value."""
        normalized = normalize(settings)
        self._write_json(self.settings_path, normalized.to_dict())
        self._settings = normalized
        logger.info("Settings saved")
        return normalized

    def get(self) -> PricingConfig:
        """Get current settings."""
        if self._settings is None:
            self._settings = self.load()
        return self._settings

    def update(self, **changes: Any) -> PricingConfig:
        """Replace specific fields of the current settings and save."""
        return self.save(replace_config(self.get(), **changes))

    def restore_defaults(self) -> PricingConfig:
        """Overwrite the operator's settings with the defaults, keeping the session counter."""
        session_id = self.get().session_id
        defaults = self.load_defaults()
        logger.info("Restoring default pricing settings")
        return self.save(replace_config(defaults, session_id=session_id))

    def next_session_id(self) -> int:
        """Increment and persist the import session counter, returning the new id."""
        settings = self.load()
        saved = self.save(replace_config(settings, session_id=settings.session_id + 1))
        return saved.session_id

