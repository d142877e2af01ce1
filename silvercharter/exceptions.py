"""
Custom exceptions for the SilverCharter pricing toolkit.

Only configuration and input errors are fatal to a pricing call. Recoverable
problems (bad formulas, missing exchange rates, unusable rounding targets) are
logged with one of the event tags below and the pipeline carries on.
"""

from typing import Any, Dict, Optional

# Event tags attached to recoverable warnings via ``extra={"event": ...}``
FORMULA_PARSE_WARNING = "formula_parse_warning"
CONVERSION_WARNING = "conversion_warning"
ROUNDING_FALLBACK = "rounding_fallback"


class SilverCharterError(Exception):
    """Base exception for pricing errors."""

    error_code: str = "PRICING_ERROR"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging or display."""
        return {
            "error": self.error_code,
            "message": self.message,
            "details": self.details,
        }


class ConfigurationError(SilverCharterError):
    """Raised when the pricing configuration is missing."""

    error_code = "CONFIGURATION_ERROR"


class InvalidInputError(SilverCharterError):
    """Raised when a base price is not a finite number."""

    error_code = "INVALID_INPUT"

    def __init__(self, value: Any):
        super().__init__(
            f"Invalid base price provided: {value!r}",
            details={"value": repr(value)},
        )


class SettingsStoreError(SilverCharterError):
    """Raised when a settings file cannot be read or written."""

    error_code = "SETTINGS_STORE_ERROR"

    def __init__(self, message: str, path: Optional[str] = None):
        details = {}
        if path:
            details["path"] = path
        super().__init__(message, details)
