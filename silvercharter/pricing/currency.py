"""
Currency conversion module.

Converts USD amounts into the configured retail currency using exchange rates
cached on disk. Rates are refreshed from the Frankfurter API once per session;
when the API is unreachable the previous cache is used, and when no rate is
available at all amounts pass through unchanged.
"""

import json
import logging
import math
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

import requests

from silvercharter.exceptions import CONVERSION_WARNING
from silvercharter.utils.config_loader import AppConfig

logger = logging.getLogger(__name__)

BASE_CURRENCY = "USD"

SYMBOL_MAP = {
    "USD": "$",
    "GBP": "£",
    "EUR": "€",
    "JPY": "¥",
    "CNY": "¥",
    "AUD": "A$",
    "CAD": "C$",
    "CHF": "CHF ",
    "SEK": "kr",
    "NOK": "kr",
    "DKK": "kr",
    "NZD": "NZ$",
    "INR": "₹",
    "KRW": "₩",
    "TRY": "₺",
    "RUB": "₽",
    "BRL": "R$",
    "MXN": "MX$",
    "HKD": "HK$",
    "SGD": "S$",
    "ZAR": "R",
    "THB": "฿",
}


def _is_usable_rate(rate: Any) -> bool:
    return (
        isinstance(rate, (int, float))
        and not isinstance(rate, bool)
        and math.isfinite(rate)
        and rate > 0
    )


class CurrencyConverter:
    """
    Converter for USD prices backed by a JSON rate cache.

    Attributes:
        cache_path: Location of the cached rates file.
        api_url: Frankfurter "latest" endpoint.
        timeout: Request timeout in seconds.
    """

    def __init__(
        self,
        cache_path: Path,
        api_url: str = "https://api.frankfurter.app/latest",
        timeout: int = 10,
    ) -> None:
        self.cache_path = Path(cache_path)
        self.api_url = api_url
        self.timeout = timeout
        self._rates: Optional[Dict[str, float]] = None
        self.last_updated: Optional[str] = None

    @classmethod
    def from_config(cls, config: AppConfig) -> "CurrencyConverter":
        """Build a converter from the application configuration."""
        return cls(
            cache_path=Path(config.paths.data_dir) / config.currency.cache_file,
            api_url=config.currency.api_url,
            timeout=config.currency.timeout_seconds,
        )

    def refresh_rates(self) -> Optional[Dict[str, Any]]:
        """
        Fetch the latest USD rates and write them to the cache file.

        Best-effort: on any failure the existing cache is kept and returned.

        Returns:
            Cache contents ({"lastUpdated", "rates"}), or None if neither the
            API nor the cache is available.
        """
        logger.info(f"Fetching currency rates from {self.api_url}")
        try:
            response = requests.get(
                self.api_url,
                params={"from": BASE_CURRENCY},
                timeout=self.timeout,
            )
            response.raise_for_status()
            data = response.json() or {}
        except (requests.exceptions.RequestException, ValueError) as e:
            logger.warning(
                f"Could not refresh currency rates: {e}",
                extra={"event": CONVERSION_WARNING},
            )
            cached = self._read_cache()
            if cached is None:
                logger.warning("No currency cache available")
            else:
                logger.info(f"Using cached currency data from {cached.get('lastUpdated')}")
            return cached

        payload = {
            "lastUpdated": datetime.now(timezone.utc).isoformat(),
            "rates": data.get("rates") or {},
        }
        try:
            self.cache_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.cache_path, "w", encoding="utf-8") as f:
                json.dump(payload, f, indent=2)
        except OSError as e:
            logger.warning(f"Could not write currency cache {self.cache_path}: {e}")

        self._rates = dict(payload["rates"])
        self.last_updated = payload["lastUpdated"]
        logger.info(f"Currency rates cached ({len(self._rates)} currencies)")
        return payload

    def _read_cache(self) -> Optional[Dict[str, Any]]:
        if not self.cache_path.exists():
            return None
        try:
            with open(self.cache_path, "r", encoding="utf-8") as f:
                cache = json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            logger.warning(
                f"Failed to read currency cache {self.cache_path}: {e}",
                extra={"event": CONVERSION_WARNING},
            )
            return None
        return cache if isinstance(cache, dict) else None

    def _get_rates(self) -> Dict[str, float]:
        if self._rates is None:
            cache = self._read_cache() or {}
            rates = cache.get("rates")
            self._rates = dict(rates) if isinstance(rates, dict) else {}
            self.last_updated = cache.get("lastUpdated")
        return self._rates

    def get_rate(self, currency: str) -> Optional[float]:
        """
        Get the cached USD rate for a currency.

        Returns:
            float rate, 1.0 for USD, or None if no usable rate is cached.
        """
        code = (currency or BASE_CURRENCY).upper()
        if code == BASE_CURRENCY:
            return 1.0
        rate = self._get_rates().get(code)
        return float(rate) if _is_usable_rate(rate) else None

    def convert(self, amount_usd: float, target_currency: str = BASE_CURRENCY) -> float:
        """
        Convert a USD amount into ``target_currency``.

        Never raises: without a cached rate the USD amount is returned.
        """
        code = (target_currency or BASE_CURRENCY).upper()
        if code == BASE_CURRENCY:
            return amount_usd

        rate = self.get_rate(code)
        if rate is None:
            logger.warning(
                f"No cached rate for {code}; returning original USD value",
                extra={"event": CONVERSION_WARNING},
            )
            return amount_usd
        return amount_usd * rate

    def convert_to_usd(self, value: float, source_currency: str = BASE_CURRENCY) -> float:
        """Convert an amount in ``source_currency`` back to USD."""
        code = (source_currency or BASE_CURRENCY).upper()
        if code == BASE_CURRENCY:
            return value

        rate = self.get_rate(code)
        if rate is None:
            logger.warning(
                f"No cached rate for {code}; returning original value",
                extra={"event": CONVERSION_WARNING},
            )
            return value
        return value / rate

    def get_rate_info(self, currency: str) -> dict:
        """Get information about the rate used for a currency."""
        rate = self.get_rate(currency)
        return {
            "currency": (currency or BASE_CURRENCY).upper(),
            "rate": rate,
            "last_updated": self.last_updated,
            "is_fallback": rate is None,
        }


def format_currency(value: float, currency: str = BASE_CURRENCY) -> str:
    """
    Format an amount with its currency symbol.

    Unknown codes are used as a prefix: format_currency(5, "PLN") -> "PLN 5.00".
    """
    code = (currency or BASE_CURRENCY).upper()
    symbol = SYMBOL_MAP.get(code, f"{code} ")
    return f"{symbol}{float(value):.2f}"
