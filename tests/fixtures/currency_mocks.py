"""
Mock responses for exchange-rate API calls.

Use with the `responses` library to mock HTTP requests in tests.
"""

import json
from pathlib import Path
from typing import Dict, Optional

import requests
import responses

FRANKFURTER_URL = "https://api.frankfurter.app/latest"

SAMPLE_RATES = {
    "GBP": 0.79,
    "EUR": 0.92,
    "JPY": 151.2,
    "CAD": 1.36,
}


def add_rates_mock(rates: Optional[Dict[str, float]] = None, status: int = 200) -> None:
    """
    Add a mock Frankfurter "latest" response.

    Call this within a @responses.activate block.
    """
    responses.add(
        responses.GET,
        FRANKFURTER_URL,
        json={"amount": 1.0, "base": "USD", "date": "2026-10-16", "rates": rates or SAMPLE_RATES},
        status=status,
        match=[responses.matchers.query_param_matcher({"from": "USD"})],
    )


def add_rates_connection_error() -> None:
    """Make the rates endpoint raise a connection error."""
    responses.add(
        responses.GET,
        FRANKFURTER_URL,
        body=requests.exceptions.ConnectionError("Network unreachable"),
    )


def write_rates_cache(path: Path, rates: Optional[Dict[str, float]] = None) -> Path:
    """Write a rates cache file in the converter's on-disk format."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump({"lastUpdated": "2026-10-16T08:00:00+00:00", "rates": rates or SAMPLE_RATES}, f)
    return path
