"""
Pricing module.

Currency conversion, formula evaluation, rounding policies and the settings
schema they are driven by.
"""

from silvercharter.pricing.currency import CurrencyConverter, format_currency
from silvercharter.pricing.formula import apply_formula
from silvercharter.pricing.models import (
    ConditionEntry,
    PricingConfig,
    RoundingPolicy,
    replace_config,
)
from silvercharter.pricing.pricing_engine import PriceResult, PricingEngine, calculate_final_price
from silvercharter.pricing.rounding import apply_rounding, round_up_to_99
from silvercharter.pricing.schema import normalize

__all__ = [
    "CurrencyConverter",
    "PricingEngine",
    "PriceResult",
    "PricingConfig",
    "ConditionEntry",
    "RoundingPolicy",
    "apply_formula",
    "apply_rounding",
    "calculate_final_price",
    "format_currency",
    "normalize",
    "replace_config",
    "round_up_to_99",
]
