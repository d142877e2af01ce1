"""
Pricing engine module.

Turns a scraped USD price into a retail price:

    converted      = USD amount in the configured currency
    formula_result = condition formula applied to converted
    final          = formula_result after the condition's rounding policy

The condition entry is looked up in the formula table with "Ungraded" as the
fallback; rounding falls back from the selected entry to "Ungraded" and then
to the table's default rounding.
"""

import logging
import math
from dataclasses import dataclass
from numbers import Real
from typing import Any, Callable, Dict, Mapping, Optional, Union

import pandas as pd

from silvercharter.exceptions import ConfigurationError, InvalidInputError
from silvercharter.pricing.currency import CurrencyConverter, format_currency
from silvercharter.pricing.display import describe_rounding
from silvercharter.pricing.formula import apply_formula as evaluate_formula
from silvercharter.pricing.models import (
    DEFAULT_MULTIPLIER,
    FALLBACK_CONDITION,
    ConditionEntry,
    PricingConfig,
    RoundingPolicy,
)
from silvercharter.pricing.rounding import apply_rounding, round_to_2dp
from silvercharter.pricing.schema import normalize

logger = logging.getLogger(__name__)

ConfigSource = Union[PricingConfig, Callable[[], PricingConfig]]


@dataclass(frozen=True)
class PriceResult:
    """
    Outcome of one pricing calculation.

    Attributes:
        converted: Base price in the target currency.
        formula_result: Price after the formula, rounded to 2 dp.
        final: Retail price after rounding.
        rounding: Rounding policy that was applied, if any.
        used_formula: Formula string that was applied.
        condition: Condition whose entry was used.
    """

    converted: float
    formula_result: float
    final: float
    rounding: Optional[RoundingPolicy]
    used_formula: str
    condition: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "converted": self.converted,
            "formula_result": self.formula_result,
            "final": self.final,
            "rounding": self.rounding.to_dict() if self.rounding else None,
            "used_formula": self.used_formula,
            "condition": self.condition,
        }


def _is_finite_number(value: Any) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool) and math.isfinite(value)


def resolve_entry(
    config: PricingConfig,
    selected_condition: Optional[str] = None,
    override_formula: Optional[str] = None,
) -> tuple[str, ConditionEntry]:
    """
    Resolve the effective multiplier and rounding for a condition.

    Returns:
        Tuple of (condition name used, effective ConditionEntry).
    """
    selected = config.get_entry(selected_condition)
    fallback = config.formula.get(FALLBACK_CONDITION) or ConditionEntry()
    condition = selected_condition if selected is not None else FALLBACK_CONDITION

    rounding = (
        (selected.rounding if selected else None)
        or fallback.rounding
        or config.rounding_default
    )

    if override_formula:
        multiplier = override_formula
    else:
        multiplier = (
            (selected.multiplier if selected else None)
            or fallback.multiplier
            or DEFAULT_MULTIPLIER
        )

    return condition, ConditionEntry(multiplier=multiplier, rounding=rounding)


def calculate_final_price(
    amount_usd: float,
    config: Union[PricingConfig, Mapping[str, Any], None],
    selected_condition: Optional[str] = None,
    override_formula: Optional[str] = None,
    apply_formula: bool = True,
    converter: Optional[CurrencyConverter] = None,
) -> PriceResult:
    """
    Calculate the retail price for a USD base price.

    Args:
        amount_usd: Scraped base price in USD.
        config: Pricing configuration (raw mappings are normalized first).
        selected_condition: Condition name such as "Ungraded" or "Grade 9.5".
        override_formula: Formula to use instead of the condition's own; the
            condition's rounding still applies.
        apply_formula: If False, the converted price skips the formula step.
        converter: Currency converter. Without one, amounts stay in USD.

    Returns:
        PriceResult with every intermediate value.

    Raises:
        ConfigurationError: If config is missing.
        InvalidInputError: If amount_usd is not a finite number.
    """
    if config is None:
        raise ConfigurationError("Missing configuration object.")
    if not _is_finite_number(amount_usd):
        raise InvalidInputError(amount_usd)
    if not isinstance(config, PricingConfig):
        config = normalize(config)

    if converter is None:
        converted = float(amount_usd)
    else:
        converted = float(converter.convert(float(amount_usd), config.currency))

    condition, entry = resolve_entry(config, selected_condition, override_formula)

    formula_result = converted
    if apply_formula:
        formula_result = evaluate_formula(converted, entry.multiplier)

    if entry.rounding is not None:
        final = apply_rounding(formula_result, entry.rounding)
    else:
        final = round_to_2dp(formula_result)

    return PriceResult(
        converted=converted,
        formula_result=round_to_2dp(formula_result),
        final=final,
        rounding=entry.rounding,
        used_formula=entry.multiplier,
        condition=condition,
    )


class PricingEngine:
    """
    Engine for pricing cards with the current settings.

    Attributes:
        config_source: A PricingConfig, or a callable returning the current one.
        converter: Currency converter used for every calculation.
    """

    def __init__(self, config_source: ConfigSource, converter: Optional[CurrencyConverter] = None) -> None:
        self.config_source = config_source
        self.converter = converter

    @property
    def config(self) -> PricingConfig:
        if callable(self.config_source):
            return self.config_source()
        return self.config_source

    def calculate_final_price(
        self,
        amount_usd: float,
        selected_condition: Optional[str] = None,
        override_formula: Optional[str] = None,
        apply_formula: bool = True,
    ) -> PriceResult:
        """Calculate the retail price using the engine's settings and converter."""
        return calculate_final_price(
            amount_usd,
            self.config,
            selected_condition=selected_condition,
            override_formula=override_formula,
            apply_formula=apply_formula,
            converter=self.converter,
        )

    def calculate_prices_batch(
        self,
        df: pd.DataFrame,
        price_column: str = "price_usd",
        condition_column: str = "condition",
    ) -> pd.DataFrame:
        """
        Calculate retail prices for a batch of cards.

        Rows with a missing or invalid price get None in the result columns.

        Args:
            df: DataFrame with USD prices and (optionally) conditions.
            price_column: Column containing USD prices.
            condition_column: Column containing condition names.

        Returns:
            pd.DataFrame: Copy of df with converted, formula_result,
                final_price and used_formula columns.

        Raises:
            ValueError: If the price column is missing.
        """
        if price_column not in df.columns:
            raise ValueError(f"Missing price column: {price_column}")

        df = df.copy()
        config = self.config
        has_conditions = condition_column in df.columns
        output_columns = ["converted", "formula_result", "final_price", "used_formula"]

        def price_row(row: pd.Series) -> pd.Series:
            condition = row[condition_column] if has_conditions else None
            if condition is not None and pd.isna(condition):
                condition = None
            try:
                amount = float(row[price_column])
                result = calculate_final_price(
                    amount,
                    config,
                    selected_condition=condition,
                    converter=self.converter,
                )
            except (InvalidInputError, TypeError, ValueError) as e:
                logger.warning(f"Skipping row {row.name}: {e}")
                return pd.Series([None, None, None, None], index=output_columns)
            return pd.Series(
                [result.converted, result.formula_result, result.final, result.used_formula],
                index=output_columns,
            )

        if df.empty:
            for column in output_columns:
                df[column] = pd.Series(dtype=object)
            return df

        priced = df.apply(price_row, axis=1)
        for column in output_columns:
            df[column] = priced[column]
        logger.info(f"Priced {df['final_price'].notna().sum()}/{len(df)} cards in {config.currency}")
        return df

    def get_pricing_summary(self, amount_usd: float, selected_condition: Optional[str] = None) -> str:
        """
        Get a human-readable summary of a price calculation.

        Args:
            amount_usd: USD price to summarize.
            selected_condition: Condition to price.

        Returns:
            str: Formatted pricing breakdown.
        """
        currency = self.config.currency
        result = self.calculate_final_price(amount_usd, selected_condition)
        return (
            f"{result.condition}: {format_currency(amount_usd, 'USD')} → "
            f"{format_currency(result.converted, currency)} "
            f"{result.used_formula} = {format_currency(result.formula_result, currency)} "
            f"[rounding: {describe_rounding(result.rounding)}] → "
            f"{format_currency(result.final, currency)}"
        )
