"""
Pricing configuration models.

The configuration is an immutable value: edits go through ``replace_config``
and its helpers, which return a new ``PricingConfig``.
"""

from dataclasses import dataclass, field, replace
from typing import Any, Dict, Mapping, Optional, Tuple

DEFAULT_CURRENCY = "GBP"
DEFAULT_MULTIPLIER = "*1"
FALLBACK_CONDITION = "Ungraded"
ROUNDING_DEFAULT_KEY = "roundingDefault"

ROUNDING_MODES = ("up", "down", "nearest", "none")


@dataclass(frozen=True)
class RoundingPolicy:
    """
    Rounding rule for a condition.

    Attributes:
        mode: One of "up", "down", "nearest" or "none".
        targets: Target endings as written by the operator (0.99, "99", ".5").
    """

    mode: str = "nearest"
    targets: Tuple[Any, ...] = (0.99,)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the persisted dictionary shape."""
        return {"mode": self.mode, "targets": list(self.targets)}

    @classmethod
    def from_dict(cls, data: Any) -> Optional["RoundingPolicy"]:
        """Create from a persisted mapping. Returns None for non-mappings."""
        if isinstance(data, RoundingPolicy):
            return data
        if not isinstance(data, Mapping):
            return None

        mode = str(data.get("mode") or "nearest").strip().lower()
        raw_targets = data.get("targets")
        if raw_targets is None:
            targets: Tuple[Any, ...] = ()
        elif isinstance(raw_targets, (list, tuple)):
            targets = tuple(raw_targets)
        else:
            targets = (raw_targets,)
        return cls(mode=mode, targets=targets)


@dataclass(frozen=True)
class ConditionEntry:
    """Formula and optional rounding for one card condition."""

    multiplier: str = DEFAULT_MULTIPLIER
    rounding: Optional[RoundingPolicy] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"multiplier": self.multiplier}
        if self.rounding is not None:
            data["rounding"] = self.rounding.to_dict()
        return data


@dataclass(frozen=True)
class PricingConfig:
    """
    Canonical pricing configuration.

    Attributes:
        currency: Target currency code for all conversions.
        formula: Condition name -> ConditionEntry. Always has "Ungraded".
        rounding_default: Rounding used when neither the selected condition
            nor "Ungraded" defines one.
        session_id: Import session counter.
        extras: Other persisted keys, carried through untouched.
    """

    currency: str = DEFAULT_CURRENCY
    formula: Dict[str, ConditionEntry] = field(
        default_factory=lambda: {FALLBACK_CONDITION: ConditionEntry()}
    )
    rounding_default: Optional[RoundingPolicy] = None
    session_id: int = 0
    extras: Dict[str, Any] = field(default_factory=dict)

    @property
    def conditions(self) -> list:
        """Condition names in table order."""
        return list(self.formula.keys())

    def get_entry(self, condition: Optional[str]) -> Optional[ConditionEntry]:
        if not condition:
            return None
        return self.formula.get(condition)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the canonical persisted shape."""
        formula: Dict[str, Any] = {
            name: entry.to_dict() for name, entry in self.formula.items()
        }
        if self.rounding_default is not None:
            formula[ROUNDING_DEFAULT_KEY] = self.rounding_default.to_dict()

        data: Dict[str, Any] = dict(self.extras)
        data["currency"] = self.currency
        data["formula"] = formula
        data["sessionID"] = self.session_id
        return data


def replace_config(config: PricingConfig, **changes: Any) -> PricingConfig:
    """
    Return a copy of ``config`` with the given fields replaced.

    Raises:
        ValueError: If the change would drop the "Ungraded" entry.
    """
    formula = changes.get("formula")
    if formula is not None:
        if FALLBACK_CONDITION not in formula:
            raise ValueError(f'Formula table must keep a "{FALLBACK_CONDITION}" entry')
        changes["formula"] = dict(formula)
    return replace(config, **changes)


def with_currency(config: PricingConfig, currency: str) -> PricingConfig:
    code = (currency or "").strip().upper()
    if not code:
        raise ValueError("Currency code cannot be empty")
    return replace_config(config, currency=code)


def with_condition(
    config: PricingConfig,
    condition: str,
    entry: ConditionEntry,
) -> PricingConfig:
    """Add or replace one condition entry."""
    name = (condition or "").strip()
    if not name or name == ROUNDING_DEFAULT_KEY:
        raise ValueError(f"Invalid condition name: {condition!r}")
    formula = dict(config.formula)
    formula[name] = entry
    return replace_config(config, formula=formula)


def without_condition(config: PricingConfig, condition: str) -> PricingConfig:
    """Remove one condition entry. "Ungraded" cannot be removed."""
    if condition == FALLBACK_CONDITION:
        raise ValueError(f'The "{FALLBACK_CONDITION}" condition cannot be removed')
    if condition not in config.formula:
        raise KeyError(condition)
    formula = {name: entry for name, entry in config.formula.items() if name != condition}
    return replace_config(config, formula=formula)
