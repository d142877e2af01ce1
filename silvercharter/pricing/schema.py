"""
Configuration schema normalizer.

Settings files written by older releases come in three shapes:

- "legacy_global":    {"pricing": {"formula": "*1.2", "roundTo99": true}}
- "flat_conditions":  {"formula": {"Ungraded": "*1.2", "roundTo99": true}}
- "canonical":        {"formula": {"Ungraded": {"multiplier": "*1.2",
                                                "rounding": {...}}}}

``detect_shape`` tags a raw mapping with its shape and each older shape has
one upgrade step that produces the next one. ``normalize`` runs the steps in
order and parses the canonical result into a ``PricingConfig``. Normalizing
an already-canonical configuration gives back an equal value.
"""

import copy
import logging
from typing import Any, Callable, Dict, Mapping, Union

from silvercharter.pricing.models import (
    DEFAULT_CURRENCY,
    DEFAULT_MULTIPLIER,
    FALLBACK_CONDITION,
    ROUNDING_DEFAULT_KEY,
    ConditionEntry,
    PricingConfig,
    RoundingPolicy,
)

logger = logging.getLogger(__name__)

SHAPE_LEGACY_GLOBAL = "legacy_global"
SHAPE_FLAT_CONDITIONS = "flat_conditions"
SHAPE_CANONICAL = "canonical"

LEGACY_ROUND_FLAG = "roundTo99"
LEGACY_ROUNDING = {"mode": "up", "targets": [0.99]}

# Keys dropped on load; they no longer belong in the pricing settings
RETIRED_KEYS = ("pricing", "shopify")
CANONICAL_KEYS = ("currency", "formula", "sessionID")


def _formula_table(raw: Mapping[str, Any]) -> Dict[str, Any]:
    table = raw.get("formula")
    return dict(table) if isinstance(table, Mapping) else {}


def _is_canonical_entry(name: str, value: Any) -> bool:
    if name == ROUNDING_DEFAULT_KEY:
        return isinstance(value, Mapping)
    return (
        isinstance(value, Mapping)
        and isinstance(value.get("multiplier"), str)
        and bool(value.get("multiplier"))
    )


def detect_shape(raw: Mapping[str, Any]) -> str:
    """
    Tag a raw settings mapping with its schema shape.

    Returns:
        str: One of "legacy_global", "flat_conditions" or "canonical".
    """
    if isinstance(raw.get("pricing"), Mapping) or LEGACY_ROUND_FLAG in raw:
        return SHAPE_LEGACY_GLOBAL

    table = raw.get("formula")
    if table is not None and not isinstance(table, Mapping):
        return SHAPE_FLAT_CONDITIONS
    if isinstance(table, Mapping):
        if LEGACY_ROUND_FLAG in table:
            return SHAPE_FLAT_CONDITIONS
        if not all(_is_canonical_entry(name, value) for name, value in table.items()):
            return SHAPE_FLAT_CONDITIONS
    return SHAPE_CANONICAL


def upgrade_legacy_global(raw: Dict[str, Any]) -> Dict[str, Any]:
    """
    Fold the global ``pricing`` block into the per-condition table.

    The global formula seeds "Ungraded" only when no table exists yet; a
    global ``roundTo99`` flag moves into the table so the next step applies it.
    """
    upgraded = {key: value for key, value in raw.items() if key not in ("pricing", LEGACY_ROUND_FLAG)}
    pricing = raw.get("pricing") if isinstance(raw.get("pricing"), Mapping) else {}
    table = _formula_table(raw)

    global_formula = pricing.get("formula")
    if not table and isinstance(global_formula, str):
        table[FALLBACK_CONDITION] = global_formula

    if pricing.get(LEGACY_ROUND_FLAG) is True or raw.get(LEGACY_ROUND_FLAG) is True:
        table[LEGACY_ROUND_FLAG] = True

    upgraded["formula"] = table
    return upgraded


def _upgrade_entry(value: Any) -> Dict[str, Any]:
    if isinstance(value, Mapping):
        entry = dict(value)
        if not isinstance(entry.get("multiplier"), str) or not entry.get("multiplier"):
            entry["multiplier"] = DEFAULT_MULTIPLIER
        return entry
    if isinstance(value, str) and value:
        return {"multiplier": value}
    return {"multiplier": DEFAULT_MULTIPLIER}


def upgrade_flat_conditions(raw: Dict[str, Any]) -> Dict[str, Any]:
    """
    Turn flat per-condition strings into structured entries.

    A ``roundTo99: true`` flag inside the table becomes an explicit
    round-up-to-.99 policy on every entry that has no rounding of its own.
    """
    upgraded = dict(raw)
    table = _formula_table(raw)
    round_flag = table.pop(LEGACY_ROUND_FLAG, None) is True

    entries: Dict[str, Any] = {}
    for name, value in table.items():
        if name == ROUNDING_DEFAULT_KEY:
            if isinstance(value, Mapping):
                entries[name] = dict(value)
            continue
        entries[name] = _upgrade_entry(value)

    if round_flag:
        for name, entry in entries.items():
            if name != ROUNDING_DEFAULT_KEY and entry.get("rounding") is None:
                entry["rounding"] = copy.deepcopy(LEGACY_ROUNDING)

    upgraded["formula"] = entries
    return upgraded


UPGRADES: Dict[str, Callable[[Dict[str, Any]], Dict[str, Any]]] = {
    SHAPE_LEGACY_GLOBAL: upgrade_legacy_global,
    SHAPE_FLAT_CONDITIONS: upgrade_flat_conditions,
}


def parse_canonical(raw: Mapping[str, Any]) -> PricingConfig:
    """Parse a canonical-shape mapping into a PricingConfig."""
    table = _formula_table(raw)

    rounding_default = RoundingPolicy.from_dict(table.pop(ROUNDING_DEFAULT_KEY, None))
    formula: Dict[str, ConditionEntry] = {}
    for name, value in table.items():
        formula[str(name)] = ConditionEntry(
            multiplier=value["multiplier"],
            rounding=RoundingPolicy.from_dict(value.get("rounding")),
        )
    if FALLBACK_CONDITION not in formula:
        formula[FALLBACK_CONDITION] = ConditionEntry(multiplier=DEFAULT_MULTIPLIER)

    currency = raw.get("currency")
    session_id = raw.get("sessionID")
    if not isinstance(session_id, int) or isinstance(session_id, bool):
        session_id = 0

    extras = {
        key: copy.deepcopy(value)
        for key, value in raw.items()
        if key not in CANONICAL_KEYS and key not in RETIRED_KEYS
    }

    return PricingConfig(
        currency=str(currency) if currency else DEFAULT_CURRENCY,
        formula=formula,
        rounding_default=rounding_default,
        session_id=session_id,
        extras=extras,
    )


def normalize(raw: Union[Mapping[str, Any], PricingConfig, None]) -> PricingConfig:
    """
    Upgrade a raw settings object into a canonical PricingConfig.

    Args:
        raw: Settings as read from disk (any historical shape), or an
            existing PricingConfig.

    Returns:
        PricingConfig: Canonical configuration.
    """
    if isinstance(raw, PricingConfig):
        raw = raw.to_dict()
    if not isinstance(raw, Mapping):
        logger.warning(f"Settings object is not a mapping ({type(raw).__name__}), using defaults")
        raw = {}

    data: Dict[str, Any] = copy.deepcopy(dict(raw))
    shape = detect_shape(data)
    while shape != SHAPE_CANONICAL:
        logger.debug(f"Upgrading pricing settings from {shape} shape")
        data = UPGRADES[shape](data)
        shape = detect_shape(data)

    return parse_canonical(data)
