"""
Display helpers for formulas and rounding policies.
"""

import re
from typing import Any, Mapping, Optional, Union

from silvercharter.pricing.models import RoundingPolicy

# Non-multiplier markers used by import sessions
PASSTHROUGH_MARKERS = ("manual", "skip")

_MULTIPLIER_PATTERN = re.compile(r"^\*?\s*([0-9]*\.?[0-9]+)$")


def format_formula_for_display(formula: Optional[str]) -> str:
    """
    Show a multiplier formula as a percentage.

    "*1.2" and "1.2" become "120%". Markers such as "manual" or "skip" and
    formulas that are not a plain multiplier are returned as written.
    """
    if not formula:
        return ""
    text = str(formula).strip()
    if text.lower() in PASSTHROUGH_MARKERS:
        return text

    match = _MULTIPLIER_PATTERN.match(text)
    if not match:
        return text

    percent = float(match.group(1)) * 100
    rounded = round(percent, 2)
    if rounded == int(rounded):
        return f"{int(rounded)}%"
    return f"{rounded:g}%"


def describe_rounding(policy: Union[RoundingPolicy, Mapping[str, Any], None]) -> str:
    """Describe a rounding policy for preview output."""
    rounding = RoundingPolicy.from_dict(policy)
    if rounding is None or rounding.mode == "none":
        return "none"
    targets = ",".join(str(t) for t in rounding.targets) if rounding.targets else "n/a"
    return f"mode={rounding.mode}, targets={targets}"
