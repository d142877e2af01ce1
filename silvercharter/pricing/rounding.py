"""
Rounding policy engine.

Rounds a price to a "pretty" ending such as .99 or .50. A policy has a mode
("up", "down", "nearest" or "none") and one or more targets. For each target
the engine builds anchors in the current integer band (107.30 with target .99
gives 107.99 and 106.99), picks one candidate per target according to the
mode, then picks a winner across targets.

All arithmetic is done in Decimal so a price that already sits on a target
(107.99 for .99) is returned unchanged.
"""

import logging
import math
import re
from decimal import ROUND_FLOOR, ROUND_HALF_UP, Decimal, localcontext
from typing import Any, Iterable, List, Mapping, Optional, Union

from silvercharter.exceptions import ROUNDING_FALLBACK
from silvercharter.pricing.models import RoundingPolicy

logger = logging.getLogger(__name__)

DEFAULT_TARGETS = (Decimal("0.99"),)
CENT = Decimal("0.01")
ONE = Decimal("1")

_TARGET_PATTERN = re.compile(r"^-?(\d+(\.\d*)?|\.\d+)$")

PolicyLike = Union[RoundingPolicy, Mapping[str, Any], None]


def round_to_2dp(value: Union[float, Decimal]) -> float:
    """
    Round a value to 2 decimal places, half up.

    Non-finite values are returned unchanged.
    """
    if isinstance(value, float) and not math.isfinite(value):
        return value
    amount = value if isinstance(value, Decimal) else Decimal(str(value))
    if not amount.is_finite():
        return float(amount)
    with localcontext() as ctx:
        # quantizing needs room for every integer digit plus the cents
        ctx.prec = max(ctx.prec, amount.adjusted() + 4)
        return float(amount.quantize(CENT, rounding=ROUND_HALF_UP))


def parse_rounding_target(raw: Any) -> Optional[Decimal]:
    """
    Parse one rounding target into a fraction within a unit.

    "99" and 99 are read as cents (0.99); values up to 1 are used as given.
    Anything non-numeric, outside [0, 1] after scaling, or finer than a cent
    is rejected.

    Returns:
        Decimal fraction, or None if the target is unusable.
    """
    if raw is None or isinstance(raw, bool):
        return None
    text = str(raw).strip()
    if not _TARGET_PATTERN.match(text):
        return None

    fraction = Decimal(text)
    if fraction > ONE:
        fraction = fraction / 100
    if fraction < 0 or fraction > ONE:
        return None
    if fraction != fraction.quantize(CENT):
        return None
    return fraction


def parse_rounding_targets(raw_targets: Iterable[Any]) -> List[Decimal]:
    """Parse a target list, substituting [0.99] when nothing usable remains."""
    targets = [t for t in (parse_rounding_target(raw) for raw in raw_targets) if t is not None]
    if not targets:
        logger.warning(
            f"No usable rounding targets in {list(raw_targets)!r}, using 0.99",
            extra={"event": ROUNDING_FALLBACK},
        )
        return list(DEFAULT_TARGETS)
    return targets


def _candidate(value: Decimal, target: Decimal, mode: str) -> Decimal:
    upper = value.to_integral_value(rounding=ROUND_FLOOR) + target
    below = upper if value >= upper else upper - 1
    above = upper if value <= upper else upper + 1

    if mode == "up":
        return above
    if mode == "down":
        return below
    # nearest: equal distance prefers the anchor above
    return above if (above - value) <= (value - below) else below


def _select_up(value: Decimal, candidates: List[Decimal]) -> Decimal:
    at_or_above = [c for c in candidates if c >= value]
    if at_or_above:
        return min(at_or_above)
    return min(candidates, key=lambda c: abs(c - value))


def _select_down(value: Decimal, candidates: List[Decimal], targets: List[Decimal]) -> Decimal:
    at_or_below = [c for c in candidates if c <= value]
    if at_or_below:
        chosen = max(at_or_below)
    else:
        chosen = min(candidates, key=lambda c: abs(c - value))
    return max(chosen, min(min(targets), Decimal(0)))


def _select_nearest(value: Decimal, candidates: List[Decimal]) -> Decimal:
    best = candidates[0]
    for candidate in candidates[1:]:
        distance = abs(candidate - value)
        best_distance = abs(best - value)
        if distance < best_distance:
            best = candidate
        elif distance == best_distance and candidate >= value:
            best = candidate
    return best


def apply_rounding(value: Union[float, Decimal], policy: PolicyLike) -> float:
    """
    Apply a rounding policy to a price.

    Args:
        value: Price to round.
        policy: RoundingPolicy, raw {"mode", "targets"} mapping, or None.

    Returns:
        float: Rounded price with exactly 2 decimal places.
    """
    rounding = RoundingPolicy.from_dict(policy)
    if rounding is None or rounding.mode == "none":
        return round_to_2dp(value)

    amount = value if isinstance(value, Decimal) else Decimal(str(value))
    if not amount.is_finite():
        return float(amount)

    mode = rounding.mode if rounding.mode in ("up", "down") else "nearest"
    targets = parse_rounding_targets(rounding.targets)
    candidates = [_candidate(amount, target, mode) for target in targets]

    if mode == "up":
        chosen = _select_up(amount, candidates)
    elif mode == "down":
        chosen = _select_down(amount, candidates, targets)
    else:
        chosen = _select_nearest(amount, candidates)

    return round_to_2dp(chosen)


def round_up_to_99(value: Union[float, Decimal]) -> float:
    """
    Round up to the next .99 ending.

    107.58 -> 107.99, 107.00 -> 107.99, 107.99 -> 107.99
    """
    return apply_rounding(value, RoundingPolicy(mode="up", targets=(0.99,)))
