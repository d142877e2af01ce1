"""
Tests for formula and rounding display helpers.
"""

import pytest

from silvercharter.pricing.display import describe_rounding, format_formula_for_display
from silvercharter.pricing.models import RoundingPolicy


class TestFormatFormulaForDisplay:
    """Tests for format_formula_for_display."""

    @pytest.mark.parametrize(
        "formula, expected",
        [
            ("*1.2", "120%"),
            ("1.15", "115%"),
            ("*0.875", "87.5%"),
            ("* 2", "200%"),
            ("+3", "+3"),
            ("*1.2+3", "*1.2+3"),
            ("manual", "manual"),
            ("Skip", "Skip"),
            ("", ""),
            (None, ""),
        ],
    )
    def test_format_formula_for_display(self, formula, expected):
        assert format_formula_for_display(formula) == expected


class TestDescribeRounding:
    """Tests for describe_rounding."""

    def test_no_rounding(self):
        assert describe_rounding(None) == "none"
        assert describe_rounding({"mode": "none", "targets": [0.99]}) == "none"

    def test_policy(self):
        assert describe_rounding(RoundingPolicy("up", ("99", "50"))) == "mode=up, targets=99,50"
        assert describe_rounding({"mode": "down", "targets": [0.99]}) == "mode=down, targets=0.99"

    def test_empty_targets(self):
        assert describe_rounding({"mode": "nearest", "targets": []}) == "mode=nearest, targets=n/a"
