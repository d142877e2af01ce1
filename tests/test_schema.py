"""
Tests for the settings schema normalizer and the pricing config models.
"""

import copy

import pytest

from silvercharter.pricing.models import (
    ConditionEntry,
    PricingConfig,
    RoundingPolicy,
    replace_config,
    with_condition,
    with_currency,
    without_condition,
)
from silvercharter.pricing.schema import (
    SHAPE_CANONICAL,
    SHAPE_FLAT_CONDITIONS,
    SHAPE_LEGACY_GLOBAL,
    detect_shape,
    normalize,
)

UP_99 = {"mode": "up", "targets": [0.99]}

LEGACY_GLOBAL = {"pricing": {"formula": "*1.2", "roundTo99": True}}

FLAT_CONDITIONS = {
    "currency": "EUR",
    "formula": {
        "Ungraded": "*1.2",
        "Damaged": "*0.9",
        "Grade 10": {"multiplier": "*1.5", "rounding": {"mode": "down", "targets": [0.5]}},
        "roundTo99": True,
    },
}

CANONICAL = {
    "currency": "CAD",
    "formula": {
        "Ungraded": {"multiplier": "*1.1", "rounding": {"mode": "nearest", "targets": ["99", "50"]}},
        "Damaged": {"multiplier": "*0.8"},
        "roundingDefault": {"mode": "down", "targets": [0.99]},
    },
    "sessionID": 4,
    "theme": "dark",
}


class TestDetectShape:
    """Tests for schema shape detection."""

    def test_legacy_global(self):
        """Test a global pricing block is the oldest shape."""
        assert detect_shape(LEGACY_GLOBAL) == SHAPE_LEGACY_GLOBAL
        assert detect_shape({"roundTo99": True, "formula": {}}) == SHAPE_LEGACY_GLOBAL

    def test_flat_conditions(self):
        """Test string entries or an embedded flag mean the flat shape."""
        assert detect_shape(FLAT_CONDITIONS) == SHAPE_FLAT_CONDITIONS
        assert detect_shape({"formula": {"Ungraded": {"rounding": UP_99}}}) == SHAPE_FLAT_CONDITIONS
        assert detect_shape({"formula": "*1.2"}) == SHAPE_FLAT_CONDITIONS

    def test_canonical(self):
        """Test fully structured tables are canonical."""
        assert detect_shape(CANONICAL) == SHAPE_CANONICAL
        assert detect_shape({}) == SHAPE_CANONICAL


class TestLegacyUpgrade:
    """Tests for upgrading older settings shapes."""

    def test_legacy_global_with_round_flag(self):
        """Test the global formula and flag become a structured Ungraded entry."""
        config = normalize(LEGACY_GLOBAL)

        assert config.to_dict()["formula"]["Ungraded"] == {"multiplier": "*1.2", "rounding": UP_99}
        assert config.currency == "GBP"
        assert "pricing" not in config.to_dict()

    def test_legacy_global_without_flag(self):
        """Test a false flag adds no rounding."""
        config = normalize({"pricing": {"formula": "*1.2", "roundTo99": False}})

        assert config.formula["Ungraded"] == ConditionEntry(multiplier="*1.2")

    def test_legacy_formula_does_not_replace_existing_table(self):
        """Test pricing.formula only seeds an empty table."""
        config = normalize({
            "pricing": {"formula": "*2"},
            "formula": {"Ungraded": {"multiplier": "*1.1"}},
        })

        assert config.formula["Ungraded"].multiplier == "*1.1"

    def test_top_level_round_flag(self):
        """Test a top-level roundTo99 flag is applied to the table."""
        config = normalize({"roundTo99": True, "formula": {"Ungraded": "*1.1"}})

        assert config.formula["Ungraded"].rounding == RoundingPolicy("up", (0.99,))
        assert "roundTo99" not in config.to_dict()

    def test_flat_conditions(self):
        """Test string entries are structured and the flag fills missing rounding."""
        config = normalize(FLAT_CONDITIONS)

        assert config.currency == "EUR"
        assert config.formula["Ungraded"] == ConditionEntry("*1.2", RoundingPolicy("up", (0.99,)))
        assert config.formula["Damaged"] == ConditionEntry("*0.9", RoundingPolicy("up", (0.99,)))
        # explicit rounding is never overridden by the flag
        assert config.formula["Grade 10"].rounding == RoundingPolicy("down", (0.5,))
        assert "roundTo99" not in config.to_dict()["formula"]

    def test_round_flag_keeps_explicit_empty_rounding(self):
        """Test an entry with rounding: {} is not given the .99 policy."""
        config = normalize({
            "roundTo99": True,
            "formula": {"Ungraded": {"multiplier": "*1.1", "rounding": {}}, "Damaged": "*0.8"},
        })

        assert config.formula["Ungraded"].rounding == RoundingPolicy("nearest", ())
        assert config.formula["Damaged"].rounding == RoundingPolicy("up", (0.99,))

    def test_entry_without_multiplier_defaults(self):
        """Test entries missing a multiplier get "*1"."""
        config = normalize({"formula": {"Ungraded": {}, "Damaged": {"rounding": UP_99}}})

        assert config.formula["Ungraded"].multiplier == "*1"
        assert config.formula["Damaged"] == ConditionEntry("*1", RoundingPolicy("up", (0.99,)))

    def test_input_is_not_mutated(self):
        """Test normalize leaves its argument untouched."""
        raw = copy.deepcopy(FLAT_CONDITIONS)
        normalize(raw)
        assert raw == FLAT_CONDITIONS


class TestCanonicalParsing:
    """Tests for defaults applied to canonical settings."""

    def test_canonical_values(self):
        """Test every canonical field is read."""
        config = normalize(CANONICAL)

        assert config.currency == "CAD"
        assert config.session_id == 4
        assert config.formula["Ungraded"].rounding == RoundingPolicy("nearest", ("99", "50"))
        assert config.formula["Damaged"].rounding is None
        assert config.rounding_default == RoundingPolicy("down", (0.99,))
        assert config.extras == {"theme": "dark"}
        assert config.conditions == ["Ungraded", "Damaged"]

    @pytest.mark.parametrize("raw", [{}, {"currency": ""}, {"currency": None}])
    def test_currency_defaults_to_gbp(self, raw):
        """Test a missing or empty currency becomes GBP."""
        assert normalize(raw).currency == "GBP"

    def test_ungraded_is_synthesized(self):
        """Test a table without Ungraded gains a "*1" entry."""
        config = normalize({"formula": {"Damaged": {"multiplier": "*0.8"}}})

        assert config.formula["Ungraded"] == ConditionEntry(multiplier="*1")
        assert config.formula["Damaged"].multiplier == "*0.8"

    @pytest.mark.parametrize("session_id, expected", [(7, 7), ("3", 0), (True, 0), (None, 0)])
    def test_session_id(self, session_id, expected):
        """Test only integer session ids are kept."""
        assert normalize({"sessionID": session_id}).session_id == expected

    def test_retired_keys_are_dropped(self):
        """Test retired keys do not survive normalization."""
        config = normalize({"shopify": {"shopName": "x"}, "pricing": {}, "theme": "dark"})

        data = config.to_dict()
        assert "shopify" not in data
        assert "pricing" not in data
        assert data["theme"] == "dark"

    @pytest.mark.parametrize("raw", [None, "not settings", ["GBP"], 42])
    def test_non_mapping_input(self, raw):
        """Test non-mapping input yields the default configuration."""
        config = normalize(raw)

        assert config.currency == "GBP"
        assert config.conditions == ["Ungraded"]


class TestNormalizeIdempotence:
    """Tests for the normalizer fixed point."""

    @pytest.mark.parametrize(
        "raw",
        [
            LEGACY_GLOBAL,
            FLAT_CONDITIONS,
            CANONICAL,
            {},
            {"roundTo99": True},
            {"formula": {"Ungraded": "*1.3", "roundingDefault": UP_99}},
        ],
    )
    def test_normalize_twice(self, raw):
        """Test normalizing a normalized config changes nothing."""
        once = normalize(raw)

        assert normalize(once) == once
        assert normalize(once.to_dict()) == once
        assert normalize(once.to_dict()).to_dict() == once.to_dict()


class TestConfigModels:
    """Tests for the immutable config helpers."""

    @pytest.fixture
    def config(self):
        return normalize(CANONICAL)

    def test_to_dict_shape(self, config):
        """Test the persisted shape."""
        data = config.to_dict()

        assert data["currency"] == "CAD"
        assert data["sessionID"] == 4
        assert data["formula"]["Damaged"] == {"multiplier": "*0.8"}
        assert data["formula"]["roundingDefault"] == {"mode": "down", "targets": [0.99]}

    def test_replace_config_returns_new_value(self, config):
        """Test replace_config does not modify the original."""
        updated = replace_config(config, session_id=9)

        assert updated.session_id == 9
        assert config.session_id == 4

    def test_replace_config_requires_ungraded(self, config):
        """Test the Ungraded entry cannot be dropped."""
        with pytest.raises(ValueError, match="Ungraded"):
            replace_config(config, formula={"Damaged": ConditionEntry()})

    def test_with_currency(self, config):
        """Test currency codes are cleaned up."""
        assert with_currency(config, " eur ").currency == "EUR"
        with pytest.raises(ValueError):
            with_currency(config, "  ")

    def test_with_condition(self, config):
        """Test adding a condition leaves the original untouched."""
        updated = with_condition(config, " Grade 9 ", ConditionEntry("*1.4"))

        assert updated.formula["Grade 9"].multiplier == "*1.4"
        assert "Grade 9" not in config.formula

    @pytest.mark.parametrize("name", ["", "   ", "roundingDefault"])
    def test_with_condition_rejects_bad_names(self, config, name):
        """Test empty and reserved names are rejected."""
        with pytest.raises(ValueError):
            with_condition(config, name, ConditionEntry())

    def test_without_condition(self, config):
        """Test removing conditions."""
        updated = without_condition(config, "Damaged")

        assert updated.conditions == ["Ungraded"]
        with pytest.raises(ValueError):
            without_condition(config, "Ungraded")
        with pytest.raises(KeyError):
            without_condition(config, "Grade 3")

    def test_rounding_policy_from_dict(self):
        """Test lenient parsing of persisted rounding policies."""
        assert RoundingPolicy.from_dict({"mode": "UP", "targets": "99"}) == RoundingPolicy("up", ("99",))
        assert RoundingPolicy.from_dict({"targets": None}) == RoundingPolicy("nearest", ())
        assert RoundingPolicy.from_dict("up") is None

    def test_default_config(self):
        """Test the bare default value."""
        config = PricingConfig()

        assert config.currency == "GBP"
        assert config.get_entry("Ungraded") == ConditionEntry()
        assert config.get_entry(None) is None
