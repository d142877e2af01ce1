"""
Shared pytest fixtures.
"""

import logging

import pytest

from silvercharter.pricing.models import ConditionEntry, PricingConfig, RoundingPolicy


@pytest.fixture(autouse=True)
def restore_root_logging():
    """Keep setup_logging() calls from leaking handlers between tests."""
    root_logger = logging.getLogger()
    handlers = list(root_logger.handlers)
    level = root_logger.level
    yield
    for handler in root_logger.handlers:
        if handler not in handlers:
            handler.close()
    root_logger.handlers[:] = handlers
    root_logger.setLevel(level)


@pytest.fixture
def usd_config():
    """Pricing config in USD with round-up Ungraded and round-down Damaged."""
    return PricingConfig(
        currency="USD",
        formula={
            "Ungraded": ConditionEntry("*1", RoundingPolicy("up", (0.99,))),
            "Damaged": ConditionEntry("*0.8", RoundingPolicy("down", (0.99,))),
        },
    )
