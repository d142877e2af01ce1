"""
SilverCharter card pricing toolkit.

Converts scraped USD card prices into retail prices using per-condition
formulas and rounding policies.
"""

__version__ = "0.4.0"
