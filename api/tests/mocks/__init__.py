"""
QuantFlow Test Mocks Package
============================
Deterministic bar datasets used across the test suite, and a scripted
indicator service for driving strategy rules directly.

Usage:
    from tests.mocks import generate_uptrend_data, bars_from_closes
"""

from tests.mocks.fixtures import (
    PriceDataset,
    generate_uptrend_data,
    generate_downtrend_data,
    generate_sideways_data,
    generate_volatile_data,
    bars_from_closes,
    generate_flat_bars,
    generate_linear_bars,
)

from tests.mocks.indicator_mock import MockIndicatorService, scripted

__all__ = [
    "PriceDataset",
    "generate_uptrend_data",
    "generate_downtrend_data",
    "generate_sideways_data",
    "generate_volatile_data",
    "bars_from_closes",
    "generate_flat_bars",
    "generate_linear_bars",
    "MockIndicatorService",
    "scripted",
]
