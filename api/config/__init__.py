"""
Configuration module for the QuantFlow backtesting API.

Centralizes all configurable values with environment variable overrides.
"""

from .backtest_config import (
    BacktestSettings,
    OPTIMIZABLE_METRICS,
    get_backtest_settings,
    reset_backtest_settings,
)

__all__ = [
    'BacktestSettings',
    'OPTIMIZABLE_METRICS',
    'get_backtest_settings',
    'reset_backtest_settings',
]
