"""
Backtest Configuration
Centralized defaults for backtest runs and parameter sweeps.

All values can be overridden via environment variables with the BACKTEST_ prefix.
Example: BACKTEST_COMMISSION_RATE=0.001 overrides commission_rate
"""

import os
import logging
from dataclasses import dataclass, field
from typing import Optional

from exceptions import ConfigurationError

logger = logging.getLogger(__name__)

# Fields of PerformanceMetricsResult that may be used as an optimization target.
# Kept here so settings validation does not import the pydantic models.
OPTIMIZABLE_METRICS = (
    "total_return", "annualized_return", "cagr", "sharpe_ratio", "sortino_ratio",
    "max_drawdown", "max_drawdown_duration", "calmar_ratio", "volatility",
    "win_rate", "profit_factor", "expectancy", "total_trades", "winning_trades",
    "losing_trades", "avg_trade_return", "avg_winning_trade", "avg_losing_trade",
    "largest_win", "largest_loss", "avg_trade_duration", "gross_profit",
    "gross_loss", "net_profit", "commission_paid",
)


def _get_env_float(key: str, default: float) -> float:
    """Get float from environment variable with fallback to default."""
    env_key = f"BACKTEST_{key.upper()}"
    value = os.getenv(env_key)
    if value is not None:
        try:
            result = float(value)
            logger.info(f"Config override: {key} = {result} (from {env_key})")
            return result
        except ValueError:
            logger.warning(f"Invalid float for {env_key}: {value}, using default {default}")
    return default


def _get_env_int(key: str, default: int) -> int:
    """Get integer from environment variable with fallback to default."""
    env_key = f"BACKTEST_{key.upper()}"
    value = os.getenv(env_key)
    if value is not None:
        try:
            result = int(value)
            logger.info(f"Config override: {key} = {result} (from {env_key})")
            return result
        except ValueError:
            logger.warning(f"Invalid int for {env_key}: {value}, using default {default}")
    return default


def _get_env_str(key: str, default: str) -> str:
    env_key = f"BACKTEST_{key.upper()}"
    value = os.getenv(env_key)
    if value:
        logger.info(f"Config override: {key} = {value} (from {env_key})")
        return value
    return default


@dataclass
class BacktestSettings:
    """
    Default account and sweep settings for backtests.

    Values are read once at construction; a running backtest receives its own
    frozen BacktestConfig and never consults these settings again.
    """

    # ===== Account =====
    # Starting capital for the equity curve
    initial_capital: float = field(default_factory=lambda: _get_env_float('initial_capital', 100000.0))

    # Commission as a fraction of notional, charged on entry and exit (0.0005 = 0.05%)
    commission_rate: float = field(default_factory=lambda: _get_env_float('commission_rate', 0.0005))

    # Slippage as a fraction of exit notional (0.001 = 0.1%)
    slippage_rate: float = field(default_factory=lambda: _get_env_float('slippage_rate', 0.001))

    # ===== Optimizer =====
    # Metric maximized by the optimizer when the caller does not choose one
    optimize_metric: str = field(default_factory=lambda: _get_env_str('optimize_metric', 'sharpe_ratio'))

    # Upper bound on parameter combinations in one sweep
    max_combinations: int = field(default_factory=lambda: _get_env_int('max_combinations', 5000))

    # ===== Built-in sample dataset =====
    sample_bars: int = field(default_factory=lambda: _get_env_int('sample_bars', 1000))
    sample_seed: int = field(default_factory=lambda: _get_env_int('sample_seed', 12345))

    def __post_init__(self):
        """Validate configuration values."""
        self._validate()

    def _validate(self):
        """Validate that all values are within reasonable ranges."""
        errors = []

        if self.initial_capital <= 0:
            errors.append(f"initial_capital must be positive, got {self.initial_capital}")

        if not 0 <= self.commission_rate < 0.1:
            errors.append(f"commission_rate should be between 0 and 0.1, got {self.commission_rate}")

        if not 0 <= self.slippage_rate < 0.1:
            errors.append(f"slippage_rate should be between 0 and 0.1, got {self.slippage_rate}")

        if self.optimize_metric not in OPTIMIZABLE_METRICS:
            errors.append(f"optimize_metric must be a metrics field, got {self.optimize_metric}")

        if self.max_combinations < 1:
            errors.append(f"max_combinations must be at least 1, got {self.max_combinations}")

        if self.sample_bars < 0:
            errors.append(f"sample_bars cannot be negative, got {self.sample_bars}")

        if errors:
            for error in errors:
                logger.error(f"Config validation error: {error}")
            raise ConfigurationError(errors)

    def to_dict(self) -> dict:
        """Convert config to dictionary."""
        return {
            'initial_capital': self.initial_capital,
            'commission_rate': self.commission_rate,
            'slippage_rate': self.slippage_rate,
            'optimize_metric': self.optimize_metric,
            'max_combinations': self.max_combinations,
            'sample_bars': self.sample_bars,
            'sample_seed': self.sample_seed,
        }


# Singleton instance
_settings_instance: Optional[BacktestSettings] = None


def get_backtest_settings() -> BacktestSettings:
    """Get the singleton BacktestSettings instance."""
    global _settings_instance
    if _settings_instance is None:
        _settings_instance = BacktestSettings()
        logger.info(f"Initialized BacktestSettings: {_settings_instance.to_dict()}")
    return _settings_instance


def reset_backtest_settings():
    """Reset settings instance (useful for testing)."""
    global _settings_instance
    _settings_instance = None
