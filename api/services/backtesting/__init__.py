"""
Backtesting module for the QuantFlow backtesting API.

Runs rule-based strategies over OHLCV bars and reports risk/return statistics.

Components:
- strategies: The nine rule-based strategies and their registry
- BacktestEngine: Strategy -> equity curve -> metrics pipeline
- SimulatedPortfolio: Replays trades into the equity curve
- PerformanceMetrics: Sharpe, drawdown, win rate, profit factor, etc.
- optimizer: Multi-strategy comparison and parameter sweeps
- export: CSV / JSON / text serialization of results
- data_loader: Bar record, sample dataset and timeframe aggregation
"""

from .data_loader import Bar, generate_sample_data, aggregate_timeframe, infer_timeframe
from .engine import BacktestEngine, run_backtest
from .portfolio import SimulatedPortfolio, generate_equity_curve
from .metrics import PerformanceMetrics
from .optimizer import Candidate, compare_strategies, optimize_strategy, parameter_grid
from .strategies import STRATEGY_REGISTRY, run_strategy, list_strategies, get_strategy_info

__all__ = [
    "Bar",
    "generate_sample_data",
    "aggregate_timeframe",
    "infer_timeframe",
    "BacktestEngine",
    "run_backtest",
    "SimulatedPortfolio",
    "generate_equity_curve",
    "PerformanceMetrics",
    "Candidate",
    "compare_strategies",
    "optimize_strategy",
    "parameter_grid",
    "STRATEGY_REGISTRY",
    "run_strategy",
    "list_strategies",
    "get_strategy_info",
]
