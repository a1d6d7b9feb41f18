"""
Core backtesting engine.

Chains strategy -> equity curve -> metrics for one strategy on one bar series.
"""

import logging
import time
from typing import Any, Dict, List, Optional, Union

from config import get_backtest_settings
from models.backtest import BacktestConfig, BacktestResult, StrategyType
from services.logging_config import log_method
from .data_loader import Bar
from .metrics import PerformanceMetrics
from .portfolio import generate_equity_curve
from .strategies import create_strategy

logger = logging.getLogger(__name__)


class BacktestEngine:
    """
    Runs the full backtest pipeline.

    Flow:
    1. Run the strategy over the bars -> trades and signals
    2. Replay the trades through a SimulatedPortfolio -> equity curve
    3. Derive performance metrics from trades + equity curve

    The engine holds no state between runs; every call to run() builds its
    own strategy tracker and portfolio.
    """

    def __init__(
        self,
        strategy: Union[StrategyType, str],
        params: Optional[Dict[str, Any]] = None,
        initial_capital: Optional[float] = None,
        commission_rate: Optional[float] = None,
        slippage_rate: Optional[float] = None,
    ):
        """
        Initialize the backtest engine.

        Args:
            strategy: Strategy id
            params: Overrides for the strategy's default parameters
            initial_capital: Starting capital (settings default when None)
            commission_rate: Commission fraction (settings default when None)
            slippage_rate: Slippage fraction (settings default when None)
        """
        settings = get_backtest_settings()

        # Resolve and validate params up front so bad input fails before any work
        self.strategy = create_strategy(strategy, params)
        self.params = dict(params or {})
        self.initial_capital = settings.initial_capital if initial_capital is None else initial_capital
        self.commission_rate = settings.commission_rate if commission_rate is None else commission_rate
        self.slippage_rate = settings.slippage_rate if slippage_rate is None else slippage_rate

    @log_method(logger=logger)
    def run(self, bars: List[Bar]) -> BacktestResult:
        """
        Run the backtest.

        Args:
            bars: Bars sorted by timestamp; an empty list yields an empty result

        Returns:
            BacktestResult with trades, signals, equity curve and metrics
        """
        start_time = time.perf_counter()

        output = self.strategy.run(bars)

        config = BacktestConfig(
            strategy=self.strategy.strategy_type,
            params=self.strategy.params,
            initial_capital=self.initial_capital,
            commission_rate=self.commission_rate,
            slippage_rate=self.slippage_rate,
            start_timestamp=bars[0].timestamp if bars else None,
            end_timestamp=bars[-1].timestamp if bars else None,
        )

        equity_curve = generate_equity_curve(bars, output.trades, config)
        metrics = PerformanceMetrics.calculate(output.trades, equity_curve, config)

        run_time_ms = (time.perf_counter() - start_time) * 1000

        logger.info(f"{config.strategy.value}: {len(bars)} bars, {metrics.total_trades} trades, "
                    f"{metrics.total_return:.2f}% return, sharpe {metrics.sharpe_ratio:.2f}, "
                    f"{run_time_ms:.1f}ms")

        return BacktestResult(
            config=config,
            trades=output.trades,
            signals=output.signals,
            equity_curve=equity_curve,
            metrics=metrics,
            run_time_ms=run_time_ms,
            bars_processed=len(bars),
        )


def run_backtest(
    bars: List[Bar],
    strategy: Union[StrategyType, str],
    params: Optional[Dict[str, Any]] = None,
    initial_capital: Optional[float] = None,
    commission_rate: Optional[float] = None,
    slippage_rate: Optional[float] = None,
) -> BacktestResult:
    """
    Convenience function to run one backtest.

    Raises:
        UnknownStrategyError: strategy is not registered
        InvalidParameterError: a parameter is not usable
    """
    engine = BacktestEngine(
        strategy=strategy,
        params=params,
        initial_capital=initial_capital,
        commission_rate=commission_rate,
        slippage_rate=slippage_rate,
    )
    return engine.run(bars)
