"""
Performance metrics calculation for backtesting.

Calculates key metrics like win rate, Sharpe ratio, max drawdown, etc.
"""

import math
import sys
import logging
from typing import List

from models.backtest import BacktestConfig, EquityPoint, PerformanceMetricsResult, Trade, TradeStatus

logger = logging.getLogger(__name__)


class PerformanceMetrics:
    """
    Calculate performance metrics from backtest results.

    A pure function of (trades, equity curve, config). Risk ratios assume a
    zero risk-free rate and annualize bar-to-bar returns with 252 periods.
    """

    # Periods per year used to annualize bar-to-bar returns
    TRADING_DAYS_PER_YEAR = 252

    DAYS_PER_YEAR = 365.25

    @classmethod
    def calculate(
        cls,
        trades: List[Trade],
        equity_curve: List[EquityPoint],
        config: BacktestConfig,
    ) -> PerformanceMetricsResult:
        """
        Calculate all performance metrics.

        Args:
            trades: Trades from the strategy run
            equity_curve: Equity points from generate_equity_curve
            config: Run configuration

        Returns:
            PerformanceMetricsResult; the all-zero record when no trade is closed
        """
        closed = [t for t in trades if t.status == TradeStatus.CLOSED]
        if not closed:
            return PerformanceMetricsResult()

        initial_capital = config.initial_capital

        # Trade statistics
        winners = [t for t in closed if (t.pnl or 0) > 0]
        losers = [t for t in closed if (t.pnl or 0) <= 0]

        gross_profit = sum(t.pnl or 0 for t in winners)
        gross_loss = abs(sum(t.pnl or 0 for t in losers))
        net_profit = gross_profit - gross_loss

        # Entry + exit, approximated on initial capital rather than trade notional
        commission_paid = len(closed) * initial_capital * config.commission_rate * 2

        # Returns
        total_return = net_profit / initial_capital * 100 if initial_capital else 0.0
        annualized_return = cls._calculate_annualized_return(total_return, config)

        # Risk metrics
        returns = cls._calculate_period_returns(equity_curve)
        mean_return, std_return = cls._mean_std(returns)
        volatility = std_return * math.sqrt(cls.TRADING_DAYS_PER_YEAR) * 100
        sharpe = cls._calculate_sharpe_ratio(mean_return, std_return)
        sortino = cls._calculate_sortino_ratio(returns, mean_return)
        max_drawdown, max_drawdown_duration = cls._calculate_max_drawdown(equity_curve, initial_capital)
        calmar = annualized_return / max_drawdown if max_drawdown > 0 else annualized_return

        # Per-trade percentages
        win_rate = len(winners) / len(closed) * 100
        if gross_loss > 0:
            profit_factor = gross_profit / gross_loss
        else:
            profit_factor = float('inf') if gross_profit > 0 else 0.0

        avg_win = sum(t.pnl_percent or 0 for t in winners) / len(winners) if winners else 0.0
        avg_loss = abs(sum(t.pnl_percent or 0 for t in losers)) / len(losers) if losers else 0.0
        win_prob = len(winners) / len(closed)
        loss_prob = len(losers) / len(closed)
        expectancy = win_prob * avg_win - loss_prob * avg_loss

        avg_trade_return = sum(t.pnl_percent or 0 for t in closed) / len(closed)
        largest_win = max((t.pnl or 0 for t in winners), default=0.0)
        largest_loss = min((t.pnl or 0 for t in losers), default=0.0)

        hours = [
            (t.exit_timestamp - t.entry_timestamp).total_seconds() / 3600
            for t in closed if t.exit_timestamp is not None
        ]
        avg_trade_duration = sum(hours) / len(closed)

        return PerformanceMetricsResult(
            total_return=total_return,
            annualized_return=annualized_return,
            cagr=annualized_return,
            sharpe_ratio=sharpe,
            sortino_ratio=sortino,
            max_drawdown=max_drawdown,
            max_drawdown_duration=max_drawdown_duration,
            calmar_ratio=calmar,
            volatility=volatility,
            win_rate=win_rate,
            profit_factor=profit_factor,
            expectancy=expectancy,
            total_trades=len(closed),
            winning_trades=len(winners),
            losing_trades=len(losers),
            avg_trade_return=avg_trade_return,
            avg_winning_trade=avg_win,
            avg_losing_trade=-avg_loss if losers else 0.0,
            largest_win=largest_win,
            largest_loss=largest_loss,
            avg_trade_duration=avg_trade_duration,
            gross_profit=gross_profit,
            gross_loss=gross_loss,
            net_profit=net_profit,
            commission_paid=commission_paid,
        )

    @classmethod
    def _calculate_annualized_return(cls, total_return: float, config: BacktestConfig) -> float:
        """
        Compound the total return over the elapsed calendar time of the run.

        Falls back to the total return when the run spans no time. A loss of
        100% or more annualizes to -100; growth too large for a float
        saturates at the largest float.
        """
        if config.start_timestamp is None or config.end_timestamp is None:
            return total_return

        days = (config.end_timestamp - config.start_timestamp).total_seconds() / 86400
        years = days / cls.DAYS_PER_YEAR
        if years <= 0:
            return total_return

        growth = 1 + total_return / 100
        if growth <= 0:
            return -100.0

        try:
            return (growth ** (1 / years) - 1) * 100
        except OverflowError:
            logger.debug(f"Annualized return overflowed for growth={growth} over {days:.4f} days")
            return sys.float_info.max

    @classmethod
    def _calculate_period_returns(cls, equity_curve: List[EquityPoint]) -> List[float]:
        """Bar-to-bar fractional equity returns, skipping non-positive bases."""
        returns = []
        for i in range(1, len(equity_curve)):
            prev = equity_curve[i - 1].equity
            if prev > 0:
                returns.append((equity_curve[i].equity - prev) / prev)
        return returns

    @staticmethod
    def _mean_std(returns: List[float]):
        """Mean and population standard deviation."""
        if not returns:
            return 0.0, 0.0
        mean = sum(returns) / len(returns)
        variance = sum((r - mean) ** 2 for r in returns) / len(returns)
        return mean, math.sqrt(variance)

    @classmethod
    def _calculate_sharpe_ratio(cls, mean_return: float, std_return: float) -> float:
        """
        Sharpe = mean / stdev * sqrt(252), zero risk-free rate.
        """
        if std_return == 0:
            return 0.0
        return mean_return / std_return * math.sqrt(cls.TRADING_DAYS_PER_YEAR)

    @classmethod
    def _calculate_sortino_ratio(cls, returns: List[float], mean_return: float) -> float:
        """
        Like Sharpe but only penalizes downside volatility.

        The downside deviation is the root mean square of the negative returns.
        """
        negative = [r for r in returns if r < 0]
        if not negative:
            return 0.0

        downside_dev = math.sqrt(sum(r * r for r in negative) / len(negative))
        if downside_dev == 0:
            return 0.0
        return mean_return / downside_dev * math.sqrt(cls.TRADING_DAYS_PER_YEAR)

    @classmethod
    def _calculate_max_drawdown(cls, equity_curve: List[EquityPoint], initial_capital: float):
        """
        Largest peak-to-trough decline (percent) and its duration in bars.

        The peak starts at the initial capital. The duration reported is the
        number of bars since the last new high at the moment the deepest
        drawdown was observed.
        """
        max_drawdown = 0.0
        max_duration = 0
        peak = initial_capital
        peak_index = 0

        for i, point in enumerate(equity_curve):
            if point.equity > peak:
                peak = point.equity
                peak_index = i
            elif peak > 0:
                drawdown = (peak - point.equity) / peak
                if drawdown > max_drawdown:
                    max_drawdown = drawdown
                    max_duration = i - peak_index

        return max_drawdown * 100, max_duration
