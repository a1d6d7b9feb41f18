"""
Tests for performance metrics calculated from trades and equity curves.
"""
import pytest
import math
import sys
import os
from datetime import datetime, timedelta

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from models.backtest import (
    BacktestConfig,
    EquityPoint,
    PerformanceMetricsResult,
    StrategyType,
    Trade,
)
from services.backtesting import PerformanceMetrics

START = datetime(2024, 1, 2, 9, 30)


def make_trade(trade_id, entry_price, exit_price, hours=1.0, closed=True):
    trade = Trade(id=trade_id, entry_timestamp=START, entry_price=entry_price)
    if closed:
        trade.close(START + timedelta(hours=hours), exit_price, "test")
    return trade


def make_curve(equities):
    return [
        EquityPoint(timestamp=START + timedelta(hours=i), equity=e, drawdown_percent=0.0, benchmark_percent=0.0)
        for i, e in enumerate(equities)
    ]


def make_config(initial_capital=1000.0, commission_rate=0.001, start=None, end=None):
    return BacktestConfig(
        strategy=StrategyType.RSI,
        initial_capital=initial_capital,
        commission_rate=commission_rate,
        start_timestamp=start,
        end_timestamp=end,
    )


class TestTradeStatistics:

    def test_no_closed_trades_is_zero_record(self):
        open_trade = make_trade(0, 100.0, 0.0, closed=False)
        result = PerformanceMetrics.calculate([open_trade], make_curve([1000.0, 1010.0]), make_config())
        assert result == PerformanceMetricsResult()

    def test_winner_and_loser(self):
        trades = [make_trade(0, 100.0, 120.0, hours=1), make_trade(1, 100.0, 90.0, hours=3)]
        result = PerformanceMetrics.calculate(trades, [], make_config())

        assert result.total_trades == 2
        assert result.winning_trades == 1
        assert result.losing_trades == 1
        assert result.win_rate == pytest.approx(50.0)
        assert result.gross_profit == pytest.approx(20.0)
        assert result.gross_loss == pytest.approx(10.0)
        assert result.net_profit == pytest.approx(10.0)
        assert result.profit_factor == pytest.approx(2.0)
        assert result.total_return == pytest.approx(1.0)
        assert result.avg_winning_trade == pytest.approx(20.0)
        assert result.avg_losing_trade == pytest.approx(-10.0)
        assert result.expectancy == pytest.approx(5.0)
        assert result.avg_trade_return == pytest.approx(5.0)
        assert result.largest_win == pytest.approx(20.0)
        assert result.largest_loss == pytest.approx(-10.0)
        assert result.avg_trade_duration == pytest.approx(2.0)

    def test_commission_is_approximated_on_capital(self):
        trades = [make_trade(0, 100.0, 120.0), make_trade(1, 100.0, 90.0)]
        result = PerformanceMetrics.calculate(trades, [], make_config(commission_rate=0.001))
        assert result.commission_paid == pytest.approx(2 * 1000.0 * 0.001 * 2)

    def test_break_even_trade_counts_as_loss(self):
        result = PerformanceMetrics.calculate([make_trade(0, 100.0, 100.0)], [], make_config())
        assert result.losing_trades == 1
        assert result.win_rate == 0.0


class TestProfitFactor:

    def test_only_winners_is_infinite(self):
        result = PerformanceMetrics.calculate([make_trade(0, 100.0, 110.0)], [], make_config())
        assert math.isinf(result.profit_factor)

    def test_only_losers_is_zero(self):
        result = PerformanceMetrics.calculate([make_trade(0, 100.0, 90.0)], [], make_config())
        assert result.profit_factor == 0.0

    def test_nothing_won_or_lost_is_zero(self):
        result = PerformanceMetrics.calculate([make_trade(0, 100.0, 100.0)], [], make_config())
        assert result.profit_factor == 0.0

    def test_infinite_profit_factor_serializes(self):
        result = PerformanceMetrics.calculate([make_trade(0, 100.0, 110.0)], [], make_config())
        assert '"profit_factor":"Infinity"' in result.model_dump_json()


class TestRiskRatios:

    def test_sharpe_and_sortino(self):
        curve = make_curve([100.0, 110.0, 99.0, 108.9])
        result = PerformanceMetrics.calculate([make_trade(0, 100.0, 101.0)], curve, make_config())

        returns = [0.1, -0.1, 0.1]
        mean = sum(returns) / 3
        std = math.sqrt(sum((r - mean) ** 2 for r in returns) / 3)
        assert result.sharpe_ratio == pytest.approx(mean / std * math.sqrt(252))
        assert result.sortino_ratio == pytest.approx(mean / 0.1 * math.sqrt(252))
        assert result.volatility == pytest.approx(std * math.sqrt(252) * 100)

    def test_constant_returns_give_zero_ratios(self):
        curve = make_curve([100.0, 110.0, 121.0])
        result = PerformanceMetrics.calculate([make_trade(0, 100.0, 101.0)], curve, make_config())
        assert result.sharpe_ratio == 0.0
        assert result.sortino_ratio == 0.0

    def test_non_positive_equity_is_skipped(self):
        returns = PerformanceMetrics._calculate_period_returns(make_curve([0.0, 10.0, 11.0]))
        assert returns == pytest.approx([0.1])


class TestDrawdown:

    def test_max_drawdown_and_duration(self):
        drawdown, duration = PerformanceMetrics._calculate_max_drawdown(
            make_curve([100.0, 120.0, 90.0, 110.0, 80.0]), 100.0
        )
        assert drawdown == pytest.approx(40 / 120 * 100)
        assert duration == 3

    def test_peak_starts_at_initial_capital(self):
        drawdown, duration = PerformanceMetrics._calculate_max_drawdown(make_curve([90.0, 95.0]), 100.0)
        assert drawdown == pytest.approx(10.0)
        assert duration == 0

    def test_calmar_without_drawdown_is_annualized_return(self):
        result = PerformanceMetrics.calculate(
            [make_trade(0, 100.0, 110.0)], make_curve([1000.0, 1005.0, 1010.0]), make_config()
        )
        assert result.max_drawdown == 0.0
        assert result.calmar_ratio == pytest.approx(result.annualized_return)


class TestAnnualizedReturn:

    def test_no_timestamps_uses_total_return(self):
        assert PerformanceMetrics._calculate_annualized_return(12.0, make_config()) == 12.0

    def test_one_year(self):
        config = make_config(start=START, end=START + timedelta(days=365.25))
        assert PerformanceMetrics._calculate_annualized_return(12.0, config) == pytest.approx(12.0)

    def test_two_years_compounds(self):
        config = make_config(start=START, end=START + timedelta(days=2 * 365.25))
        assert PerformanceMetrics._calculate_annualized_return(21.0, config) == pytest.approx(10.0)

    def test_zero_span_uses_total_return(self):
        config = make_config(start=START, end=START)
        assert PerformanceMetrics._calculate_annualized_return(5.0, config) == 5.0

    def test_total_loss(self):
        config = make_config(start=START, end=START + timedelta(days=30))
        assert PerformanceMetrics._calculate_annualized_return(-100.0, config) == -100.0

    def test_overflow_saturates(self):
        config = make_config(start=START, end=START + timedelta(minutes=1))
        assert PerformanceMetrics._calculate_annualized_return(1000.0, config) == sys.float_info.max
