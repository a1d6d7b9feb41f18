"""
Momentum strategy (MACD crossover with a moving-average trend filter).
"""

from typing import List

from models.backtest import StrategyType
from ..data_loader import Bar, closes
from .base import BaseStrategy, PositionTracker, crossed_above, crossed_below, defined, stop_or_target

SIGNAL_PERIOD = 9
TREND_FAST = 50
TREND_SLOW = 200


class MomentumStrategy(BaseStrategy):
    """
    Rules:
    - BUY when MACD crosses above its signal line and close > SMA50 > SMA200
    - EXIT when MACD crosses below its signal line, or on stop-loss / take-profit
    """

    strategy_type = StrategyType.MOMENTUM
    name = "Momentum"
    description = "MACD + Moving Averages - Follow the trend"
    category = "Trend Following"
    best_market = "Trending"
    default_params = {
        "fast_period": 12,
        "slow_period": 26,
        "stop_loss_percent": 2,
        "take_profit_percent": 4,
    }
    period_params = ("fast_period", "slow_period")

    def evaluate(self, bars: List[Bar], tracker: PositionTracker) -> None:
        slow_period = self.params["slow_period"]
        prices = closes(bars)
        macd = self.indicators.calculate_macd(prices, self.params["fast_period"], slow_period, SIGNAL_PERIOD)
        sma50 = self.indicators.calculate_sma(prices, TREND_FAST)
        sma200 = self.indicators.calculate_sma(prices, TREND_SLOW)

        for i in range(max(slow_period, TREND_SLOW), len(bars)):
            price = prices[i]
            if not defined(macd.macd[i], macd.signal[i], macd.macd[i - 1], macd.signal[i - 1],
                           sma50[i], sma200[i]):
                continue

            if tracker.is_flat:
                uptrend = price > sma50[i] > sma200[i]
                if crossed_above(macd.macd, macd.signal, i) and uptrend:
                    tracker.enter(bars[i], "Momentum: MACD cross up, uptrend confirmed (Price>SMA50>SMA200)")
                continue

            if crossed_below(macd.macd, macd.signal, i):
                tracker.exit(bars[i], "MACD cross down")
                continue

            reason = stop_or_target(tracker.pnl_percent(price),
                                    self.params["stop_loss_percent"], self.params["take_profit_percent"])
            if reason:
                tracker.exit(bars[i], reason)
