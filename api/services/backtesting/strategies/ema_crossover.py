"""
EMA Crossover strategy.
"""

from typing import List

from models.backtest import StrategyType
from ..data_loader import Bar, closes
from .base import BaseStrategy, PositionTracker, crossed_above, crossed_below, defined, stop_or_target


class EMACrossoverStrategy(BaseStrategy):
    """
    Rules:
    - BUY when the fast EMA crosses above the slow EMA
    - EXIT when it crosses back below, or on stop-loss / take-profit
    """

    strategy_type = StrategyType.EMA_CROSSOVER
    name = "EMA Crossover"
    description = "Fast EMA crosses above/below slow EMA"
    category = "Trend Following"
    best_market = "Trending"
    default_params = {
        "fast_period": 9,
        "slow_period": 21,
        "stop_loss_percent": 2,
        "take_profit_percent": 3,
    }
    period_params = ("fast_period", "slow_period")

    def evaluate(self, bars: List[Bar], tracker: PositionTracker) -> None:
        fast_period = self.params["fast_period"]
        slow_period = self.params["slow_period"]

        prices = closes(bars)
        fast = self.indicators.calculate_ema(prices, fast_period)
        slow = self.indicators.calculate_ema(prices, slow_period)

        for i in range(max(fast_period, slow_period) + 1, len(bars)):
            if not defined(fast[i], slow[i], fast[i - 1], slow[i - 1]):
                continue

            if tracker.is_flat:
                if crossed_above(fast, slow, i):
                    tracker.enter(bars[i], f"EMA Crossover: EMA({fast_period}) crossed above EMA({slow_period})")
                continue

            if crossed_below(fast, slow, i):
                tracker.exit(bars[i], "EMA cross down")
                continue

            reason = stop_or_target(tracker.pnl_percent(prices[i]),
                                    self.params["stop_loss_percent"], self.params["take_profit_percent"])
            if reason:
                tracker.exit(bars[i], reason)
