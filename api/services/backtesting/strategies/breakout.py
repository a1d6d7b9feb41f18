"""
Breakout strategy: trade a push through the prior N-bar high.
"""

from typing import List

from models.backtest import StrategyType
from ..data_loader import Bar
from .base import BaseStrategy, PositionTracker, stop_or_target


class BreakoutStrategy(BaseStrategy):
    """
    Rules:
    - BUY when the bar high exceeds the highest high of the previous N bars
    - EXIT when close falls below the lowest low of the previous N bars,
      or on stop-loss / take-profit
    """

    strategy_type = StrategyType.BREAKOUT
    name = "Breakout"
    description = "Price breakout above resistance levels"
    category = "Trend Following"
    best_market = "Trending"
    default_params = {
        "lookback_period": 20,
        "stop_loss_percent": 2,
        "take_profit_percent": 4,
    }
    period_params = ("lookback_period",)

    def evaluate(self, bars: List[Bar], tracker: PositionTracker) -> None:
        lookback = self.params["lookback_period"]

        for i in range(lookback, len(bars)):
            bar = bars[i]
            window = bars[i - lookback:i]
            highest_high = max(b.high for b in window)
            lowest_low = min(b.low for b in window)

            if tracker.is_flat:
                if bar.high > highest_high:
                    tracker.enter(bar, f"Breakout: Price broke above {lookback}-period high ({highest_high:.2f})")
                continue

            if bar.close < lowest_low:
                tracker.exit(bar, f"Breakdown: Price below {lookback}-period low")
                continue

            reason = stop_or_target(tracker.pnl_percent(bar.close),
                                    self.params["stop_loss_percent"], self.params["take_profit_percent"])
            if reason:
                tracker.exit(bar, reason)
