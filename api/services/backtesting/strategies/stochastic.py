"""
Stochastic oscillator strategy (%K / %D crossovers at the extremes).
"""

from typing import List

from models.backtest import StrategyType
from ..data_loader import Bar, closes, highs, lows
from .base import BaseStrategy, PositionTracker, crossed_above, crossed_below, defined, stop_or_target

START_INDEX = 50
K_PERIOD = 14
D_PERIOD = 3
TREND_PERIOD = 50
OVERSOLD = 20
OVERBOUGHT = 80


class StochasticStrategy(BaseStrategy):
    """
    Rules:
    - BUY when %K crosses above %D with %K < 20 and close > SMA50
    - EXIT when %K crosses below %D with %K > 80, or on stop-loss / take-profit
    """

    strategy_type = StrategyType.STOCHASTIC
    name = "Stochastic"
    description = "Stochastic oscillator with %K/%D crossover"
    category = "Momentum"
    best_market = "Range-bound"
    default_params = {
        "stop_loss_percent": 2,
        "take_profit_percent": 3,
    }

    def evaluate(self, bars: List[Bar], tracker: PositionTracker) -> None:
        prices = closes(bars)
        stoch = self.indicators.calculate_stochastic(highs(bars), lows(bars), prices, K_PERIOD, D_PERIOD)
        sma50 = self.indicators.calculate_sma(prices, TREND_PERIOD)

        for i in range(START_INDEX, len(bars)):
            price = prices[i]
            if not defined(stoch.k[i], stoch.d[i], stoch.k[i - 1], stoch.d[i - 1], sma50[i]):
                continue

            if tracker.is_flat:
                if crossed_above(stoch.k, stoch.d, i) and stoch.k[i] < OVERSOLD and price > sma50[i]:
                    tracker.enter(bars[i], f"Stochastic: %K crossed above %D in oversold ({stoch.k[i]:.1f})")
                continue

            if crossed_below(stoch.k, stoch.d, i) and stoch.k[i] > OVERBOUGHT:
                tracker.exit(bars[i], "Stochastic overbought crossover")
                continue

            reason = stop_or_target(tracker.pnl_percent(price),
                                    self.params["stop_loss_percent"], self.params["take_profit_percent"])
            if reason:
                tracker.exit(bars[i], reason)
