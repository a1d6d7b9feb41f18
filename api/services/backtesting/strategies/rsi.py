"""
RSI strategy: oversold cross-up with an SMA50 trend filter.
"""

from typing import List

from models.backtest import StrategyType
from ..data_loader import Bar, closes
from .base import BaseStrategy, PositionTracker, defined, stop_or_target

START_INDEX = 50
RSI_PERIOD = 14
TREND_PERIOD = 50


class RSIStrategy(BaseStrategy):
    """
    Rules:
    - BUY when RSI crosses above rsi_oversold and close > SMA50
    - EXIT when RSI > rsi_overbought, or on stop-loss / take-profit
    """

    strategy_type = StrategyType.RSI
    name = "RSI Strategy"
    description = "RSI crossover with trend filter"
    category = "Momentum"
    best_market = "All"
    default_params = {
        "rsi_oversold": 30,
        "rsi_overbought": 70,
        "stop_loss_percent": 2,
        "take_profit_percent": 3,
    }

    def evaluate(self, bars: List[Bar], tracker: PositionTracker) -> None:
        oversold = self.params["rsi_oversold"]
        overbought = self.params["rsi_overbought"]

        prices = closes(bars)
        rsi = self.indicators.calculate_rsi(prices, RSI_PERIOD)
        sma50 = self.indicators.calculate_sma(prices, TREND_PERIOD)

        for i in range(START_INDEX, len(bars)):
            price = prices[i]
            if not defined(rsi[i], rsi[i - 1], sma50[i]):
                continue

            if tracker.is_flat:
                crossed_up = rsi[i] > oversold and rsi[i - 1] <= oversold
                if crossed_up and price > sma50[i]:
                    tracker.enter(bars[i], f"RSI: Crossed above {oversold:g} oversold level, above SMA50")
                continue

            if rsi[i] > overbought:
                tracker.exit(bars[i], f"RSI overbought (>{overbought:g})")
                continue

            reason = stop_or_target(tracker.pnl_percent(price),
                                    self.params["stop_loss_percent"], self.params["take_profit_percent"])
            if reason:
                tracker.exit(bars[i], reason)
