"""
ATR trailing-stop strategy.

Enters above a rising SMA20 and rides the trend behind a stop that trails the
highest close by atr_multiplier x ATR. The stop only ratchets up.
"""

from typing import List

from models.backtest import StrategyType
from ..data_loader import Bar, closes, highs, lows
from .base import BaseStrategy, PositionTracker, defined

TREND_PERIOD = 20
TRAILING_STOP = "ATR Trailing Stop"


class ATRTrailingStrategy(BaseStrategy):
    """
    Rules:
    - BUY when close > SMA20 and SMA20 is rising
    - EXIT when close falls below the trailing stop
    """

    strategy_type = StrategyType.ATR_TRAILING
    name = "ATR Trailing Stop"
    description = "Dynamic stop loss based on Average True Range"
    category = "Volatility"
    best_market = "Trending"
    default_params = {
        "lookback_period": 14,
        "atr_multiplier": 3,
    }
    period_params = ("lookback_period",)

    def evaluate(self, bars: List[Bar], tracker: PositionTracker) -> None:
        lookback = self.params["lookback_period"]
        multiplier = self.params["atr_multiplier"]

        prices = closes(bars)
        sma20 = self.indicators.calculate_sma(prices, TREND_PERIOD)
        atr = self.indicators.calculate_atr(highs(bars), lows(bars), prices, lookback).atr

        highest_price = 0.0
        trailing_stop = 0.0

        for i in range(lookback + TREND_PERIOD, len(bars)):
            price = prices[i]
            if not defined(sma20[i], sma20[i - 1], atr[i]):
                continue

            if tracker.is_flat:
                if price > sma20[i] and sma20[i] > sma20[i - 1]:
                    tracker.enter(bars[i], f"ATR Trailing: Price above rising SMA20, ATR={atr[i]:.2f}")
                    highest_price = price
                    trailing_stop = price - atr[i] * multiplier
                continue

            if price > highest_price:
                highest_price = price
                trailing_stop = max(trailing_stop, price - atr[i] * multiplier)

            if price < trailing_stop:
                tracker.exit(bars[i], TRAILING_STOP)
                highest_price = 0.0
                trailing_stop = 0.0
