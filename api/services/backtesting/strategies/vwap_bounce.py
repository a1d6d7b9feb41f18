"""
VWAP Bounce strategy.

Buys when price stretches below the session VWAP with neutral RSI and exits
once price is back at VWAP.
"""

from typing import List

from models.backtest import StrategyType
from ..data_loader import Bar, closes, highs, lows, volumes
from .base import BaseStrategy, PositionTracker, defined, stop_or_target

START_INDEX = 20
RSI_PERIOD = 14
RETURN_BAND = 0.1


class VWAPBounceStrategy(BaseStrategy):
    """
    Rules:
    - BUY when close is more than vwap_deviation % below VWAP and 30 < RSI < 60
    - EXIT when |deviation| < 0.1 %, or on stop-loss / take-profit
    """

    strategy_type = StrategyType.VWAP_BOUNCE
    name = "VWAP Bounce"
    description = "Volume Weighted Average Price - Mean reversion to VWAP"
    category = "Mean Reversion"
    best_market = "Range-bound"
    default_params = {
        "vwap_deviation": 0.5,
        "stop_loss_percent": 1.5,
        "take_profit_percent": 2.5,
    }

    def evaluate(self, bars: List[Bar], tracker: PositionTracker) -> None:
        prices = closes(bars)
        vwap = self.indicators.calculate_vwap(
            highs(bars), lows(bars), prices, volumes(bars), [b.timestamp for b in bars]
        )
        rsi = self.indicators.calculate_rsi(prices, RSI_PERIOD)

        for i in range(START_INDEX, len(bars)):
            price = prices[i]
            if not defined(vwap[i], rsi[i]) or vwap[i] == 0:
                continue

            deviation = (price - vwap[i]) / vwap[i] * 100

            if tracker.is_flat:
                if deviation < -self.params["vwap_deviation"] and 30 < rsi[i] < 60:
                    tracker.enter(bars[i], f"VWAP Bounce: Price {deviation:.2f}% below VWAP, RSI={rsi[i]:.1f}")
                continue

            if abs(deviation) < RETURN_BAND:
                tracker.exit(bars[i], "Price returned to VWAP")
                continue

            reason = stop_or_target(tracker.pnl_percent(price),
                                    self.params["stop_loss_percent"], self.params["take_profit_percent"])
            if reason:
                tracker.exit(bars[i], reason)
