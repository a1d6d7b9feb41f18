"""
Mean Reversion strategy (Bollinger Bands + RSI).

Buys a close below the lower band while RSI is oversold and expects price to
revert to the middle band.
"""

from typing import List

from models.backtest import StrategyType
from ..data_loader import Bar, closes
from .base import BaseStrategy, PositionTracker, defined

RSI_PERIOD = 14
RSI_OVERSOLD = 30
RSI_OVERBOUGHT = 70


class MeanReversionStrategy(BaseStrategy):
    """
    Rules:
    - BUY when close < lower band AND RSI < 30
    - EXIT (take profit) when close >= middle band OR RSI > 70
    - EXIT (stop loss) when the loss reaches stop_loss_percent
    - EXIT when close re-crosses above the upper band
    """

    strategy_type = StrategyType.MEAN_REVERSION
    name = "Mean Reversion"
    description = "Bollinger Bands + RSI - Buy oversold, sell overbought"
    category = "Mean Reversion"
    best_market = "Range-bound"
    default_params = {
        "lookback_period": 20,
        "std_dev_multiplier": 2,
        "stop_loss_percent": 2,
        "take_profit_percent": 3,
    }
    period_params = ("lookback_period",)

    def evaluate(self, bars: List[Bar], tracker: PositionTracker) -> None:
        lookback = self.params["lookback_period"]
        stop_loss = self.params["stop_loss_percent"]

        prices = closes(bars)
        bb = self.indicators.calculate_bollinger_bands(prices, lookback, self.params["std_dev_multiplier"])
        rsi = self.indicators.calculate_rsi(prices, RSI_PERIOD)

        for i in range(lookback + RSI_PERIOD, len(bars)):
            price = prices[i]
            if not defined(bb.lower[i], rsi[i]):
                continue

            if tracker.is_flat:
                if price < bb.lower[i] and rsi[i] < RSI_OVERSOLD:
                    below = (price / bb.lower[i] - 1) * 100 if bb.lower[i] != 0 else 0.0
                    tracker.enter(bars[i], f"Mean Reversion: Price {below:.2f}% below BB lower, RSI={rsi[i]:.1f}")
                continue

            pnl_percent = tracker.pnl_percent(price)
            if price >= bb.middle[i] or rsi[i] > RSI_OVERBOUGHT:
                tracker.exit(bars[i], "Take Profit: Price reached middle band or RSI overbought")
            elif pnl_percent <= -stop_loss:
                tracker.exit(bars[i], f"Stop Loss: {pnl_percent:.2f}% loss")
            elif price > bb.upper[i]:
                tracker.exit(bars[i], "Trailing Stop: Price above upper band")
