"""
Combined multi-factor strategy.

Scores five bullish and four bearish conditions each bar and acts when at
least three agree.
"""

from typing import List

from models.backtest import StrategyType
from ..data_loader import Bar, closes, highs, lows
from .base import BaseStrategy, PositionTracker, defined, stop_or_target

START_INDEX = 50
MIN_CONFIRMATIONS = 3


class CombinedStrategy(BaseStrategy):
    """
    Bullish: close > SMA20, RSI < 40, close < lower band, MACD > signal, %K < 30
    Bearish: RSI > 65, close > upper band, MACD < signal, %K > 70

    - BUY on 3+ bullish conditions
    - EXIT on 3+ bearish conditions, or on stop-loss / take-profit
    """

    strategy_type = StrategyType.COMBINED
    name = "Combined Strategy"
    description = "Multi-factor approach combining multiple signals"
    category = "Combined"
    best_market = "All"
    default_params = {
        "stop_loss_percent": 2,
        "take_profit_percent": 4,
    }

    def evaluate(self, bars: List[Bar], tracker: PositionTracker) -> None:
        prices = closes(bars)
        sma20 = self.indicators.calculate_sma(prices, 20)
        rsi = self.indicators.calculate_rsi(prices, 14)
        bb = self.indicators.calculate_bollinger_bands(prices, 20, 2)
        macd = self.indicators.calculate_macd(prices, 12, 26, 9)
        stoch = self.indicators.calculate_stochastic(highs(bars), lows(bars), prices, 14, 3)

        for i in range(START_INDEX, len(bars)):
            price = prices[i]
            if not defined(sma20[i], rsi[i], bb.lower[i]):
                continue

            macd_defined = defined(macd.macd[i], macd.signal[i])
            k = stoch.k[i]

            bullish = sum((
                price > sma20[i],
                rsi[i] < 40,
                price < bb.lower[i],
                macd_defined and macd.macd[i] > macd.signal[i],
                k is not None and k < 30,
            ))
            bearish = sum((
                rsi[i] > 65,
                price > bb.upper[i],
                macd_defined and macd.macd[i] < macd.signal[i],
                k is not None and k > 70,
            ))

            if tracker.is_flat:
                if bullish >= MIN_CONFIRMATIONS:
                    stoch_text = f"{k:.1f}" if k is not None else "n/a"
                    tracker.enter(bars[i], f"Combined: {bullish}/5 bullish signals "
                                           f"(RSI={rsi[i]:.1f}, Stoch={stoch_text})")
                continue

            if bearish >= MIN_CONFIRMATIONS:
                tracker.exit(bars[i], f"{bearish}/5 bearish signals triggered")
                continue

            reason = stop_or_target(tracker.pnl_percent(price),
                                    self.params["stop_loss_percent"], self.params["take_profit_percent"])
            if reason:
                tracker.exit(bars[i], reason)
