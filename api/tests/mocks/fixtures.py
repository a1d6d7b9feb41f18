"""
Price Data Fixtures for Testing
===============================
Provides sample bar datasets for testing indicators, strategies and the
backtest pipeline.

This module provides:
- PriceDataset: OHLCV columns plus timestamps, convertible to Bar records
- Generate functions for different market conditions:
  - Uptrend: Consistent price increase
  - Downtrend: Consistent price decrease
  - Sideways: Range-bound movement
  - Volatile: High volatility
- Deterministic series built from explicit closes (flat, linear, custom)

Usage:
    from tests.mocks.fixtures import generate_uptrend_data, bars_from_closes

    data = generate_uptrend_data(start_price=100.0, bars=300, seed=7)
    result = run_backtest(data.to_bars(), "momentum")
"""

import math
import random
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Optional, Sequence, Tuple

from services.backtesting.data_loader import Bar

DEFAULT_START = datetime(2024, 1, 2, 9, 30)


@dataclass
class PriceDataset:
    """
    Container for OHLCV price data.

    Attributes:
        opens: List of opening prices
        highs: List of high prices
        lows: List of low prices
        closes: List of closing prices
        volumes: List of trading volumes
        timestamps: Bar timestamps
    """
    opens: List[float]
    highs: List[float]
    lows: List[float]
    closes: List[float]
    volumes: List[float]
    timestamps: List[datetime]

    def __len__(self) -> int:
        return len(self.closes)

    def to_bars(self) -> List[Bar]:
        return [
            Bar(timestamp=t, open=o, high=h, low=l, close=c, volume=v)
            for t, o, h, l, c, v in zip(self.timestamps, self.opens, self.highs,
                                         self.lows, self.closes, self.volumes)
        ]

    def slice(self, start: int, end: Optional[int] = None) -> 'PriceDataset':
        """Return a slice of the dataset"""
        return PriceDataset(
            opens=self.opens[start:end],
            highs=self.highs[start:end],
            lows=self.lows[start:end],
            closes=self.closes[start:end],
            volumes=self.volumes[start:end],
            timestamps=self.timestamps[start:end],
        )


def _timestamps(count: int, start: Optional[datetime] = None, step: timedelta = timedelta(hours=1)) -> List[datetime]:
    start = start or DEFAULT_START
    return [start + step * i for i in range(count)]


def _generate_ohlc_from_closes(
    closes: List[float],
    rng: random.Random,
    intraday_volatility: float = 0.01,
) -> Tuple[List[float], List[float], List[float]]:
    """Open from the previous close, high/low around the open-close body."""
    opens, highs, lows = [], [], []

    for i, close in enumerate(closes):
        reference = closes[i - 1] if i > 0 else close
        open_price = reference * (1 + rng.gauss(0, 0.002))
        extra_range = close * intraday_volatility

        high_price = max(open_price, close) + rng.uniform(0, extra_range)
        low_price = max(min(open_price, close) - rng.uniform(0, extra_range), 0.01)

        opens.append(round(open_price, 2))
        highs.append(round(max(high_price, open_price, close), 2))
        lows.append(round(min(low_price, open_price, close), 2))

    return opens, highs, lows


def _generate_volumes(count: int, rng: random.Random, base_volume: int = 100000) -> List[float]:
    """Log-normal volumes with a floor."""
    return [float(max(int(base_volume * math.exp(rng.gauss(0, 0.3))), 1000)) for _ in range(count)]


def _dataset(closes: List[float], rng: random.Random, intraday_volatility: float,
             start: Optional[datetime]) -> PriceDataset:
    opens, highs, lows = _generate_ohlc_from_closes(closes, rng, intraday_volatility)
    return PriceDataset(
        opens=opens,
        highs=highs,
        lows=lows,
        closes=closes,
        volumes=_generate_volumes(len(closes), rng),
        timestamps=_timestamps(len(closes), start),
    )


def _trend_closes(rng: random.Random, start_price: float, bars: int, drift: float, volatility: float) -> List[float]:
    closes = [start_price]
    price = start_price
    for _ in range(bars - 1):
        price = max(price * (1 + drift + rng.gauss(0, volatility)), 0.01)
        closes.append(round(price, 2))
    return closes


def generate_uptrend_data(
    start_price: float = 100.0,
    bars: int = 300,
    drift: float = 0.002,
    volatility: float = 0.01,
    seed: int = 1,
    start: Optional[datetime] = None,
) -> PriceDataset:
    """
    Hourly bars drifting upward.

    Example:
        >>> data = generate_uptrend_data(bars=300)
        >>> data.closes[-1] > data.closes[0]
        True
    """
    rng = random.Random(seed)
    return _dataset(_trend_closes(rng, start_price, bars, drift, volatility), rng, volatility, start)


def generate_downtrend_data(
    start_price: float = 100.0,
    bars: int = 300,
    drift: float = -0.002,
    volatility: float = 0.01,
    seed: int = 2,
    start: Optional[datetime] = None,
) -> PriceDataset:
    """Hourly bars drifting downward."""
    rng = random.Random(seed)
    return _dataset(_trend_closes(rng, start_price, bars, drift, volatility), rng, volatility, start)


def generate_sideways_data(
    center_price: float = 100.0,
    bars: int = 300,
    range_pct: float = 0.05,
    volatility: float = 0.01,
    seed: int = 3,
    start: Optional[datetime] = None,
) -> PriceDataset:
    """
    Range-bound bars pulled back toward a center price.

    Args:
        center_price: Center of the range
        bars: Number of bars
        range_pct: Closes are clamped to center +/- range_pct
        volatility: Per-bar volatility
        seed: Random seed for reproducibility
    """
    rng = random.Random(seed)
    closes = []
    price = center_price
    upper = center_price * (1 + range_pct)
    lower = center_price * (1 - range_pct)

    for _ in range(bars):
        mean_reversion = -(price - center_price) / center_price * 0.1
        price = price * (1 + mean_reversion + rng.gauss(0, volatility))
        price = max(lower, min(upper, price))
        closes.append(round(price, 2))

    return _dataset(closes, rng, volatility * 0.5, start)


def generate_volatile_data(
    start_price: float = 100.0,
    bars: int = 300,
    volatility: float = 0.03,
    seed: int = 4,
    start: Optional[datetime] = None,
) -> PriceDataset:
    """High-volatility random walk without drift."""
    rng = random.Random(seed)
    return _dataset(_trend_closes(rng, start_price, bars, 0.0, volatility), rng, volatility, start)


def bars_from_closes(
    closes: Sequence[float],
    spread: float = 0.5,
    volume: float = 1000.0,
    start: Optional[datetime] = None,
    step: timedelta = timedelta(hours=1),
) -> List[Bar]:
    """
    Deterministic bars whose open is the previous close and whose high/low
    sit `spread` above/below the open-close body.
    """
    timestamps = _timestamps(len(closes), start, step)
    bars = []
    for i, close in enumerate(closes):
        open_price = closes[i - 1] if i > 0 else close
        bars.append(Bar(
            timestamp=timestamps[i],
            open=open_price,
            high=max(open_price, close) + spread,
            low=min(open_price, close) - spread,
            close=close,
            volume=volume,
        ))
    return bars


def generate_flat_bars(count: int = 100, price: float = 100.0) -> List[Bar]:
    """Bars with identical OHLC and volume."""
    return [
        Bar(timestamp=t, open=price, high=price, low=price, close=price, volume=1000.0)
        for t in _timestamps(count)
    ]


def generate_linear_bars(count: int = 300, start_price: float = 100.0, step: float = 1.0) -> List[Bar]:
    """Strictly monotonic closes changing by `step` each bar."""
    return bars_from_closes([start_price + step * i for i in range(count)])
