"""
Historical data containers for backtesting.

Holds the immutable OHLCV Bar record plus the built-in sample dataset and
timeframe aggregation. Parsing CSV files and fetching market data happen
outside this package; callers hand over already-sorted bars.
"""

import logging
from datetime import datetime, timedelta
from typing import List, Iterable, Optional
from dataclasses import dataclass

logger = logging.getLogger(__name__)

SAMPLE_START = datetime(2021, 8, 1, 10, 0, 0)
SAMPLE_START_PRICE = 17000.0
SAMPLE_PRICE_FLOOR = 1000.0


@dataclass(frozen=True)
class Bar:
    """A single OHLCV bar."""
    timestamp: datetime
    open: float
    high: float
    low: float
    close: float
    volume: float

    @property
    def typical_price(self) -> float:
        return (self.high + self.low + self.close) / 3


def closes(bars: Iterable[Bar]) -> List[float]:
    return [b.close for b in bars]


def highs(bars: Iterable[Bar]) -> List[float]:
    return [b.high for b in bars]


def lows(bars: Iterable[Bar]) -> List[float]:
    return [b.low for b in bars]


def volumes(bars: Iterable[Bar]) -> List[float]:
    return [b.volume for b in bars]


class _LinearCongruential:
    """Tiny seeded PRNG so sample data is identical across platforms."""

    def __init__(self, seed: int):
        self.state = seed

    def random(self) -> float:
        self.state = (self.state * 9301 + 49297) % 233280
        return self.state / 233280


def generate_sample_data(bars: int = 1000, seed: int = 12345, start: Optional[datetime] = None) -> List[Bar]:
    """
    Generate a reproducible one-minute random walk with a decaying trend term.

    Args:
        bars: Number of bars to generate
        seed: PRNG seed; the same seed always yields the same series
        start: Timestamp of the first bar

    Returns:
        List of bars one minute apart
    """
    rng = _LinearCongruential(seed)
    start = start or SAMPLE_START
    price = SAMPLE_START_PRICE
    trend = 0.0
    data: List[Bar] = []

    for i in range(bars):
        change = (rng.random() - 0.48) * 15
        trend = trend * 0.95 + (rng.random() - 0.5) * 2
        price = max(price + change + trend, SAMPLE_PRICE_FLOOR)

        volatility = 12 + abs(trend) * 5
        open_ = price + (rng.random() - 0.5) * volatility
        close = price + (rng.random() - 0.5) * volatility
        high = max(open_, close) + rng.random() * volatility * 0.5
        low = min(open_, close) - rng.random() * volatility * 0.5
        volume = float(int(5000 + rng.random() * 15000))

        data.append(Bar(
            timestamp=start + timedelta(minutes=i),
            open=open_,
            high=high,
            low=low,
            close=close,
            volume=volume,
        ))
        price = close

    logger.debug(f"Generated {len(data)} sample bars (seed={seed})")
    return data


def aggregate_timeframe(bars: List[Bar], factor: int) -> List[Bar]:
    """
    Merge every `factor` consecutive bars into one.

    The merged bar keeps the first bar's timestamp and open, the extreme
    high/low, the last close and the summed volume. A trailing partial group
    is emitted as-is.
    """
    if factor <= 1:
        return list(bars)

    result: List[Bar] = []
    for start in range(0, len(bars), factor):
        group = bars[start:start + factor]
        result.append(Bar(
            timestamp=group[0].timestamp,
            open=group[0].open,
            high=max(b.high for b in group),
            low=min(b.low for b in group),
            close=group[-1].close,
            volume=sum(b.volume for b in group),
        ))
    return result


def infer_timeframe(bars: List[Bar]) -> Optional[str]:
    """Label the bar interval from the gap between the first two bars."""
    if len(bars) < 2:
        return None

    minutes = (bars[1].timestamp - bars[0].timestamp).total_seconds() / 60
    for limit, label in ((2, "1m"), (6, "5m"), (16, "15m"), (31, "30m"),
                         (61, "1h"), (241, "4h"), (1441, "1d")):
        if minutes < limit:
            return label
    return "1w"
