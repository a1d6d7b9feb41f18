"""
Technical Indicator Calculations
Pure Python implementations of common technical indicators

Every indicator returns series aligned with its input: same length, with None
in positions where there is not enough history (or where an input value was
None). None is never replaced by 0 or NaN.
"""
import math
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Sequence

Series = List[Optional[float]]

OBV_EMA_PERIOD = 20
ICHIMOKU_TENKAN = 9
ICHIMOKU_KIJUN = 26
ICHIMOKU_SENKOU_B = 52


@dataclass
class BollingerBands:
    upper: Series
    middle: Series
    lower: Series
    bandwidth: Series
    percent_b: Series


@dataclass
class ATRResult:
    atr: Series
    tr: List[float]


@dataclass
class MACDResult:
    macd: Series
    signal: Series
    histogram: Series


@dataclass
class StochasticResult:
    k: Series
    d: Series


@dataclass
class OBVResult:
    obv: List[float]
    obv_ema: Series


@dataclass
class ADXResult:
    adx: Series
    plus_di: Series
    minus_di: Series


@dataclass
class IchimokuResult:
    tenkan_sen: Series
    kijun_sen: Series
    senkou_span_a: Series
    senkou_span_b: Series
    chikou_span: Series


@dataclass
class PivotPoints:
    pivot: Series
    r1: Series
    r2: Series
    r3: Series
    s1: Series
    s2: Series
    s3: Series


def _window(values: Sequence[Optional[float]], end: int, period: int) -> Optional[List[float]]:
    """Trailing window ending at `end`, or None if short or holding an undefined value."""
    if period <= 0 or end < period - 1:
        return None
    window = values[end - period + 1:end + 1]
    if any(v is None for v in window):
        return None
    return list(window)


def _midpoint(highs: List[float], lows: List[float], end: int, period: int) -> Optional[float]:
    if end < period - 1:
        return None
    start = end - period + 1
    return (max(highs[start:end + 1]) + min(lows[start:end + 1])) / 2


class IndicatorService:
    """Service for calculating technical indicators"""

    # ============================================
    # MOVING AVERAGES
    # ============================================

    def calculate_sma(self, values: Sequence[Optional[float]], period: int) -> Series:
        """
        Calculate Simple Moving Average

        Args:
            values: Input series (may contain None)
            period: Number of periods for the average

        Returns:
            SMA series; None for index < period - 1
        """
        result: Series = []
        for i in range(len(values)):
            window = _window(values, i, period)
            result.append(sum(window) / period if window is not None else None)
        return result

    def calculate_ema(self, values: Sequence[Optional[float]], period: int) -> Series:
        """
        Calculate Exponential Moving Average

        alpha = 2 / (period + 1). The first value is the input itself, the
        next period - 2 values are the running mean of the inputs seen so far,
        and the recurrence ema = (x - ema_prev) * alpha + ema_prev starts at
        index period - 1. The warm-up therefore holds values, not None.

        Leading None inputs are skipped and seeding starts at the first
        defined value. A None after that yields None at its index while the
        average carries over to the next defined input.
        """
        multiplier = 2 / (period + 1)
        warmup = max(period - 1, 1)
        result: Series = []
        ema: Optional[float] = None
        seen = 0
        running_sum = 0.0

        for value in values:
            if value is None:
                result.append(None)
                continue

            if seen < warmup:
                running_sum += value
                ema = running_sum / (seen + 1)
            else:
                ema = (value - ema) * multiplier + ema
            seen += 1
            result.append(ema)

        return result

    def calculate_wma(self, values: Sequence[Optional[float]], period: int) -> Series:
        """
        Calculate Weighted Moving Average

        The newest value carries weight `period`, the oldest weight 1.
        """
        denominator = period * (period + 1) / 2
        result: Series = []
        for i in range(len(values)):
            window = _window(values, i, period)
            if window is None:
                result.append(None)
                continue
            weighted = sum(v * (j + 1) for j, v in enumerate(window))
            result.append(weighted / denominator)
        return result

    # ============================================
    # VOLATILITY
    # ============================================

    def calculate_std_dev(self, values: Sequence[Optional[float]], period: int) -> Series:
        """Population standard deviation over a trailing window (divides by period)."""
        result: Series = []
        for i in range(len(values)):
            window = _window(values, i, period)
            if window is None:
                result.append(None)
                continue
            mean = sum(window) / period
            variance = sum((v - mean) ** 2 for v in window) / period
            result.append(math.sqrt(variance))
        return result

    def calculate_bollinger_bands(
        self,
        prices: Sequence[Optional[float]],
        period: int = 20,
        std_dev: float = 2.0,
    ) -> BollingerBands:
        """
        Calculate Bollinger Bands

        Args:
            prices: List of closing prices
            period: Moving average period (default 20)
            std_dev: Number of standard deviations (default 2.0)

        Returns:
            BollingerBands with upper, middle (SMA), lower, bandwidth and %B.
            %B is None when the bands collapse (upper == lower); bandwidth is
            None when the middle band is 0.
        """
        middle = self.calculate_sma(prices, period)
        sigma = self.calculate_std_dev(prices, period)

        upper: Series = []
        lower: Series = []
        bandwidth: Series = []
        percent_b: Series = []

        for i, price in enumerate(prices):
            if middle[i] is None or sigma[i] is None:
                upper.append(None)
                lower.append(None)
                bandwidth.append(None)
                percent_b.append(None)
                continue

            up = middle[i] + std_dev * sigma[i]
            low = middle[i] - std_dev * sigma[i]
            upper.append(up)
            lower.append(low)
            bandwidth.append((up - low) / middle[i] if middle[i] != 0 else None)
            if up == low or price is None:
                percent_b.append(None)
            else:
                percent_b.append((price - low) / (up - low))

        return BollingerBands(upper, middle, lower, bandwidth, percent_b)

    def calculate_atr(
        self,
        highs: List[float],
        lows: List[float],
        closes: List[float],
        period: int = 14,
    ) -> ATRResult:
        """
        Calculate Average True Range

        TR = max(high - low, |high - prev close|, |low - prev close|), with
        TR[0] = high[0] - low[0]. ATR is the EMA of TR using the EMA warm-up.
        """
        tr: List[float] = []
        for i in range(len(closes)):
            if i == 0:
                tr.append(highs[0] - lows[0])
            else:
                tr.append(max(
                    highs[i] - lows[i],
                    abs(highs[i] - closes[i - 1]),
                    abs(lows[i] - closes[i - 1]),
                ))

        return ATRResult(atr=self.calculate_ema(tr, period), tr=tr)

    # ============================================
    # MOMENTUM
    # ============================================

    def calculate_rsi(self, prices: Sequence[Optional[float]], period: int = 14) -> Series:
        """
        Calculate Relative Strength Index with Wilder smoothing

        The first average gain/loss is the simple mean of the first run of
        `period` defined changes; afterwards avg = (avg * (period - 1) + new) / period.
        When the average loss is 0 the relative strength is taken as 100.
        A change touching an undefined price yields None and the averages
        carry over it.

        Returns:
            RSI series (0-100 scale); None for index < period
        """
        n = len(prices)
        result: Series = [None] * n
        if period <= 0 or n <= period:
            return result

        changes: Series = [None] + [
            prices[i] - prices[i - 1] if prices[i] is not None and prices[i - 1] is not None else None
            for i in range(1, n)
        ]

        avg_gain: Optional[float] = None
        avg_loss: Optional[float] = None
        run = 0

        for i in range(1, n):
            change = changes[i]
            if change is None:
                run = 0
                continue

            if avg_gain is None:
                run += 1
                if run < period:
                    continue
                window = changes[i - period + 1:i + 1]
                avg_gain = sum(max(c, 0.0) for c in window) / period
                avg_loss = sum(max(-c, 0.0) for c in window) / period
            else:
                avg_gain = (avg_gain * (period - 1) + max(change, 0.0)) / period
                avg_loss = (avg_loss * (period - 1) + max(-change, 0.0)) / period

            rs = 100.0 if avg_loss == 0 else avg_gain / avg_loss
            result[i] = 100 - (100 / (1 + rs))

        return result

    def calculate_macd(
        self,
        prices: Sequence[Optional[float]],
        fast_period: int = 12,
        slow_period: int = 26,
        signal_period: int = 9,
    ) -> MACDResult:
        """
        Calculate MACD (Moving Average Convergence Divergence)

        MACD = EMA(fast) - EMA(slow), signal = EMA(MACD), histogram = MACD - signal.
        Because the EMA warm-up is seeded, every index of a fully defined
        input is defined.
        """
        fast_ema = self.calculate_ema(prices, fast_period)
        slow_ema = self.calculate_ema(prices, slow_period)

        macd: Series = [
            f - s if f is not None and s is not None else None
            for f, s in zip(fast_ema, slow_ema)
        ]
        signal = self.calculate_ema(macd, signal_period)
        histogram: Series = [
            m - s if m is not None and s is not None else None
            for m, s in zip(macd, signal)
        ]

        return MACDResult(macd, signal, histogram)

    def calculate_stochastic(
        self,
        highs: List[float],
        lows: List[float],
        closes: List[float],
        k_period: int = 14,
        d_period: int = 3,
    ) -> StochasticResult:
        """
        Calculate Stochastic Oscillator

        %K = (close - lowest low) / (highest high - lowest low) * 100, or 50
        when the window has no range. %D = SMA(%K, d_period).
        """
        k_values: Series = []
        for i in range(len(closes)):
            if i < k_period - 1:
                k_values.append(None)
                continue

            start = i - k_period + 1
            highest_high = max(highs[start:i + 1])
            lowest_low = min(lows[start:i + 1])

            if highest_high == lowest_low:
                k_values.append(50.0)
            else:
                k_values.append((closes[i] - lowest_low) / (highest_high - lowest_low) * 100)

        return StochasticResult(k=k_values, d=self.calculate_sma(k_values, d_period))

    def calculate_roc(self, prices: Sequence[Optional[float]], period: int = 12) -> Series:
        """
        Calculate Rate of Change (percent)

        None for index < period, where either price is undefined, and where
        the lagged price is 0.
        """
        result: Series = []
        for i in range(len(prices)):
            if i < period or prices[i] is None or not prices[i - period]:
                result.append(None)
            else:
                result.append((prices[i] - prices[i - period]) / prices[i - period] * 100)
        return result

    def calculate_momentum(self, prices: Sequence[Optional[float]], period: int = 10) -> Series:
        """Price difference against `period` bars ago."""
        return [
            prices[i] - prices[i - period]
            if i >= period and prices[i] is not None and prices[i - period] is not None else None
            for i in range(len(prices))
        ]

    # ============================================
    # VOLUME
    # ============================================

    def calculate_vwap(
        self,
        highs: List[float],
        lows: List[float],
        closes: List[float],
        volumes: List[float],
        timestamps: List[datetime],
    ) -> List[float]:
        """
        Calculate Volume Weighted Average Price

        Cumulative typical price * volume over cumulative volume, restarted
        whenever the calendar date of the timestamp changes. With no volume so
        far in the session the typical price is returned.
        """
        result: List[float] = []
        cumulative_tpv = 0.0
        cumulative_volume = 0.0
        current_day = None

        for i in range(len(closes)):
            day = timestamps[i].date()
            if day != current_day:
                cumulative_tpv = 0.0
                cumulative_volume = 0.0
                current_day = day

            typical_price = (highs[i] + lows[i] + closes[i]) / 3
            cumulative_tpv += typical_price * volumes[i]
            cumulative_volume += volumes[i]

            if cumulative_volume > 0:
                result.append(cumulative_tpv / cumulative_volume)
            else:
                result.append(typical_price)

        return result

    def calculate_obv(self, closes: List[float], volumes: List[float]) -> OBVResult:
        """
        Calculate On Balance Volume, seeded with the first bar's volume,
        plus its 20-period EMA.
        """
        obv: List[float] = []
        for i in range(len(closes)):
            if i == 0:
                obv.append(volumes[0])
            elif closes[i] > closes[i - 1]:
                obv.append(obv[-1] + volumes[i])
            elif closes[i] < closes[i - 1]:
                obv.append(obv[-1] - volumes[i])
            else:
                obv.append(obv[-1])

        return OBVResult(obv=obv, obv_ema=self.calculate_ema(obv, OBV_EMA_PERIOD))

    def calculate_volume_rsi(self, volumes: List[float], period: int = 14) -> Series:
        return self.calculate_rsi(volumes, period)

    # ============================================
    # TREND
    # ============================================

    def calculate_adx(
        self,
        highs: List[float],
        lows: List[float],
        closes: List[float],
        period: int = 14,
    ) -> ADXResult:
        """
        Calculate Average Directional Index (ADX) with +DI and -DI

        +DM counts only when the up move is positive and larger than the down
        move (and vice versa for -DM). Both are EMA-smoothed and divided by
        ATR. DI and DX are None where ATR is 0 or undefined, DX also where
        +DI + -DI is 0. ADX is the EMA of DX.
        """
        plus_dm: List[float] = []
        minus_dm: List[float] = []
        for i in range(len(closes)):
            if i == 0:
                plus_dm.append(0.0)
                minus_dm.append(0.0)
                continue
            up_move = highs[i] - highs[i - 1]
            down_move = lows[i - 1] - lows[i]
            plus_dm.append(up_move if up_move > down_move and up_move > 0 else 0.0)
            minus_dm.append(down_move if down_move > up_move and down_move > 0 else 0.0)

        atr = self.calculate_atr(highs, lows, closes, period).atr
        smooth_plus = self.calculate_ema(plus_dm, period)
        smooth_minus = self.calculate_ema(minus_dm, period)

        plus_di: Series = []
        minus_di: Series = []
        dx: Series = []
        for i in range(len(closes)):
            if atr[i] is None or atr[i] == 0:
                plus_di.append(None)
                minus_di.append(None)
                dx.append(None)
                continue

            pdi = 100 * smooth_plus[i] / atr[i]
            mdi = 100 * smooth_minus[i] / atr[i]
            plus_di.append(pdi)
            minus_di.append(mdi)
            dx.append(100 * abs(pdi - mdi) / (pdi + mdi) if pdi + mdi != 0 else None)

        return ADXResult(adx=self.calculate_ema(dx, period), plus_di=plus_di, minus_di=minus_di)

    def calculate_ichimoku(self, highs: List[float], lows: List[float], closes: List[float]) -> IchimokuResult:
        """
        Calculate Ichimoku lines from rolling high/low midpoints.

        The chikou span is the close series itself; no backward shift is
        applied.
        """
        tenkan: Series = []
        kijun: Series = []
        span_a: Series = []
        span_b: Series = []

        for i in range(len(closes)):
            t = _midpoint(highs, lows, i, ICHIMOKU_TENKAN)
            k = _midpoint(highs, lows, i, ICHIMOKU_KIJUN)
            tenkan.append(t)
            kijun.append(k)
            span_a.append((t + k) / 2 if t is not None and k is not None else None)
            span_b.append(_midpoint(highs, lows, i, ICHIMOKU_SENKOU_B))

        return IchimokuResult(tenkan, kijun, span_a, span_b, list(closes))

    # ============================================
    # SUPPORT / RESISTANCE
    # ============================================

    def calculate_pivot_points(self, highs: List[float], lows: List[float], closes: List[float]) -> PivotPoints:
        """Classic floor pivots from the previous bar; None at index 0."""
        points = PivotPoints([], [], [], [], [], [], [])

        for i in range(len(closes)):
            if i == 0:
                for series in (points.pivot, points.r1, points.r2, points.r3,
                               points.s1, points.s2, points.s3):
                    series.append(None)
                continue

            high, low, close = highs[i - 1], lows[i - 1], closes[i - 1]
            p = (high + low + close) / 3
            points.pivot.append(p)
            points.r1.append(2 * p - low)
            points.s1.append(2 * p - high)
            points.r2.append(p + (high - low))
            points.s2.append(p - (high - low))
            points.r3.append(high + 2 * (p - low))
            points.s3.append(low - 2 * (high - p))

        return points

    # ============================================
    # UTILITIES
    # ============================================

    def detect_crossover(self, fast: Series, slow: Series) -> List[int]:
        """
        Crossover detection

        Returns 1 where fast crosses above slow, -1 where it crosses below and
        0 otherwise (including index 0 and any index touching an undefined value).
        """
        result: List[int] = []
        for i in range(len(fast)):
            values = (fast[i], slow[i], fast[i - 1], slow[i - 1]) if i > 0 else (None,)
            if any(v is None for v in values):
                result.append(0)
            elif fast[i] > slow[i] and fast[i - 1] <= slow[i - 1]:
                result.append(1)
            elif fast[i] < slow[i] and fast[i - 1] >= slow[i - 1]:
                result.append(-1)
            else:
                result.append(0)
        return result

    def calculate_correlation(
        self,
        series_a: Sequence[Optional[float]],
        series_b: Sequence[Optional[float]],
        period: int,
    ) -> Series:
        """Rolling Pearson correlation; 0 when either window has no variance."""
        result: Series = []
        for i in range(len(series_a)):
            window_a = _window(series_a, i, period)
            window_b = _window(series_b, i, period)
            if window_a is None or window_b is None:
                result.append(None)
                continue

            mean_a = sum(window_a) / period
            mean_b = sum(window_b) / period
            numerator = sum((a - mean_a) * (b - mean_b) for a, b in zip(window_a, window_b))
            denom_a = sum((a - mean_a) ** 2 for a in window_a)
            denom_b = sum((b - mean_b) ** 2 for b in window_b)

            if denom_a == 0 or denom_b == 0:
                result.append(0.0)
            else:
                result.append(numerator / math.sqrt(denom_a * denom_b))
        return result
