"""
Shared machinery for backtestable strategies.

A strategy is a single forward pass over the bars. It owns a run-local
PositionTracker that holds at most one open LONG position, hands out trade
ids, and records the BUY / EXIT signals that accompany each entry and exit.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, List, Optional, Tuple

from exceptions import InvalidParameterError
from models.backtest import Signal, SignalType, StrategyInfo, StrategyType, Trade, TradeStatus
from services.indicators import IndicatorService
from ..data_loader import Bar

logger = logging.getLogger(__name__)

END_OF_DATA = "End of data"


@dataclass
class StrategyOutput:
    """Trades and signals produced by one strategy run."""
    trades: List[Trade] = field(default_factory=list)
    signals: List[Signal] = field(default_factory=list)


class PositionTracker:
    """
    FLAT / IN_POSITION state machine for one run.

    Trades are appended when they close, so every trade in `trades` is CLOSED
    once close_at_end() has run.
    """

    def __init__(self):
        self.trades: List[Trade] = []
        self.signals: List[Signal] = []
        self.current: Optional[Trade] = None
        self._next_id = 0

    @property
    def is_flat(self) -> bool:
        return self.current is None

    def enter(self, bar: Bar, reason: str) -> Trade:
        """Open a LONG position of size 1 at the bar close and emit a BUY signal."""
        trade = Trade(id=self._next_id, entry_timestamp=bar.timestamp, entry_price=bar.close)
        self._next_id += 1
        self.current = trade
        self.signals.append(Signal(
            timestamp=bar.timestamp, kind=SignalType.BUY, price=bar.close, reason=reason,
        ))
        logger.debug(f"Entered trade {trade.id} at {bar.close:.4f} ({reason})")
        return trade

    def exit(self, bar: Bar, reason: str) -> Trade:
        """Close the open position at the bar close and emit an EXIT signal."""
        trade = self._close(bar, reason)
        self.signals.append(Signal(
            timestamp=bar.timestamp, kind=SignalType.EXIT, price=bar.close, reason=reason,
        ))
        return trade

    def pnl_percent(self, price: float) -> float:
        return self.current.unrealized_pnl_percent(price)

    def close_at_end(self, bars: List[Bar]) -> None:
        """Force-close a position still open after the last bar (no signal emitted)."""
        if self.current is not None and bars:
            self._close(bars[-1], END_OF_DATA)

    def output(self) -> StrategyOutput:
        return StrategyOutput(trades=self.trades, signals=self.signals)

    def _close(self, bar: Bar, reason: str) -> Trade:
        trade = self.current
        trade.close(bar.timestamp, bar.close, reason)
        self.trades.append(trade)
        self.current = None
        logger.debug(f"Closed trade {trade.id} at {bar.close:.4f}: {trade.pnl_percent:.2f}% ({reason})")
        return trade


def stop_or_target(pnl_percent: float, stop_loss: float, take_profit: float) -> Optional[str]:
    """Exit reason for the fixed stop-loss / take-profit pair, stop-loss first."""
    if pnl_percent <= -stop_loss:
        return f"Stop Loss: {pnl_percent:.2f}%"
    if pnl_percent >= take_profit:
        return f"Take Profit: {pnl_percent:.2f}%"
    return None


def crossed_above(a: List[Optional[float]], b: List[Optional[float]], i: int) -> bool:
    return a[i] > b[i] and a[i - 1] <= b[i - 1]


def crossed_below(a: List[Optional[float]], b: List[Optional[float]], i: int) -> bool:
    return a[i] < b[i] and a[i - 1] >= b[i - 1]


def defined(*values: Optional[float]) -> bool:
    return all(v is not None for v in values)


class BaseStrategy:
    """
    Base class for the rule-based strategies.

    Subclasses declare their catalogue metadata and default parameters as
    class attributes and implement evaluate(). Parameters listed in
    `period_params` must be positive whole numbers and are passed to the
    strategy as ints.
    """

    strategy_type: ClassVar[StrategyType]
    name: ClassVar[str]
    description: ClassVar[str]
    category: ClassVar[str]
    best_market: ClassVar[str]
    default_params: ClassVar[Dict[str, float]] = {}
    period_params: ClassVar[Tuple[str, ...]] = ()

    def __init__(self, params: Optional[Dict[str, Any]] = None):
        self.params = self.resolve_params(params or {})
        self.indicators = IndicatorService()

    @classmethod
    def resolve_params(cls, params: Dict[str, Any]) -> Dict[str, float]:
        """Merge caller params over the defaults and validate them."""
        merged: Dict[str, float] = {}
        for key, value in {**cls.default_params, **params}.items():
            if isinstance(value, bool):
                raise InvalidParameterError(key, value, "must be a number")
            try:
                number = float(value)
            except (TypeError, ValueError):
                raise InvalidParameterError(key, value, "must be a number")
            if math.isnan(number):
                raise InvalidParameterError(key, value, "must be a number")

            if key in cls.period_params:
                if number <= 0 or number != int(number):
                    raise InvalidParameterError(key, value, "must be a positive integer")
                merged[key] = int(number)
            else:
                merged[key] = number
        return merged

    @classmethod
    def info(cls) -> StrategyInfo:
        return StrategyInfo(
            id=cls.strategy_type,
            name=cls.name,
            description=cls.description,
            category=cls.category,
            best_market=cls.best_market,
            default_params=dict(cls.default_params),
        )

    def run(self, bars: List[Bar]) -> StrategyOutput:
        """Evaluate the strategy over the bars and close any position left open."""
        tracker = PositionTracker()
        if bars:
            self.evaluate(bars, tracker)
            tracker.close_at_end(bars)
        return tracker.output()

    def evaluate(self, bars: List[Bar], tracker: PositionTracker) -> None:
        raise NotImplementedError
