"""
Simulated portfolio for backtesting.

Replays a strategy's trades over the bars and produces the equity curve:
commission on entry and exit, slippage on exit, unrealized P&L of the trade
currently held, running peak and drawdown, and a buy-and-hold benchmark.
"""

import logging
from collections import defaultdict
from typing import Dict, List, Optional, Set

from models.backtest import BacktestConfig, EquityPoint, Trade, TradeStatus
from .data_loader import Bar

logger = logging.getLogger(__name__)


class SimulatedPortfolio:
    """
    Single-position account replayed one bar at a time.

    `equity` is the realized balance; unrealized P&L of the held trade is
    added only to the recorded equity point and never to the balance.
    """

    def __init__(
        self,
        initial_capital: float = 100000,
        commission_rate: float = 0.0005,
        slippage_rate: float = 0.001,
    ):
        """
        Initialize the portfolio.

        Args:
            initial_capital: Starting balance
            commission_rate: Fraction of notional charged on entry and on exit
            slippage_rate: Fraction of exit notional lost to slippage
        """
        self.initial_capital = initial_capital
        self.commission_rate = commission_rate
        self.slippage_rate = slippage_rate

        self.equity = initial_capital
        self.peak_equity = initial_capital
        self.equity_curve: List[EquityPoint] = []

        self.open_trade: Optional[Trade] = None
        self._entry_notional = 0.0

    def open(self, trade: Trade) -> float:
        """Register a trade entry and deduct entry commission. Returns the commission."""
        notional = trade.entry_price * trade.size
        commission = notional * self.commission_rate
        self.equity -= commission
        self.open_trade = trade
        self._entry_notional = notional
        return commission

    def close(self, trade: Trade) -> float:
        """
        Book a trade exit.

        Adjusted P&L = raw P&L - exit slippage - exit commission.

        Returns:
            The adjusted P&L added to equity
        """
        exit_notional = trade.exit_price * trade.size
        slippage = exit_notional * self.slippage_rate
        commission = exit_notional * self.commission_rate
        adjusted_pnl = trade.pnl - slippage - commission

        self.equity += adjusted_pnl
        if self.equity > self.peak_equity:
            self.peak_equity = self.equity

        if self.open_trade is not None and self.open_trade.id == trade.id:
            self.open_trade = None
            self._entry_notional = 0.0

        logger.debug(f"Booked trade {trade.id}: adjusted P&L {adjusted_pnl:.4f}, equity {self.equity:.2f}")
        return adjusted_pnl

    def unrealized_pnl(self, price: float) -> float:
        if self.open_trade is None:
            return 0.0
        return price * self.open_trade.size - self._entry_notional

    def record_equity(self, bar: Bar, first_close: float) -> EquityPoint:
        """Record the equity point for a bar."""
        current_equity = self.equity + self.unrealized_pnl(bar.close)

        drawdown = 0.0
        if self.peak_equity > 0:
            drawdown = max((self.peak_equity - current_equity) / self.peak_equity * 100, 0.0)

        point = EquityPoint(
            timestamp=bar.timestamp,
            equity=current_equity,
            drawdown_percent=drawdown,
            benchmark_percent=(bar.close - first_close) / first_close * 100,
        )
        self.equity_curve.append(point)
        return point


def generate_equity_curve(bars: List[Bar], trades: List[Trade], config: BacktestConfig) -> List[EquityPoint]:
    """
    Generate the per-bar equity curve for a set of trades.

    Entries and exits are matched to bars by timestamp. Each trade's entry
    and exit are booked at most once, so duplicate bar timestamps do not
    double-charge. On every bar the entry is processed before the exit.

    Args:
        bars: The bars the strategy ran on
        trades: Trades produced by the strategy
        config: Run configuration (capital, commission, slippage)

    Returns:
        One EquityPoint per bar
    """
    portfolio = SimulatedPortfolio(config.initial_capital, config.commission_rate, config.slippage_rate)
    if not bars:
        return portfolio.equity_curve

    entries: Dict = defaultdict(list)
    exits: Dict = defaultdict(list)
    for trade in trades:
        entries[trade.entry_timestamp].append(trade)
        if trade.status == TradeStatus.CLOSED and trade.exit_timestamp is not None:
            exits[trade.exit_timestamp].append(trade)

    entered: Set[int] = set()
    exited: Set[int] = set()
    first_close = bars[0].close or 1

    for bar in bars:
        for trade in entries.get(bar.timestamp, ()):
            if trade.id not in entered:
                entered.add(trade.id)
                portfolio.open(trade)

        for trade in exits.get(bar.timestamp, ()):
            if trade.id not in exited and trade.pnl is not None:
                exited.add(trade.id)
                portfolio.close(trade)

        portfolio.record_equity(bar, first_close)

    return portfolio.equity_curve
