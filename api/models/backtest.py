"""
Pydantic models for backtesting
Trade, signal, equity and metrics records plus API request/response models
"""
from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional, Dict
from datetime import datetime
from enum import Enum


# ============== Enums ==============

class StrategyType(str, Enum):
    """Identifier of a backtestable strategy"""
    MEAN_REVERSION = "mean-reversion"
    MOMENTUM = "momentum"
    VWAP_BOUNCE = "vwap-bounce"
    RSI = "rsi"
    BREAKOUT = "breakout"
    EMA_CROSSOVER = "ema-crossover"
    STOCHASTIC = "stochastic"
    ATR_TRAILING = "atr-trailing"
    COMBINED = "combined"


class SignalType(str, Enum):
    """Kind of signal emitted by a strategy"""
    BUY = "BUY"
    SELL = "SELL"
    EXIT = "EXIT"


class TradeSide(str, Enum):
    """Direction tag of a trade (all shipped strategies trade LONG)"""
    LONG = "LONG"
    SHORT = "SHORT"


class TradeStatus(str, Enum):
    OPEN = "OPEN"
    CLOSED = "CLOSED"


class ExportFormat(str, Enum):
    """Serializations offered for a backtest result"""
    JSON = "json"
    TRADES_CSV = "trades_csv"
    EQUITY_CSV = "equity_csv"
    SIGNALS_CSV = "signals_csv"
    TRADE_LOG = "trade_log"
    SUMMARY = "summary"


# ============== Core records ==============

class Signal(BaseModel):
    """A strategy decision at a bar, one per entry and one per exit"""
    timestamp: datetime
    kind: SignalType
    price: float
    reason: str = ""


class Trade(BaseModel):
    """
    A single round trip.

    Created OPEN when a strategy enters and closed exactly once through
    close(). Exit fields are populated iff status is CLOSED.
    """
    id: int
    entry_timestamp: datetime
    entry_price: float
    exit_timestamp: Optional[datetime] = None
    exit_price: Optional[float] = None
    side: TradeSide = TradeSide.LONG
    size: float = 1.0
    pnl: Optional[float] = None
    pnl_percent: Optional[float] = None
    status: TradeStatus = TradeStatus.OPEN
    exit_reason: Optional[str] = None

    def unrealized_pnl_percent(self, price: float) -> float:
        """Percent move from entry to price (0 when the entry price is 0)."""
        if self.entry_price == 0:
            return 0.0
        return (price - self.entry_price) / self.entry_price * 100

    def close(self, timestamp: datetime, price: float, reason: str) -> None:
        """Close the trade. Raises ValueError if it is already closed."""
        if self.status == TradeStatus.CLOSED:
            raise ValueError(f"Trade {self.id} is already closed")
        self.exit_timestamp = timestamp
        self.exit_price = price
        self.pnl = (price - self.entry_price) * self.size
        self.pnl_percent = self.unrealized_pnl_percent(price)
        self.exit_reason = reason
        self.status = TradeStatus.CLOSED


class EquityPoint(BaseModel):
    """Equity snapshot, exactly one per input bar"""
    timestamp: datetime
    equity: float
    drawdown_percent: float
    benchmark_percent: float


class PerformanceMetricsResult(BaseModel):
    """
    Performance metrics for a backtest.

    Percent-valued fields (returns, drawdown, volatility, win rate, trade
    returns) are in percent units. profit_factor is +inf when there are no
    losses but some profit.
    """
    model_config = ConfigDict(ser_json_inf_nan="strings")

    # Return metrics
    total_return: float = 0.0
    annualized_return: float = 0.0
    cagr: float = 0.0

    # Risk metrics
    sharpe_ratio: float = 0.0
    sortino_ratio: float = 0.0
    max_drawdown: float = 0.0
    max_drawdown_duration: int = 0  # bars
    calmar_ratio: float = 0.0
    volatility: float = 0.0

    # Trade metrics
    win_rate: float = 0.0
    profit_factor: float = 0.0
    expectancy: float = 0.0
    total_trades: int = 0
    winning_trades: int = 0
    losing_trades: int = 0
    avg_trade_return: float = 0.0
    avg_winning_trade: float = 0.0
    avg_losing_trade: float = 0.0
    largest_win: float = 0.0
    largest_loss: float = 0.0
    avg_trade_duration: float = 0.0  # hours

    # Money
    gross_profit: float = 0.0
    gross_loss: float = 0.0
    net_profit: float = 0.0
    commission_paid: float = 0.0


class BacktestConfig(BaseModel):
    """Immutable configuration of a single run"""
    model_config = ConfigDict(frozen=True)

    strategy: StrategyType
    params: Dict[str, float] = {}
    initial_capital: float = 100000.0
    commission_rate: float = 0.0005
    slippage_rate: float = 0.001
    start_timestamp: Optional[datetime] = None
    end_timestamp: Optional[datetime] = None


class BacktestResult(BaseModel):
    """Complete output of one pipeline run"""
    config: BacktestConfig
    trades: List[Trade]
    signals: List[Signal]
    equity_curve: List[EquityPoint]
    metrics: PerformanceMetricsResult
    run_time_ms: float = 0.0
    bars_processed: int = 0


class StrategyComparison(BaseModel):
    """One row of a multi-strategy comparison"""
    strategy: StrategyType
    strategy_name: str
    params: Dict[str, float] = {}
    metrics: PerformanceMetricsResult
    trades: List[Trade] = []
    execution_time_ms: float = 0.0


class OptimizationResult(BaseModel):
    """Best parameter set found by a sweep"""
    params: Dict[str, float] = {}
    metrics: PerformanceMetricsResult = Field(default_factory=PerformanceMetricsResult)
    score: float = 0.0
    metric: str = "sharpe_ratio"
    combinations_tested: int = 0
    combinations_failed: int = 0
    cancelled: bool = False


class StrategyInfo(BaseModel):
    """Catalogue entry describing a strategy"""
    id: StrategyType
    name: str
    description: str
    category: str
    best_market: str
    default_params: Dict[str, float]


# ============== API request models ==============

class BarInput(BaseModel):
    """OHLCV bar as supplied by an API caller"""
    timestamp: datetime
    open: float
    high: float
    low: float
    close: float
    volume: float = Field(default=0.0, ge=0)


class DatasetRequest(BaseModel):
    """Bars for a request: explicit bars, or the built-in sample dataset"""
    bars: Optional[List[BarInput]] = None
    sample_bars: Optional[int] = Field(default=None, ge=0, le=100000)
    seed: Optional[int] = None


class BacktestRequest(DatasetRequest):
    """Request to run a single backtest"""
    strategy: StrategyType = StrategyType.MEAN_REVERSION
    strategy_params: Dict[str, float] = {}
    initial_capital: Optional[float] = Field(default=None, gt=0)
    commission_rate: Optional[float] = Field(default=None, ge=0)
    slippage_rate: Optional[float] = Field(default=None, ge=0)


class ComparisonCandidate(BaseModel):
    strategy: StrategyType
    name: Optional[str] = None
    params: Dict[str, float] = {}


class CompareRequest(DatasetRequest):
    """Request to compare several strategies on the same bars"""
    candidates: List[ComparisonCandidate] = []
    initial_capital: Optional[float] = Field(default=None, gt=0)
    commission_rate: Optional[float] = Field(default=None, ge=0)
    slippage_rate: Optional[float] = Field(default=None, ge=0)


class OptimizeRequest(DatasetRequest):
    """Request to sweep a strategy's parameters"""
    strategy: StrategyType
    param_ranges: Dict[str, List[float]]
    metric: Optional[str] = None
    initial_capital: Optional[float] = Field(default=None, gt=0)


# ============== Strategy config documents ==============

class RiskManagement(BaseModel):
    stop_loss_percent: float = 2.0
    take_profit_percent: float = 3.0
    max_position_size: float = 1.0
    max_drawdown_percent: float = 15.0


class AccountSettings(BaseModel):
    initial_capital: float = 100000.0
    commission_rate: float = 0.0005
    slippage_rate: float = 0.001


class StrategyConfigDocument(BaseModel):
    """Portable strategy configuration that can be exported and re-imported"""
    name: str
    description: Optional[str] = None
    strategy: StrategyType
    params: Dict[str, float]
    risk_management: RiskManagement = Field(default_factory=RiskManagement)
    backtest_settings: AccountSettings = Field(default_factory=AccountSettings)
