"""
Serialization of backtest results.

Renders results as CSV text (trades, equity curve, signals, bars), as a JSON
document bundling metadata + config + metrics + trades + equity + signals,
as a fixed-width trade log and as a metrics summary. Strategy configurations
can be exported and imported as JSON. Nothing here touches the filesystem.
"""

import csv
import io
import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Sequence

from pydantic import ValidationError

from exceptions import ExportFormatError
from models.backtest import (
    AccountSettings,
    BacktestConfig,
    BacktestResult,
    EquityPoint,
    ExportFormat,
    PerformanceMetricsResult,
    RiskManagement,
    Signal,
    StrategyConfigDocument,
    Trade,
)
from .data_loader import Bar

logger = logging.getLogger(__name__)

EXPORT_VERSION = "1.0.0"
PLATFORM = "QuantFlow"

TRADE_COLUMNS = [
    "id", "side", "entry_timestamp", "entry_price", "exit_timestamp", "exit_price",
    "pnl", "pnl_percent", "exit_reason", "status",
]
LOG_WIDTH = 100


def _fixed(value: Optional[float], decimals: int = 4) -> str:
    return "" if value is None else f"{value:.{decimals}f}"


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _to_csv(header: Sequence[str], rows: Iterable[Sequence[Any]]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(header)
    writer.writerows(rows)
    return buffer.getvalue()


# ============================================
# CSV
# ============================================

def trades_to_csv(trades: List[Trade]) -> str:
    """One row per trade; prices and P&L with 4 decimals, ISO-8601 timestamps."""
    return _to_csv(TRADE_COLUMNS, (
        [
            t.id,
            t.side.value,
            t.entry_timestamp.isoformat(),
            _fixed(t.entry_price),
            _iso(t.exit_timestamp) or "",
            _fixed(t.exit_price),
            _fixed(t.pnl),
            _fixed(t.pnl_percent),
            t.exit_reason or "",
            t.status.value,
        ]
        for t in trades
    ))


def parse_trades_csv(content: str) -> List[Trade]:
    """Parse the output of trades_to_csv back into Trade records."""
    reader = csv.DictReader(io.StringIO(content))
    if reader.fieldnames is None or set(TRADE_COLUMNS) - set(reader.fieldnames):
        raise ExportFormatError("Trades CSV is missing required columns", format=ExportFormat.TRADES_CSV.value)

    trades = []
    for row in reader:
        cleaned = {key: (value if value != "" else None) for key, value in row.items()}
        try:
            trades.append(Trade.model_validate(cleaned))
        except ValidationError as e:
            raise ExportFormatError(f"Invalid trade row {row.get('id')}: {e}",
                                    format=ExportFormat.TRADES_CSV.value)
    return trades


def equity_curve_to_csv(equity_curve: List[EquityPoint]) -> str:
    return _to_csv(["index", "timestamp", "equity", "drawdown_percent", "benchmark_percent"], (
        [i, p.timestamp.isoformat(), _fixed(p.equity), _fixed(p.drawdown_percent), _fixed(p.benchmark_percent)]
        for i, p in enumerate(equity_curve)
    ))


def signals_to_csv(signals: List[Signal]) -> str:
    return _to_csv(["index", "timestamp", "kind", "price", "reason"], (
        [i, s.timestamp.isoformat(), s.kind.value, _fixed(s.price), s.reason]
        for i, s in enumerate(signals)
    ))


def bars_to_csv(bars: List[Bar]) -> str:
    return _to_csv(["index", "timestamp", "open", "high", "low", "close", "volume"], (
        [i, b.timestamp.isoformat(), _fixed(b.open), _fixed(b.high), _fixed(b.low), _fixed(b.close), f"{b.volume:g}"]
        for i, b in enumerate(bars)
    ))


# ============================================
# JSON
# ============================================

def backtest_to_dict(result: BacktestResult, export_date: Optional[datetime] = None) -> Dict[str, Any]:
    """
    Build the complete export document.

    Floats are left unrounded; profit_factor may be float('inf').
    """
    export_date = export_date or datetime.now(timezone.utc)
    metrics = result.metrics

    return {
        "metadata": {
            "export_date": export_date.isoformat(),
            "version": EXPORT_VERSION,
            "platform": PLATFORM,
        },
        "config": {
            **result.config.model_dump(),
            "strategy": result.config.strategy.value,
            "start_timestamp": _iso(result.config.start_timestamp),
            "end_timestamp": _iso(result.config.end_timestamp),
        },
        "metrics": metrics.model_dump(),
        "trades": [
            {
                **t.model_dump(),
                "side": t.side.value,
                "status": t.status.value,
                "entry_timestamp": t.entry_timestamp.isoformat(),
                "exit_timestamp": _iso(t.exit_timestamp),
            }
            for t in result.trades
        ],
        "equity_curve": [{**p.model_dump(), "timestamp": p.timestamp.isoformat()} for p in result.equity_curve],
        "signals": [
            {**s.model_dump(), "timestamp": s.timestamp.isoformat(), "kind": s.kind.value}
            for s in result.signals
        ],
        "summary": {
            "total_trades": metrics.total_trades,
            "win_rate": metrics.win_rate,
            "total_return": metrics.total_return,
            "sharpe_ratio": metrics.sharpe_ratio,
            "max_drawdown": metrics.max_drawdown,
        },
        "run_time_ms": result.run_time_ms,
        "bars_processed": result.bars_processed,
    }


def backtest_to_json(result: BacktestResult, export_date: Optional[datetime] = None) -> str:
    """Serialize a result to the JSON export document (Infinity is written as a bare token)."""
    return json.dumps(backtest_to_dict(result, export_date), indent=2)


def parse_backtest_json(content: str) -> BacktestResult:
    """
    Parse a document produced by backtest_to_json back into a BacktestResult.

    Raises:
        ExportFormatError: the content is not JSON or lacks required sections
    """
    try:
        document = json.loads(content)
    except json.JSONDecodeError as e:
        raise ExportFormatError(f"Export document is not valid JSON: {e}", format=ExportFormat.JSON.value)

    if not isinstance(document, dict):
        raise ExportFormatError("Export document must be a JSON object", format=ExportFormat.JSON.value)

    missing = [key for key in ("config", "metrics", "trades") if key not in document]
    if missing:
        raise ExportFormatError(f"Export document is missing sections: {', '.join(missing)}",
                                format=ExportFormat.JSON.value)

    try:
        return BacktestResult(
            config=BacktestConfig.model_validate(document["config"]),
            metrics=PerformanceMetricsResult.model_validate(document["metrics"]),
            trades=[Trade.model_validate(t) for t in document["trades"]],
            equity_curve=[EquityPoint.model_validate(p) for p in document.get("equity_curve", [])],
            signals=[Signal.model_validate(s) for s in document.get("signals", [])],
            run_time_ms=document.get("run_time_ms", 0.0),
            bars_processed=document.get("bars_processed", 0),
        )
    except ValidationError as e:
        raise ExportFormatError(f"Export document failed validation: {e}", format=ExportFormat.JSON.value)


# ============================================
# TEXT REPORTS
# ============================================

def _log_time(value: Optional[datetime]) -> str:
    return value.strftime("%d/%m/%Y, %H:%M:%S") if value is not None else "N/A"


def _or_na(value: Optional[float]) -> str:
    return f"{value:.2f}" if value is not None else "N/A"


def generate_trade_log(trades: List[Trade], metrics: PerformanceMetricsResult) -> str:
    """Fixed-width trade log with a summary header."""
    lines = [
        "=" * LOG_WIDTH,
        "QUANTFLOW - TRADE LOG",
        "=" * LOG_WIDTH,
        "",
        "SUMMARY",
        "-" * LOG_WIDTH,
        f"Total Trades:     {metrics.total_trades}",
        f"Winning Trades:   {metrics.winning_trades} ({metrics.win_rate:.2f}%)",
        f"Losing Trades:    {metrics.losing_trades}",
        f"Net Profit:       {metrics.net_profit:.2f}",
        f"Total Return:     {metrics.total_return:.2f}%",
        f"Sharpe Ratio:     {metrics.sharpe_ratio:.2f}",
        f"Max Drawdown:     {metrics.max_drawdown:.2f}%",
        "",
        "TRADE DETAILS",
        "-" * LOG_WIDTH,
        f"{'ID':<5} {'Side':<8} {'Entry Time':<20} {'Entry':<12} "
        f"{'Exit Time':<20} {'Exit':<12} {'P&L':<12} {'P&L%':<10} Exit Reason",
        "-" * LOG_WIDTH,
    ]

    for t in trades:
        lines.append(
            f"{t.id:<5} {t.side.value:<8} {_log_time(t.entry_timestamp):<20} "
            f"{t.entry_price:<12.2f} {_log_time(t.exit_timestamp):<20} "
            f"{_or_na(t.exit_price):<12} {_or_na(t.pnl):<12} "
            f"{_or_na(t.pnl_percent):<10} {t.exit_reason or ''}"
        )

    lines.append("=" * LOG_WIDTH)
    return "\n".join(lines)


def generate_metrics_summary(metrics: PerformanceMetricsResult) -> str:
    m = metrics
    return "\n".join([
        "Performance Metrics Summary",
        "==========================",
        "",
        "RETURN METRICS",
        f"  Total Return:        {m.total_return:.2f}%",
        f"  Annualized Return:   {m.annualized_return:.2f}%",
        f"  CAGR:                {m.cagr:.2f}%",
        "",
        "RISK METRICS",
        f"  Sharpe Ratio:        {m.sharpe_ratio:.2f}",
        f"  Sortino Ratio:       {m.sortino_ratio:.2f}",
        f"  Max Drawdown:        {m.max_drawdown:.2f}%",
        f"  Max DD Duration:     {m.max_drawdown_duration} bars",
        f"  Calmar Ratio:        {m.calmar_ratio:.2f}",
        f"  Volatility:          {m.volatility:.2f}%",
        "",
        "TRADE METRICS",
        f"  Total Trades:        {m.total_trades}",
        f"  Win Rate:            {m.win_rate:.2f}%",
        f"  Profit Factor:       {m.profit_factor:.2f}",
        f"  Expectancy:          {m.expectancy:.2f}%",
        f"  Avg Trade Return:    {m.avg_trade_return:.2f}%",
        f"  Avg Win:             {m.avg_winning_trade:.2f}%",
        f"  Avg Loss:            {m.avg_losing_trade:.2f}%",
        f"  Largest Win:         {m.largest_win:.2f}",
        f"  Largest Loss:        {m.largest_loss:.2f}",
        f"  Avg Trade Duration:  {m.avg_trade_duration:.2f} hours",
        "",
        "FINANCIAL SUMMARY",
        f"  Gross Profit:        {m.gross_profit:.2f}",
        f"  Gross Loss:          {m.gross_loss:.2f}",
        f"  Net Profit:          {m.net_profit:.2f}",
        f"  Commission Paid:     {m.commission_paid:.2f}",
    ])


# ============================================
# STRATEGY CONFIG
# ============================================

def build_strategy_config(config: BacktestConfig, name: Optional[str] = None) -> StrategyConfigDocument:
    """Strategy config document for a run's configuration."""
    name = name or config.strategy.value
    return StrategyConfigDocument(
        name=name,
        description=f"Configuration for {name} strategy",
        strategy=config.strategy,
        params=dict(config.params),
        risk_management=RiskManagement(
            stop_loss_percent=config.params.get("stop_loss_percent", 2),
            take_profit_percent=config.params.get("take_profit_percent", 3),
            max_position_size=config.params.get("max_position_size", 1),
        ),
        backtest_settings=AccountSettings(
            initial_capital=config.initial_capital,
            commission_rate=config.commission_rate,
            slippage_rate=config.slippage_rate,
        ),
    )


def export_strategy_config(document: StrategyConfigDocument) -> str:
    return document.model_dump_json(indent=2)


def import_strategy_config(content: str) -> StrategyConfigDocument:
    """
    Parse a strategy config document.

    Raises:
        ExportFormatError: malformed JSON, unknown strategy or missing params
    """
    try:
        return StrategyConfigDocument.model_validate_json(content)
    except ValidationError as e:
        logger.warning(f"Rejected strategy config: {e.error_count()} validation errors")
        raise ExportFormatError(f"Invalid strategy config: {e}", format="strategy_config")


# ============================================
# DISPATCH
# ============================================

MEDIA_TYPES = {
    ExportFormat.JSON: "application/json",
    ExportFormat.TRADES_CSV: "text/csv",
    ExportFormat.EQUITY_CSV: "text/csv",
    ExportFormat.SIGNALS_CSV: "text/csv",
    ExportFormat.TRADE_LOG: "text/plain",
    ExportFormat.SUMMARY: "text/plain",
}


def render_export(result: BacktestResult, export_format: ExportFormat) -> str:
    """Render a result in one of the export formats."""
    if export_format == ExportFormat.JSON:
        return backtest_to_json(result)
    if export_format == ExportFormat.TRADES_CSV:
        return trades_to_csv(result.trades)
    if export_format == ExportFormat.EQUITY_CSV:
        return equity_curve_to_csv(result.equity_curve)
    if export_format == ExportFormat.SIGNALS_CSV:
        return signals_to_csv(result.signals)
    if export_format == ExportFormat.TRADE_LOG:
        return generate_trade_log(result.trades, result.metrics)
    if export_format == ExportFormat.SUMMARY:
        return generate_metrics_summary(result.metrics)
    raise ExportFormatError(f"Unsupported export format: {export_format}", format=str(export_format))
