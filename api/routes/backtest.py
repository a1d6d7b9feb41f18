"""
API routes for backtesting.

Provides endpoints to run, compare, optimize and export backtests.
Every request carries its bars inline or asks for the built-in sample dataset.
"""

import logging
from typing import List

from fastapi import APIRouter, HTTPException, Query
from fastapi.responses import Response
from pydantic import BaseModel

from config import get_backtest_settings
from exceptions import QuantFlowError
from models.backtest import (
    BacktestRequest,
    BacktestResult,
    CompareRequest,
    DatasetRequest,
    ExportFormat,
    OptimizationResult,
    OptimizeRequest,
    StrategyComparison,
    StrategyInfo,
    StrategyType,
)
from services.backtesting import (
    Bar,
    Candidate,
    compare_strategies,
    generate_sample_data,
    get_strategy_info,
    list_strategies,
    optimize_strategy,
    run_backtest,
)
from services.backtesting.export import MEDIA_TYPES, render_export

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/backtest", tags=["backtest"])


def _load_bars(request: DatasetRequest) -> List[Bar]:
    """Bars from the request body, or the sample dataset when none are given."""
    if request.bars is not None:
        return [
            Bar(timestamp=b.timestamp, open=b.open, high=b.high, low=b.low, close=b.close, volume=b.volume)
            for b in request.bars
        ]

    settings = get_backtest_settings()
    count = settings.sample_bars if request.sample_bars is None else request.sample_bars
    seed = settings.sample_seed if request.seed is None else request.seed
    return generate_sample_data(bars=count, seed=seed)


def _json(model: BaseModel) -> Response:
    # Pydantic writes +inf as "Infinity"; the stock encoder would reject it
    return Response(content=model.model_dump_json(), media_type="application/json")


def _run(request: BacktestRequest) -> BacktestResult:
    return run_backtest(
        _load_bars(request),
        request.strategy,
        request.strategy_params,
        initial_capital=request.initial_capital,
        commission_rate=request.commission_rate,
        slippage_rate=request.slippage_rate,
    )


@router.get("/strategies", response_model=List[StrategyInfo])
def list_strategies_endpoint():
    """
    List all available backtestable strategies.

    Returns information about each strategy including default parameters.
    """
    return list_strategies()


@router.get("/strategies/{strategy}", response_model=StrategyInfo)
def get_strategy_endpoint(strategy: StrategyType):
    return get_strategy_info(strategy)


@router.post("/run", response_model=BacktestResult)
def run_backtest_endpoint(request: BacktestRequest):
    """
    Run a backtest with the specified configuration.

    Example request:
    ```json
    {
        "strategy": "mean-reversion",
        "strategy_params": {
            "lookback_period": 20,
            "std_dev_multiplier": 2
        },
        "sample_bars": 1000,
        "seed": 12345,
        "initial_capital": 100000
    }
    ```
    """
    try:
        result = _run(request)
    except QuantFlowError as e:
        logger.warning(f"Rejected backtest request: {e}")
        raise HTTPException(status_code=400, detail=e.to_dict())

    return _json(result)


@router.post("/compare", response_model=List[StrategyComparison])
def compare_strategies_endpoint(request: CompareRequest):
    """Run several strategies on the same bars, best Sharpe ratio first."""
    candidates = [Candidate(strategy=c.strategy, name=c.name, params=c.params) for c in request.candidates]
    if not candidates:
        candidates = [Candidate(strategy=s) for s in StrategyType]

    try:
        results = compare_strategies(
            _load_bars(request),
            candidates,
            initial_capital=request.initial_capital,
            commission_rate=request.commission_rate,
            slippage_rate=request.slippage_rate,
        )
    except QuantFlowError as e:
        logger.warning(f"Rejected comparison request: {e}")
        raise HTTPException(status_code=400, detail=e.to_dict())

    content = "[" + ",".join(r.model_dump_json() for r in results) + "]"
    return Response(content=content, media_type="application/json")


@router.post("/optimize", response_model=OptimizationResult)
def optimize_strategy_endpoint(request: OptimizeRequest):
    """
    Exhaustive parameter sweep.

    Example request:
    ```json
    {
        "strategy": "ema-crossover",
        "param_ranges": {"fast_period": [5, 9, 12], "slow_period": [21, 30]},
        "metric": "sharpe_ratio"
    }
    ```
    """
    try:
        result = optimize_strategy(
            _load_bars(request),
            request.strategy,
            request.param_ranges,
            metric=request.metric,
            initial_capital=request.initial_capital,
        )
    except QuantFlowError as e:
        logger.warning(f"Rejected optimization request: {e}")
        raise HTTPException(status_code=400, detail=e.to_dict())

    return _json(result)


@router.post("/export")
def export_backtest_endpoint(
    request: BacktestRequest,
    format: ExportFormat = Query(default=ExportFormat.JSON),
):
    """Run a backtest and return it rendered in the requested export format."""
    try:
        result = _run(request)
        content = render_export(result, format)
    except QuantFlowError as e:
        logger.warning(f"Rejected export request: {e}")
        raise HTTPException(status_code=400, detail=e.to_dict())

    return Response(content=content, media_type=MEDIA_TYPES[format])


@router.get("/health")
def backtest_health():
    """Health check for backtest service."""
    return {"status": "healthy", "service": "backtest", "strategies": len(StrategyType)}
