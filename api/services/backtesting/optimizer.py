"""
Strategy comparison and parameter optimization.

compare_strategies() runs several strategies on the same bars and ranks them
by Sharpe ratio. optimize_strategy() sweeps the Cartesian product of
candidate parameter values for one strategy and keeps the best score.
"""

import itertools
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

from config import OPTIMIZABLE_METRICS, get_backtest_settings
from exceptions import BacktestError, InvalidMetricError
from models.backtest import OptimizationResult, StrategyComparison, StrategyType
from services.logging_config import log_method
from .data_loader import Bar
from .engine import run_backtest
from .strategies import get_strategy_class

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]
CancelCheck = Callable[[], bool]


@dataclass
class Candidate:
    """One entry of a comparison: a strategy, a display name and its params."""
    strategy: Union[StrategyType, str]
    name: Optional[str] = None
    params: Dict[str, Any] = field(default_factory=dict)


def compare_strategies(
    bars: List[Bar],
    candidates: Sequence[Candidate],
    initial_capital: Optional[float] = None,
    commission_rate: Optional[float] = None,
    slippage_rate: Optional[float] = None,
) -> List[StrategyComparison]:
    """
    Run one backtest per candidate and rank by Sharpe ratio, best first.

    Ties keep the candidates' input order. Errors from a candidate (unknown
    strategy, bad parameter) propagate to the caller.
    """
    results: List[StrategyComparison] = []

    for candidate in candidates:
        start_time = time.perf_counter()
        result = run_backtest(
            bars,
            candidate.strategy,
            candidate.params,
            initial_capital=initial_capital,
            commission_rate=commission_rate,
            slippage_rate=slippage_rate,
        )
        execution_time_ms = (time.perf_counter() - start_time) * 1000

        strategy_type = result.config.strategy
        results.append(StrategyComparison(
            strategy=strategy_type,
            strategy_name=candidate.name or get_strategy_class(strategy_type).name,
            params=result.config.params,
            metrics=result.metrics,
            trades=result.trades,
            execution_time_ms=execution_time_ms,
        ))

    results.sort(key=lambda r: r.metrics.sharpe_ratio, reverse=True)
    logger.info(f"Compared {len(results)} strategies over {len(bars)} bars")
    return results


def parameter_grid(param_ranges: Dict[str, Sequence[float]]) -> List[Dict[str, float]]:
    """
    Cartesian product of candidate values.

    Keys vary in insertion order with the last key changing fastest. An empty
    mapping yields a single empty combination; any empty value list yields
    no combinations.
    """
    keys = list(param_ranges)
    return [dict(zip(keys, values)) for values in itertools.product(*(param_ranges[k] for k in keys))]


@log_method(logger=logger)
def optimize_strategy(
    bars: List[Bar],
    strategy: Union[StrategyType, str],
    param_ranges: Dict[str, Sequence[float]],
    metric: Optional[str] = None,
    initial_capital: Optional[float] = None,
    progress_callback: Optional[ProgressCallback] = None,
    should_cancel: Optional[CancelCheck] = None,
) -> OptimizationResult:
    """
    Exhaustive parameter sweep.

    Args:
        bars: Bars to backtest on
        strategy: Strategy id
        param_ranges: Candidate values per parameter
        metric: Metrics field to maximize (settings default when None)
        initial_capital: Starting capital for every run
        progress_callback: Called with (done, total) after each combination
        should_cancel: Checked before each combination; True stops the sweep
            and ranks what has completed

    Returns:
        The best OptimizationResult, or the all-zero result when no
        combination succeeded

    Raises:
        InvalidMetricError: metric is not a metrics field
        UnknownStrategyError: strategy is not registered
        BacktestError: the grid exceeds max_combinations
    """
    settings = get_backtest_settings()
    metric = metric or settings.optimize_metric
    if metric not in OPTIMIZABLE_METRICS:
        raise InvalidMetricError(metric, list(OPTIMIZABLE_METRICS))

    strategy_type = get_strategy_class(strategy).strategy_type
    combinations = parameter_grid(param_ranges)
    total = len(combinations)
    if total > settings.max_combinations:
        raise BacktestError(
            f"{total} parameter combinations exceeds the limit of {settings.max_combinations}",
            details={"combinations": total, "max_combinations": settings.max_combinations},
        )

    logger.info(f"Optimizing {strategy_type.value} over {total} combinations by {metric}")

    best: Optional[OptimizationResult] = None
    tested = 0
    failed = 0
    cancelled = False

    for done, params in enumerate(combinations, start=1):
        if should_cancel is not None and should_cancel():
            cancelled = True
            logger.info(f"Optimization cancelled after {done - 1}/{total} combinations")
            break

        tested += 1
        try:
            result = run_backtest(bars, strategy_type, params, initial_capital=initial_capital)
        except Exception as e:
            failed += 1
            logger.warning(f"Skipping combination {params}: {type(e).__name__}: {e}")
        else:
            score = float(getattr(result.metrics, metric))
            if best is None or score > best.score:
                best = OptimizationResult(params=params, metrics=result.metrics, score=score, metric=metric)

        if progress_callback is not None:
            progress_callback(done, total)

    if best is None:
        best = OptimizationResult(metric=metric)

    best.combinations_tested = tested
    best.combinations_failed = failed
    best.cancelled = cancelled

    logger.info(f"Best {metric} for {strategy_type.value}: {best.score:.4f} with {best.params} "
                f"({tested} tested, {failed} failed)")
    return best
