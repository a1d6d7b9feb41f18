"""
Backtestable trading strategies.

Each strategy subclasses BaseStrategy and implements:
- evaluate(bars, tracker) -> None, a single forward pass recording trades
  and signals on a run-local PositionTracker

run_strategy() looks the id up in STRATEGY_REGISTRY, merges the caller's
params over the strategy defaults and runs it.
"""

import logging
from typing import Any, Dict, List, Optional, Type, Union

from exceptions import UnknownStrategyError
from models.backtest import StrategyInfo, StrategyType
from ..data_loader import Bar
from .base import BaseStrategy, PositionTracker, StrategyOutput, END_OF_DATA
from .mean_reversion import MeanReversionStrategy
from .momentum import MomentumStrategy
from .vwap_bounce import VWAPBounceStrategy
from .rsi import RSIStrategy
from .breakout import BreakoutStrategy
from .ema_crossover import EMACrossoverStrategy
from .stochastic import StochasticStrategy
from .atr_trailing import ATRTrailingStrategy
from .combined import CombinedStrategy

logger = logging.getLogger(__name__)

STRATEGY_REGISTRY: Dict[StrategyType, Type[BaseStrategy]] = {
    cls.strategy_type: cls
    for cls in (
        MeanReversionStrategy,
        MomentumStrategy,
        VWAPBounceStrategy,
        RSIStrategy,
        BreakoutStrategy,
        EMACrossoverStrategy,
        StochasticStrategy,
        ATRTrailingStrategy,
        CombinedStrategy,
    )
}


def get_strategy_class(strategy: Union[StrategyType, str]) -> Type[BaseStrategy]:
    """Resolve a strategy id, raising UnknownStrategyError when it is not registered."""
    try:
        return STRATEGY_REGISTRY[StrategyType(strategy)]
    except ValueError:
        raise UnknownStrategyError(str(strategy), [s.value for s in STRATEGY_REGISTRY])


def create_strategy(strategy: Union[StrategyType, str], params: Optional[Dict[str, Any]] = None) -> BaseStrategy:
    return get_strategy_class(strategy)(params)


def run_strategy(
    strategy: Union[StrategyType, str],
    bars: List[Bar],
    params: Optional[Dict[str, Any]] = None,
) -> StrategyOutput:
    """
    Run a strategy over the bars.

    Args:
        strategy: Strategy id
        bars: Bars sorted by timestamp
        params: Overrides for the strategy's default parameters

    Returns:
        StrategyOutput with CLOSED trades and the BUY / EXIT signals
    """
    instance = create_strategy(strategy, params)
    output = instance.run(bars)
    logger.debug(
        f"{instance.strategy_type.value}: {len(output.trades)} trades, "
        f"{len(output.signals)} signals over {len(bars)} bars"
    )
    return output


def list_strategies() -> List[StrategyInfo]:
    """Catalogue entries in registry order."""
    return [cls.info() for cls in STRATEGY_REGISTRY.values()]


def get_strategy_info(strategy: Union[StrategyType, str]) -> StrategyInfo:
    return get_strategy_class(strategy).info()


__all__ = [
    "STRATEGY_REGISTRY",
    "BaseStrategy",
    "PositionTracker",
    "StrategyOutput",
    "END_OF_DATA",
    "MeanReversionStrategy",
    "MomentumStrategy",
    "VWAPBounceStrategy",
    "RSIStrategy",
    "BreakoutStrategy",
    "EMACrossoverStrategy",
    "StochasticStrategy",
    "ATRTrailingStrategy",
    "CombinedStrategy",
    "get_strategy_class",
    "create_strategy",
    "run_strategy",
    "list_strategies",
    "get_strategy_info",
]
