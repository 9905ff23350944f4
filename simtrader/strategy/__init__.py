from simtrader.strategy.base import TradeStrategy
from simtrader.strategy.breakout import AllTimeBreakout, TrailingBreakout
from simtrader.strategy.manager import STRATEGIES, StrategyManager, create_strategy, default_registry
from simtrader.strategy.registry import StrategyRegistry
from simtrader.strategy.trend import DayWeekTrendAlignment, TrendTransition

__all__ = [
    "TradeStrategy",
    "TrailingBreakout",
    "AllTimeBreakout",
    "TrendTransition",
    "DayWeekTrendAlignment",
    "StrategyRegistry",
    "StrategyManager",
    "STRATEGIES",
    "create_strategy",
    "default_registry",
]
