"""Active strategy selection and signal history."""
from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import date
from typing import Iterable

from simtrader.core.config import StrategyConfig
from simtrader.core.exceptions import ConfigError
from simtrader.core.types import Signal
from simtrader.data.security import Security
from simtrader.strategy.base import TradeStrategy
from simtrader.strategy.breakout import AllTimeBreakout, TrailingBreakout
from simtrader.strategy.registry import StrategyRegistry
from simtrader.strategy.trend import DayWeekTrendAlignment, TrendTransition

logger = logging.getLogger("simtrader.strategy.manager")

STRATEGIES: dict[str, type[TradeStrategy]] = {
    TrailingBreakout.name: TrailingBreakout,
    AllTimeBreakout.name: AllTimeBreakout,
    TrendTransition.name: TrendTransition,
    DayWeekTrendAlignment.name: DayWeekTrendAlignment,
}


def create_strategy(config: StrategyConfig) -> TradeStrategy:
    cls = STRATEGIES.get(config.name)
    if cls is None:
        raise ConfigError(f"Unknown strategy: {config.name}")
    try:
        return cls(**config.params)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid parameters for strategy {config.name}: {exc}") from exc


def default_registry() -> StrategyRegistry:
    registry = StrategyRegistry()
    for cls in STRATEGIES.values():
        registry.register(cls())
    return registry


class StrategyManager:
    """Holds the available strategies and runs the active one over a universe.

    With ``max_workers`` above one, securities are evaluated on a thread
    pool. Signals come back in universe order either way.
    """

    def __init__(
        self,
        registry: StrategyRegistry | None = None,
        active: TradeStrategy | None = None,
        max_workers: int = 1,
    ) -> None:
        self.registry = registry if registry is not None else default_registry()
        self.max_workers = max_workers
        self._active: TradeStrategy | None = None
        self._history: list[Signal] = []
        self.set_strategy(active if active is not None else self.registry.all()[0])

    @classmethod
    def from_config(cls, config: StrategyConfig, max_workers: int = 1) -> StrategyManager:
        return cls(default_registry(), create_strategy(config), max_workers)

    @property
    def active_strategy(self) -> TradeStrategy:
        return self._active

    def set_strategy(self, strategy: TradeStrategy | str) -> None:
        """Activate a registered strategy by name, or a strategy instance.

        An instance replaces any registered strategy of the same name.
        """
        if isinstance(strategy, str):
            registered = self.registry.get(strategy)
            if registered is None:
                raise ConfigError(f"Unknown strategy: {strategy}")
            strategy = registered
        else:
            self.registry.replace(strategy)
        self._active = strategy
        logger.debug("Active strategy: %s", strategy.name)

    def generate_signals(self, universe: Iterable[Security], as_of: date) -> list[Signal]:
        securities = list(universe)
        if self.max_workers > 1 and len(securities) > 1:
            with ThreadPoolExecutor(max_workers=min(self.max_workers, len(securities))) as executor:
                results = executor.map(lambda s: self._active.generate_signals([s], as_of), securities)
                signals = [signal for batch in results for signal in batch]
        else:
            signals = self._active.generate_signals(securities, as_of)
        self._history.extend(signals)
        if signals:
            logger.debug("%s: %d signals from %s", as_of, len(signals), self._active.name)
        return signals

    def signal_history(self, security: Security | None = None) -> list[Signal]:
        if security is None:
            return list(self._history)
        return [s for s in self._history if s.security is security]

    def copy(self) -> StrategyManager:
        """Copy with fresh strategies and an empty signal history."""
        registry = self.registry.copy()
        return StrategyManager(registry, registry.get(self._active.name), self.max_workers)
