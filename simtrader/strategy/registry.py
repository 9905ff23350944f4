from __future__ import annotations

from simtrader.strategy.base import TradeStrategy


class StrategyRegistry:
    """Strategies keyed by name, in registration order."""

    def __init__(self) -> None:
        self._by_name: dict[str, TradeStrategy] = {}

    def register(self, strategy: TradeStrategy) -> None:
        if strategy.name in self._by_name:
            raise ValueError(f"Strategy already registered: {strategy.name}")
        self._by_name[strategy.name] = strategy

    def replace(self, strategy: TradeStrategy) -> None:
        """Register ``strategy``, swapping out any strategy of the same name."""
        self._by_name[strategy.name] = strategy

    def get(self, name: str) -> TradeStrategy | None:
        return self._by_name.get(name)

    def names(self) -> list[str]:
        return list(self._by_name)

    def all(self) -> list[TradeStrategy]:
        return list(self._by_name.values())

    def copy(self) -> StrategyRegistry:
        ret = StrategyRegistry()
        for strategy in self._by_name.values():
            ret.register(strategy.copy())
        return ret
