from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import date
from typing import Iterable

from simtrader.core.types import PriceBarSize, Signal
from simtrader.data.security import Security


class TradeStrategy(ABC):
    name: str
    description: str = ""
    bar_size: PriceBarSize = PriceBarSize.DAILY

    def generate_signals(self, universe: Iterable[Security], as_of: date) -> list[Signal]:
        """Signals for every security with a bar on ``as_of``."""
        signals: list[Signal] = []
        for security in universe:
            if security.get_price_bar(as_of, self.bar_size) is None:
                continue
            signal = self.generate_signal(security, as_of)
            if signal is not None:
                signals.append(signal)
        return signals

    @abstractmethod
    def generate_signal(self, security: Security, as_of: date) -> Signal | None: ...

    @abstractmethod
    def copy(self) -> TradeStrategy: ...
