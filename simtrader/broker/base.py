from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import date
from typing import TYPE_CHECKING, Iterable

from simtrader.core.types import TimeOfDay, TradeAction

if TYPE_CHECKING:
    from simtrader.ledger.position import Position
    from simtrader.ledger.trade import Trade


class Environment(ABC):
    """Broker commission, margin and slippage schedule."""

    @property
    @abstractmethod
    def minimum_equity_with_loan_value_new_position(self) -> float: ...

    @abstractmethod
    def commission_charged(self, trades: Iterable[Trade]) -> float:
        """Total commission for ``trades`` as a number <= 0."""

    @abstractmethod
    def broker_initial_margin(self, trade: Trade) -> float: ...

    @abstractmethod
    def broker_maintenance_margin(self, position: Position, as_of: date, time_of_day: TimeOfDay) -> float: ...

    @abstractmethod
    def reg_t_initial_margin(self, trade: Trade) -> float: ...

    @abstractmethod
    def reg_t_end_of_day_margin(self, position: Position, as_of: date, time_of_day: TimeOfDay) -> float: ...

    @abstractmethod
    def slippage_adjusted_price(self, price: float, action: TradeAction) -> float: ...
