"""Trade orders and their status lifecycle.

Status transitions::

    INDICATED -> PENDING -> EXECUTED | CANCELLED | REJECTED
    STOPLOSS  -> EXECUTED | CANCELLED

A cancelled trade never changes status again, and an executed trade keeps
its execution date and price.
"""
from __future__ import annotations

from datetime import date

from simtrader.core.exceptions import InvalidTradeOperationError
from simtrader.core.types import TradeAction, TradePriority, TradeStatus, TradeType
from simtrader.data.security import Security


class Trade:
    """A buy or sell order for a positive quantity of one security."""

    def __init__(
        self,
        security: Security,
        action: TradeAction,
        quantity: int,
        trade_type: TradeType,
        limit_price: float = 0.0,
        stop_price: float = 0.0,
        trade_date: date | None = None,
        priority: TradePriority = TradePriority.NOT_SET,
    ) -> None:
        if quantity < 0:
            raise InvalidTradeOperationError(f"Trade quantity must not be negative, got {quantity}")
        if trade_type == TradeType.LIMIT and limit_price <= 0:
            raise InvalidTradeOperationError("Limit trades must specify a positive limit price")
        if trade_type == TradeType.STOP and stop_price <= 0:
            raise InvalidTradeOperationError("Stop trades must specify a positive stop price")

        self.security = security
        self._action = TradeAction(action)
        self._quantity = int(quantity)
        self._trade_type = trade_type
        self.limit_price = limit_price
        self.stop_price = stop_price
        self.trade_date = trade_date
        self.priority = priority
        self.priority_score = 0.0
        self.trade_id: int | None = None
        self._status = TradeStatus.NOT_SET
        self._executed_price = 0.0

    # ------------------------------------------------------------------
    # Immutable order terms
    # ------------------------------------------------------------------

    @property
    def action(self) -> TradeAction:
        return self._action

    @property
    def quantity(self) -> int:
        return self._quantity

    @property
    def trade_type(self) -> TradeType:
        return self._trade_type

    @property
    def ticker(self) -> str:
        return self.security.ticker

    @property
    def directional_quantity(self) -> int:
        return int(self._action) * self._quantity

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    @property
    def status(self) -> TradeStatus:
        return self._status

    @status.setter
    def status(self, value: TradeStatus) -> None:
        if self._status == TradeStatus.CANCELLED and value != TradeStatus.CANCELLED:
            raise InvalidTradeOperationError(
                f"Attempted to change status of cancelled trade {self.trade_id} to {value.value}"
            )
        if self._status == TradeStatus.EXECUTED and value != TradeStatus.EXECUTED:
            raise InvalidTradeOperationError(
                f"Attempted to change status of executed trade {self.trade_id} to {value.value}"
            )
        self._status = value

    @property
    def executed_price(self) -> float:
        return self._executed_price

    @property
    def is_executed(self) -> bool:
        return self._status == TradeStatus.EXECUTED

    def mark_executed(self, execution_date: date, execution_price: float) -> None:
        """Record the fill. The trade date becomes the execution date."""
        if self._quantity <= 0:
            raise InvalidTradeOperationError(f"Invalid trade quantity {self._quantity}, cannot execute")
        if self._status == TradeStatus.EXECUTED:
            raise InvalidTradeOperationError(f"Trade {self.trade_id} already executed")
        self.status = TradeStatus.EXECUTED
        self.trade_date = execution_date
        self._executed_price = execution_price

    # ------------------------------------------------------------------
    # Cash
    # ------------------------------------------------------------------

    @property
    def expected_execution_price(self) -> float:
        if self._trade_type == TradeType.LIMIT:
            return self.limit_price
        if self._trade_type == TradeType.STOP:
            return self.stop_price
        raise InvalidTradeOperationError("Cannot determine expected execution price for a market trade")

    def _price(self) -> float:
        return self._executed_price if self.is_executed else self.expected_execution_price

    @property
    def total_cash_impact(self) -> float:
        """Cash moved by the fill: negative for buys, positive for sells."""
        return -(self.directional_quantity * self._price())

    @property
    def total_cash_impact_absolute(self) -> float:
        return self._quantity * self._price()

    def copy(self, quantity: int | None = None) -> Trade:
        """Return an unqueued clone carrying no trade id."""
        ret = Trade(
            security=self.security,
            action=self._action,
            quantity=self._quantity if quantity is None else quantity,
            trade_type=self._trade_type,
            limit_price=self.limit_price,
            stop_price=self.stop_price,
            trade_date=self.trade_date,
            priority=self.priority,
        )
        ret.priority_score = self.priority_score
        ret._status = self._status
        ret._executed_price = self._executed_price
        return ret

    def __repr__(self) -> str:
        side = "BOT" if self._action == TradeAction.BUY else "SLD"
        if self.is_executed:
            price = self._executed_price
        elif self._trade_type == TradeType.MARKET:
            price = 0.0
        else:
            price = self.expected_execution_price
        return (
            f"Trade({self.trade_id}: {side} {self._quantity} {self.ticker} "
            f"{self._trade_type.value} @ {price:.2f} on {self.trade_date} [{self._status.value}])"
        )
