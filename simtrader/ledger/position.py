"""Positions built from executed trades.

Size, average cost and PnL are derived on demand from the executed trade
list as of a date; nothing is stored besides the trades themselves.
"""
from __future__ import annotations

import threading
from datetime import date
from typing import TYPE_CHECKING

from simtrader.core.exceptions import InvalidTradeForPositionError, InvalidTradeOperationError
from simtrader.core.types import PositionDirection, PriceBarSize, TimeOfDay, TradeStatus
from simtrader.data.security import Security
from simtrader.ledger.trade import Trade

if TYPE_CHECKING:
    from simtrader.broker.base import Environment


class IdArena:
    """Hands out increasing integer ids within one owner's scope."""

    def __init__(self, start: int = 0) -> None:
        self._next = start
        self._lock = threading.Lock()

    def next_id(self) -> int:
        with self._lock:
            self._next += 1
            return self._next

    def peek(self) -> int:
        return self._next

    def copy(self) -> IdArena:
        return IdArena(self._next)


class Position:
    def __init__(self, security: Security, position_id: int = 0) -> None:
        self.security = security
        self.position_id = position_id
        self._direction = PositionDirection.NOT_SET
        self.executed_trades: list[Trade] = []

    @property
    def direction(self) -> PositionDirection:
        return self._direction

    @property
    def ticker(self) -> str:
        return self.security.ticker

    def _trades_as_of(self, as_of: date) -> list[Trade]:
        return [t for t in self.executed_trades if t.trade_date <= as_of]

    # ------------------------------------------------------------------
    # Size and cost
    # ------------------------------------------------------------------

    def size(self, as_of: date) -> int:
        """Signed share count: positive long, negative short."""
        return sum(t.directional_quantity for t in self._trades_as_of(as_of))

    def is_open(self, as_of: date) -> bool:
        return self.size(as_of) != 0

    def average_cost(self, as_of: date) -> float:
        """Average cost of the currently open lot, rounded to 3 decimals."""
        if not self.is_open(as_of):
            return 0.0
        trades = sorted(self._trades_as_of(as_of), key=lambda t: t.trade_date)
        if not trades or int(trades[0].action) != int(self._direction):
            raise InvalidTradeOperationError(
                f"First trade of {self.ticker} position is not in the position direction"
            )

        shares_open = 0
        cost = 0.0
        for trade in trades:
            if int(trade.action) == int(self._direction):
                cost = (cost * shares_open + trade.total_cash_impact_absolute) / (shares_open + trade.quantity)
                shares_open += trade.quantity
            else:
                shares_open -= trade.quantity
                if shares_open < 0:
                    raise InvalidTradeOperationError(f"Negative open shares in {self.ticker} position")
                if shares_open == 0:
                    cost = 0.0
        return round(cost, 3)

    def net_cash_impact(self, as_of: date) -> float:
        """Sum of cash moved by this position's trades: sells positive, buys negative."""
        return sum(t.total_cash_impact for t in self._trades_as_of(as_of))

    # ------------------------------------------------------------------
    # Value and PnL
    # ------------------------------------------------------------------

    def _market_price(self, as_of: date, time_of_day: TimeOfDay) -> float:
        bar = self.security.get_price_bar_or_last_prior(as_of, PriceBarSize.DAILY, 1)
        if bar is None:
            raise InvalidTradeOperationError(f"No price available for {self.ticker} as of {as_of}")
        return bar.open if time_of_day == TimeOfDay.MARKET_OPEN else bar.close

    def gross_position_value(self, as_of: date, time_of_day: TimeOfDay) -> float:
        """Signed market value of the position (negative for shorts)."""
        size = self.size(as_of)
        if size == 0:
            return 0.0
        return size * self._market_price(as_of, time_of_day)

    def total_unrealized_pnl(self, as_of: date, time_of_day: TimeOfDay) -> float:
        size = self.size(as_of)
        if size == 0:
            return 0.0
        return (self._market_price(as_of, time_of_day) - self.average_cost(as_of)) * size

    def total_realized_pnl(self, as_of: date) -> float:
        trades = sorted(self._trades_as_of(as_of), key=lambda t: t.trade_date)
        direction = int(self._direction)
        if not any(int(t.action) != direction for t in trades):
            return 0.0

        # Re-opening activity after the last closing trade has not been realized
        while trades and int(trades[-1].action) == direction:
            trades.pop()

        shares_open = 0
        cost = 0.0
        realized = 0.0
        for trade in trades:
            if int(trade.action) == direction:
                cost = (cost * shares_open + trade.total_cash_impact_absolute) / (shares_open + trade.quantity)
                shares_open += trade.quantity
            else:
                realized += direction * (trade.executed_price - cost) * trade.quantity
                shares_open -= trade.quantity
        return realized

    def _opening_and_closing_dollars(self, as_of: date) -> tuple[float, float]:
        trades = self._trades_as_of(as_of)
        opening = sum(t.total_cash_impact for t in trades if int(t.action) == int(self._direction))
        closing = sum(t.total_cash_impact for t in trades if int(t.action) != int(self._direction))
        if self.is_open(as_of):
            closing += self.gross_position_value(as_of, TimeOfDay.MARKET_END_OF_DAY)
        return opening, closing

    def total_commission_paid(self, as_of: date, environment: Environment) -> float:
        return environment.commission_charged(self._trades_as_of(as_of))

    def total_return_dollars(self, as_of: date) -> float:
        opening, closing = self._opening_and_closing_dollars(as_of)
        return opening + closing

    def total_return_percentage(self, as_of: date) -> float:
        """(opening $ + closing $) / |opening $|, valuing any open shares at the close."""
        opening, closing = self._opening_and_closing_dollars(as_of)
        if opening == 0:
            return 0.0
        return (opening + closing) / abs(opening)

    def days_held(self, as_of: date) -> int:
        """Calendar days between the first trade and ``as_of`` or the closing trade."""
        trades = self._trades_as_of(as_of)
        if not trades:
            return 0
        first = min(t.trade_date for t in trades)
        if self.is_open(as_of):
            return (as_of - first).days
        return (max(t.trade_date for t in trades) - first).days

    def open_date(self) -> date | None:
        if not self.executed_trades:
            return None
        return min(t.trade_date for t in self.executed_trades)

    def close_date(self) -> date | None:
        if not self.executed_trades:
            return None
        last = max(t.trade_date for t in self.executed_trades)
        return None if self.is_open(last) else last

    # ------------------------------------------------------------------
    # Trade management
    # ------------------------------------------------------------------

    def check_trade(self, trade: Trade, as_of: date) -> None:
        """Raise if ``trade`` could not be added to this position on ``as_of``."""
        if trade.security is not self.security:
            raise InvalidTradeForPositionError(self.ticker, f"trade for {trade.ticker} does not match position")
        if not self.executed_trades:
            return

        current = self.size(as_of)
        if current == 0:
            raise InvalidTradeForPositionError(self.ticker, "position is already closed")

        new_size = current + trade.directional_quantity
        if new_size != 0 and (new_size > 0) != (self._direction == PositionDirection.LONG):
            raise InvalidTradeForPositionError(self.ticker, "trade would change position direction")

    def add_executed_trade(self, trade: Trade) -> None:
        if trade.security is not self.security:
            raise InvalidTradeForPositionError(self.ticker, f"trade for {trade.ticker} does not match position")
        if trade.status != TradeStatus.EXECUTED:
            raise InvalidTradeForPositionError(self.ticker, "trade must be executed before adding to position")

        self.check_trade(trade, trade.trade_date)
        if not self.executed_trades:
            self._direction = PositionDirection(int(trade.action))
        self.executed_trades.append(trade)

    def copy(self) -> Position:
        """Deep copy of the trade list; the security is shared."""
        ret = Position(self.security, self.position_id)
        ret._direction = self._direction
        ret.executed_trades = [t.copy() for t in self.executed_trades]
        return ret

    def __repr__(self) -> str:
        label = {PositionDirection.LONG: "LONG", PositionDirection.SHORT: "SHRT"}.get(self._direction, "FLAT")
        return f"Position({self.position_id:04d}: {label} {self.ticker}, trades={len(self.executed_trades)})"
