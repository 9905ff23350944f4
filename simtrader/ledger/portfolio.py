"""Portfolio ledger with broker-style cash and margin accounting.

All account values are evaluated as of a date and a time of day: market
open values use the day's opening prices, end-of-day values the close.

The Special Memorandum Account (SMA) is defined on the prior trading day's
balance::

    SMA(d) = max(SMA(d - 1) - RegTInitialMargin(d), ELV(d) - RegTMaintenanceMargin(d))

anchored at the trading day before inception with the initial cash balance.
End-of-day values are memoized per date; recording a trade drops every
memoized value on or after the trade date.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import date
from typing import TYPE_CHECKING, Literal

from simtrader.core import calendar
from simtrader.core.exceptions import InvalidTradeForPositionError, InvalidTradeOperationError
from simtrader.core.types import (
    MarginType,
    PortfolioDirection,
    PositionDirection,
    PositionStatus,
    TimeOfDay,
    TradeAction,
    TradeStatus,
)
from simtrader.data.security import Security
from simtrader.ledger.position import IdArena, Position
from simtrader.ledger.trade import Trade

if TYPE_CHECKING:
    from simtrader.broker.base import Environment

logger = logging.getLogger("simtrader.ledger.portfolio")

EOD = TimeOfDay.MARKET_END_OF_DAY


@dataclass(frozen=True)
class PortfolioSetup:
    initial_cash: float = 100_000.0
    inception_date: date = date(2019, 1, 2)
    direction: PortfolioDirection = PortfolioDirection.LONG_SHORT
    margin_type: MarginType = MarginType.REG_T

    def with_inception(self, inception_date: date) -> PortfolioSetup:
        return replace(self, inception_date=inception_date)


@dataclass(frozen=True)
class PositionEvent:
    """Raised by the ledger when a position opens or closes."""

    kind: Literal["opened", "closed"]
    position: Position
    as_of: date


class Portfolio:
    def __init__(
        self,
        setup: PortfolioSetup,
        environment: Environment,
        name: str = "Default Portfolio",
    ) -> None:
        self.setup = setup
        self.environment = environment
        self.name = name
        self.positions: list[Position] = []
        self._position_ids = IdArena()
        self._sma_memo: dict[date, float] = {}
        self._events: list[PositionEvent] = []

    def set_inception_date(self, inception_date: date) -> None:
        self.setup = self.setup.with_inception(inception_date)
        self._sma_memo.clear()

    # ------------------------------------------------------------------
    # Positions
    # ------------------------------------------------------------------

    def has_open_position(self, security: Security, as_of: date) -> bool:
        return any(p.security is security and p.is_open(as_of) for p in self.positions)

    def get_position(self, security: Security, as_of: date) -> Position | None:
        """The open position in ``security`` as of a date, if any."""
        for position in self.positions:
            if position.security is security and position.is_open(as_of):
                return position
        return None

    def get_positions(self, status: PositionStatus | None = None, as_of: date | None = None) -> list[Position]:
        if status is None:
            return list(self.positions)
        if as_of is None:
            raise InvalidTradeOperationError("as_of is required to filter positions by status")
        if status == PositionStatus.OPEN:
            return [p for p in self.positions if p.is_open(as_of)]
        return [p for p in self.positions if not p.is_open(as_of)]

    def get_positions_for(self, security: Security) -> list[Position]:
        return [p for p in self.positions if p.security is security]

    def open_position_count(self, as_of: date) -> int:
        return len(self.get_positions(PositionStatus.OPEN, as_of))

    def executed_trades(self, as_of: date | None = None) -> list[Trade]:
        trades = [t for p in self.positions for t in p.executed_trades]
        if as_of is not None:
            trades = [t for t in trades if t.trade_date <= as_of]
        return trades

    def add_executed_trade(self, trade: Trade) -> Position:
        """Record an executed trade against the open position, opening one if needed."""
        if trade.status != TradeStatus.EXECUTED:
            raise InvalidTradeOperationError("Trade must be marked executed before sending to portfolio")

        position = self.get_position(trade.security, trade.trade_date)
        if position is None:
            self._check_direction(trade)
            position = Position(trade.security, self._position_ids.next_id())
            position.add_executed_trade(trade)
            self.positions.append(position)
        else:
            position.add_executed_trade(trade)

        self._invalidate_sma(trade.trade_date)

        if len(position.executed_trades) == 1:
            self._events.append(PositionEvent("opened", position, trade.trade_date))
        if not position.is_open(trade.trade_date):
            self._events.append(PositionEvent("closed", position, trade.trade_date))
        return position

    def check_trade(self, trade: Trade, as_of: date) -> None:
        """Raise the error ``add_executed_trade`` would raise for ``trade`` filled on ``as_of``.

        Raises:
            InvalidTradeForPositionError: If the trade breaks the portfolio
                direction, flips or adds to a closed position.
        """
        position = self.get_position(trade.security, as_of)
        if position is None:
            self._check_direction(trade)
        else:
            position.check_trade(trade, as_of)

    def _check_direction(self, trade: Trade) -> None:
        allowed = self.setup.direction
        if allowed == PortfolioDirection.LONG_ONLY and trade.action != TradeAction.BUY:
            raise InvalidTradeForPositionError(trade.ticker, "portfolio is long only")
        if allowed == PortfolioDirection.SHORT_ONLY and trade.action != TradeAction.SELL:
            raise InvalidTradeForPositionError(trade.ticker, "portfolio is short only")

    def drain_position_events(self) -> list[PositionEvent]:
        events, self._events = self._events, []
        return events

    def copy(self) -> Portfolio:
        """Deep copy for what-if evaluation. Pending position events are not copied."""
        ret = Portfolio(self.setup, self.environment, f"{self.name} (Copy)")
        ret.positions = [p.copy() for p in self.positions]
        ret._position_ids = self._position_ids.copy()
        ret._sma_memo = dict(self._sma_memo)
        return ret

    # ------------------------------------------------------------------
    # Cash
    # ------------------------------------------------------------------

    def total_cash_value(self, as_of: date) -> float:
        """Initial cash + purchases and proceeds + commissions (negative)."""
        return self.setup.initial_cash + self.total_cash_purchases_and_proceeds(as_of) + self.total_commissions(as_of)

    def total_cash_purchases_and_proceeds(self, as_of: date) -> float:
        return sum(p.net_cash_impact(as_of) for p in self.positions)

    def total_commissions(self, as_of: date) -> float:
        return self.environment.commission_charged(self.executed_trades(as_of))

    # ------------------------------------------------------------------
    # Market value
    # ------------------------------------------------------------------

    def long_stock_value(self, as_of: date, time_of_day: TimeOfDay = EOD) -> float:
        return sum(
            p.gross_position_value(as_of, time_of_day)
            for p in self.positions
            if p.direction == PositionDirection.LONG and p.is_open(as_of)
        )

    def short_stock_value(self, as_of: date, time_of_day: TimeOfDay = EOD) -> float:
        """Market value of short positions as a negative number."""
        return sum(
            p.gross_position_value(as_of, time_of_day)
            for p in self.positions
            if p.direction == PositionDirection.SHORT and p.is_open(as_of)
        )

    def stock_value(self, as_of: date, time_of_day: TimeOfDay = EOD) -> float:
        return self.long_stock_value(as_of, time_of_day) + self.short_stock_value(as_of, time_of_day)

    # Equities only; other asset classes carry no value.
    def long_option_value(self, as_of: date, time_of_day: TimeOfDay = EOD) -> float:
        return 0.0

    def short_option_value(self, as_of: date, time_of_day: TimeOfDay = EOD) -> float:
        return 0.0

    def bond_value(self, as_of: date, time_of_day: TimeOfDay = EOD) -> float:
        return 0.0

    def fund_value(self, as_of: date, time_of_day: TimeOfDay = EOD) -> float:
        return 0.0

    def euro_asian_options_value(self, as_of: date, time_of_day: TimeOfDay = EOD) -> float:
        return 0.0

    def equity_with_loan_value(self, as_of: date, time_of_day: TimeOfDay = EOD) -> float:
        return (
            self.total_cash_value(as_of)
            + self.stock_value(as_of, time_of_day)
            + self.bond_value(as_of, time_of_day)
            + self.fund_value(as_of, time_of_day)
            + self.euro_asian_options_value(as_of, time_of_day)
        )

    def gross_position_value(self, as_of: date, time_of_day: TimeOfDay = EOD) -> float:
        return (
            self.long_stock_value(as_of, time_of_day)
            + abs(self.short_stock_value(as_of, time_of_day))
            + self.long_option_value(as_of, time_of_day)
            + self.short_option_value(as_of, time_of_day)
            + self.fund_value(as_of, time_of_day)
        )

    def net_liquidation_value(self, as_of: date, time_of_day: TimeOfDay = EOD) -> float:
        return (
            self.total_cash_value(as_of)
            + self.stock_value(as_of, time_of_day)
            + self.long_option_value(as_of, time_of_day)
            + self.short_option_value(as_of, time_of_day)
            + self.fund_value(as_of, time_of_day)
        )

    # ------------------------------------------------------------------
    # Margin
    # ------------------------------------------------------------------

    def _maintenance_margin(self, position: Position, as_of: date, time_of_day: TimeOfDay) -> float:
        if self.setup.margin_type == MarginType.CASH:
            return abs(position.gross_position_value(as_of, time_of_day))
        return self.environment.broker_maintenance_margin(position, as_of, time_of_day)

    def broker_initial_margin_requirement(self, as_of: date, time_of_day: TimeOfDay = EOD) -> float:
        return sum(self._maintenance_margin(p, as_of, time_of_day) for p in self.positions)

    def broker_maintenance_margin_requirement(self, as_of: date, time_of_day: TimeOfDay = EOD) -> float:
        return sum(
            self._maintenance_margin(p, as_of, time_of_day) for p in self.positions if p.is_open(as_of)
        )

    def available_funds(self, as_of: date, time_of_day: TimeOfDay = EOD) -> float:
        return self.equity_with_loan_value(as_of, time_of_day) - self.broker_maintenance_margin_requirement(
            as_of, time_of_day
        )

    def excess_liquidity(self, as_of: date, time_of_day: TimeOfDay = EOD) -> float:
        return self.equity_with_loan_value(as_of, time_of_day) - self.broker_maintenance_margin_requirement(
            as_of, time_of_day
        )

    def reg_t_maintenance_margin_requirement(self, as_of: date, time_of_day: TimeOfDay = EOD) -> float:
        return sum(
            self.environment.reg_t_end_of_day_margin(p, as_of, time_of_day)
            for p in self.positions
            if p.is_open(as_of)
        )

    def reg_t_initial_margin_requirement(self, as_of: date) -> float:
        """Net Reg-T initial margin of trades executed on ``as_of``.

        Opening trades add margin, closing trades release it.
        """
        total = 0.0
        for position in self.positions:
            for trade in position.executed_trades:
                if trade.trade_date != as_of or not trade.is_executed:
                    continue
                if int(trade.action) == int(position.direction):
                    total += self.environment.reg_t_initial_margin(trade)
                else:
                    total -= self.environment.reg_t_initial_margin(trade)
        return total

    def special_memorandum_account_balance(self, as_of: date, time_of_day: TimeOfDay = EOD) -> float:
        base = calendar.prior_trading_day(self.setup.inception_date)
        if as_of <= base:
            return self.setup.initial_cash
        if time_of_day == EOD and as_of in self._sma_memo:
            return self._sma_memo[as_of]

        unresolved: list[date] = []
        day = calendar.prior_trading_day(as_of)
        while day > base and day not in self._sma_memo:
            unresolved.append(day)
            day = calendar.prior_trading_day(day)
        sma = self._sma_memo[day] if day > base else self.setup.initial_cash

        for day in reversed(unresolved):
            sma = self._sma_step(day, sma, EOD)
            self._sma_memo[day] = sma

        value = self._sma_step(as_of, sma, time_of_day)
        if time_of_day == EOD:
            self._sma_memo[as_of] = value
        return value

    def _sma_step(self, as_of: date, prior_sma: float, time_of_day: TimeOfDay) -> float:
        sma_1 = prior_sma - self.reg_t_initial_margin_requirement(as_of)
        sma_2 = self.equity_with_loan_value(as_of, time_of_day) - self.reg_t_maintenance_margin_requirement(
            as_of, time_of_day
        )
        return max(sma_1, sma_2)

    def _invalidate_sma(self, trade_date: date) -> None:
        stale = [d for d in self._sma_memo if d >= trade_date]
        for d in stale:
            del self._sma_memo[d]

    # ------------------------------------------------------------------
    # PnL
    # ------------------------------------------------------------------

    def total_realized_pnl(self, as_of: date) -> float:
        return sum(p.total_realized_pnl(as_of) for p in self.positions)

    def total_unrealized_pnl(self, as_of: date, time_of_day: TimeOfDay = EOD) -> float:
        return sum(p.total_unrealized_pnl(as_of, time_of_day) for p in self.positions)

    def account_summary(self, as_of: date, time_of_day: TimeOfDay = EOD) -> dict[str, float]:
        return {
            "total_cash": self.total_cash_value(as_of),
            "purchases_and_proceeds": self.total_cash_purchases_and_proceeds(as_of),
            "commissions": self.total_commissions(as_of),
            "long_value": self.long_stock_value(as_of, time_of_day),
            "short_value": self.short_stock_value(as_of, time_of_day),
            "equity_with_loan": self.equity_with_loan_value(as_of, time_of_day),
            "available_funds": self.available_funds(as_of, time_of_day),
            "gross_position_value": self.gross_position_value(as_of, time_of_day),
            "net_liquidation_value": self.net_liquidation_value(as_of, time_of_day),
            "broker_maintenance_margin": self.broker_maintenance_margin_requirement(as_of, time_of_day),
            "excess_liquidity": self.excess_liquidity(as_of, time_of_day),
            "reg_t_maintenance_margin": self.reg_t_maintenance_margin_requirement(as_of, time_of_day),
            "reg_t_initial_margin": self.reg_t_initial_margin_requirement(as_of),
            "sma": self.special_memorandum_account_balance(as_of, time_of_day),
            "realized_pnl": self.total_realized_pnl(as_of),
            "unrealized_pnl": self.total_unrealized_pnl(as_of, time_of_day),
            "open_positions": float(self.open_position_count(as_of)),
        }

    def __repr__(self) -> str:
        return f"Portfolio({self.name!r}, positions={len(self.positions)})"
