"""Per-portfolio order queue resolved against daily price bars.

Each trading day runs in two calls::

    MARKET_OPEN        1. stops tested against the open, filled at the open
                       2. market orders filled at the open, limit orders
                          filled at the open when the open satisfies them
    MARKET_END_OF_DAY  3. stops tested against the day's range, filled at
                          the stop price
                       4. limit orders tested against the day's range,
                          filled at the limit price, otherwise cancelled

followed by ``end_of_day_check``. Within a phase trades are processed in
descending priority.
"""
from __future__ import annotations

import logging
from datetime import date
from typing import Iterable

from simtrader.broker.base import Environment
from simtrader.core.exceptions import InvalidTradeOperationError, InvalidTradingDateError, TradeQueueError
from simtrader.core.types import (
    PositionStatus,
    TimeOfDay,
    TradeAction,
    TradePriority,
    TradeStatus,
    TradeType,
)
from simtrader.data.security import PriceBar, Security
from simtrader.ledger.portfolio import Portfolio
from simtrader.ledger.position import IdArena
from simtrader.ledger.trade import Trade

logger = logging.getLogger("simtrader.execution.trade_manager")

_REDUCING = (
    TradePriority.STOPLOSS_IMMEDIATE,
    TradePriority.POSITION_CLOSE,
    TradePriority.EXISTING_POSITION_DECREASE,
)
# Orders that only make sense against a position that is still open
_REQUIRES_OPEN_POSITION = _REDUCING + (TradePriority.EXISTING_POSITION_INCREASE,)


def priority_order(trades: Iterable[Trade]) -> list[Trade]:
    """Highest priority first, then strongest signal, then queue order."""
    return sorted(
        trades,
        key=lambda t: (-int(t.priority), -t.priority_score, t.trade_id if t.trade_id is not None else 0),
    )


class TradeManager:
    def __init__(self, portfolio: Portfolio, environment: Environment) -> None:
        self.portfolio = portfolio
        self.environment = environment
        self._queue: list[Trade] = []
        self._trade_ids = IdArena()

    # ------------------------------------------------------------------
    # Queue
    # ------------------------------------------------------------------

    def _enqueue(self, trade: Trade) -> None:
        if trade.trade_id is None:
            trade.trade_id = self._trade_ids.next_id()
        self._queue.append(trade)

    def add_pending_trades(self, trades: Iterable[Trade]) -> None:
        for trade in trades:
            if trade.status != TradeStatus.PENDING:
                raise InvalidTradeOperationError(
                    f"Only pending trades can be queued, got {trade.status.value} for {trade.ticker}"
                )
            self._enqueue(trade)
            logger.debug("Queued %s", trade)

    def add_stoploss_trades(self, trades: Iterable[Trade]) -> None:
        for trade in trades:
            if trade.status != TradeStatus.STOPLOSS or trade.trade_type != TradeType.STOP:
                raise InvalidTradeOperationError(f"Not a stoploss trade: {trade}")
            self._enqueue(trade)
            logger.debug("Queued stop %s", trade)

    @property
    def trades(self) -> list[Trade]:
        return list(self._queue)

    def get_all_stoplosses(self, as_of: date) -> list[Trade]:
        return [t for t in self._queue if t.status == TradeStatus.STOPLOSS and t.trade_date <= as_of]

    def get_stoploss(self, security: Security) -> Trade | None:
        for trade in self._queue:
            if trade.status == TradeStatus.STOPLOSS and trade.security is security:
                return trade
        return None

    def get_pending_trades(self) -> list[Trade]:
        return [t for t in self._queue if t.status == TradeStatus.PENDING]

    def get_historical_trades(self, security: Security | None = None) -> list[Trade]:
        """Executed and cancelled trades, in queue order."""
        done = (TradeStatus.EXECUTED, TradeStatus.CANCELLED)
        return [t for t in self._queue if t.status in done and (security is None or t.security is security)]

    def cancel_stoplosses(self, security: Security) -> int:
        count = 0
        for trade in self._queue:
            if trade.status == TradeStatus.STOPLOSS and trade.security is security:
                trade.status = TradeStatus.CANCELLED
                count += 1
        return count

    # ------------------------------------------------------------------
    # Daily processing
    # ------------------------------------------------------------------

    def process_trade_queue(self, as_of: date, time_of_day: TimeOfDay) -> None:
        if time_of_day == TimeOfDay.MARKET_OPEN:
            self._opening_stops(as_of)
            self._opening_market_and_limit_trades(as_of)
        else:
            self._end_of_day_stops(as_of)
            self._end_of_day_limit_trades(as_of)

    def _opening_stops(self, as_of: date) -> None:
        for stop in priority_order(self.get_all_stoplosses(as_of)):
            self._try_execute_stop(stop, as_of, TimeOfDay.MARKET_OPEN)

    def _opening_market_and_limit_trades(self, as_of: date) -> None:
        trades = [
            t for t in self.get_pending_trades() if t.trade_type in (TradeType.MARKET, TradeType.LIMIT)
        ]
        for trade in priority_order(trades):
            if trade.trade_type == TradeType.MARKET:
                self._execute(trade, self._bar(trade, as_of).open, as_of)
            else:
                self._try_execute_limit(trade, as_of, TimeOfDay.MARKET_OPEN)

    def _end_of_day_stops(self, as_of: date) -> None:
        for stop in priority_order(self.get_all_stoplosses(as_of)):
            self._try_execute_stop(stop, as_of, TimeOfDay.MARKET_END_OF_DAY)

    def _end_of_day_limit_trades(self, as_of: date) -> None:
        trades = [t for t in self.get_pending_trades() if t.trade_type == TradeType.LIMIT]
        for trade in priority_order(trades):
            if not self._try_execute_limit(trade, as_of, TimeOfDay.MARKET_END_OF_DAY) and trade.status == TradeStatus.PENDING:
                trade.status = TradeStatus.CANCELLED
                logger.info("Limit order cancelled unfilled: %s", trade)

    def _bar(self, trade: Trade, as_of: date) -> PriceBar:
        bar = trade.security.get_price_bar(as_of)
        if bar is None:
            raise InvalidTradingDateError(as_of, f"no bar for {trade.ticker}")
        return bar

    def _try_execute_stop(self, trade: Trade, as_of: date, time_of_day: TimeOfDay) -> bool:
        if trade.trade_type != TradeType.STOP:
            raise InvalidTradeOperationError(f"Must provide a stop trade, got {trade}")
        if trade.status != TradeStatus.STOPLOSS:
            return False
        bar = self._bar(trade, as_of)
        stop = trade.stop_price
        if time_of_day == TimeOfDay.MARKET_OPEN:
            if trade.action == TradeAction.BUY and bar.open >= stop:
                return self._execute(trade, bar.open, as_of)
            if trade.action == TradeAction.SELL and bar.open <= stop:
                return self._execute(trade, bar.open, as_of)
        else:
            if trade.action == TradeAction.BUY and bar.high >= stop:
                return self._execute(trade, stop, as_of)
            if trade.action == TradeAction.SELL and bar.low <= stop:
                return self._execute(trade, stop, as_of)
        return False

    def _try_execute_limit(self, trade: Trade, as_of: date, time_of_day: TimeOfDay) -> bool:
        if trade.trade_type != TradeType.LIMIT:
            raise InvalidTradeOperationError(f"Must provide a limit trade, got {trade}")
        bar = self._bar(trade, as_of)
        limit = trade.limit_price
        if time_of_day == TimeOfDay.MARKET_OPEN:
            if trade.action == TradeAction.BUY and bar.open <= limit:
                return self._execute(trade, bar.open, as_of)
            if trade.action == TradeAction.SELL and bar.open >= limit:
                return self._execute(trade, bar.open, as_of)
        else:
            if trade.action == TradeAction.BUY and bar.low <= limit:
                return self._execute(trade, limit, as_of)
            if trade.action == TradeAction.SELL and bar.high >= limit:
                return self._execute(trade, limit, as_of)
        return False

    def _execute(self, trade: Trade, price: float, as_of: date) -> bool:
        if trade.priority in _REQUIRES_OPEN_POSITION and not self.portfolio.has_open_position(trade.security, as_of):
            # An earlier fill today already closed the position
            trade.status = TradeStatus.CANCELLED
            logger.info("Cancelled %s: no open position left to adjust", trade)
            return False
        self.portfolio.check_trade(trade, as_of)
        fill = self.environment.slippage_adjusted_price(price, trade.action)
        trade.mark_executed(as_of, fill)
        self.portfolio.add_executed_trade(trade)
        logger.info("Executed %s", trade)
        return True

    def end_of_day_check(self, as_of: date) -> None:
        """Verify the queue is settled for the day.

        Market orders must be executed; the only exception is an order to
        reduce or increase a position, cancelled because the position had
        already been closed.

        Raises:
            TradeQueueError: If a market order is unexecuted, a limit order is
                still open, or an open position does not have exactly one stop.
        """
        for trade in self._queue:
            if trade.trade_type == TradeType.MARKET and trade.status != TradeStatus.EXECUTED:
                if not (trade.status == TradeStatus.CANCELLED and trade.priority in _REQUIRES_OPEN_POSITION):
                    raise TradeQueueError(f"{as_of}: unactioned market order in queue: {trade}")
            if trade.trade_type == TradeType.LIMIT and trade.status not in (
                TradeStatus.EXECUTED, TradeStatus.CANCELLED,
            ):
                raise TradeQueueError(f"{as_of}: unactioned limit order in queue: {trade}")

        for position in self.portfolio.get_positions(PositionStatus.OPEN, as_of):
            stops = [
                t for t in self._queue
                if t.status == TradeStatus.STOPLOSS and t.security is position.security
            ]
            if len(stops) != 1:
                raise TradeQueueError(
                    f"{as_of}: {position.ticker} has {len(stops)} active stoplosses, expected 1"
                )
