"""Signal-to-trade conversion, trade approval and stoploss lifecycle.

The risk manager owns no ledger state of its own. It is attached to one
portfolio and its trade manager, reads the ledger, evaluates candidate
trades against speculative copies of it, and hands approved trades and
stops to the trade manager.
"""
from __future__ import annotations

import logging
from datetime import date
from typing import Iterable

from simtrader.core.config import PositioningConfig, RiskConfig
from simtrader.core.exceptions import (
    CancelTradeError,
    InvalidStoplossError,
    InvalidTradeOperationError,
    LedgerConsistencyError,
)
from simtrader.core.types import (
    PortfolioDirection,
    PositionDirection,
    PositionStatus,
    PriceBarSize,
    Signal,
    SignalAction,
    TimeOfDay,
    TradeAction,
    TradePriority,
    TradeStatus,
    TradeType,
)
from simtrader.data.security import Security
from simtrader.execution.trade_manager import TradeManager, priority_order
from simtrader.ledger.portfolio import Portfolio
from simtrader.ledger.position import Position
from simtrader.ledger.trade import Trade
from simtrader.risk.positioning import PositioningStrategy
from simtrader.risk.rules import TradeApprovalPipeline, default_rule_pipeline, speculative_execution_price

logger = logging.getLogger("simtrader.risk.manager")

EOD = TimeOfDay.MARKET_END_OF_DAY

# Risk-reducing orders bypass the approval rules
_AUTO_APPROVED = (
    TradePriority.STOPLOSS_IMMEDIATE,
    TradePriority.POSITION_CLOSE,
    TradePriority.EXISTING_POSITION_DECREASE,
)


class RiskManager:
    def __init__(
        self,
        config: RiskConfig,
        positioning: PositioningStrategy,
        rules: TradeApprovalPipeline | None = None,
    ) -> None:
        self._config = config
        self.positioning = positioning
        self.rules = rules if rules is not None else default_rule_pipeline(config, PositioningConfig())
        self._portfolio: Portfolio | None = None
        self._trade_manager: TradeManager | None = None

    @property
    def config(self) -> RiskConfig:
        return self._config

    def attach(self, portfolio: Portfolio, trade_manager: TradeManager) -> None:
        if trade_manager.portfolio is not portfolio:
            raise InvalidTradeOperationError("Trade manager belongs to a different portfolio")
        self._portfolio = portfolio
        self._trade_manager = trade_manager

    @property
    def portfolio(self) -> Portfolio:
        if self._portfolio is None:
            raise InvalidTradeOperationError("Risk manager is not attached to a portfolio")
        return self._portfolio

    @property
    def trade_manager(self) -> TradeManager:
        if self._trade_manager is None:
            raise InvalidTradeOperationError("Risk manager is not attached to a trade manager")
        return self._trade_manager

    def copy(self) -> RiskManager:
        """Unattached copy with the same parameters."""
        return RiskManager(self._config.model_copy(), self.positioning.copy(), self.rules.copy())

    # ------------------------------------------------------------------
    # Signals and approval
    # ------------------------------------------------------------------

    def process_signals(self, signals: Iterable[Signal], as_of: date) -> list[Trade]:
        """Turn signals into candidate trades, approve them and queue the approved ones."""
        candidates: list[Trade] = []
        for signal in signals:
            try:
                trade = self._trade_for_signal(signal, as_of)
            except CancelTradeError as exc:
                logger.info("Signal dropped: %s", exc)
                continue
            if trade is not None:
                candidates.append(trade)
        return self.process_new_trades(candidates, as_of)

    def _trade_for_signal(self, signal: Signal, as_of: date) -> Trade | None:
        if signal.action == SignalAction.NONE:
            return None

        if signal.action == SignalAction.CLOSE_IF_OPEN:
            position = self.portfolio.get_position(signal.security, as_of)
            if position is None:
                return None
            trade = Trade(
                signal.security,
                TradeAction(-int(position.direction)),
                abs(position.size(as_of)),
                TradeType.MARKET,
                trade_date=as_of,
                priority=TradePriority.POSITION_CLOSE,
            )
            trade.status = TradeStatus.INDICATED
            return trade

        if self.portfolio.has_open_position(signal.security, as_of):
            return None
        action = TradeAction.BUY if signal.action == SignalAction.BUY else TradeAction.SELL
        if not self._direction_allowed(action):
            return None
        if not self._passes_security_filters(signal.security, as_of):
            return None

        quantity = self.positioning.new_position_size(
            self.portfolio, signal, as_of, self._config.initial_position_risk_pct,
        )
        trade = Trade(
            signal.security,
            action,
            max(quantity, 0),
            TradeType.LIMIT,
            limit_price=self.new_trade_limit_price(signal.security, action, as_of),
            trade_date=as_of,
            priority=TradePriority.NEW_POSITION_OPEN,
        )
        trade.priority_score = signal.strength
        trade.status = TradeStatus.INDICATED
        return trade

    def _direction_allowed(self, action: TradeAction) -> bool:
        direction = self.portfolio.setup.direction
        if direction == PortfolioDirection.LONG_ONLY:
            return action == TradeAction.BUY
        if direction == PortfolioDirection.SHORT_ONLY:
            return action == TradeAction.SELL
        return True

    def _passes_security_filters(self, security: Security, as_of: date) -> bool:
        bar = security.get_price_bar(as_of, PriceBarSize.DAILY)
        if bar is None:
            return False
        if not self._config.minimum_security_price <= bar.close <= self._config.maximum_security_price:
            return False
        return security.average_volume(as_of) >= self._config.minimum_average_volume

    def new_trade_limit_price(self, security: Security, action: TradeAction, as_of: date) -> float:
        bar = security.get_price_bar(as_of, PriceBarSize.DAILY)
        if bar is None:
            raise CancelTradeError(security.ticker, as_of, "no bar to set limit price")
        tolerance = self._config.limit_price_tolerance_pct
        if action == TradeAction.BUY:
            return round(bar.close * (1 + tolerance), 2)
        return round(bar.close * (1 - tolerance), 2)

    def process_new_trades(self, trades: list[Trade], as_of: date) -> list[Trade]:
        ordered = priority_order(trades)
        self.approve_trades(ordered, as_of)
        approved = [t for t in ordered if t.status != TradeStatus.REJECTED]
        if not all(t.status == TradeStatus.PENDING for t in approved):
            raise LedgerConsistencyError("Approved trades must all be pending")
        self.trade_manager.add_pending_trades(approved)
        return approved

    def approve_trades(self, trades: list[Trade], as_of: date) -> None:
        """Mark each indicated trade pending or rejected.

        Approved trades are executed into one shared copy of the portfolio so
        later trades in the batch are judged with earlier approvals in place.
        """
        portfolio_copy = self.portfolio.copy()
        for trade in trades:
            if trade.status != TradeStatus.INDICATED:
                raise InvalidTradeOperationError(
                    f"Unexpected {trade.status.value} trade in approval pipeline: {trade}"
                )
            if trade.priority in _AUTO_APPROVED:
                trade.status = TradeStatus.PENDING
                continue

            try:
                failure = self.rules.first_failure(trade, portfolio_copy, as_of, EOD)
            except InvalidTradeOperationError as exc:
                failure = str(exc)

            if failure is None:
                trade_copy = trade.copy()
                trade_copy.mark_executed(as_of, speculative_execution_price(trade, as_of, EOD))
                portfolio_copy.add_executed_trade(trade_copy)
                trade.status = TradeStatus.PENDING
            else:
                trade.status = TradeStatus.REJECTED
                logger.info("Rejected %s: failed %s", trade, failure)

    # ------------------------------------------------------------------
    # Stoploss lifecycle
    # ------------------------------------------------------------------

    def process_position_events(self, as_of: date) -> None:
        """Keep exactly one correctly sized stop per open position.

        Drains the portfolio's position events: opened positions get a new
        stop, closed positions lose any remaining stop. Stops whose quantity
        no longer matches their position are resized.
        """
        new_stops: list[Trade] = []
        for event in self.portfolio.drain_position_events():
            position = event.position
            if event.kind == "closed":
                cancelled = self.trade_manager.cancel_stoplosses(position.security)
                if cancelled:
                    logger.debug("Cancelled %d stops for closed %s", cancelled, position.ticker)
            elif position.is_open(as_of) and self.trade_manager.get_stoploss(position.security) is None:
                new_stops.append(self.new_stoploss(position, event.as_of))
        self.trade_manager.add_stoploss_trades(new_stops)

        resized: list[Trade] = []
        for position in self.portfolio.get_positions(PositionStatus.OPEN, as_of):
            stop = self.trade_manager.get_stoploss(position.security)
            size = abs(position.size(as_of))
            if stop is not None and stop.quantity != size:
                replacement = stop.copy(quantity=size)
                replacement.trade_date = as_of
                stop.status = TradeStatus.CANCELLED
                resized.append(replacement)
        self.trade_manager.add_stoploss_trades(resized)

    def new_stoploss(self, position: Position, as_of: date) -> Trade:
        """Create and verify the stop for ``position``.

        Raises:
            InvalidStoplossError: If the stop is not an opposing stop order,
                sits on the wrong side of the last close, or would not close
                the position when triggered.
        """
        stop = self.positioning.new_stoploss(position, as_of)
        stop.priority = TradePriority.STOPLOSS_IMMEDIATE
        stop.status = TradeStatus.STOPLOSS
        self._validate_stoploss(stop, position, as_of)

        stop_copy = stop.copy()
        stop_copy.mark_executed(as_of, stop.expected_execution_price)
        portfolio_copy = self.portfolio.copy()
        portfolio_copy.add_executed_trade(stop_copy)
        if portfolio_copy.has_open_position(position.security, as_of):
            raise InvalidStoplossError(f"Stop does not close {position.ticker} position: {stop}")
        return stop

    def _validate_stoploss(self, stop: Trade, position: Position, as_of: date) -> None:
        if stop.trade_type != TradeType.STOP:
            raise InvalidStoplossError(f"Stoploss must be a stop order: {stop}")
        if int(stop.action) != -int(position.direction):
            raise InvalidStoplossError(f"Stoploss must oppose the {position.ticker} position: {stop}")

        bar = position.security.get_price_bar_or_last_prior(as_of, PriceBarSize.DAILY, 1)
        if bar is None:
            raise InvalidStoplossError(f"No recent {position.ticker} bar to verify stoploss: {stop}")
        if position.direction == PositionDirection.LONG and stop.stop_price >= bar.close:
            raise InvalidStoplossError(f"Long stoploss must be below the last close {bar.close}: {stop}")
        if position.direction == PositionDirection.SHORT and stop.stop_price <= bar.close:
            raise InvalidStoplossError(f"Short stoploss must be above the last close {bar.close}: {stop}")

    def update_stoplosses(self, as_of: date) -> None:
        """Create missing stops and trail existing ones; stops never loosen."""
        current = self.trade_manager.get_all_stoplosses(as_of)
        stops: list[Trade] = []
        for position in self.portfolio.get_positions(PositionStatus.OPEN, as_of):
            stop = next((s for s in current if s.security is position.security), None)
            if stop is None:
                stops.append(self.new_stoploss(position, as_of))
                continue
            updated = stop.copy(quantity=abs(position.size(as_of)))
            updated.stop_price = self.positioning.update_stoploss_price(position, stop, as_of)
            updated.trade_date = as_of
            stop.status = TradeStatus.CANCELLED
            stops.append(updated)
        self.trade_manager.add_stoploss_trades(stops)

    # ------------------------------------------------------------------
    # Open position management
    # ------------------------------------------------------------------

    def scale_positions(self, as_of: date) -> list[Trade]:
        if not self._config.position_scaling_enabled:
            return []
        candidates: list[Trade] = []
        for position in self.portfolio.get_positions(PositionStatus.OPEN, as_of):
            try:
                trade = self._scale_position(position, as_of)
            except CancelTradeError as exc:
                logger.info("Scaling skipped: %s", exc)
                continue
            if trade is not None:
                candidates.append(trade)
        return self.process_new_trades(candidates, as_of)

    def _scale_position(self, position: Position, as_of: date) -> Trade | None:
        value = abs(position.gross_position_value(as_of, EOD))
        if value == 0:
            return None
        if position.total_unrealized_pnl(as_of, EOD) / value <= self._config.position_scaling_trigger:
            return None
        quantity = int(abs(position.size(as_of)) * self._config.position_scaling_pct)
        if quantity <= 0:
            return None
        action = TradeAction(int(position.direction))
        trade = Trade(
            position.security,
            action,
            quantity,
            TradeType.LIMIT,
            limit_price=self.new_trade_limit_price(position.security, action, as_of),
            trade_date=as_of,
            priority=TradePriority.EXISTING_POSITION_INCREASE,
        )
        trade.status = TradeStatus.INDICATED
        return trade

    # ------------------------------------------------------------------
    # Portfolio risk
    # ------------------------------------------------------------------

    def portfolio_risk_equity(self, as_of: date, time_of_day: TimeOfDay = EOD) -> float:
        """Dollars lost if every open position were stopped out at its stop price."""
        stops = self.trade_manager.get_all_stoplosses(as_of)
        total = 0.0
        for position in self.portfolio.get_positions(PositionStatus.OPEN, as_of):
            bar = position.security.get_price_bar_or_last_prior(as_of, PriceBarSize.DAILY, 1)
            if bar is None:
                continue
            price = bar.open if time_of_day == TimeOfDay.MARKET_OPEN else bar.close
            stop = next((s for s in stops if s.security is position.security), None)
            stop_price = stop.stop_price if stop is not None else 0.0
            total += abs((price - stop_price) * position.size(as_of))
        return total

    def portfolio_core_equity(self, as_of: date, time_of_day: TimeOfDay = EOD) -> float:
        return self.portfolio.equity_with_loan_value(as_of, time_of_day) - self.portfolio_risk_equity(
            as_of, time_of_day
        )

    def portfolio_risk_equity_percent(self, as_of: date, time_of_day: TimeOfDay = EOD) -> float:
        equity = self.portfolio.equity_with_loan_value(as_of, time_of_day)
        if equity == 0:
            return 0.0
        return self.portfolio_risk_equity(as_of, time_of_day) / equity
