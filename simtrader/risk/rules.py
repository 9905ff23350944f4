"""Trade approval rules.

Each rule is a predicate over a candidate trade and a portfolio at a time
of day. Rules that judge the account after the trade execute a copy of the
trade into a copy of the portfolio, so the portfolio passed in is never
modified.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import date

from simtrader.core.config import PositioningConfig, RiskConfig
from simtrader.core.exceptions import InvalidTradeOperationError
from simtrader.core.types import PositionStatus, PriceBarSize, TimeOfDay, TradeAction, TradeType
from simtrader.ledger.portfolio import Portfolio
from simtrader.ledger.trade import Trade


def speculative_execution_price(trade: Trade, as_of: date, time_of_day: TimeOfDay) -> float:
    """Price a market order at the time-of-day price, others at their order price."""
    if trade.trade_type == TradeType.MARKET:
        bar = trade.security.get_price_bar(as_of, PriceBarSize.DAILY)
        if bar is None:
            raise InvalidTradeOperationError(f"No {trade.ticker} bar on {as_of} to price market order")
        return bar.open if time_of_day == TimeOfDay.MARKET_OPEN else bar.close
    return trade.expected_execution_price


def speculate(trade: Trade, portfolio: Portfolio, as_of: date, time_of_day: TimeOfDay) -> Portfolio:
    """Return a copy of ``portfolio`` holding an executed copy of ``trade``."""
    trade_copy = trade.copy()
    portfolio_copy = portfolio.copy()
    trade_copy.mark_executed(as_of, speculative_execution_price(trade, as_of, time_of_day))
    portfolio_copy.add_executed_trade(trade_copy)
    return portfolio_copy


class TradeApprovalRule(ABC):
    name: str

    def run(self, trade: Trade, portfolio: Portfolio, as_of: date, time_of_day: TimeOfDay) -> bool:
        return self.rule(trade, portfolio, as_of, time_of_day)

    @abstractmethod
    def rule(self, trade: Trade, portfolio: Portfolio, as_of: date, time_of_day: TimeOfDay) -> bool: ...

    def copy(self) -> TradeApprovalRule:
        return type(self)()


class PostTradeRule(TradeApprovalRule):
    """A rule judged on the account after the trade executes."""

    def rule(self, trade: Trade, portfolio: Portfolio, as_of: date, time_of_day: TimeOfDay) -> bool:
        return self.check(speculate(trade, portfolio, as_of, time_of_day), as_of, time_of_day)

    @abstractmethod
    def check(self, portfolio: Portfolio, as_of: date, time_of_day: TimeOfDay) -> bool: ...


class NonZeroTradeSize(TradeApprovalRule):
    name = "NonZeroTradeSize"

    def rule(self, trade: Trade, portfolio: Portfolio, as_of: date, time_of_day: TimeOfDay) -> bool:
        return trade.quantity > 0


class MinAccountEquity(TradeApprovalRule):
    """Equity with loan must meet the broker minimum for a new position."""

    name = "MinAccountEquity"

    def rule(self, trade: Trade, portfolio: Portfolio, as_of: date, time_of_day: TimeOfDay) -> bool:
        minimum = portfolio.environment.minimum_equity_with_loan_value_new_position
        return portfolio.equity_with_loan_value(as_of, time_of_day) >= minimum


class MinAvailableFunds(PostTradeRule):
    name = "MinAvailableFunds"

    def check(self, portfolio: Portfolio, as_of: date, time_of_day: TimeOfDay) -> bool:
        return portfolio.available_funds(as_of, time_of_day) >= 0


class MaxGrossPosValue(PostTradeRule):
    """Gross position value may not exceed a multiple of net liquidation value."""

    name = "MaxGrossPosValue"

    def __init__(self, max_multiple: float = 30.0) -> None:
        self.max_multiple = max_multiple

    def check(self, portfolio: Portfolio, as_of: date, time_of_day: TimeOfDay) -> bool:
        gross = portfolio.gross_position_value(as_of, time_of_day)
        return gross <= portfolio.net_liquidation_value(as_of, time_of_day) * self.max_multiple

    def copy(self) -> MaxGrossPosValue:
        return MaxGrossPosValue(self.max_multiple)


class NonNegativeSMA(PostTradeRule):
    name = "NonNegativeSMA"

    def check(self, portfolio: Portfolio, as_of: date, time_of_day: TimeOfDay) -> bool:
        return portfolio.special_memorandum_account_balance(as_of, time_of_day) >= 0


class MaxOpenPositions(PostTradeRule):
    name = "MaxOpenPositions"

    def __init__(self, max_open_positions: int = 25) -> None:
        self.max_open_positions = max_open_positions

    def check(self, portfolio: Portfolio, as_of: date, time_of_day: TimeOfDay) -> bool:
        return len(portfolio.get_positions(PositionStatus.OPEN, as_of)) <= self.max_open_positions

    def copy(self) -> MaxOpenPositions:
        return MaxOpenPositions(self.max_open_positions)


class MinAvailFundsPercent(PostTradeRule):
    name = "MinAvailFundsPercent"

    def __init__(self, min_available_funds_pct: float = 0.05) -> None:
        self.min_available_funds_pct = min_available_funds_pct

    def check(self, portfolio: Portfolio, as_of: date, time_of_day: TimeOfDay) -> bool:
        equity = portfolio.equity_with_loan_value(as_of, time_of_day)
        if equity <= 0:
            return False
        return portfolio.available_funds(as_of, time_of_day) / equity >= self.min_available_funds_pct

    def copy(self) -> MinAvailFundsPercent:
        return MinAvailFundsPercent(self.min_available_funds_pct)


class ValidStoplossLevel(TradeApprovalRule):
    """The ATR stop implied by the trade must be a positive price."""

    name = "ValidStoplossLevel"

    def __init__(self, atr_period: int = 14, atr_multiple: float = 8.0) -> None:
        self.atr_period = atr_period
        self.atr_multiple = atr_multiple

    def rule(self, trade: Trade, portfolio: Portfolio, as_of: date, time_of_day: TimeOfDay) -> bool:
        bar = trade.security.get_price_bar(as_of, PriceBarSize.DAILY)
        if bar is None:
            return False
        offset = bar.average_true_range(self.atr_period) * self.atr_multiple
        if trade.action == TradeAction.BUY:
            return bar.close - offset >= 0
        return bar.close + offset >= 0

    def copy(self) -> ValidStoplossLevel:
        return ValidStoplossLevel(self.atr_period, self.atr_multiple)


class TradeApprovalPipeline:
    """Ordered, uniquely named approval rules."""

    def __init__(self, rules: list[TradeApprovalRule] | None = None) -> None:
        self._rules: list[TradeApprovalRule] = []
        for rule in rules or []:
            self.register(rule)

    def register(self, rule: TradeApprovalRule) -> None:
        if any(r.name == rule.name for r in self._rules):
            raise ValueError(f"Approval rule already registered: {rule.name}")
        self._rules.append(rule)

    def get(self, name: str) -> TradeApprovalRule | None:
        return next((r for r in self._rules if r.name == name), None)

    def all(self) -> list[TradeApprovalRule]:
        return list(self._rules)

    def first_failure(
        self, trade: Trade, portfolio: Portfolio, as_of: date, time_of_day: TimeOfDay,
    ) -> str | None:
        """Name of the first rule the trade fails, or None when every rule passes."""
        for rule in self._rules:
            if not rule.run(trade, portfolio, as_of, time_of_day):
                return rule.name
        return None

    def copy(self) -> TradeApprovalPipeline:
        return TradeApprovalPipeline([r.copy() for r in self._rules])

    def __len__(self) -> int:
        return len(self._rules)


def default_rule_pipeline(risk: RiskConfig, positioning: PositioningConfig) -> TradeApprovalPipeline:
    return TradeApprovalPipeline([
        NonZeroTradeSize(),
        MinAccountEquity(),
        MinAvailableFunds(),
        MaxGrossPosValue(risk.max_gross_position_multiple),
        NonNegativeSMA(),
        MaxOpenPositions(risk.max_open_positions),
        MinAvailFundsPercent(risk.min_available_funds_pct),
        ValidStoplossLevel(positioning.atr_period, positioning.atr_multiple),
    ])
