"""One simulated portfolio and the components that drive it day by day."""
from __future__ import annotations

import logging
from datetime import date

import pandas as pd

from simtrader.core import calendar
from simtrader.core.exceptions import SimulationError
from simtrader.core.types import PositionStatus, TimeOfDay
from simtrader.data.security import Security
from simtrader.execution.trade_manager import TradeManager
from simtrader.ledger.portfolio import Portfolio
from simtrader.risk.manager import RiskManager
from simtrader.strategy.manager import StrategyManager

logger = logging.getLogger("simtrader.backtest.portfolio_manager")

EOD = TimeOfDay.MARKET_END_OF_DAY


class PortfolioManager:
    def __init__(
        self,
        portfolio: Portfolio,
        risk_manager: RiskManager,
        strategy_manager: StrategyManager,
        universe: list[Security],
        trade_manager: TradeManager | None = None,
    ) -> None:
        self.portfolio = portfolio
        self.trade_manager = trade_manager or TradeManager(portfolio, portfolio.environment)
        self.risk_manager = risk_manager
        self.strategy_manager = strategy_manager
        self.universe = universe
        self.risk_manager.attach(self.portfolio, self.trade_manager)
        self.current_date: date | None = None
        self._snapshots: list[dict] = []

    def set_start_date(self, start: date) -> None:
        """Position the manager so the next step simulates ``start``."""
        if self.portfolio.executed_trades():
            raise SimulationError("Cannot move the start date of a portfolio with trades")
        first = start if calendar.is_trading_day(start) else calendar.next_trading_day(start)
        self.portfolio.set_inception_date(first)
        self.current_date = calendar.prior_trading_day(first)

    def execute_next_day(self) -> date:
        if self.current_date is None:
            raise SimulationError("Start date has not been set")
        day = calendar.next_trading_day(self.current_date)
        self.current_date = day

        self.trade_manager.process_trade_queue(day, TimeOfDay.MARKET_OPEN)
        self.risk_manager.process_position_events(day)
        self.trade_manager.process_trade_queue(day, EOD)
        self.risk_manager.process_position_events(day)
        self.trade_manager.end_of_day_check(day)

        self.risk_manager.update_stoplosses(day)
        self.risk_manager.scale_positions(day)

        signals = self.strategy_manager.generate_signals(self.universe, day)
        self.risk_manager.process_signals(signals, day)

        self._record_snapshot(day)
        return day

    def _record_snapshot(self, day: date) -> None:
        snapshot = {
            "date": pd.Timestamp(day),
            "net_liquidation_value": self.portfolio.net_liquidation_value(day, EOD),
            "equity_with_loan_value": self.portfolio.equity_with_loan_value(day, EOD),
            "total_cash": self.portfolio.total_cash_value(day),
            "available_funds": self.portfolio.available_funds(day, EOD),
            "sma": self.portfolio.special_memorandum_account_balance(day, EOD),
            "open_positions": len(self.portfolio.get_positions(PositionStatus.OPEN, day)),
            "risk_equity": self.risk_manager.portfolio_risk_equity(day, EOD),
        }
        self._snapshots.append(snapshot)
        logger.debug(
            "%s NLV=%.2f open=%d", day, snapshot["net_liquidation_value"], snapshot["open_positions"]
        )

    def daily_snapshots(self) -> pd.DataFrame:
        if not self._snapshots:
            return pd.DataFrame()
        return pd.DataFrame(self._snapshots).set_index("date")

    def copy(self) -> PortfolioManager:
        """Fresh manager with the same setup, policies and universe and no history."""
        portfolio = Portfolio(self.portfolio.setup, self.portfolio.environment, self.portfolio.name)
        return PortfolioManager(
            portfolio,
            self.risk_manager.copy(),
            self.strategy_manager.copy(),
            self.universe,
        )
