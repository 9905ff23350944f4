"""Interactive Brokers style Reg-T margin account."""
from __future__ import annotations

from datetime import date
from typing import TYPE_CHECKING, Iterable

from simtrader.broker.base import Environment
from simtrader.core.config import EnvironmentConfig
from simtrader.core.types import PositionDirection, TimeOfDay, TradeAction, TradeStatus

if TYPE_CHECKING:
    from simtrader.ledger.position import Position
    from simtrader.ledger.trade import Trade


class IbkrEnvironment(Environment):
    def __init__(self, config: EnvironmentConfig | None = None) -> None:
        self._config = config or EnvironmentConfig()

    @property
    def config(self) -> EnvironmentConfig:
        return self._config

    @property
    def minimum_equity_with_loan_value_new_position(self) -> float:
        return self._config.minimum_equity_with_loan_new_position

    # ------------------------------------------------------------------
    # Commission
    # ------------------------------------------------------------------

    def trade_commission(self, trade: Trade) -> float:
        """Fixed per-share rate with a minimum and a cap on trade value, as a negative number."""
        if not self._config.commission_enabled or trade.status != TradeStatus.EXECUTED:
            return 0.0
        value = trade.total_cash_impact_absolute
        commission = trade.quantity * self._config.commission_per_share
        commission = max(commission, self._config.commission_minimum)
        commission = min(commission, value * self._config.commission_maximum_pct)
        return -round(commission, 2)

    def commission_charged(self, trades: Iterable[Trade]) -> float:
        return sum(self.trade_commission(t) for t in trades)

    # ------------------------------------------------------------------
    # Margin
    # ------------------------------------------------------------------

    def _maintenance_pct(self, direction: PositionDirection | TradeAction) -> float:
        if int(direction) > 0:
            return self._config.long_maintenance_pct
        return self._config.short_maintenance_pct

    def broker_initial_margin(self, trade: Trade) -> float:
        return trade.total_cash_impact_absolute * self._maintenance_pct(trade.action)

    def broker_maintenance_margin(self, position: Position, as_of: date, time_of_day: TimeOfDay) -> float:
        value = abs(position.gross_position_value(as_of, time_of_day))
        return value * self._maintenance_pct(position.direction)

    def reg_t_initial_margin(self, trade: Trade) -> float:
        return trade.total_cash_impact_absolute * self._config.reg_t_initial_pct

    def reg_t_end_of_day_margin(self, position: Position, as_of: date, time_of_day: TimeOfDay) -> float:
        return abs(position.gross_position_value(as_of, time_of_day)) * self._config.reg_t_maintenance_pct

    # ------------------------------------------------------------------
    # Slippage
    # ------------------------------------------------------------------

    def slippage(self, price: float) -> float:
        return price * self._config.slippage_pct

    def slippage_adjusted_price(self, price: float, action: TradeAction) -> float:
        """Move the fill price against the trade: buys pay more, sells receive less."""
        return round(price + int(action) * self.slippage(price), 4)
