"""Position sizing and stoploss placement policies."""
from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import date

from simtrader.core import calendar
from simtrader.core.config import PositioningConfig
from simtrader.core.exceptions import CancelTradeError, ConfigError, InvalidTradeOperationError
from simtrader.core.types import (
    PositionDirection,
    PriceBarSize,
    Signal,
    SignalAction,
    SwingPointType,
    TimeOfDay,
    TradeAction,
    TradeType,
)
from simtrader.data.security import PriceBar, Security
from simtrader.ledger.portfolio import Portfolio
from simtrader.ledger.position import Position
from simtrader.ledger.trade import Trade

_MIN_STOP_PRICE = 0.01
_SWING_BUFFER = 0.01


def _stop_trade(position: Position, stop_price: float, as_of: date) -> Trade:
    return Trade(
        position.security,
        TradeAction(-int(position.direction)),
        abs(position.size(as_of)),
        TradeType.STOP,
        stop_price=max(stop_price, _MIN_STOP_PRICE),
        trade_date=as_of,
    )


def _creep(stop_price: float, direction: PositionDirection, creep_pct: float) -> float:
    if creep_pct <= 0:
        return stop_price
    if direction == PositionDirection.LONG:
        return stop_price * (1 + creep_pct)
    return stop_price * (1 - creep_pct)


def _tighter(candidate: float, current: float, direction: PositionDirection) -> float:
    if direction == PositionDirection.LONG:
        return max(candidate, current)
    if direction == PositionDirection.SHORT:
        return min(candidate, current)
    raise InvalidTradeOperationError("Position direction not set")


class PositioningStrategy(ABC):
    name: str
    description: str = ""

    @abstractmethod
    def new_position_size(
        self, portfolio: Portfolio, signal: Signal, as_of: date, initial_risk_pct: float,
    ) -> int:
        """Share count for a new position opened from ``signal``."""

    @abstractmethod
    def new_stoploss(self, position: Position, as_of: date) -> Trade:
        """Initial stop trade for a newly opened position."""

    @abstractmethod
    def update_stoploss_price(self, position: Position, current_stop: Trade, as_of: date) -> float:
        """Trailed stop price; never looser than ``current_stop``."""

    @classmethod
    @abstractmethod
    def from_config(cls, config: PositioningConfig) -> PositioningStrategy: ...

    @abstractmethod
    def copy(self) -> PositioningStrategy: ...


class AtrSizingAndStoploss(PositioningStrategy):
    """Risk a fixed share of equity against a stop a multiple of ATR away."""

    name = "atr"
    description = "Position sizing and stoploss as a multiple of ATR"

    def __init__(self, atr_period: int = 14, atr_multiple: float = 8.0, stoploss_creep_pct: float = 0.0) -> None:
        self.atr_period = atr_period
        self.atr_multiple = atr_multiple
        self.stoploss_creep_pct = stoploss_creep_pct

    @classmethod
    def from_config(cls, config: PositioningConfig) -> AtrSizingAndStoploss:
        return cls(config.atr_period, config.atr_multiple, config.stoploss_creep_pct)

    def _last_bar(self, security: Security, as_of: date) -> PriceBar:
        bar = security.get_price_bar_or_last_prior(as_of, PriceBarSize.DAILY, 1)
        if bar is None:
            raise CancelTradeError(security.ticker, as_of, "no recent price bar")
        return bar

    def new_position_size(
        self, portfolio: Portfolio, signal: Signal, as_of: date, initial_risk_pct: float,
    ) -> int:
        risk_dollars = portfolio.equity_with_loan_value(as_of, TimeOfDay.MARKET_END_OF_DAY) * initial_risk_pct
        atr = self._last_bar(signal.security, as_of).average_true_range(self.atr_period)
        if atr == 0:
            raise CancelTradeError(signal.ticker, as_of, "ATR is zero")
        return int(round(risk_dollars / (self.atr_multiple * atr)))

    def new_stoploss(self, position: Position, as_of: date) -> Trade:
        entry = position.average_cost(as_of)
        atr = self._last_bar(position.security, calendar.prior_trading_day(as_of)).average_true_range(self.atr_period)
        stop_price = entry - int(position.direction) * self.atr_multiple * atr
        return _stop_trade(position, stop_price, as_of)

    def update_stoploss_price(self, position: Position, current_stop: Trade, as_of: date) -> float:
        bar = self._last_bar(position.security, as_of)
        stop_price = bar.close - int(position.direction) * self.atr_multiple * bar.average_true_range(self.atr_period)
        stop_price = max(stop_price, _MIN_STOP_PRICE)
        base = _creep(current_stop.stop_price, position.direction, self.stoploss_creep_pct)
        return _tighter(stop_price, base, position.direction)

    def copy(self) -> AtrSizingAndStoploss:
        return AtrSizingAndStoploss(self.atr_period, self.atr_multiple, self.stoploss_creep_pct)


class SwingPointSizingAndStoploss(PositioningStrategy):
    """Place the stop just beyond the last swing point that would end the trend.

    Long positions stop below the prior swing low, shorts above the prior
    swing high. When no swing point lies on the correct side of the price,
    the ATR policy is used instead.
    """

    name = "swing_point"
    description = "Position sizing and stoploss from the latest swing point"

    def __init__(
        self,
        bar_count: int = 6,
        bar_size: PriceBarSize = PriceBarSize.DAILY,
        initial_buffer_pct: float = 0.01,
        stoploss_creep_pct: float = 0.0,
        atr_period: int = 14,
        atr_multiple: float = 8.0,
    ) -> None:
        self.bar_count = bar_count
        self.bar_size = bar_size
        self.initial_buffer_pct = initial_buffer_pct
        self.stoploss_creep_pct = stoploss_creep_pct
        self.atr_period = atr_period
        self.atr_multiple = atr_multiple

    @classmethod
    def from_config(cls, config: PositioningConfig) -> SwingPointSizingAndStoploss:
        return cls(
            bar_count=config.swing_point_bar_count,
            initial_buffer_pct=config.initial_buffer_pct,
            stoploss_creep_pct=config.stoploss_creep_pct,
            atr_period=config.atr_period,
            atr_multiple=config.atr_multiple,
        )

    @property
    def _backup(self) -> AtrSizingAndStoploss:
        return AtrSizingAndStoploss(self.atr_period, self.atr_multiple, self.stoploss_creep_pct)

    def swing_stop_price(self, security: Security, direction: PositionDirection, as_of: date) -> float | None:
        """Stop price beyond the first actualized swing point ``bar_count`` bars back."""
        bars = security.get_price_bars_before(as_of, None, self.bar_size, include_as_of=True)
        flag = SwingPointType.LOW if direction == PositionDirection.LONG else SwingPointType.HIGH
        i = len(bars) - 1 - self.bar_count
        while i >= 0 and not bars[i].swing_point_type(self.bar_count) & flag:
            i -= 1
        if i < 0:
            return None
        if direction == PositionDirection.LONG:
            return bars[i].low - _SWING_BUFFER
        return bars[i].high + _SWING_BUFFER

    def _close(self, security: Security, as_of: date) -> float:
        bar = security.get_price_bar_or_last_prior(as_of, PriceBarSize.DAILY, 1)
        if bar is None:
            raise CancelTradeError(security.ticker, as_of, "no recent price bar")
        return bar.close

    @staticmethod
    def _wrong_side(stop_price: float | None, close: float, direction: PositionDirection) -> bool:
        if stop_price is None:
            return True
        if direction == PositionDirection.LONG:
            return stop_price >= close
        return stop_price <= close

    def new_position_size(
        self, portfolio: Portfolio, signal: Signal, as_of: date, initial_risk_pct: float,
    ) -> int:
        direction = PositionDirection.LONG if signal.action == SignalAction.BUY else PositionDirection.SHORT
        close = self._close(signal.security, as_of)
        stop_price = self.swing_stop_price(signal.security, direction, as_of)
        if self._wrong_side(stop_price, close, direction):
            return self._backup.new_position_size(portfolio, signal, as_of, initial_risk_pct)

        risk_dollars = portfolio.equity_with_loan_value(as_of, TimeOfDay.MARKET_END_OF_DAY) * initial_risk_pct
        risk_per_share = max(abs(close - stop_price), close * self.initial_buffer_pct)
        if risk_per_share == 0:
            raise CancelTradeError(signal.ticker, as_of, "zero risk per share")
        return int(round(risk_dollars / risk_per_share))

    def new_stoploss(self, position: Position, as_of: date) -> Trade:
        close = self._close(position.security, as_of)
        stop_price = self.swing_stop_price(position.security, position.direction, as_of)
        if self._wrong_side(stop_price, close, position.direction):
            return self._backup.new_stoploss(position, as_of)
        return _stop_trade(position, stop_price, as_of)

    def update_stoploss_price(self, position: Position, current_stop: Trade, as_of: date) -> float:
        close = self._close(position.security, as_of)
        stop_price = self.swing_stop_price(position.security, position.direction, as_of)
        if self._wrong_side(stop_price, close, position.direction):
            return self._backup.update_stoploss_price(position, current_stop, as_of)
        stop_price = max(stop_price, _MIN_STOP_PRICE)
        base = _creep(current_stop.stop_price, position.direction, self.stoploss_creep_pct)
        return _tighter(stop_price, base, position.direction)

    def copy(self) -> SwingPointSizingAndStoploss:
        return SwingPointSizingAndStoploss(
            self.bar_count,
            self.bar_size,
            self.initial_buffer_pct,
            self.stoploss_creep_pct,
            self.atr_period,
            self.atr_multiple,
        )


POSITIONING_STRATEGIES: dict[str, type[PositioningStrategy]] = {
    AtrSizingAndStoploss.name: AtrSizingAndStoploss,
    SwingPointSizingAndStoploss.name: SwingPointSizingAndStoploss,
}


def create_positioning(config: PositioningConfig) -> PositioningStrategy:
    strategy_cls = POSITIONING_STRATEGIES.get(config.method)
    if strategy_cls is None:
        raise ConfigError(f"Unknown positioning method: {config.method}")
    return strategy_cls.from_config(config)
