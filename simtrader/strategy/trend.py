"""Swing point trend strategies."""
from __future__ import annotations

from datetime import date

from simtrader.core import calendar
from simtrader.core.types import PriceBarSize, Signal, SignalAction, TrendAlignment, TrendQualification
from simtrader.data.security import Security
from simtrader.indicators.swing import set_swing_points_and_trends, trend_alignment
from simtrader.strategy.base import TradeStrategy


class TrendTransition(TradeStrategy):
    """Enter when the swing point trend turns bullish or bearish.

    A move from confirmed to suspect within the same direction is not a
    new entry; transitions into sideways trends never signal.
    """

    name = "trend_transition"
    description = "Swing point trend transition entry"

    def __init__(self, bar_count: int = 6, bar_size: PriceBarSize = PriceBarSize.DAILY) -> None:
        if bar_count <= 0:
            raise ValueError("bar_count must be positive")
        self.bar_count = bar_count
        self.bar_size = PriceBarSize(bar_size)

    def generate_signal(self, security: Security, as_of: date) -> Signal | None:
        set_swing_points_and_trends(security, self.bar_count, self.bar_size)
        bar = security.get_price_bar(as_of, self.bar_size)
        if bar is None or bar.prior_bar is None:
            return None

        trend = bar.trend_type(self.bar_count)
        prior = bar.prior_bar.trend_type(self.bar_count)
        if trend == prior:
            return None

        if trend == TrendQualification.CONFIRMED_BULLISH:
            return Signal(security, self.bar_size, as_of, SignalAction.BUY)
        if trend == TrendQualification.SUSPECT_BULLISH and prior != TrendQualification.CONFIRMED_BULLISH:
            return Signal(security, self.bar_size, as_of, SignalAction.BUY)
        if trend == TrendQualification.CONFIRMED_BEARISH:
            return Signal(security, self.bar_size, as_of, SignalAction.SELL)
        if trend == TrendQualification.SUSPECT_BEARISH and prior != TrendQualification.CONFIRMED_BEARISH:
            return Signal(security, self.bar_size, as_of, SignalAction.SELL)
        return None

    def copy(self) -> TrendTransition:
        return TrendTransition(self.bar_count, self.bar_size)


class DayWeekTrendAlignment(TradeStrategy):
    """Trade when daily and weekly trends newly align; exit when they diverge.

    The current week's bar only counts once the week is complete, so until
    its last trading day the prior week's trend is used.
    """

    name = "day_week_alignment"
    description = "Swing point trend alignment across daily and weekly bars"

    def __init__(self, bar_count: int = 6) -> None:
        if bar_count <= 0:
            raise ValueError("bar_count must be positive")
        self.bar_count = bar_count

    def _weekly_trend(self, security: Security, as_of: date) -> TrendQualification | None:
        week = security.get_price_bar(as_of, PriceBarSize.WEEKLY)
        if week is not None and as_of != calendar.last_trading_day_of_week(as_of):
            week = week.prior_bar
        if week is None:
            return None
        return week.trend_type(self.bar_count)

    def generate_signal(self, security: Security, as_of: date) -> Signal | None:
        set_swing_points_and_trends(security, self.bar_count, PriceBarSize.DAILY)
        set_swing_points_and_trends(security, self.bar_count, PriceBarSize.WEEKLY)

        day = security.get_price_bar(as_of, PriceBarSize.DAILY)
        weekly = self._weekly_trend(security, as_of)
        if day is None or weekly is None:
            return None
        daily = day.trend_type(self.bar_count)

        current = trend_alignment(daily, weekly)
        if current in (TrendAlignment.SIDEWAYS, TrendAlignment.OPPOSING):
            return Signal(security, PriceBarSize.DAILY, as_of, SignalAction.CLOSE_IF_OPEN, 1.0)

        if day.prior_bar is None:
            return None
        prior_weekly = self._weekly_trend(security, calendar.prior_trading_day(as_of))
        if prior_weekly is None:
            return None
        if trend_alignment(day.prior_bar.trend_type(self.bar_count), prior_weekly) == current:
            return None

        confirmed = (daily, weekly)
        if current == TrendAlignment.BULLISH and all(t == TrendQualification.CONFIRMED_BULLISH for t in confirmed):
            return Signal(security, PriceBarSize.DAILY, as_of, SignalAction.BUY, 1.0)
        if current == TrendAlignment.BEARISH and all(t == TrendQualification.CONFIRMED_BEARISH for t in confirmed):
            return Signal(security, PriceBarSize.DAILY, as_of, SignalAction.SELL, 1.0)
        return None

    def copy(self) -> DayWeekTrendAlignment:
        return DayWeekTrendAlignment(self.bar_count)
