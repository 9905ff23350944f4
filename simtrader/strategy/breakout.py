"""Price breakout entry strategies."""
from __future__ import annotations

from datetime import date

from simtrader.core.types import PriceBarSize, Signal, SignalAction
from simtrader.data.security import Security
from simtrader.strategy.base import TradeStrategy


def _breakout_action(close: float, closes: list[float], long_only: bool) -> SignalAction:
    if not long_only and close < min(closes):
        return SignalAction.SELL
    if close > max(closes):
        return SignalAction.BUY
    return SignalAction.NONE


class TrailingBreakout(TradeStrategy):
    """Enter when the close breaks the highest (or lowest) close of the last N bars.

    With ``long_only`` set, only upside breakouts signal.
    """

    name = "trailing_breakout"
    description = "Long/Short entry on N-bar high/low breakout"

    def __init__(
        self,
        entry_period: int = 14,
        bar_size: PriceBarSize = PriceBarSize.DAILY,
        long_only: bool = False,
    ) -> None:
        if entry_period <= 0:
            raise ValueError("entry_period must be positive")
        self.entry_period = entry_period
        self.bar_size = PriceBarSize(bar_size)
        self.long_only = long_only

    def generate_signal(self, security: Security, as_of: date) -> Signal | None:
        bars = security.get_price_bars_before(as_of, self.entry_period, self.bar_size)
        if len(bars) < self.entry_period:
            return None
        bar = security.get_price_bar(as_of, self.bar_size)
        action = _breakout_action(bar.close, [b.close for b in bars], self.long_only)
        if action == SignalAction.NONE:
            return None
        return Signal(security, self.bar_size, as_of, action)

    def copy(self) -> TrailingBreakout:
        return TrailingBreakout(self.entry_period, self.bar_size, self.long_only)


class AllTimeBreakout(TradeStrategy):
    """Enter on a new all-time high (or low) close once enough history exists."""

    name = "all_time_breakout"
    description = "Long/Short entry on all-time high/low breakout"

    def __init__(
        self,
        minimum_period: int = 90,
        bar_size: PriceBarSize = PriceBarSize.DAILY,
        long_only: bool = False,
    ) -> None:
        if minimum_period <= 0:
            raise ValueError("minimum_period must be positive")
        self.minimum_period = minimum_period
        self.bar_size = PriceBarSize(bar_size)
        self.long_only = long_only

    def generate_signal(self, security: Security, as_of: date) -> Signal | None:
        bars = security.get_price_bars_before(as_of, None, self.bar_size)
        if len(bars) < self.minimum_period:
            return None
        bar = security.get_price_bar(as_of, self.bar_size)
        action = _breakout_action(bar.close, [b.close for b in bars], self.long_only)
        if action == SignalAction.NONE:
            return None
        return Signal(security, self.bar_size, as_of, action)

    def copy(self) -> AllTimeBreakout:
        return AllTimeBreakout(self.minimum_period, self.bar_size, self.long_only)
