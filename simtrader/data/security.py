"""Securities and their price bar history.

A ``Security`` owns an append-only daily bar series. Weekly, monthly and
quarterly bars are aggregated from the daily series on first use. Derived
indicator series (ATR, swing points) are cached on the security keyed by
every parameter that affects them, so securities can be shared read-only
across simulations.
"""
from __future__ import annotations

import bisect
import logging
import threading
from dataclasses import dataclass, field
from datetime import date
from itertools import groupby
from typing import Any, Callable, Hashable, Iterable

from simtrader.core import calendar
from simtrader.core.exceptions import DataError, InvalidTradingDateError
from simtrader.core.types import PriceBarSize, SwingPointTest, SwingPointType, TrendQualification

logger = logging.getLogger("simtrader.data.security")

_PERIOD_START: dict[PriceBarSize, Callable[[date], date]] = {
    PriceBarSize.WEEKLY: calendar.first_trading_day_of_week,
    PriceBarSize.MONTHLY: calendar.first_trading_day_of_month,
    PriceBarSize.QUARTERLY: calendar.first_trading_day_of_quarter,
}


@dataclass(eq=False)
class PriceBar:
    """OHLCV values for one security, date and bar size.

    Aggregated bars are dated by the first trading day of their period.
    """

    date: date
    open: float
    high: float
    low: float
    close: float
    volume: float = 0.0
    bar_size: PriceBarSize = PriceBarSize.DAILY
    security: Security | None = field(default=None, repr=False)
    index: int = field(default=-1, repr=False)

    @property
    def ticker(self) -> str:
        return self.security.ticker if self.security else ""

    @property
    def prior_bar(self) -> PriceBar | None:
        if self.security is None or self.index <= 0:
            return None
        return self.security.bars(self.bar_size)[self.index - 1]

    @property
    def next_bar(self) -> PriceBar | None:
        if self.security is None or self.index < 0:
            return None
        bars = self.security.bars(self.bar_size)
        if self.index + 1 >= len(bars):
            return None
        return bars[self.index + 1]

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------

    def true_range(self) -> float:
        from simtrader.indicators.volatility import true_range

        return true_range(self, self.prior_bar)

    def average_true_range(self, period: int = 14) -> float:
        from simtrader.indicators.volatility import average_true_range

        return average_true_range(self, period)

    def swing_point_type(self, bar_count: int) -> SwingPointType:
        from simtrader.indicators.swing import swing_point_type

        return swing_point_type(self, bar_count)

    def trend_type(self, bar_count: int) -> TrendQualification:
        from simtrader.indicators.swing import trend_type

        return trend_type(self, bar_count)

    def swing_point_test(self, bar_count: int) -> SwingPointTest:
        from simtrader.indicators.swing import swing_point_test

        return swing_point_test(self, bar_count)


class Security:
    """A tradable security identified by its ticker."""

    def __init__(self, ticker: str, name: str = "", sector: str = "") -> None:
        if not ticker or not ticker.strip():
            raise ValueError("ticker must be a non-empty string")
        self.ticker = ticker.strip().upper()
        self.name = name
        self.sector = sector
        self._daily: list[PriceBar] = []
        self._daily_dates: list[date] = []
        self._aggregated: dict[PriceBarSize, list[PriceBar]] = {}
        self._indicator_cache: dict[Hashable, Any] = {}
        self._lock = threading.RLock()

    def __repr__(self) -> str:
        return f"Security({self.ticker!r}, bars={len(self._daily)})"

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------

    def add_bar(
        self,
        day: date,
        open: float,
        high: float,
        low: float,
        close: float,
        volume: float = 0.0,
    ) -> PriceBar:
        """Append one daily bar. Dates must be trading days in ascending order."""
        if not calendar.is_trading_day(day):
            raise InvalidTradingDateError(day, f"cannot add bar for {self.ticker}")
        if high < low:
            raise DataError(f"{self.ticker} {day}: high {high} below low {low}")
        with self._lock:
            if self._daily_dates and day <= self._daily_dates[-1]:
                raise DataError(
                    f"{self.ticker}: bar {day} is not after last bar {self._daily_dates[-1]}"
                )
            bar = PriceBar(
                date=day, open=open, high=high, low=low, close=close, volume=volume,
                bar_size=PriceBarSize.DAILY, security=self, index=len(self._daily),
            )
            self._daily.append(bar)
            self._daily_dates.append(day)
            self._invalidate()
        return bar

    def add_bars(self, rows: Iterable[tuple[date, float, float, float, float, float]]) -> int:
        count = 0
        for day, open_, high, low, close, volume in rows:
            self.add_bar(day, open_, high, low, close, volume)
            count += 1
        return count

    def _invalidate(self) -> None:
        self._aggregated.clear()
        self._indicator_cache.clear()

    # ------------------------------------------------------------------
    # Bar access
    # ------------------------------------------------------------------

    def bars(self, bar_size: PriceBarSize = PriceBarSize.DAILY) -> list[PriceBar]:
        if bar_size == PriceBarSize.DAILY:
            return self._daily
        with self._lock:
            if bar_size not in self._aggregated:
                self._aggregated[bar_size] = self._aggregate(bar_size)
            return self._aggregated[bar_size]

    def _aggregate(self, bar_size: PriceBarSize) -> list[PriceBar]:
        period_start = _PERIOD_START[bar_size]
        result: list[PriceBar] = []
        for start, group in groupby(self._daily, key=lambda b: period_start(b.date)):
            members = list(group)
            result.append(PriceBar(
                date=start,
                open=members[0].open,
                high=max(b.high for b in members),
                low=min(b.low for b in members),
                close=members[-1].close,
                volume=sum(b.volume for b in members),
                bar_size=bar_size,
                security=self,
                index=len(result),
            ))
        return result

    def _dates(self, bar_size: PriceBarSize) -> list[date]:
        if bar_size == PriceBarSize.DAILY:
            return self._daily_dates
        return self.cached_series(("dates", bar_size), lambda: [b.date for b in self.bars(bar_size)])

    def _find(self, day: date, bar_size: PriceBarSize) -> PriceBar | None:
        bars = self.bars(bar_size)
        dates = self._dates(bar_size)
        i = bisect.bisect_left(dates, day)
        if i < len(bars) and bars[i].date == day:
            return bars[i]
        return None

    def get_price_bar(
        self,
        day: date,
        bar_size: PriceBarSize = PriceBarSize.DAILY,
        create: bool = False,
    ) -> PriceBar | None:
        """Return the bar for ``day``.

        Daily lookups on a non-trading day raise ``InvalidTradingDateError``.
        Missing bars return None, or with ``create`` a flat placeholder bar
        carrying the prior close is appended (daily only).
        """
        if bar_size != PriceBarSize.DAILY:
            bar = self._find(_PERIOD_START[bar_size](day), bar_size)
            if bar is None and create:
                raise DataError(f"Cannot create {bar_size.value} bars for {self.ticker}")
            return bar

        if not calendar.is_trading_day(day):
            raise InvalidTradingDateError(day, f"no session for {self.ticker}")
        bar = self._find(day, bar_size)
        if bar is None and create:
            last = self._daily[-1].close if self._daily else 0.0
            logger.debug("Creating placeholder bar %s %s", self.ticker, day)
            bar = self.add_bar(day, last, last, last, last, 0.0)
        return bar

    def get_price_bar_or_last_prior(
        self,
        day: date,
        bar_size: PriceBarSize = PriceBarSize.DAILY,
        lookback_limit: int | None = 1,
    ) -> PriceBar | None:
        """Return the bar for ``day`` or the nearest earlier one.

        At most ``lookback_limit`` earlier periods are examined; None means
        no limit.
        """
        bars = self.bars(bar_size)
        if not bars:
            return None
        if lookback_limit is None:
            i = bisect.bisect_right(self._dates(bar_size), day)
            return bars[i - 1] if i > 0 else None

        if bar_size == PriceBarSize.DAILY:
            current = day if calendar.is_trading_day(day) else calendar.prior_trading_day(day)
            bar = self.get_price_bar(current)
            while bar is None and lookback_limit > 0:
                lookback_limit -= 1
                current = calendar.prior_trading_day(current)
                bar = self.get_price_bar(current)
            return bar

        bar = self.get_price_bar(day, bar_size)
        current = _PERIOD_START[bar_size](day)
        while bar is None and lookback_limit > 0:
            lookback_limit -= 1
            current = _PERIOD_START[bar_size](calendar.prior_trading_day(current))
            bar = self.get_price_bar(current, bar_size)
        return bar

    def get_price_bars(
        self,
        start: date,
        end: date,
        bar_size: PriceBarSize = PriceBarSize.DAILY,
    ) -> list[PriceBar]:
        """Bars dated within the closed interval [start, end]."""
        return [b for b in self.bars(bar_size) if start <= b.date <= end]

    def get_price_bars_before(
        self,
        as_of: date,
        count: int | None = None,
        bar_size: PriceBarSize = PriceBarSize.DAILY,
        include_as_of: bool = False,
    ) -> list[PriceBar]:
        """The ``count`` most recent bars before ``as_of`` (all when None)."""
        anchor = as_of if bar_size == PriceBarSize.DAILY else _PERIOD_START[bar_size](as_of)
        dates = self._dates(bar_size)
        end = bisect.bisect_right(dates, anchor) if include_as_of else bisect.bisect_left(dates, anchor)
        if count is None:
            return self.bars(bar_size)[:end]
        if count <= 0:
            return []
        return self.bars(bar_size)[max(0, end - count):end]

    def has_bar(self, day: date, bar_size: PriceBarSize = PriceBarSize.DAILY) -> bool:
        if bar_size == PriceBarSize.DAILY and not calendar.is_trading_day(day):
            return False
        return self.get_price_bar(day, bar_size) is not None

    def first_bar(self, bar_size: PriceBarSize = PriceBarSize.DAILY) -> PriceBar | None:
        bars = self.bars(bar_size)
        return bars[0] if bars else None

    def last_bar(self, bar_size: PriceBarSize = PriceBarSize.DAILY) -> PriceBar | None:
        bars = self.bars(bar_size)
        return bars[-1] if bars else None

    def average_volume(self, as_of: date, days: int = 30) -> float:
        bars = self.get_price_bars_before(as_of, days, include_as_of=True)
        if not bars:
            return 0.0
        return sum(b.volume for b in bars) / len(bars)

    # ------------------------------------------------------------------
    # Indicator cache
    # ------------------------------------------------------------------

    def cached_series(self, key: Hashable, build: Callable[[], Any]) -> Any:
        """Return the cached derived series for ``key``, building it once.

        Keys carry every parameter of the computation, so an entry is never
        replaced by a different parameterization.
        """
        with self._lock:
            if key not in self._indicator_cache:
                self._indicator_cache[key] = build()
            return self._indicator_cache[key]

    def is_cached(self, key: Hashable) -> bool:
        return key in self._indicator_cache
