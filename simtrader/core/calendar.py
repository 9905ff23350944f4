"""US equity market trading calendar.

Weekends and exchange holidays are non-trading days. Holidays that fall on
a Saturday are observed on the Friday before, those on a Sunday on the
Monday after. Holiday dates come from pandas holiday rules and are cached
per calendar year.
"""
from __future__ import annotations

from datetime import date, timedelta
from functools import lru_cache

from pandas.tseries.holiday import (
    AbstractHolidayCalendar,
    GoodFriday,
    Holiday,
    USLaborDay,
    USMartinLutherKingJr,
    USMemorialDay,
    USPresidentsDay,
    USThanksgivingDay,
    nearest_workday,
)


class ExchangeHolidayCalendar(AbstractHolidayCalendar):
    rules = [
        Holiday("NewYearsDay", month=1, day=1, observance=nearest_workday),
        USMartinLutherKingJr,
        USPresidentsDay,
        GoodFriday,
        USMemorialDay,
        Holiday("IndependenceDay", month=7, day=4, observance=nearest_workday),
        USLaborDay,
        USThanksgivingDay,
        Holiday("Christmas", month=12, day=25, observance=nearest_workday),
    ]


@lru_cache(maxsize=None)
def holidays(year: int) -> frozenset[date]:
    """Return the observed exchange holidays falling within ``year``."""
    index = ExchangeHolidayCalendar().holidays(
        start=f"{year}-01-01", end=f"{year}-12-31",
    )
    return frozenset(ts.date() for ts in index)


def is_trading_day(day: date) -> bool:
    if day.weekday() >= 5:
        return False
    return day not in holidays(day.year)


def next_trading_day(day: date, days: int = 1) -> date:
    """Return the ``days``-th trading day strictly after ``day``."""
    current = day
    for _ in range(days):
        current += timedelta(days=1)
        while not is_trading_day(current):
            current += timedelta(days=1)
    return current


def prior_trading_day(day: date, days: int = 1) -> date:
    """Return the ``days``-th trading day strictly before ``day``."""
    current = day
    for _ in range(days):
        current -= timedelta(days=1)
        while not is_trading_day(current):
            current -= timedelta(days=1)
    return current


def trading_days(start: date, end: date) -> list[date]:
    """All trading days in the closed interval [start, end]."""
    days: list[date] = []
    current = start if is_trading_day(start) else next_trading_day(start)
    while current <= end:
        days.append(current)
        current = next_trading_day(current)
    return days


def first_trading_day_of_week(day: date) -> date:
    monday = day - timedelta(days=day.weekday())
    return monday if is_trading_day(monday) else next_trading_day(monday)


def last_trading_day_of_week(day: date) -> date:
    friday = day - timedelta(days=day.weekday()) + timedelta(days=4)
    return friday if is_trading_day(friday) else prior_trading_day(friday)


def first_trading_day_of_month(day: date) -> date:
    first = day.replace(day=1)
    return first if is_trading_day(first) else next_trading_day(first)


def first_trading_day_of_quarter(day: date) -> date:
    first = date(day.year, 3 * ((day.month - 1) // 3) + 1, 1)
    return first if is_trading_day(first) else next_trading_day(first)
