"""Shared fixtures for simtrader tests."""
from __future__ import annotations

from datetime import date

import pytest

from simtrader.broker.ibkr import IbkrEnvironment
from simtrader.core import calendar
from simtrader.core.config import EnvironmentConfig
from simtrader.core.types import MarginType, PortfolioDirection
from simtrader.data.security import Security
from simtrader.ledger.portfolio import Portfolio, PortfolioSetup


def _build_security(
    ticker: str,
    closes: list[float],
    start: date = date(2019, 1, 2),
    spread: float = 0.5,
    volume: float = 100_000.0,
) -> Security:
    """One daily bar per close on consecutive trading days, open equal to close."""
    security = Security(ticker)
    day = start if calendar.is_trading_day(start) else calendar.next_trading_day(start)
    for close in closes:
        security.add_bar(day, close, close + spread, close - spread, close, volume)
        day = calendar.next_trading_day(day)
    return security


@pytest.fixture
def make_security():
    return _build_security


@pytest.fixture
def environment():
    """Broker environment with commissions disabled."""
    return IbkrEnvironment(EnvironmentConfig(commission_enabled=False))


@pytest.fixture
def make_portfolio(environment):
    def _make(
        initial_cash: float = 100_000.0,
        inception: date = date(2019, 1, 2),
        direction: PortfolioDirection = PortfolioDirection.LONG_SHORT,
        margin_type: MarginType = MarginType.REG_T,
    ) -> Portfolio:
        setup = PortfolioSetup(initial_cash, inception, direction, margin_type)
        return Portfolio(setup, environment, "Test Portfolio")

    return _make
