from datetime import date

import pandas as pd
import pytest

from simtrader.backtest.results import SimulationResults
from simtrader.core.types import TradeAction, TradeType
from simtrader.ledger.trade import Trade

D1 = date(2019, 11, 18)
D2 = date(2019, 11, 19)
D5 = date(2019, 11, 22)


def _fill(portfolio, security, action, quantity, price, day):
    trade = Trade(security, action, quantity, TradeType.MARKET)
    trade.mark_executed(day, price)
    portfolio.add_executed_trade(trade)


@pytest.fixture
def held(make_portfolio, make_security):
    """100 shares bought at 10 and held through closes of 10, 12, 9, 11, 13."""
    portfolio = make_portfolio(initial_cash=10_000.0, inception=D1)
    security = make_security("XYZ", [10.0, 12.0, 9.0, 11.0, 13.0], start=D1)
    _fill(portfolio, security, TradeAction.BUY, 100, 10.0, D1)
    return SimulationResults(portfolio, D1, D5)


@pytest.fixture
def round_trips(make_portfolio, make_security):
    """One winning (+20%) and one losing (-10%) round trip."""
    portfolio = make_portfolio(initial_cash=10_000.0, inception=D1)
    winner = make_security("WIN", [10.0, 12.0], start=D1)
    loser = make_security("LOS", [10.0, 9.0], start=D1)
    _fill(portfolio, winner, TradeAction.BUY, 100, 10.0, D1)
    _fill(portfolio, loser, TradeAction.BUY, 100, 10.0, D1)
    _fill(portfolio, winner, TradeAction.SELL, 100, 12.0, D2)
    _fill(portfolio, loser, TradeAction.SELL, 100, 9.0, D2)
    return SimulationResults(portfolio, D1, D2)


class TestEquity:
    def test_daily_equity(self, held):
        equity = held.daily_equity()
        assert list(equity) == [10_000, 10_200, 9_900, 10_100, 10_300]
        assert equity.index[0] == pd.Timestamp(D1)

    def test_total_return(self, held):
        assert held.total_return_percent == pytest.approx(0.03)
        assert held.annualized_return_percent > 0.03

    def test_drawdown(self, held):
        assert held.max_drawdown_dollars == pytest.approx(-300)
        assert held.max_drawdown_percent == pytest.approx(-300 / 10_200)
        assert held.max_drawdown_recovery_days == 2

    def test_equity_range(self, held):
        assert held.min_account_equity == 9_900
        assert held.max_account_equity == 10_300


class TestPositions:
    def test_open_position_stats(self, held):
        assert held.max_open_positions == 1
        assert held.unrealized_pnl_at_end == pytest.approx(300)
        assert held.longest_hold_days == 4
        assert held.total_trades == 1
        assert held.winning_position_percent == 0

    def test_winning_percent_is_a_ratio(self, round_trips):
        assert round_trips.winning_position_percent == 0.5

    def test_average_returns(self, round_trips):
        assert round_trips.average_winning_return_percent == pytest.approx(0.2)
        assert round_trips.average_losing_return_percent == pytest.approx(-0.1)
        assert round_trips.average_hold_days == 1.0
        assert round_trips.max_open_positions == 2
        assert round_trips.total_trades == 4

    def test_commissions_disabled(self, round_trips):
        assert round_trips.total_commissions == 0


class TestMonthlyReturns:
    def test_whole_months_only(self, make_portfolio):
        results = SimulationResults(make_portfolio(), date(2019, 1, 2), date(2019, 3, 29))
        monthly = results.monthly_returns()
        assert list(monthly.index) == [date(2019, 2, 1), date(2019, 3, 1)]
        assert list(monthly) == [0.0, 0.0]

    def test_partial_first_month_skipped(self, make_portfolio):
        results = SimulationResults(make_portfolio(), date(2019, 1, 15), date(2019, 3, 29))
        assert list(results.monthly_returns().index) == [date(2019, 3, 1)]

    def test_no_whole_month(self, held):
        assert held.monthly_returns().empty
        assert held.max_monthly_return_percent == 0.0
        assert held.min_monthly_return_percent == 0.0


class TestOutput:
    def test_to_dict_keys(self, held):
        summary = held.to_dict()
        assert summary["total_trades"] == 1
        assert "max_drawdown_percent" in summary

    def test_to_lines_formats(self, held):
        lines = held.to_lines()
        assert "Total Return Percent: 3.00%" in lines
        assert "Total Trades: 1" in lines
        assert "Max Drawdown Dollars: -300.00" in lines
