from datetime import date

import pytest

from simtrader.broker.ibkr import IbkrEnvironment
from simtrader.core.exceptions import InvalidTradeForPositionError
from simtrader.core.types import PositionDirection, TimeOfDay, TradeAction, TradeType
from simtrader.data.security import Security
from simtrader.ledger.position import IdArena, Position
from simtrader.ledger.trade import Trade

EOD = TimeOfDay.MARKET_END_OF_DAY
D1 = date(2019, 11, 18)
D2 = date(2019, 11, 19)
D3 = date(2019, 11, 20)


def _executed(security, action, quantity, price, day):
    trade = Trade(security, action, quantity, TradeType.MARKET)
    trade.mark_executed(day, price)
    return trade


@pytest.fixture
def security():
    sec = Security("XYZ")
    sec.add_bar(D1, 10, 15, 5, 11, 1000)
    sec.add_bar(D2, 11, 13, 10, 12, 1000)
    sec.add_bar(D3, 12, 16, 11, 15, 1000)
    return sec


class TestIdArena:
    def test_ids_increase(self):
        arena = IdArena()
        assert [arena.next_id(), arena.next_id()] == [1, 2]
        assert arena.peek() == 2

    def test_copy_continues_sequence(self):
        arena = IdArena()
        arena.next_id()
        clone = arena.copy()
        assert clone.next_id() == 2
        assert arena.next_id() == 2


class TestLongPosition:
    def test_single_buy_values(self, security):
        pos = Position(security, 1)
        pos.add_executed_trade(_executed(security, TradeAction.BUY, 100, 10, D1))
        assert pos.direction == PositionDirection.LONG
        assert pos.size(D1) == 100
        assert pos.average_cost(D1) == 10
        assert pos.gross_position_value(D1, EOD) == pytest.approx(1100)
        assert pos.gross_position_value(D1, TimeOfDay.MARKET_OPEN) == pytest.approx(1000)
        assert pos.total_unrealized_pnl(D1, EOD) == pytest.approx(100)
        assert pos.total_realized_pnl(D1) == 0

    def test_average_cost_and_partial_close(self, security):
        pos = Position(security, 1)
        pos.add_executed_trade(_executed(security, TradeAction.BUY, 100, 10, D1))
        pos.add_executed_trade(_executed(security, TradeAction.BUY, 100, 12, D2))
        pos.add_executed_trade(_executed(security, TradeAction.SELL, 50, 15, D3))
        assert pos.average_cost(D2) == 11
        assert pos.size(D3) == 150
        assert pos.average_cost(D3) == 11
        assert pos.total_realized_pnl(D3) == pytest.approx(200)
        assert pos.total_unrealized_pnl(D3, EOD) == pytest.approx(600)

    def test_values_as_of_earlier_date(self, security):
        pos = Position(security, 1)
        pos.add_executed_trade(_executed(security, TradeAction.BUY, 100, 10, D1))
        pos.add_executed_trade(_executed(security, TradeAction.SELL, 100, 12, D2))
        assert pos.is_open(D1)
        assert not pos.is_open(D2)
        assert pos.gross_position_value(D2, EOD) == 0

    def test_closed_position_returns(self, security):
        pos = Position(security, 1)
        pos.add_executed_trade(_executed(security, TradeAction.BUY, 100, 10, D1))
        pos.add_executed_trade(_executed(security, TradeAction.SELL, 100, 12, D3))
        assert pos.total_realized_pnl(D3) == pytest.approx(200)
        assert pos.total_return_dollars(D3) == pytest.approx(200)
        assert pos.total_return_percentage(D3) == pytest.approx(0.2)
        assert pos.days_held(D3) == 2
        assert pos.open_date() == D1
        assert pos.close_date() == D3

    def test_open_position_return_uses_close(self, security):
        pos = Position(security, 1)
        pos.add_executed_trade(_executed(security, TradeAction.BUY, 100, 10, D1))
        assert pos.total_return_dollars(D2) == pytest.approx(200)
        assert pos.close_date() is None

    def test_commission_paid(self, security, environment):
        pos = Position(security, 1)
        pos.add_executed_trade(_executed(security, TradeAction.BUY, 100, 10, D1))
        assert pos.total_commission_paid(D1, environment) == 0
        assert pos.total_commission_paid(D1, IbkrEnvironment()) == pytest.approx(-1.0)


class TestShortPosition:
    def test_short_values(self, security):
        pos = Position(security, 1)
        pos.add_executed_trade(_executed(security, TradeAction.SELL, 100, 12, D1))
        assert pos.direction == PositionDirection.SHORT
        assert pos.size(D1) == -100
        assert pos.average_cost(D1) == 12
        assert pos.gross_position_value(D1, EOD) == pytest.approx(-1100)
        assert pos.total_unrealized_pnl(D1, EOD) == pytest.approx(100)

    def test_short_cover_realizes(self, security):
        pos = Position(security, 1)
        pos.add_executed_trade(_executed(security, TradeAction.SELL, 100, 12, D1))
        pos.add_executed_trade(_executed(security, TradeAction.BUY, 100, 15, D3))
        assert pos.total_realized_pnl(D3) == pytest.approx(-300)
        assert pos.total_return_percentage(D3) == pytest.approx(-0.25)


class TestInvalidTrades:
    def test_security_mismatch(self, security):
        pos = Position(security, 1)
        with pytest.raises(InvalidTradeForPositionError):
            pos.add_executed_trade(_executed(Security("ABC"), TradeAction.BUY, 10, 10, D1))

    def test_unexecuted_trade(self, security):
        pos = Position(security, 1)
        with pytest.raises(InvalidTradeForPositionError):
            pos.add_executed_trade(Trade(security, TradeAction.BUY, 10, TradeType.MARKET))

    def test_direction_flip(self, security):
        pos = Position(security, 1)
        pos.add_executed_trade(_executed(security, TradeAction.BUY, 100, 10, D1))
        with pytest.raises(InvalidTradeForPositionError):
            pos.add_executed_trade(_executed(security, TradeAction.SELL, 150, 12, D2))
        assert pos.size(D2) == 100

    def test_check_trade_does_not_record(self, security):
        pos = Position(security, 1)
        pos.add_executed_trade(_executed(security, TradeAction.BUY, 100, 10, D1))
        pos.check_trade(Trade(security, TradeAction.SELL, 100, TradeType.MARKET), D2)
        with pytest.raises(InvalidTradeForPositionError, match="change position direction"):
            pos.check_trade(Trade(security, TradeAction.SELL, 150, TradeType.MARKET), D2)
        assert len(pos.executed_trades) == 1

    def test_trade_after_close(self, security):
        pos = Position(security, 1)
        pos.add_executed_trade(_executed(security, TradeAction.BUY, 100, 10, D1))
        pos.add_executed_trade(_executed(security, TradeAction.SELL, 100, 12, D2))
        with pytest.raises(InvalidTradeForPositionError):
            pos.add_executed_trade(_executed(security, TradeAction.BUY, 100, 12, D3))

    def test_copy_is_deep(self, security):
        pos = Position(security, 1)
        pos.add_executed_trade(_executed(security, TradeAction.BUY, 100, 10, D1))
        clone = pos.copy()
        clone.add_executed_trade(_executed(security, TradeAction.BUY, 50, 12, D2))
        assert pos.size(D2) == 100
        assert clone.size(D2) == 150
        assert clone.security is pos.security
