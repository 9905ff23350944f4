from datetime import date

import pytest

from simtrader.core.config import PositioningConfig
from simtrader.core.exceptions import CancelTradeError, ConfigError
from simtrader.core.types import (
    PositionDirection,
    PriceBarSize,
    Signal,
    SignalAction,
    TradeAction,
    TradeType,
)
from simtrader.ledger.position import Position
from simtrader.ledger.trade import Trade
from simtrader.risk.positioning import (
    POSITIONING_STRATEGIES,
    AtrSizingAndStoploss,
    SwingPointSizingAndStoploss,
    create_positioning,
)

# One dip to 50 then a steady climb: bar 5 is the only actualized swing low
DIP_AND_CLIMB = [55.0, 54.0, 53.0, 52.0, 51.0, 50.0, 51.0, 52.0, 53.0, 54.0, 55.0, 56.0, 57.0, 58.0, 59.0, 60.0]


def _signal(security, action=SignalAction.BUY):
    return Signal(security, PriceBarSize.DAILY, security.last_bar().date, action, 1.0)


def _position(security, action, quantity, price):
    trade = Trade(security, action, quantity, TradeType.MARKET)
    trade.mark_executed(security.last_bar().date, price)
    position = Position(security, 1)
    position.add_executed_trade(trade)
    return position


def _stop_at(position, price):
    return Trade(position.security, TradeAction(-int(position.direction)), 1, TradeType.STOP, stop_price=price)


class TestAtr:
    @pytest.fixture
    def security(self, make_security):
        # Constant closes with a 2.0 daily range give an ATR of 2.0
        return make_security("XYZ", [50.0] * 20, spread=1.0)

    def test_size_risks_fixed_share_of_equity(self, security, make_portfolio):
        size = AtrSizingAndStoploss().new_position_size(make_portfolio(), _signal(security), security.last_bar().date, 0.02)
        assert size == 125

    def test_zero_atr_cancels(self, make_security, make_portfolio):
        flat = make_security("FLAT", [50.0] * 20, spread=0.0)
        with pytest.raises(CancelTradeError):
            AtrSizingAndStoploss().new_position_size(make_portfolio(), _signal(flat), flat.last_bar().date, 0.02)

    def test_stale_data_cancels(self, security, make_portfolio):
        with pytest.raises(CancelTradeError):
            AtrSizingAndStoploss().new_position_size(make_portfolio(), _signal(security), date(2019, 6, 3), 0.02)

    def test_long_stop_below_entry(self, security):
        position = _position(security, TradeAction.BUY, 125, 50.0)
        stop = AtrSizingAndStoploss().new_stoploss(position, security.last_bar().date)
        assert stop.trade_type == TradeType.STOP
        assert stop.action == TradeAction.SELL
        assert stop.quantity == 125
        assert stop.stop_price == pytest.approx(34.0)
        assert stop.trade_date == security.last_bar().date

    def test_short_stop_above_entry(self, security):
        position = _position(security, TradeAction.SELL, 125, 50.0)
        stop = AtrSizingAndStoploss().new_stoploss(position, security.last_bar().date)
        assert stop.action == TradeAction.BUY
        assert stop.stop_price == pytest.approx(66.0)

    def test_stop_price_floor(self, security):
        position = _position(security, TradeAction.BUY, 10, 50.0)
        stop = AtrSizingAndStoploss(atr_multiple=100.0).new_stoploss(position, security.last_bar().date)
        assert stop.stop_price == 0.01

    @pytest.mark.parametrize("current,expected", [(30.0, 34.0), (40.0, 40.0)])
    def test_long_update_never_loosens(self, security, current, expected):
        position = _position(security, TradeAction.BUY, 10, 50.0)
        as_of = security.last_bar().date
        price = AtrSizingAndStoploss().update_stoploss_price(position, _stop_at(position, current), as_of)
        assert price == pytest.approx(expected)

    @pytest.mark.parametrize("current,expected", [(70.0, 66.0), (60.0, 60.0)])
    def test_short_update_never_loosens(self, security, current, expected):
        position = _position(security, TradeAction.SELL, 10, 50.0)
        as_of = security.last_bar().date
        price = AtrSizingAndStoploss().update_stoploss_price(position, _stop_at(position, current), as_of)
        assert price == pytest.approx(expected)

    def test_creep_tightens_existing_stop(self, security):
        position = _position(security, TradeAction.BUY, 10, 50.0)
        policy = AtrSizingAndStoploss(stoploss_creep_pct=0.1)
        price = policy.update_stoploss_price(position, _stop_at(position, 32.0), security.last_bar().date)
        assert price == pytest.approx(35.2)

    def test_copy(self):
        policy = AtrSizingAndStoploss(10, 4.0, 0.01)
        clone = policy.copy()
        assert clone is not policy
        assert (clone.atr_period, clone.atr_multiple, clone.stoploss_creep_pct) == (10, 4.0, 0.01)


class TestSwingPoint:
    def test_stop_below_last_swing_low(self, make_security):
        security = make_security("DIP", DIP_AND_CLIMB)
        policy = SwingPointSizingAndStoploss(bar_count=6)
        stop_price = policy.swing_stop_price(security, PositionDirection.LONG, security.last_bar().date)
        assert stop_price == pytest.approx(49.49)

    def test_size_from_swing_risk(self, make_security, make_portfolio):
        security = make_security("DIP", DIP_AND_CLIMB)
        size = SwingPointSizingAndStoploss(bar_count=6).new_position_size(
            make_portfolio(), _signal(security), security.last_bar().date, 0.02,
        )
        assert size == 190

    def test_new_stoploss_uses_swing_low(self, make_security):
        security = make_security("DIP", DIP_AND_CLIMB)
        position = _position(security, TradeAction.BUY, 190, 60.0)
        stop = SwingPointSizingAndStoploss(bar_count=6).new_stoploss(position, security.last_bar().date)
        assert stop.stop_price == pytest.approx(49.49)
        assert stop.quantity == 190

    def test_falls_back_to_atr_without_swing_low(self, make_security, make_portfolio):
        falling = make_security("DOWN", [60.0 - 0.2 * i for i in range(20)], spread=1.0)
        policy = SwingPointSizingAndStoploss(bar_count=6)
        as_of = falling.last_bar().date
        assert policy.swing_stop_price(falling, PositionDirection.LONG, as_of) is None
        assert policy.new_position_size(make_portfolio(), _signal(falling), as_of, 0.02) == 125


class _TightAtr(AtrSizingAndStoploss):
    name = "tight_atr"

    @classmethod
    def from_config(cls, config):
        return cls(config.atr_period, 2.0)


class TestFactory:
    def test_atr(self):
        policy = create_positioning(PositioningConfig(method="atr", atr_period=10, atr_multiple=3.0))
        assert isinstance(policy, AtrSizingAndStoploss)
        assert policy.atr_multiple == 3.0

    def test_swing_point(self):
        policy = create_positioning(PositioningConfig(method="swing_point", swing_point_bar_count=4))
        assert isinstance(policy, SwingPointSizingAndStoploss)
        assert policy.bar_count == 4

    def test_unknown_method(self):
        with pytest.raises(ConfigError):
            create_positioning(PositioningConfig.model_construct(method="foo"))

    def test_registered_method_dispatched(self, monkeypatch):
        monkeypatch.setitem(POSITIONING_STRATEGIES, _TightAtr.name, _TightAtr)
        policy = create_positioning(PositioningConfig.model_construct(method="tight_atr", atr_period=5))
        assert isinstance(policy, _TightAtr)
        assert (policy.atr_period, policy.atr_multiple) == (5, 2.0)

    def test_registry_names_match_classes(self):
        assert {name: cls.name for name, cls in POSITIONING_STRATEGIES.items()} == {
            "atr": "atr",
            "swing_point": "swing_point",
        }
