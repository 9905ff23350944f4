from datetime import date

import pytest

from simtrader.core.types import (
    PriceBarSize,
    Signal,
    SignalAction,
    SwingPointType,
    TradeAction,
    TradePriority,
    TrendQualification,
)
from simtrader.data.security import Security


class TestTradeAction:
    def test_sign(self):
        assert int(TradeAction.BUY) == 1
        assert int(TradeAction.SELL) == -1

    def test_opposite(self):
        assert TradeAction.BUY.opposite == TradeAction.SELL
        assert TradeAction.SELL.opposite == TradeAction.BUY


class TestTradePriority:
    def test_risk_reducing_orders_first(self):
        ordered = sorted(TradePriority, reverse=True)
        assert ordered[:3] == [
            TradePriority.STOPLOSS_IMMEDIATE,
            TradePriority.POSITION_CLOSE,
            TradePriority.EXISTING_POSITION_DECREASE,
        ]
        assert TradePriority.NEW_POSITION_OPEN > TradePriority.EXISTING_POSITION_INCREASE


class TestSwingPointType:
    def test_flags_combine(self):
        both = SwingPointType.POTENTIAL_LOW | SwingPointType.POTENTIAL_HIGH
        assert both & SwingPointType.POTENTIAL_LOW
        assert not both & SwingPointType.LOW


class TestTrendQualification:
    @pytest.mark.parametrize("trend,bullish,bearish,sideways", [
        (TrendQualification.CONFIRMED_BULLISH, True, False, False),
        (TrendQualification.SUSPECT_BEARISH, False, True, False),
        (TrendQualification.AMBIVALENT_SIDEWAYS, False, False, True),
        (TrendQualification.NOT_SET, False, False, False),
    ])
    def test_families(self, trend, bullish, bearish, sideways):
        assert (trend.is_bullish, trend.is_bearish, trend.is_sideways) == (bullish, bearish, sideways)


class TestSignal:
    def test_strength_bounds(self):
        with pytest.raises(ValueError):
            Signal(Security("XYZ"), PriceBarSize.DAILY, date(2019, 1, 2), SignalAction.BUY, 1.5)

    def test_ticker(self):
        signal = Signal(Security("XYZ"), PriceBarSize.DAILY, date(2019, 1, 2), SignalAction.SELL, 0.5)
        assert signal.ticker == "XYZ"
        assert signal.strength == 0.5
