"""Shared enumerations and value types for the simulation engine."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from enum import Enum, IntEnum, IntFlag
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from simtrader.data.security import Security


class TradeAction(IntEnum):
    """Side of a trade; the value is the sign applied to its quantity."""

    BUY = 1
    SELL = -1

    @property
    def opposite(self) -> TradeAction:
        return TradeAction(-self.value)


class TradeType(Enum):
    MARKET = "MARKET"
    LIMIT = "LIMIT"
    STOP = "STOP"


class TradeStatus(Enum):
    NOT_SET = "NOT_SET"
    INDICATED = "INDICATED"
    PENDING = "PENDING"
    EXECUTED = "EXECUTED"
    CANCELLED = "CANCELLED"
    REJECTED = "REJECTED"
    STOPLOSS = "STOPLOSS"


class TradePriority(IntEnum):
    """Queue priority; trades are processed in descending value.

    Risk-reducing orders run first, then new positions ahead of increases
    to existing positions.
    """

    NOT_SET = 0
    EXISTING_POSITION_INCREASE = 1
    NEW_POSITION_OPEN = 2
    EXISTING_POSITION_DECREASE = 3
    POSITION_CLOSE = 4
    STOPLOSS_IMMEDIATE = 5


class PositionDirection(IntEnum):
    NOT_SET = 0
    LONG = 1
    SHORT = -1


class PositionStatus(Enum):
    OPEN = "OPEN"
    CLOSED = "CLOSED"


class PortfolioDirection(Enum):
    LONG_ONLY = "long_only"
    SHORT_ONLY = "short_only"
    LONG_SHORT = "long_short"


class MarginType(Enum):
    CASH = "cash"
    REG_T = "reg_t"


class SignalAction(IntEnum):
    SELL = -1
    NONE = 0
    BUY = 1
    CLOSE_IF_OPEN = 2


class TimeOfDay(Enum):
    MARKET_OPEN = "MARKET_OPEN"
    MARKET_END_OF_DAY = "MARKET_END_OF_DAY"


class PriceBarSize(Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"


class SwingPointType(IntFlag):
    NONE = 0
    POTENTIAL_LOW = 1
    LOW = 2
    POTENTIAL_HIGH = 4
    HIGH = 8


class SwingPointTest(Enum):
    NONE = "NONE"
    TEST_HIGH = "TEST_HIGH"
    TEST_LOW = "TEST_LOW"


class SwingPointTestPriceResult(Enum):
    CLOSE_EXCEEDS = "CLOSE_EXCEEDS"
    CLOSE_DOES_NOT_EXCEED = "CLOSE_DOES_NOT_EXCEED"


class SwingPointTestVolumeResult(Enum):
    VOLUME_EXPANDS = "VOLUME_EXPANDS"
    VOLUME_CONTRACTS = "VOLUME_CONTRACTS"


class TrendQualification(Enum):
    NOT_SET = "NOT_SET"
    AMBIVALENT_SIDEWAYS = "AMBIVALENT_SIDEWAYS"
    SUSPECT_SIDEWAYS = "SUSPECT_SIDEWAYS"
    CONFIRMED_SIDEWAYS = "CONFIRMED_SIDEWAYS"
    SUSPECT_BULLISH = "SUSPECT_BULLISH"
    CONFIRMED_BULLISH = "CONFIRMED_BULLISH"
    SUSPECT_BEARISH = "SUSPECT_BEARISH"
    CONFIRMED_BEARISH = "CONFIRMED_BEARISH"

    @property
    def is_bullish(self) -> bool:
        return self in (TrendQualification.SUSPECT_BULLISH, TrendQualification.CONFIRMED_BULLISH)

    @property
    def is_bearish(self) -> bool:
        return self in (TrendQualification.SUSPECT_BEARISH, TrendQualification.CONFIRMED_BEARISH)

    @property
    def is_sideways(self) -> bool:
        return self in (
            TrendQualification.AMBIVALENT_SIDEWAYS,
            TrendQualification.SUSPECT_SIDEWAYS,
            TrendQualification.CONFIRMED_SIDEWAYS,
        )


class TrendAlignment(Enum):
    NOT_SET = "NOT_SET"
    BULLISH = "BULLISH"
    SIDEWAYS_BULLISH = "SIDEWAYS_BULLISH"
    SIDEWAYS = "SIDEWAYS"
    SIDEWAYS_BEARISH = "SIDEWAYS_BEARISH"
    BEARISH = "BEARISH"
    OPPOSING = "OPPOSING"


class SimulationStatus(Enum):
    NOT_STARTED = "NOT_STARTED"
    RUNNING = "RUNNING"
    COMPLETE = "COMPLETE"
    ERROR = "ERROR"


@dataclass(frozen=True, slots=True)
class Signal:
    """Strategy output for one security on one date."""

    security: Security
    bar_size: PriceBarSize
    date: date
    action: SignalAction
    strength: float = 0.0

    def __post_init__(self) -> None:
        if not 0.0 <= self.strength <= 1.0:
            raise ValueError(f"Signal strength must be within [0, 1], got {self.strength}")

    @property
    def ticker(self) -> str:
        return self.security.ticker
