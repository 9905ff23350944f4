"""Core exception hierarchy for simtrader.

This module defines the complete exception hierarchy used throughout the
simulation engine. Errors fall into three groups: recoverable invalid
operations that reject a single trade or signal, invalid trading dates,
and fatal ledger-consistency violations that abort a simulation run.
"""
from __future__ import annotations

from datetime import date


class SimTraderError(Exception):
    """Base exception class for all simtrader errors.

    All simtrader-specific exceptions inherit from this class,
    allowing callers to catch all framework errors with a single except clause.
    """


class ConfigError(SimTraderError):
    """Configuration-related errors.

    Raised when there are issues with configuration files, invalid settings,
    or an unknown strategy or positioning method name.
    """


class DataError(SimTraderError):
    """Price data errors.

    Raised when price history is malformed, out of order, or cannot be
    aggregated into the requested bar size.
    """


class InvalidTradingDateError(SimTraderError):
    """Price bar requested for a date the market was closed.

    Callers are expected to validate dates against the trading calendar
    before requesting daily bars.

    Attributes:
        date: The rejected date.
    """

    def __init__(self, day: date, detail: str = ""):
        """Initialize InvalidTradingDateError.

        Args:
            day: The non-trading date that was requested.
            detail: Optional context for the failed lookup.
        """
        message = f"Invalid trading date: {day.isoformat()}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)
        self.date = day
        self.detail = detail


class InvalidTradeOperationError(SimTraderError):
    """An operation on a trade or queue is not permitted.

    Recoverable: the offending trade is not recorded and the caller may
    continue. Examples are adding a non-executed trade to a ledger, a limit
    order without a limit price, or changing the status of a cancelled trade.
    """


class InvalidTradeForPositionError(InvalidTradeOperationError):
    """A trade cannot be applied to a position.

    Raised for a security mismatch, a trade against an already closed
    position, a trade that would flip the sign of the position, or a trade
    that violates the portfolio direction constraint.

    Attributes:
        ticker: The position's security.
        reason: Why the trade was refused.
    """

    def __init__(self, ticker: str, reason: str):
        """Initialize InvalidTradeForPositionError.

        Args:
            ticker: Security ticker of the position.
            reason: Explanation of why the trade is invalid.
        """
        super().__init__(f"Invalid trade for position [{ticker}]: {reason}")
        self.ticker = ticker
        self.reason = reason


class LedgerConsistencyError(SimTraderError):
    """Fatal ledger or queue inconsistency.

    Signals a sequencing defect rather than a market condition. A simulation
    that encounters this error stops and reports an ERROR status.
    """


class TradeQueueError(LedgerConsistencyError):
    """The end-of-day trade queue check failed."""


class InvalidStoplossError(LedgerConsistencyError):
    """A generated stoploss would not close its position if triggered."""


class CancelTradeError(SimTraderError):
    """Abandon a single candidate trade.

    Raised by sizing policies when no sensible size can be computed, for
    example when the ATR is zero. The signal is dropped and the day continues.

    Attributes:
        ticker: Security of the abandoned candidate.
        as_of: Date of the candidate.
        reason: Why the candidate was abandoned.
    """

    def __init__(self, ticker: str, as_of: date, reason: str):
        """Initialize CancelTradeError.

        Args:
            ticker: Security ticker of the candidate trade.
            as_of: Signal date.
            reason: Description of the cancellation.
        """
        super().__init__(f"Trade cancelled [{ticker} {as_of.isoformat()}]: {reason}")
        self.ticker = ticker
        self.as_of = as_of
        self.reason = reason


class TrendOperationError(SimTraderError):
    """Swing point or trend classification reached an impossible state."""


class SimulationError(SimTraderError):
    """Simulation lifecycle errors.

    Raised when results are requested from a simulation that has not
    completed, or when a simulation is run twice.
    """
