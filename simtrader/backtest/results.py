"""Summary statistics of a completed simulation."""
from __future__ import annotations

from datetime import date

import pandas as pd

from simtrader.core import calendar
from simtrader.core.types import PositionStatus, TimeOfDay
from simtrader.ledger.portfolio import Portfolio

EOD = TimeOfDay.MARKET_END_OF_DAY


class SimulationResults:
    """Returns, drawdowns and position statistics read from the final ledger."""

    def __init__(self, portfolio: Portfolio, start: date, end: date) -> None:
        self.portfolio = portfolio
        self.start = start
        self.end = end
        self._equity: pd.Series | None = None

    @property
    def total_days(self) -> int:
        return (self.end - self.start).days

    def daily_equity(self) -> pd.Series:
        """End-of-day net liquidation value for every trading day in the run."""
        if self._equity is None:
            days = calendar.trading_days(self.start, self.end)
            self._equity = pd.Series(
                [self.portfolio.net_liquidation_value(d, EOD) for d in days],
                index=pd.DatetimeIndex(days),
                name="net_liquidation_value",
                dtype=float,
            )
        return self._equity

    # ------------------------------------------------------------------
    # Returns
    # ------------------------------------------------------------------

    @property
    def total_return_percent(self) -> float:
        initial = self.portfolio.setup.initial_cash
        return (self.portfolio.net_liquidation_value(self.end, EOD) - initial) / initial

    @property
    def annualized_return_percent(self) -> float:
        if self.total_days <= 0:
            return 0.0
        return (1 + self.total_return_percent) ** (365.0 / self.total_days) - 1

    def monthly_returns(self) -> pd.Series:
        """Returns of whole calendar months; partial months at either end are excluded."""
        first = calendar.first_trading_day_of_month(self.start)
        if first < self.start:
            first = calendar.first_trading_day_of_month(_next_month(first))
        if first > self.end:
            return pd.Series(dtype=float)

        values = {first: self.portfolio.net_liquidation_value(first, TimeOfDay.MARKET_OPEN)}
        day = calendar.first_trading_day_of_month(_next_month(first))
        while day <= self.end:
            values[day] = self.portfolio.net_liquidation_value(day, EOD)
            day = calendar.first_trading_day_of_month(_next_month(day))

        series = pd.Series(values, dtype=float)
        return series.pct_change().iloc[1:]

    @property
    def max_monthly_return_percent(self) -> float:
        monthly = self.monthly_returns()
        return float(monthly.max()) if not monthly.empty else 0.0

    @property
    def min_monthly_return_percent(self) -> float:
        monthly = self.monthly_returns()
        return float(monthly.min()) if not monthly.empty else 0.0

    # ------------------------------------------------------------------
    # Drawdown
    # ------------------------------------------------------------------

    @property
    def max_drawdown_dollars(self) -> float:
        equity = self.daily_equity()
        if equity.empty:
            return 0.0
        return float((equity - equity.cummax()).min())

    @property
    def max_drawdown_percent(self) -> float:
        equity = self.daily_equity()
        if equity.empty:
            return 0.0
        peak = equity.cummax()
        return float(((equity - peak) / peak).min())

    @property
    def max_drawdown_recovery_days(self) -> int:
        """Longest run of trading days spent below a prior high."""
        equity = self.daily_equity()
        if equity.empty:
            return 0
        underwater = equity < equity.cummax()
        runs = underwater.groupby((~underwater).cumsum()).sum()
        return int(runs.max())

    @property
    def min_account_equity(self) -> float:
        return float(self.daily_equity().min())

    @property
    def max_account_equity(self) -> float:
        return float(self.daily_equity().max())

    # ------------------------------------------------------------------
    # Positions
    # ------------------------------------------------------------------

    @property
    def max_open_positions(self) -> int:
        days = calendar.trading_days(self.start, self.end)
        return max((self.portfolio.open_position_count(d) for d in days), default=0)

    def _closed_returns(self) -> pd.Series:
        closed = self.portfolio.get_positions(PositionStatus.CLOSED, self.end)
        return pd.Series([p.total_return_percentage(self.end) for p in closed], dtype=float)

    @property
    def winning_position_percent(self) -> float:
        returns = self._closed_returns()
        if returns.empty:
            return 0.0
        return float((returns > 0).sum() / len(returns))

    @property
    def average_winning_return_percent(self) -> float:
        wins = self._closed_returns()
        wins = wins[wins > 0]
        return float(wins.mean()) if not wins.empty else 0.0

    @property
    def average_losing_return_percent(self) -> float:
        losses = self._closed_returns()
        losses = losses[losses <= 0]
        return float(losses.mean()) if not losses.empty else 0.0

    @property
    def unrealized_pnl_at_end(self) -> float:
        return sum(
            p.total_unrealized_pnl(self.end, EOD)
            for p in self.portfolio.get_positions(PositionStatus.OPEN, self.end)
        )

    def _days_held(self) -> pd.Series:
        return pd.Series([p.days_held(self.end) for p in self.portfolio.positions], dtype=float)

    @property
    def longest_hold_days(self) -> int:
        held = self._days_held()
        return int(held.max()) if not held.empty else 0

    @property
    def average_hold_days(self) -> float:
        held = self._days_held()
        return float(held.mean()) if not held.empty else 0.0

    @property
    def total_commissions(self) -> float:
        return self.portfolio.total_commissions(self.end)

    @property
    def total_trades(self) -> int:
        return len(self.portfolio.executed_trades(self.end))

    # ------------------------------------------------------------------
    # Output
    # ------------------------------------------------------------------

    def to_dict(self) -> dict[str, float]:
        return {
            "total_return_percent": self.total_return_percent,
            "annualized_return_percent": self.annualized_return_percent,
            "max_monthly_return_percent": self.max_monthly_return_percent,
            "min_monthly_return_percent": self.min_monthly_return_percent,
            "max_drawdown_dollars": self.max_drawdown_dollars,
            "max_drawdown_percent": self.max_drawdown_percent,
            "max_drawdown_recovery_days": self.max_drawdown_recovery_days,
            "min_account_equity": self.min_account_equity,
            "max_account_equity": self.max_account_equity,
            "max_open_positions": self.max_open_positions,
            "winning_position_percent": self.winning_position_percent,
            "average_winning_return_percent": self.average_winning_return_percent,
            "average_losing_return_percent": self.average_losing_return_percent,
            "unrealized_pnl_at_end": self.unrealized_pnl_at_end,
            "longest_hold_days": self.longest_hold_days,
            "average_hold_days": self.average_hold_days,
            "total_commissions": self.total_commissions,
            "total_trades": self.total_trades,
        }

    def to_lines(self) -> list[str]:
        lines = []
        for key, value in self.to_dict().items():
            label = key.replace("_", " ").title()
            if key.endswith("percent"):
                lines.append(f"{label}: {value:.2%}")
            elif isinstance(value, int):
                lines.append(f"{label}: {value}")
            else:
                lines.append(f"{label}: {value:,.2f}")
        return lines


def _next_month(day: date) -> date:
    if day.month == 12:
        return date(day.year + 1, 1, 1)
    return date(day.year, day.month + 1, 1)
