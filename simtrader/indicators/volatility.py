from __future__ import annotations

from typing import TYPE_CHECKING, Sequence

if TYPE_CHECKING:
    from simtrader.data.security import PriceBar


def true_range(bar: PriceBar, prior: PriceBar | None) -> float:
    if prior is None:
        return bar.high - bar.low
    return max(
        bar.high - bar.low,
        abs(bar.high - prior.close),
        abs(bar.low - prior.close),
    )


def average_true_range_series(bars: Sequence[PriceBar], period: int) -> list[float]:
    """Wilder-smoothed ATR for every bar in ``bars``.

    Bars before the first full window carry their own true range; the bar
    completing the first window carries the window mean; later bars smooth
    the prior ATR with the prior bar's true range.
    """
    if period <= 0:
        raise ValueError(f"ATR period must be positive, got {period}")
    ranges = [true_range(bar, bars[i - 1] if i > 0 else None) for i, bar in enumerate(bars)]
    atr: list[float] = []
    for i, tr in enumerate(ranges):
        if i < period - 1:
            atr.append(tr)
        elif i == period - 1:
            atr.append((sum(atr[: period - 1]) + tr) / period)
        else:
            atr.append((atr[i - 1] * (period - 1) + ranges[i - 1]) / period)
    return atr


def average_true_range(bar: PriceBar, period: int = 14) -> float:
    """ATR of ``bar`` computed over its security's series and cached.

    A bar that is not attached to a security only has its own true range.
    """
    security = bar.security
    if security is None or bar.index < 0:
        return true_range(bar, None)
    series = security.cached_series(
        ("atr", bar.bar_size, period),
        lambda: average_true_range_series(security.bars(bar.bar_size), period),
    )
    return series[bar.index]
