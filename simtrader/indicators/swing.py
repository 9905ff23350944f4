"""Swing point and trend classification.

A bar becomes a potential swing low when it makes the lowest low since the
last actualized swing low (ties go to the higher volume bar). The potential
point is actualized once ``bar_count`` bars pass without it being replaced.
Swing highs mirror this.

The trend ladder is derived from the arrangement of the two most recent
swing highs and lows together with swing point tests: a bar that trades
through the last swing high (or low) after closing on the other side of it
the day before. The test outcome is judged on whether the close exceeds the
swing point and whether volume expands, and only moves the prevailing trend
when the swing point arrangement agrees with it.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Sequence

from simtrader.core.exceptions import TrendOperationError
from simtrader.core.types import (
    PriceBarSize,
    SwingPointTest,
    SwingPointTestPriceResult,
    SwingPointTestVolumeResult,
    SwingPointType,
    TrendAlignment,
    TrendQualification,
)

if TYPE_CHECKING:
    from simtrader.data.security import PriceBar, Security

_EXCEEDS = SwingPointTestPriceResult.CLOSE_EXCEEDS
_EXPANDS = SwingPointTestVolumeResult.VOLUME_EXPANDS

# (prevailing trend family, test type) -> (result on expanding volume, result on contracting volume)
_TEST_TRANSITIONS: dict[tuple[str, SwingPointTest], tuple[TrendQualification, TrendQualification]] = {
    ("sideways", SwingPointTest.TEST_HIGH): (
        TrendQualification.CONFIRMED_BULLISH, TrendQualification.SUSPECT_BULLISH,
    ),
    ("bullish", SwingPointTest.TEST_HIGH): (
        TrendQualification.CONFIRMED_BULLISH, TrendQualification.SUSPECT_BULLISH,
    ),
    ("bearish", SwingPointTest.TEST_HIGH): (
        TrendQualification.CONFIRMED_SIDEWAYS, TrendQualification.SUSPECT_SIDEWAYS,
    ),
    ("sideways", SwingPointTest.TEST_LOW): (
        TrendQualification.CONFIRMED_BEARISH, TrendQualification.SUSPECT_BEARISH,
    ),
    ("bullish", SwingPointTest.TEST_LOW): (
        TrendQualification.CONFIRMED_SIDEWAYS, TrendQualification.SUSPECT_SIDEWAYS,
    ),
    ("bearish", SwingPointTest.TEST_LOW): (
        TrendQualification.CONFIRMED_BEARISH, TrendQualification.SUSPECT_BEARISH,
    ),
}


@dataclass(frozen=True)
class SwingSeries:
    point_types: tuple[SwingPointType, ...]
    trends: tuple[TrendQualification, ...]
    tests: tuple[SwingPointTest, ...]


def _family(trend: TrendQualification) -> str:
    if trend == TrendQualification.NOT_SET:
        raise TrendOperationError("Prevailing trend not set")
    if trend.is_bullish:
        return "bullish"
    if trend.is_bearish:
        return "bearish"
    return "sideways"


def is_testing_swing_point_high(bar: PriceBar, prior: PriceBar | None, swing_high: PriceBar) -> bool:
    if prior is None:
        return False
    return prior.close < swing_high.high and bar.high > swing_high.high


def is_testing_swing_point_low(bar: PriceBar, prior: PriceBar | None, swing_low: PriceBar) -> bool:
    if prior is None:
        return False
    return prior.close > swing_low.low and bar.low < swing_low.low


def swing_point_high_test(
    bar: PriceBar, swing_high: PriceBar,
) -> tuple[SwingPointTestPriceResult, SwingPointTestVolumeResult]:
    if bar.high < swing_high.high:
        raise TrendOperationError("Non-tested swing point high")
    price = _EXCEEDS if bar.close > swing_high.high else SwingPointTestPriceResult.CLOSE_DOES_NOT_EXCEED
    volume = _EXPANDS if bar.volume > swing_high.volume else SwingPointTestVolumeResult.VOLUME_CONTRACTS
    return price, volume


def swing_point_low_test(
    bar: PriceBar, swing_low: PriceBar,
) -> tuple[SwingPointTestPriceResult, SwingPointTestVolumeResult]:
    if bar.low > swing_low.low:
        raise TrendOperationError("Non-tested swing point low")
    price = _EXCEEDS if bar.close < swing_low.low else SwingPointTestPriceResult.CLOSE_DOES_NOT_EXCEED
    volume = _EXPANDS if bar.volume > swing_low.volume else SwingPointTestVolumeResult.VOLUME_CONTRACTS
    return price, volume


def compute_swing_series(bars: Sequence[PriceBar], bar_count: int) -> SwingSeries:
    """Classify every bar of an ordered series for the given ``bar_count``."""
    if bar_count <= 0:
        raise ValueError(f"bar_count must be positive, got {bar_count}")
    n = len(bars)
    types = [SwingPointType.NONE] * n
    trends = [TrendQualification.NOT_SET] * n
    tests = [SwingPointTest.NONE] * n
    if n < 2:
        return SwingSeries(tuple(types), tuple(trends), tuple(tests))

    successive_lows = 0
    successive_highs = 0
    prevailing = TrendQualification.AMBIVALENT_SIDEWAYS
    last_test_result = TrendQualification.NOT_SET
    higher_highs_higher_lows = False
    lower_highs_lower_lows = False

    potential_low = 0
    potential_high = 0
    types[0] |= SwingPointType.POTENTIAL_LOW | SwingPointType.POTENTIAL_HIGH
    first_low: int | None = None
    second_low: int | None = None
    first_high: int | None = None
    second_high: int | None = None

    for i, bar in enumerate(bars):
        # Swing point low
        if successive_lows == bar_count:
            types[potential_low] = (types[potential_low] & ~SwingPointType.POTENTIAL_LOW) | SwingPointType.LOW
            second_low, first_low = first_low, potential_low
            potential_low = i
            types[i] |= SwingPointType.POTENTIAL_LOW
            successive_lows = 1
        elif bar.low < bars[potential_low].low or (
            bar.low == bars[potential_low].low and bar.volume > bars[potential_low].volume
        ):
            types[potential_low] &= ~SwingPointType.POTENTIAL_LOW
            potential_low = i
            types[i] |= SwingPointType.POTENTIAL_LOW
            successive_lows = 1
        else:
            successive_lows += 1

        # Swing point high
        if successive_highs == bar_count:
            types[potential_high] = (types[potential_high] & ~SwingPointType.POTENTIAL_HIGH) | SwingPointType.HIGH
            second_high, first_high = first_high, potential_high
            potential_high = i
            types[i] |= SwingPointType.POTENTIAL_HIGH
            successive_highs = 1
        elif bar.high > bars[potential_high].high or (
            bar.high == bars[potential_high].high and bar.volume > bars[potential_high].volume
        ):
            types[potential_high] &= ~SwingPointType.POTENTIAL_HIGH
            potential_high = i
            types[i] |= SwingPointType.POTENTIAL_HIGH
            successive_highs = 1
        else:
            successive_highs += 1

        # Arrangement of the last two swing highs and lows. A potential point that
        # already exceeds the last actualized one counts as actualized.
        if first_high is None or first_low is None or second_high is None or second_low is None:
            prevailing = TrendQualification.AMBIVALENT_SIDEWAYS
        else:
            if bars[potential_high].high > bars[first_high].high:
                high_1, high_2 = bars[potential_high].high, bars[first_high].high
            else:
                high_1, high_2 = bars[first_high].high, bars[second_high].high
            if bars[potential_low].low < bars[first_low].low:
                low_1, low_2 = bars[potential_low].low, bars[first_low].low
            else:
                low_1, low_2 = bars[first_low].low, bars[second_low].low
            higher_highs_higher_lows = high_1 > high_2 and low_1 > low_2
            lower_highs_lower_lows = high_1 < high_2 and low_1 < low_2

        prior = bars[i - 1] if i > 0 else None
        if first_high is not None and is_testing_swing_point_high(bar, prior, bars[first_high]):
            tests[i] = SwingPointTest.TEST_HIGH
            price, volume = swing_point_high_test(bar, bars[first_high])
            if price == _EXCEEDS:
                on_expand, on_contract = _TEST_TRANSITIONS[(_family(prevailing), SwingPointTest.TEST_HIGH)]
                last_test_result = on_expand if volume == _EXPANDS else on_contract
        if first_low is not None and is_testing_swing_point_low(bar, prior, bars[first_low]):
            tests[i] = SwingPointTest.TEST_LOW
            price, volume = swing_point_low_test(bar, bars[first_low])
            if price == _EXCEEDS:
                on_expand, on_contract = _TEST_TRANSITIONS[(_family(prevailing), SwingPointTest.TEST_LOW)]
                last_test_result = on_expand if volume == _EXPANDS else on_contract

        # A test against an arrangement that no longer supports the trend ends it
        if tests[i] != SwingPointTest.NONE:
            if prevailing.is_bullish and not higher_highs_higher_lows:
                prevailing = TrendQualification.AMBIVALENT_SIDEWAYS
            elif prevailing.is_bearish and not lower_highs_lower_lows:
                prevailing = TrendQualification.AMBIVALENT_SIDEWAYS

        if last_test_result.is_sideways:
            prevailing = last_test_result
        elif last_test_result.is_bullish and higher_highs_higher_lows:
            prevailing = last_test_result
        elif last_test_result.is_bearish and lower_highs_lower_lows:
            prevailing = last_test_result

        trends[i] = prevailing

    return SwingSeries(tuple(types), tuple(trends), tuple(tests))


def set_swing_points_and_trends(
    security: Security,
    bar_count: int,
    bar_size: PriceBarSize = PriceBarSize.DAILY,
) -> SwingSeries:
    """Classify the full series of ``security`` once per (bar size, bar count)."""
    return security.cached_series(
        ("swing", bar_size, bar_count),
        lambda: compute_swing_series(security.bars(bar_size), bar_count),
    )


def _series_for(bar: PriceBar, bar_count: int) -> SwingSeries | None:
    if bar.security is None or bar.index < 0:
        return None
    return set_swing_points_and_trends(bar.security, bar_count, bar.bar_size)


def swing_point_type(bar: PriceBar, bar_count: int) -> SwingPointType:
    series = _series_for(bar, bar_count)
    return series.point_types[bar.index] if series else SwingPointType.NONE


def trend_type(bar: PriceBar, bar_count: int) -> TrendQualification:
    series = _series_for(bar, bar_count)
    return series.trends[bar.index] if series else TrendQualification.NOT_SET


def swing_point_test(bar: PriceBar, bar_count: int) -> SwingPointTest:
    series = _series_for(bar, bar_count)
    return series.tests[bar.index] if series else SwingPointTest.NONE


def trend_alignment(*trends: TrendQualification) -> TrendAlignment:
    if not trends or any(t == TrendQualification.NOT_SET for t in trends):
        return TrendAlignment.NOT_SET
    if all(t.is_bullish for t in trends):
        return TrendAlignment.BULLISH
    if all(t.is_bearish for t in trends):
        return TrendAlignment.BEARISH
    if all(t.is_sideways for t in trends):
        return TrendAlignment.SIDEWAYS
    if all(t.is_bullish or t.is_sideways for t in trends):
        return TrendAlignment.SIDEWAYS_BULLISH
    if all(t.is_bearish or t.is_sideways for t in trends):
        return TrendAlignment.SIDEWAYS_BEARISH
    if all(t.is_bullish or t.is_bearish for t in trends):
        return TrendAlignment.OPPOSING
    return TrendAlignment.NOT_SET
