from datetime import date

from simtrader.core import calendar


class TestTradingDays:
    def test_weekend_is_not_trading_day(self):
        assert not calendar.is_trading_day(date(2019, 11, 23))
        assert not calendar.is_trading_day(date(2019, 11, 24))
        assert calendar.is_trading_day(date(2019, 11, 25))

    def test_holidays(self):
        assert not calendar.is_trading_day(date(2019, 7, 4))
        assert not calendar.is_trading_day(date(2019, 11, 28))
        assert not calendar.is_trading_day(date(2019, 4, 19))  # Good Friday
        assert not calendar.is_trading_day(date(2019, 12, 25))

    def test_observed_holiday(self):
        # July 4th 2020 fell on a Saturday
        assert not calendar.is_trading_day(date(2020, 7, 3))

    def test_next_and_prior(self):
        assert calendar.next_trading_day(date(2019, 11, 22)) == date(2019, 11, 25)
        assert calendar.prior_trading_day(date(2019, 11, 25)) == date(2019, 11, 22)
        assert calendar.next_trading_day(date(2019, 11, 27)) == date(2019, 11, 29)
        assert calendar.next_trading_day(date(2019, 11, 18), 3) == date(2019, 11, 21)

    def test_trading_days_range(self):
        days = calendar.trading_days(date(2019, 11, 18), date(2019, 11, 29))
        assert len(days) == 9
        assert days[0] == date(2019, 11, 18)
        assert date(2019, 11, 28) not in days

    def test_period_starts(self):
        assert calendar.first_trading_day_of_week(date(2019, 11, 21)) == date(2019, 11, 18)
        assert calendar.last_trading_day_of_week(date(2019, 11, 26)) == date(2019, 11, 29)
        assert calendar.first_trading_day_of_month(date(2019, 9, 15)) == date(2019, 9, 3)
        assert calendar.first_trading_day_of_quarter(date(2019, 5, 20)) == date(2019, 4, 1)
