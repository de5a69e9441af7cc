import asyncio
from datetime import date, timedelta
from decimal import Decimal

import pytest

from kline_viewer.errors import DataUnavailable
from kline_viewer.models import DateRange, PricePoint, Series


def make_point(trade_date, close, open_=None, high=None, low=None, vol=1000, **extra):
    close = Decimal(str(close)) if close is not None else None
    base = close if close is not None else Decimal("1")
    return PricePoint(
        trade_date=trade_date,
        open=open_ if open_ is not None else base,
        high=high if high is not None else base + 1,
        low=low if low is not None else base - 1,
        close=close,
        volume=vol,
        amount=Decimal("123.45"),
        **extra,
    )


def trading_days(count, start=date(2024, 1, 1)):
    """Weekdays only, so the series has weekend gaps like a real one."""
    days = []
    current = start
    while len(days) < count:
        if current.weekday() < 5:
            days.append(current.isoformat())
        current += timedelta(days=1)
    return days


def make_series(closes, ts_code="000001.SZ", name="Ping An Bank"):
    dates = trading_days(len(closes))
    points = tuple(make_point(d, c, name=name) for d, c in zip(dates, closes))
    return Series(ts_code=ts_code, points=points)


@pytest.fixture
def date_range():
    return DateRange(start_date=date(2024, 1, 1), end_date=date(2024, 3, 31))


@pytest.fixture
def six_day_series():
    return make_series([10, 11, 12, 13, 14, 15])


class FakeLoader:
    """In-memory stand-in for SeriesLoader."""

    def __init__(self, series=None, indicators=None, errors=None, gates=None):
        self.series = series or {}
        self.indicators = indicators or {}
        self.errors = errors or {}
        self.gates = gates or {}
        self.calls = []

    async def fetch_series(self, ts_code, date_range):
        self.calls.append(("series", ts_code, date_range))
        gate = self.gates.get(ts_code)
        if gate is not None:
            await gate.wait()
        if ts_code in self.errors:
            raise self.errors[ts_code]
        if ts_code not in self.series:
            raise DataUnavailable(f"No price data for {ts_code}")
        return self.series[ts_code]

    async def fetch_indicators(self, ts_code, date_range):
        self.calls.append(("indicators", ts_code, date_range))
        await asyncio.sleep(0)
        key = ("indicators", ts_code)
        if key in self.errors:
            raise self.errors[key]
        return self.indicators.get(ts_code, [])

    async def fetch_instruments(self, refresh=False):
        self.calls.append(("instruments", refresh))
        if "instruments" in self.errors:
            raise self.errors["instruments"]
        return self.series.get("__instruments__", [])

    async def refresh_all(self, ts_codes, date_range):
        from kline_viewer.models import RefreshSummary
        ts_codes = list(ts_codes)
        self.calls.append(("refresh_all", ts_codes, date_range))
        return RefreshSummary(refreshed=ts_codes)

    async def close(self):
        pass
