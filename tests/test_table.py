from kline_viewer.charts.table import PLACEHOLDER, project
from kline_viewer.models import PricePoint

from conftest import make_series


def test_one_row_per_point_in_order():
    series = make_series([3, 1, 2])
    rows = project(series)
    assert [r.trade_date for r in rows] == series.trade_dates
    assert [r.close for r in rows] == ["3", "1", "2"]


def test_fields_copied_as_is_with_placeholder_for_absent_values():
    point = PricePoint.model_validate({
        "tradeDate": "2024-01-02", "open": "10.10", "high": 10.5, "low": "9.9",
        "close": 10.2, "vol": 123456, "amount": "98765.4321",
    })
    row = project([point])[0]
    assert row.model_dump(by_alias=True) == {
        "tradeDate": "2024-01-02",
        "open": "10.10",
        "high": "10.5",
        "low": "9.9",
        "close": "10.2",
        "pctChg": PLACEHOLDER,
        "vol": "123456",
        "amount": "98765.4321",
    }


def test_pct_change_is_not_recomputed():
    point = PricePoint.model_validate({"tradeDate": "2024-01-02", "close": 10, "pctChg": "-1.2345"})
    assert project([point])[0].pct_change == "-1.2345"


def test_empty_series():
    assert project(make_series([])) == []
