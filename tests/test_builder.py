from decimal import Decimal

import pytest

from kline_viewer.charts.builder import ChartModelBuilder
from kline_viewer.models import MovingAverageSeries, PricePoint, Series, ZoomWindow

from conftest import make_point, make_series


def test_panes_share_the_same_axis():
    series = make_series([10 + i for i in range(30)])
    model = ChartModelBuilder().build(series)

    assert model.category_axis == tuple(series.trade_dates)
    assert model.price_pane.axis == model.volume_pane.axis == model.category_axis
    assert model.price_pane.y_scale != model.volume_pane.y_scale
    assert len(model.candlestick.data) == len(model.volume.data) == 30


def test_axis_is_categorical_with_no_weekend_gaps():
    series = make_series([1, 2, 3, 4, 5, 6])
    model = ChartModelBuilder().build(series)
    # 2024-01-05 is a Friday; the next category is Monday the 8th
    assert model.category_axis[4:6] == ("2024-01-05", "2024-01-08")


def test_candles_pair_open_close_before_low_high():
    point = make_point("2024-01-02", "10.5", open_=Decimal("10"), high=Decimal("11"), low=Decimal("9.5"))
    model = ChartModelBuilder().build(Series(ts_code="000001.SZ", points=(point,)))
    assert model.candlestick.data == [(Decimal("10"), Decimal("10.5"), Decimal("9.5"), Decimal("11"))]


def test_default_windows_give_three_lines(six_day_series):
    model = ChartModelBuilder().build(six_day_series)
    assert [line.name for line in model.moving_averages] == ["MA5", "MA10", "MA20"]
    ma5 = model.moving_averages[0]
    assert ma5.data == [None, None, None, None, Decimal("12.00"), Decimal("13.00")]
    assert all(v is None for v in model.moving_averages[2].data)


def test_configurable_windows(six_day_series):
    model = ChartModelBuilder(windows=(2, 3, 4, 60)).build(six_day_series)
    assert [line.window for line in model.moving_averages] == [2, 3, 4, 60]


def test_rejects_invalid_windows():
    with pytest.raises(ValueError):
        ChartModelBuilder(windows=(5, 0))


def test_precomputed_indicators_are_used(six_day_series):
    precomputed = MovingAverageSeries(window=5, values=(None,) * 5 + (Decimal("99.99"),))
    model = ChartModelBuilder(windows=(5,)).build(six_day_series, indicators={5: precomputed})
    assert model.moving_averages[0].data[-1] == Decimal("99.99")


def test_misaligned_indicators_fall_back_to_local(six_day_series):
    precomputed = MovingAverageSeries(window=5, values=(Decimal("1"),))
    model = ChartModelBuilder(windows=(5,)).build(six_day_series, indicators={5: precomputed})
    assert model.moving_averages[0].data[-1] == Decimal("13.00")


def test_empty_series_gives_empty_model():
    model = ChartModelBuilder().build(Series(ts_code="000001.SZ"))
    assert model.is_empty
    assert model.category_axis == ()
    assert model.price_pane.axis == model.volume_pane.axis == ()
    assert model.candlestick.data == []
    assert model.moving_averages == []
    assert model.volume.data == []


def test_garbled_fields_degrade_to_gaps():
    points = (
        PricePoint.model_validate({"tradeDate": "20240102", "open": "abc", "high": 11,
                                   "low": 9, "close": 10, "vol": None}),
        PricePoint.model_validate({"tradeDate": "20240103", "open": 10, "high": 11,
                                   "low": 9, "close": "NaN", "vol": "12.5"}),
    )
    model = ChartModelBuilder(windows=(1,)).build(Series(ts_code="X", points=points))
    assert model.category_axis == ("2024-01-02", "2024-01-03")
    assert model.candlestick.data == [None, None]
    assert model.volume.data == [None, Decimal("12.5")]
    assert model.moving_averages[0].data == [Decimal("10.00"), None]


def test_out_of_range_magnitudes_degrade_to_gaps():
    records = [{"tradeDate": f"2024-01-0{day}", "open": 10, "high": 11, "low": 9,
                "close": "1e30", "vol": "1e40"} for day in range(2, 7)]
    records.append({"tradeDate": "2024-01-08", "open": 10, "high": 11, "low": 9,
                    "close": "9999999999999999", "vol": 100})
    points = tuple(PricePoint.model_validate(r) for r in records)

    model = ChartModelBuilder(windows=(1, 5)).build(Series(ts_code="X", points=points))

    assert model.candlestick.data == [None] * 5 + [
        (Decimal("10"), Decimal("9999999999999999"), Decimal("9"), Decimal("11"))]
    assert model.volume.data == [None] * 5 + [Decimal("100")]
    assert model.moving_averages[0].data == [None] * 5 + [Decimal("9999999999999999.00")]
    assert model.moving_averages[1].data == [None] * 6


def test_violated_ohlc_ordering_is_rendered_as_given():
    point = make_point("2024-01-02", 5, open_=Decimal("10"), high=Decimal("1"), low=Decimal("20"))
    model = ChartModelBuilder().build(Series(ts_code="X", points=(point,)))
    assert model.candlestick.data == [(Decimal("10"), Decimal("5"), Decimal("20"), Decimal("1"))]


def test_title_uses_instrument_name(six_day_series):
    assert ChartModelBuilder().build(six_day_series).title == "Ping An Bank (000001.SZ)"
    assert ChartModelBuilder().build(Series(ts_code="000002.SZ")).title == "000002.SZ"


def test_zoom_is_shared_between_panes(six_day_series):
    model = ChartModelBuilder().build(six_day_series)
    assert model.visible_window("price") == model.visible_window("volume") == (0.0, 100.0)

    model.set_zoom("volume", 20, 60)
    assert model.visible_window("price") == (20.0, 60.0)
    assert model.visible_window("volume") == (20.0, 60.0)

    model.set_zoom("price", 0, 50)
    assert model.visible_window("volume") == (0.0, 50.0)


def test_zoom_carry_over_and_validation(six_day_series):
    model = ChartModelBuilder().build(six_day_series, zoom=ZoomWindow(start=40, end=80))
    assert model.zoom == ZoomWindow(start=40, end=80)

    with pytest.raises(ValueError):
        model.set_zoom("price", 70, 30)
    with pytest.raises(ValueError):
        model.set_zoom("rsi", 0, 10)
    assert model.zoom == ZoomWindow(start=40, end=80)


def test_visible_indices_follow_zoom():
    series = make_series(list(range(1, 12)))  # 11 points, index range 0..10
    model = ChartModelBuilder().build(series)
    assert model.visible_indices() == range(0, 11)
    model.set_zoom("price", 50, 100)
    assert model.visible_indices() == range(5, 11)
    model.set_zoom("volume", 0, 0)
    assert model.visible_indices() == range(0, 1)
