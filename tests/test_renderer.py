import os

import pytest

from kline_viewer.charts.builder import ChartModelBuilder
from kline_viewer.charts.renderer import (
    EChartsRenderer, MatplotlibRenderer, ResizeRegistry, build_option,
)
from kline_viewer.models import ChartModel, Series

from conftest import make_series


@pytest.fixture
def model():
    return ChartModelBuilder().build(make_series([10 + i % 7 for i in range(40)]))


def test_option_binds_both_axes_to_one_zoom(model):
    option = build_option(model)
    assert option["xAxis"][0]["data"] == option["xAxis"][1]["data"] == list(model.category_axis)
    assert option["xAxis"][0]["type"] == option["xAxis"][1]["type"] == "category"
    for zoom in option["dataZoom"]:
        assert zoom["xAxisIndex"] == [0, 1]
        assert (zoom["start"], zoom["end"]) == (0.0, 100.0)


def test_option_series_layout(model):
    option = build_option(model)
    names = [s["name"] for s in option["series"]]
    assert names == ["K-line", "MA5", "MA10", "MA20", "Volume"]
    assert option["legend"]["data"] == names

    ma5 = option["series"][1]["data"]
    assert ma5[:4] == ["-"] * 4
    assert isinstance(ma5[4], float)

    volume = option["series"][-1]
    assert (volume["xAxisIndex"], volume["yAxisIndex"]) == (1, 1)
    assert len(volume["data"]) == 40


def test_option_for_empty_model():
    option = build_option(ChartModel())
    assert "empty" not in option
    assert option["xAxis"][0]["data"] == []
    assert [s["data"] for s in option["series"]] == [[], []]


def test_rebinding_keeps_exactly_one_resize_listener(model):
    registry = ResizeRegistry()
    renderer = EChartsRenderer(registry)
    for _ in range(3):
        renderer.bind(ChartModelBuilder().build(make_series([1, 2, 3])))
        assert len(registry) == 1
    renderer.bind(model)
    assert len(registry) == 1

    renderer.dispose()
    renderer.dispose()
    assert len(registry) == 0
    assert not renderer.is_bound


def test_resize_dispatch_reaches_bound_renderer(model):
    registry = ResizeRegistry()
    renderer = MatplotlibRenderer(registry)
    renderer.bind(model)
    registry.dispatch(800, 600)
    assert (renderer.width, renderer.height) == (800, 600)
    assert tuple(renderer.figure.get_size_inches()) == (8.0, 6.0)
    renderer.dispose()


def test_zoom_on_one_pane_is_reflected_in_the_other(model):
    renderer = EChartsRenderer()
    renderer.bind(model)
    renderer.set_zoom("volume", 25, 75)

    assert renderer.visible_window("price") == renderer.visible_window("volume") == (25.0, 75.0)
    for zoom in renderer.render()["dataZoom"]:
        assert (zoom["start"], zoom["end"]) == (25.0, 75.0)


def test_unbound_renderer_refuses_zoom_and_render():
    renderer = EChartsRenderer()
    with pytest.raises(RuntimeError):
        renderer.set_zoom("price", 0, 10)
    with pytest.raises(RuntimeError):
        renderer.render()


def test_matplotlib_renders_png(model):
    renderer = MatplotlibRenderer()
    renderer.bind(model)
    renderer.set_zoom("price", 50, 100)
    image = renderer.render()
    assert image.startswith("data:image/png;base64,")

    low, high = renderer._price_ax.get_xlim()
    visible = model.visible_indices()
    assert (low, high) == (visible.start - 0.5, visible.stop - 0.5)
    assert renderer._volume_ax.get_xlim() == (low, high)
    renderer.dispose()


def test_matplotlib_handles_empty_model():
    renderer = MatplotlibRenderer()
    renderer.bind(ChartModelBuilder().build(Series(ts_code="000001.SZ")))
    assert renderer.render().startswith("data:image/png;base64,")
    renderer.dispose()


def test_matplotlib_saves_to_file(model, tmp_path):
    renderer = MatplotlibRenderer(reports_dir=str(tmp_path))
    renderer.bind(model)
    path = renderer.render(save_to_file=True)
    assert os.path.exists(path)
    assert path.endswith("_000001.SZ_kline.png")
    renderer.dispose()
