# K-line Viewer - Charts Package
"""
Chart preparation and rendering.

- indicators: moving-average engine
- builder: renderer-agnostic dual-pane chart model
- table: display rows for the data table
- renderer: ECharts and matplotlib renderers
"""

from .builder import ChartModelBuilder
from .indicators import compute_ma, compute_moving_averages
from .renderer import EChartsRenderer, MatplotlibRenderer, ResizeRegistry, build_option
from .table import project

__all__ = [
    "ChartModelBuilder",
    "compute_ma",
    "compute_moving_averages",
    "EChartsRenderer",
    "MatplotlibRenderer",
    "ResizeRegistry",
    "build_option",
    "project",
]
