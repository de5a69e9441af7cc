# K-line Viewer - Chart Renderers
"""
Bind a ChartModel to a concrete plotting surface.

- EChartsRenderer: option dict for the browser-side ECharts instance
- MatplotlibRenderer: server-side PNG of the same dual-pane layout

Every renderer owns exactly one surface and registers exactly one resize
listener per bound model; rebinding disposes the previous binding first.
"""

import io
import os
import base64
import itertools
import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional, Tuple

import matplotlib
matplotlib.use('Agg')  # Use non-interactive backend
import matplotlib.pyplot as plt
import numpy as np

from ..models import ChartModel, ZoomWindow

logger = logging.getLogger(__name__)

GAP = "-"

COLORS = {
    'rise': '#ef232a',
    'fall': '#14b143',
    'ma': ['#F59E0B', '#3B82F6', '#8B5CF6', '#10B981', '#EC4899', '#6B7280'],
}

ResizeListener = Callable[[int, int], None]


class ResizeRegistry:
    """Window-resize listeners of one view.

    Server-side views dispatch requested image sizes through it; in the
    browser the detail page resizes its ECharts instance itself.
    """

    def __init__(self):
        self._listeners: Dict[int, ResizeListener] = {}
        self._tokens = itertools.count(1)

    def add(self, listener: ResizeListener) -> int:
        token = next(self._tokens)
        self._listeners[token] = listener
        return token

    def remove(self, token: int) -> None:
        self._listeners.pop(token, None)

    def dispatch(self, width: int, height: int) -> None:
        for listener in list(self._listeners.values()):
            listener(width, height)

    def __len__(self) -> int:
        return len(self._listeners)


class ChartRenderer:
    """Base renderer: binding lifecycle, resize and shared zoom."""

    def __init__(self, registry: Optional[ResizeRegistry] = None,
                 width: int = 1200, height: int = 800):
        self.registry = registry if registry is not None else ResizeRegistry()
        self.width = width
        self.height = height
        self.model: Optional[ChartModel] = None
        self._listener_token: Optional[int] = None

    @property
    def is_bound(self) -> bool:
        return self.model is not None

    def bind(self, model: ChartModel) -> None:
        """Attach a model, releasing any previous binding."""
        self.dispose()
        self.model = model
        self._listener_token = self.registry.add(self.resize)
        self._on_bind(model)

    def resize(self, width: int, height: int) -> None:
        self.width = width
        self.height = height
        if self.is_bound:
            self._on_resize()

    def set_zoom(self, pane: str, start: float, end: float) -> ZoomWindow:
        """Zoom from either pane; both panes follow the same window."""
        if self.model is None:
            raise RuntimeError("No chart model bound")
        zoom = self.model.set_zoom(pane, start, end)
        self._on_zoom(zoom)
        return zoom

    def visible_window(self, pane: str) -> Tuple[float, float]:
        if self.model is None:
            raise RuntimeError("No chart model bound")
        return self.model.visible_window(pane)

    def dispose(self) -> None:
        """Release the surface and the resize listener. Safe to call twice."""
        if self._listener_token is not None:
            self.registry.remove(self._listener_token)
            self._listener_token = None
        if self.model is not None:
            self._on_dispose()
            self.model = None

    def _on_bind(self, model: ChartModel) -> None:
        pass

    def _on_resize(self) -> None:
        pass

    def _on_zoom(self, zoom: ZoomWindow) -> None:
        pass

    def _on_dispose(self) -> None:
        pass


# ===========================================
# ECharts
# ===========================================

def _num(value: Optional[Decimal]) -> Any:
    return float(value) if value is not None else GAP


def build_option(model: ChartModel) -> Dict[str, Any]:
    """Translate a ChartModel into an ECharts option dict."""
    axis = list(model.category_axis)
    legend = [model.candlestick.name] + [line.name for line in model.moving_averages]
    legend.append(model.volume.name)

    series: List[Dict[str, Any]] = [{
        "name": model.candlestick.name,
        "type": "candlestick",
        "data": [[float(v) for v in candle] if candle is not None else GAP
                 for candle in model.candlestick.data],
        "itemStyle": {
            "color": COLORS['rise'],
            "color0": COLORS['fall'],
            "borderColor": COLORS['rise'],
            "borderColor0": COLORS['fall'],
        },
    }]
    for line in model.moving_averages:
        series.append({
            "name": line.name,
            "type": "line",
            "data": [_num(v) for v in line.data],
            "smooth": True,
            "showSymbol": False,
            "connectNulls": False,
            "lineStyle": {"opacity": 0.5},
        })
    series.append({
        "name": model.volume.name,
        "type": "bar",
        "xAxisIndex": 1,
        "yAxisIndex": 1,
        "data": [_num(v) for v in model.volume.data],
    })

    zoom_range = {"start": model.zoom.start, "end": model.zoom.end}

    return {
        "title": {"text": model.title},
        "tooltip": {"trigger": "axis", "axisPointer": {"type": "cross"}},
        "legend": {"data": legend},
        "grid": [
            {"left": "10%", "right": "8%", "height": "50%"},
            {"left": "10%", "right": "8%", "top": "63%", "height": "16%"},
        ],
        "xAxis": [
            {
                "type": "category",
                "data": list(model.price_pane.axis),
                "boundaryGap": False,
                "axisLine": {"onZero": False},
                "splitLine": {"show": False},
                "min": "dataMin",
                "max": "dataMax",
            },
            {
                "type": "category",
                "gridIndex": 1,
                "data": list(model.volume_pane.axis),
                "boundaryGap": False,
                "axisLine": {"onZero": False},
                "axisTick": {"show": False},
                "splitLine": {"show": False},
                "axisLabel": {"show": False},
                "min": "dataMin",
                "max": "dataMax",
            },
        ],
        "yAxis": [
            {"scale": True, "splitArea": {"show": True}},
            {
                "scale": True,
                "gridIndex": 1,
                "splitNumber": 2,
                "axisLabel": {"show": False},
                "axisLine": {"show": False},
                "axisTick": {"show": False},
                "splitLine": {"show": False},
            },
        ],
        "dataZoom": [
            {"type": "inside", "xAxisIndex": [0, 1], **zoom_range},
            {"type": "slider", "show": True, "xAxisIndex": [0, 1], "top": "85%", **zoom_range},
        ],
        "series": series,
    }


class EChartsRenderer(ChartRenderer):
    """Produces the option consumed by the detail page's ECharts instance."""

    def __init__(self, registry: Optional[ResizeRegistry] = None, **kwargs):
        super().__init__(registry, **kwargs)
        self._option: Optional[Dict[str, Any]] = None

    def _on_bind(self, model: ChartModel) -> None:
        self._option = build_option(model)

    def _on_zoom(self, zoom: ZoomWindow) -> None:
        for item in self._option["dataZoom"]:
            item["start"] = zoom.start
            item["end"] = zoom.end

    def _on_dispose(self) -> None:
        self._option = None

    def render(self) -> Dict[str, Any]:
        if self._option is None:
            raise RuntimeError("No chart model bound")
        return self._option


# ===========================================
# Matplotlib
# ===========================================

def _to_array(values: List[Optional[Decimal]]) -> np.ndarray:
    """Float array with NaN gaps, which matplotlib leaves unconnected."""
    return np.array([float(v) if v is not None else np.nan for v in values], dtype=float)


class MatplotlibRenderer(ChartRenderer):
    """Render the dual-pane chart to a PNG image."""

    DPI = 100

    def __init__(self, registry: Optional[ResizeRegistry] = None,
                 reports_dir: str = "reports", **kwargs):
        """Initialize the renderer.

        Args:
            registry: Resize listeners of the owning view
            reports_dir: Directory to save chart images
        """
        super().__init__(registry, **kwargs)
        self.reports_dir = reports_dir
        self.figure: Optional[plt.Figure] = None
        self._price_ax = None
        self._volume_ax = None

    def _on_bind(self, model: ChartModel) -> None:
        self.figure, (self._price_ax, self._volume_ax) = plt.subplots(
            2, 1, sharex=True,
            figsize=(self.width / self.DPI, self.height / self.DPI),
            gridspec_kw={'height_ratios': [3, 1]},
        )

    def _on_resize(self) -> None:
        self.figure.set_size_inches(self.width / self.DPI, self.height / self.DPI)

    def _on_dispose(self) -> None:
        if self.figure is not None:
            plt.close(self.figure)
        self.figure = None
        self._price_ax = None
        self._volume_ax = None

    def _draw(self) -> None:
        model = self.model
        price_ax, volume_ax = self._price_ax, self._volume_ax
        price_ax.clear()
        volume_ax.clear()

        if model.is_empty:
            price_ax.text(0.5, 0.5, 'No price data available',
                          ha='center', va='center', fontsize=14,
                          transform=price_ax.transAxes)
            price_ax.set_title(model.title or 'K-line')
            volume_ax.set_yticks([])
            return

        count = len(model.category_axis)
        x = np.arange(count)

        # Candles: wick from low to high, body from open to close
        directions = []
        for i, candle in enumerate(model.candlestick.data):
            if candle is None:
                directions.append(None)
                continue
            o, c, lo, hi = (float(v) for v in candle)
            color = COLORS['rise'] if c >= o else COLORS['fall']
            directions.append(color)
            price_ax.vlines(i, lo, hi, color=color, linewidth=0.8)
            price_ax.bar(i, abs(c - o) or 1e-9, bottom=min(o, c), width=0.6,
                         color=color, edgecolor=color)

        for line, color in zip(model.moving_averages, itertools.cycle(COLORS['ma'])):
            price_ax.plot(x, _to_array(line.data), color=color, linewidth=1,
                          alpha=0.8, label=line.name)

        volume_colors = [d or COLORS['rise'] for d in directions]
        volumes = np.nan_to_num(_to_array(model.volume.data))
        volume_ax.bar(x, volumes, color=volume_colors, alpha=0.7, width=0.8)

        # Zoom window, shared by both panes through sharex
        visible = model.visible_indices()
        price_ax.set_xlim(visible.start - 0.5, visible.stop - 0.5)

        step = max(1, len(visible) // 8)
        ticks = list(visible)[::step]
        volume_ax.set_xticks(ticks)
        volume_ax.set_xticklabels([model.category_axis[i] for i in ticks], rotation=45)

        price_ax.set_title(model.title or 'K-line', fontsize=14, fontweight='bold')
        price_ax.set_ylabel('Price', fontsize=10)
        if model.moving_averages:
            price_ax.legend(loc='upper left', framealpha=0.9, fontsize=8)
        price_ax.grid(True, alpha=0.3)

        volume_ax.set_ylabel('Volume', fontsize=10)
        volume_ax.yaxis.set_major_formatter(plt.FuncFormatter(
            lambda v, p: f'{v/1e6:.1f}M' if v >= 1e6 else f'{v/1e3:.0f}K'))
        volume_ax.grid(True, alpha=0.3, axis='y')

        self.figure.tight_layout()

    def render(self, save_to_file: bool = False) -> str:
        """Draw the bound model.

        Args:
            save_to_file: Whether to save to file

        Returns:
            File path or base64 encoded image
        """
        if self.model is None:
            raise RuntimeError("No chart model bound")
        self._draw()

        if save_to_file:
            os.makedirs(self.reports_dir, exist_ok=True)
            date_str = datetime.now().strftime("%Y-%m-%d")
            slug = (self.model.title or "chart").split(" ")[-1].strip("()")
            filepath = os.path.join(self.reports_dir, f"{date_str}_{slug}_kline.png")
            self.figure.savefig(filepath, dpi=150, bbox_inches='tight',
                                facecolor='white', edgecolor='none')
            return filepath

        buf = io.BytesIO()
        self.figure.savefig(buf, format='png', dpi=150, bbox_inches='tight',
                            facecolor='white', edgecolor='none')
        buf.seek(0)
        img_base64 = base64.b64encode(buf.read()).decode('utf-8')
        return f"data:image/png;base64,{img_base64}"
