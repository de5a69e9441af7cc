"""
Chart model builder.

Assembles the renderer-agnostic ChartModel from a price series: one
categorical time axis shared by the price pane and the volume pane, a
candlestick series, one line per moving-average window, volume bars and a
single zoom window driving both panes.
"""

import logging
from typing import Iterable, List, Optional

from ..models import (
    BarSeries, CandlestickSeries, ChartModel, IndicatorSet, LineSeries,
    MovingAverageSeries, Pane, PricePoint, Series, ZoomWindow,
)
from .indicators import compute_ma

logger = logging.getLogger(__name__)

DEFAULT_WINDOWS = (5, 10, 20)


def _candle(point: PricePoint):
    """(open, close, low, high), the candlestick convention, or None."""
    values = (point.open, point.close, point.low, point.high)
    if any(v is None for v in values):
        return None
    return values


def chart_title(series: Series) -> str:
    name = series.name
    return f"{name} ({series.ts_code})" if name else series.ts_code


class ChartModelBuilder:
    """Build ChartModel instances for a configurable set of MA windows."""

    def __init__(self, windows: Iterable[int] = DEFAULT_WINDOWS):
        windows = list(dict.fromkeys(windows))
        for window in windows:
            if isinstance(window, bool) or not isinstance(window, int) or window < 1:
                raise ValueError(f"Invalid moving-average window: {window!r}")
        self.windows = tuple(windows)

    def _moving_average(self, window: int, series: Series,
                        indicators: Optional[IndicatorSet]) -> MovingAverageSeries:
        precomputed = (indicators or {}).get(window)
        if precomputed is not None:
            if len(precomputed) == len(series):
                return precomputed
            logger.warning(
                f"Ignoring precomputed MA{window} for {series.ts_code}: "
                f"{len(precomputed)} values for {len(series)} points"
            )
        return compute_ma(window, series)

    def build(self, series: Series, indicators: Optional[IndicatorSet] = None,
              zoom: Optional[ZoomWindow] = None) -> ChartModel:
        """Build a chart model from scratch.

        Args:
            series: Price records in chronological order
            indicators: Optional precomputed moving averages keyed by window
            zoom: Zoom window to carry over, full range by default

        Returns:
            ChartModel; an empty series gives an empty model
        """
        zoom = zoom or ZoomWindow()

        if len(series) == 0:
            return ChartModel(title=chart_title(series), zoom=zoom)

        axis = tuple(series.trade_dates)
        lines: List[LineSeries] = []
        for window in self.windows:
            ma = self._moving_average(window, series, indicators)
            lines.append(LineSeries(name=f"MA{window}", window=window, data=list(ma.values)))

        return ChartModel(
            title=chart_title(series),
            category_axis=axis,
            price_pane=Pane(name='price', axis=axis, y_scale='price'),
            volume_pane=Pane(name='volume', axis=axis, y_scale='volume'),
            candlestick=CandlestickSeries(data=[_candle(p) for p in series.points]),
            moving_averages=lines,
            volume=BarSeries(data=[p.volume for p in series.points]),
            zoom=zoom,
        )
