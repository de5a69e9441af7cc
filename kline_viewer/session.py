"""
Per-view session.

A ViewSession holds the state of one detail view: the current request,
series, chart model, table rows and renderer. Loads are tagged with a
monotonically increasing request id and only the latest one is applied.
"""

import asyncio
import logging
from typing import Callable, List, Optional, Tuple

from .charts.builder import ChartModelBuilder
from .charts.renderer import ChartRenderer
from .charts.table import project
from .errors import DataUnavailable, MalformedResponse, TransportError
from .loader.client import SeriesLoader, align_indicators
from .models import ChartModel, DetailRequest, DisplayRow, IndicatorSet, Series, ZoomWindow
from .validation import validate_detail_request

logger = logging.getLogger(__name__)


class ViewSession:
    """State and load orchestration for one detail view."""

    def __init__(self, loader: SeriesLoader,
                 builder: Optional[ChartModelBuilder] = None,
                 renderer: Optional[ChartRenderer] = None,
                 ma_source: str = 'local',
                 default_range_days: int = 365,
                 notify: Optional[Callable[[str], None]] = None):
        if ma_source not in ('local', 'remote'):
            raise ValueError(f"Unknown moving-average source: {ma_source}")
        self.loader = loader
        self.builder = builder or ChartModelBuilder()
        self.renderer = renderer
        self.ma_source = ma_source
        self.default_range_days = default_range_days
        self._notify = notify

        self.request: Optional[DetailRequest] = None
        self.series: Optional[Series] = None
        self.model: Optional[ChartModel] = None
        self.rows: List[DisplayRow] = []
        self.notification: Optional[str] = None
        self.notifications: List[str] = []
        self._request_seq = 0

    @property
    def latest_request_id(self) -> int:
        return self._request_seq

    def _is_stale(self, request_id: int) -> bool:
        return request_id != self._request_seq

    def _report(self, message: str) -> None:
        logger.warning(message)
        self.notification = message
        self.notifications.append(message)
        if self._notify:
            self._notify(message)

    async def _fetch(self, request: DetailRequest) -> Tuple[Series, Optional[IndicatorSet]]:
        if self.ma_source == 'local':
            series = await self.loader.fetch_series(request.ts_code, request.date_range)
            return series, None

        # Both fetches must finish before the chart is built
        series_task = asyncio.ensure_future(
            self.loader.fetch_series(request.ts_code, request.date_range))
        rows_task = asyncio.ensure_future(
            self.loader.fetch_indicators(request.ts_code, request.date_range))
        try:
            series, rows = await asyncio.gather(series_task, rows_task)
        except BaseException:
            series_task.cancel()
            rows_task.cancel()
            raise
        return series, align_indicators(series, rows, self.builder.windows)

    async def load(self, ts_code: Optional[str], start: Optional[str] = None,
                   end: Optional[str] = None) -> Optional[ChartModel]:
        """Load and build the chart for an instrument and date range.

        Raises:
            MalformedInput: invalid code or date range; nothing is fetched

        Returns:
            The new ChartModel, or None when the load failed or was
            superseded by a newer one. On failure the previous view is kept.
        """
        request = validate_detail_request(ts_code, start, end,
                                          default_days=self.default_range_days)
        self._request_seq += 1
        request_id = self._request_seq
        logger.debug(f"Load #{request_id}: {request.ts_code} "
                     f"{request.date_range.start_date}..{request.date_range.end_date}")

        empty_message = None
        try:
            series, indicators = await self._fetch(request)
        except DataUnavailable:
            if self._is_stale(request_id):
                return None
            series = Series(ts_code=request.ts_code, date_range=request.date_range)
            indicators = None
            empty_message = (f"No data for {request.ts_code} between "
                             f"{request.date_range.start_date} and {request.date_range.end_date}")
        except (TransportError, MalformedResponse) as e:
            if self._is_stale(request_id):
                return None
            self._report(f"Failed to load data for {request.ts_code}: {e.message}")
            return None

        if self._is_stale(request_id):
            logger.debug(f"Discarding stale load #{request_id} for {request.ts_code}")
            return None

        zoom = None
        if self.model is not None and self.request is not None \
                and self.request.ts_code == request.ts_code:
            zoom = self.model.zoom

        model = self.builder.build(series, indicators, zoom=zoom)
        self._apply(request, series, model)
        if empty_message:
            self._report(empty_message)
        return model

    def _apply(self, request: DetailRequest, series: Series, model: ChartModel) -> None:
        self.request = request
        self.series = series
        self.model = model
        self.rows = project(series)
        self.notification = None
        if self.renderer is not None:
            self.renderer.bind(model)

    def set_zoom(self, pane: str, start: float, end: float) -> ZoomWindow:
        """Zoom from either pane; the shared window moves for both."""
        if self.model is None:
            raise RuntimeError("Nothing loaded yet")
        if self.renderer is not None and self.renderer.is_bound:
            return self.renderer.set_zoom(pane, start, end)
        return self.model.set_zoom(pane, start, end)

    def close(self) -> None:
        if self.renderer is not None:
            self.renderer.dispose()
