"""
Series Loader.

Async client for the market-data backend: instrument list, daily price
series, precomputed indicators and refresh triggers. Every backend failure
is mapped onto the viewer's error taxonomy.
"""

import asyncio
import json
import logging
from typing import Any, Dict, Iterable, List, Optional, Sequence

import aiohttp
from pydantic import ValidationError

from ..charts.indicators import round_display
from ..errors import DataUnavailable, KlineViewerError, MalformedResponse, TransportError
from ..models import (
    DateRange, IndicatorRow, IndicatorSet, Instrument, MovingAverageSeries,
    PricePoint, RefreshSummary, Series,
)

logger = logging.getLogger(__name__)


def order_points(points: Iterable[PricePoint], ts_code: str = "") -> List[PricePoint]:
    """Sort by trade date and keep the first record of each date."""
    ordered = sorted(points, key=lambda p: p.trade_date)
    result: List[PricePoint] = []
    for point in ordered:
        if result and result[-1].trade_date == point.trade_date:
            logger.warning(f"Dropping duplicate record for {ts_code} on {point.trade_date}")
            continue
        result.append(point)
    return result


def align_indicators(series: Series, rows: Sequence[IndicatorRow],
                     windows: Iterable[int]) -> IndicatorSet:
    """Line indicator rows up with the series by trade date.

    Dates without a row, and rows without a value for a window, become
    gaps.
    """
    by_date = {row.trade_date: row.ma_values for row in rows}
    indicators: IndicatorSet = {}
    for window in windows:
        values = []
        for trade_date in series.trade_dates:
            value = by_date.get(trade_date, {}).get(window)
            values.append(round_display(value) if value is not None else None)
        indicators[window] = MovingAverageSeries(window=window, values=tuple(values))
    return indicators


class SeriesLoader:
    """
    Client for the market-data backend.

    Usage:
        async with SeriesLoader("http://localhost:8080") as loader:
            series = await loader.fetch_series("000001.SZ", date_range)
    """

    def __init__(self, base_url: str, request_timeout: float = 30.0,
                 refresh_concurrency: int = 4):
        self.base_url = base_url.rstrip('/')
        self.request_timeout = request_timeout
        self.refresh_concurrency = refresh_concurrency
        self._session: Optional[aiohttp.ClientSession] = None

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create the HTTP session."""
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self.request_timeout)
            self._session = aiohttp.ClientSession(
                timeout=timeout,
                headers={'Accept': 'application/json'},
            )
        return self._session

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    async def __aenter__(self) -> "SeriesLoader":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def _get_json(self, path: str, params: Optional[Dict[str, str]] = None,
                        missing_means_empty: bool = False) -> Any:
        """GET a JSON document.

        Raises:
            TransportError: connection failure, timeout or HTTP error status
            DataUnavailable: HTTP 404 when `missing_means_empty` is set
            MalformedResponse: body is not valid JSON
        """
        url = f"{self.base_url}{path}"
        logger.debug(f"GET {url} with params: {params}")
        session = await self._get_session()

        try:
            async with session.get(url, params=params) as response:
                if response.status == 404 and missing_means_empty:
                    raise DataUnavailable(f"No data at {path}", url=url)
                if response.status >= 400:
                    raise TransportError(f"Backend returned HTTP {response.status}",
                                         status_code=response.status, url=url)
                body = await response.read()
        except aiohttp.ClientError as e:
            logger.error(f"Request to {url} failed: {e}")
            raise TransportError(f"Request to backend failed: {e}", url=url) from e
        except asyncio.TimeoutError as e:
            logger.error(f"Request to {url} timed out")
            raise TransportError("Request to backend timed out", url=url) from e

        try:
            return json.loads(body.decode(response.charset or "utf-8"))
        except (ValueError, LookupError) as e:
            raise MalformedResponse(f"Backend returned invalid JSON: {e}", url=url) from e

    @staticmethod
    def _expect_list(payload: Any, what: str) -> List[Any]:
        if not isinstance(payload, list):
            raise MalformedResponse(f"Expected a JSON array of {what}, "
                                    f"got {type(payload).__name__}")
        return payload

    async def fetch_instruments(self, refresh: bool = False) -> List[Instrument]:
        """Get the instrument list; `refresh` asks the backend to re-download it."""
        payload = await self._get_json("/api/stock/basic",
                                       {"refresh": "true" if refresh else "false"})
        records = self._expect_list(payload, "instruments")
        try:
            return [Instrument.model_validate(record) for record in records]
        except ValidationError as e:
            raise MalformedResponse(f"Invalid instrument record: {e}") from e

    async def fetch_series(self, ts_code: str, date_range: DateRange) -> Series:
        """Get daily price records for an instrument over an inclusive range.

        Raises:
            DataUnavailable: the backend has no records for the range
            TransportError: network or HTTP failure
            MalformedResponse: unreadable payload
        """
        payload = await self._get_json(f"/api/stock/data/{ts_code}",
                                       date_range.as_params(),
                                       missing_means_empty=True)
        records = self._expect_list(payload, "price records")
        if not records:
            raise DataUnavailable(f"No price data for {ts_code}",
                                  **date_range.as_params())

        try:
            points = [PricePoint.model_validate(record) for record in records]
        except ValidationError as e:
            raise MalformedResponse(f"Invalid price record for {ts_code}: {e}") from e

        logger.info(f"Loaded {len(points)} records for {ts_code}")
        return Series(ts_code=ts_code, date_range=date_range,
                      points=tuple(order_points(points, ts_code)))

    async def fetch_indicators(self, ts_code: str, date_range: DateRange) -> List[IndicatorRow]:
        """Get the backend's precomputed indicator rows for a range."""
        payload = await self._get_json(f"/api/stock/indicators/{ts_code}",
                                       date_range.as_params(),
                                       missing_means_empty=True)
        records = self._expect_list(payload, "indicator rows")
        if not records:
            raise DataUnavailable(f"No indicator data for {ts_code}",
                                  **date_range.as_params())
        try:
            return [IndicatorRow.model_validate(record) for record in records]
        except ValidationError as e:
            raise MalformedResponse(f"Invalid indicator row for {ts_code}: {e}") from e

    async def refresh_daily(self, ts_code: str, date_range: DateRange) -> int:
        """Ask the backend to re-download daily data; returns the record count."""
        params = {"refresh": "true", **date_range.as_params()}
        payload = await self._get_json(f"/api/stock/daily/{ts_code}", params)
        return len(payload) if isinstance(payload, list) else 0

    async def refresh_all(self, ts_codes: Iterable[str], date_range: DateRange) -> RefreshSummary:
        """Refresh every instrument; one failure never stops the others."""
        semaphore = asyncio.Semaphore(self.refresh_concurrency)
        summary = RefreshSummary()

        async def refresh_one(ts_code: str) -> None:
            async with semaphore:
                try:
                    count = await self.refresh_daily(ts_code, date_range)
                except KlineViewerError as e:
                    logger.error(f"Error refreshing data for {ts_code}: {e}")
                    summary.failed[ts_code] = str(e)
                    return
            logger.info(f"Refreshed {ts_code}: {count} records")
            summary.refreshed.append(ts_code)

        codes = list(dict.fromkeys(ts_codes))
        await asyncio.gather(*(refresh_one(code) for code in codes))
        summary.refreshed.sort(key=codes.index)
        return summary
