"""
Pydantic models for data validation and serialization.

These models are used for:
- Parsing backend payloads (instruments, daily price records)
- The renderer-agnostic chart model and table rows
- Request/response validation in the API
"""

import math
import re
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Dict, List, Literal, Optional, Sequence, Tuple

from pydantic import AliasChoices, BaseModel, Field, field_validator, model_validator

PANES = ('price', 'volume')

PaneName = Literal['price', 'volume']

_COMPACT_DATE = re.compile(r'^(\d{4})(\d{2})(\d{2})$')
_ISO_DATE = re.compile(r'^\d{4}-\d{2}-\d{2}$')

# Largest adjusted exponent accepted for a price or volume (below 1e16)
MAX_ADJUSTED_EXPONENT = 15


def to_decimal(value) -> Optional[Decimal]:
    """Coerce a wire value to Decimal; garbled values become None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, float, str)):
        try:
            result = Decimal(str(value).strip())
        except InvalidOperation:
            return None
    else:
        return None
    if not result.is_finite() or result.adjusted() > MAX_ADJUSTED_EXPONENT:
        return None
    return result


def normalize_trade_date(value) -> str:
    """Accept YYYY-MM-DD or the compact YYYYMMDD form."""
    if not isinstance(value, str):
        raise ValueError('tradeDate must be a string')
    value = value.strip()
    match = _COMPACT_DATE.match(value)
    if match:
        value = "-".join(match.groups())
    if not _ISO_DATE.match(value):
        raise ValueError(f'Invalid tradeDate: {value!r}')
    return value


# ===========================================
# Instrument Models
# ===========================================

class Instrument(BaseModel):
    """A tradable instrument from the list endpoint."""
    ts_code: str = Field(..., alias="tsCode", min_length=1)
    name: str
    industry: Optional[str] = None
    area: Optional[str] = None
    symbol: Optional[str] = None
    market: Optional[str] = None
    list_date: Optional[str] = Field(None, alias="listDate")

    class Config:
        populate_by_name = True


# ===========================================
# Price Series Models
# ===========================================

class DateRange(BaseModel):
    """Inclusive [start_date, end_date] window."""
    start_date: date
    end_date: date

    class Config:
        frozen = True

    @model_validator(mode='after')
    def check_order(self):
        if self.start_date > self.end_date:
            raise ValueError('start_date must not be after end_date')
        return self

    def as_params(self) -> Dict[str, str]:
        """Query parameters in the backend's naming."""
        return {
            "startDate": self.start_date.isoformat(),
            "endDate": self.end_date.isoformat(),
        }


class PricePoint(BaseModel):
    """One trading day's OHLCV record for one instrument."""
    trade_date: str = Field(..., alias="tradeDate")
    open: Optional[Decimal] = None
    high: Optional[Decimal] = None
    low: Optional[Decimal] = None
    close: Optional[Decimal] = None
    volume: Optional[Decimal] = Field(
        None, alias="vol", validation_alias=AliasChoices("vol", "volume"))
    amount: Optional[Decimal] = None
    pct_change: Optional[Decimal] = Field(
        None, alias="pctChg", validation_alias=AliasChoices("pctChg", "pctChange", "pct_change"))
    name: Optional[str] = None
    ts_code: Optional[str] = Field(None, alias="tsCode")

    class Config:
        frozen = True
        populate_by_name = True

    @field_validator('trade_date', mode='before')
    @classmethod
    def check_trade_date(cls, v) -> str:
        return normalize_trade_date(v)

    @field_validator('open', 'high', 'low', 'close', 'volume', 'amount', 'pct_change',
                     mode='before')
    @classmethod
    def lenient_decimal(cls, v):
        return to_decimal(v)


class Series(BaseModel):
    """Ordered, immutable price records for one instrument."""
    ts_code: str
    date_range: Optional[DateRange] = None
    points: Tuple[PricePoint, ...] = ()

    class Config:
        frozen = True

    def __len__(self) -> int:
        return len(self.points)

    @property
    def name(self) -> Optional[str]:
        """Instrument name as echoed by the backend on its records."""
        for point in self.points:
            if point.name:
                return point.name
        return None

    @property
    def trade_dates(self) -> List[str]:
        return [p.trade_date for p in self.points]


def series_points(series) -> Sequence[PricePoint]:
    """Accept either a Series or a plain sequence of PricePoint."""
    if isinstance(series, Series):
        return series.points
    return series


class MovingAverageSeries(BaseModel):
    """One MA value per series index; None marks insufficient history."""
    window: int = Field(..., ge=1)
    values: Tuple[Optional[Decimal], ...] = ()

    class Config:
        frozen = True

    def __len__(self) -> int:
        return len(self.values)


# Precomputed overlays keyed by window length
IndicatorSet = Dict[int, MovingAverageSeries]


class IndicatorRow(BaseModel):
    """One row of the indicator endpoint; only the MA values are read."""
    trade_date: str = Field(..., alias="tradeDate")
    ma_values: Dict[int, Optional[Decimal]] = Field(default_factory=dict, alias="maValues")

    class Config:
        populate_by_name = True

    @field_validator('trade_date', mode='before')
    @classmethod
    def check_trade_date(cls, v) -> str:
        return normalize_trade_date(v)

    @field_validator('ma_values', mode='before')
    @classmethod
    def lenient_values(cls, v):
        if not isinstance(v, dict):
            return {}
        return {key: to_decimal(value) for key, value in v.items()}


class DetailRequest(BaseModel):
    """A validated detail-view request."""
    ts_code: str
    date_range: DateRange

    class Config:
        frozen = True


# ===========================================
# Chart Models
# ===========================================

class ZoomWindow(BaseModel):
    """Visible sub-range of the time axis, as percentages of the index range."""
    start: float = Field(0.0, ge=0, le=100)
    end: float = Field(100.0, ge=0, le=100)

    class Config:
        frozen = True

    @model_validator(mode='after')
    def check_bounds(self):
        if self.start > self.end:
            raise ValueError('zoom start must not exceed zoom end')
        return self


Candle = Tuple[Decimal, Decimal, Decimal, Decimal]


class Pane(BaseModel):
    """One plotting region; both panes reference the same category axis."""
    name: PaneName
    axis: Tuple[str, ...] = ()
    y_scale: str


class CandlestickSeries(BaseModel):
    name: str = "K-line"
    data: List[Optional[Candle]] = Field(default_factory=list)


class LineSeries(BaseModel):
    name: str
    window: int
    data: List[Optional[Decimal]] = Field(default_factory=list)


class BarSeries(BaseModel):
    name: str = "Volume"
    data: List[Optional[Decimal]] = Field(default_factory=list)


class ChartModel(BaseModel):
    """Renderer-agnostic description of the dual-pane K-line chart."""
    title: str = ""
    category_axis: Tuple[str, ...] = ()
    price_pane: Pane = Field(default_factory=lambda: Pane(name='price', y_scale='price'))
    volume_pane: Pane = Field(default_factory=lambda: Pane(name='volume', y_scale='volume'))
    candlestick: CandlestickSeries = Field(default_factory=CandlestickSeries)
    moving_averages: List[LineSeries] = Field(default_factory=list)
    volume: BarSeries = Field(default_factory=BarSeries)
    zoom: ZoomWindow = Field(default_factory=ZoomWindow)

    @property
    def is_empty(self) -> bool:
        return not self.category_axis

    def pane(self, name: str) -> Pane:
        if name not in PANES:
            raise ValueError(f"Unknown pane: {name!r}. Valid panes: {', '.join(PANES)}")
        return self.price_pane if name == 'price' else self.volume_pane

    def set_zoom(self, pane: str, start: float, end: float) -> ZoomWindow:
        """Apply a zoom interaction from either pane to the shared window."""
        self.pane(pane)
        self.zoom = ZoomWindow(start=start, end=end)
        return self.zoom

    def visible_window(self, pane: str) -> Tuple[float, float]:
        self.pane(pane)
        return (self.zoom.start, self.zoom.end)

    def visible_indices(self) -> range:
        """Index range covered by the zoom window."""
        count = len(self.category_axis)
        if count == 0:
            return range(0)
        last = count - 1
        lo = int(math.floor(self.zoom.start * last / 100))
        hi = int(math.ceil(self.zoom.end * last / 100))
        return range(lo, hi + 1)


# ===========================================
# Table Models
# ===========================================

class DisplayRow(BaseModel):
    """One table row; every cell is already a display string."""
    trade_date: str = Field(..., alias="tradeDate")
    open: str
    high: str
    low: str
    close: str
    pct_change: str = Field(..., alias="pctChg")
    volume: str = Field(..., alias="vol")
    amount: str

    class Config:
        populate_by_name = True


# ===========================================
# API Response Models
# ===========================================

class RefreshSummary(BaseModel):
    """Outcome of a batch refresh across instruments."""
    refreshed: List[str] = Field(default_factory=list)
    failed: Dict[str, str] = Field(default_factory=dict)
